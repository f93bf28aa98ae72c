"""
PeriodOrdersSummary — итоги количеств по артикулам периода

Для каждого артикула периода: суммарное количество, число line items
и варианты персонализации. Ключ варианта — опции, отсортированные по
названию, в виде "Title: value", соединённые через " | ".

Форматирование значения опции:
- boolean → labels.option_yes / labels.option_no
- multiselect → значения через ", "
- отсутствующее значение → "-"

Вариант без персонализаций идёт первым, остальные по алфавиту.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.order import OptionType, Order, OrderItem, SelectedOption
from src.core.domain.period import Period
from src.core.math.numerical_safeguards import sum_floats
from src.filters.pipeline import sort_key
from src.periods.resolution import PeriodResolver


@dataclass(frozen=True)
class CustomizationVariant:
    """Вариант персонализации артикула."""

    key: str
    label: str
    quantity: float
    orders_count: int


@dataclass(frozen=True)
class ArticleSummary:
    article_id: str
    article_name: str
    total_quantity: float
    unit_measure: Optional[str]
    orders_count: int
    variants: tuple[CustomizationVariant, ...]


@dataclass(frozen=True)
class PeriodOrdersSummary:
    """Итоги периода по артикулам."""

    period_id: str
    period_name: str
    articles: tuple[ArticleSummary, ...]
    total_orders: int
    unique_buyers: int
    transport_cost: float


@dataclass
class _ArticleAccumulator:
    name: str
    unit_measure: Optional[str]
    quantities: list[float] = field(default_factory=list)
    variants: dict[str, list[float]] = field(default_factory=dict)


def format_option_value(option: SelectedOption, config: Optional[EngineConfig] = None) -> str:
    """Отображаемое значение выбранной опции."""
    labels = (config or DEFAULT_CONFIG).labels
    value = option.value
    if option.type == OptionType.BOOLEAN:
        return labels.option_yes if value else labels.option_no
    if option.type == OptionType.MULTISELECT and isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if value is None or value == "":
        return "-"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def customization_key(item: OrderItem, config: Optional[EngineConfig] = None) -> str:
    """Ключ варианта персонализации ("" для item без опций)."""
    labels = (config or DEFAULT_CONFIG).labels
    options = sorted(item.selected_options, key=lambda o: sort_key(o.title or ""))
    return " | ".join(
        f"{option.title or labels.customization}: {format_option_value(option, config)}"
        for option in options
    )


def summarize_period_articles(
    orders: Iterable[Order],
    period: Period,
    resolver: PeriodResolver,
    config: Optional[EngineConfig] = None,
) -> PeriodOrdersSummary:
    """
    Итоги количеств по артикулам периода.

    Args:
        orders: заказы снапшота
        period: период
        resolver: resolver периодов снапшота
        config: конфигурация движка (подписи вариантов)

    Returns:
        PeriodOrdersSummary; артикулы отсортированы по имени. Если у периода
        задан список артикулов, учитываются только они
    """
    config = config or DEFAULT_CONFIG
    allowed = period.article_ids

    articles: dict[str, _ArticleAccumulator] = {}
    order_ids: set[str] = set()
    buyer_keys: set[str] = set()

    for order in orders:
        items = [item for item in order.items if resolver.resolve_id(item, order) == period.id]
        if not items:
            continue
        order_ids.add(order.id)
        if not order.buyer.is_unknown:
            buyer_keys.add(order.buyer.key)

        for item in items:
            if allowed and item.article_id not in allowed:
                continue
            acc = articles.get(item.article_id)
            if acc is None:
                acc = _ArticleAccumulator(name=item.article_name(), unit_measure=item.unit_measure)
                articles[item.article_id] = acc
            acc.quantities.append(item.quantity)
            acc.variants.setdefault(customization_key(item, config), []).append(item.quantity)

    summaries = []
    for article_id, acc in articles.items():
        variants = [
            CustomizationVariant(
                key=key,
                label=key or config.labels.no_customization,
                quantity=sum_floats(quantities),
                orders_count=len(quantities),
            )
            for key, quantities in acc.variants.items()
        ]
        variants.sort(key=lambda v: (v.key != "", sort_key(v.label)))
        summaries.append(
            ArticleSummary(
                article_id=article_id,
                article_name=acc.name,
                total_quantity=sum_floats(acc.quantities),
                unit_measure=acc.unit_measure,
                orders_count=len(acc.quantities),
                variants=tuple(variants),
            )
        )
    summaries.sort(key=lambda a: sort_key(a.article_name))

    return PeriodOrdersSummary(
        period_id=period.id,
        period_name=period.name or period.id,
        articles=tuple(summaries),
        total_orders=len(order_ids),
        unique_buyers=len(buyer_keys),
        transport_cost=period.transport_cost,
    )
