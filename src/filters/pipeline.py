"""
FilterPipeline — композиция предикатов над снапшотом заказов

Два уровня применения:
- apply(): order-level, для платёжных представлений
- apply_items(): item-level, для дерева подготовки корзин
  (prepared_state проверяется по флагу каждого line item)

Текстовые совпадения нечувствительны к регистру и диакритике:
haystack и needle приводятся к NFD, combining marks удаляются,
затем casefold. "preparacio" совпадает с "Preparació".

Пустые и неизвестные значения критериев — no-op. Пустой результат валиден.
Исходные коллекции никогда не изменяются (модели frozen).
"""

import unicodedata
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.basket import OrderLine
from src.core.domain.dates import end_of_day, parse_day, start_of_day
from src.core.domain.order import Order, OrderItem


# =============================================================================
# TEXT FOLDING
# =============================================================================


def fold_text(value: Optional[str]) -> str:
    """
    Нормализация строки для сравнения без учёта регистра и диакритики.

    Examples:
        >>> fold_text("Preparació")
        'preparacio'
        >>> fold_text("  ÀVILA ")
        '  avila '
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def contains_text(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Substring-совпадение после fold_text (пустой needle совпадает всегда)."""
    folded_needle = fold_text(needle).strip()
    if not folded_needle:
        return True
    return folded_needle in fold_text(haystack)


def sort_key(name: str) -> tuple[str, str]:
    """Стабильный ключ сортировки по отображаемому имени (без регистра и диакритики)."""
    return (fold_text(name), name)


# =============================================================================
# CRITERIA
# =============================================================================


class DeliveredState(str, Enum):
    """Фильтр по выдаче заказа (order-level)"""

    ALL = "all"
    DELIVERED = "delivered"
    UNDELIVERED = "undelivered"


class PreparedState(str, Enum):
    """Фильтр по подготовке line item (item-level, только корзины)"""

    ALL = "all"
    PREPARED = "prepared"
    UNPREPARED = "unprepared"


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip() or None
    return v


class FilterCriteria(BaseModel):
    """
    Критерии фильтрации.

    buyer_id (exact) имеет приоритет над buyer_text (substring).
    Неизвестные значения state и неразбираемые даты трактуются как no-op.
    """

    buyer_id: Optional[str] = Field(None, description="Точный идентификатор покупателя")
    buyer_text: Optional[str] = Field(None, description="Текст по имени / идентификатору")
    date_from: Optional[date] = Field(None, description="Начальный день включительно")
    date_to: Optional[date] = Field(None, description="Конечный день включительно")
    delivered_state: DeliveredState = Field(DeliveredState.ALL, description="Фильтр выдачи")
    prepared_state: PreparedState = Field(PreparedState.ALL, description="Фильтр подготовки")
    article_text: Optional[str] = Field(None, description="Текст по имени артикула")

    model_config = {"frozen": True}

    @field_validator("buyer_id", "buyer_text", "article_text", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def coerce_day(cls, v: Any) -> Optional[date]:
        try:
            return parse_day(v)
        except (TypeError, ValueError):
            return None

    @field_validator("delivered_state", mode="before")
    @classmethod
    def unknown_delivered_as_all(cls, v: Any) -> Any:
        try:
            return DeliveredState(v)
        except ValueError:
            return DeliveredState.ALL

    @field_validator("prepared_state", mode="before")
    @classmethod
    def unknown_prepared_as_all(cls, v: Any) -> Any:
        try:
            return PreparedState(v)
        except ValueError:
            return PreparedState.ALL

    @property
    def is_empty(self) -> bool:
        """Ни один критерий не активен."""
        return self == FilterCriteria()


# =============================================================================
# BUYER OPTIONS
# =============================================================================


@dataclass(frozen=True)
class BuyerOption:
    """Покупатель в списке выбора (ключ + отображаемое имя)."""

    key: str
    name: str


# =============================================================================
# PIPELINE
# =============================================================================


class FilterPipeline:
    """
    Применение FilterCriteria к снапшоту.

    Все методы чистые: возвращают новые списки, вход не изменяется.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Args:
            config: конфигурация движка (timezone границ дней, подписи)
        """
        self.config = config or DEFAULT_CONFIG

    def apply(self, orders: Iterable[Order], criteria: Optional[FilterCriteria] = None) -> list[Order]:
        """
        Order-level фильтрация (платёжные представления).

        article_text на этом уровне оставляет заказ, если хотя бы один его
        item совпадает; prepared_state игнорируется.
        """
        criteria = criteria or FilterCriteria()
        result = []
        for order in orders:
            if not self._order_matches(order, criteria):
                continue
            if criteria.article_text and not any(
                contains_text(item.article_name(), criteria.article_text) for item in order.items
            ):
                continue
            result.append(order)
        return result

    def apply_items(
        self, orders: Iterable[Order], criteria: Optional[FilterCriteria] = None
    ) -> list[OrderLine]:
        """
        Item-level фильтрация (дерево подготовки корзин).

        Returns:
            OrderLine для каждого выжившего line item, в порядке заказов и items
        """
        criteria = criteria or FilterCriteria()
        lines = []
        for order in orders:
            if not self._order_matches(order, criteria):
                continue
            for item in order.items:
                if self._item_matches(item, criteria):
                    lines.append(OrderLine(order=order, item=item))
        return lines

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def _order_matches(self, order: Order, criteria: FilterCriteria) -> bool:
        return (
            self._buyer_matches(order, criteria)
            and self._date_matches(order, criteria)
            and self._delivered_matches(order, criteria)
        )

    def _buyer_matches(self, order: Order, criteria: FilterCriteria) -> bool:
        buyer = order.buyer
        if criteria.buyer_id:
            return criteria.buyer_id in buyer.identifiers()
        if criteria.buyer_text:
            haystacks = (buyer.display_name(self.config.labels.unknown_buyer), *buyer.identifiers())
            return any(contains_text(h, criteria.buyer_text) for h in haystacks)
        return True

    def _date_matches(self, order: Order, criteria: FilterCriteria) -> bool:
        tz = self.config.tz
        if criteria.date_from and order.created_at < start_of_day(criteria.date_from, tz):
            return False
        if criteria.date_to and order.created_at > end_of_day(criteria.date_to, tz):
            return False
        return True

    @staticmethod
    def _delivered_matches(order: Order, criteria: FilterCriteria) -> bool:
        if criteria.delivered_state == DeliveredState.DELIVERED:
            return order.is_delivered
        if criteria.delivered_state == DeliveredState.UNDELIVERED:
            return not order.is_delivered
        return True

    @staticmethod
    def _item_matches(item: OrderItem, criteria: FilterCriteria) -> bool:
        if criteria.prepared_state == PreparedState.PREPARED and not item.is_prepared:
            return False
        if criteria.prepared_state == PreparedState.UNPREPARED and item.is_prepared:
            return False
        return contains_text(item.article_name(), criteria.article_text)

    # -------------------------------------------------------------------------
    # Buyer options
    # -------------------------------------------------------------------------

    def unique_buyers(self, orders: Iterable[Order]) -> list[BuyerOption]:
        """
        Уникальные покупатели снапшота, отсортированные по имени.

        Имя — первое непустое имя покупателя среди его заказов.
        """
        names: dict[str, str] = {}
        named: set[str] = set()
        for order in orders:
            buyer = order.buyer
            if buyer.key in named:
                continue
            if buyer.name:
                named.add(buyer.key)
                names[buyer.key] = buyer.name
            else:
                names.setdefault(buyer.key, buyer.display_name(self.config.labels.unknown_buyer))
        options = [BuyerOption(key=key, name=name) for key, name in names.items()]
        return sorted(options, key=lambda o: sort_key(o.name))

    @staticmethod
    def match_buyer(text: Optional[str], buyers: Sequence[BuyerOption]) -> Optional[BuyerOption]:
        """
        Первый покупатель, чьё имя или ключ содержит text.

        Используется для перевода введённого текста в точный buyer_id.
        """
        needle = fold_text(text).strip()
        if not needle:
            return None
        for buyer in buyers:
            if needle in fold_text(buyer.name) or needle in fold_text(buyer.key):
                return buyer
        return None
