"""
BasketGrouper — дерево подготовки корзин период → артикул → line item

Алгоритм build_tree:
1. Item-level фильтрация (FilterPipeline.apply_items)
2. Разрешение периода каждого выжившего item
3. Группировка по article_id внутри периода
4. Один leaf на каждый item (без дедупликации по покупателю)
5. total_quantity = Σ количеств leaf (количества уже float)
6. Активные периоды перед завершёнными (end_date < now); внутри групп
   периоды и артикулы по отображаемому имени (без регистра и диакритики,
   стабильно); bucket "no period" последним в своей группе

Артикулы без leaf и периоды без артикулов не показываются.
Повторный вызов на том же входе даёт структурно идентичное дерево.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from src.baskets.preparation import PreparationStateReducer
from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.basket import (
    BasketItem,
    BasketLeaf,
    OrderGroup,
    OrderLine,
    PeriodBasket,
    PeriodOrders,
)
from src.core.domain.period import Period
from src.core.domain.order import Order
from src.core.log import get_logger
from src.core.math.numerical_safeguards import sum_floats
from src.filters.pipeline import FilterCriteria, FilterPipeline, sort_key
from src.periods.resolution import PeriodResolver

logger = get_logger("baskets.grouper")


class BasketGrouper:
    """Построение дерева подготовки корзин."""

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Args:
            config: конфигурация движка (default: DEFAULT_CONFIG)
        """
        self.config = config or DEFAULT_CONFIG
        self.filters = FilterPipeline(self.config)

    def build_tree(
        self,
        orders: Iterable[Order],
        periods: Iterable[Period],
        criteria: Optional[FilterCriteria] = None,
        now: Optional[datetime] = None,
    ) -> list[PeriodBasket]:
        """
        Дерево подготовки.

        Args:
            orders: полный снапшот заказов
            periods: полный список периодов (порядок значим для разрешения)
            criteria: критерии фильтрации (None = без фильтра)
            now: момент классификации "finished" (default: текущее UTC время)

        Returns:
            Периоды в порядке отображения
        """
        orders = list(orders)
        now = now or datetime.now(timezone.utc)
        resolver = PeriodResolver(periods, self.config)
        reducer = PreparationStateReducer(resolver)
        labels = self.config.labels

        # period_id → article_id → lines (порядок первого появления)
        grouped: dict[str, dict[str, list[OrderLine]]] = {}
        for line in self.filters.apply_items(orders, criteria):
            period_id = resolver.resolve_id(line.item, line.order)
            grouped.setdefault(period_id, {}).setdefault(line.item.article_id, []).append(line)

        baskets = []
        for period_id, articles in grouped.items():
            period = resolver.get(period_id)
            items = [self._basket_item(article_id, lines) for article_id, lines in articles.items()]
            items.sort(key=lambda i: sort_key(i.article_name))

            baskets.append(
                PeriodBasket(
                    period_id=period_id,
                    period_name=(period.name or period.id) if period else labels.no_period,
                    period=period,
                    is_finished=period.is_finished(now) if period else False,
                    articles={item.article_id: item for item in items},
                    is_prepared=reducer.is_period_prepared(period_id, orders),
                )
            )

        baskets.sort(key=lambda b: (b.is_finished, b.is_no_period, sort_key(b.period_name)))
        logger.debug(
            "baskets.tree_built",
            extra={"periods": len(baskets), "leaves": sum(len(b.leaves) for b in baskets)},
        )
        return baskets

    def _basket_item(self, article_id: str, lines: list[OrderLine]) -> BasketItem:
        unknown_label = self.config.labels.unknown_buyer
        leaves = tuple(
            BasketLeaf(
                buyer_id=line.buyer.key,
                buyer_name=line.buyer.display_name(unknown_label),
                quantity=line.item.quantity,
                order_id=line.order.id,
                item_id=line.item.id,
                is_prepared=line.item.is_prepared,
            )
            for line in lines
        )
        unit_measure = next((ln.item.unit_measure for ln in lines if ln.item.unit_measure), None)
        return BasketItem(
            article_id=article_id,
            article_name=lines[0].item.article_name(),
            total_quantity=sum_floats(leaf.quantity for leaf in leaves),
            unit_measure=unit_measure,
            leaves=leaves,
        )

    @staticmethod
    def orders_by_period(tree: Iterable[PeriodBasket]) -> list[PeriodOrders]:
        """
        Leaf каждого периода, сгруппированные по исходному заказу.

        Порядок заказов — порядок первого появления в дереве.
        """
        result = []
        for basket in tree:
            groups: dict[str, list[BasketLeaf]] = {}
            for leaf in basket.leaves:
                groups.setdefault(leaf.order_id, []).append(leaf)
            result.append(
                PeriodOrders(
                    period_id=basket.period_id,
                    period_name=basket.period_name,
                    orders=tuple(
                        OrderGroup(
                            order_id=order_id,
                            buyer_id=leaves[0].buyer_id,
                            buyer_name=leaves[0].buyer_name,
                            leaves=tuple(leaves),
                        )
                        for order_id, leaves in groups.items()
                    ),
                )
            )
        return result

