"""PreparationStateReducer — производное состояние "полностью подготовлено".

Состояние составного узла — чистая функция состояний его leaf:
- артикул подготовлен ⟺ ≥1 leaf и все leaf подготовлены
- период подготовлен ⟺ ≥1 item и все items, разрешённые в период,
  подготовлены; считается по ВСЕМ items, независимо от фильтра

Цели bulk-команд:
- article_targets: leaf артикула в показанном дереве
- period_targets: все items периода в снапшоте (фильтр игнорируется,
  это команда над данными, а не над представлением)
"""

from typing import Iterable

from src.core.domain.basket import BasketItem, BasketLeaf, OrderLine, PeriodBasket
from src.core.domain.order import Order
from src.periods.resolution import PeriodResolver


class PreparationStateReducer:
    """Чистые функции над состоянием подготовки."""

    def __init__(self, resolver: PeriodResolver):
        """
        Args:
            resolver: resolver периодов текущего снапшота
        """
        self.resolver = resolver

    @staticmethod
    def is_article_prepared(item: BasketItem) -> bool:
        return item.is_prepared

    def is_period_prepared(self, period_id: str, orders: Iterable[Order]) -> bool:
        """
        Все items периода подготовлены (и есть хотя бы один item).

        Args:
            period_id: идентификатор периода (или NO_PERIOD_ID)
            orders: ПОЛНЫЙ снапшот заказов, не отфильтрованный
        """
        lines = self.period_targets(period_id, orders)
        return bool(lines) and all(line.item.is_prepared for line in lines)

    @staticmethod
    def article_targets(basket: PeriodBasket, article_id: str) -> list[BasketLeaf]:
        """Leaf артикула в показанном дереве (пусто, если артикул не показан)."""
        item = basket.articles.get(article_id)
        if item is None:
            return []
        return list(item.leaves)

    def period_targets(self, period_id: str, orders: Iterable[Order]) -> list[OrderLine]:
        """Все items снапшота, разрешённые в период."""
        return [
            OrderLine(order=order, item=item)
            for order in orders
            for item in order.items
            if self.resolver.resolve_id(item, order) == period_id
        ]
