"""
Basket — производные структуры дерева подготовки корзин

Иерархия: PeriodBasket → BasketItem (артикул) → BasketLeaf (один line item).
Один leaf на каждый line item: покупатель с двумя заказами одного артикула
даёт два leaf.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.core.domain.order import BuyerIdentity, Order, OrderItem
from src.core.domain.period import Period
from src.core.errors import BulkCommandError

NO_PERIOD_ID = "no-period"


@dataclass(frozen=True)
class OrderLine:
    """Line item вместе с родительским заказом (единица item-level фильтрации)."""

    order: Order
    item: OrderItem

    @property
    def buyer(self) -> BuyerIdentity:
        return self.order.buyer


@dataclass(frozen=True)
class BasketLeaf:
    """Один line item в дереве."""

    buyer_id: str
    buyer_name: str
    quantity: float
    order_id: str
    item_id: Optional[str]
    is_prepared: bool


@dataclass(frozen=True)
class BasketItem:
    """Артикул в периоде: сумма количеств по всем leaf."""

    article_id: str
    article_name: str
    total_quantity: float
    unit_measure: Optional[str]
    leaves: tuple[BasketLeaf, ...]

    @property
    def is_prepared(self) -> bool:
        """Хотя бы один leaf и все leaf подготовлены."""
        return bool(self.leaves) and all(leaf.is_prepared for leaf in self.leaves)

    @property
    def prepared_count(self) -> int:
        return sum(1 for leaf in self.leaves if leaf.is_prepared)


@dataclass(frozen=True)
class PeriodBasket:
    """
    Период в дереве подготовки.

    period=None для синтетического bucket "no period". is_prepared считается
    по ВСЕМ items периода, независимо от активного фильтра.
    """

    period_id: str
    period_name: str
    period: Optional[Period]
    is_finished: bool
    articles: dict[str, BasketItem]
    is_prepared: bool = False

    @property
    def is_no_period(self) -> bool:
        return self.period_id == NO_PERIOD_ID

    @property
    def leaves(self) -> tuple[BasketLeaf, ...]:
        return tuple(leaf for item in self.articles.values() for leaf in item.leaves)


@dataclass(frozen=True)
class OrderGroup:
    """Leaf периода, сгруппированные по исходному заказу."""

    order_id: str
    buyer_id: str
    buyer_name: str
    leaves: tuple[BasketLeaf, ...]


@dataclass(frozen=True)
class PeriodOrders:
    """Период и его заказы (представление "по заказам")."""

    period_id: str
    period_name: str
    orders: tuple[OrderGroup, ...]


@dataclass(frozen=True)
class CommandFailure:
    """Ошибка одной цели bulk-команды."""

    target: str
    error: BaseException


@dataclass(frozen=True)
class BulkCommandResult:
    """
    Итог bulk-команды (best-effort, без rollback).

    Частичный успех — штатный исход: вызывающий получает точные счётчики.
    """

    succeeded: int = 0
    failed: int = 0
    failures: tuple[CommandFailure, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def raise_for_failures(self) -> None:
        """
        Raises:
            BulkCommandError: если хотя бы одна цель завершилась ошибкой
        """
        if self.failed:
            raise BulkCommandError(self)
