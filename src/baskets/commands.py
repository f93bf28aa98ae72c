"""BasketCommandService — команды подготовки корзин поверх store.

- toggle_item: единственный примитив (ошибка → RemoteCommandError)
- toggle_article / toggle_period: все вызовы leaf параллельно
  (asyncio.gather с return_exceptions), best-effort без rollback,
  результат — BulkCommandResult с точными счётчиками
- delete_item: удаляет item после успеха store; заказ без items
  удаляется из снапшота

Успешные item-level команды обновляют флаг item в удерживаемом снапшоте;
агрегаты всегда пересчитываются заново через tree().
"""

import asyncio
from datetime import datetime
from typing import Optional, Sequence

from src.baskets.grouper import BasketGrouper
from src.baskets.preparation import PreparationStateReducer
from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.basket import BulkCommandResult, CommandFailure, PeriodBasket
from src.core.errors import CoopEngineError, MissingItemIdentity, RemoteCommandError
from src.core.log import get_logger
from src.core.ports import CooperativeStore
from src.filters.pipeline import FilterCriteria
from src.orders.importer import OrderImporter, Snapshot
from src.periods.resolution import PeriodResolver

logger = get_logger("baskets.commands")

# (order_id, item_id, article_id)
_Target = tuple[str, Optional[str], str]


class BasketCommandService:
    """Снапшот корзин, дерево подготовки и команды prepared / delete."""

    def __init__(
        self,
        store: CooperativeStore,
        importer: Optional[OrderImporter] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            store: store заказов и периодов
            importer: парсер payloads (default: OrderImporter с валидацией контрактов)
            config: конфигурация движка
        """
        self.store = store
        self.importer = importer or OrderImporter()
        self.config = config or DEFAULT_CONFIG
        self.grouper = BasketGrouper(self.config)
        self._snapshot = Snapshot(orders=(), periods=())

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    async def load(self) -> Snapshot:
        self._snapshot = await self.importer.load(self.store)
        return self._snapshot

    def tree(
        self, criteria: Optional[FilterCriteria] = None, now: Optional[datetime] = None
    ) -> list[PeriodBasket]:
        """Дерево подготовки по текущему снапшоту."""
        return self.grouper.build_tree(self._snapshot.orders, self._snapshot.periods, criteria, now)

    def reducer(self) -> PreparationStateReducer:
        return PreparationStateReducer(PeriodResolver(self._snapshot.periods, self.config))

    # -------------------------------------------------------------------------
    # Single-leaf primitives
    # -------------------------------------------------------------------------

    async def toggle_item(self, order_id: str, item_id: str, checked: bool) -> None:
        """
        Установить флаг prepared одного item.

        Raises:
            MissingItemIdentity: item_id пуст (legacy item)
            RemoteCommandError: store отклонил команду
        """
        if not item_id:
            raise MissingItemIdentity(order_id)

        try:
            await self.store.set_item_prepared(order_id, item_id, checked)
        except Exception as exc:
            logger.error(
                "baskets.toggle_failed",
                extra={"order_id": order_id, "item_id": item_id, "checked": checked},
            )
            raise RemoteCommandError("set_item_prepared", f"{order_id}/{item_id}") from exc

        self._replace_order(order_id, lambda order: order.with_item_prepared(item_id, checked))

    async def delete_item(self, order_id: str, item_id: Optional[str]) -> None:
        """
        Удалить item из заказа.

        Item исчезает из снапшота только после успеха store; если это был
        последний item заказа, заказ удаляется из снапшота.

        Raises:
            MissingItemIdentity: item_id пуст (legacy item)
            RemoteCommandError: store отклонил команду
        """
        if not item_id:
            raise MissingItemIdentity(order_id)

        try:
            await self.store.delete_item(order_id, item_id)
        except Exception as exc:
            logger.error("baskets.delete_failed", extra={"order_id": order_id, "item_id": item_id})
            raise RemoteCommandError("delete_item", f"{order_id}/{item_id}") from exc

        orders = []
        for order in self._snapshot.orders:
            if order.id == order_id:
                order = order.without_item(item_id)
                if not order.items:
                    logger.info("baskets.order_emptied", extra={"order_id": order_id})
                    continue
            orders.append(order)
        self._snapshot = Snapshot(orders=tuple(orders), periods=self._snapshot.periods)

    # -------------------------------------------------------------------------
    # Bulk commands
    # -------------------------------------------------------------------------

    async def toggle_article(
        self,
        period_id: str,
        article_id: str,
        checked: bool,
        criteria: Optional[FilterCriteria] = None,
        now: Optional[datetime] = None,
    ) -> BulkCommandResult:
        """
        Установить prepared для каждого leaf артикула в показанном дереве.

        Args:
            period_id: период артикула
            article_id: артикул
            checked: новое значение флага
            criteria: активный фильтр (определяет показанные leaf)
            now: момент построения дерева
        """
        basket = next((b for b in self.tree(criteria, now) if b.period_id == period_id), None)
        if basket is None:
            return BulkCommandResult()
        leaves = self.reducer().article_targets(basket, article_id)
        targets = [(leaf.order_id, leaf.item_id, article_id) for leaf in leaves]
        return await self._bulk_toggle(targets, checked, scope=f"{period_id}/{article_id}")

    async def toggle_period(self, period_id: str, checked: bool) -> BulkCommandResult:
        """
        Установить prepared для ВСЕХ items периода (фильтр игнорируется).
        """
        lines = self.reducer().period_targets(period_id, self._snapshot.orders)
        targets = [(line.order.id, line.item.id, line.item.article_id) for line in lines]
        return await self._bulk_toggle(targets, checked, scope=period_id)

    async def _bulk_toggle(
        self, targets: Sequence[_Target], checked: bool, scope: str
    ) -> BulkCommandResult:
        failures: list[CommandFailure] = []
        addressable = []
        for order_id, item_id, article_id in targets:
            if item_id:
                addressable.append((order_id, item_id))
            else:
                failures.append(
                    CommandFailure(target=order_id, error=MissingItemIdentity(order_id, article_id))
                )

        logger.info(
            "baskets.bulk_toggle.start",
            extra={"scope": scope, "checked": checked, "targets": len(targets)},
        )
        results = await asyncio.gather(
            *(self.toggle_item(order_id, item_id, checked) for order_id, item_id in addressable),
            return_exceptions=True,
        )

        succeeded = 0
        for (order_id, item_id), outcome in zip(addressable, results):
            if isinstance(outcome, CoopEngineError):
                failures.append(CommandFailure(target=f"{order_id}/{item_id}", error=outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                succeeded += 1

        result = BulkCommandResult(succeeded=succeeded, failed=len(failures), failures=tuple(failures))
        if failures:
            logger.warning(
                "baskets.bulk_toggle.partial_failure",
                extra={"scope": scope, "succeeded": succeeded, "failed": len(failures)},
            )
        return result

    def _replace_order(self, order_id: str, update) -> None:
        orders = tuple(
            update(order) if order.id == order_id else order for order in self._snapshot.orders
        )
        self._snapshot = Snapshot(orders=orders, periods=self._snapshot.periods)
