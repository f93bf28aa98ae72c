"""PaymentCommandService — команды оплаты поверх store.

После любой команды снапшот перезагружается и сводки пересчитываются
полностью: локальные агрегаты никогда не патчатся оптимистично.
Ошибка store пробрасывается как RemoteCommandError, без retry.
"""

from datetime import date
from typing import Iterable, Optional

from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.basket import BulkCommandResult, CommandFailure
from src.core.domain.payment import PaymentsOverview, PeriodPaymentSummary
from src.core.errors import RemoteCommandError
from src.core.log import get_logger
from src.core.ports import CooperativeStore
from src.filters.pipeline import FilterCriteria, FilterPipeline
from src.orders.importer import OrderImporter, Snapshot
from src.payments.aggregator import PaymentAggregator

logger = get_logger("payments.commands")


class PaymentCommandService:
    """Загрузка снапшота, платёжные сводки и команды mark-paid / mark-unpaid."""

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
        self.filters = FilterPipeline(self.config)
        self._snapshot = Snapshot(orders=(), periods=())
        self._aggregator = PaymentAggregator((), self.config)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def aggregator(self) -> PaymentAggregator:
        return self._aggregator

    async def load(self) -> Snapshot:
        """Свежая загрузка снапшота; агрегатор пересобирается под новые периоды."""
        self._snapshot = await self.importer.load(self.store)
        self._aggregator = PaymentAggregator(self._snapshot.periods, self.config)
        return self._snapshot

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def summarize_period(
        self, period_id: str, criteria: Optional[FilterCriteria] = None
    ) -> PeriodPaymentSummary:
        orders = self.filters.apply(self._snapshot.orders, criteria)
        return self._aggregator.summarize_period(orders, period_id)

    def overview(self, today: date, criteria: Optional[FilterCriteria] = None) -> PaymentsOverview:
        orders = self.filters.apply(self._snapshot.orders, criteria)
        return self._aggregator.build_overview(orders, today)

    def overview_for_delivery_date(
        self, day: date, criteria: Optional[FilterCriteria] = None
    ) -> PaymentsOverview:
        orders = self.filters.apply(self._snapshot.orders, criteria)
        return self._aggregator.build_overview_for_delivery_date(orders, day)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def mark_as_paid(self, period_id: str, buyer_id: str) -> PeriodPaymentSummary:
        """
        Отметить заказы покупателя в периоде как оплаченные.

        Returns:
            Пересчитанная сводка периода после перезагрузки

        Raises:
            RemoteCommandError: store отклонил команду
        """
        await self._set_paid(period_id, buyer_id, paid=True)
        await self.load()
        return self.summarize_period(period_id)

    async def mark_as_unpaid(self, period_id: str, buyer_id: str) -> PeriodPaymentSummary:
        """
        Снять отметку оплаты (единственный санкционированный путь понижения статуса).

        Raises:
            RemoteCommandError: store отклонил команду
        """
        await self._set_paid(period_id, buyer_id, paid=False)
        await self.load()
        return self.summarize_period(period_id)

    async def mark_all_buyer_periods(
        self,
        buyer_id: str,
        period_ids: Iterable[str],
        paid: bool = True,
    ) -> BulkCommandResult:
        """
        Команда для всех периодов покупателя.

        Периоды обрабатываются последовательно, ошибки собираются,
        снапшот перезагружается один раз в конце (даже при ошибках).

        Returns:
            BulkCommandResult со счётчиками по периодам
        """
        period_ids = list(period_ids)
        if not period_ids:
            return BulkCommandResult()

        succeeded = 0
        failures = []
        for period_id in period_ids:
            try:
                await self._set_paid(period_id, buyer_id, paid=paid)
            except RemoteCommandError as exc:
                failures.append(CommandFailure(target=period_id, error=exc))
            else:
                succeeded += 1

        await self.load()

        result = BulkCommandResult(succeeded=succeeded, failed=len(failures), failures=tuple(failures))
        if failures:
            logger.warning(
                "payments.bulk_partial_failure",
                extra={
                    "buyer_id": buyer_id,
                    "paid": paid,
                    "failed_periods": [f.target for f in failures],
                    "succeeded": succeeded,
                },
            )
        return result

    async def _set_paid(self, period_id: str, buyer_id: str, paid: bool) -> None:
        command = "mark_as_paid" if paid else "mark_as_unpaid"
        logger.info(command, extra={"period_id": period_id, "buyer_id": buyer_id})
        try:
            if paid:
                await self.store.mark_as_paid(period_id, buyer_id)
            else:
                await self.store.mark_as_unpaid(period_id, buyer_id)
        except Exception as exc:
            logger.error(
                "payments.command_failed",
                extra={"command": command, "period_id": period_id, "buyer_id": buyer_id},
            )
            raise RemoteCommandError(command, f"{period_id}/{buyer_id}") from exc
