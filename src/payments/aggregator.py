"""
PaymentAggregator — платёжные сводки по периоду, поставщику и покупателю

Иерархия rollup:
1. summarize_period: line items периода → строки покупателей → итоги периода
2. summarize_by_supplier: сводки периодов → поставщик → консолидированный покупатель
3. summarize_by_buyer: сводки периодов → покупатель через все периоды
4. overview_totals: покупатели → общие итоги

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Единственный источник денежных сумм — line items; каждый агрегат
   равен сумме дочерних значений
2. Статус оплаты пересчитывается на КАЖДОМ уровне из консолидированных сумм
   (не копируется с нижнего уровня)
3. Items без идентичности покупателя попадают в строку "unknown buyer"
   и никогда не отбрасываются
4. Транспорт заказа учитывается полностью (не делится) один раз
   на пару (заказ, период)
5. Order-level paid_amount делится между периодами заказа пропорционально
   line totals и никогда не учитывается дважды
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Sequence

from src.core.config import DEFAULT_CONFIG, EngineConfig
from src.core.domain.basket import NO_PERIOD_ID
from src.core.domain.order import Order, OrderItem
from src.core.domain.payment import (
    AggregatedUserPayment,
    PaymentsOverview,
    PaymentStatus,
    PaymentTotals,
    PeriodContribution,
    PeriodPaymentData,
    PeriodPaymentSummary,
    SupplierPaymentData,
    UserPaymentSummary,
)
from src.core.domain.period import Period
from src.core.log import get_logger
from src.core.math.numerical_safeguards import is_close, is_zero, sum_floats
from src.filters.pipeline import sort_key
from src.payments.status import derive_payment_status
from src.periods.resolution import PeriodResolver, periods_delivered_by, periods_delivered_on

logger = get_logger("payments.aggregator")


# =============================================================================
# ACCUMULATORS
# =============================================================================


@dataclass
class _BuyerAccumulator:
    """Изменяемый накопитель строки покупателя (живёт только внутри прохода)."""

    key: str
    name: Optional[str] = None
    fallback_name: str = ""
    is_unknown: bool = False
    line_totals: list[float] = field(default_factory=list)
    paid_amounts: list[float] = field(default_factory=list)
    transport_costs: list[float] = field(default_factory=list)
    order_ids: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.fallback_name


@dataclass
class _RollupAccumulator:
    key: str
    name: str
    subtotals: list[float] = field(default_factory=list)
    transports: list[float] = field(default_factory=list)
    totals: list[float] = field(default_factory=list)
    paids: list[float] = field(default_factory=list)
    order_ids: list[str] = field(default_factory=list)
    is_unknown: bool = False

    def add(self, user: UserPaymentSummary) -> None:
        self.subtotals.append(user.subtotal)
        self.transports.append(user.transport_cost)
        self.totals.append(user.total)
        self.paids.append(user.paid_amount)
        for order_id in user.order_ids:
            if order_id not in self.order_ids:
                self.order_ids.append(order_id)


# =============================================================================
# AGGREGATOR
# =============================================================================


class PaymentAggregator:
    """
    Построение платёжных сводок из снапшота заказов.

    Все методы чистые: сводки строятся заново на каждом вызове и не держат
    ссылок на изменяемое состояние.
    """

    def __init__(self, periods: Iterable[Period], config: Optional[EngineConfig] = None):
        """
        Args:
            periods: полный список периодов (порядок значим для разрешения периода)
            config: конфигурация движка (default: DEFAULT_CONFIG)
        """
        self.config = config or DEFAULT_CONFIG
        self.resolver = PeriodResolver(periods, self.config)

    @property
    def periods(self) -> tuple[Period, ...]:
        return self.resolver.periods

    def period_name(self, period_id: str) -> str:
        if period_id == NO_PERIOD_ID:
            return self.config.labels.no_period
        period = self.resolver.get(period_id)
        if period is None:
            return period_id
        return period.name or period_id

    # -------------------------------------------------------------------------
    # Per-period
    # -------------------------------------------------------------------------

    def summarize_period(self, orders: Iterable[Order], period_id: str) -> PeriodPaymentSummary:
        """
        Сводка оплат периода.

        Алгоритм:
        1. Items, разрешённые в period_id (не заказы целиком)
        2. Группировка по canonical ключу покупателя
        3. subtotal = Σ line_total; transport = Σ transport_cost по
           различным заказам; paid = Σ item.paid_amount (заказ без
           item-level оплат вносит долю своего paid_amount, см. _order_paid_share)
        4. Статус оплаты на покупателя
        5. Итоги периода = Σ по покупателям

        Args:
            orders: заказы (обычно результат FilterPipeline.apply)
            period_id: идентификатор периода или NO_PERIOD_ID

        Returns:
            PeriodPaymentSummary (users пуст, если вклада нет)
        """
        labels = self.config.labels
        buyers: dict[str, _BuyerAccumulator] = {}

        for order in orders:
            resolved = [(item, self.resolver.resolve_id(item, order)) for item in order.items]
            items = [item for item, item_period_id in resolved if item_period_id == period_id]
            if not items:
                continue

            buyer = order.buyer
            acc = buyers.get(buyer.key)
            if acc is None:
                acc = _BuyerAccumulator(
                    key=buyer.key,
                    fallback_name=buyer.display_name(labels.unknown_buyer),
                    is_unknown=buyer.is_unknown,
                )
                buyers[buyer.key] = acc
                if buyer.is_unknown:
                    logger.warning(
                        "payments.unknown_buyer",
                        extra={"period_id": period_id, "order_id": order.id},
                    )
            if acc.name is None and buyer.name:
                acc.name = buyer.name

            acc.line_totals.extend(item.line_total for item in items)
            if order.has_item_level_payments:
                acc.paid_amounts.extend(item.paid_amount or 0.0 for item in items)
            elif order.id not in acc.order_ids:
                acc.paid_amounts.append(self._order_paid_share(order, resolved, period_id))
            if order.id not in acc.order_ids:
                acc.order_ids.append(order.id)
                acc.transport_costs.append(order.transport_cost)

        users = [self._user_summary(acc) for acc in buyers.values()]
        users.sort(key=lambda u: (u.is_unknown_buyer, sort_key(u.user_name)))

        return PeriodPaymentSummary(
            period_id=period_id,
            period_name=self.period_name(period_id),
            users=tuple(users),
            total_subtotal=sum_floats(u.subtotal for u in users),
            total_transport_cost=sum_floats(u.transport_cost for u in users),
            grand_total=sum_floats(u.total for u in users),
            total_paid_amount=sum_floats(u.paid_amount for u in users),
        )

    @staticmethod
    def _order_paid_share(
        order: Order, resolved: Sequence[tuple[OrderItem, str]], period_id: str
    ) -> float:
        """
        Доля order-level paid_amount, приходящаяся на период.

        Оплата заказа делится между его периодами пропорционально line totals,
        так что Σ долей по периодам равна order.paid_amount. При нулевой сумме
        line totals вся оплата относится к периоду первого item.
        """
        if is_zero(order.paid_amount):
            return 0.0
        order_lines = sum_floats(item.line_total for item, _ in resolved)
        if is_zero(order_lines):
            return order.paid_amount if resolved[0][1] == period_id else 0.0
        period_lines = sum_floats(
            item.line_total for item, item_period_id in resolved if item_period_id == period_id
        )
        if is_close(period_lines, order_lines):
            return order.paid_amount
        return order.paid_amount * period_lines / order_lines

    def _user_summary(self, acc: _BuyerAccumulator) -> UserPaymentSummary:
        subtotal = sum_floats(acc.line_totals)
        transport = sum_floats(acc.transport_costs)
        total = subtotal + transport
        paid = sum_floats(acc.paid_amounts)
        return UserPaymentSummary(
            user_id=acc.key,
            user_name=acc.display_name,
            subtotal=subtotal,
            transport_cost=transport,
            total=total,
            orders_count=len(acc.order_ids),
            paid_amount=paid,
            payment_status=derive_payment_status(paid, total, self.config.money_tolerance),
            order_ids=tuple(acc.order_ids),
            is_unknown_buyer=acc.is_unknown,
        )

    def summarize_periods(
        self, orders: Iterable[Order], periods: Iterable[Period]
    ) -> list[PeriodPaymentData]:
        """
        Сводки для списка периодов; периоды без покупателей опускаются.
        """
        orders = list(orders)
        result = []
        for period in periods:
            summary = self.summarize_period(orders, period.id)
            if summary.is_empty:
                continue
            result.append(PeriodPaymentData(period=period, summary=summary))
        return result

    # -------------------------------------------------------------------------
    # Rollups
    # -------------------------------------------------------------------------

    def summarize_by_supplier(
        self,
        period_summaries: Sequence[PeriodPaymentSummary],
        periods: Optional[Iterable[Period]] = None,
    ) -> list[SupplierPaymentData]:
        """
        Rollup по поставщику.

        Покупатель нескольких периодов одного поставщика получает одну
        консолидированную строку; статус пересчитывается из консолидированных
        сумм (PAID в A + UNPAID в B даёт PARTIAL). Сводки без известного периода
        (включая bucket "no period") попадают в группу "unknown supplier".

        Args:
            period_summaries: сводки периодов
            periods: периоды для lookup поставщика (default: периоды агрегатора)

        Returns:
            Поставщики, отсортированные по имени
        """
        lookup = PeriodResolver(periods, self.config) if periods is not None else self.resolver
        labels = self.config.labels

        groups: dict[Optional[str], dict] = {}
        for summary in period_summaries:
            if summary.is_empty:
                continue
            period = lookup.get(summary.period_id)
            if period is None:
                if summary.period_id != NO_PERIOD_ID:
                    logger.warning(
                        "payments.unknown_period", extra={"period_id": summary.period_id}
                    )
                supplier_key, supplier_name = None, labels.unknown_supplier
            else:
                supplier_key = period.supplier_key
                supplier_name = period.supplier_name(labels.unknown_supplier)

            group = groups.get(supplier_key)
            if group is None:
                group = {"name": supplier_name, "periods": [], "users": {}}
                groups[supplier_key] = group
            group["periods"].append(PeriodPaymentData(period=period, summary=summary))

            for user in summary.users:
                acc = group["users"].get(user.user_id)
                if acc is None:
                    acc = _RollupAccumulator(
                        key=user.user_id, name=user.user_name, is_unknown=user.is_unknown_buyer
                    )
                    group["users"][user.user_id] = acc
                acc.add(user)

        suppliers = []
        for supplier_key, group in groups.items():
            users = [self._consolidated_user(acc) for acc in group["users"].values()]
            users.sort(key=lambda u: (u.is_unknown_buyer, sort_key(u.user_name)))
            suppliers.append(
                SupplierPaymentData(
                    supplier_id=supplier_key,
                    supplier_name=group["name"],
                    periods=tuple(group["periods"]),
                    users=tuple(users),
                    total_subtotal=sum_floats(u.subtotal for u in users),
                    total_transport_cost=sum_floats(u.transport_cost for u in users),
                    total_amount=sum_floats(u.total for u in users),
                    total_paid_amount=sum_floats(u.paid_amount for u in users),
                )
            )

        return sorted(suppliers, key=lambda s: sort_key(s.supplier_name))

    def _consolidated_user(self, acc: _RollupAccumulator) -> UserPaymentSummary:
        total = sum_floats(acc.totals)
        paid = sum_floats(acc.paids)
        return UserPaymentSummary(
            user_id=acc.key,
            user_name=acc.name,
            subtotal=sum_floats(acc.subtotals),
            transport_cost=sum_floats(acc.transports),
            total=total,
            orders_count=len(acc.order_ids),
            paid_amount=paid,
            payment_status=derive_payment_status(paid, total, self.config.money_tolerance),
            order_ids=tuple(acc.order_ids),
            is_unknown_buyer=acc.is_unknown,
        )

    def summarize_by_buyer(
        self, period_summaries: Sequence[PeriodPaymentSummary]
    ) -> list[AggregatedUserPayment]:
        """
        Rollup по покупателю через все периоды и всех поставщиков.

        Returns:
            Покупатели, отсортированные по имени; periods хранит вклад
            каждого периода для drill-down
        """
        groups: dict[str, tuple[_RollupAccumulator, list[PeriodContribution]]] = {}
        for summary in period_summaries:
            for user in summary.users:
                entry = groups.get(user.user_id)
                if entry is None:
                    entry = (
                        _RollupAccumulator(
                            key=user.user_id, name=user.user_name, is_unknown=user.is_unknown_buyer
                        ),
                        [],
                    )
                    groups[user.user_id] = entry
                acc, contributions = entry
                acc.add(user)
                contributions.append(
                    PeriodContribution(
                        period_id=summary.period_id,
                        period_name=summary.period_name,
                        subtotal=user.subtotal,
                        transport_cost=user.transport_cost,
                        total=user.total,
                        paid_amount=user.paid_amount,
                        payment_status=user.payment_status,
                        order_ids=user.order_ids,
                    )
                )

        buyers = []
        for acc, contributions in groups.values():
            total = sum_floats(acc.totals)
            paid = sum_floats(acc.paids)
            buyers.append(
                AggregatedUserPayment(
                    user_id=acc.key,
                    user_name=acc.name,
                    periods=tuple(contributions),
                    total_subtotal=sum_floats(acc.subtotals),
                    total_transport_cost=sum_floats(acc.transports),
                    total_amount=total,
                    total_paid_amount=paid,
                    overall_payment_status=derive_payment_status(
                        paid, total, self.config.money_tolerance
                    ),
                )
            )

        return sorted(buyers, key=lambda b: sort_key(b.user_name))

    @staticmethod
    def overview_totals(buyers: Sequence[AggregatedUserPayment]) -> PaymentTotals:
        """Общие итоги по покупателям overview."""
        statuses = [b.overall_payment_status for b in buyers]
        total_amount = sum_floats(b.total_amount for b in buyers)
        total_paid = sum_floats(b.total_paid_amount for b in buyers)
        return PaymentTotals(
            total_amount=total_amount,
            total_paid=total_paid,
            total_pending=sum_floats(b.pending_amount for b in buyers),
            buyers_count=len(buyers),
            paid_buyers_count=statuses.count(PaymentStatus.PAID),
            partial_buyers_count=statuses.count(PaymentStatus.PARTIAL),
            unpaid_buyers_count=statuses.count(PaymentStatus.UNPAID),
        )

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    def build_overview(self, orders: Iterable[Order], today: date) -> PaymentsOverview:
        """
        Payments-overview: периоды с delivery_date в день today или раньше.

        Будущие периоды исключаются даже при наличии заказов; периоды
        без покупателей опускаются.
        """
        periods = periods_delivered_by(self.periods, today, self.config)
        return self._overview(orders, periods)

    def build_overview_for_delivery_date(
        self, orders: Iterable[Order], day: date
    ) -> PaymentsOverview:
        """Payments-overview одного дня доставки."""
        periods = periods_delivered_on(self.periods, day, self.config)
        return self._overview(orders, periods)

    def _overview(self, orders: Iterable[Order], periods: Sequence[Period]) -> PaymentsOverview:
        period_data = self.summarize_periods(orders, periods)
        summaries = [pd.summary for pd in period_data]
        buyers = self.summarize_by_buyer(summaries)
        overview = PaymentsOverview(
            periods=tuple(period_data),
            suppliers=tuple(self.summarize_by_supplier(summaries)),
            buyers=tuple(buyers),
            totals=self.overview_totals(buyers),
        )
        logger.debug(
            "payments.overview_built",
            extra={"periods": len(overview.periods), "buyers": len(overview.buyers)},
        )
        return overview
