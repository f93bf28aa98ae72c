"""
Payment — производные структуры платёжных сводок

Все структуры derived (не персистятся) и пересобираются на каждой загрузке.
Денежные агрегаты всегда равны сумме дочерних значений; ни одно значение
не задаётся независимо от line items.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from src.core.domain.period import Period


class PaymentStatus(str, Enum):
    """Статус оплаты (derived из paid vs total)"""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


# =============================================================================
# PER-PERIOD
# =============================================================================


@dataclass(frozen=True)
class UserPaymentSummary:
    """Строка покупателя в сводке периода (или консолидированная строка поставщика)."""

    user_id: str
    user_name: str
    subtotal: float
    transport_cost: float
    total: float
    orders_count: int
    paid_amount: float
    payment_status: PaymentStatus
    order_ids: tuple[str, ...]
    is_unknown_buyer: bool = False

    @property
    def pending_amount(self) -> float:
        """Остаток к оплате (не меньше 0)."""
        return max(self.total - self.paid_amount, 0.0)


@dataclass(frozen=True)
class PeriodPaymentSummary:
    """Сводка оплат по периоду."""

    period_id: str
    period_name: str
    users: tuple[UserPaymentSummary, ...]
    total_subtotal: float
    total_transport_cost: float
    grand_total: float
    total_paid_amount: float

    @property
    def is_empty(self) -> bool:
        return not self.users

    def find_user(self, user_id: str) -> Optional[UserPaymentSummary]:
        for user in self.users:
            if user.user_id == user_id:
                return user
        return None


@dataclass(frozen=True)
class PeriodPaymentData:
    """
    Период и его сводка (элемент rollup поставщика).

    period is None, если период сводки не найден (в т.ч. bucket "no period").
    """

    period: Optional[Period]
    summary: PeriodPaymentSummary


# =============================================================================
# ROLLUPS
# =============================================================================


@dataclass(frozen=True)
class SupplierPaymentData:
    """Rollup по поставщику: периоды и консолидированные строки покупателей."""

    supplier_id: Optional[str]
    supplier_name: str
    periods: tuple[PeriodPaymentData, ...]
    users: tuple[UserPaymentSummary, ...]
    total_subtotal: float
    total_transport_cost: float
    total_amount: float
    total_paid_amount: float


@dataclass(frozen=True)
class PeriodContribution:
    """Вклад одного периода в строку покупателя (drill-down)."""

    period_id: str
    period_name: str
    subtotal: float
    transport_cost: float
    total: float
    paid_amount: float
    payment_status: PaymentStatus
    order_ids: tuple[str, ...]


@dataclass(frozen=True)
class AggregatedUserPayment:
    """Rollup по покупателю через все периоды и всех поставщиков."""

    user_id: str
    user_name: str
    periods: tuple[PeriodContribution, ...]
    total_subtotal: float
    total_transport_cost: float
    total_amount: float
    total_paid_amount: float
    overall_payment_status: PaymentStatus

    @property
    def pending_amount(self) -> float:
        return max(self.total_amount - self.total_paid_amount, 0.0)


@dataclass(frozen=True)
class PaymentTotals:
    """Общие итоги overview."""

    total_amount: float = 0.0
    total_paid: float = 0.0
    total_pending: float = 0.0
    buyers_count: int = 0
    paid_buyers_count: int = 0
    partial_buyers_count: int = 0
    unpaid_buyers_count: int = 0


@dataclass(frozen=True)
class PaymentsOverview:
    """Результат построения payments-overview."""

    periods: tuple[PeriodPaymentData, ...] = ()
    suppliers: tuple[SupplierPaymentData, ...] = ()
    buyers: tuple[AggregatedUserPayment, ...] = ()
    totals: PaymentTotals = field(default_factory=PaymentTotals)
