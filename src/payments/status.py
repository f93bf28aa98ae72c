"""Payment Status — чистая функция статуса оплаты и машина переходов.

Статус — чистая функция (paid, total), одинаковая на всех уровнях агрегации:
- PAID: paid >= total
- PARTIAL: 0 < paid < total
- UNPAID: иначе

Сравнения используют абсолютный допуск EPS_MONEY, чтобы шум суммирования
float (28.999999999999996 vs 29.0) не понижал PAID до PARTIAL.

Монотонность: при фиксированном total рост paid от 0 до total проходит
UNPAID → PARTIAL → PAID без пропусков. Понижение статуса (regression)
допустимо только как результат явной команды unmark.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.core.domain.payment import PaymentStatus
from src.core.math.numerical_safeguards import EPS_MONEY, compare_with_tolerance, is_positive

_STATUS_RANK = {
    PaymentStatus.UNPAID: 0,
    PaymentStatus.PARTIAL: 1,
    PaymentStatus.PAID: 2,
}


def derive_payment_status(
    paid_amount: float,
    total: float,
    tolerance: float = EPS_MONEY,
) -> PaymentStatus:
    """
    Статус оплаты из paid vs total.

    Args:
        paid_amount: оплаченная сумма
        total: сумма к оплате
        tolerance: абсолютный допуск сравнения (default: EPS_MONEY)

    Returns:
        PaymentStatus

    Examples:
        >>> derive_payment_status(29.0, 29.0)
        <PaymentStatus.PAID: 'paid'>
        >>> derive_payment_status(10.0, 29.0)
        <PaymentStatus.PARTIAL: 'partial'>
        >>> derive_payment_status(0.0, 29.0)
        <PaymentStatus.UNPAID: 'unpaid'>
    """
    if compare_with_tolerance(paid_amount, total, tol=tolerance) >= 0:
        return PaymentStatus.PAID
    if is_positive(paid_amount, tol=tolerance):
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def status_rank(status: PaymentStatus) -> int:
    """Порядок статусов: UNPAID < PARTIAL < PAID."""
    return _STATUS_RANK[status]


class PaymentCommand(str, Enum):
    """Команда, вызвавшая пересчёт статуса."""

    MARK_PAID = "mark_paid"
    MARK_UNPAID = "mark_unpaid"
    RELOAD = "reload"


@dataclass(frozen=True)
class PaymentTransitionResult:
    """Результат оценки перехода статуса оплаты."""

    new_status: PaymentStatus
    previous_status: Optional[PaymentStatus]

    # Диагностика
    transition_occurred: bool
    is_regression: bool
    regression_authorized: bool
    transition_reason: str


class PaymentStatusMachine:
    """Машина статусов оплаты поверх derive_payment_status.

    Сама машина не хранит состояние: статус всегда пересчитывается из сумм,
    машина только классифицирует переход между двумя пересчётами.
    """

    def __init__(self, tolerance: float = EPS_MONEY):
        """
        Args:
            tolerance: абсолютный допуск сравнения сумм (default: EPS_MONEY)
        """
        if tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {tolerance}")
        self.tolerance = tolerance

    def derive(self, paid_amount: float, total: float) -> PaymentStatus:
        return derive_payment_status(paid_amount, total, self.tolerance)

    def evaluate_transition(
        self,
        previous_status: Optional[PaymentStatus],
        paid_amount: float,
        total: float,
        command: PaymentCommand = PaymentCommand.RELOAD,
    ) -> PaymentTransitionResult:
        """Оценка перехода статуса после пересчёта сумм.

        Args:
            previous_status: статус до пересчёта (None при первой загрузке)
            paid_amount: новая оплаченная сумма
            total: новая сумма к оплате
            command: команда, вызвавшая пересчёт

        Returns:
            PaymentTransitionResult; regression_authorized=True только для
            понижения статуса после MARK_UNPAID
        """
        new_status = self.derive(paid_amount, total)

        if previous_status is None:
            return PaymentTransitionResult(
                new_status=new_status,
                previous_status=None,
                transition_occurred=False,
                is_regression=False,
                regression_authorized=False,
                transition_reason="Initial status",
            )

        transition_occurred = new_status != previous_status
        is_regression = status_rank(new_status) < status_rank(previous_status)
        regression_authorized = is_regression and command == PaymentCommand.MARK_UNPAID

        if not transition_occurred:
            reason = f"Status unchanged ({new_status.value})"
        elif is_regression:
            reason = (
                f"Regression {previous_status.value} → {new_status.value} "
                f"({'authorized by ' + command.value if regression_authorized else 'unauthorized'})"
            )
        else:
            reason = f"Progress {previous_status.value} → {new_status.value} ({command.value})"

        return PaymentTransitionResult(
            new_status=new_status,
            previous_status=previous_status,
            transition_occurred=transition_occurred,
            is_regression=is_regression,
            regression_authorized=regression_authorized,
            transition_reason=reason,
        )
