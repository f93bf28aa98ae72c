"""Payments — платёжные сводки, статус оплаты и команды mark-paid."""

from .aggregator import PaymentAggregator
from .commands import PaymentCommandService
from .status import (
    PaymentCommand,
    PaymentStatusMachine,
    PaymentTransitionResult,
    derive_payment_status,
    status_rank,
)

__all__ = [
    "PaymentAggregator",
    "PaymentCommand",
    "PaymentCommandService",
    "PaymentStatusMachine",
    "PaymentTransitionResult",
    "derive_payment_status",
    "status_rank",
]
