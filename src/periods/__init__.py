"""Periods — разрешение периода line items и выбор периодов по дате доставки."""

from .resolution import (
    PeriodOverlap,
    PeriodResolver,
    periods_delivered_by,
    periods_delivered_on,
)

__all__ = [
    "PeriodOverlap",
    "PeriodResolver",
    "periods_delivered_by",
    "periods_delivered_on",
]
