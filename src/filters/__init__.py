"""Filters — композиция предикатов над заказами и line items."""

from .pipeline import (
    BuyerOption,
    DeliveredState,
    FilterCriteria,
    FilterPipeline,
    PreparedState,
    contains_text,
    fold_text,
    sort_key,
)

__all__ = [
    "BuyerOption",
    "DeliveredState",
    "FilterCriteria",
    "FilterPipeline",
    "PreparedState",
    "contains_text",
    "fold_text",
    "sort_key",
]
