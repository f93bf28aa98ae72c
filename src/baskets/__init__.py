"""Baskets — дерево подготовки корзин, состояние подготовки и итоги периода."""

from .commands import BasketCommandService
from .grouper import BasketGrouper
from .preparation import PreparationStateReducer
from .summary import (
    ArticleSummary,
    CustomizationVariant,
    PeriodOrdersSummary,
    customization_key,
    format_option_value,
    summarize_period_articles,
)

__all__ = [
    "ArticleSummary",
    "BasketCommandService",
    "BasketGrouper",
    "CustomizationVariant",
    "PeriodOrdersSummary",
    "PreparationStateReducer",
    "customization_key",
    "format_option_value",
    "summarize_period_articles",
]
