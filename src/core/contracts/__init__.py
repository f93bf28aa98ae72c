"""
Contract Validation Module

Валидация wire-формата store (заказы, периоды) по JSON Schema контрактам.
"""

from .validators import (
    ContractValidator,
    OrderValidator,
    PeriodValidator,
    SchemaLoader,
    validate_order,
    validate_period,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "OrderValidator",
    "PeriodValidator",
    # Functions
    "validate_order",
    "validate_period",
]
