"""
Core math modules

Числовые примитивы для агрегации денежных сумм и количеств.
"""

from src.core.math.numerical_safeguards import (
    # Epsilon constants
    EPS_FLOAT_COMPARE_ABS,
    EPS_FLOAT_COMPARE_REL,
    EPS_MONEY,
    # Coercion
    coerce_amount,
    coerce_float,
    coerce_quantity,
    # NaN/Inf sanitization
    is_valid_float,
    sanitize_float,
    # Epsilon comparisons
    compare_with_tolerance,
    is_close,
    is_positive,
    is_zero,
    # Summation
    sum_floats,
)

__all__ = [
    # Epsilon constants
    "EPS_FLOAT_COMPARE_ABS",
    "EPS_FLOAT_COMPARE_REL",
    "EPS_MONEY",
    # Coercion
    "coerce_amount",
    "coerce_float",
    "coerce_quantity",
    # NaN/Inf sanitization
    "is_valid_float",
    "sanitize_float",
    # Epsilon comparisons
    "compare_with_tolerance",
    "is_close",
    "is_positive",
    "is_zero",
    # Summation
    "sum_floats",
]
