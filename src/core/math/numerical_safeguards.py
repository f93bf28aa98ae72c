"""
Numerical Safeguards — безопасные числовые примитивы для агрегации

Модуль обеспечивает устойчивость сумм и сравнений денежных величин и количеств:
- Приведение входных значений (числа, числовые строки, None) к float
- NaN/Inf санитизация для предотвращения распространения невалидных значений
- Epsilon-сравнения float с учётом накопленной ошибки суммирования

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Количество всегда приводится к float до суммирования (никакой конкатенации строк)
2. NaN/Inf никогда не пропагируют в агрегаты (заменяются на fallback)
3. Сравнения денежных сумм учитывают EPS_MONEY
4. Все операции детерминированы и воспроизводимы
"""

import math
from typing import Final

# =============================================================================
# EPSILON-ПАРАМЕТРЫ
# =============================================================================

# Epsilon для денежных сумм (EUR)
# Используется в сравнениях paid vs total: 28.999999999 считается равным 29.0
EPS_MONEY: Final[float] = 1e-9

# Epsilon для сравнения float (относительная толерантность)
EPS_FLOAT_COMPARE_REL: Final[float] = 1e-9

# Epsilon для сравнения float (абсолютная толерантность)
EPS_FLOAT_COMPARE_ABS: Final[float] = 1e-12


# =============================================================================
# NaN/Inf САНИТИЗАЦИЯ
# =============================================================================


def is_valid_float(value: float) -> bool:
    """
    Проверка, является ли float валидным (не NaN, не Inf).

    Args:
        value: Проверяемое значение

    Returns:
        True если значение валидное (finite), False если NaN или Inf
    """
    return math.isfinite(value)


def sanitize_float(value: float, fallback: float = 0.0) -> float:
    """
    Санитизация float: замена NaN/Inf на fallback значение.

    Args:
        value: Исходное значение
        fallback: Значение для замены NaN/Inf (default: 0.0)

    Returns:
        value если валидное, иначе fallback

    Examples:
        >>> sanitize_float(10.0)
        10.0
        >>> sanitize_float(float('nan'))
        0.0
        >>> sanitize_float(float('-inf'), fallback=-1.0)
        -1.0
    """
    if is_valid_float(value):
        return value
    return fallback


# =============================================================================
# ПРИВЕДЕНИЕ ВХОДНЫХ ЗНАЧЕНИЙ
# =============================================================================


def coerce_float(value: object, fallback: float = 0.0) -> float:
    """
    Приведение значения из wire-формата к float.

    Store может отдавать количество и суммы как числа или как числовые строки
    ("2.5", " 3 ", "1,5"). Любое значение приводится к float ДО суммирования.

    Правила:
    - bool → fallback (True не является количеством)
    - int/float → float (NaN/Inf → fallback)
    - str → float после strip; десятичная запятая заменяется на точку
    - None, пустая строка, нечисловая строка → fallback

    Args:
        value: Исходное значение
        fallback: Значение при невозможности приведения (default: 0.0)

    Returns:
        Валидный float

    Examples:
        >>> coerce_float("2.5")
        2.5
        >>> coerce_float(1)
        1.0
        >>> coerce_float("1,5")
        1.5
        >>> coerce_float("abc")
        0.0
        >>> coerce_float(None)
        0.0
    """
    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, (int, float)):
        return sanitize_float(float(value), fallback=fallback)

    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return fallback
        try:
            return sanitize_float(float(text), fallback=fallback)
        except ValueError:
            return fallback

    return fallback


def coerce_quantity(value: object) -> float:
    """
    Приведение количества line item к float.

    Отрицательные количества невалидны для корзины и заменяются на 0.0.

    Examples:
        >>> coerce_quantity("2.5") + coerce_quantity(1.5)
        4.0
    """
    quantity = coerce_float(value, fallback=0.0)
    if quantity < 0:
        return 0.0
    return quantity


def coerce_amount(value: object) -> float:
    """
    Приведение денежной суммы к float (знак сохраняется: возвраты возможны).
    """
    return coerce_float(value, fallback=0.0)


# =============================================================================
# EPSILON-СРАВНЕНИЯ FLOAT
# =============================================================================


def is_close(
    a: float,
    b: float,
    rel_tol: float = EPS_FLOAT_COMPARE_REL,
    abs_tol: float = EPS_FLOAT_COMPARE_ABS,
) -> bool:
    """
    Сравнение float с учётом машинной точности.

    Алгоритм:
        abs(a - b) <= max(rel_tol * max(abs(a), abs(b)), abs_tol)

    Args:
        a: Первое значение
        b: Второе значение
        rel_tol: Относительная толерантность (default: 1e-9)
        abs_tol: Абсолютная толерантность (default: 1e-12)

    Returns:
        True если значения близки с учётом толерантности
    """
    return math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)


def is_zero(value: float, tol: float = EPS_FLOAT_COMPARE_ABS) -> bool:
    """
    Проверка, близко ли значение к нулю с учётом толерантности.

    Returns:
        True если abs(value) <= tol
    """
    return abs(value) <= tol


def is_positive(value: float, tol: float = EPS_FLOAT_COMPARE_ABS) -> bool:
    """
    Проверка, является ли значение положительным с учётом толерантности.

    Returns:
        True если value > tol
    """
    return value > tol


def compare_with_tolerance(
    a: float,
    b: float,
    tol: float = EPS_FLOAT_COMPARE_ABS,
) -> int:
    """
    Сравнение двух float с учётом толерантности.

    Args:
        a: Первое значение
        b: Второе значение
        tol: Абсолютная толерантность (default: EPS_FLOAT_COMPARE_ABS)

    Returns:
        -1 если a < b (с учётом tol)
         0 если a ≈ b (в пределах tol)
        +1 если a > b (с учётом tol)

    Examples:
        >>> compare_with_tolerance(29.0, 28.999999999999996, tol=1e-9)
        0
        >>> compare_with_tolerance(10.0, 29.0)
        -1
    """
    diff = a - b

    if abs(diff) <= tol:
        return 0
    elif diff < 0:
        return -1
    else:
        return 1


def sum_floats(values) -> float:
    """
    Сумма float с компенсацией ошибок округления (math.fsum).

    Порядок слагаемых не влияет на результат, поэтому агрегаты
    детерминированы независимо от порядка группировки.
    """
    return math.fsum(values)
