"""
Dates — приведение временных меток wire-формата

Store отдаёт даты как ISO-строки (с 'Z' или offset), как date-only строки
('2024-05-10') или как timestamps. Внутри движка все моменты времени —
aware datetime в UTC, чтобы сравнения никогда не смешивали naive и aware.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Timestamps больше этого порога трактуются как миллисекунды
_MS_THRESHOLD = 10_000_000_000


def ensure_utc(moment: datetime) -> datetime:
    """
    Приведение datetime к aware UTC.

    Naive datetime трактуется как UTC (store не передаёт naive значения,
    это fallback для тестовых и legacy данных).
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_moment(value: object, *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Разбор временной метки из wire-формата.

    Args:
        value: datetime | date | ISO-строка | date-only строка | timestamp (s или ms)
        end_of_day: для date-only значений вернуть 23:59:59.999999 вместо 00:00

    Returns:
        aware UTC datetime или None для пустых значений

    Raises:
        ValueError: если строку невозможно разобрать
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return _day_bound(value, end_of_day=end_of_day, tz=timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000.0 if abs(value) >= _MS_THRESHOLD else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if _DATE_ONLY_RE.match(text):
            return _day_bound(date.fromisoformat(text), end_of_day=end_of_day, tz=timezone.utc)
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))

    raise ValueError(f"Unsupported datetime value: {value!r}")


def _day_bound(day: date, *, end_of_day: bool, tz: tzinfo) -> datetime:
    bound = time.max if end_of_day else time.min
    return datetime.combine(day, bound, tzinfo=tz).astimezone(timezone.utc)


def start_of_day(day: date | datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Начало календарного дня (00:00:00.000) в указанной timezone, в UTC."""
    if isinstance(day, datetime):
        day = ensure_utc(day).astimezone(tz).date()
    return _day_bound(day, end_of_day=False, tz=tz)


def end_of_day(day: date | datetime, tz: tzinfo = timezone.utc) -> datetime:
    """
    Конец календарного дня (23:59:59.999) в указанной timezone, в UTC.

    Граница включительная с точностью до миллисекунды.
    """
    if isinstance(day, datetime):
        day = ensure_utc(day).astimezone(tz).date()
    next_day = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (next_day - timedelta(milliseconds=1)).astimezone(timezone.utc)


def local_day(moment: datetime, tz: tzinfo = timezone.utc) -> date:
    """Календарный день момента времени в указанной timezone."""
    return ensure_utc(moment).astimezone(tz).date()


def parse_day(value: object) -> Optional[date]:
    """
    Календарный день из wire-значения.

    Для строк с offset день берётся в offset самой строки, без перевода
    в UTC: '2024-05-10T00:30:00+02:00' это 2024-05-10. Timestamps
    трактуются как UTC.

    Raises:
        ValueError: если значение невозможно разобрать
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    moment = parse_moment(value)
    return moment.date() if moment is not None else None
