"""Period Resolution — назначение периода каждому line item.

Порядок разрешения (общий для PaymentAggregator и BasketGrouper):
1. Собственный period_id item, если он ссылается на известный период
2. Иначе первый период списка, чей [start_date, end_date] содержит
   created_at родительского заказа
3. Иначе синтетический bucket "no period" (NO_PERIOD_ID)

Пересечения периодов:
- FIRST_LISTED (default) сохраняет порядок переданного списка (без сортировки)
- MOST_RECENT_START выбирает период с самой поздней start_date
- в обоих случаях пересечение логируется один раз на (дату, кандидатов)
  и доступно через find_overlaps()
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from src.core.config import DEFAULT_CONFIG, EngineConfig, OverlapPolicy
from src.core.domain.basket import NO_PERIOD_ID
from src.core.domain.dates import local_day
from src.core.domain.order import Order, OrderItem
from src.core.domain.period import Period
from src.core.log import get_logger

logger = get_logger("periods.resolution")


@dataclass(frozen=True)
class PeriodOverlap:
    """Два периода с пересекающимися интервалами."""

    first_id: str
    second_id: str
    overlap_start: datetime
    overlap_end: datetime


class PeriodResolver:
    """Детерминированное разрешение периода line item.

    Resolver не изменяет переданный список: порядок периодов — часть
    контракта tie-break.
    """

    def __init__(self, periods: Iterable[Period], config: Optional[EngineConfig] = None):
        """
        Args:
            periods: полный список периодов (порядок значим для FIRST_LISTED)
            config: конфигурация движка (default: DEFAULT_CONFIG)
        """
        self.config = config or DEFAULT_CONFIG
        self._periods: tuple[Period, ...] = tuple(periods)
        self._by_id: dict[str, Period] = {}
        for period in self._periods:
            self._by_id.setdefault(period.id, period)

        # Уже залогированные пересечения (дата, кандидаты)
        self._reported: set[tuple[date, tuple[str, ...]]] = set()

    @property
    def periods(self) -> tuple[Period, ...]:
        return self._periods

    def get(self, period_id: Optional[str]) -> Optional[Period]:
        if not period_id:
            return None
        return self._by_id.get(period_id)

    def resolve(self, item: OrderItem, order: Order) -> Optional[Period]:
        """
        Период line item.

        Args:
            item: line item
            order: родительский заказ (created_at для fallback)

        Returns:
            Period или None (bucket "no period")
        """
        own = self.get(item.period_id)
        if own is not None:
            return own

        candidates = [p for p in self._periods if p.contains(order.created_at)]
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        self._report_overlap(order, candidates)
        if self.config.overlap_policy == OverlapPolicy.MOST_RECENT_START:
            # max() возвращает первый из равных: tie-break по порядку списка
            return max(candidates, key=lambda p: p.start_date)
        return candidates[0]

    def resolve_id(self, item: OrderItem, order: Order) -> str:
        """Идентификатор периода item или NO_PERIOD_ID."""
        period = self.resolve(item, order)
        return period.id if period is not None else NO_PERIOD_ID

    def find_overlaps(self) -> list[PeriodOverlap]:
        """
        Все пары периодов с пересекающимися интервалами (в порядке списка).

        Returns:
            Список PeriodOverlap (пусто, если периоды не пересекаются)
        """
        overlaps = []
        for i, first in enumerate(self._periods):
            for second in self._periods[i + 1 :]:
                start = max(first.start_date, second.start_date)
                end = min(first.end_date, second.end_date)
                if start <= end:
                    overlaps.append(PeriodOverlap(first.id, second.id, start, end))
        return overlaps

    def _report_overlap(self, order: Order, candidates: Sequence[Period]) -> None:
        if not self.config.warn_on_period_overlap:
            return
        key = (local_day(order.created_at, self.config.tz), tuple(p.id for p in candidates))
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning(
            "periods.overlap",
            extra={
                "day": key[0].isoformat(),
                "candidates": list(key[1]),
                "policy": self.config.overlap_policy.value,
                "order_id": order.id,
            },
        )


# =============================================================================
# DELIVERY DATE SELECTION
# =============================================================================


def periods_delivered_by(
    periods: Iterable[Period],
    today: date,
    config: Optional[EngineConfig] = None,
) -> list[Period]:
    """
    Периоды с delivery_date в день today или раньше (payments-overview).

    Периоды без delivery_date и будущие периоды исключаются: у них ещё
    не может быть завершённых заказов.
    """
    tz = (config or DEFAULT_CONFIG).tz
    return [
        p for p in periods
        if p.delivery_date is not None and local_day(p.delivery_date, tz) <= today
    ]


def periods_delivered_on(
    periods: Iterable[Period],
    day: date,
    config: Optional[EngineConfig] = None,
) -> list[Period]:
    """Периоды с доставкой ровно в день day."""
    tz = (config or DEFAULT_CONFIG).tz
    return [
        p for p in periods
        if p.delivery_date is not None and local_day(p.delivery_date, tz) == day
    ]
