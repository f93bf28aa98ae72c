"""Конфигурация движка агрегации.

Все настройки — frozen dataclasses с дефолтами; компоненты принимают
Optional[...] конфиг и подставляют дефолт, если он не передан.
"""

from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from src.core.math.numerical_safeguards import EPS_MONEY


class OverlapPolicy(str, Enum):
    """Политика выбора периода, если дата заказа попадает в несколько периодов."""

    FIRST_LISTED = "first_listed"  # Первый период в переданном списке (стабильно)
    MOST_RECENT_START = "most_recent_start"  # Период с самой поздней start_date


@dataclass(frozen=True)
class LabelsConfig:
    """Подписи для fallback-групп (display-layer, не влияют на финансовую математику)."""

    unknown_buyer: str = "Unknown buyer"
    unknown_supplier: str = "Unknown supplier"
    no_period: str = "No period"
    no_customization: str = "No customizations"
    customization: str = "Customization"
    option_yes: str = "Yes"
    option_no: str = "No"


@dataclass(frozen=True)
class EngineConfig:
    """Общая конфигурация движка.

    Attributes:
        timezone_name: IANA timezone для границ дней в фильтрах и "сегодня"
        money_tolerance: допуск сравнения paid vs total
        overlap_policy: политика разрешения пересекающихся периодов
        warn_on_period_overlap: логировать пересечения периодов как data-quality warning
        labels: подписи fallback-групп
    """

    timezone_name: str = "UTC"
    money_tolerance: float = EPS_MONEY
    overlap_policy: OverlapPolicy = OverlapPolicy.FIRST_LISTED
    warn_on_period_overlap: bool = True
    labels: LabelsConfig = field(default_factory=LabelsConfig)

    def __post_init__(self):
        if self.money_tolerance < 0:
            raise ValueError(f"money_tolerance must be non-negative, got {self.money_tolerance}")

    @property
    def tz(self) -> tzinfo:
        """Timezone для вычисления календарных дней."""
        return ZoneInfo(self.timezone_name)


DEFAULT_CONFIG = EngineConfig()
