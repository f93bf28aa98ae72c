"""
Period — Период поставки (supply window) поставщика

Период ограничен [start_date, end_date] и имеет delivery_date. Используется
движком только как ключ группировки, для fallback-разрешения периода item
по created_at заказа и для классификации "finished" (end_date < now).

Date-only границы расширяются до целых дней:
- start_date → 00:00:00.000000
- end_date → 23:59:59.999999
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.core.domain.dates import ensure_utc, parse_moment
from src.core.math.numerical_safeguards import coerce_amount

_WIRE_CONFIG = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def _id_as_str(v: Any) -> Any:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    if isinstance(v, str):
        return v.strip() or None
    return v


class PeriodRecurrence(str, Enum):
    """Периодичность повторения периода"""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class SupplierRef(BaseModel):
    """Встроенная ссылка на поставщика периода."""

    id: Optional[str] = Field(None, description="Идентификатор поставщика")
    name: Optional[str] = Field(None, description="Название поставщика")

    model_config = _WIRE_CONFIG

    @field_validator("id", "name", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> Any:
        return _id_as_str(v)


class PeriodArticle(BaseModel):
    """Артикул, предлагаемый в периоде."""

    id: Optional[str] = Field(None, description="Идентификатор записи")
    article_id: str = Field(..., min_length=1, description="Идентификатор артикула")
    price_per_unit: float = Field(0.0, description="Цена за единицу в периоде")

    model_config = _WIRE_CONFIG

    @field_validator("id", "article_id", mode="before")
    @classmethod
    def ids_as_str(cls, v: Any) -> Any:
        return _id_as_str(v)

    @field_validator("price_per_unit", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> float:
        return coerce_amount(v)


class Period(BaseModel):
    """
    Модель периода поставки.

    Immutable модель (frozen=True).
    """

    id: str = Field(..., min_length=1, description="Идентификатор периода")
    name: str = Field("", description="Название периода")
    supplier_id: Optional[str] = Field(None, description="Идентификатор поставщика")
    supplier: Optional[SupplierRef] = Field(None, description="Встроенный поставщик")

    start_date: datetime = Field(..., description="Начало периода (aware UTC)")
    end_date: datetime = Field(..., description="Конец периода включительно (aware UTC)")
    delivery_date: Optional[datetime] = Field(None, description="Дата доставки (aware UTC)")

    recurrence: PeriodRecurrence = Field(PeriodRecurrence.CUSTOM, description="Периодичность")
    transport_cost: float = Field(0.0, description="Стоимость транспорта периода")
    period_articles: tuple[PeriodArticle, ...] = Field(
        default_factory=tuple, description="Артикулы, предлагаемые в периоде"
    )

    model_config = _WIRE_CONFIG

    @model_validator(mode="before")
    @classmethod
    def supplier_id_from_embedded(cls, data: Any) -> Any:
        """supplierId может прийти только во встроенном объекте supplier."""
        if isinstance(data, dict) and not data.get("supplierId") and not data.get("supplier_id"):
            supplier = data.get("supplier")
            if isinstance(supplier, dict) and supplier.get("id"):
                data = {**data, "supplierId": supplier["id"]}
        return data

    @field_validator("id", "supplier_id", mode="before")
    @classmethod
    def ids_as_str(cls, v: Any) -> Any:
        return _id_as_str(v)

    @field_validator("name", mode="before")
    @classmethod
    def name_as_str(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("start_date", "delivery_date", mode="before")
    @classmethod
    def parse_start(cls, v: Any) -> Any:
        return parse_moment(v)

    @field_validator("end_date", mode="before")
    @classmethod
    def parse_end(cls, v: Any) -> Any:
        return parse_moment(v, end_of_day=True)

    @field_validator("recurrence", mode="before")
    @classmethod
    def unknown_recurrence_as_custom(cls, v: Any) -> Any:
        try:
            return PeriodRecurrence(v)
        except ValueError:
            return PeriodRecurrence.CUSTOM

    @field_validator("transport_cost", mode="before")
    @classmethod
    def coerce_transport(cls, v: Any) -> float:
        return coerce_amount(v)

    @field_validator("period_articles", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @model_validator(mode="after")
    def validate_bounds(self) -> "Period":
        """Проверка: end_date не раньше start_date."""
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date.isoformat()}) must not precede "
                f"start_date ({self.start_date.isoformat()})"
            )
        return self

    def contains(self, moment: datetime) -> bool:
        """start_date <= moment <= end_date (границы включительно)."""
        moment = ensure_utc(moment)
        return self.start_date <= moment <= self.end_date

    def is_finished(self, now: datetime) -> bool:
        """Период завершён строго раньше now."""
        return self.end_date < ensure_utc(now)

    @property
    def supplier_key(self) -> Optional[str]:
        """Ключ группировки по поставщику (None если поставщик не указан)."""
        if self.supplier_id:
            return self.supplier_id
        if self.supplier is not None:
            return self.supplier.id
        return None

    def supplier_name(self, unknown_label: str = "Unknown supplier") -> str:
        if self.supplier is not None and self.supplier.name:
            return self.supplier.name
        return unknown_label

    @property
    def article_ids(self) -> frozenset[str]:
        """Идентификаторы артикулов периода (пусто если список не передан)."""
        return frozenset(pa.article_id for pa in self.period_articles)
