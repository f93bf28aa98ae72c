"""
Order — Модель заказа (sale) кооператива и его line items

Immutable Pydantic модели, соответствующие wire-формату store (camelCase JSON,
см. src/core/contracts/schema/order.json). Движок трактует заказы как read-only снапшот:
любое изменение (prepared flag, удаление item) создаёт новый экземпляр.

Идентичность покупателя:
- user_id (заказы) или user_email (legacy продажи) — одно пространство ключей
- canonical ключ (buyer_key) проставляется один раз при ingestion
  (см. src.orders.importer.unify_buyer_identities)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.core.domain.dates import parse_moment
from src.core.math.numerical_safeguards import coerce_amount, coerce_quantity

UNKNOWN_BUYER_KEY = "__unknown_buyer__"

_WIRE_CONFIG = {
    "frozen": True,  # Immutable
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# =============================================================================
# ENUMS
# =============================================================================


class OptionType(str, Enum):
    """Тип персонализации line item"""

    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    STRING = "string"
    SELECT = "select"
    MULTISELECT = "multiselect"


# =============================================================================
# BUYER IDENTITY
# =============================================================================


class BuyerIdentity(BaseModel):
    """
    Нормализованная идентичность покупателя.

    key — единственный ключ группировки во всех агрегатах. Для одного
    логического покупателя key одинаков независимо от того, пришёл ли заказ
    с user_id или только с email.
    """

    key: str = Field(..., min_length=1, description="Canonical ключ группировки")
    user_id: Optional[str] = Field(None, description="Идентификатор пользователя")
    email: Optional[str] = Field(None, description="Email (lowercase)")
    name: Optional[str] = Field(None, description="Отображаемое имя")

    model_config = {"frozen": True}

    @property
    def is_unknown(self) -> bool:
        """Заказ без user_id и без email."""
        return self.key == UNKNOWN_BUYER_KEY

    def display_name(self, unknown_label: str = "Unknown buyer") -> str:
        """Имя → email → id → подпись "unknown buyer"."""
        if self.name:
            return self.name
        if self.email:
            return self.email
        if self.user_id:
            return self.user_id
        return unknown_label

    def identifiers(self) -> tuple[str, ...]:
        """Все идентификаторы покупателя (для exact-match фильтра)."""
        return tuple(v for v in (self.key, self.user_id, self.email) if v)


# =============================================================================
# ARTICLE SNAPSHOT / OPTIONS
# =============================================================================


class ArticleSnapshot(BaseModel):
    """Встроенный снапшот артикула в line item."""

    id: Optional[str] = Field(None, description="Идентификатор артикула")
    category: Optional[str] = Field(None, description="Категория")
    product: Optional[str] = Field(None, description="Продукт")
    variety: Optional[str] = Field(None, description="Сорт / вариант")
    unit_measure: Optional[str] = Field(None, description="Единица измерения (kg, u, l)")

    model_config = _WIRE_CONFIG

    @field_validator("category", mode="before")
    @classmethod
    def flatten_category(cls, v: Any) -> Any:
        """Категория может прийти объектом {name: ...}."""
        if isinstance(v, dict):
            v = v.get("name")
        return _blank_to_none(v)

    @field_validator("id", "product", "variety", "unit_measure", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return _blank_to_none(v)

    def display_name(self, article_id: str) -> str:
        """
        "category - product - variety" из непустых частей.

        Returns:
            Имя артикула или "Article <id>", если частей нет
        """
        parts = [p for p in (self.category, self.product, self.variety) if p]
        if parts:
            return " - ".join(parts)
        return f"Article {article_id}"


class SelectedOption(BaseModel):
    """Выбранная персонализация line item (например, "Tall: a rodanxes")."""

    option_id: Optional[str] = Field(None, description="Идентификатор опции")
    title: Optional[str] = Field(None, description="Название опции")
    type: OptionType = Field(OptionType.STRING, description="Тип значения")
    value: Union[bool, float, str, list[str], None] = Field(None, description="Значение")
    price: Optional[float] = Field(None, description="Доплата за опцию")

    model_config = _WIRE_CONFIG

    @model_validator(mode="before")
    @classmethod
    def legacy_title(cls, data: Any) -> Any:
        """Legacy payloads используют optionTitle вместо title."""
        if isinstance(data, dict) and not data.get("title") and data.get("optionTitle"):
            data = {**data, "title": data["optionTitle"]}
        return data

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_as_string(cls, v: Any) -> Any:
        try:
            return OptionType(v)
        except ValueError:
            return OptionType.STRING


# =============================================================================
# ORDER ITEM
# =============================================================================


class OrderItem(BaseModel):
    """
    Line item заказа.

    quantity всегда float: числовые строки ("2.5") приводятся при парсинге,
    поэтому сумма количеств никогда не превращается в конкатенацию строк.
    """

    id: Optional[str] = Field(None, description="Идентификатор item (None для legacy записей)")
    article_id: str = Field(..., min_length=1, description="Идентификатор артикула")
    article: Optional[ArticleSnapshot] = Field(None, description="Снапшот артикула")
    quantity: float = Field(0.0, ge=0, description="Количество (coerced to float)")
    price_per_unit: float = Field(0.0, description="Цена за единицу")
    total_price: Optional[float] = Field(None, description="Итог строки (если передан store)")
    paid_amount: Optional[float] = Field(None, description="Оплачено по строке (item-level)")
    period_id: Optional[str] = Field(None, description="Период item (None для legacy)")
    is_prepared: bool = Field(False, description="Item собран в корзину")
    selected_options: tuple[SelectedOption, ...] = Field(
        default_factory=tuple, description="Персонализации"
    )

    model_config = _WIRE_CONFIG

    @model_validator(mode="before")
    @classmethod
    def embedded_period(cls, data: Any) -> Any:
        """periodId может отсутствовать, но прийти во встроенном объекте period."""
        if isinstance(data, dict) and not data.get("periodId") and not data.get("period_id"):
            period = data.get("period")
            if isinstance(period, dict) and period.get("id"):
                data = {**data, "periodId": period["id"]}
        return data

    @field_validator("id", "article_id", "period_id", mode="before")
    @classmethod
    def ids_as_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return _blank_to_none(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity_value(cls, v: Any) -> float:
        return coerce_quantity(v)

    @field_validator("price_per_unit", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> float:
        return coerce_amount(v)

    @field_validator("total_price", "paid_amount", mode="before")
    @classmethod
    def coerce_optional_amount(cls, v: Any) -> Optional[float]:
        if v is None or v == "":
            return None
        return coerce_amount(v)

    @field_validator("selected_options", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @property
    def line_total(self) -> float:
        """Итог строки: total_price store или quantity * price_per_unit."""
        if self.total_price is not None:
            return self.total_price
        return self.quantity * self.price_per_unit

    def article_name(self) -> str:
        """Отображаемое имя артикула ("Article <id>" без снапшота)."""
        if self.article is None:
            return f"Article {self.article_id}"
        return self.article.display_name(self.article_id)

    @property
    def unit_measure(self) -> Optional[str]:
        return self.article.unit_measure if self.article else None


# =============================================================================
# ORDER MODEL
# =============================================================================


class Order(BaseModel):
    """
    Модель заказа (sale).

    Immutable модель (frozen=True). Все изменения (prepared flag, удаление
    item, canonical buyer key) создают новый экземпляр через model_copy.
    """

    # Идентификация
    id: str = Field(..., min_length=1, description="Идентификатор заказа")
    user_id: Optional[str] = Field(None, description="Пользователь (orders API)")
    user_email: Optional[str] = Field(None, description="Email покупателя (sales API)")
    user_name: Optional[str] = Field(None, description="Имя покупателя")
    consumer_group_id: Optional[str] = Field(None, description="Группа потребителей")

    # Состав
    items: tuple[OrderItem, ...] = Field(default_factory=tuple, description="Line items")

    # Итоги (derived store-side, информационно)
    total_amount: float = Field(0.0, description="Итог заказа")
    paid_amount: float = Field(0.0, description="Оплачено по заказу (order-level)")
    transport_cost: float = Field(0.0, description="Стоимость транспорта заказа")
    payment_status: Optional[str] = Field(None, description="Статус оплаты store (wire)")
    is_delivered: bool = Field(False, description="Заказ выдан покупателю")

    # Время
    created_at: datetime = Field(..., description="Время создания (aware UTC)")

    # Canonical ключ покупателя (проставляется при ingestion)
    buyer_key: Optional[str] = Field(None, description="Canonical ключ покупателя")

    model_config = _WIRE_CONFIG

    @field_validator("id", "user_id", "consumer_group_id", mode="before")
    @classmethod
    def ids_as_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        return _blank_to_none(v)

    @field_validator("user_email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return v.lower() if isinstance(v, str) else v

    @field_validator("user_name", "payment_status", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("total_amount", "paid_amount", "transport_cost", mode="before")
    @classmethod
    def coerce_amounts(cls, v: Any) -> float:
        return coerce_amount(v)

    @field_validator("items", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> Any:
        return parse_moment(v)

    @property
    def buyer(self) -> BuyerIdentity:
        """
        Идентичность покупателя.

        key: buyer_key (canonical) → user_id → email → UNKNOWN_BUYER_KEY.
        """
        key = self.buyer_key or self.user_id or self.user_email or UNKNOWN_BUYER_KEY
        return BuyerIdentity(
            key=key,
            user_id=self.user_id,
            email=self.user_email,
            name=self.user_name,
        )

    @property
    def has_item_level_payments(self) -> bool:
        """True если хотя бы один item несёт собственный paid_amount."""
        return any(item.paid_amount is not None for item in self.items)

    def find_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def with_item_prepared(self, item_id: str, prepared: bool) -> "Order":
        """Новый экземпляр заказа с изменённым is_prepared у item."""
        items = tuple(
            item.model_copy(update={"is_prepared": prepared}) if item.id == item_id else item
            for item in self.items
        )
        return self.model_copy(update={"items": items})

    def without_item(self, item_id: str) -> "Order":
        """Новый экземпляр заказа без item (может остаться без items)."""
        items = tuple(item for item in self.items if item.id != item_id)
        return self.model_copy(update={"items": items})
