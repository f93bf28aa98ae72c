"""Ingestion — raw payloads store → frozen модели.

Порядок:
1. Валидация формы по JSON Schema контракту (jsonschema)
2. Парсинг в pydantic модели (Order / Period)
3. Один проход нормализации идентичности покупателей

После ingestion у каждого заказа с известным покупателем проставлен
canonical buyer_key: заказы legacy-пути (только email) и заказы с user_id
одного человека группируются под одним ключом во всех агрегатах.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from src.core.contracts import OrderValidator, PeriodValidator
from src.core.domain.order import Order
from src.core.domain.period import Period
from src.core.log import get_logger
from src.core.ports import CooperativeStore

logger = get_logger("orders.importer")


@dataclass(frozen=True)
class Snapshot:
    """Свежий снапшот store: заказы и периоды одной загрузки."""

    orders: tuple[Order, ...]
    periods: tuple[Period, ...]


def unify_buyer_identities(orders: Iterable[Order]) -> list[Order]:
    """
    Проставляет canonical buyer_key каждому заказу.

    Правила:
    - заказ с user_id → key = user_id
    - заказ только с email → key = user_id, если этот email встречался
      в заказе с user_id; иначе key = email
    - заказ без user_id и email → unknown buyer (логируется)

    Если один email связан с несколькими user_id, побеждает первая связь
    (в порядке заказов), конфликт логируется.

    Returns:
        Новые экземпляры заказов (исходные не изменяются)
    """
    orders = list(orders)
    email_to_user: dict[str, str] = {}

    for order in orders:
        if not (order.user_id and order.user_email):
            continue
        linked = email_to_user.setdefault(order.user_email, order.user_id)
        if linked != order.user_id:
            logger.warning(
                "orders.identity_conflict",
                extra={
                    "email": order.user_email,
                    "kept_user_id": linked,
                    "ignored_user_id": order.user_id,
                    "order_id": order.id,
                },
            )

    unified: list[Order] = []
    for order in orders:
        if order.user_id:
            key: Optional[str] = order.user_id
        elif order.user_email:
            key = email_to_user.get(order.user_email, order.user_email)
        else:
            key = None
            logger.warning("orders.unknown_buyer", extra={"order_id": order.id})
        unified.append(order if order.buyer_key == key else order.model_copy(update={"buyer_key": key}))

    return unified


class OrderImporter:
    """Парсинг raw order/period payloads с валидацией контрактов."""

    def __init__(self, validate_contracts: bool = True):
        """
        Args:
            validate_contracts: проверять JSON Schema до pydantic (default True)
        """
        self.validate_contracts = validate_contracts
        self._order_validator = OrderValidator() if validate_contracts else None
        self._period_validator = PeriodValidator() if validate_contracts else None

    def parse_orders(self, payloads: Sequence[Mapping[str, Any]]) -> list[Order]:
        """
        Raises:
            jsonschema.ValidationError: payload не соответствует order.json
            pydantic.ValidationError: payload не проходит валидацию модели
        """
        orders = []
        for payload in payloads:
            if self._order_validator is not None:
                self._order_validator.validate(dict(payload))
            orders.append(Order.model_validate(payload))
        return unify_buyer_identities(orders)

    def parse_periods(self, payloads: Sequence[Mapping[str, Any]]) -> list[Period]:
        """
        Raises:
            jsonschema.ValidationError: payload не соответствует period.json
            pydantic.ValidationError: payload не проходит валидацию модели
        """
        periods = []
        for payload in payloads:
            if self._period_validator is not None:
                self._period_validator.validate(dict(payload))
            periods.append(Period.model_validate(payload))
        return periods

    async def load(self, store: CooperativeStore) -> Snapshot:
        """Загрузка и парсинг свежего снапшота store."""
        raw_orders = await store.fetch_orders()
        raw_periods = await store.fetch_periods()
        snapshot = Snapshot(
            orders=tuple(self.parse_orders(raw_orders)),
            periods=tuple(self.parse_periods(raw_periods)),
        )
        logger.debug(
            "orders.snapshot_loaded",
            extra={"orders": len(snapshot.orders), "periods": len(snapshot.periods)},
        )
        return snapshot
