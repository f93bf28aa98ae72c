"""Интерфейсы внешнего store (заказы, периоды, команды).

Движок ничего не загружает сам: store отдаёт снапшоты raw payloads уже
отфильтрованные по активной группе потребителей, и выполняет команды.
Любая ошибка команды пробрасывается вызывающему (retry — забота UI).
"""

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable


@runtime_checkable
class OrderStore(Protocol):
    """Store заказов и команд над ними."""

    async def fetch_orders(self) -> Sequence[Mapping[str, Any]]:
        ...

    async def mark_as_paid(self, period_id: str, buyer_id: str) -> None:
        ...

    async def mark_as_unpaid(self, period_id: str, buyer_id: str) -> None:
        ...

    async def set_item_prepared(self, order_id: str, item_id: str, prepared: bool) -> None:
        ...

    async def delete_item(self, order_id: str, item_id: str) -> None:
        ...


@runtime_checkable
class PeriodStore(Protocol):
    """Store периодов поставки."""

    async def fetch_periods(self) -> Sequence[Mapping[str, Any]]:
        ...


@runtime_checkable
class CooperativeStore(OrderStore, PeriodStore, Protocol):
    """Store заказов и периодов одной группы потребителей."""
