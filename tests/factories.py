"""
Фабрики тестовых данных: заказы, периоды, fake store.

Фабрики принимают snake_case поля и строят frozen модели напрямую,
без валидации контрактов (контракты проверяются в test_json_schema_contracts).
"""

import asyncio

from src.core.domain import Order, Period


def order_item(
    item_id="i1",
    article_id="a1",
    quantity=1.0,
    total_price=10.0,
    period_id="p1",
    is_prepared=False,
    paid_amount=None,
    article=None,
    **extra,
) -> dict:
    """Raw line item (wire-формат, camelCase)."""
    payload = {
        "id": item_id,
        "articleId": article_id,
        "quantity": quantity,
        "pricePerUnit": extra.pop("price_per_unit", total_price),
        "totalPrice": total_price,
        "periodId": period_id,
        "isPrepared": is_prepared,
    }
    if paid_amount is not None:
        payload["paidAmount"] = paid_amount
    if article is not None:
        payload["article"] = article
    payload.update(extra)
    return payload


def raw_order(
    order_id="o1",
    user_id="u1",
    items=None,
    transport_cost=0.0,
    paid_amount=0.0,
    created_at="2024-05-10T10:00:00Z",
    user_email=None,
    user_name=None,
    is_delivered=False,
) -> dict:
    """Raw order payload (wire-формат store)."""
    return {
        "id": order_id,
        "userId": user_id,
        "userEmail": user_email,
        "userName": user_name,
        "items": items if items is not None else [order_item()],
        "transportCost": transport_cost,
        "paidAmount": paid_amount,
        "createdAt": created_at,
        "isDelivered": is_delivered,
    }


def make_order(**kwargs) -> Order:
    return Order.model_validate(raw_order(**kwargs))


def raw_period(
    period_id="p1",
    name="Period 1",
    start="2024-05-01",
    end="2024-05-15",
    delivery="2024-05-20",
    supplier_id="s1",
    supplier_name="Supplier 1",
    **extra,
) -> dict:
    """Raw period payload (wire-формат store)."""
    payload = {
        "id": period_id,
        "name": name,
        "supplierId": supplier_id,
        "supplier": {"id": supplier_id, "name": supplier_name} if supplier_name else None,
        "startDate": start,
        "endDate": end,
        "deliveryDate": delivery,
    }
    payload.update(extra)
    return payload


def make_period(**kwargs) -> Period:
    return Period.model_validate(raw_period(**kwargs))


class FakeStore:
    """In-memory store: raw payloads + журнал вызовов команд."""

    def __init__(self, orders=None, periods=None, failing=()):
        self.orders = list(orders or [])
        self.periods = list(periods or [])
        self.failing = set(failing)
        self.calls = []

    async def fetch_orders(self):
        await asyncio.sleep(0)
        return list(self.orders)

    async def fetch_periods(self):
        await asyncio.sleep(0)
        return list(self.periods)

    async def mark_as_paid(self, period_id, buyer_id):
        await self._command("mark_as_paid", period_id, buyer_id)
        self._set_paid(period_id, buyer_id, paid=True)

    async def mark_as_unpaid(self, period_id, buyer_id):
        await self._command("mark_as_unpaid", period_id, buyer_id)
        self._set_paid(period_id, buyer_id, paid=False)

    async def set_item_prepared(self, order_id, item_id, prepared):
        await self._command("set_item_prepared", order_id, item_id, prepared)
        for order in self.orders:
            if order["id"] == order_id:
                for item in order["items"]:
                    if item.get("id") == item_id:
                        item["isPrepared"] = prepared

    async def delete_item(self, order_id, item_id):
        await self._command("delete_item", order_id, item_id)
        for order in self.orders:
            if order["id"] == order_id:
                order["items"] = [i for i in order["items"] if i.get("id") != item_id]
        self.orders = [o for o in self.orders if o["items"]]

    async def _command(self, name, *args):
        await asyncio.sleep(0)
        self.calls.append((name, *args))
        if args[0] in self.failing or (len(args) > 1 and args[1] in self.failing):
            raise ConnectionError(f"{name} rejected for {args}")

    def _set_paid(self, period_id, buyer_id, paid):
        for order in self.orders:
            if order.get("userId") != buyer_id:
                continue
            for item in order["items"]:
                if item.get("periodId") == period_id:
                    item["paidAmount"] = item["totalPrice"] if paid else 0.0
