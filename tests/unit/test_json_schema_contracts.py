"""
Tests for JSON Schema Contract Validators and ingestion

Проверяет:
- Валидность самих схем
- Валидация правильных payloads
- Детекция нарушений required полей и типов
- Ingestion: контракт → pydantic → нормализация идентичности покупателей
"""

from pathlib import Path

import pytest
from jsonschema import ValidationError

from src.core import contracts
from src.core.contracts import (
    OrderValidator,
    PeriodValidator,
    SchemaLoader,
    validate_order,
    validate_period,
)
from src.orders import OrderImporter, unify_buyer_identities
from tests.factories import FakeStore, make_order, order_item, raw_order, raw_period


# =============================================================================
# SCHEMAS
# =============================================================================


class TestSchemaLoader:
    """Тесты для SchemaLoader"""

    @pytest.mark.parametrize("schema_name", ["order", "period"])
    def test_schemas_load_and_are_valid(self, schema_name) -> None:
        schema = SchemaLoader().load_schema(schema_name)
        assert schema["$schema"].endswith("2020-12/schema")

    def test_schema_cached(self) -> None:
        loader = SchemaLoader()
        assert loader.load_schema("order") is loader.load_schema("order")

    def test_missing_schema(self) -> None:
        with pytest.raises(FileNotFoundError):
            SchemaLoader().load_schema("invoice")

    def test_schemas_shipped_inside_package(self) -> None:
        """Схемы лежат внутри пакета src.core.contracts (package data)"""
        package_dir = Path(contracts.__file__).parent
        loader = SchemaLoader()

        assert loader.schema_dir == package_dir / "schema"
        assert sorted(p.name for p in loader.schema_dir.glob("*.json")) == [
            "order.json",
            "period.json",
        ]

    def test_package_data_declared(self) -> None:
        pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
        assert '"src.core.contracts" = ["schema/*.json"]' in pyproject.read_text(encoding="utf-8")


class TestOrderContract:
    """Тесты для order контракта"""

    def test_valid_order(self) -> None:
        validate_order(raw_order())

    def test_numeric_string_quantity_accepted(self) -> None:
        validate_order(raw_order(items=[order_item(quantity="2.5")]))

    def test_missing_required_field(self) -> None:
        payload = raw_order()
        del payload["createdAt"]
        with pytest.raises(ValidationError):
            validate_order(payload)

    def test_item_without_article_id(self) -> None:
        item = order_item()
        del item["articleId"]
        with pytest.raises(ValidationError):
            validate_order(raw_order(items=[item]))

    def test_non_numeric_quantity_string(self) -> None:
        assert not OrderValidator().is_valid(raw_order(items=[order_item(quantity="two")]))

    def test_items_must_be_array(self) -> None:
        payload = raw_order()
        payload["items"] = {"i1": {}}
        errors = list(OrderValidator().iter_errors(payload))
        assert errors


class TestPeriodContract:
    """Тесты для period контракта"""

    def test_valid_period(self) -> None:
        validate_period(raw_period(recurrence="weekly", transportCost=12.0))

    def test_unknown_recurrence(self) -> None:
        assert not PeriodValidator().is_valid(raw_period(recurrence="fortnightly"))

    def test_missing_dates(self) -> None:
        payload = raw_period()
        del payload["endDate"]
        with pytest.raises(ValidationError):
            validate_period(payload)


# =============================================================================
# INGESTION
# =============================================================================


class TestUnifyBuyerIdentities:
    """Тесты для unify_buyer_identities"""

    def test_email_only_order_joins_id_buyer(self) -> None:
        orders = [
            make_order(order_id="o1", user_id="u1", user_email="ana@coop.cat"),
            make_order(order_id="o2", user_id=None, user_email="ANA@coop.cat"),
        ]
        unified = unify_buyer_identities(orders)
        assert [o.buyer.key for o in unified] == ["u1", "u1"]

    def test_unlinked_email_keeps_email_key(self) -> None:
        unified = unify_buyer_identities([make_order(user_id=None, user_email="pere@coop.cat")])
        assert unified[0].buyer.key == "pere@coop.cat"

    def test_unknown_buyer_logged(self, caplog) -> None:
        with caplog.at_level("WARNING", logger="coop_engine"):
            unified = unify_buyer_identities([make_order(order_id="o9", user_id=None)])
        assert unified[0].buyer.is_unknown
        assert any(r.getMessage() == "orders.unknown_buyer" for r in caplog.records)

    def test_conflicting_link_keeps_first(self) -> None:
        orders = [
            make_order(order_id="o1", user_id="u1", user_email="x@coop.cat"),
            make_order(order_id="o2", user_id="u2", user_email="x@coop.cat"),
            make_order(order_id="o3", user_id=None, user_email="x@coop.cat"),
        ]
        assert [o.buyer.key for o in unify_buyer_identities(orders)] == ["u1", "u2", "u1"]

    def test_input_not_mutated(self) -> None:
        original = make_order(user_id=None, user_email="pere@coop.cat")
        unify_buyer_identities([original])
        assert original.buyer_key is None


class TestOrderImporter:
    """Тесты для OrderImporter"""

    def test_parse_orders_validates_contract(self) -> None:
        payload = raw_order()
        del payload["items"]
        with pytest.raises(ValidationError):
            OrderImporter().parse_orders([payload])

    def test_parse_without_contract_validation(self) -> None:
        payload = raw_order(items=[order_item(quantity="two")])
        orders = OrderImporter(validate_contracts=False).parse_orders([payload])
        assert orders[0].items[0].quantity == 0.0

    @pytest.mark.asyncio
    async def test_load_snapshot(self) -> None:
        store = FakeStore(
            orders=[raw_order(order_id="o1"), raw_order(order_id="o2", user_id=None, user_email="a@b.c")],
            periods=[raw_period()],
        )
        snapshot = await OrderImporter().load(store)

        assert [o.id for o in snapshot.orders] == ["o1", "o2"]
        assert [p.id for p in snapshot.periods] == ["p1"]
        assert snapshot.orders[1].buyer.key == "a@b.c"
