"""
Тесты для PaymentCommandService

Проверяет:
1. mark_as_paid / mark_as_unpaid: команда store → перезагрузка → пересчёт
2. Ошибки store пробрасываются как RemoteCommandError
3. mark_all_buyer_periods: последовательная bulk-команда с точными счётчиками
4. Представления поверх снапшота с фильтром
"""

from datetime import date

import pytest

from src.core.domain import PaymentStatus
from src.core.errors import RemoteCommandError
from src.filters import FilterCriteria
from src.payments import PaymentCommandService
from tests.factories import FakeStore, order_item, raw_order, raw_period


def _store(failing=()):
    return FakeStore(
        orders=[
            raw_order(
                order_id="o1",
                user_id="u1",
                user_name="Anna",
                items=[
                    order_item("i1", total_price=10.0, paid_amount=0.0),
                    order_item("i2", total_price=6.0, period_id="p2", paid_amount=0.0),
                ],
            ),
            raw_order(
                order_id="o2",
                user_id="u2",
                user_name="Bernat",
                items=[order_item("i3", total_price=15.0, paid_amount=15.0)],
            ),
        ],
        periods=[
            raw_period(period_id="p1", name="Maig", delivery="2024-05-19"),
            raw_period(
                period_id="p2",
                name="Juny",
                start="2024-06-01",
                end="2024-06-15",
                delivery="2024-06-20",
            ),
        ],
        failing=failing,
    )


async def _service(store):
    service = PaymentCommandService(store)
    await service.load()
    return service


class TestMarkAsPaid:
    """Тесты для mark_as_paid / mark_as_unpaid"""

    @pytest.mark.asyncio
    async def test_mark_as_paid_reloads(self) -> None:
        store = _store()
        service = await _service(store)
        assert service.summarize_period("p1").find_user("u1").payment_status == PaymentStatus.UNPAID

        summary = await service.mark_as_paid("p1", "u1")

        assert store.calls == [("mark_as_paid", "p1", "u1")]
        assert summary.find_user("u1").payment_status == PaymentStatus.PAID
        assert summary.find_user("u1").paid_amount == 10.0
        # Другой период покупателя не затронут
        assert service.summarize_period("p2").find_user("u1").payment_status == PaymentStatus.UNPAID

    @pytest.mark.asyncio
    async def test_mark_as_unpaid(self) -> None:
        service = await _service(_store())

        summary = await service.mark_as_unpaid("p1", "u2")

        assert summary.find_user("u2").payment_status == PaymentStatus.UNPAID
        assert summary.total_paid_amount == 0.0

    @pytest.mark.asyncio
    async def test_failure_raises_remote_error(self) -> None:
        service = await _service(_store(failing={"u1"}))

        with pytest.raises(RemoteCommandError) as exc_info:
            await service.mark_as_paid("p1", "u1")

        assert exc_info.value.command == "mark_as_paid"
        assert exc_info.value.target == "p1/u1"
        assert service.summarize_period("p1").find_user("u1").payment_status == PaymentStatus.UNPAID


class TestMarkAllBuyerPeriods:
    """Тесты для mark_all_buyer_periods"""

    @pytest.mark.asyncio
    async def test_all_periods_marked(self) -> None:
        store = _store()
        service = await _service(store)

        result = await service.mark_all_buyer_periods("u1", ["p1", "p2"])

        assert (result.succeeded, result.failed) == (2, 0)
        assert [c[1] for c in store.calls] == ["p1", "p2"]
        for period_id in ("p1", "p2"):
            user = service.summarize_period(period_id).find_user("u1")
            assert user.payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_partial_failure(self, caplog) -> None:
        service = await _service(_store(failing={"p2"}))

        with caplog.at_level("WARNING", logger="coop_engine"):
            result = await service.mark_all_buyer_periods("u1", ["p1", "p2"])

        assert (result.succeeded, result.failed) == (1, 1)
        assert result.failures[0].target == "p2"
        assert service.summarize_period("p1").find_user("u1").payment_status == PaymentStatus.PAID
        assert service.summarize_period("p2").find_user("u1").payment_status == PaymentStatus.UNPAID
        assert any(r.getMessage() == "payments.bulk_partial_failure" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unmark_all(self) -> None:
        service = await _service(_store())

        await service.mark_all_buyer_periods("u1", ["p1", "p2"])
        result = await service.mark_all_buyer_periods("u1", ["p1", "p2"], paid=False)

        assert result.all_succeeded
        assert service.summarize_period("p1").find_user("u1").paid_amount == 0.0

    @pytest.mark.asyncio
    async def test_no_periods(self) -> None:
        store = _store()
        service = await _service(store)

        result = await service.mark_all_buyer_periods("u1", [])

        assert result.total == 0
        assert store.calls == []


class TestViews:
    """Тесты для представлений сервиса"""

    @pytest.mark.asyncio
    async def test_overview_excludes_future_delivery(self) -> None:
        service = await _service(_store())

        overview = service.overview(date(2024, 5, 20))

        assert [pd.period.id for pd in overview.periods] == ["p1"]
        assert overview.totals.buyers_count == 2

    @pytest.mark.asyncio
    async def test_overview_for_delivery_date(self) -> None:
        service = await _service(_store())

        overview = service.overview_for_delivery_date(date(2024, 6, 20))

        assert [pd.period.id for pd in overview.periods] == ["p2"]
        assert [b.user_id for b in overview.buyers] == ["u1"]

    @pytest.mark.asyncio
    async def test_filtered_summary(self) -> None:
        service = await _service(_store())

        summary = service.summarize_period("p1", FilterCriteria(buyer_text="bernat"))

        assert [u.user_id for u in summary.users] == ["u2"]
