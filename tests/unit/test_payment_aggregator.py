"""
Тесты для PaymentAggregator

Проверяет:
1. Сводку периода: subtotal, транспорт по заказам, статус на покупателя
2. Сохранение сумм: итоги = Σ строк покупателей
3. Строку "unknown buyer" и объединение идентичности id/email
4. Rollup по поставщику с пересчётом статуса
5. Rollup по покупателю с drill-down по периодам
6. Payments-overview: отбор периодов по дате доставки
7. Сохранение сумм через периоды, поставщиков и покупателей
"""

from datetime import date

import pytest

from src.core.config import EngineConfig, LabelsConfig
from src.core.domain import NO_PERIOD_ID, PaymentStatus
from src.orders import OrderImporter
from src.payments import PaymentAggregator
from tests.factories import make_order, make_period, order_item, raw_order


def _scenario_a(paid_first=0.0, paid_second=0.0):
    """Два заказа u1 в p1: items 10 и 15, транспорт 2 каждый."""
    return [
        make_order(
            order_id="o1",
            user_id="u1",
            user_name="Anna",
            items=[order_item("i1", total_price=10.0)],
            transport_cost=2.0,
            paid_amount=paid_first,
        ),
        make_order(
            order_id="o2",
            user_id="u1",
            user_name="Anna",
            items=[order_item("i2", total_price=15.0)],
            transport_cost=2.0,
            paid_amount=paid_second,
        ),
    ]


@pytest.fixture
def aggregator():
    return PaymentAggregator([make_period(period_id="p1", name="Maig")])


# =============================================================================
# PER-PERIOD
# =============================================================================


class TestSummarizePeriod:
    """Тесты для summarize_period"""

    def test_two_orders_same_buyer(self, aggregator) -> None:
        summary = aggregator.summarize_period(_scenario_a(), "p1")

        assert summary.period_name == "Maig"
        assert len(summary.users) == 1
        user = summary.users[0]
        assert user.user_id == "u1"
        assert user.subtotal == 25.0
        assert user.transport_cost == 4.0
        assert user.total == 29.0
        assert user.orders_count == 2
        assert user.order_ids == ("o1", "o2")

    @pytest.mark.parametrize(
        "paid_first, paid_second, expected",
        [
            (14.0, 15.0, PaymentStatus.PAID),
            (10.0, 0.0, PaymentStatus.PARTIAL),
            (0.0, 0.0, PaymentStatus.UNPAID),
        ],
    )
    def test_buyer_status(self, aggregator, paid_first, paid_second, expected) -> None:
        summary = aggregator.summarize_period(_scenario_a(paid_first, paid_second), "p1")
        assert summary.users[0].payment_status == expected

    def test_item_level_payments_preferred(self, aggregator) -> None:
        order = make_order(
            items=[
                order_item("i1", total_price=10.0, paid_amount=10.0),
                order_item("i2", total_price=5.0),
            ],
            paid_amount=99.0,
        )
        user = aggregator.summarize_period([order], "p1").users[0]

        # Order-level paid_amount игнорируется, item без paid_amount вносит 0
        assert user.subtotal == 15.0
        assert user.paid_amount == 10.0
        assert user.payment_status == PaymentStatus.PARTIAL

    def test_only_items_of_period_counted(self) -> None:
        aggregator = PaymentAggregator(
            [
                make_period(period_id="p1"),
                make_period(period_id="p2", start="2024-06-01", end="2024-06-15"),
            ]
        )
        order = make_order(
            items=[
                order_item("i1", total_price=10.0, period_id="p1"),
                order_item("i2", total_price=7.0, period_id="p2"),
            ],
            transport_cost=3.0,
        )

        first = aggregator.summarize_period([order], "p1")
        second = aggregator.summarize_period([order], "p2")

        assert first.users[0].subtotal == 10.0
        assert second.users[0].subtotal == 7.0
        # Транспорт заказа учитывается целиком в каждом периоде заказа
        assert first.users[0].transport_cost == 3.0
        assert second.users[0].transport_cost == 3.0

    def test_order_level_paid_split_across_periods(self) -> None:
        aggregator = PaymentAggregator(
            [
                make_period(period_id="p1"),
                make_period(period_id="p2", start="2024-06-01", end="2024-06-15"),
            ]
        )
        order = make_order(
            items=[
                order_item("i1", total_price=10.0, period_id="p1"),
                order_item("i2", total_price=3.0, period_id="p2"),
            ],
            paid_amount=10.0,
        )

        first = aggregator.summarize_period([order], "p1")
        second = aggregator.summarize_period([order], "p2")

        # Оплата заказа делится пропорционально line totals периодов
        assert first.total_paid_amount == pytest.approx(10.0 * 10.0 / 13.0)
        assert second.total_paid_amount == pytest.approx(10.0 * 3.0 / 13.0)
        assert first.total_paid_amount + second.total_paid_amount == pytest.approx(10.0)
        assert first.users[0].payment_status == PaymentStatus.PARTIAL
        assert second.users[0].payment_status == PaymentStatus.PARTIAL

        buyer = aggregator.summarize_by_buyer([first, second])[0]
        assert buyer.total_amount == 13.0
        assert buyer.total_paid_amount == pytest.approx(10.0)
        assert buyer.overall_payment_status == PaymentStatus.PARTIAL

    def test_order_level_paid_with_zero_lines_goes_to_first_period(self) -> None:
        aggregator = PaymentAggregator(
            [
                make_period(period_id="p1"),
                make_period(period_id="p2", start="2024-06-01", end="2024-06-15"),
            ]
        )
        order = make_order(
            items=[
                order_item("i1", total_price=0.0, period_id="p2"),
                order_item("i2", total_price=0.0, period_id="p1"),
            ],
            paid_amount=5.0,
        )

        assert aggregator.summarize_period([order], "p2").total_paid_amount == 5.0
        assert aggregator.summarize_period([order], "p1").total_paid_amount == 0.0

    def test_totals_equal_sum_of_rows(self, aggregator) -> None:
        orders = _scenario_a(paid_first=5.0) + [
            make_order(
                order_id="o3",
                user_id="u2",
                items=[order_item("i3", total_price=0.1), order_item("i4", total_price=0.2)],
                transport_cost=1.5,
            )
        ]
        summary = aggregator.summarize_period(orders, "p1")

        assert summary.total_subtotal == pytest.approx(sum(u.subtotal for u in summary.users))
        assert summary.grand_total == pytest.approx(
            summary.total_subtotal + summary.total_transport_cost
        )
        assert summary.total_paid_amount == 5.0
        for user in summary.users:
            assert user.total == pytest.approx(user.subtotal + user.transport_cost)

    def test_unknown_buyer_row_kept_last(self, aggregator, caplog) -> None:
        orders = _scenario_a() + [
            make_order(order_id="o9", user_id=None, items=[order_item("i9", total_price=3.0)])
        ]
        with caplog.at_level("WARNING", logger="coop_engine"):
            summary = aggregator.summarize_period(orders, "p1")

        assert [u.user_name for u in summary.users] == ["Anna", "Unknown buyer"]
        assert summary.users[-1].is_unknown_buyer
        assert summary.total_subtotal == 28.0
        assert any(r.getMessage() == "payments.unknown_buyer" for r in caplog.records)

    def test_unknown_buyer_label_configurable(self) -> None:
        config = EngineConfig(labels=LabelsConfig(unknown_buyer="Sense comprador"))
        aggregator = PaymentAggregator([make_period(period_id="p1")], config)
        summary = aggregator.summarize_period([make_order(user_id=None)], "p1")
        assert summary.users[0].user_name == "Sense comprador"

    def test_email_and_id_orders_unified(self, aggregator) -> None:
        orders = OrderImporter(validate_contracts=False).parse_orders(
            [
                raw_order(order_id="o1", user_id="u1", user_email="anna@coop.cat"),
                raw_order(
                    order_id="o2",
                    user_id=None,
                    user_email="anna@coop.cat",
                    items=[order_item("i2")],
                ),
            ]
        )
        summary = aggregator.summarize_period(orders, "p1")

        assert len(summary.users) == 1
        assert summary.users[0].user_id == "u1"
        assert summary.users[0].orders_count == 2

    def test_no_period_bucket(self, aggregator) -> None:
        order = make_order(items=[order_item(period_id=None)], created_at="2023-01-01T00:00:00Z")
        summary = aggregator.summarize_period([order], NO_PERIOD_ID)

        assert summary.period_name == "No period"
        assert summary.users[0].subtotal == 10.0

    def test_empty_period(self, aggregator) -> None:
        summary = aggregator.summarize_period([], "p1")
        assert summary.is_empty
        assert summary.grand_total == 0.0

    def test_users_sorted_by_name(self, aggregator) -> None:
        orders = [
            make_order(order_id="o1", user_id="u1", user_name="Òscar", items=[order_item("i1")]),
            make_order(order_id="o2", user_id="u2", user_name="anna", items=[order_item("i2")]),
            make_order(order_id="o3", user_id="u3", user_name="Bernat", items=[order_item("i3")]),
        ]
        summary = aggregator.summarize_period(orders, "p1")
        assert [u.user_name for u in summary.users] == ["anna", "Bernat", "Òscar"]


# =============================================================================
# ROLLUPS
# =============================================================================


@pytest.fixture
def supplier_setup():
    periods = [
        make_period(period_id="p1", name="Horta maig", supplier_id="s1", supplier_name="Horta"),
        make_period(
            period_id="p2",
            name="Horta juny",
            start="2024-06-01",
            end="2024-06-15",
            supplier_id="s1",
            supplier_name="Horta",
        ),
        make_period(period_id="p3", name="Forn", supplier_id="s2", supplier_name="Forn"),
    ]
    orders = [
        make_order(
            order_id="o1",
            user_id="u1",
            user_name="Anna",
            items=[
                order_item("i1", total_price=10.0, period_id="p1", paid_amount=10.0),
                order_item("i2", total_price=20.0, period_id="p2", paid_amount=0.0),
                order_item("i3", total_price=4.0, period_id="p3", paid_amount=4.0),
            ],
        ),
        make_order(
            order_id="o2",
            user_id="u2",
            user_name="Bernat",
            items=[order_item("i4", total_price=6.0, period_id="p1", paid_amount=6.0)],
        ),
    ]
    aggregator = PaymentAggregator(periods)
    summaries = [aggregator.summarize_period(orders, p.id) for p in periods]
    return aggregator, summaries


class TestSummarizeBySupplier:
    """Тесты для summarize_by_supplier"""

    def test_grouped_and_sorted_by_supplier_name(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        suppliers = aggregator.summarize_by_supplier(summaries)

        assert [s.supplier_name for s in suppliers] == ["Forn", "Horta"]
        assert [pd.period.id for pd in suppliers[1].periods] == ["p1", "p2"]

    def test_status_recomputed_from_consolidated_amounts(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        horta = aggregator.summarize_by_supplier(summaries)[1]
        anna = horta.users[0]

        assert summaries[0].find_user("u1").payment_status == PaymentStatus.PAID
        assert summaries[1].find_user("u1").payment_status == PaymentStatus.UNPAID
        assert anna.total == 30.0
        assert anna.paid_amount == 10.0
        assert anna.payment_status == PaymentStatus.PARTIAL

    def test_orders_counted_once_across_periods(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        horta = aggregator.summarize_by_supplier(summaries)[1]
        assert horta.users[0].orders_count == 1

    def test_supplier_totals(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        horta = aggregator.summarize_by_supplier(summaries)[1]

        assert horta.total_subtotal == 36.0
        assert horta.total_amount == 36.0
        assert horta.total_paid_amount == 16.0
        assert [u.user_name for u in horta.users] == ["Anna", "Bernat"]

    def test_unknown_supplier_group(self) -> None:
        period = make_period(period_id="p1", supplier_id=None, supplier_name=None)
        aggregator = PaymentAggregator([period])
        summary = aggregator.summarize_period([make_order()], "p1")

        suppliers = aggregator.summarize_by_supplier([summary])
        assert suppliers[0].supplier_id is None
        assert suppliers[0].supplier_name == "Unknown supplier"

    def test_no_period_summary_in_unknown_supplier_group(self, supplier_setup, caplog) -> None:
        aggregator, summaries = supplier_setup
        order = make_order(
            order_id="o9",
            user_id="u3",
            user_name="Carla",
            items=[order_item("i9", total_price=7.0, period_id=None)],
            created_at="2023-01-01T00:00:00Z",
        )
        orphan = aggregator.summarize_period([order], NO_PERIOD_ID)

        with caplog.at_level("WARNING", logger="coop_engine"):
            suppliers = aggregator.summarize_by_supplier([*summaries, orphan])

        assert [s.supplier_name for s in suppliers] == ["Forn", "Horta", "Unknown supplier"]
        unknown = suppliers[-1]
        assert unknown.supplier_id is None
        assert unknown.periods[0].period is None
        assert unknown.total_amount == 7.0
        assert [u.user_name for u in unknown.users] == ["Carla"]
        assert not any(r.getMessage() == "payments.unknown_period" for r in caplog.records)

        buyers = aggregator.summarize_by_buyer([*summaries, orphan])
        assert sum(s.total_amount for s in suppliers) == pytest.approx(
            sum(b.total_amount for b in buyers)
        )

    def test_summary_of_unlisted_period_kept(self, supplier_setup, caplog) -> None:
        aggregator, summaries = supplier_setup
        other = PaymentAggregator([make_period(period_id="p9", name="Altre")])
        stray = other.summarize_period([make_order(items=[order_item(period_id="p9")])], "p9")

        with caplog.at_level("WARNING", logger="coop_engine"):
            suppliers = aggregator.summarize_by_supplier([*summaries, stray])

        assert suppliers[-1].supplier_name == "Unknown supplier"
        assert suppliers[-1].total_amount == 10.0
        assert any(r.getMessage() == "payments.unknown_period" for r in caplog.records)


class TestSummarizeByBuyer:
    """Тесты для summarize_by_buyer"""

    def test_buyer_spans_suppliers(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        buyers = aggregator.summarize_by_buyer(summaries)

        assert [b.user_name for b in buyers] == ["Anna", "Bernat"]
        anna = buyers[0]
        assert [c.period_id for c in anna.periods] == ["p1", "p2", "p3"]
        assert anna.total_amount == 34.0
        assert anna.total_paid_amount == 14.0
        assert anna.pending_amount == 20.0
        assert anna.overall_payment_status == PaymentStatus.PARTIAL

    def test_contribution_keeps_period_status(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        anna = aggregator.summarize_by_buyer(summaries)[0]
        assert [c.payment_status for c in anna.periods] == [
            PaymentStatus.PAID,
            PaymentStatus.UNPAID,
            PaymentStatus.PAID,
        ]

    def test_overview_totals(self, supplier_setup) -> None:
        aggregator, summaries = supplier_setup
        totals = aggregator.overview_totals(aggregator.summarize_by_buyer(summaries))

        assert totals.buyers_count == 2
        assert totals.paid_buyers_count == 1
        assert totals.partial_buyers_count == 1
        assert totals.unpaid_buyers_count == 0
        assert totals.total_amount == 40.0
        assert totals.total_paid == 20.0
        assert totals.total_pending == 20.0


class TestMoneyConservation:
    """Сохранение сумм через периоды, поставщиков и покупателей"""

    @pytest.fixture
    def conservation_setup(self):
        periods = [
            make_period(period_id="p1", supplier_id="s1", supplier_name="Horta"),
            make_period(
                period_id="p2",
                start="2024-06-01",
                end="2024-06-15",
                supplier_id="s2",
                supplier_name="Forn",
            ),
        ]
        orders = [
            # Заказ на два периода с order-level оплатой
            make_order(
                order_id="o1",
                user_id="u1",
                items=[
                    order_item("i1", total_price=10.0, period_id="p1"),
                    order_item("i2", total_price=3.0, period_id="p2"),
                ],
                transport_cost=2.0,
                paid_amount=10.0,
            ),
            make_order(
                order_id="o2",
                user_id="u2",
                items=[order_item("i3", total_price=6.0, period_id="p2", paid_amount=6.0)],
                transport_cost=1.5,
            ),
            make_order(
                order_id="o3",
                user_id="u1",
                items=[order_item("i4", total_price=4.0, period_id=None)],
                paid_amount=4.0,
                created_at="2023-01-01T00:00:00Z",
            ),
            make_order(
                order_id="o4",
                user_id=None,
                items=[order_item("i5", total_price=5.0, period_id="p1")],
            ),
        ]
        aggregator = PaymentAggregator(periods)
        summaries = [aggregator.summarize_period(orders, pid) for pid in ("p1", "p2", NO_PERIOD_ID)]
        return aggregator, summaries

    # Σ line totals = 28; транспорт o1 дважды (два периода) + o2 один раз = 5.5
    EXPECTED_TOTAL = 33.5
    EXPECTED_PAID = 20.0

    def test_period_summaries_conserve_money(self, conservation_setup) -> None:
        _, summaries = conservation_setup

        assert sum(s.grand_total for s in summaries) == pytest.approx(self.EXPECTED_TOTAL)
        assert sum(s.total_paid_amount for s in summaries) == pytest.approx(self.EXPECTED_PAID)

    def test_supplier_rollup_conserves_money(self, conservation_setup) -> None:
        aggregator, summaries = conservation_setup
        suppliers = aggregator.summarize_by_supplier(summaries)

        assert sum(s.total_amount for s in suppliers) == pytest.approx(self.EXPECTED_TOTAL)
        assert sum(s.total_paid_amount for s in suppliers) == pytest.approx(self.EXPECTED_PAID)

    def test_buyer_rollup_conserves_money(self, conservation_setup) -> None:
        aggregator, summaries = conservation_setup
        totals = aggregator.overview_totals(aggregator.summarize_by_buyer(summaries))

        assert totals.total_amount == pytest.approx(self.EXPECTED_TOTAL)
        assert totals.total_paid == pytest.approx(self.EXPECTED_PAID)
        assert totals.buyers_count == 3


# =============================================================================
# OVERVIEW
# =============================================================================


class TestBuildOverview:
    """Тесты для build_overview / build_overview_for_delivery_date"""

    @pytest.fixture
    def overview_setup(self):
        periods = [
            make_period(period_id="past", name="Past", delivery="2024-05-19"),
            make_period(period_id="future", name="Future", delivery="2024-05-21"),
            make_period(period_id="idle", name="Idle", delivery="2024-05-18"),
        ]
        orders = [
            make_order(order_id="o1", user_id="u1", items=[order_item("i1", period_id="past")]),
            make_order(order_id="o2", user_id="u2", items=[order_item("i2", period_id="future")]),
        ]
        return PaymentAggregator(periods), orders

    def test_future_delivery_excluded(self, overview_setup) -> None:
        aggregator, orders = overview_setup
        overview = aggregator.build_overview(orders, date(2024, 5, 20))

        assert [pd.period.id for pd in overview.periods] == ["past"]
        assert [b.user_id for b in overview.buyers] == ["u1"]
        assert overview.totals.buyers_count == 1

    def test_periods_without_buyers_omitted(self, overview_setup) -> None:
        aggregator, orders = overview_setup
        overview = aggregator.build_overview(orders, date(2024, 5, 30))
        assert [pd.period.id for pd in overview.periods] == ["past", "future"]

    def test_single_delivery_day(self, overview_setup) -> None:
        aggregator, orders = overview_setup
        overview = aggregator.build_overview_for_delivery_date(orders, date(2024, 5, 21))

        assert [pd.period.id for pd in overview.periods] == ["future"]
        assert [s.supplier_name for s in overview.suppliers] == ["Supplier 1"]

    def test_empty_overview(self, overview_setup) -> None:
        aggregator, _ = overview_setup
        overview = aggregator.build_overview([], date(2024, 5, 20))
        assert overview.periods == ()
        assert overview.totals.buyers_count == 0
