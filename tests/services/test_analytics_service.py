"""
Integration tests for StockAnalyticsService over the SQL ledger.

Ledger used throughout (clock "now" is 2024-03-15 12:00 UTC):

    WIDGET  ACME  min 5     +10 @ 2.00 (01-01)  -4 (01-02)  +5 @ 3.00 (01-03)
    GADGET  ACME  min -     -3 (01-02)                       -> inconsistent
    BOLT    ZED   min 20    +15 @ 1.00 (02-10)  -3 (03-01)
    SPARE   ZED   min 3     no events
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from inventory_engines.replay import IntegrityIssue
from inventory_kernel.exceptions import (
    InvalidFilterError,
    InvalidRangeError,
    ItemNotFoundError,
    MissingParameterError,
)
from inventory_kernel.models.inventory_item import InventoryItemModel
from inventory_kernel.selectors.stock_event_selector import StockEventSelector, StockUpdateFilter
from inventory_kernel.domain.stock_event import StockChangeReason
from inventory_services.analytics_service import StockAnalyticsService


def _utc(month, day, hour=9):
    return datetime(2024, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def stocked(ledger):
    ledger.register_item("WIDGET", "Blue widget", supplier_id="ACME", minimum_quantity=5)
    ledger.register_item("GADGET", "Gadget", supplier_id="ACME")
    ledger.register_item("BOLT", "Hex bolt", supplier_id="ZED", minimum_quantity=20)
    ledger.register_item("SPARE", "Spare part", supplier_id="ZED", minimum_quantity=3)

    ledger.record(
        "WIDGET", 10, StockChangeReason.INITIAL_STOCK,
        price_at_change="2.00", occurred_at=_utc(1, 1), created_by="alice",
    )
    ledger.record("WIDGET", -4, "SOLD", occurred_at=_utc(1, 2), created_by="bob")
    ledger.record("WIDGET", 5, "PURCHASE", price_at_change="3.00", occurred_at=_utc(1, 3))
    ledger.record("GADGET", -3, "SOLD", occurred_at=_utc(1, 2))
    ledger.record("BOLT", 15, "PURCHASE", price_at_change="1.00", occurred_at=_utc(2, 10))
    ledger.record("BOLT", -3, "SOLD", occurred_at=_utc(3, 1), created_by="bob")
    return ledger


class CountingStore:
    """EventStore wrapper that counts fetches."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def fetch_events(self, as_of, inclusive=True, supplier_id=None, item_id=None):
        self.calls += 1
        return self.inner.fetch_events(
            as_of, inclusive=inclusive, supplier_id=supplier_id, item_id=item_id
        )


class TestComputeValuation:

    def test_current_valuation_excludes_inconsistent(self, analytics, stocked):
        report = analytics.compute_valuation()

        assert [s.item_id for s in report.snapshots] == ["BOLT", "WIDGET"]
        assert report.total_quantity == 23
        assert report.total_value == Decimal("38.9995")
        assert len(report.warnings) == 1
        warning = report.warnings[0]
        assert warning.item_id == "GADGET"
        assert warning.issue is IntegrityIssue.OUTBOUND_BEFORE_INBOUND
        assert warning.quantity_on_hand == -3

    def test_as_of_inclusive(self, analytics, stocked):
        report = analytics.compute_valuation(as_of=_utc(1, 2))

        widget = report.snapshots[0]
        assert widget.item_id == "WIDGET"
        assert widget.quantity_on_hand == 6
        assert widget.weighted_average_cost == Decimal("2.0000")

    def test_before_any_event(self, analytics, stocked):
        report = analytics.compute_valuation(as_of=_utc(1, 1, 0))

        assert report.snapshots == ()
        assert report.total_value == Decimal("0")

    def test_supplier_scope(self, analytics, stocked):
        report = analytics.compute_valuation(supplier_id="ZED")

        assert [s.item_id for s in report.snapshots] == ["BOLT"]
        assert report.total_value == Decimal("12.0000")
        assert report.warnings == ()

    def test_single_item(self, analytics, stocked):
        report = analytics.compute_valuation(item_id="WIDGET")

        assert report.item_count == 1
        assert report.snapshots[0].weighted_average_cost == Decimal("2.4545")

    def test_blank_item_means_all(self, analytics, stocked):
        assert analytics.compute_valuation(item_id="   ").item_count == 2

    def test_catalog_item_without_events(self, analytics, stocked):
        assert analytics.compute_valuation(item_id="SPARE").snapshots == ()

    def test_unknown_item(self, analytics, stocked):
        with pytest.raises(ItemNotFoundError) as exc_info:
            analytics.compute_valuation(item_id="NOPE")

        assert exc_info.value.item_id == "NOPE"

    def test_single_fetch(self, session, clock, config, stocked):
        store = CountingStore(StockEventSelector(session))
        service = StockAnalyticsService(session, clock=clock, config=config, store=store)

        service.compute_valuation()

        assert store.calls == 1

    def test_repeatable(self, analytics, stocked):
        as_of = _utc(3, 15)

        assert analytics.compute_valuation(as_of) == analytics.compute_valuation(as_of)

    def test_log_carries_supplier_context(self, analytics, stocked, captured_logs):
        analytics.compute_valuation(supplier_id="ZED")

        records = [r for r in captured_logs() if r["message"] == "valuation_request_completed"]
        assert records[0]["supplier_id"] == "ZED"
        assert records[0]["item_count"] == 1


class TestPriceTrend:

    def test_two_points_for_widget(self, analytics, stocked):
        points = analytics.compute_price_trend("WIDGET", date(2024, 1, 1), date(2024, 1, 31))

        assert [(p.timestamp, p.price) for p in points] == [
            (_utc(1, 1), Decimal("2.00")),
            (_utc(1, 3), Decimal("3.00")),
        ]

    def test_window_keeps_full_history_wac(self, analytics, stocked):
        points = analytics.compute_price_trend("WIDGET", date(2024, 1, 3), date(2024, 1, 3))

        assert len(points) == 1
        assert points[0].weighted_average_cost == Decimal("2.4545")

    def test_supplier_filter(self, analytics, stocked):
        assert analytics.compute_price_trend(
            "WIDGET", date(2024, 1, 1), date(2024, 1, 31), supplier_id="ZED"
        ) == ()

    def test_blank_item(self, analytics, stocked):
        with pytest.raises(MissingParameterError):
            analytics.compute_price_trend(" ", date(2024, 1, 1), date(2024, 1, 31))

    def test_missing_dates(self, analytics, stocked):
        with pytest.raises(MissingParameterError) as exc_info:
            analytics.compute_price_trend("WIDGET", None, date(2024, 1, 31))

        assert exc_info.value.parameter == "start"

    def test_swapped_dates(self, analytics, stocked):
        with pytest.raises(InvalidRangeError):
            analytics.compute_price_trend("WIDGET", date(2024, 2, 1), date(2024, 1, 1))

    def test_unknown_item(self, analytics, stocked):
        with pytest.raises(ItemNotFoundError):
            analytics.compute_price_trend("NOPE", date(2024, 1, 1), date(2024, 1, 31))


class TestMonthlyMovement:

    def test_explicit_window(self, analytics, stocked):
        movement = analytics.compute_monthly_movement(date(2024, 1, 1), date(2024, 3, 31))

        assert [(m.period, m.stock_in, m.stock_out) for m in movement] == [
            ("2024-01", 15, 7),
            ("2024-02", 15, 0),
            ("2024-03", 0, 3),
        ]

    def test_default_window_is_last_thirty_days(self, analytics, stocked):
        movement = analytics.compute_monthly_movement()

        assert [(m.period, m.stock_in, m.stock_out) for m in movement] == [("2024-03", 0, 3)]

    def test_supplier_scope(self, analytics, stocked):
        movement = analytics.compute_monthly_movement(
            date(2024, 1, 1), date(2024, 3, 31), supplier_id="ACME"
        )

        assert [m.period for m in movement] == ["2024-01"]

    def test_swapped_window(self, analytics, stocked):
        with pytest.raises(InvalidRangeError):
            analytics.compute_monthly_movement(date(2024, 3, 1), date(2024, 1, 1))


class TestLowStock:

    def test_flags_below_threshold_most_critical_first(self, analytics, stocked):
        flagged = analytics.find_low_stock_items()

        assert [(i.item_id, i.quantity_on_hand, i.reorder_threshold) for i in flagged] == [
            ("GADGET", -3, 5),
            ("SPARE", 0, 3),
            ("BOLT", 12, 20),
        ]
        assert flagged[0].consistent is False

    def test_at_threshold_not_flagged(self, analytics, stocked):
        stocked.record("BOLT", 8, "PURCHASE", price_at_change="1.00", occurred_at=_utc(3, 2))

        assert "BOLT" not in {i.item_id for i in analytics.find_low_stock_items()}

    def test_supplier_scope(self, analytics, stocked):
        flagged = analytics.find_low_stock_items(supplier_id="ZED")

        assert [(i.item_id, i.supplier_id) for i in flagged] == [("SPARE", "ZED"), ("BOLT", "ZED")]

    def test_count(self, analytics, stocked):
        assert analytics.low_stock_count() == 3
        assert analytics.low_stock_count(supplier_id="ACME") == 1

    def test_supplier_changed_after_catalog_entry(self, analytics, stocked):
        # Catalog supplier and event supplier disagree for both items.
        stocked.register_item("NUT", "Lock nut", supplier_id="ZED", minimum_quantity=50)
        stocked.register_item("CAP", "End cap", supplier_id="ACME", minimum_quantity=5)
        stocked.record(
            "NUT", 10, "PURCHASE", price_at_change="0.10",
            occurred_at=_utc(3, 1), supplier_id="ACME",
        )
        stocked.record(
            "CAP", 100, "PURCHASE", price_at_change="0.50",
            occurred_at=_utc(3, 1), supplier_id="ZED",
        )

        acme = {i.item_id: i for i in analytics.find_low_stock_items(supplier_id="ACME")}
        zed = {i.item_id: i for i in analytics.find_low_stock_items(supplier_id="ZED")}

        assert (acme["NUT"].quantity_on_hand, acme["NUT"].reorder_threshold) == (10, 50)
        assert "CAP" not in acme
        assert "CAP" not in zed
        assert "NUT" not in zed


class TestStockValueOverTime:

    def test_end_of_day_values(self, analytics, stocked):
        series = analytics.stock_value_over_time(date(2024, 1, 1), date(2024, 1, 3))

        assert [p.day for p in series.points] == [
            date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3),
        ]
        assert [p.total_quantity for p in series.points] == [10, 6, 11]
        assert series.points[2].total_value == Decimal("26.9995")
        assert [w.item_id for w in series.warnings] == ["GADGET"]

    def test_default_window(self, analytics, stocked):
        series = analytics.stock_value_over_time()

        assert len(series.points) == 31
        assert series.points[0].day == date(2024, 2, 14)
        assert series.points[-1].day == date(2024, 3, 15)
        assert series.points[-1].total_quantity == 23


class TestSupplierAndFrequency:

    def test_total_stock_per_supplier(self, analytics, stocked):
        totals = analytics.total_stock_per_supplier()

        assert [(t.supplier_id, t.total_quantity) for t in totals] == [("ZED", 12), ("ACME", 11)]

    def test_item_update_frequency(self, analytics, stocked):
        counts = analytics.item_update_frequency("ACME")

        assert [(c.item_id, c.update_count) for c in counts] == [("WIDGET", 3), ("GADGET", 1)]

    def test_item_update_frequency_requires_supplier(self, analytics, stocked):
        with pytest.raises(MissingParameterError):
            analytics.item_update_frequency("  ")


class TestFinancialSummary:

    def test_january(self, analytics, stocked):
        summary = analytics.financial_summary(date(2024, 1, 1), date(2024, 1, 31))

        assert summary.purchases_quantity == 15
        assert summary.cogs_quantity == 4
        assert summary.ending_quantity == 11
        assert summary.rounding_difference == Decimal("-0.0005")
        assert [w.item_id for w in summary.warnings] == ["GADGET"]

    def test_requires_dates(self, analytics, stocked):
        with pytest.raises(MissingParameterError):
            analytics.financial_summary(date(2024, 1, 1), None)


class TestFilteredStockUpdates:

    def test_filter_required(self, analytics, stocked):
        with pytest.raises(MissingParameterError) as exc_info:
            analytics.filtered_stock_updates(None)

        assert exc_info.value.parameter == "filter"

    def test_default_window_when_no_dates(self, analytics, stocked):
        rows = analytics.filtered_stock_updates(StockUpdateFilter())

        assert [(r.item_id, r.quantity_change) for r in rows] == [("BOLT", -3)]

    def test_blank_text_criteria_ignored(self, analytics, stocked):
        rows = analytics.filtered_stock_updates(
            StockUpdateFilter(start=_utc(1, 1, 0), item_name="  ", created_by="")
        )

        assert len(rows) == 6

    def test_name_and_creator(self, analytics, stocked):
        rows = analytics.filtered_stock_updates(
            StockUpdateFilter(start=_utc(1, 1, 0), item_name=" WIDGET ", created_by="bob")
        )

        assert [(r.item_id, r.quantity_change) for r in rows] == [("WIDGET", -4)]

    def test_min_greater_than_max(self, analytics, stocked):
        with pytest.raises(InvalidFilterError) as exc_info:
            analytics.filtered_stock_updates(StockUpdateFilter(min_change=5, max_change=1))

        assert exc_info.value.field == "min_change"

    def test_swapped_dates(self, analytics, stocked):
        with pytest.raises(InvalidRangeError):
            analytics.filtered_stock_updates(
                StockUpdateFilter(start=_utc(3, 1), end=_utc(1, 1))
            )


class TestQuantityProjection:

    def test_no_drift_after_normal_appends(self, analytics, stocked):
        assert analytics.check_quantity_projection() == ()

    def test_drift_reported(self, analytics, session, stocked, captured_logs):
        bolt = session.execute(
            select(InventoryItemModel).where(InventoryItemModel.item_id == "BOLT")
        ).scalar_one()
        bolt.quantity = 99
        session.flush()

        drifts = analytics.check_quantity_projection()

        assert [(d.item_id, d.cached_quantity, d.replayed_quantity) for d in drifts] == [
            ("BOLT", 99, 12),
        ]
        assert drifts[0].difference == 87
        assert any(r["message"] == "quantity_projection_drift" for r in captured_logs())
