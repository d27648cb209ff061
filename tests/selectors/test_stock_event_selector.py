"""
Tests for the SQL stock event selector.

Covers:
- fetch_events bounds, filters and ordering
- UTC round trip through storage
- Per-item update counts
- Multi-criteria ledger search
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from inventory_kernel.exceptions import RetrievalFailureError
from inventory_kernel.selectors.stock_event_selector import (
    StockEventSelector,
    StockUpdateFilter,
    as_utc,
)

T0 = datetime(2024, 1, 1, 9, tzinfo=timezone.utc)


@pytest.fixture
def seeded(ledger):
    ledger.register_item("BOLT", "Steel Bolt", supplier_id="ACME")
    ledger.register_item("NUT", "Brass nut", supplier_id="ACME")
    ledger.register_item("GEAR", "Gear 100% steel", supplier_id="ZED")

    events = [
        ledger.record("BOLT", 10, "PURCHASE", price_at_change="1.00", occurred_at=T0, created_by="alice"),
        ledger.record("NUT", 20, "PURCHASE", price_at_change="0.10", occurred_at=T0, created_by="bob"),
        ledger.record("BOLT", -3, "SOLD", occurred_at=T0 + timedelta(days=1), created_by="bob"),
        ledger.record("GEAR", 5, "PURCHASE", price_at_change="7.50", occurred_at=T0 + timedelta(days=2)),
        ledger.record("BOLT", 4, "PURCHASE", price_at_change="1.50", occurred_at=T0 + timedelta(days=3)),
        # Same timestamp as the previous BOLT event: sequence breaks the tie.
        ledger.record("BOLT", -1, "SHRINKAGE", occurred_at=T0 + timedelta(days=3)),
    ]
    return events


class TestFetchEvents:

    def test_ordered_by_item_time_sequence(self, session, seeded):
        events = StockEventSelector(session).fetch_events(T0 + timedelta(days=10))

        assert [e.ordering_key for e in events] == sorted(e.ordering_key for e in events)
        assert [e.item_id for e in events] == ["BOLT"] * 4 + ["GEAR", "NUT"]
        assert [e.quantity_change for e in events[:4]] == [10, -3, 4, -1]

    def test_inclusive_and_exclusive_bound(self, session, seeded):
        selector = StockEventSelector(session)
        as_of = T0 + timedelta(days=1)

        assert len(selector.fetch_events(as_of, inclusive=True)) == 3
        assert len(selector.fetch_events(as_of, inclusive=False)) == 2

    def test_supplier_and_item_filters(self, session, seeded):
        selector = StockEventSelector(session)
        later = T0 + timedelta(days=10)

        assert {e.item_id for e in selector.fetch_events(later, supplier_id="ACME")} == {"BOLT", "NUT"}
        assert len(selector.fetch_events(later, item_id="BOLT")) == 4
        assert selector.fetch_events(later, supplier_id="ZED", item_id="BOLT") == []

    def test_values_round_trip_as_utc_decimal(self, session, seeded):
        event = StockEventSelector(session).fetch_events(T0, item_id="BOLT")[0]

        assert event.timestamp == T0
        assert event.timestamp.tzinfo == timezone.utc
        assert isinstance(event.price_at_change, Decimal)
        assert event.price_at_change == Decimal("1.00")

    def test_aware_non_utc_bound(self, session, seeded):
        minus_five = timezone(timedelta(hours=-5))
        as_of = datetime(2024, 1, 1, 4, tzinfo=minus_five)  # 09:00 UTC

        assert len(StockEventSelector(session).fetch_events(as_of)) == 2

    def test_has_events(self, session, seeded):
        selector = StockEventSelector(session)

        assert selector.has_events("BOLT")
        assert not selector.has_events("UNKNOWN")

    def test_database_error_wrapped(self, session, monkeypatch):
        def _boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "execute", _boom)

        with pytest.raises(RetrievalFailureError) as exc_info:
            StockEventSelector(session).fetch_events(T0)

        assert exc_info.value.operation == "fetch_events"


class TestCountEventsByItem:

    def test_counts_for_supplier_busiest_first(self, session, seeded):
        counts = StockEventSelector(session).count_events_by_item("ACME")

        assert [(c.item_id, c.item_name, c.update_count) for c in counts] == [
            ("BOLT", "Steel Bolt", 4),
            ("NUT", "Brass nut", 1),
        ]

    def test_unknown_supplier(self, session, seeded):
        assert StockEventSelector(session).count_events_by_item("NOBODY") == []


class TestSearch:

    def test_no_criteria_returns_everything_newest_first(self, session, seeded):
        rows = StockEventSelector(session).search(StockUpdateFilter())

        assert len(rows) == 6
        assert rows[0].event_id == seeded[-1].event_id
        assert rows[1].event_id == seeded[-2].event_id

    def test_item_name_case_insensitive_substring(self, session, seeded):
        rows = StockEventSelector(session).search(StockUpdateFilter(item_name="STEEL"))

        assert {r.item_id for r in rows} == {"BOLT", "GEAR"}
        assert all(r.item_name for r in rows)

    def test_item_name_wildcards_are_literal(self, session, seeded):
        rows = StockEventSelector(session).search(StockUpdateFilter(item_name="100%"))

        assert {r.item_id for r in rows} == {"GEAR"}

    def test_exact_supplier_and_creator(self, session, seeded):
        rows = StockEventSelector(session).search(
            StockUpdateFilter(supplier_id="ACME", created_by="bob")
        )

        assert {(r.item_id, r.quantity_change) for r in rows} == {("NUT", 20), ("BOLT", -3)}

    def test_change_range_inclusive(self, session, seeded):
        rows = StockEventSelector(session).search(StockUpdateFilter(min_change=-3, max_change=4))

        assert sorted(r.quantity_change for r in rows) == [-3, -1, 4]

    def test_time_window_inclusive(self, session, seeded):
        rows = StockEventSelector(session).search(
            StockUpdateFilter(start=T0 + timedelta(days=1), end=T0 + timedelta(days=2))
        )

        assert sorted(r.item_id for r in rows) == ["BOLT", "GEAR"]


def test_as_utc_treats_naive_as_utc():
    assert as_utc(datetime(2024, 1, 1, 9)) == T0
