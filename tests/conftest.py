"""
Pytest fixtures for the inventory valuation test suite.

Provides:
- Structured log capture for the inventory_kernel logger tree
- A session-scoped database (SQLite in memory by default) with per-test
  rollback isolation
- A deterministic clock and the active configuration
- A StockEvent factory for pure engine tests

Environment Variables:
- DATABASE_URL: connection URL for the test database.  Defaults to an
  in-memory SQLite database; set a postgresql:// URL to run the suite
  against PostgreSQL.
"""

import itertools
import json
import logging
import os
from datetime import date, datetime, time, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from inventory_config import get_active_config
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.stock_event import StockChangeReason, StockEvent
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services.stock_ledger_service import StockLedgerService
from inventory_services.analytics_service import StockAnalyticsService

DEFAULT_DATABASE_URL = "sqlite://"

# "Now" for every service-level test.
TEST_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, analytics):
            analytics.compute_valuation()
            logs = captured_logs()
            assert any(r["message"] == "valuation_computed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Opens a dedicated connection with an outer transaction and joins the
    session to it with savepoints.  At teardown the outer transaction is
    rolled back, undoing every change made during the test.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture(scope="session")
def config():
    return get_active_config()


@pytest.fixture
def ledger(session, clock) -> StockLedgerService:
    return StockLedgerService(session, clock=clock)


@pytest.fixture
def analytics(session, clock, config) -> StockAnalyticsService:
    return StockAnalyticsService(session, clock=clock, config=config)


def at(day: date, hour: int = 9, minute: int = 0) -> datetime:
    """UTC instant on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


@pytest.fixture
def make_event():
    """
    Factory for StockEvent values with auto-assigned id and sequence.

    Usage::

        e = make_event("ITEM-1", 10, "2.00", when=at(date(2024, 1, 1)))

    ``reason`` defaults to PURCHASE for inbound and SOLD for outbound.
    """
    counter = itertools.count(1)

    def _make(
        item_id: str,
        quantity_change: int,
        price=None,
        *,
        when: datetime | None = None,
        reason: StockChangeReason | None = None,
        supplier_id: str | None = "SUP-1",
        created_by: str | None = None,
        event_id: str | None = None,
        sequence: int | None = None,
    ) -> StockEvent:
        seq = sequence if sequence is not None else next(counter)
        if reason is None:
            reason = StockChangeReason.PURCHASE if quantity_change > 0 else StockChangeReason.SOLD
        return StockEvent(
            event_id=event_id or f"EV-{seq}",
            item_id=item_id,
            supplier_id=supplier_id,
            timestamp=when or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
            sequence=seq,
            quantity_change=quantity_change,
            reason=reason,
            price_at_change=price,
            created_by=created_by,
        )

    return _make


@pytest.fixture
def scenario_a(make_event):
    """+10 @ 2.00 (INITIAL_STOCK), -4 (SOLD), +5 @ 3.00 (PURCHASE) on three days."""
    return [
        make_event(
            "WIDGET", 10, "2.00",
            when=at(date(2024, 1, 1)), reason=StockChangeReason.INITIAL_STOCK,
        ),
        make_event("WIDGET", -4, when=at(date(2024, 1, 2))),
        make_event("WIDGET", 5, "3.00", when=at(date(2024, 1, 3))),
    ]


@pytest.fixture
def scenario_b(make_event):
    """A sale with no prior inbound stock."""
    return [make_event("GADGET", -3, when=at(date(2024, 1, 2)))]
