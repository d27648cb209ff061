"""
Module: inventory_engines.retrieval
Responsibility:
    Fetch the ordered, immutable slice of stock events a computation runs
    over, and provide the stream helpers every replay relies on: grouping a
    sorted stream by item while checking its order, and resolving the date
    windows analytics requests are made with.

Architecture position:
    Engines -- the single boundary through which events enter the pure
    calculation layer.  Depends on the ``EventStore`` protocol only; the SQL
    implementation lives in ``inventory_kernel.selectors``.

Invariants enforced:
    - One fetch per computation: ``EventRetriever.retrieve`` queries the
      store once and freezes the result into a tuple.  Nothing re-queries
      mid-replay.
    - Deterministic order: events are sorted by (item_id, timestamp,
      sequence) regardless of the order the store returned them in.
    - Strict stream order: ``group_by_item`` raises EventOrderingError
      rather than folding an unsorted stream.
    - Windows are never swapped: ``validate_window`` rejects start > end.

Failure modes:
    - RetrievalFailureError propagated unchanged from the store.
    - EventOrderingError from ``group_by_item``.
    - InvalidRangeError from ``validate_window`` / ``resolve_date_window``.
    - ValueError for a naive ``as_of``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from itertools import groupby
from operator import attrgetter
from typing import Protocol

from inventory_kernel.domain.stock_event import StockEvent
from inventory_kernel.exceptions import (
    EventOrderingError,
    InvalidRangeError,
    MissingParameterError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.retrieval")


class EventStore(Protocol):
    """Anything that can return stock events up to a point in time."""

    def fetch_events(
        self,
        as_of: datetime,
        inclusive: bool = True,
        supplier_id: str | None = None,
        item_id: str | None = None,
    ) -> Iterable[StockEvent]:
        ...


def blank_to_none(value: str | None) -> str | None:
    """Treat a blank identifier as absent; strip surrounding whitespace."""
    if value is None or not value.strip():
        return None
    return value.strip()


def require_non_blank(value: str | None, name: str) -> str:
    """Return the stripped identifier or raise MissingParameterError."""
    stripped = blank_to_none(value)
    if stripped is None:
        raise MissingParameterError(name)
    return stripped


def validate_window(start: date | datetime | None, end: date | datetime | None) -> None:
    """Raise InvalidRangeError when both bounds are set and start > end."""
    if start is not None and end is not None and start > end:
        raise InvalidRangeError(str(start), str(end))


def resolve_date_window(
    start: date | None,
    end: date | None,
    today: date,
    default_days: int,
) -> tuple[date, date]:
    """
    Fill missing bounds of a date window and validate it.

    A missing start defaults to ``today - default_days``; a missing end
    defaults to ``today``.

    Raises:
        InvalidRangeError: if the resolved start is after the resolved end.
    """
    resolved_start = start if start is not None else today - timedelta(days=default_days)
    resolved_end = end if end is not None else today
    validate_window(resolved_start, resolved_end)
    return resolved_start, resolved_end


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Return the UTC half-open interval [start 00:00, (end + 1 day) 00:00)."""
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper


def ensure_ordered(events: Iterable[StockEvent]) -> Iterator[StockEvent]:
    """Pass events through, raising EventOrderingError on the first inversion."""
    previous: StockEvent | None = None
    for event in events:
        if previous is not None and event.ordering_key < previous.ordering_key:
            raise EventOrderingError(event.event_id, previous.event_id)
        previous = event
        yield event


def group_by_item(
    events: Iterable[StockEvent],
) -> Iterator[tuple[str, Iterator[StockEvent]]]:
    """
    Group a sorted event stream into consecutive per-item runs.

    Only one item's events are held at a time.  Each yielded iterator is
    invalidated when the next group is requested (``itertools.groupby``
    semantics).

    Raises:
        EventOrderingError: as soon as an event sorts before its predecessor
            by (item_id, timestamp, sequence).
    """
    yield from groupby(ensure_ordered(events), key=attrgetter("item_id"))


@dataclass(frozen=True)
class EventSlice:
    """
    The immutable event snapshot one computation runs over.

    Guarantees:
        - ``events`` is a tuple sorted by (item_id, timestamp, sequence).
        - Every event satisfies the bound and filters recorded here.
    """

    as_of: datetime
    inclusive: bool
    supplier_id: str | None
    item_id: str | None
    events: tuple[StockEvent, ...]

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[StockEvent]:
        return iter(self.events)


class EventRetriever:
    """
    Fetches an ordered event slice from an EventStore.

    Contract:
        ``retrieve(as_of, inclusive, supplier_id, item_id)`` returns every
        event with timestamp ``<= as_of`` (or ``< as_of`` when not
        inclusive), restricted to the supplier and/or item when given.

    Guarantees:
        - Exactly one ``fetch_events`` call per ``retrieve``.
        - Blank identifiers are treated as absent.
        - An empty slice is a valid result.

    Non-goals:
        - Does NOT retry a failed fetch.
    """

    def __init__(self, store: EventStore):
        self._store = store

    def retrieve(
        self,
        as_of: datetime,
        inclusive: bool = True,
        supplier_id: str | None = None,
        item_id: str | None = None,
    ) -> EventSlice:
        if as_of.tzinfo is None or as_of.utcoffset() is None:
            raise ValueError(f"as_of must be timezone-aware: {as_of!r}")
        as_of = as_of.astimezone(timezone.utc)
        supplier_id = blank_to_none(supplier_id)
        item_id = blank_to_none(item_id)

        fetched = self._store.fetch_events(
            as_of=as_of,
            inclusive=inclusive,
            supplier_id=supplier_id,
            item_id=item_id,
        )

        def _matches(event: StockEvent) -> bool:
            if inclusive and event.timestamp > as_of:
                return False
            if not inclusive and event.timestamp >= as_of:
                return False
            if supplier_id is not None and event.supplier_id != supplier_id:
                return False
            if item_id is not None and event.item_id != item_id:
                return False
            return True

        events = tuple(sorted(filter(_matches, fetched), key=attrgetter("ordering_key")))

        logger.debug(
            "events_retrieved",
            extra={
                "as_of": as_of,
                "inclusive": inclusive,
                "supplier_id": supplier_id,
                "item_id": item_id,
                "event_count": len(events),
            },
        )
        return EventSlice(
            as_of=as_of,
            inclusive=inclusive,
            supplier_id=supplier_id,
            item_id=item_id,
            events=events,
        )
