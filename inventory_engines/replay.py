"""
Module: inventory_engines.replay
Responsibility:
    Replay an item's ordered stock events from zero into its quantity on
    hand and Weighted Average Cost (WAC).  Each priced inbound event
    re-weights the cost basis; everything else moves quantity only.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain and sibling engine modules.

Invariants enforced:
    - Exact arithmetic: quantities are int, costs are Decimal, and each WAC
      update is quantized exactly once with the configured RoundingPolicy.
    - WAC stability: outbound and unpriced inbound events never change the
      cost basis.
    - Determinism: identical ordered events give identical results.
    - Fail-soft per item: an outbound event that drives quantity below zero
      yields a DataIntegrityWarning and marks the item INCONSISTENT; the
      replay continues without clamping.

Failure modes:
    - EventOrderingError for an unsorted stream.
    - ValueError when a single-item replay is handed events of several
      items, or no events and no item id.

Audit relevance:
    Every valuation figure in the system is produced here.  Entry points
    are traced via ``@traced_engine`` so identical inputs can be shown to
    produce identical fingerprints.

Usage:
    from inventory_engines.replay import WacReplayEngine

    engine = WacReplayEngine(RoundingPolicy(scale=4))
    result = engine.replay_item(events)
    result.state.weighted_average_cost  # Decimal('2.4545')
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from inventory_kernel.domain.stock_event import StockEvent
from inventory_kernel.domain.values import ZERO, RoundingPolicy
from inventory_kernel.logging_config import get_logger
from inventory_engines.retrieval import ensure_ordered, group_by_item
from inventory_engines.tracer import traced_engine

logger = get_logger("engines.replay")


class ReplayOutcome(str, Enum):
    """Tag on a per-item replay result."""

    OK = "OK"
    INCONSISTENT = "INCONSISTENT"


class IntegrityIssue(str, Enum):
    """Why a replayed history is inconsistent."""

    OUTBOUND_BEFORE_INBOUND = "OUTBOUND_BEFORE_INBOUND"
    NEGATIVE_QUANTITY = "NEGATIVE_QUANTITY"


@dataclass(frozen=True)
class ReplayState:
    """
    Running state of one item's replay.

    Guarantees:
        - ``as_of`` is the timestamp of the last applied event (None before
          any event).
        - ``total_value`` is exact: quantity times WAC, unrounded.
    """

    item_id: str
    quantity_on_hand: int = 0
    weighted_average_cost: Decimal = ZERO
    as_of: datetime | None = None
    event_count: int = 0

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.quantity_on_hand) * self.weighted_average_cost


@dataclass(frozen=True)
class DataIntegrityWarning:
    """
    A replayed event that left the item in an impossible state.

    ``quantity_on_hand`` is the quantity after the offending event, kept
    for diagnosis (e.g. -3 for a sale with no stock).
    """

    item_id: str
    supplier_id: str | None
    event_id: str
    issue: IntegrityIssue
    quantity_on_hand: int
    timestamp: datetime


@dataclass(frozen=True)
class ReplayPoint:
    """State immediately after one event."""

    event: StockEvent
    state: ReplayState
    cost_basis_changed: bool


@dataclass(frozen=True)
class ItemReplayResult:
    """
    Tagged outcome of replaying one item.

    Contract:
        ``outcome`` is OK when no event produced a warning, INCONSISTENT
        otherwise.  ``last_good_state`` is the state before the first
        offending event (equal to ``state`` when OK).

    Guarantees:
        - ``supplier_id`` is the supplier on the item's latest event.
        - ``snapshots`` pairs each requested boundary with the state of all
          events strictly before it, in ascending boundary order.
    """

    item_id: str
    supplier_id: str | None
    state: ReplayState
    outcome: ReplayOutcome
    warnings: tuple[DataIntegrityWarning, ...]
    last_good_state: ReplayState
    snapshots: tuple[tuple[datetime, ReplayState], ...] = ()
    points: tuple[ReplayPoint, ...] = ()

    @property
    def is_consistent(self) -> bool:
        return self.outcome is ReplayOutcome.OK

    @property
    def first_warning(self) -> DataIntegrityWarning | None:
        return self.warnings[0] if self.warnings else None

    def snapshot_at(self, boundary: datetime) -> ReplayState:
        """State of all events strictly before ``boundary``."""
        for at, state in self.snapshots:
            if at == boundary:
                return state
        raise KeyError(boundary)


class WacReplayEngine:
    """
    Single forward pass WAC replay.

    Contract:
        ``apply`` folds one event into a state.  ``replay_item`` folds one
        item's ordered history from zero.  ``replay_stream`` folds a sorted
        multi-item stream, one item at a time.

    Guarantees:
        - Priced inbound with quantity q >= 0:
          wac' = round((q * wac + change * price) / (q + change)).
        - Priced inbound while q < 0 (an already inconsistent item): the
          basis resets to the price if the new quantity is positive,
          otherwise WAC is unchanged.
        - Unpriced inbound and all outbound: quantity moves, WAC unchanged.

    Non-goals:
        - Does NOT clamp negative quantities.
        - Does NOT read the clock or any store.
    """

    def __init__(self, rounding: RoundingPolicy | None = None):
        self._rounding = rounding or RoundingPolicy()

    @property
    def rounding(self) -> RoundingPolicy:
        return self._rounding

    def apply(self, state: ReplayState, event: StockEvent) -> ReplayState:
        """Fold one event into ``state`` and return the new state."""
        quantity = state.quantity_on_hand
        wac = state.weighted_average_cost
        new_quantity = quantity + event.quantity_change

        if event.is_priced_inbound:
            if quantity >= 0:
                numerator = Decimal(quantity) * wac + Decimal(
                    event.quantity_change
                ) * event.price_at_change
                wac = self._rounding.quantize(numerator / Decimal(new_quantity))
            elif new_quantity > 0:
                wac = self._rounding.quantize(event.price_at_change)

        return ReplayState(
            item_id=state.item_id,
            quantity_on_hand=new_quantity,
            weighted_average_cost=wac,
            as_of=event.timestamp,
            event_count=state.event_count + 1,
        )

    def _emit_snapshots_until(
        self,
        boundaries: Sequence[datetime],
        next_index: int,
        limit: datetime | None,
        state: ReplayState,
        into: list[tuple[datetime, ReplayState]],
    ) -> int:
        # Boundaries <= limit see only events before the next event.
        while next_index < len(boundaries) and (
            limit is None or boundaries[next_index] <= limit
        ):
            into.append((boundaries[next_index], state))
            next_index += 1
        return next_index

    @traced_engine("wac_replay", "1.0", fingerprint_fields=("events", "boundaries"))
    def replay_item(
        self,
        events: Iterable[StockEvent],
        *,
        item_id: str | None = None,
        boundaries: Sequence[datetime] = (),
        record_points: bool = False,
    ) -> ItemReplayResult:
        """
        Replay one item's ordered events from quantity 0 / cost 0.

        Args:
            events: The item's events sorted by (timestamp, sequence).
            item_id: Required only when ``events`` may be empty.
            boundaries: Instants to snapshot the state at; each snapshot
                includes events with timestamp strictly before it.
            record_points: Keep a ReplayPoint per event.

        Returns:
            ItemReplayResult tagged OK or INCONSISTENT.
        """
        ordered_boundaries = sorted(set(boundaries))
        state: ReplayState | None = ReplayState(item_id) if item_id else None
        last_good: ReplayState | None = None
        supplier_id: str | None = None
        inbound_seen = False
        warnings: list[DataIntegrityWarning] = []
        snapshots: list[tuple[datetime, ReplayState]] = []
        points: list[ReplayPoint] = []
        next_boundary = 0

        for event in ensure_ordered(events):
            if state is None:
                state = ReplayState(event.item_id)
            elif event.item_id != state.item_id:
                raise ValueError(
                    f"replay_item got events for {state.item_id} and {event.item_id}"
                )

            if ordered_boundaries:
                next_boundary = self._emit_snapshots_until(
                    ordered_boundaries, next_boundary, event.timestamp, state, snapshots
                )

            previous = state
            state = self.apply(state, event)
            supplier_id = event.supplier_id

            if event.is_inbound:
                inbound_seen = True
            elif state.quantity_on_hand < 0:
                issue = (
                    IntegrityIssue.NEGATIVE_QUANTITY
                    if inbound_seen
                    else IntegrityIssue.OUTBOUND_BEFORE_INBOUND
                )
                if not warnings:
                    last_good = previous
                warnings.append(
                    DataIntegrityWarning(
                        item_id=event.item_id,
                        supplier_id=event.supplier_id,
                        event_id=event.event_id,
                        issue=issue,
                        quantity_on_hand=state.quantity_on_hand,
                        timestamp=event.timestamp,
                    )
                )

            if record_points:
                points.append(
                    ReplayPoint(
                        event=event,
                        state=state,
                        cost_basis_changed=(
                            state.weighted_average_cost != previous.weighted_average_cost
                        ),
                    )
                )

        if state is None:
            raise ValueError("replay_item needs at least one event or an item_id")

        self._emit_snapshots_until(ordered_boundaries, next_boundary, None, state, snapshots)

        outcome = ReplayOutcome.INCONSISTENT if warnings else ReplayOutcome.OK
        if outcome is ReplayOutcome.INCONSISTENT:
            logger.warning(
                "replay_item_inconsistent",
                extra={
                    "item_id": state.item_id,
                    "supplier_id": supplier_id,
                    "warning_count": len(warnings),
                    "first_event_id": warnings[0].event_id,
                    "issue": warnings[0].issue,
                    "quantity_on_hand": state.quantity_on_hand,
                },
            )

        return ItemReplayResult(
            item_id=state.item_id,
            supplier_id=supplier_id,
            state=state,
            outcome=outcome,
            warnings=tuple(warnings),
            last_good_state=last_good if last_good is not None else state,
            snapshots=tuple(snapshots),
            points=tuple(points),
        )

    def replay_stream(
        self,
        events: Iterable[StockEvent],
        *,
        boundaries: Sequence[datetime] = (),
        record_points: bool = False,
    ) -> Iterator[ItemReplayResult]:
        """
        Fold a stream sorted by (item_id, timestamp, sequence), one item at
        a time, yielding a result per item as soon as its run ends.
        """
        for item_id, item_events in group_by_item(events):
            yield self.replay_item(
                item_events,
                item_id=item_id,
                boundaries=boundaries,
                record_points=record_points,
            )

    def replay_all(
        self,
        events: Iterable[StockEvent],
        *,
        boundaries: Sequence[datetime] = (),
    ) -> tuple[ItemReplayResult, ...]:
        """Materialize ``replay_stream`` into a tuple ordered by item_id."""
        return tuple(self.replay_stream(events, boundaries=boundaries))

