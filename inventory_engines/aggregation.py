"""
Module: inventory_engines.aggregation
Responsibility:
    Roll per-item replay results into fleet-level figures: point-in-time
    valuation, a daily valuation series, per-supplier totals and monthly
    stock movement.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Inconsistent items never contribute to valuation totals; each one is
      reported once through its first DataIntegrityWarning.
    - Idempotence: aggregating the same results twice gives equal reports.
    - Decimal totals: values are summed exactly, never through float.
    - UTC bucketing: days and months are calendar periods in UTC.

Failure modes:
    - InvalidRangeError from ``monthly_movement`` when start > end.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from inventory_kernel.domain.stock_event import StockEvent
from inventory_kernel.domain.values import ZERO
from inventory_kernel.logging_config import get_logger
from inventory_engines.replay import DataIntegrityWarning, ItemReplayResult
from inventory_engines.retrieval import validate_window
from inventory_engines.tracer import traced_engine

logger = get_logger("engines.aggregation")


@dataclass(frozen=True)
class ValuationSnapshot:
    """One consistent item's valuation at a point in time."""

    item_id: str
    supplier_id: str | None
    as_of: datetime
    quantity_on_hand: int
    weighted_average_cost: Decimal
    total_value: Decimal


@dataclass(frozen=True)
class ValuationReport:
    """
    Fleet valuation at ``as_of``.

    Guarantees:
        - ``snapshots`` holds consistent items only, ordered by item_id.
        - ``warnings`` holds exactly one entry per excluded item.
        - total_quantity / total_value are the sums over ``snapshots``.
    """

    as_of: datetime
    snapshots: tuple[ValuationSnapshot, ...]
    total_quantity: int
    total_value: Decimal
    warnings: tuple[DataIntegrityWarning, ...]

    @property
    def item_count(self) -> int:
        return len(self.snapshots)


@dataclass(frozen=True)
class ValuationPoint:
    """Fleet value at the end of one UTC day."""

    day: date
    total_quantity: int
    total_value: Decimal


@dataclass(frozen=True)
class ValuationSeries:
    points: tuple[ValuationPoint, ...]
    warnings: tuple[DataIntegrityWarning, ...]


@dataclass(frozen=True)
class SupplierTotal:
    supplier_id: str | None
    item_count: int
    total_quantity: int
    total_value: Decimal


@dataclass(frozen=True)
class MonthlyMovement:
    """Quantity moved in and out during one UTC calendar month ("YYYY-MM")."""

    period: str
    stock_in: int
    stock_out: int

    @property
    def net_change(self) -> int:
        return self.stock_in - self.stock_out


def end_of_day(day: date) -> datetime:
    """The UTC instant closing ``day``: next midnight."""
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)


def days_between(start: date, end: date) -> tuple[date, ...]:
    """Every calendar day from start to end inclusive."""
    return tuple(start + timedelta(days=n) for n in range((end - start).days + 1))


def month_period(timestamp: datetime) -> str:
    """UTC month of ``timestamp`` as "YYYY-MM"."""
    utc = timestamp.astimezone(timezone.utc)
    return f"{utc.year:04d}-{utc.month:02d}"


class ValuationAggregator:
    """
    Aggregates replay results.

    Contract:
        Every method is a pure function of its arguments.

    Non-goals:
        - Does NOT replay; callers pass ItemReplayResults (with day-end
          snapshots for ``daily_series``).
    """

    @staticmethod
    def _split(
        results: Iterable[ItemReplayResult],
    ) -> tuple[list[ItemReplayResult], tuple[DataIntegrityWarning, ...]]:
        consistent: list[ItemReplayResult] = []
        warnings: list[DataIntegrityWarning] = []
        for result in sorted(results, key=lambda r: r.item_id):
            if result.is_consistent:
                consistent.append(result)
            else:
                warnings.append(result.first_warning)
        return consistent, tuple(warnings)

    @traced_engine("valuation_aggregation", "1.0", fingerprint_fields=("results", "as_of"))
    def valuation(
        self,
        results: Iterable[ItemReplayResult],
        as_of: datetime,
    ) -> ValuationReport:
        """Point-in-time valuation over consistent items."""
        consistent, warnings = self._split(results)

        snapshots = tuple(
            ValuationSnapshot(
                item_id=r.item_id,
                supplier_id=r.supplier_id,
                as_of=as_of,
                quantity_on_hand=r.state.quantity_on_hand,
                weighted_average_cost=r.state.weighted_average_cost,
                total_value=r.state.total_value,
            )
            for r in consistent
        )
        total_quantity = sum(s.quantity_on_hand for s in snapshots)
        total_value = sum((s.total_value for s in snapshots), ZERO)

        logger.info(
            "valuation_computed",
            extra={
                "as_of": as_of,
                "item_count": len(snapshots),
                "excluded_count": len(warnings),
                "total_quantity": total_quantity,
                "total_value": total_value,
            },
        )
        return ValuationReport(
            as_of=as_of,
            snapshots=snapshots,
            total_quantity=total_quantity,
            total_value=total_value,
            warnings=warnings,
        )

    @traced_engine("valuation_aggregation", "1.0", fingerprint_fields=("results", "days"))
    def daily_series(
        self,
        results: Iterable[ItemReplayResult],
        days: Sequence[date],
    ) -> ValuationSeries:
        """
        Fleet value at the end of each day in ``days``.

        Each result must carry a snapshot at ``end_of_day(day)`` for every
        requested day.  Items inconsistent in their replayed history are
        excluded from every point.
        """
        consistent, warnings = self._split(results)
        points = []
        for day in sorted(days):
            boundary = end_of_day(day)
            states = [r.snapshot_at(boundary) for r in consistent]
            points.append(
                ValuationPoint(
                    day=day,
                    total_quantity=sum(s.quantity_on_hand for s in states),
                    total_value=sum((s.total_value for s in states), ZERO),
                )
            )
        return ValuationSeries(points=tuple(points), warnings=warnings)

    @traced_engine("valuation_aggregation", "1.0", fingerprint_fields=("results",))
    def per_supplier(self, results: Iterable[ItemReplayResult]) -> tuple[SupplierTotal, ...]:
        """
        Totals per supplier over consistent items.

        An item counts toward the supplier stamped on its latest event.
        Ordered by total_quantity descending, then supplier_id.
        """
        consistent, _ = self._split(results)
        buckets: dict[str | None, list[ItemReplayResult]] = {}
        for result in consistent:
            buckets.setdefault(result.supplier_id, []).append(result)

        totals = [
            SupplierTotal(
                supplier_id=supplier_id,
                item_count=len(items),
                total_quantity=sum(r.state.quantity_on_hand for r in items),
                total_value=sum((r.state.total_value for r in items), ZERO),
            )
            for supplier_id, items in buckets.items()
        ]
        totals.sort(key=lambda t: (-t.total_quantity, t.supplier_id is None, t.supplier_id or ""))
        return tuple(totals)

    def monthly_movement(
        self,
        events: Iterable[StockEvent],
        start: datetime,
        end: datetime,
    ) -> tuple[MonthlyMovement, ...]:
        """
        Quantity in/out per UTC month for events in [start, end).

        Quantity only, so inconsistent items are counted too.  Months with
        no movement are omitted.
        """
        validate_window(start, end)
        stock_in: dict[str, int] = {}
        stock_out: dict[str, int] = {}
        for event in events:
            if not start <= event.timestamp < end:
                continue
            period = month_period(event.timestamp)
            stock_in.setdefault(period, 0)
            stock_out.setdefault(period, 0)
            if event.quantity_change > 0:
                stock_in[period] += event.quantity_change
            else:
                stock_out[period] -= event.quantity_change

        return tuple(
            MonthlyMovement(period=period, stock_in=stock_in[period], stock_out=stock_out[period])
            for period in sorted(stock_in)
        )
