"""
Module: inventory_engines.price_trend
Responsibility:
    Project an item's replayed history into a price series: one point per
    priced inbound event, carrying the unit price paid and the cost basis
    that resulted from it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only priced inbound events produce points.  Sales, write-offs and
      unpriced inbound leave no trace in the series.
    - Full-history replay: the WAC on a point is computed from the item's
      entire history, then the window and supplier filters are applied to
      the emitted points.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from inventory_kernel.domain.stock_event import StockEvent
from inventory_kernel.domain.values import RoundingPolicy
from inventory_engines.replay import WacReplayEngine
from inventory_engines.tracer import traced_engine


@dataclass(frozen=True)
class PricePoint:
    """Unit price paid at one priced inbound event, with the resulting WAC."""

    timestamp: datetime
    price: Decimal
    weighted_average_cost: Decimal
    event_id: str
    supplier_id: str | None


@dataclass(frozen=True)
class DailyPrice:
    """Average unit price paid on one UTC day."""

    day: date
    average_price: Decimal
    point_count: int


class PriceTrendProjector:
    """Builds price series from one item's ordered events."""

    def __init__(self, engine: WacReplayEngine | None = None):
        self._engine = engine or WacReplayEngine()

    @traced_engine(
        "price_trend", "1.0", fingerprint_fields=("events", "start", "end", "supplier_id")
    )
    def project(
        self,
        events: Iterable[StockEvent],
        start: datetime | None = None,
        end: datetime | None = None,
        supplier_id: str | None = None,
    ) -> tuple[PricePoint, ...]:
        """
        Price points for events in [start, end), oldest first.

        Args:
            events: One item's full ordered history.
            start: Inclusive lower bound, or None.
            end: Exclusive upper bound, or None.
            supplier_id: Keep only points stamped with this supplier.
        """
        history = tuple(events)
        if not history:
            return ()

        result = self._engine.replay_item(history, record_points=True)
        points = []
        for point in result.points:
            event = point.event
            if not event.is_priced_inbound:
                continue
            if start is not None and event.timestamp < start:
                continue
            if end is not None and event.timestamp >= end:
                continue
            if supplier_id is not None and event.supplier_id != supplier_id:
                continue
            points.append(
                PricePoint(
                    timestamp=event.timestamp,
                    price=event.price_at_change,
                    weighted_average_cost=point.state.weighted_average_cost,
                    event_id=event.event_id,
                    supplier_id=event.supplier_id,
                )
            )
        return tuple(points)

    @staticmethod
    def daily_average(
        points: Sequence[PricePoint],
        rounding: RoundingPolicy | None = None,
    ) -> tuple[DailyPrice, ...]:
        """Collapse points into one average unit price per UTC day."""
        rounding = rounding or RoundingPolicy()
        by_day: dict[date, list[Decimal]] = {}
        for point in points:
            by_day.setdefault(point.timestamp.date(), []).append(point.price)
        return tuple(
            DailyPrice(
                day=day,
                average_price=rounding.quantize(sum(prices) / Decimal(len(prices))),
                point_count=len(prices),
            )
            for day, prices in sorted(by_day.items())
        )
