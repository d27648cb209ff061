"""
Module: inventory_engines.financial_summary
Responsibility:
    Period inventory roll-forward under Weighted Average Cost: opening
    position, purchases, customer returns, cost of goods sold, write-offs,
    adjustments and ending position for a half-open window [start, end).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Shares the replay
    engine's ``apply`` so the cost basis is computed by exactly one rule.

Invariants enforced:
    - Roll-forward closes exactly:
          opening + purchases + returns_in + adjustments
              - cogs - write_offs + rounding_difference == ending
      for both quantity (rounding difference always 0) and value.
    - Outbound events are costed at the WAC in force immediately before
      them; unpriced inbound events are valued at that WAC too.
    - Inconsistent items are excluded and reported once each.

Reason buckets:
    PURCHASE / INITIAL_STOCK inbound, or any priced non-RETURN inbound
                                 -> purchases
    RETURN inbound               -> returns_in (customer return)
    RETURN outbound              -> purchases, negative (return to supplier)
    SOLD outbound                -> cogs
    SHRINKAGE outbound           -> write_offs
    anything else                -> adjustments (signed)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from inventory_kernel.domain.stock_event import StockChangeReason, StockEvent
from inventory_kernel.domain.values import ZERO
from inventory_kernel.logging_config import get_logger
from inventory_engines.replay import DataIntegrityWarning, ReplayState, WacReplayEngine
from inventory_engines.retrieval import group_by_item, validate_window
from inventory_engines.tracer import traced_engine

logger = get_logger("engines.financial_summary")


@dataclass(frozen=True)
class FinancialSummary:
    """WAC roll-forward for one period."""

    start: datetime
    end: datetime
    opening_quantity: int
    opening_value: Decimal
    purchases_quantity: int
    purchases_cost: Decimal
    returns_in_quantity: int
    returns_in_cost: Decimal
    cogs_quantity: int
    cogs_cost: Decimal
    write_off_quantity: int
    write_off_cost: Decimal
    adjustment_quantity: int
    adjustment_value: Decimal
    ending_quantity: int
    ending_value: Decimal
    rounding_difference: Decimal
    warnings: tuple[DataIntegrityWarning, ...] = ()
    method: str = "WAC"


class _Totals:
    """Mutable accumulator used while folding one summary."""

    def __init__(self) -> None:
        self.quantities = dict.fromkeys(
            ("opening", "purchases", "returns_in", "cogs", "write_off", "adjustment", "ending"),
            0,
        )
        self.values = dict.fromkeys(self.quantities, ZERO)

    def add(self, bucket: str, quantity: int, value: Decimal) -> None:
        self.quantities[bucket] += quantity
        self.values[bucket] += value


class FinancialSummaryCalculator:
    """
    Computes a FinancialSummary from ordered events.

    Contract:
        ``events`` is a stream sorted by (item_id, timestamp, sequence)
        holding every event before ``end``.  Events at or after ``end`` are
        ignored.
    """

    def __init__(self, engine: WacReplayEngine | None = None):
        self._engine = engine or WacReplayEngine()

    @staticmethod
    def _classify(event: StockEvent) -> str:
        reason = event.reason
        if event.is_inbound:
            if reason is StockChangeReason.RETURN:
                return "returns_in"
            if (
                reason in (StockChangeReason.PURCHASE, StockChangeReason.INITIAL_STOCK)
                or event.price_at_change is not None
            ):
                return "purchases"
            return "adjustment"
        if reason is StockChangeReason.RETURN:
            return "purchases"
        if reason is StockChangeReason.SOLD:
            return "cogs"
        if reason is StockChangeReason.SHRINKAGE:
            return "write_off"
        return "adjustment"

    def _fold_item(
        self,
        item_id: str,
        events: tuple[StockEvent, ...],
        start: datetime,
        totals: _Totals,
    ) -> None:
        state = ReplayState(item_id)
        opened = False
        for event in events:
            if not opened and event.timestamp >= start:
                totals.add("opening", state.quantity_on_hand, state.total_value)
                opened = True

            if opened:
                bucket = self._classify(event)
                quantity = event.quantity_change
                if event.is_priced_inbound:
                    unit = event.price_at_change
                else:
                    unit = state.weighted_average_cost
                value = Decimal(quantity) * unit
                if bucket in ("cogs", "write_off"):
                    totals.add(bucket, -quantity, -value)
                else:
                    totals.add(bucket, quantity, value)

            state = self._engine.apply(state, event)

        if not opened:
            totals.add("opening", state.quantity_on_hand, state.total_value)
        totals.add("ending", state.quantity_on_hand, state.total_value)

    @traced_engine("financial_summary", "1.0", fingerprint_fields=("events", "start", "end"))
    def summarize(
        self,
        events: Iterable[StockEvent],
        start: datetime,
        end: datetime,
    ) -> FinancialSummary:
        """
        Roll inventory forward from ``start`` to ``end``.

        Raises:
            InvalidRangeError: start > end.
        """
        validate_window(start, end)
        totals = _Totals()
        warnings: list[DataIntegrityWarning] = []

        for item_id, item_events in group_by_item(e for e in events if e.timestamp < end):
            history = tuple(item_events)
            replayed = self._engine.replay_item(history, item_id=item_id)
            if not replayed.is_consistent:
                warnings.append(replayed.first_warning)
                continue
            self._fold_item(item_id, history, start, totals)

        q = totals.quantities
        v = totals.values
        expected_value = (
            v["opening"] + v["purchases"] + v["returns_in"] + v["adjustment"]
            - v["cogs"] - v["write_off"]
        )
        rounding_difference = v["ending"] - expected_value

        summary = FinancialSummary(
            start=start,
            end=end,
            opening_quantity=q["opening"],
            opening_value=v["opening"],
            purchases_quantity=q["purchases"],
            purchases_cost=v["purchases"],
            returns_in_quantity=q["returns_in"],
            returns_in_cost=v["returns_in"],
            cogs_quantity=q["cogs"],
            cogs_cost=v["cogs"],
            write_off_quantity=q["write_off"],
            write_off_cost=v["write_off"],
            adjustment_quantity=q["adjustment"],
            adjustment_value=v["adjustment"],
            ending_quantity=q["ending"],
            ending_value=v["ending"],
            rounding_difference=rounding_difference,
            warnings=tuple(warnings),
        )
        logger.info(
            "financial_summary_computed",
            extra={
                "start": start,
                "end": end,
                "opening_value": summary.opening_value,
                "ending_value": summary.ending_value,
                "rounding_difference": rounding_difference,
                "excluded_count": len(warnings),
            },
        )
        return summary
