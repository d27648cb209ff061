"""
Module: inventory_engines.low_stock
Responsibility:
    Flag items whose replayed quantity on hand is strictly below their
    reorder threshold.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Strict comparison: quantity == threshold is NOT low stock.
    - Replayed quantity is authoritative; cached catalog quantities are
      never consulted here.
    - Most critical first: ordered by quantity ascending, then item_id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from inventory_kernel.logging_config import get_logger
from inventory_engines.replay import ItemReplayResult
from inventory_engines.tracer import traced_engine

logger = get_logger("engines.low_stock")


@dataclass(frozen=True)
class LowStockItem:
    item_id: str
    supplier_id: str | None
    quantity_on_hand: int
    reorder_threshold: int
    # False when the replay behind quantity_on_hand raised warnings
    consistent: bool = True

    @property
    def shortfall(self) -> int:
        return self.reorder_threshold - self.quantity_on_hand


class LowStockDetector:
    """
    Compares final replayed quantities with reorder thresholds.

    Contract:
        ``thresholds`` maps item_id to its reorder minimum; None (or a
        missing entry) falls back to ``default_threshold``.  It is a
        lookup only and never adds items to the report.

        ``unstocked`` maps item_id to catalog supplier for items with no
        ledger events at all; those count as quantity 0.  An item that has
        a replay result is never padded.
    """

    def __init__(self, default_threshold: int = 5):
        if default_threshold < 0:
            raise ValueError(f"default_threshold cannot be negative: {default_threshold}")
        self._default_threshold = default_threshold

    def threshold_for(self, item_id: str, thresholds: Mapping[str, int | None]) -> int:
        threshold = thresholds.get(item_id)
        return self._default_threshold if threshold is None else threshold

    @traced_engine("low_stock", "1.0", fingerprint_fields=("results", "thresholds", "unstocked"))
    def detect(
        self,
        results: Iterable[ItemReplayResult],
        thresholds: Mapping[str, int | None] | None = None,
        unstocked: Mapping[str, str | None] | None = None,
    ) -> tuple[LowStockItem, ...]:
        """
        Items below threshold, most critical first.

        Args:
            results: Per-item replay results.
            thresholds: Reorder minimum per catalog item.
            unstocked: Catalog supplier of each item with no ledger
                events.
        """
        thresholds = thresholds or {}
        unstocked = unstocked or {}
        flagged: list[LowStockItem] = []
        seen: set[str] = set()

        for result in results:
            seen.add(result.item_id)
            threshold = self.threshold_for(result.item_id, thresholds)
            if result.state.quantity_on_hand < threshold:
                flagged.append(
                    LowStockItem(
                        item_id=result.item_id,
                        supplier_id=result.supplier_id,
                        quantity_on_hand=result.state.quantity_on_hand,
                        reorder_threshold=threshold,
                        consistent=result.is_consistent,
                    )
                )

        for item_id, supplier_id in unstocked.items():
            if item_id in seen:
                continue
            threshold = self.threshold_for(item_id, thresholds)
            if 0 < threshold:
                flagged.append(
                    LowStockItem(
                        item_id=item_id,
                        supplier_id=supplier_id,
                        quantity_on_hand=0,
                        reorder_threshold=threshold,
                    )
                )

        flagged.sort(key=lambda i: (i.quantity_on_hand, i.item_id))
        logger.info(
            "low_stock_detected",
            extra={"item_count": len(flagged), "default_threshold": self._default_threshold},
        )
        return tuple(flagged)
