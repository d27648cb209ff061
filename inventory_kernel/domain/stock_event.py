"""
StockEvent -- the immutable ledger record consumed by the valuation engine.

Responsibility:
    Defines the pure domain representation of one stock-changing event and
    the closed set of reasons an event can carry.  Selectors convert ORM rows
    into ``StockEvent`` before anything downstream sees them.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Immutability: frozen, slotted dataclass with no mutation API.
    - Decimal-only prices: ``price_at_change`` is converted with
      ``to_decimal`` (floats rejected) and must be non-negative.
    - UTC timestamps: ``timestamp`` must be timezone-aware and is normalized
      to UTC so that day/month bucketing never drifts.
    - Deterministic order: ``ordering_key`` is (item_id, timestamp, sequence);
      ``sequence`` breaks ties between events sharing a timestamp.

Failure modes:
    - TypeError for a float price or a non-integer quantity change.
    - ValueError for a naive timestamp, negative price or blank item id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from inventory_kernel.domain.values import to_decimal


class StockChangeReason(str, Enum):
    """Why an item's quantity changed."""

    INITIAL_STOCK = "INITIAL_STOCK"
    PURCHASE = "PURCHASE"
    SOLD = "SOLD"
    ADJUSTMENT = "ADJUSTMENT"
    AUDIT = "AUDIT"
    RETURN = "RETURN"
    SHRINKAGE = "SHRINKAGE"
    MANUAL_UPDATE = "MANUAL_UPDATE"


@dataclass(frozen=True, slots=True)
class StockEvent:
    """
    One append-only stock change.

    Contract:
        Created once by the ledger append path (or read back by a selector)
        and never modified.  ``quantity_change`` is signed: positive for
        inbound, negative for outbound.  ``price_at_change`` establishes a
        new cost basis only on inbound events; it is ignored on outbound
        ones.

    Guarantees:
        - ``timestamp.tzinfo`` is UTC.
        - ``price_at_change`` is None or a finite, non-negative Decimal.
        - ``reason`` is a StockChangeReason member.
    """

    event_id: str
    item_id: str
    supplier_id: str | None
    timestamp: datetime
    sequence: int
    quantity_change: int
    reason: StockChangeReason
    price_at_change: Decimal | None = None
    created_by: str | None = None

    def __post_init__(self) -> None:
        if not self.item_id:
            raise ValueError("item_id must not be blank")
        if isinstance(self.quantity_change, bool) or not isinstance(
            self.quantity_change, int
        ):
            raise TypeError(
                f"quantity_change must be int, got {type(self.quantity_change).__name__}"
            )
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError(f"timestamp must be timezone-aware: {self.timestamp!r}")
        object.__setattr__(self, "timestamp", self.timestamp.astimezone(timezone.utc))
        if not isinstance(self.reason, StockChangeReason):
            object.__setattr__(self, "reason", StockChangeReason(self.reason))
        if self.price_at_change is not None:
            price = to_decimal(self.price_at_change)
            if price < 0:
                raise ValueError(
                    f"price_at_change cannot be negative for event {self.event_id}: {price}"
                )
            object.__setattr__(self, "price_at_change", price)

    @property
    def is_inbound(self) -> bool:
        """True when the event increases quantity on hand."""
        return self.quantity_change > 0

    @property
    def is_outbound(self) -> bool:
        """True when the event decreases quantity on hand."""
        return self.quantity_change < 0

    @property
    def is_priced_inbound(self) -> bool:
        """True when the event establishes a new cost basis."""
        return self.quantity_change > 0 and self.price_at_change is not None

    @property
    def ordering_key(self) -> tuple[str, datetime, int]:
        """Sort key used by retrieval and checked by the streaming fold."""
        return (self.item_id, self.timestamp, self.sequence)
