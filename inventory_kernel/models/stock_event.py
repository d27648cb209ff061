"""
Module: inventory_kernel.models.stock_event
Responsibility: ORM persistence for the append-only stock event ledger.  Each
    row records one signed quantity change to one inventory item, optionally
    carrying the unit price paid for inbound stock.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Append-only.  Rows are never updated or deleted (ORM listeners in
      db/immutability.py raise ImmutabilityViolationError).
    - Unique event_id.  Enforced by a UNIQUE constraint; the ledger service
      checks first and raises DuplicateStockEventError.
    - Deterministic order.  ``seq`` is allocated from the "stock_event"
      sequence counter and breaks ties between events that share
      ``occurred_at``.
    - Decimal prices.  price_at_change is Numeric(38, 9), never float.

Failure modes:
    - IntegrityError on duplicate event_id or seq.
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.

Audit relevance:
    The ledger is the single source of truth for every valuation, trend
    and summary.  ``created_by`` records who appended the change.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class StockEventModel(Base):
    """
    Persistent storage for one stock change.

    Contract:
        Written once by StockLedgerService.record() and read back by
        StockEventSelector as a domain ``StockEvent``.

    Guarantees:
        - event_id and seq are unique.
        - (item_id, occurred_at, seq) index supports ordered replay.

    Non-goals:
        - Does NOT store running quantity or cost; both are replayed.
    """

    __tablename__ = "stock_events"

    __table_args__ = (
        # Query: ordered replay of one item's history
        Index("idx_stock_event_item_time", "item_id", "occurred_at", "seq"),
        # Query: supplier-scoped aggregates
        Index("idx_stock_event_supplier", "supplier_id"),
        # Query: windowed reads across all items
        Index("idx_stock_event_occurred_at", "occurred_at"),
    )

    event_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    item_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Supplier at the time of the change; nullable for unattributed stock
    supplier_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # Signed: positive inbound, negative outbound, never zero
    quantity_change: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    price_at_change: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    # StockChangeReason value
    reason: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    created_by: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StockEventModel {self.event_id} item={self.item_id} "
            f"change={self.quantity_change} seq={self.seq}>"
        )
