"""
Module: inventory_kernel.models.inventory_item
Responsibility: ORM persistence for the inventory item catalog: display name,
    current supplier, reorder minimum and the cached on-hand quantity.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``quantity`` is a projection of the stock event ledger, maintained by
      StockLedgerService.record().  The replay is authoritative; the
      analytics service can report drift between the two.
    - ``minimum_quantity`` NULL means "use the configured default threshold".

Failure modes:
    - IntegrityError on duplicate item_id.
"""

from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class InventoryItemModel(Base):
    """Catalog entry for one inventory item."""

    __tablename__ = "inventory_items"

    item_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    supplier_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
    )

    minimum_quantity: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    # Cached projection of the ledger
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<InventoryItemModel {self.item_id} qty={self.quantity}>"
