"""
Module: inventory_kernel.selectors.inventory_item_selector
Responsibility: Read-only access to the inventory item catalog (names,
    supplier, reorder minimum, cached quantity).
Architecture position: Kernel > Selectors.

Failure modes:
    - RetrievalFailureError wrapping any SQLAlchemyError.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select

from inventory_kernel.models.inventory_item import InventoryItemModel
from inventory_kernel.models.stock_event import StockEventModel
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InventoryItemDTO:
    """Catalog entry as seen by the analytics layer."""

    item_id: str
    name: str
    supplier_id: str | None
    minimum_quantity: int | None
    quantity: int


class InventoryItemSelector(BaseSelector[InventoryItemModel]):
    """Selector for catalog rows."""

    @staticmethod
    def _to_dto(row: InventoryItemModel) -> InventoryItemDTO:
        return InventoryItemDTO(
            item_id=row.item_id,
            name=row.name,
            supplier_id=row.supplier_id,
            minimum_quantity=row.minimum_quantity,
            quantity=row.quantity,
        )

    def get(self, item_id: str) -> InventoryItemDTO | None:
        """Return the catalog entry for ``item_id``, or None."""
        row = self._execute(
            "get_item",
            select(InventoryItemModel).where(InventoryItemModel.item_id == item_id),
        ).scalar_one_or_none()
        return self._to_dto(row) if row is not None else None

    def list_items(self, supplier_id: str | None = None) -> list[InventoryItemDTO]:
        """
        List catalog entries ordered by item_id.

        Args:
            supplier_id: Restrict to items currently sourced from this supplier.
        """
        query = select(InventoryItemModel)
        if supplier_id is not None:
            query = query.where(InventoryItemModel.supplier_id == supplier_id)
        query = query.order_by(InventoryItemModel.item_id)
        rows = self._execute("list_items", query).scalars().all()
        return [self._to_dto(row) for row in rows]

    def list_unstocked(self, supplier_id: str | None = None) -> list[InventoryItemDTO]:
        """
        Catalog entries with no ledger events at all, ordered by item_id.

        Args:
            supplier_id: Restrict to items whose catalog supplier matches.
                Events are not filtered; an item with events stamped for any
                supplier is stocked.
        """
        has_event = (
            select(StockEventModel.id)
            .where(StockEventModel.item_id == InventoryItemModel.item_id)
            .exists()
        )
        query = select(InventoryItemModel).where(~has_event)
        if supplier_id is not None:
            query = query.where(InventoryItemModel.supplier_id == supplier_id)
        query = query.order_by(InventoryItemModel.item_id)
        rows = self._execute("list_unstocked", query).scalars().all()
        return [self._to_dto(row) for row in rows]

    def thresholds(self, supplier_id: str | None = None) -> dict[str, int | None]:
        """Map item_id to its reorder minimum (None when unset)."""
        return {
            item.item_id: item.minimum_quantity
            for item in self.list_items(supplier_id)
        }
