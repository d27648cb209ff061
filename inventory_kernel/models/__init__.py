"""ORM models for the inventory kernel."""

from inventory_kernel.models.inventory_item import InventoryItemModel
from inventory_kernel.models.stock_event import StockEventModel
from inventory_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "InventoryItemModel",
    "SequenceCounter",
    "StockEventModel",
]
