"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.inventory_item_selector import (
    InventoryItemDTO,
    InventoryItemSelector,
)
from inventory_kernel.selectors.stock_event_selector import (
    ItemUpdateCount,
    StockEventSelector,
    StockUpdateFilter,
    StockUpdateRow,
)

__all__ = [
    "InventoryItemDTO",
    "InventoryItemSelector",
    "ItemUpdateCount",
    "StockEventSelector",
    "StockUpdateFilter",
    "StockUpdateRow",
]
