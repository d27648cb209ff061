"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.sequence_service import SequenceCounter, SequenceService
from inventory_kernel.services.stock_ledger_service import StockLedgerService

__all__ = [
    "SequenceCounter",
    "SequenceService",
    "StockLedgerService",
]
