"""Pure domain types for the inventory kernel."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.stock_event import StockChangeReason, StockEvent
from inventory_kernel.domain.values import RoundingPolicy, to_decimal

__all__ = [
    "Clock",
    "DeterministicClock",
    "RoundingPolicy",
    "StockChangeReason",
    "StockEvent",
    "SystemClock",
    "to_decimal",
]
