"""
Module: inventory_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    ``inventory_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel/domain, inventory_kernel/exceptions,
    inventory_kernel/logging_config and sibling engine modules.
    MUST NOT import inventory_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Timestamps and dates are passed in by the services layer.
    - Decimal-only arithmetic for every cost and value.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``inventory_engines.tracer``), emitting INVENTORY_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from inventory_engines import EventRetriever, WacReplayEngine
    from inventory_engines import ValuationAggregator, LowStockDetector
"""

from inventory_engines.aggregation import (
    MonthlyMovement,
    SupplierTotal,
    ValuationAggregator,
    ValuationPoint,
    ValuationReport,
    ValuationSeries,
    ValuationSnapshot,
    days_between,
    end_of_day,
)
from inventory_engines.financial_summary import (
    FinancialSummary,
    FinancialSummaryCalculator,
)
from inventory_engines.low_stock import LowStockDetector, LowStockItem
from inventory_engines.price_trend import DailyPrice, PricePoint, PriceTrendProjector
from inventory_engines.replay import (
    DataIntegrityWarning,
    IntegrityIssue,
    ItemReplayResult,
    ReplayOutcome,
    ReplayPoint,
    ReplayState,
    WacReplayEngine,
)
from inventory_engines.retrieval import (
    EventRetriever,
    EventSlice,
    EventStore,
    blank_to_none,
    day_bounds,
    group_by_item,
    require_non_blank,
    resolve_date_window,
    validate_window,
)
from inventory_engines.tracer import traced_engine

__all__ = [
    "DailyPrice",
    "DataIntegrityWarning",
    "EventRetriever",
    "EventSlice",
    "EventStore",
    "FinancialSummary",
    "FinancialSummaryCalculator",
    "IntegrityIssue",
    "ItemReplayResult",
    "LowStockDetector",
    "LowStockItem",
    "MonthlyMovement",
    "PricePoint",
    "PriceTrendProjector",
    "ReplayOutcome",
    "ReplayPoint",
    "ReplayState",
    "SupplierTotal",
    "ValuationAggregator",
    "ValuationPoint",
    "ValuationReport",
    "ValuationSeries",
    "ValuationSnapshot",
    "WacReplayEngine",
    "blank_to_none",
    "day_bounds",
    "days_between",
    "end_of_day",
    "group_by_item",
    "require_non_blank",
    "resolve_date_window",
    "traced_engine",
    "validate_window",
]
