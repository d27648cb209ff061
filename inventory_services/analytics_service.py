"""
inventory_services.analytics_service -- Stock valuation and analytics orchestration.

Responsibility:
    The external face of the valuation engine.  Validates and normalizes
    analytics requests, resolves "now" and default windows from the clock
    and configuration, fetches one immutable event slice per request, and
    hands it to the pure engines.

Architecture position:
    Services -- orchestration over kernel selectors and engines.
    Composes EventRetriever (over StockEventSelector by default),
    WacReplayEngine, ValuationAggregator, PriceTrendProjector,
    LowStockDetector and FinancialSummaryCalculator.

Invariants enforced:
    - Fail fast per request: invalid windows, blank required ids and
      inconsistent filters raise before anything is fetched.
    - Fail soft per item: data-integrity problems surface as warnings in
      the returned report, never as exceptions.
    - One fetch per computation; no caching across requests.
    - Read-only: never flushes, commits or writes.

Failure modes:
    - InvalidRangeError, MissingParameterError, InvalidFilterError,
      ItemNotFoundError for bad requests.
    - RetrievalFailureError propagated from the event store, never retried.

Audit relevance:
    Every request logs its parameters and outcome counts under
    ``inventory_kernel.services.analytics`` with item/supplier bound into
    the LogContext.

Usage:
    service = StockAnalyticsService(session, clock=SystemClock())
    report = service.compute_valuation(as_of=datetime.now(timezone.utc))
    report.total_value, report.warnings
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from inventory_config import InventoryConfiguration, get_active_config
from inventory_engines.aggregation import (
    MonthlyMovement,
    SupplierTotal,
    ValuationAggregator,
    ValuationReport,
    ValuationSeries,
    days_between,
    end_of_day,
)
from inventory_engines.financial_summary import (
    FinancialSummary,
    FinancialSummaryCalculator,
)
from inventory_engines.low_stock import LowStockDetector, LowStockItem
from inventory_engines.price_trend import PricePoint, PriceTrendProjector
from inventory_engines.replay import WacReplayEngine
from inventory_engines.retrieval import (
    EventRetriever,
    EventStore,
    blank_to_none,
    day_bounds,
    require_non_blank,
    resolve_date_window,
    validate_window,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import (
    InvalidFilterError,
    ItemNotFoundError,
    MissingParameterError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.inventory_item_selector import InventoryItemSelector
from inventory_kernel.selectors.stock_event_selector import (
    ItemUpdateCount,
    StockEventSelector,
    StockUpdateFilter,
    StockUpdateRow,
)

logger = get_logger("services.analytics")


@dataclass(frozen=True)
class ProjectionDrift:
    """A catalog quantity that disagrees with the replayed ledger."""

    item_id: str
    cached_quantity: int
    replayed_quantity: int

    @property
    def difference(self) -> int:
        return self.cached_quantity - self.replayed_quantity


class StockAnalyticsService:
    """
    Orchestrates valuation and analytics requests.

    Contract:
        Receives a Session (for the SQL selectors), an optional Clock, an
        optional InventoryConfiguration and an optional EventStore.  When
        no store is given the SQL StockEventSelector is used.

    Guarantees:
        - All decimal outputs are Decimal.
        - Date parameters are UTC calendar days; a day window [start, end]
          covers start 00:00 up to (end + 1 day) 00:00.

    Non-goals:
        - Does NOT append to the ledger; see StockLedgerService.
        - Does NOT cache results between calls.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: InventoryConfiguration | None = None,
        store: EventStore | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._event_selector = StockEventSelector(session)
        self._item_selector = InventoryItemSelector(session)
        self._retriever = EventRetriever(store or self._event_selector)

        self._engine = WacReplayEngine(self._config.valuation.rounding_policy())
        self._aggregator = ValuationAggregator()
        self._projector = PriceTrendProjector(self._engine)
        self._detector = LowStockDetector(
            self._config.analytics.default_low_stock_threshold
        )
        self._calculator = FinancialSummaryCalculator(self._engine)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_known_item(self, item_id: str) -> None:
        if self._item_selector.get(item_id) is not None:
            return
        if self._event_selector.has_events(item_id):
            return
        logger.warning("analytics_item_not_found", extra={"item_id": item_id})
        raise ItemNotFoundError(item_id)

    def _window(self, start: date | None, end: date | None) -> tuple[date, date]:
        return resolve_date_window(
            start,
            end,
            today=self._clock.today(),
            default_days=self._config.analytics.default_window_days,
        )

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def compute_valuation(
        self,
        as_of: datetime | None = None,
        item_id: str | None = None,
        supplier_id: str | None = None,
    ) -> ValuationReport:
        """
        Point-in-time valuation of every item (or one item / supplier).

        Events at exactly ``as_of`` are included.  Inconsistent items are
        excluded from totals and listed in ``warnings``.
        """
        as_of = as_of or self._clock.now()
        item_id = blank_to_none(item_id)
        supplier_id = blank_to_none(supplier_id)

        with LogContext.bind(item_id=item_id, supplier_id=supplier_id):
            if item_id is not None:
                self._require_known_item(item_id)

            event_slice = self._retriever.retrieve(
                as_of, inclusive=True, supplier_id=supplier_id, item_id=item_id
            )
            results = self._engine.replay_all(event_slice.events)
            report = self._aggregator.valuation(results, as_of)

            logger.info(
                "valuation_request_completed",
                extra={
                    "as_of": as_of,
                    "event_count": len(event_slice),
                    "item_count": report.item_count,
                    "warning_count": len(report.warnings),
                    "total_value": report.total_value,
                },
            )
            return report

    def compute_price_trend(
        self,
        item_id: str,
        start: date,
        end: date,
        supplier_id: str | None = None,
    ) -> tuple[PricePoint, ...]:
        """
        Unit price paid and resulting WAC at each priced inbound event of
        ``item_id`` between ``start`` and ``end`` (inclusive days).
        """
        item_id = require_non_blank(item_id, "item_id")
        if start is None:
            raise MissingParameterError("start")
        if end is None:
            raise MissingParameterError("end")
        validate_window(start, end)
        supplier_id = blank_to_none(supplier_id)

        with LogContext.bind(item_id=item_id, supplier_id=supplier_id):
            self._require_known_item(item_id)
            lower, upper = day_bounds(start, end)
            # Full history up to the window end so the WAC on each point is right.
            event_slice = self._retriever.retrieve(upper, inclusive=False, item_id=item_id)
            points = self._projector.project(
                event_slice.events, start=lower, end=upper, supplier_id=supplier_id
            )
            logger.info(
                "price_trend_computed",
                extra={"start": start, "end": end, "point_count": len(points)},
            )
            return points

    def compute_monthly_movement(
        self,
        start: date | None = None,
        end: date | None = None,
        supplier_id: str | None = None,
    ) -> tuple[MonthlyMovement, ...]:
        """Stock in/out per UTC month; missing dates default to the last N days."""
        start, end = self._window(start, end)
        supplier_id = blank_to_none(supplier_id)
        lower, upper = day_bounds(start, end)

        with LogContext.bind(supplier_id=supplier_id):
            event_slice = self._retriever.retrieve(
                upper, inclusive=False, supplier_id=supplier_id
            )
            movement = self._aggregator.monthly_movement(event_slice.events, lower, upper)
            logger.info(
                "monthly_movement_computed",
                extra={"start": start, "end": end, "period_count": len(movement)},
            )
            return movement

    def find_low_stock_items(
        self,
        supplier_id: str | None = None,
    ) -> tuple[LowStockItem, ...]:
        """
        Items whose replayed quantity is strictly below their threshold.

        Stocked items are scoped by the supplier stamped on their events.
        Thresholds come from the whole catalog, so an item keeps its
        minimum after a supplier change.  Only items with no ledger events
        at all are reported at quantity 0, scoped by catalog supplier.
        """
        supplier_id = blank_to_none(supplier_id)

        with LogContext.bind(supplier_id=supplier_id):
            event_slice = self._retriever.retrieve(
                self._clock.now(), inclusive=True, supplier_id=supplier_id
            )
            results = self._engine.replay_all(event_slice.events)
            unstocked = self._item_selector.list_unstocked(supplier_id)
            return self._detector.detect(
                results,
                thresholds=self._item_selector.thresholds(),
                unstocked={item.item_id: item.supplier_id for item in unstocked},
            )

    # ------------------------------------------------------------------
    # Additional analytics
    # ------------------------------------------------------------------

    def low_stock_count(self, supplier_id: str | None = None) -> int:
        return len(self.find_low_stock_items(supplier_id))

    def stock_value_over_time(
        self,
        start: date | None = None,
        end: date | None = None,
        supplier_id: str | None = None,
    ) -> ValuationSeries:
        """Fleet value at the end of each day in the window."""
        start, end = self._window(start, end)
        supplier_id = blank_to_none(supplier_id)
        days = days_between(start, end)

        with LogContext.bind(supplier_id=supplier_id):
            event_slice = self._retriever.retrieve(
                end_of_day(end), inclusive=False, supplier_id=supplier_id
            )
            results = self._engine.replay_all(
                event_slice.events, boundaries=[end_of_day(day) for day in days]
            )
            return self._aggregator.daily_series(results, days)

    def total_stock_per_supplier(self) -> tuple[SupplierTotal, ...]:
        """Current quantity and value per supplier, largest quantity first."""
        event_slice = self._retriever.retrieve(self._clock.now(), inclusive=True)
        results = self._engine.replay_all(event_slice.events)
        return self._aggregator.per_supplier(results)

    def item_update_frequency(self, supplier_id: str) -> list[ItemUpdateCount]:
        """Number of ledger events per item for a supplier, busiest first."""
        supplier_id = require_non_blank(supplier_id, "supplier_id")
        return self._event_selector.count_events_by_item(supplier_id)

    def financial_summary(
        self,
        start: date,
        end: date,
        supplier_id: str | None = None,
    ) -> FinancialSummary:
        """WAC roll-forward over the inclusive day window [start, end]."""
        if start is None:
            raise MissingParameterError("start")
        if end is None:
            raise MissingParameterError("end")
        validate_window(start, end)
        supplier_id = blank_to_none(supplier_id)
        lower, upper = day_bounds(start, end)

        with LogContext.bind(supplier_id=supplier_id):
            event_slice = self._retriever.retrieve(
                upper, inclusive=False, supplier_id=supplier_id
            )
            return self._calculator.summarize(event_slice.events, lower, upper)

    def filtered_stock_updates(
        self,
        criteria: StockUpdateFilter | None,
    ) -> list[StockUpdateRow]:
        """
        Search the ledger, newest first.

        With neither bound given the window is the last N days up to now;
        a single bound is applied as given.
        """
        if criteria is None:
            raise MissingParameterError("filter")

        start, end = criteria.start, criteria.end
        if start is None and end is None:
            end = self._clock.now()
            start = end - timedelta(days=self._config.analytics.default_window_days)
        validate_window(start, end)

        if (
            criteria.min_change is not None
            and criteria.max_change is not None
            and criteria.min_change > criteria.max_change
        ):
            raise InvalidFilterError(
                "min_change",
                f"min_change {criteria.min_change} > max_change {criteria.max_change}",
            )

        normalized = replace(
            criteria,
            start=start,
            end=end,
            item_name=blank_to_none(criteria.item_name),
            supplier_id=blank_to_none(criteria.supplier_id),
            created_by=blank_to_none(criteria.created_by),
        )
        rows = self._event_selector.search(normalized)
        logger.info(
            "stock_updates_filtered",
            extra={"start": start, "end": end, "row_count": len(rows)},
        )
        return rows

    def check_quantity_projection(
        self,
        supplier_id: str | None = None,
    ) -> tuple[ProjectionDrift, ...]:
        """
        Compare each catalog item's cached quantity with its replayed one.

        The replay always covers the item's full history regardless of the
        supplier stamped on individual events; ``supplier_id`` only selects
        which catalog items are checked.
        """
        supplier_id = blank_to_none(supplier_id)
        catalog = self._item_selector.list_items(supplier_id)
        event_slice = self._retriever.retrieve(self._clock.now(), inclusive=True)
        replayed = {
            result.item_id: result.state.quantity_on_hand
            for result in self._engine.replay_all(event_slice.events)
        }

        drifts = []
        for item in catalog:
            replayed_quantity = replayed.get(item.item_id, 0)
            if item.quantity != replayed_quantity:
                drifts.append(
                    ProjectionDrift(
                        item_id=item.item_id,
                        cached_quantity=item.quantity,
                        replayed_quantity=replayed_quantity,
                    )
                )
                logger.warning(
                    "quantity_projection_drift",
                    extra={
                        "item_id": item.item_id,
                        "cached_quantity": item.quantity,
                        "replayed_quantity": replayed_quantity,
                    },
                )
        return tuple(drifts)
