"""
Module: inventory_kernel.selectors.stock_event_selector
Responsibility: Read-only queries over the stock event ledger: the ordered
    event slice consumed by the valuation engine, per-item update counts and
    the multi-criteria ledger search.
Architecture position: Kernel > Selectors.  This is the SQL implementation of
    the ``EventStore`` protocol consumed by ``inventory_engines.retrieval``.

Invariants enforced:
    - Deterministic order: fetch_events() orders by
      (item_id, occurred_at, seq), so equal timestamps never reorder.
    - UTC everywhere: bound parameters are converted to UTC before they reach
      the database, and naive values read back (SQLite drops the offset) are
      interpreted as UTC.
    - Domain values out: rows are converted to frozen ``StockEvent`` values;
      ORM instances never leave this module.

Failure modes:
    - RetrievalFailureError wrapping any SQLAlchemyError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select

from inventory_kernel.domain.stock_event import StockChangeReason, StockEvent
from inventory_kernel.models.inventory_item import InventoryItemModel
from inventory_kernel.models.stock_event import StockEventModel
from inventory_kernel.selectors.base import BaseSelector


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class StockUpdateFilter:
    """Criteria for a ledger search.  None means "no constraint"."""

    start: datetime | None = None
    end: datetime | None = None
    item_name: str | None = None
    supplier_id: str | None = None
    created_by: str | None = None
    min_change: int | None = None
    max_change: int | None = None


@dataclass(frozen=True)
class StockUpdateRow:
    """One ledger search hit, joined with the item's display name."""

    event_id: str
    item_id: str
    item_name: str | None
    supplier_id: str | None
    quantity_change: int
    reason: StockChangeReason
    created_by: str | None
    timestamp: datetime
    price_at_change: Decimal | None


@dataclass(frozen=True)
class ItemUpdateCount:
    """Number of ledger events recorded for one item."""

    item_id: str
    item_name: str | None
    update_count: int


class StockEventSelector(BaseSelector[StockEventModel]):
    """
    Selector for the stock event ledger.

    Contract:
        fetch_events() returns every event with occurred_at before (or at,
        when inclusive) ``as_of``, optionally narrowed to one supplier and/or
        one item, as a list of StockEvent ordered by
        (item_id, timestamp, sequence).

    Guarantees:
        - Each call is a single query; callers freeze the result.
        - Prices come back as Decimal.

    Non-goals:
        - Does NOT replay or aggregate; that is the engines' job.
    """

    @staticmethod
    def to_domain(row: StockEventModel) -> StockEvent:
        """Convert an ORM row to an immutable StockEvent."""
        price = row.price_at_change
        if price is not None and not isinstance(price, Decimal):
            price = Decimal(str(price))
        return StockEvent(
            event_id=row.event_id,
            item_id=row.item_id,
            supplier_id=row.supplier_id,
            timestamp=as_utc(row.occurred_at),
            sequence=row.seq,
            quantity_change=row.quantity_change,
            reason=StockChangeReason(row.reason),
            price_at_change=price,
            created_by=row.created_by,
        )

    def fetch_events(
        self,
        as_of: datetime,
        inclusive: bool = True,
        supplier_id: str | None = None,
        item_id: str | None = None,
    ) -> list[StockEvent]:
        """
        Fetch the ordered event slice up to ``as_of``.

        Args:
            as_of: Upper time bound (always applied).
            inclusive: True for ``<=``, False for ``<``.
            supplier_id: Restrict to events carrying this supplier.
            item_id: Restrict to one item.

        Returns:
            List of StockEvent ordered by (item_id, timestamp, sequence).
        """
        bound = as_utc(as_of)
        query = select(StockEventModel)
        if inclusive:
            query = query.where(StockEventModel.occurred_at <= bound)
        else:
            query = query.where(StockEventModel.occurred_at < bound)

        if supplier_id is not None:
            query = query.where(StockEventModel.supplier_id == supplier_id)

        if item_id is not None:
            query = query.where(StockEventModel.item_id == item_id)

        query = query.order_by(
            StockEventModel.item_id,
            StockEventModel.occurred_at,
            StockEventModel.seq,
        )

        rows = self._execute("fetch_events", query).scalars().all()
        return [self.to_domain(row) for row in rows]

    def has_events(self, item_id: str) -> bool:
        """Return True if at least one event exists for ``item_id``."""
        query = (
            select(StockEventModel.id)
            .where(StockEventModel.item_id == item_id)
            .limit(1)
        )
        return self._execute("has_events", query).first() is not None

    def count_events_by_item(self, supplier_id: str) -> list[ItemUpdateCount]:
        """
        Count ledger events per item for one supplier.

        Returns:
            ItemUpdateCount rows ordered by count descending, then item_id.
        """
        update_count = func.count(StockEventModel.id).label("update_count")
        query = (
            select(
                StockEventModel.item_id,
                InventoryItemModel.name,
                update_count,
            )
            .outerjoin(
                InventoryItemModel,
                InventoryItemModel.item_id == StockEventModel.item_id,
            )
            .where(StockEventModel.supplier_id == supplier_id)
            .group_by(StockEventModel.item_id, InventoryItemModel.name)
            .order_by(update_count.desc(), StockEventModel.item_id)
        )
        rows = self._execute("count_events_by_item", query).all()
        return [
            ItemUpdateCount(item_id=item_id, item_name=name, update_count=count)
            for item_id, name, count in rows
        ]

    def search(self, criteria: StockUpdateFilter) -> list[StockUpdateRow]:
        """
        Multi-criteria ledger search.

        Text criteria match as follows: ``item_name`` is a case-insensitive
        substring of the catalog name, ``supplier_id`` and ``created_by`` are
        exact.  ``min_change``/``max_change`` bound the signed quantity change
        inclusively.  The caller validates the criteria.

        Returns:
            StockUpdateRow list ordered by timestamp descending, then
            sequence descending.
        """
        query = select(StockEventModel, InventoryItemModel.name).outerjoin(
            InventoryItemModel,
            InventoryItemModel.item_id == StockEventModel.item_id,
        )

        if criteria.start is not None:
            query = query.where(StockEventModel.occurred_at >= as_utc(criteria.start))
        if criteria.end is not None:
            query = query.where(StockEventModel.occurred_at <= as_utc(criteria.end))
        if criteria.item_name is not None:
            query = query.where(
                func.lower(InventoryItemModel.name).contains(
                    criteria.item_name.lower(), autoescape=True
                )
            )
        if criteria.supplier_id is not None:
            query = query.where(StockEventModel.supplier_id == criteria.supplier_id)
        if criteria.created_by is not None:
            query = query.where(StockEventModel.created_by == criteria.created_by)
        if criteria.min_change is not None:
            query = query.where(StockEventModel.quantity_change >= criteria.min_change)
        if criteria.max_change is not None:
            query = query.where(StockEventModel.quantity_change <= criteria.max_change)

        query = query.order_by(
            StockEventModel.occurred_at.desc(),
            StockEventModel.seq.desc(),
        )

        rows = self._execute("search_stock_updates", query).all()
        results = []
        for row, item_name in rows:
            event = self.to_domain(row)
            results.append(
                StockUpdateRow(
                    event_id=event.event_id,
                    item_id=event.item_id,
                    item_name=item_name,
                    supplier_id=event.supplier_id,
                    quantity_change=event.quantity_change,
                    reason=event.reason,
                    created_by=event.created_by,
                    timestamp=event.timestamp,
                    price_at_change=event.price_at_change,
                )
            )
        return results
