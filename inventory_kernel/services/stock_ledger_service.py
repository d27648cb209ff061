"""
StockLedgerService -- the append path of the stock event ledger.

Responsibility:
    Validates and appends one stock change at a time, allocating its
    ordering sequence and keeping the catalog's cached quantity projection
    in step.  Also registers catalog entries.

Architecture position:
    Kernel > Services -- imperative shell.  Reads the clock only to default
    an event's timestamp; never computes valuations.

Invariants enforced:
    - Append-only: events are inserted, never updated (see
      db/immutability.py).
    - Unique event_id: duplicates raise DuplicateStockEventError before any
      row is written.
    - Non-zero signed change and non-negative unit price.
    - Ordered: every event gets the next value of the "stock_event"
      sequence from SequenceService.
    - Flush only: the caller owns the transaction.

Failure modes:
    - InvalidStockChangeError for a zero change, bad price, or blank item.
    - DuplicateStockEventError for a reused event_id.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import select

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.stock_event import StockChangeReason, StockEvent
from inventory_kernel.domain.values import to_decimal
from inventory_kernel.exceptions import (
    DuplicateStockEventError,
    InvalidStockChangeError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItemModel
from inventory_kernel.models.stock_event import StockEventModel
from inventory_kernel.selectors.stock_event_selector import StockEventSelector, as_utc
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[StockEventModel]):
    """
    Append-only writer for stock events.

    Contract:
        ``record()`` returns the recorded StockEvent exactly as replay will
        later read it back.

    Guarantees:
        - The catalog quantity of a registered item moves by exactly
          ``quantity_change``.
        - Nothing is committed.

    Non-goals:
        - Does NOT reject outbound changes that exceed stock on hand; replay
          reports those as data-integrity warnings.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def register_item(
        self,
        item_id: str,
        name: str,
        supplier_id: str | None = None,
        minimum_quantity: int | None = None,
    ) -> InventoryItemModel:
        """
        Add an item to the catalog with a cached quantity of zero.

        Raises:
            InvalidStockChangeError: blank item_id or negative minimum.
        """
        if not item_id or not item_id.strip():
            raise InvalidStockChangeError(str(item_id), "item_id must not be blank")
        if minimum_quantity is not None and minimum_quantity < 0:
            raise InvalidStockChangeError(
                item_id, f"minimum_quantity cannot be negative: {minimum_quantity}"
            )

        item = InventoryItemModel(
            item_id=item_id,
            name=name,
            supplier_id=supplier_id,
            minimum_quantity=minimum_quantity,
            quantity=0,
        )
        self.session.add(item)
        self.session.flush()
        logger.info(
            "inventory_item_registered",
            extra={"item_id": item_id, "supplier_id": supplier_id},
        )
        return item

    def record(
        self,
        item_id: str,
        quantity_change: int,
        reason: StockChangeReason | str,
        *,
        price_at_change: Decimal | str | int | None = None,
        supplier_id: str | None = None,
        occurred_at: datetime | None = None,
        created_by: str | None = None,
        event_id: str | None = None,
    ) -> StockEvent:
        """
        Append one stock change to the ledger.

        Args:
            item_id: Item whose quantity changes.
            quantity_change: Signed, non-zero delta.
            reason: StockChangeReason (or its value).
            price_at_change: Unit price; establishes cost basis on inbound.
            supplier_id: Supplier to stamp on the event.  Defaults to the
                catalog item's supplier when the item is registered.
            occurred_at: Event time; defaults to the clock's now.
            created_by: Actor recording the change.
            event_id: Caller-supplied identifier; a uuid4 string otherwise.

        Returns:
            The recorded StockEvent.
        """
        if not item_id or not item_id.strip():
            raise InvalidStockChangeError(str(item_id), "item_id must not be blank")
        if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
            raise InvalidStockChangeError(
                item_id, f"quantity_change must be an integer, got {quantity_change!r}"
            )
        if quantity_change == 0:
            raise InvalidStockChangeError(item_id, "quantity_change must not be zero")

        price = None
        if price_at_change is not None:
            try:
                price = to_decimal(price_at_change)
            except (TypeError, ValueError) as exc:
                raise InvalidStockChangeError(item_id, str(exc)) from exc
            if price < 0:
                raise InvalidStockChangeError(
                    item_id, f"price_at_change cannot be negative: {price}"
                )

        try:
            reason = StockChangeReason(reason)
        except ValueError as exc:
            raise InvalidStockChangeError(item_id, f"unknown reason {reason!r}") from exc

        event_id = event_id or str(uuid4())
        existing = self.session.execute(
            select(StockEventModel.id).where(StockEventModel.event_id == event_id)
        ).first()
        if existing is not None:
            logger.warning(
                "stock_event_duplicate_rejected",
                extra={"event_id": event_id, "item_id": item_id},
            )
            raise DuplicateStockEventError(event_id)

        item = self.session.execute(
            select(InventoryItemModel).where(InventoryItemModel.item_id == item_id)
        ).scalar_one_or_none()
        if supplier_id is None and item is not None:
            supplier_id = item.supplier_id

        timestamp = as_utc(occurred_at if occurred_at is not None else self._clock.now())
        seq = self._sequences.next_value(SequenceService.STOCK_EVENT)

        row = StockEventModel(
            event_id=event_id,
            item_id=item_id,
            supplier_id=supplier_id,
            occurred_at=timestamp,
            seq=seq,
            quantity_change=quantity_change,
            price_at_change=price,
            reason=reason.value,
            created_by=created_by,
        )
        self.session.add(row)

        if item is not None:
            item.quantity = item.quantity + quantity_change

        self.session.flush()

        logger.info(
            "stock_event_recorded",
            extra={
                "event_id": event_id,
                "item_id": item_id,
                "supplier_id": supplier_id,
                "quantity_change": quantity_change,
                "reason": reason.value,
                "seq": seq,
            },
        )
        return StockEventSelector.to_domain(row)
