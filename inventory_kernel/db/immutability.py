"""
ORM-Level Immutability Enforcement for the stock ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

Every valuation figure is a replay of the stock event ledger.  If a recorded
event could be edited or deleted, yesterday's valuation would silently change
and no report could be reproduced.  Corrections are new events (ADJUSTMENT,
AUDIT, RETURN), never rewrites.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database:

    session.flush()
         |
         v
    [before_update event] --> _check_stock_event_update() --> ImmutabilityViolationError
         |                                                          ^
         v                                                          |
    [before_delete event] --> _check_stock_event_delete() ---------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity           | When Immutable         | Why
-----------------|------------------------|-----------------------------------
StockEventModel  | ALWAYS (from creation) | Valuation is a replay of the ledger

The item catalog (InventoryItemModel) is NOT protected: its cached quantity
is a projection updated on every append.

===============================================================================
USAGE
===============================================================================

    register_immutability_listeners()      # once at startup / test session
    unregister_immutability_listeners()    # tests that seed raw corruption
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(target, operation: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockEvent",
            "entity_id": target.event_id,
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type="StockEvent",
        entity_id=target.event_id,
        operation=operation,
    )


def _check_stock_event_update(mapper, connection, target):
    """Prevent any update to a recorded stock event."""
    raise _blocked(target, "UPDATE")


def _check_stock_event_delete(mapper, connection, target):
    """Prevent deletion of a recorded stock event."""
    raise _blocked(target, "DELETE")


def register_immutability_listeners():
    """
    Register the stock ledger immutability listeners.

    Idempotent: registering twice does not install duplicate listeners.
    """
    from inventory_kernel.models.stock_event import StockEventModel

    if not event.contains(StockEventModel, "before_update", _check_stock_event_update):
        event.listen(StockEventModel, "before_update", _check_stock_event_update)
    if not event.contains(StockEventModel, "before_delete", _check_stock_event_delete):
        event.listen(StockEventModel, "before_delete", _check_stock_event_delete)


def unregister_immutability_listeners():
    """
    Remove the stock ledger immutability listeners.

    WARNING: Only use this in tests that intentionally rewrite history.
    """
    from inventory_kernel.models.stock_event import StockEventModel

    for event_name, listener_fn in (
        ("before_update", _check_stock_event_update),
        ("before_delete", _check_stock_event_delete),
    ):
        if event.contains(StockEventModel, event_name, listener_fn):
            event.remove(StockEventModel, event_name, listener_fn)
