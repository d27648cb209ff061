"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Valuation requests fail for a small number of well-understood reasons, and
callers react to each one differently: an inverted date window is the
requester's mistake, an unreachable event store is infrastructure, a write to
a ledger row is a bug or an attack.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Per-item data-integrity problems found during replay are NOT exceptions.
They are ``DataIntegrityWarning`` records (see
``inventory_engines.replay``) so that one bad item never fails a
fleet-wide report.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from InventoryKernelError:

    InventoryKernelError (base)
    |
    +-- RequestError
    |   +-- InvalidRangeError
    |   +-- MissingParameterError
    |   +-- InvalidFilterError
    |   +-- ItemNotFoundError
    |
    +-- RetrievalError
    |   +-- RetrievalFailureError
    |   +-- EventOrderingError
    |
    +-- LedgerError
    |   +-- DuplicateStockEventError
    |   +-- InvalidStockChangeError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                   | When Raised
--------------|------------------------|-------------------------------------------
Request       | INVALID_RANGE          | start > end on a time-bounded query
              | MISSING_PARAMETER      | Required identifier blank or None
              | INVALID_FILTER         | min_change > max_change on a ledger search
              | ITEM_NOT_FOUND         | Item-scoped query for an unknown item
--------------|------------------------|-------------------------------------------
Retrieval     | RETRIEVAL_FAILURE      | Event store unreachable / query failed
              | EVENT_OUT_OF_ORDER     | Stream not ordered by (item, time, seq)
--------------|------------------------|-------------------------------------------
Ledger        | DUPLICATE_STOCK_EVENT  | event_id already recorded
              | INVALID_STOCK_CHANGE   | Zero change or negative unit price
--------------|------------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION | UPDATE/DELETE of a ledger row

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        report = analytics.compute_monthly_movement(start, end)
    except InvalidRangeError as e:
        return {"error": e.code, "start": e.start, "end": e.end}
    except RetrievalFailureError as e:
        # The engine never retries; the caller decides.
        log.error("event store unavailable", extra={"operation": e.operation})
        raise
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Request-related exceptions


class RequestError(InventoryKernelError):
    """Base exception for rejected analytics requests."""

    code: str = "REQUEST_ERROR"


class InvalidRangeError(RequestError):
    """Time-bounded query with start after end."""

    code: str = "INVALID_RANGE"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"start must be on or before end: {start} > {end}")


class MissingParameterError(RequestError):
    """A required parameter was blank or missing."""

    code: str = "MISSING_PARAMETER"

    def __init__(self, parameter: str):
        self.parameter = parameter
        super().__init__(f"{parameter} must not be blank")


class InvalidFilterError(RequestError):
    """A search filter is internally inconsistent."""

    code: str = "INVALID_FILTER"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid filter on {field}: {reason}")


class ItemNotFoundError(RequestError):
    """Item-scoped query for an item absent from the catalog and the ledger."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


# Retrieval-related exceptions


class RetrievalError(InventoryKernelError):
    """Base exception for event retrieval errors."""

    code: str = "RETRIEVAL_ERROR"


class RetrievalFailureError(RetrievalError):
    """The event store could not be queried.

    Wraps the underlying driver error as ``__cause__``.  Never retried
    inside the kernel or the engines.
    """

    code: str = "RETRIEVAL_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Event retrieval failed during {operation}: {reason}")


class EventOrderingError(RetrievalError):
    """An event stream handed to the streaming fold is not sorted."""

    code: str = "EVENT_OUT_OF_ORDER"

    def __init__(self, event_id: str, previous_event_id: str):
        self.event_id = event_id
        self.previous_event_id = previous_event_id
        super().__init__(
            f"Event {event_id} is ordered before {previous_event_id}; "
            "stream must be sorted by (item_id, timestamp, sequence)"
        )


# Ledger-related exceptions


class LedgerError(InventoryKernelError):
    """Base exception for ledger append errors."""

    code: str = "LEDGER_ERROR"


class DuplicateStockEventError(LedgerError):
    """A stock event with this event_id was already recorded."""

    code: str = "DUPLICATE_STOCK_EVENT"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Stock event already recorded: {event_id}")


class InvalidStockChangeError(LedgerError):
    """A stock change cannot be appended to the ledger."""

    code: str = "INVALID_STOCK_CHANGE"

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Invalid stock change for {item_id}: {reason}")


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted modification of an append-only ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, operation: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(
            f"{entity_type} {entity_id} is immutable; {operation} is not allowed"
        )
