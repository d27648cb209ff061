"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the read side of the kernel, turning ledger and catalog rows into
    frozen domain values and DTOs without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or domain
      values, NOT raw ORM model instances.
    - Session ownership: the caller owns the session and its transaction scope.

Failure modes:
    - RetrievalFailureError when the database rejects or cannot run a query
      (wrapping the SQLAlchemyError as __cause__).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.exceptions import RetrievalFailureError
from inventory_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("selectors")


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or domain values.  They MUST NOT mutate any data.

    Guarantees:
        - session is stored as a public attribute for subclass query use.
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    def _execute(self, operation: str, statement):
        """
        Run a read statement, translating driver failures.

        Raises:
            RetrievalFailureError: with the SQLAlchemyError as __cause__.
                Never retried here; the caller decides.
        """
        try:
            return self.session.execute(statement)
        except SQLAlchemyError as exc:
            logger.error(
                "retrieval_failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise RetrievalFailureError(operation, str(exc)) from exc
