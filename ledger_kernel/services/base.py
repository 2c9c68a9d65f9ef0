"""
BaseService -- common base for ledger services.

Responsibility:
    Provides the common constructor and the single transaction-boundary
    helper used by every public ledger operation.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - One atomic unit per public operation.  With ``auto_commit=True`` the
      service owns the transaction: commit on success, rollback on any
      failure.  With ``auto_commit=False`` the operation runs inside a
      SAVEPOINT of the caller's transaction and never commits; a failure
      rolls back only what the operation staged.
    - Expected failures (LedgerError) and storage faults (SQLAlchemyError)
      are converted into failure results.  Anything else is re-raised after
      rollback.
    - Flush-only helpers (methods without a result type) never commit or
      rollback; module services compose them inside their own boundary.

Failure modes:
    - Unexpected exceptions propagate to the caller after rollback.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import STORAGE_ERROR_CODE, LedgerError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.base")


@dataclass(frozen=True)
class OperationResult:
    """
    Plain result returned by every public operation.

    ``error`` and ``error_code`` are set only on failure.  ``message`` is
    always human-readable.
    """

    success: bool
    message: str = ""
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def failure(cls, message: str, code: str):
        return cls(success=False, message=message, error=message, error_code=code)


R = TypeVar("R", bound=OperationResult)


class BaseService:
    """
    Base class for services that expose public ledger operations.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and an optional
        Clock.  ``auto_commit`` decides who owns the transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.auto_commit = auto_commit

    def _execute(
        self,
        operation: str,
        work: Callable[[], R],
        result_type: type[R],
    ) -> R:
        """Run ``work`` as one atomic unit and translate failures to results."""
        try:
            if self.auto_commit:
                result = work()
                self.session.commit()
            else:
                with self.session.begin_nested():
                    result = work()
            return result
        except LedgerError as exc:
            self._rollback()
            logger.warning(
                f"{operation}_rejected",
                extra={"error_code": exc.code, "error": str(exc)},
            )
            return result_type.failure(str(exc), exc.code)
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error(f"{operation}_storage_error", exc_info=True)
            return result_type.failure(
                f"Failed to {operation.replace('_', ' ')}: {exc.__class__.__name__}",
                STORAGE_ERROR_CODE,
            )
        except Exception:
            self._rollback()
            raise

    def _rollback(self) -> None:
        # With auto_commit=False the savepoint context already rolled back.
        if self.auto_commit:
            self.session.rollback()
