"""
RetryPolicy -- bounded retry of ledger transactions on write conflicts.

Responsibility:
    Re-runs a whole unit of work when the database (or the per-item lock
    registry) reports a conflict that a fresh attempt can resolve:
    serialization failures, deadlocks, lock timeouts and SQLite's
    "database is locked".  Domain errors are never retried.

Architecture position:
    Kernel > Services -- used by the InventoryLedger facade around each
    mutating operation.  The wrapped callable must open its own
    transaction, so that every attempt starts from committed state.

Failure modes:
    - ConcurrentModificationError once max_attempts conflicts in a row have
      been seen.  The last underlying error is chained as __cause__.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError

from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    ItemLockTimeoutError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

# Lower-cased fragments of driver messages that mean "try again"
_CONFLICT_MARKERS = (
    "deadlock",
    "could not serialize",
    "serialization failure",
    "lock timeout",
    "lock not available",
    "database is locked",
    "database table is locked",
)

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_conflict(exc: BaseException) -> bool:
    """True when ``exc`` is a transient write conflict."""
    if isinstance(exc, ItemLockTimeoutError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    sqlstate = getattr(exc.orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _CONFLICT_MARKERS)


class RetryPolicy:
    """
    Exponential-backoff retry for conflicting transactions.

    Attempt n (1-based) that conflicts sleeps ``backoff_seconds * 2**(n-1)``
    before attempt n+1.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * (2 ** (attempt - 1))

    def run(
        self,
        operation: str,
        fn: Callable[[], T],
        item_id=None,
    ) -> T:
        """
        Call ``fn`` until it succeeds, fails with a non-conflict error, or
        the attempt budget is spent.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except (OperationalError, ItemLockTimeoutError) as exc:
                if not is_conflict(exc):
                    raise
                if attempt == self.max_attempts:
                    logger.error(
                        "retry_exhausted",
                        extra={
                            "operation": operation,
                            "item_id": str(item_id) if item_id else None,
                            "attempts": attempt,
                            "error": str(exc),
                        },
                    )
                    raise ConcurrentModificationError(
                        operation=operation,
                        item_id=str(item_id) if item_id else None,
                        attempts=attempt,
                    ) from exc

                delay = self.delay_for(attempt)
                logger.warning(
                    "retry_conflict",
                    extra={
                        "operation": operation,
                        "item_id": str(item_id) if item_id else None,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "delay_seconds": delay,
                    },
                )
                self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover
