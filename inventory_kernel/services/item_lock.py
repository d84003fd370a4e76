"""
ItemLockRegistry -- per-item mutual exclusion inside one process.

Every mutating ledger operation holds the lock of the item it touches for
the whole database transaction.  Operations on different items never share
a lock.  Locks are created on demand and dropped once no caller holds a
reference to them.

The database row locks taken by the services give the same guarantee across
processes on PostgreSQL.  SQLite has no row locks, so for SQLite this
registry is the only per-item guard and the database must be used by a
single process.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

from inventory_kernel.exceptions import ItemLockTimeoutError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.item_lock")


class _ItemLock:
    # threading.Lock cannot be weakly referenced; this wrapper can
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


class ItemLockRegistry:
    """Maps item id to a lock, weakly, so idle items cost nothing."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, _ItemLock] = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, item_id) -> _ItemLock:
        key = str(item_id)
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _ItemLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, item_id, timeout: float) -> Iterator[None]:
        """
        Hold the item's lock for the duration of the block.

        Raises:
            ItemLockTimeoutError: The lock was not acquired within timeout.
        """
        entry = self._lock_for(item_id)
        if not entry.lock.acquire(timeout=timeout):
            logger.warning(
                "item_lock_timeout",
                extra={"item_id": str(item_id), "timeout_seconds": timeout},
            )
            raise ItemLockTimeoutError(str(item_id), timeout)
        try:
            yield
        finally:
            entry.lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
