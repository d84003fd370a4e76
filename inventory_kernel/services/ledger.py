"""
InventoryLedger -- the external interface of the inventory ledger.

Responsibility:
    One method per ledger operation.  Each mutating call runs as a single
    database transaction, under the item's in-process lock, inside the
    bounded retry policy, with owner/item/operation bound into the log
    context.  Reads each run in their own short transaction.

Architecture position:
    Kernel > Services -- outermost kernel component.  Composes
    MasterItemService, BatchStore, FifoConsumptionService, DeletionGuard and
    the selectors.  Callers (HTTP handlers, workers, CLIs) talk only to this
    class and catch the typed errors of ``inventory_kernel.exceptions``.

Invariants enforced:
    - Per-item mutual exclusion: record_add, record_remove, rename_item and
      delete_item on the same item never overlap; different items never
      wait on each other.
    - All-or-nothing: a failure anywhere in an operation rolls back every
      row it touched.
    - Only conflicts are retried.  Domain errors surface on first attempt.

Failure modes:
    - Typed InventoryKernelError subclasses, unchanged from the services.
    - ConcurrentModificationError once retries are exhausted.

Usage:
    ledger = InventoryLedger(get_session_factory())
    item = ledger.register_item(owner_id, "Flour", "kg")
    ledger.record_add(owner_id, item.id, Decimal("5"), Decimal("10"))
    remove = ledger.record_remove(owner_id, item.id, Decimal("2"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.engine import session_scope
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    InventoryRow,
    InventorySummary,
    PeriodReportRow,
    ReportPeriod,
    TrendPoint,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.consumption_link import ConsumptionLink
from inventory_kernel.models.master_item import MasterItem
from inventory_kernel.models.transaction import InventoryTransaction
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.selectors.report_selector import ReportSelector
from inventory_kernel.services.batch_store import BatchStore
from inventory_kernel.services.deletion_guard import DeletionGuard
from inventory_kernel.services.fifo_service import FifoConsumptionService
from inventory_kernel.services.item_lock import ItemLockRegistry
from inventory_kernel.services.master_item_service import MasterItemService
from inventory_kernel.services.retry import RetryPolicy

logger = get_logger("services.ledger")

T = TypeVar("T")


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime knobs of the ledger (see inventory_config.bridges)."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    lock_timeout_seconds: float = 10.0
    low_stock_threshold: int = 5


def _lock_key(item_id) -> str:
    # Normalize so "ABC..." and UUID("abc...") share one lock
    return str(item_id).strip().lower()


class InventoryLedger:
    """
    Facade over the ledger services.

    Constructing a ledger registers the ORM immutability listeners.
    Returned ORM rows are detached (the session factory must use
    ``expire_on_commit=False``); their loaded attributes stay readable.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: LedgerSettings | None = None,
        locks: ItemLockRegistry | None = None,
    ):
        register_immutability_listeners()
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self.settings = config or LedgerSettings()
        self._locks = locks or ItemLockRegistry()
        self._retry = RetryPolicy(
            max_attempts=self.settings.max_attempts,
            backoff_seconds=self.settings.backoff_seconds,
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _bind(self, operation: str, owner_id=None, item_id=None):
        correlation_id = None
        if "correlation_id" not in LogContext.get_all():
            correlation_id = str(uuid4())
        return LogContext.bind(
            correlation_id=correlation_id,
            owner_id=owner_id,
            item_id=item_id,
            operation=operation,
        )

    def _write(
        self,
        operation: str,
        owner_id,
        item_id,
        fn: Callable[[Session], T],
    ) -> T:
        def attempt() -> T:
            if item_id is None:
                with session_scope(self._session_factory) as session:
                    return fn(session)
            with self._locks.hold(_lock_key(item_id), self.settings.lock_timeout_seconds):
                with session_scope(self._session_factory) as session:
                    return fn(session)

        with self._bind(operation, owner_id, item_id):
            result = self._retry.run(operation, attempt, item_id=item_id)
            logger.debug("ledger_operation_completed", extra={"operation": operation})
            return result

    def _read(self, operation: str, owner_id, fn: Callable[[Session], T]) -> T:
        with self._bind(operation, owner_id):
            with session_scope(self._session_factory) as session:
                return fn(session)

    # ------------------------------------------------------------------
    # Master items
    # ------------------------------------------------------------------

    def register_item(self, owner_id, name: str, unit: str) -> MasterItem:
        return self._write(
            "register_item",
            owner_id,
            None,
            lambda s: MasterItemService(s, self._clock).register(owner_id, name, unit),
        )

    def rename_item(self, owner_id, item_id, new_name: str) -> MasterItem:
        return self._write(
            "rename_item",
            owner_id,
            item_id,
            lambda s: MasterItemService(s, self._clock).rename(item_id, owner_id, new_name),
        )

    def get_item(self, owner_id, item_id) -> MasterItem:
        return self._read(
            "get_item",
            owner_id,
            lambda s: MasterItemService(s, self._clock).get(item_id, owner_id),
        )

    def list_items(self, owner_id) -> list[MasterItem]:
        return self._read(
            "list_items",
            owner_id,
            lambda s: MasterItemService(s, self._clock).list_items(owner_id),
        )

    # ------------------------------------------------------------------
    # Stock movements
    # ------------------------------------------------------------------

    def record_add(
        self,
        owner_id,
        item_id,
        quantity,
        unit_price,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        """Receive stock into a new batch."""
        return self._write(
            "record_add",
            owner_id,
            item_id,
            lambda s: BatchStore(s, self._clock).record_add(
                owner_id, item_id, quantity, unit_price, occurred_at, notes
            ),
        )

    def record_remove(
        self,
        owner_id,
        item_id,
        quantity,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        """Withdraw stock, consuming batches oldest first."""
        return self._write(
            "record_remove",
            owner_id,
            item_id,
            lambda s: FifoConsumptionService(s, self._clock).record_remove(
                owner_id, item_id, quantity, occurred_at, notes
            ),
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def can_delete(self, owner_id, item_id) -> bool:
        return self._read(
            "can_delete",
            owner_id,
            lambda s: DeletionGuard(s, self._clock).can_delete(item_id, owner_id),
        )

    def delete_item(self, owner_id, item_id) -> None:
        self._write(
            "delete_item",
            owner_id,
            item_id,
            lambda s: DeletionGuard(s, self._clock).delete_item(item_id, owner_id),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_inventory(self, owner_id) -> list[InventoryRow]:
        return self._read(
            "current_inventory",
            owner_id,
            lambda s: InventorySelector(s).current_inventory(owner_id),
        )

    def inventory_summary(self, owner_id, low_stock_threshold=None) -> InventorySummary:
        threshold = (
            self.settings.low_stock_threshold
            if low_stock_threshold is None
            else low_stock_threshold
        )
        return self._read(
            "inventory_summary",
            owner_id,
            lambda s: InventorySelector(s).inventory_summary(owner_id, threshold),
        )

    def transaction_history(
        self,
        owner_id,
        item_id=None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[InventoryTransaction]:
        return self._read(
            "transaction_history",
            owner_id,
            lambda s: InventorySelector(s).transaction_history(
                owner_id, item_id=item_id, limit=limit, offset=offset
            ),
        )

    def consumption_links(self, owner_id, remove_transaction_id: int) -> list[ConsumptionLink]:
        return self._read(
            "consumption_links",
            owner_id,
            lambda s: InventorySelector(s).consumption_links(owner_id, remove_transaction_id),
        )

    def period_report(
        self,
        owner_id,
        start,
        end,
        period=ReportPeriod.WEEK,
        item_ids: Iterable | None = None,
    ) -> list[PeriodReportRow]:
        return self._read(
            "period_report",
            owner_id,
            lambda s: ReportSelector(s).period_report(owner_id, start, end, period, item_ids),
        )

    def removal_trend(
        self,
        owner_id,
        start,
        end,
        item_ids: Iterable | None = None,
    ) -> list[TrendPoint]:
        return self._read(
            "removal_trend",
            owner_id,
            lambda s: ReportSelector(s).removal_trend(owner_id, start, end, item_ids),
        )
