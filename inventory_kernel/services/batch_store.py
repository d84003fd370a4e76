"""
BatchStore -- stock receipts and the open-batch queue.

Responsibility:
    Records ``add`` transactions (each one a FIFO batch), enumerates an
    item's open batches oldest first, and decrements a batch when stock is
    consumed from it.

Architecture position:
    Kernel > Services -- imperative shell.
    record_add is called by the InventoryLedger facade; list/lock/decrement
    are called by FifoConsumptionService.

Invariants enforced:
    - A new batch starts with remaining_quantity == quantity.
    - remaining_quantity never goes below zero: decrement_batch re-reads the
      row under lock and refuses amounts above what is left.
    - Batch ids come from SequenceService, so (occurred_at, id) is a total
      FIFO order.

Failure modes:
    - InvalidQuantityError / InvalidInputError on bad receipt input.
    - ItemNotFoundError for an unknown or foreign-owned item.
    - BatchNotFoundError / InsufficientStockError from decrement_batch.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from inventory_kernel.db.types import (
    MAX_NOTES_LENGTH,
    ZERO,
    to_quantity,
    to_text,
    to_unit_price,
    to_utc,
)
from inventory_kernel.exceptions import BatchNotFoundError, InsufficientStockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.transaction import InventoryTransaction, TransactionKind
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.master_item_service import MasterItemService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.batch_store")


def _open_batches_query(item_id):
    return select(InventoryTransaction).where(
        InventoryTransaction.master_item_id == item_id,
        InventoryTransaction.kind == TransactionKind.ADD.value,
        InventoryTransaction.remaining_quantity > 0,
    )


class BatchStore(BaseService[InventoryTransaction]):
    """
    Sole writer of batches.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT take the in-process item lock; the ledger facade does.
    """

    def record_add(
        self,
        owner_id,
        item_id,
        quantity,
        unit_price,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        """
        Record a stock receipt.

        Postconditions:
            - A flushed ``add`` transaction with the next sequence id and
              remaining_quantity == quantity.

        Raises:
            InvalidQuantityError: quantity not a positive 3-decimal number.
            InvalidInputError: Negative/non-finite price, long notes,
                non-datetime occurred_at.
            ItemNotFoundError: Unknown or foreign-owned item.
        """
        qty = to_quantity(quantity)
        price = to_unit_price(unit_price)
        clean_notes = to_text("notes", notes, MAX_NOTES_LENGTH, required=False)
        now = self.clock.now()
        when = to_utc("occurred_at", occurred_at) if occurred_at is not None else now

        item = MasterItemService(self.session, self.clock).get(
            item_id, owner_id, for_update=True
        )

        txn = InventoryTransaction(
            id=SequenceService(self.session).next_value(SequenceService.TRANSACTION),
            owner_id=item.owner_id,
            master_item_id=item.id,
            kind=TransactionKind.ADD.value,
            quantity=qty,
            unit_price=price,
            remaining_quantity=qty,
            occurred_at=when,
            notes=clean_notes,
            created_at=now,
            consumption_links=[],
        )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "batch_recorded",
            extra={
                "transaction_id": txn.id,
                "item_id": item.id,
                "kind": TransactionKind.ADD,
                "quantity": qty,
                "unit_price": price,
                "occurred_at": when,
            },
        )
        return txn

    def list_open_batches(self, item_id) -> Iterator[InventoryTransaction]:
        """
        Yield the item's batches with stock left, oldest first.

        Each call runs a fresh query and refreshes any rows already in the
        session, so a new iteration sees the latest committed state.
        """
        stmt = (
            _open_batches_query(item_id)
            .order_by(InventoryTransaction.occurred_at, InventoryTransaction.id)
            .execution_options(populate_existing=True, yield_per=100)
        )
        yield from self.session.execute(stmt).scalars()

    def lock_open_batches(self, item_id) -> list[InventoryTransaction]:
        """
        Lock the item's open batches and return them oldest first.

        Rows are locked in ascending id order so that two transactions
        touching overlapping batches always wait on each other in the same
        order.
        """
        rows = list(
            self.session.execute(
                _open_batches_query(item_id)
                .order_by(InventoryTransaction.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )
        rows.sort(key=lambda b: (b.occurred_at, b.id))
        return rows

    def decrement_batch(self, batch_id: int, amount) -> InventoryTransaction:
        """
        Take ``amount`` out of a batch.

        Re-reads the batch under a row lock so the check against
        remaining_quantity uses the value at the time of mutation.

        Raises:
            BatchNotFoundError: No ``add`` transaction with this id.
            InsufficientStockError: amount exceeds what the batch holds.
        """
        qty = to_quantity(amount)

        batch = self.session.execute(
            select(InventoryTransaction)
            .where(
                InventoryTransaction.id == batch_id,
                InventoryTransaction.kind == TransactionKind.ADD.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if batch is None:
            raise BatchNotFoundError(batch_id)

        remaining = Decimal(batch.remaining_quantity or ZERO)
        if qty > remaining:
            logger.warning(
                "batch_decrement_exceeds_remaining",
                extra={
                    "batch_id": batch_id,
                    "requested": str(qty),
                    "remaining": str(remaining),
                },
            )
            raise InsufficientStockError(
                item_id=str(batch.master_item_id),
                requested_quantity=str(qty),
                available_quantity=str(remaining),
                batch_id=batch_id,
            )

        batch.remaining_quantity = remaining - qty
        self.session.flush()

        logger.debug(
            "batch_decremented",
            extra={
                "batch_id": batch_id,
                "taken": str(qty),
                "remaining": str(batch.remaining_quantity),
            },
        )
        return batch
