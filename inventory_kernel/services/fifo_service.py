"""
FifoConsumptionService -- withdrawals costed first-in-first-out.

Responsibility:
    Records a ``remove`` transaction: locks the item's open batches,
    asks the pure FIFO engine how much to take from each, decrements those
    batches, and writes the remove row plus one ConsumptionLink per batch
    touched.  All of it lands in the caller's transaction or none of it does.

Architecture position:
    Kernel > Services -- imperative shell around
    ``inventory_engines.fifo.allocate_fifo`` (functional core).

Invariants enforced:
    - Oldest batch first; no newer batch is touched while an older one
      still has stock.
    - quantity == sum(link.quantity_taken) for every remove.
    - The remove's unit_price is the weighted average cost of the consumed
      goods, so its total_price equals the consumed cost to the cent.
    - Insufficient stock is detected before any batch is mutated.

Failure modes:
    - InvalidQuantityError / InvalidInputError on bad input.
    - ItemNotFoundError for an unknown or foreign-owned item.
    - InsufficientStockError when open batches hold less than requested
      (including when the item has no batches at all).
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy.orm import Session

from inventory_engines.fifo import FifoAllocation, OpenBatch, allocate_fifo
from inventory_kernel.db.types import (
    MAX_NOTES_LENGTH,
    to_quantity,
    to_text,
    to_utc,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.consumption_link import ConsumptionLink
from inventory_kernel.models.transaction import InventoryTransaction, TransactionKind
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.batch_store import BatchStore
from inventory_kernel.services.master_item_service import MasterItemService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.fifo")


class FifoConsumptionService(BaseService[InventoryTransaction]):
    """
    Sole writer of ``remove`` transactions and consumption links.

    Non-goals:
        - Does NOT call ``session.commit()``; a failure part-way leaves the
          session dirty and the caller's scope rolls it back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        batch_store: BatchStore | None = None,
    ):
        super().__init__(session, clock)
        self._batches = batch_store or BatchStore(session, self.clock)

    def record_remove(
        self,
        owner_id,
        item_id,
        quantity,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        """
        Withdraw ``quantity`` of an item.

        Postconditions:
            - Each consumed batch's remaining_quantity is reduced by its
              slice; remove.consumption_links lists the slices.

        Raises:
            InvalidQuantityError, InvalidInputError, ItemNotFoundError,
            InsufficientStockError.
        """
        qty = to_quantity(quantity)
        clean_notes = to_text("notes", notes, MAX_NOTES_LENGTH, required=False)
        now = self.clock.now()
        when = to_utc("occurred_at", occurred_at) if occurred_at is not None else now

        item = MasterItemService(self.session, self.clock).get(
            item_id, owner_id, for_update=True
        )

        batches = self._batches.lock_open_batches(item.id)
        try:
            allocation = allocate_fifo(
                str(item.id),
                (
                    OpenBatch(
                        batch_id=b.id,
                        occurred_at=b.occurred_at,
                        remaining_quantity=b.remaining_quantity,
                        unit_price=b.unit_price,
                    )
                    for b in batches
                ),
                qty,
            )
        except InsufficientStockError as exc:
            logger.info(
                "insufficient_stock",
                extra={
                    "item_id": str(item.id),
                    "requested": exc.requested_quantity,
                    "available": exc.available_quantity,
                },
            )
            raise

        for piece in allocation.slices:
            self._batches.decrement_batch(piece.batch_id, piece.quantity_taken)

        remove = self._write_remove(item.owner_id, item.id, allocation, when, now, clean_notes)

        logger.info(
            "fifo_removal_completed",
            extra={
                "transaction_id": remove.id,
                "item_id": item.id,
                "kind": TransactionKind.REMOVE,
                "quantity": qty,
                "unit_price": allocation.unit_price,
                "total_price": allocation.total_price,
                "batch_ids": [piece.batch_id for piece in allocation.slices],
            },
        )
        return remove

    def _write_remove(
        self,
        owner_id,
        item_id,
        allocation: FifoAllocation,
        occurred_at: datetime,
        created_at: datetime,
        notes: str | None,
    ) -> InventoryTransaction:
        remove = InventoryTransaction(
            id=SequenceService(self.session).next_value(SequenceService.TRANSACTION),
            owner_id=owner_id,
            master_item_id=item_id,
            kind=TransactionKind.REMOVE.value,
            quantity=allocation.quantity,
            unit_price=allocation.unit_price,
            remaining_quantity=None,
            occurred_at=occurred_at,
            notes=notes,
            created_at=created_at,
        )
        remove.consumption_links = [
            ConsumptionLink(
                id=uuid4(),
                owner_id=owner_id,
                batch_transaction_id=piece.batch_id,
                position=position,
                quantity_taken=piece.quantity_taken,
                unit_price=piece.unit_price,
            )
            for position, piece in enumerate(allocation.slices)
        ]
        self.session.add(remove)
        self.session.flush()
        return remove
