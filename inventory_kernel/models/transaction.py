"""
Module: inventory_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions.  An ``add``
    transaction is a stock receipt and doubles as a FIFO batch; a ``remove``
    transaction is a withdrawal costed at the weighted average of the batches
    it consumed.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity > 0 and unit_price >= 0 (CHECK constraints + service validation).
    - remaining_quantity is NOT NULL exactly on ``add`` rows, starts equal to
      quantity, and only ever decreases (db/immutability.py).
    - 0 <= remaining_quantity <= quantity (CHECK constraint).
    - total_price is derived from quantity * unit_price and never stored.
    - id is assigned from the ``inventory_transaction`` sequence and is the
      FIFO tie-break for equal occurred_at values.

Audit relevance:
    Rows are append-only.  Nothing but remaining_quantity on a batch ever
    changes after insert, and rows are never deleted.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UTCDateTime, UUIDString
from inventory_kernel.db.types import (
    PRICE_DECIMAL_PLACES,
    PRICE_PRECISION,
    QUANTITY_DECIMAL_PLACES,
    QUANTITY_PRECISION,
    round_money,
)

if TYPE_CHECKING:
    from inventory_kernel.models.consumption_link import ConsumptionLink
    from inventory_kernel.models.master_item import MasterItem


class TransactionKind(str, Enum):
    """Direction of a ledger transaction."""

    ADD = "add"
    REMOVE = "remove"


class InventoryTransaction(Base):
    """
    One immutable ledger line for a master item.

    Contract:
        Written only by BatchStore.record_add() and
        FifoConsumptionService.record_remove().  The row is a batch iff
        kind == ADD; its remaining_quantity is advanced downward only by
        BatchStore.decrement_batch().

    Non-goals:
        - Does not validate quantities; see inventory_kernel.db.types.
        - Does not store total_price; see the ``total_price`` property.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_txn_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_txn_unit_price_non_negative"),
        CheckConstraint(
            "(kind = 'add' AND remaining_quantity IS NOT NULL "
            "AND remaining_quantity >= 0 AND remaining_quantity <= quantity) "
            "OR (kind = 'remove' AND remaining_quantity IS NULL)",
            name="ck_txn_remaining_quantity",
        ),
        Index("idx_txn_owner_item", "owner_id", "master_item_id"),
        # Open-batch walk: item's batches ordered oldest first
        Index("idx_txn_fifo", "master_item_id", "kind", "occurred_at", "id"),
        Index("idx_txn_occurred_at", "occurred_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    master_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("master_items.id"),
        nullable=False,
    )

    kind: Mapped[TransactionKind] = mapped_column(
        String(10),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES),
        nullable=False,
    )

    # Receipt price on ADD; weighted average cost of consumed batches on REMOVE
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(PRICE_PRECISION, PRICE_DECIMAL_PLACES),
        nullable=False,
    )

    # Batch state: only meaningful (and only non-null) on ADD
    remaining_quantity: Mapped[Decimal | None] = mapped_column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    master_item: Mapped["MasterItem"] = relationship()

    # Links this REMOVE created (empty on ADD)
    consumption_links: Mapped[list["ConsumptionLink"]] = relationship(
        back_populates="remove_transaction",
        foreign_keys="ConsumptionLink.remove_transaction_id",
        lazy="selectin",
        order_by="ConsumptionLink.position",
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.id}: {self.kind} "
            f"qty={self.quantity} @ {self.unit_price}>"
        )

    @property
    def total_price(self) -> Decimal:
        """quantity * unit_price, rounded to money precision."""
        return round_money(Decimal(self.quantity) * Decimal(self.unit_price))

    @property
    def is_batch(self) -> bool:
        """True for ADD rows, which carry remaining_quantity."""
        return self.kind == TransactionKind.ADD

    @property
    def is_open(self) -> bool:
        """True for a batch that still has stock."""
        return self.is_batch and (self.remaining_quantity or 0) > 0
