"""
Module: inventory_kernel.models.consumption_link
Responsibility: ORM persistence for FIFO consumption links -- how much of
    which batch a given remove transaction drew down.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity_taken > 0.
    - position numbers the links of one remove in the order the FIFO walk
      consumed their batches, i.e. by (batch occurred_at, batch id).
    - For every remove transaction, sum(quantity_taken) == quantity
      (written atomically by FifoConsumptionService).
    - Write-once: links are never updated or deleted (db/immutability.py).

Audit relevance:
    Links make each FIFO allocation reconstructable: the batch receipt price
    is copied onto the link so the removal's cost can be re-derived without
    re-walking history.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import (
    PRICE_DECIMAL_PLACES,
    PRICE_PRECISION,
    QUANTITY_DECIMAL_PLACES,
    QUANTITY_PRECISION,
    round_money,
)

if TYPE_CHECKING:
    from inventory_kernel.models.transaction import InventoryTransaction


class ConsumptionLink(Base):
    """One slice of a remove transaction taken from one batch."""

    __tablename__ = "consumption_links"

    __table_args__ = (
        CheckConstraint("quantity_taken > 0", name="ck_link_quantity_positive"),
        UniqueConstraint(
            "remove_transaction_id", "position", name="uq_link_remove_position"
        ),
        Index("idx_link_remove", "remove_transaction_id"),
        Index("idx_link_batch", "batch_transaction_id"),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    remove_transaction_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("inventory_transactions.id"),
        nullable=False,
    )

    batch_transaction_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("inventory_transactions.id"),
        nullable=False,
    )

    # Index of this slice in the FIFO walk of its remove (0 = oldest batch)
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    quantity_taken: Mapped[Decimal] = mapped_column(
        Numeric(QUANTITY_PRECISION, QUANTITY_DECIMAL_PLACES),
        nullable=False,
    )

    # Batch receipt price at the time of consumption
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(PRICE_PRECISION, PRICE_DECIMAL_PLACES),
        nullable=False,
    )

    remove_transaction: Mapped["InventoryTransaction"] = relationship(
        back_populates="consumption_links",
        foreign_keys=[remove_transaction_id],
    )

    batch: Mapped["InventoryTransaction"] = relationship(
        foreign_keys=[batch_transaction_id],
    )

    def __repr__(self) -> str:
        return (
            f"<ConsumptionLink remove={self.remove_transaction_id} "
            f"batch={self.batch_transaction_id} qty={self.quantity_taken}>"
        )

    @property
    def cost_taken(self) -> Decimal:
        """quantity_taken * unit_price at money precision."""
        return round_money(Decimal(self.quantity_taken) * Decimal(self.unit_price))
