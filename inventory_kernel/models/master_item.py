"""
Module: inventory_kernel.models.master_item
Responsibility: ORM persistence for master items -- the identity of every
    stocked item (owner, name, unit of measure).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (owner_id, name) is unique: an owner cannot register two items with
      the same name.
    - Items are only referenced, never owned, by ledger transactions.
      Deletion is gated by DeletionGuard (no transactions ever recorded).

Failure modes:
    - IntegrityError on duplicate (owner_id, name); MasterItemService checks
      first and raises DuplicateItemNameError.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UTCDateTime, UUIDString

NAME_UNIQUE_CONSTRAINT = "uq_master_item_owner_name"


class MasterItem(Base):
    """
    A stocked item template owned by one account.

    Contract:
        Created by MasterItemService.register(); mutated only by rename();
        deleted only through DeletionGuard.delete_item().
    """

    __tablename__ = "master_items"

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name=NAME_UNIQUE_CONSTRAINT),
        Index("idx_master_item_owner", "owner_id"),
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

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Unit of measure label ("kg", "bottle", "EA")
    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Set by MasterItemService from the injected clock
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<MasterItem {self.id}: {self.name} ({self.unit})>"
