"""
Module: inventory_kernel.models.sequence
Responsibility: Id sources backing SequenceService.  A native database
    sequence where the backend has one, and named counter rows otherwise.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Sequence, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString

# Created by metadata.create_all() on backends with sequences (PostgreSQL).
# nextval() never waits on another transaction and is never rolled back.
TRANSACTION_ID_SEQUENCE = Sequence(
    "inventory_transaction_id_seq",
    start=1,
    metadata=Base.metadata,
)


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.  Used for
    every sequence on backends without native sequences (SQLite, where the
    database write lock serializes writers anyway) and for ad-hoc names.
    """

    __tablename__ = "sequence_counters"

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    # Sequence name (e.g., "inventory_transaction")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
