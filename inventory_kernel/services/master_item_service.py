"""
MasterItemService -- registry of stocked items.

Responsibility:
    Creates, renames and looks up master items.  Every lookup is scoped to
    an owner: an item owned by someone else is reported exactly like an
    item that does not exist.

Architecture position:
    Kernel > Services -- imperative shell.
    Used by BatchStore, FifoConsumptionService and DeletionGuard to resolve
    (and lock) the item they operate on.

Invariants enforced:
    - name and unit are non-empty after trimming and within length limits.
    - (owner_id, name) is unique.

Failure modes:
    - InvalidInputError for empty or oversized name/unit.
    - DuplicateItemNameError when the owner already uses the name.
    - ItemNotFoundError for an unknown or foreign-owned item.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.db.types import (
    MAX_NAME_LENGTH,
    MAX_UNIT_LENGTH,
    to_text,
    to_uuid,
)
from inventory_kernel.exceptions import (
    DuplicateItemNameError,
    InvalidInputError,
    ItemNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.master_item import NAME_UNIQUE_CONSTRAINT, MasterItem
from inventory_kernel.services.base import BaseService

logger = get_logger("services.master_item")

_SQLITE_NAME_CONFLICT = "UNIQUE constraint failed: master_items.owner_id, master_items.name"


class MasterItemService(BaseService[MasterItem]):
    """
    Owner-scoped CRUD for master items (no delete; see DeletionGuard).

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def register(self, owner_id, name: str, unit: str) -> MasterItem:
        """
        Register a new master item.

        Postconditions: A MasterItem with a fresh id is flushed.

        Raises:
            InvalidInputError: Empty or oversized name/unit, or bad owner_id.
            DuplicateItemNameError: Owner already has an item with this name.
        """
        owner = to_uuid("owner_id", owner_id)
        clean_name = to_text("name", name, MAX_NAME_LENGTH)
        clean_unit = to_text("unit", unit, MAX_UNIT_LENGTH)

        self._ensure_name_free(owner, clean_name)

        now = self.clock.now()
        item = MasterItem(
            id=uuid4(),
            owner_id=owner,
            name=clean_name,
            unit=clean_unit,
            created_at=now,
            updated_at=now,
        )
        self.session.add(item)
        self._flush_unique(owner, clean_name)

        logger.info(
            "master_item_registered",
            extra={
                "item_id": str(item.id),
                "owner_id": str(owner),
                "item_name": clean_name,
                "unit": clean_unit,
            },
        )
        return item

    def rename(self, item_id, owner_id, new_name: str) -> MasterItem:
        """
        Rename an item.  Renaming to the current name is a no-op.

        Raises:
            ItemNotFoundError: Unknown or foreign-owned item.
            InvalidInputError / DuplicateItemNameError: As for register().
        """
        item = self.get(item_id, owner_id, for_update=True)
        clean_name = to_text("name", new_name, MAX_NAME_LENGTH)

        if clean_name == item.name:
            return item

        self._ensure_name_free(item.owner_id, clean_name, exclude_id=item.id)

        old_name = item.name
        item.name = clean_name
        item.updated_at = self.clock.now()
        self._flush_unique(item.owner_id, clean_name)

        logger.info(
            "master_item_renamed",
            extra={
                "item_id": str(item.id),
                "old_name": old_name,
                "new_name": clean_name,
            },
        )
        return item

    def get(self, item_id, owner_id, for_update: bool = False) -> MasterItem:
        """
        Fetch an item owned by ``owner_id``.

        With ``for_update`` the row is locked (``SELECT ... FOR UPDATE``)
        until the transaction ends; mutating ledger operations use this as
        their per-item serialization point in the database.

        Raises:
            ItemNotFoundError: Unknown id, malformed id, or foreign owner.
        """
        try:
            item_uuid = to_uuid("item_id", item_id)
            owner = to_uuid("owner_id", owner_id)
        except InvalidInputError:
            raise ItemNotFoundError(str(item_id), str(owner_id))

        stmt = select(MasterItem).where(
            MasterItem.id == item_uuid,
            MasterItem.owner_id == owner,
        )
        if for_update:
            stmt = stmt.with_for_update()

        item = self.session.execute(stmt).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id), str(owner_id))
        return item

    def list_items(self, owner_id) -> list[MasterItem]:
        """All items of an owner, ordered by name."""
        owner = to_uuid("owner_id", owner_id)
        return list(
            self.session.execute(
                select(MasterItem)
                .where(MasterItem.owner_id == owner)
                .order_by(MasterItem.name, MasterItem.id)
            ).scalars()
        )

    def _ensure_name_free(
        self,
        owner: UUID,
        name: str,
        exclude_id: UUID | None = None,
    ) -> None:
        stmt = select(MasterItem.id).where(
            MasterItem.owner_id == owner,
            MasterItem.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(MasterItem.id != exclude_id)

        if self.session.execute(stmt).first() is not None:
            logger.info(
                "master_item_name_taken",
                extra={"owner_id": str(owner), "item_name": name},
            )
            raise DuplicateItemNameError(str(owner), name)

    def _flush_unique(self, owner: UUID, name: str) -> None:
        # A concurrent writer can take the name between check and flush
        try:
            self.session.flush()
        except IntegrityError as exc:
            if not is_name_conflict(exc):
                raise
            raise DuplicateItemNameError(str(owner), name) from None


def is_name_conflict(exc: IntegrityError) -> bool:
    """True when ``exc`` is the per-owner unique item name being violated."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        # psycopg2 names the violated constraint
        return constraint == NAME_UNIQUE_CONSTRAINT
    # SQLite only reports the columns
    return _SQLITE_NAME_CONFLICT in str(exc.orig)
