"""
DeletionGuard -- master items with history are kept forever.

An item may be deleted only if no transaction of any kind was ever recorded
against it.  Both the check and the delete read the item under its row lock,
and the ledger facade also holds the in-process item lock, so a concurrent
record_add cannot slip in between the check and the delete.
"""

from sqlalchemy import func, select

from inventory_kernel.exceptions import DeletionBlockedError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.master_item import MasterItem
from inventory_kernel.models.transaction import InventoryTransaction
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.master_item_service import MasterItemService

logger = get_logger("services.deletion_guard")


class DeletionGuard(BaseService[MasterItem]):
    """Gatekeeper for master item deletion."""

    def transaction_count(self, item_id) -> int:
        return self.session.execute(
            select(func.count(InventoryTransaction.id)).where(
                InventoryTransaction.master_item_id == item_id
            )
        ).scalar_one()

    def can_delete(self, item_id, owner_id) -> bool:
        """
        True only when the item has no transactions at all.

        Raises:
            ItemNotFoundError: Unknown or foreign-owned item.
        """
        item = MasterItemService(self.session, self.clock).get(item_id, owner_id)
        return self.transaction_count(item.id) == 0

    def delete_item(self, item_id, owner_id) -> None:
        """
        Delete an item that has never been used.

        Raises:
            ItemNotFoundError: Unknown or foreign-owned item.
            DeletionBlockedError: The item has transaction history.
        """
        item = MasterItemService(self.session, self.clock).get(
            item_id, owner_id, for_update=True
        )
        count = self.transaction_count(item.id)
        if count:
            logger.info(
                "item_deletion_blocked",
                extra={"item_id": str(item.id), "transaction_count": count},
            )
            raise DeletionBlockedError(str(item.id), count)

        self.session.delete(item)
        self.session.flush()
        logger.info("item_deleted", extra={"item_id": str(item.id)})
