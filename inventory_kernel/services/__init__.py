"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.batch_store import BatchStore
from inventory_kernel.services.deletion_guard import DeletionGuard
from inventory_kernel.services.fifo_service import FifoConsumptionService
from inventory_kernel.services.item_lock import ItemLockRegistry
from inventory_kernel.services.ledger import InventoryLedger, LedgerSettings
from inventory_kernel.services.master_item_service import MasterItemService
from inventory_kernel.services.retry import RetryPolicy
from inventory_kernel.services.sequence_service import SequenceService

__all__ = [
    "BatchStore",
    "DeletionGuard",
    "FifoConsumptionService",
    "InventoryLedger",
    "ItemLockRegistry",
    "LedgerSettings",
    "MasterItemService",
    "RetryPolicy",
    "SequenceService",
]
