"""Domain models for the inventory kernel."""

from inventory_kernel.models.consumption_link import ConsumptionLink
from inventory_kernel.models.master_item import MasterItem
from inventory_kernel.models.sequence import TRANSACTION_ID_SEQUENCE, SequenceCounter
from inventory_kernel.models.transaction import InventoryTransaction, TransactionKind

__all__ = [
    "ConsumptionLink",
    "InventoryTransaction",
    "MasterItem",
    "SequenceCounter",
    "TRANSACTION_ID_SEQUENCE",
    "TransactionKind",
]
