"""
Tests for DeletionGuard: only never-used items may be deleted.
"""

from decimal import Decimal

import pytest

from inventory_kernel.exceptions import DeletionBlockedError, ItemNotFoundError


class TestDeletionGuard:

    def test_unused_item_can_be_deleted(self, deletion_guard, master_item_service, owner_id, item):
        assert deletion_guard.can_delete(item.id, owner_id) is True

        deletion_guard.delete_item(item.id, owner_id)

        with pytest.raises(ItemNotFoundError):
            master_item_service.get(item.id, owner_id)

    def test_item_with_a_receipt_is_kept(self, deletion_guard, batch_store, owner_id, item):
        batch_store.record_add(owner_id, item.id, Decimal("1"), Decimal("1"))

        assert deletion_guard.can_delete(item.id, owner_id) is False
        with pytest.raises(DeletionBlockedError) as exc_info:
            deletion_guard.delete_item(item.id, owner_id)

        assert exc_info.value.transaction_count == 1
        assert exc_info.value.code == "DELETION_BLOCKED"

    def test_fully_consumed_item_is_still_kept(
        self, deletion_guard, batch_store, fifo_service, owner_id, item
    ):
        batch_store.record_add(owner_id, item.id, Decimal("2"), Decimal("3"))
        fifo_service.record_remove(owner_id, item.id, Decimal("2"))

        assert deletion_guard.transaction_count(item.id) == 2
        with pytest.raises(DeletionBlockedError):
            deletion_guard.delete_item(item.id, owner_id)

    def test_foreign_owner_cannot_see_or_delete(self, deletion_guard, item, other_owner_id):
        with pytest.raises(ItemNotFoundError):
            deletion_guard.can_delete(item.id, other_owner_id)
        with pytest.raises(ItemNotFoundError):
            deletion_guard.delete_item(item.id, other_owner_id)

    def test_name_is_free_again_after_delete(
        self, deletion_guard, master_item_service, owner_id, item
    ):
        deletion_guard.delete_item(item.id, owner_id)
        again = master_item_service.register(owner_id, "Flour", "kg")
        assert again.id != item.id
