"""
Tests for FifoConsumptionService.

Covers:
- Oldest-first consumption across batches with consumption links
- Weighted-average pricing of the remove
- Insufficient stock leaves every batch untouched
- Exact depletion
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.db.types import MAX_QUANTITY, round_money
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
)
from inventory_kernel.models.transaction import TransactionKind


@pytest.fixture
def two_batches(batch_store, owner_id, item, deterministic_clock):
    """5 @ 10 received first, then 5 @ 20 a minute later."""
    first = batch_store.record_add(owner_id, item.id, Decimal("5"), Decimal("10"))
    deterministic_clock.advance(60)
    second = batch_store.record_add(owner_id, item.id, Decimal("5"), Decimal("20"))
    deterministic_clock.advance(60)
    return first, second


class TestRecordRemove:

    def test_consumes_oldest_first(self, fifo_service, owner_id, item, two_batches):
        first, second = two_batches

        remove = fifo_service.record_remove(owner_id, item.id, Decimal("7"))

        assert remove.kind == TransactionKind.REMOVE
        assert remove.remaining_quantity is None
        assert remove.id > second.id
        assert [(l.batch_transaction_id, l.quantity_taken) for l in remove.consumption_links] == [
            (first.id, Decimal("5")),
            (second.id, Decimal("2")),
        ]
        assert first.remaining_quantity == Decimal("0")
        assert second.remaining_quantity == Decimal("3")

    def test_remove_priced_at_weighted_average(self, fifo_service, owner_id, item, two_batches):
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("7"))

        assert remove.total_price == Decimal("90.00")
        assert remove.unit_price.quantize(Decimal("0.001")) == Decimal("12.857")
        assert sum(l.cost_taken for l in remove.consumption_links) == Decimal("90.00")

    def test_links_sum_to_quantity(self, fifo_service, owner_id, item, two_batches):
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("6.5"))
        assert sum(l.quantity_taken for l in remove.consumption_links) == remove.quantity

    def test_links_copy_batch_price(self, fifo_service, owner_id, item, two_batches):
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("6"))
        assert [l.unit_price for l in remove.consumption_links] == [Decimal("10"), Decimal("20")]
        assert all(l.owner_id == owner_id for l in remove.consumption_links)

    def test_newer_batch_untouched_while_older_has_stock(
        self, fifo_service, owner_id, item, two_batches
    ):
        first, second = two_batches
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("4.999"))

        assert [l.batch_transaction_id for l in remove.consumption_links] == [first.id]
        assert first.remaining_quantity == Decimal("0.001")
        assert second.remaining_quantity == Decimal("5")
        assert remove.unit_price == Decimal("10")

    def test_exact_depletion(self, fifo_service, batch_store, owner_id, item, two_batches):
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("10"))

        assert remove.total_price == Decimal("150.00")
        assert list(batch_store.list_open_batches(item.id)) == []

    def test_successive_removes_continue_the_queue(
        self, fifo_service, owner_id, item, two_batches
    ):
        first, second = two_batches
        fifo_service.record_remove(owner_id, item.id, Decimal("3"))
        remove = fifo_service.record_remove(owner_id, item.id, Decimal("3"))

        assert [(l.batch_transaction_id, l.quantity_taken) for l in remove.consumption_links] == [
            (first.id, Decimal("2")),
            (second.id, Decimal("1")),
        ]
        assert remove.total_price == Decimal("40.00")

    def test_odd_split_reproduces_cost_to_the_cent(
        self, fifo_service, batch_store, owner_id, item
    ):
        batch_store.record_add(owner_id, item.id, Decimal("1"), Decimal("0.01"))
        batch_store.record_add(owner_id, item.id, Decimal("2"), Decimal("0.02"))

        remove = fifo_service.record_remove(owner_id, item.id, Decimal("3"))

        assert remove.total_price == round_money(Decimal("0.05"))

    def test_largest_quantity_keeps_total_equal_to_consumed_cost(
        self, fifo_service, batch_store, owner_id, item
    ):
        batch_store.record_add(owner_id, item.id, Decimal("5000000"), Decimal("0.333333333"))
        batch_store.record_add(owner_id, item.id, Decimal("4999999.999"), Decimal("0.777777777"))

        remove = fifo_service.record_remove(owner_id, item.id, MAX_QUANTITY)

        consumed = sum(
            (link.quantity_taken * link.unit_price for link in remove.consumption_links),
            Decimal("0"),
        )
        assert remove.total_price == round_money(consumed) == Decimal("5555555.55")

    def test_quantity_above_the_bound_is_rejected(self, fifo_service, owner_id, item, two_batches):
        with pytest.raises(InvalidQuantityError, match="at most"):
            fifo_service.record_remove(owner_id, item.id, Decimal("10000000"))


class TestInsufficientStock:

    def test_leaves_batches_unchanged(
        self, fifo_service, batch_store, owner_id, item, two_batches, captured_logs
    ):
        first, second = two_batches

        with pytest.raises(InsufficientStockError) as exc_info:
            fifo_service.record_remove(owner_id, item.id, Decimal("10.5"))

        assert Decimal(exc_info.value.available_quantity) == Decimal("10")
        assert Decimal(exc_info.value.requested_quantity) == Decimal("10.5")
        assert [b.remaining_quantity for b in batch_store.list_open_batches(item.id)] == [
            Decimal("5"),
            Decimal("5"),
        ]
        assert any(r["message"] == "insufficient_stock" for r in captured_logs())

    def test_item_without_batches(self, fifo_service, owner_id, item):
        with pytest.raises(InsufficientStockError) as exc_info:
            fifo_service.record_remove(owner_id, item.id, Decimal("1"))
        assert Decimal(exc_info.value.available_quantity) == Decimal("0")


class TestValidation:

    @pytest.mark.parametrize("quantity", [0, "-1", "x", "0.0001"])
    def test_invalid_quantity(self, fifo_service, owner_id, item, two_batches, quantity):
        with pytest.raises(InvalidQuantityError):
            fifo_service.record_remove(owner_id, item.id, quantity)

    def test_unknown_item(self, fifo_service, owner_id):
        with pytest.raises(ItemNotFoundError):
            fifo_service.record_remove(owner_id, uuid4(), Decimal("1"))

    def test_foreign_item(self, fifo_service, item, other_owner_id, two_batches):
        with pytest.raises(ItemNotFoundError):
            fifo_service.record_remove(other_owner_id, item.id, Decimal("1"))
