"""
Tests for InventorySelector: stock positions, summary, history and links.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from inventory_kernel.exceptions import InvalidInputError


@pytest.fixture
def stocked(master_item_service, batch_store, fifo_service, owner_id, item, deterministic_clock):
    """
    Flour: 5 @ 10, 5 @ 20, 7 removed -> 3 left worth 60.
    Sugar: 2 @ 1.5, untouched.
    Salt: registered, never used.
    """
    batch_store.record_add(owner_id, item.id, Decimal("5"), Decimal("10"))
    deterministic_clock.advance(60)
    batch_store.record_add(owner_id, item.id, Decimal("5"), Decimal("20"))
    deterministic_clock.advance(60)
    fifo_service.record_remove(owner_id, item.id, Decimal("7"))

    sugar = master_item_service.register(owner_id, "Sugar", "kg")
    deterministic_clock.advance(60)
    batch_store.record_add(owner_id, sugar.id, Decimal("2"), Decimal("1.5"))

    salt = master_item_service.register(owner_id, "Salt", "kg")
    return item, sugar, salt


class TestCurrentInventory:

    def test_rows_per_item_ordered_by_name(self, inventory_selector, owner_id, stocked):
        rows = inventory_selector.current_inventory(owner_id)
        assert [r.name for r in rows] == ["Flour", "Salt", "Sugar"]

    def test_quantities_and_values(self, inventory_selector, owner_id, stocked):
        flour, sugar, salt = stocked
        by_id = {r.item_id: r for r in inventory_selector.current_inventory(owner_id)}

        assert by_id[flour.id].current_quantity == Decimal("3")
        assert by_id[flour.id].total_value == Decimal("60.00")
        assert by_id[flour.id].average_unit_cost == Decimal("20")
        assert by_id[sugar.id].current_quantity == Decimal("2")
        assert by_id[sugar.id].total_value == Decimal("3.00")

    def test_unused_item_is_zero(self, inventory_selector, owner_id, stocked):
        salt = stocked[2]
        row = next(r for r in inventory_selector.current_inventory(owner_id) if r.item_id == salt.id)

        assert row.current_quantity == 0
        assert row.total_value == Decimal("0.00")
        assert row.last_transaction_at is None
        assert row.average_unit_cost == 0

    def test_last_transaction_at(self, inventory_selector, owner_id, stocked, deterministic_clock):
        flour = stocked[0]
        row = next(r for r in inventory_selector.current_inventory(owner_id) if r.item_id == flour.id)
        # The remove came two minutes after the first receipt
        assert row.last_transaction_at == deterministic_clock.now() - timedelta(seconds=60)

    def test_quantity_is_adds_minus_removes(
        self, inventory_selector, batch_store, fifo_service, owner_id, item
    ):
        added = Decimal("0")
        removed = Decimal("0")
        for qty in ("1.25", "4", "0.5"):
            batch_store.record_add(owner_id, item.id, Decimal(qty), Decimal("2"))
            added += Decimal(qty)
        for qty in ("2", "0.75"):
            fifo_service.record_remove(owner_id, item.id, Decimal(qty))
            removed += Decimal(qty)

        (row,) = inventory_selector.current_inventory(owner_id)
        assert row.current_quantity == added - removed

    def test_reading_twice_gives_same_result(self, inventory_selector, owner_id, stocked):
        assert inventory_selector.current_inventory(owner_id) == inventory_selector.current_inventory(
            owner_id
        )

    def test_owner_isolation(self, inventory_selector, other_owner_id, stocked):
        assert inventory_selector.current_inventory(other_owner_id) == []


class TestInventorySummary:

    def test_summary(self, inventory_selector, owner_id, stocked):
        summary = inventory_selector.inventory_summary(owner_id)

        assert summary.total_items == 3
        assert summary.total_value == Decimal("63.00")
        # Flour (3), Sugar (2) and Salt (0) are all at or below 5
        assert summary.low_stock_items == 3
        assert summary.items_with_value == 2
        assert summary.average_item_value == Decimal("31.50")

    def test_threshold_is_inclusive(self, inventory_selector, owner_id, stocked):
        assert inventory_selector.inventory_summary(owner_id, low_stock_threshold=2).low_stock_items == 2
        assert inventory_selector.inventory_summary(owner_id, low_stock_threshold=1).low_stock_items == 1

    def test_empty_owner(self, inventory_selector, other_owner_id):
        summary = inventory_selector.inventory_summary(other_owner_id)
        assert summary.total_items == 0
        assert summary.total_value == Decimal("0.00")
        assert summary.average_item_value == Decimal("0.00")


class TestTransactionHistory:

    def test_newest_first(self, inventory_selector, owner_id, stocked):
        history = inventory_selector.transaction_history(owner_id)
        assert len(history) == 4
        keys = [(t.occurred_at, t.id) for t in history]
        assert keys == sorted(keys, reverse=True)

    def test_filter_by_item(self, inventory_selector, owner_id, stocked):
        flour = stocked[0]
        history = inventory_selector.transaction_history(owner_id, item_id=flour.id)
        assert [t.kind for t in history] == ["remove", "add", "add"]

    def test_paging(self, inventory_selector, owner_id, stocked):
        everything = inventory_selector.transaction_history(owner_id)
        page_one = inventory_selector.transaction_history(owner_id, limit=2)
        page_two = inventory_selector.transaction_history(owner_id, limit=2, offset=2)

        assert [t.id for t in page_one + page_two] == [t.id for t in everything]
        assert inventory_selector.transaction_history(owner_id, offset=10) == []

    @pytest.mark.parametrize("limit, offset", [(0, 0), (501, 0), (10, -1)])
    def test_rejects_bad_paging(self, inventory_selector, owner_id, limit, offset):
        with pytest.raises(InvalidInputError):
            inventory_selector.transaction_history(owner_id, limit=limit, offset=offset)


class TestConsumptionLinks:

    def test_links_of_a_remove(self, inventory_selector, owner_id, stocked):
        flour = stocked[0]
        remove = inventory_selector.transaction_history(owner_id, item_id=flour.id, limit=1)[0]

        links = inventory_selector.consumption_links(owner_id, remove.id)

        assert [l.quantity_taken for l in links] == [Decimal("5"), Decimal("2")]
        assert sum(l.quantity_taken for l in links) == remove.quantity

    def test_links_hidden_from_other_owner(self, inventory_selector, owner_id, other_owner_id, stocked):
        flour = stocked[0]
        remove = inventory_selector.transaction_history(owner_id, item_id=flour.id, limit=1)[0]
        assert inventory_selector.consumption_links(other_owner_id, remove.id) == []

    def test_backdated_batch_listed_first(
        self, inventory_selector, master_item_service, batch_store, fifo_service,
        owner_id, deterministic_clock,
    ):
        """A batch recorded later but dated earlier is consumed, and listed, first."""
        yeast = master_item_service.register(owner_id, "Yeast", "g")
        received = batch_store.record_add(owner_id, yeast.id, Decimal("2"), Decimal("1"))
        backdated = batch_store.record_add(
            owner_id,
            yeast.id,
            Decimal("2"),
            Decimal("3"),
            occurred_at=deterministic_clock.now() - timedelta(days=1),
        )
        assert backdated.id > received.id

        remove = fifo_service.record_remove(owner_id, yeast.id, Decimal("3"))
        links = inventory_selector.consumption_links(owner_id, remove.id)

        assert [l.batch_transaction_id for l in links] == [backdated.id, received.id]
        assert [l.position for l in links] == [0, 1]
        assert [l.batch_transaction_id for l in remove.consumption_links] == [
            backdated.id,
            received.id,
        ]
        assert remove.total_price == Decimal("7.00")
