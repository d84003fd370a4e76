"""
Concurrent withdrawal tests.

Two removals racing for the last units of an item must never both succeed:
the per-item lock (and, on PostgreSQL, the batch row locks) serialize them,
and whichever runs second sees the depleted batch.

Expected Behavior:
- Exactly one of two competing removals of the full stock succeeds
- Final stock is never negative and links always sum to the removed quantity
- Receipts and removals on different items do not block each other
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.services.ledger import InventoryLedger, LedgerSettings

pytestmark = pytest.mark.slow_locks


@pytest.fixture
def patient_ledger(session_factory, deterministic_clock):
    """Ledger with a generous retry budget for SQLite write-lock contention."""
    return InventoryLedger(
        session_factory,
        clock=deterministic_clock,
        config=LedgerSettings(max_attempts=10, backoff_seconds=0.01, lock_timeout_seconds=10.0),
    )


def _race(fns):
    barrier = Barrier(len(fns))

    def run(fn):
        barrier.wait()
        try:
            return "ok", fn()
        except InsufficientStockError as exc:
            return "insufficient", exc

    with ThreadPoolExecutor(max_workers=len(fns)) as pool:
        return list(pool.map(run, fns))


class TestCompetingRemovals:

    def test_only_one_of_two_full_removals_wins(self, patient_ledger, owner_id):
        item = patient_ledger.register_item(owner_id, "Flour", "kg")
        patient_ledger.record_add(owner_id, item.id, Decimal("10"), Decimal("2"))

        results = _race(
            [lambda: patient_ledger.record_remove(owner_id, item.id, Decimal("10"))] * 2
        )

        outcomes = sorted(r[0] for r in results)
        assert outcomes == ["insufficient", "ok"]

        (row,) = patient_ledger.current_inventory(owner_id)
        assert row.current_quantity == 0

    def test_many_small_removals_never_oversell(self, patient_ledger, owner_id):
        item = patient_ledger.register_item(owner_id, "Sugar", "kg")
        patient_ledger.record_add(owner_id, item.id, Decimal("3"), Decimal("1"))
        patient_ledger.record_add(owner_id, item.id, Decimal("3"), Decimal("2"))

        results = _race(
            [lambda: patient_ledger.record_remove(owner_id, item.id, Decimal("1"))] * 8
        )

        assert sum(1 for r in results if r[0] == "ok") == 6
        assert sum(1 for r in results if r[0] == "insufficient") == 2

        removes = [t for t in patient_ledger.transaction_history(owner_id) if t.kind == "remove"]
        for remove in removes:
            links = patient_ledger.consumption_links(owner_id, remove.id)
            assert sum(l.quantity_taken for l in links) == remove.quantity

        (row,) = patient_ledger.current_inventory(owner_id)
        assert row.current_quantity == 0
        assert row.total_value == Decimal("0.00")


class TestIndependentItems:

    def test_different_items_proceed_in_parallel(self, patient_ledger, owner_id):
        items = [patient_ledger.register_item(owner_id, f"Item {i}", "ea") for i in range(4)]

        def receive_and_use(item):
            def run():
                patient_ledger.record_add(owner_id, item.id, Decimal("5"), Decimal("1"))
                return patient_ledger.record_remove(owner_id, item.id, Decimal("2"))
            return run

        results = _race([receive_and_use(item) for item in items])

        assert all(r[0] == "ok" for r in results)
        rows = patient_ledger.current_inventory(owner_id)
        assert [r.current_quantity for r in rows] == [Decimal("3")] * 4
