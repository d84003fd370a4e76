"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Current stock position per item, the owner-wide summary,
    paginated transaction history and consumption links for audit.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - current_quantity(item) == sum of remaining_quantity over its batches.
    - total_value(item) == sum of remaining_quantity * unit_price over its
      batches, rounded to money precision once, at the end.
    - current_inventory() is computed from ONE statement, so it reflects a
      single committed snapshot even while writers are active.
    - Reading twice with no writes in between yields equal results.
"""

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select

from inventory_kernel.db.types import ZERO, round_money, to_uuid
from inventory_kernel.domain.dtos import InventoryRow, InventorySummary
from inventory_kernel.exceptions import InvalidInputError
from inventory_kernel.models.consumption_link import ConsumptionLink
from inventory_kernel.models.master_item import MasterItem
from inventory_kernel.models.transaction import InventoryTransaction, TransactionKind
from inventory_kernel.selectors.base import BaseSelector

DEFAULT_LOW_STOCK_THRESHOLD = 5
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500


class InventorySelector(BaseSelector[InventoryTransaction]):
    """Read side of the ledger: stock positions and history."""

    def current_inventory(self, owner_id) -> list[InventoryRow]:
        """
        One row per master item of ``owner_id``, ordered by name.

        Items that never had a transaction appear with zero quantity and
        value and ``last_transaction_at`` of None.
        """
        owner = to_uuid("owner_id", owner_id)
        stmt = (
            select(
                MasterItem.id,
                MasterItem.name,
                MasterItem.unit,
                InventoryTransaction.kind,
                InventoryTransaction.remaining_quantity,
                InventoryTransaction.unit_price,
                InventoryTransaction.occurred_at,
            )
            .outerjoin(
                InventoryTransaction,
                InventoryTransaction.master_item_id == MasterItem.id,
            )
            .where(MasterItem.owner_id == owner)
            .order_by(MasterItem.name, MasterItem.id)
        )
        return _aggregate(self.session.execute(stmt))

    def inventory_summary(
        self,
        owner_id,
        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> InventorySummary:
        """
        Owner-wide roll-up of current_inventory().

        An item is low on stock when its quantity is at or below the
        threshold.  ``average_item_value`` averages over items that hold
        any value.
        """
        rows = self.current_inventory(owner_id)
        threshold = Decimal(str(low_stock_threshold))

        total_value = sum((r.total_value for r in rows), ZERO)
        valued = [r for r in rows if r.total_value > ZERO]
        average = round_money(total_value / len(valued)) if valued else round_money(ZERO)

        return InventorySummary(
            total_items=len(rows),
            total_value=round_money(total_value),
            low_stock_items=sum(1 for r in rows if r.current_quantity <= threshold),
            items_with_value=len(valued),
            average_item_value=average,
        )

    def transaction_history(
        self,
        owner_id,
        item_id=None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> list[InventoryTransaction]:
        """
        Transactions of ``owner_id`` newest first, optionally for one item.

        Ties on occurred_at are broken by id, newest first.

        Raises:
            InvalidInputError: limit outside 1..MAX_HISTORY_LIMIT or
                negative offset.
        """
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise InvalidInputError("limit", f"must be between 1 and {MAX_HISTORY_LIMIT}")
        if offset < 0:
            raise InvalidInputError("offset", "cannot be negative")

        owner = to_uuid("owner_id", owner_id)
        stmt = select(InventoryTransaction).where(InventoryTransaction.owner_id == owner)
        if item_id is not None:
            stmt = stmt.where(
                InventoryTransaction.master_item_id == to_uuid("item_id", item_id)
            )
        stmt = (
            stmt.order_by(
                InventoryTransaction.occurred_at.desc(),
                InventoryTransaction.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(stmt).scalars())

    def consumption_links(self, owner_id, remove_transaction_id: int) -> list[ConsumptionLink]:
        """Links of one remove transaction, in the FIFO order they were consumed."""
        owner = to_uuid("owner_id", owner_id)
        return list(
            self.session.execute(
                select(ConsumptionLink)
                .join(ConsumptionLink.batch)
                .where(
                    ConsumptionLink.remove_transaction_id == remove_transaction_id,
                    ConsumptionLink.owner_id == owner,
                )
                .order_by(InventoryTransaction.occurred_at, InventoryTransaction.id)
            ).scalars()
        )


def _aggregate(result: Iterable) -> list[InventoryRow]:
    rows: list[InventoryRow] = []
    current: dict | None = None

    def close(acc: dict) -> None:
        rows.append(
            InventoryRow(
                item_id=acc["item_id"],
                name=acc["name"],
                unit=acc["unit"],
                current_quantity=acc["quantity"],
                total_value=round_money(acc["value"]),
                last_transaction_at=acc["last"],
            )
        )

    for item_id, name, unit, kind, remaining, unit_price, occurred_at in result:
        if current is None or current["item_id"] != item_id:
            if current is not None:
                close(current)
            current = {
                "item_id": item_id,
                "name": name,
                "unit": unit,
                "quantity": ZERO,
                "value": ZERO,
                "last": None,
            }

        if kind is None:
            # Outer join row: item without transactions
            continue

        if occurred_at is not None and (current["last"] is None or occurred_at > current["last"]):
            current["last"] = occurred_at

        if kind == TransactionKind.ADD.value and remaining:
            qty = Decimal(remaining)
            current["quantity"] += qty
            current["value"] += qty * Decimal(unit_price)

    if current is not None:
        close(current)
    return rows

