"""
Read-side value objects returned by the inventory selectors.

All are frozen dataclasses: a snapshot handed to a caller can never be
mutated into disagreeing with the ledger it was read from.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


@dataclass(frozen=True, slots=True)
class InventoryRow:
    """Current stock position of one master item."""

    item_id: UUID
    name: str
    unit: str
    current_quantity: Decimal
    total_value: Decimal
    last_transaction_at: datetime | None

    @property
    def average_unit_cost(self) -> Decimal:
        """Value per unit of the stock on hand (zero when out of stock)."""
        if self.current_quantity == 0:
            return Decimal("0")
        return self.total_value / self.current_quantity


@dataclass(frozen=True, slots=True)
class InventorySummary:
    """Owner-wide roll-up of the current inventory."""

    total_items: int
    total_value: Decimal
    low_stock_items: int
    items_with_value: int
    average_item_value: Decimal


class ReportPeriod(str, Enum):
    """Bucket size for period reports."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


@dataclass(frozen=True, slots=True)
class PeriodReportRow:
    """
    Incoming vs outgoing movement for one reporting bucket.

    ``net_expense`` is outgoing value minus incoming value.
    """

    period: str
    incoming_quantity: Decimal
    incoming_value: Decimal
    outgoing_quantity: Decimal
    outgoing_value: Decimal

    @property
    def net_expense(self) -> Decimal:
        return self.outgoing_value - self.incoming_value


@dataclass(frozen=True, slots=True)
class TrendPoint:
    """
    Removals in one week.

    ``item_values`` breaks ``value`` down by item name, sorted by name.
    """

    week_start: str
    quantity: Decimal
    value: Decimal
    transaction_count: int
    item_values: tuple[tuple[str, Decimal], ...] = ()
