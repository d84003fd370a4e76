"""Pure domain types for the inventory kernel (no I/O)."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    InventoryRow,
    InventorySummary,
    PeriodReportRow,
    ReportPeriod,
    TrendPoint,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "InventoryRow",
    "InventorySummary",
    "PeriodReportRow",
    "ReportPeriod",
    "TrendPoint",
]
