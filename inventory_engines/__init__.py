"""
Pure calculation engines for the inventory ledger.

Engines have no I/O: they take snapshots in and return frozen results.
"""

from inventory_engines.fifo import (
    BatchSlice,
    FifoAllocation,
    OpenBatch,
    allocate_fifo,
    weighted_unit_price,
)

__all__ = [
    "BatchSlice",
    "FifoAllocation",
    "OpenBatch",
    "allocate_fifo",
    "weighted_unit_price",
]
