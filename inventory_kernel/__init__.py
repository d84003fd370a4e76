"""
Inventory Kernel

An append-only FIFO inventory ledger with:
- Per-item serialized stock movements
- Oldest-batch-first consumption with weighted-average costing
- Aggregates derived from the ledger on read
- Immutable transaction history
"""

__version__ = "0.1.0"
