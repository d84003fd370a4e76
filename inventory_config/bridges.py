"""
Config -> Kernel Bridges.

Functions that turn a ``LedgerConfig`` into kernel inputs.  They live in
inventory_config (the producer) because the kernel never imports
inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_ledger

    ledger = build_ledger(get_active_config(), create_schema=True)
"""

from __future__ import annotations

from inventory_config.schema import LedgerConfig
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock
from inventory_kernel.services.ledger import InventoryLedger, LedgerSettings


def ledger_settings(config: LedgerConfig) -> LedgerSettings:
    """Project the retry and reporting sections onto LedgerSettings."""
    return LedgerSettings(
        max_attempts=config.retry.max_attempts,
        backoff_seconds=config.retry.backoff_seconds,
        lock_timeout_seconds=config.retry.lock_timeout_seconds,
        low_stock_threshold=config.reporting.low_stock_threshold,
    )


def init_engine(config: LedgerConfig):
    """Initialize the kernel engine from the database section."""
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        sqlite_busy_timeout=config.retry.lock_timeout_seconds,
    )


def build_ledger(
    config: LedgerConfig,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> InventoryLedger:
    """
    Wire a ready-to-use InventoryLedger.

    Initializes the engine, registers the immutability listeners and,
    with ``create_schema``, creates the tables and sequence counters.
    """
    engine = init_engine(config)
    register_immutability_listeners()
    if create_schema:
        create_tables(engine)
    return InventoryLedger(
        get_session_factory(),
        clock=clock,
        config=ledger_settings(config),
    )
