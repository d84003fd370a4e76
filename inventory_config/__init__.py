"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the way runtime code obtains settings.  The
    first call loads and validates the configuration (see ``loader``);
    later calls return the same frozen object.

Failure modes:
    - ``FileNotFoundError`` -- INVENTORY_CONFIG_PATH names a missing file.
    - ``ValueError`` -- unknown keys or out-of-range values.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from inventory_config.loader import load_config
from inventory_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    ReportingConfig,
    RetryConfig,
)

_logger = logging.getLogger("inventory_kernel.config")

_active: LedgerConfig | None = None
_lock = threading.Lock()


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Return the process-wide configuration, loading it on first use.

    ``path`` only matters on the first call (or after
    ``reset_active_config()``).
    """
    global _active
    with _lock:
        if _active is None:
            _active = load_config(path)
            _logger.info(
                "ledger_config_loaded",
                extra={
                    "dialect": _active.database_url.split(":", 1)[0],
                    "max_attempts": _active.max_attempts,
                    "lock_timeout_seconds": _active.lock_timeout_seconds,
                    "low_stock_threshold": _active.low_stock_threshold,
                },
            )
        return _active


def reset_active_config() -> None:
    """Forget the cached configuration.  For tests."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "DatabaseConfig",
    "LedgerConfig",
    "ReportingConfig",
    "RetryConfig",
    "get_active_config",
    "load_config",
    "reset_active_config",
]
