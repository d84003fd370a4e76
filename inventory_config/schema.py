"""
Ledger configuration schema.

One frozen dataclass per concern, composed into ``LedgerConfig``.  The
loader fills these from defaults, a YAML file and the environment; nothing
else constructs them at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DATABASE_URL = "sqlite:///inventory.db"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Engine settings passed to ``init_engine_from_url``."""

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryConfig:
    """Bounded retry of conflicting ledger writes."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    lock_timeout_seconds: float = 10.0


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReportingConfig:
    low_stock_threshold: int = 5


@dataclass(frozen=True)
class LedgerConfig:
    """Complete runtime configuration of the inventory ledger."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def max_attempts(self) -> int:
        return self.retry.max_attempts

    @property
    def backoff_seconds(self) -> float:
        return self.retry.backoff_seconds

    @property
    def lock_timeout_seconds(self) -> float:
        return self.retry.lock_timeout_seconds

    @property
    def low_stock_threshold(self) -> int:
        return self.reporting.low_stock_threshold
