"""
Ledger settings schema.

``LedgerSettings`` is the parsed, frozen form of a YAML settings file.
Module sections reuse the module config dataclasses so their
``__post_init__`` validation runs on load.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_modules.custody.config import CustodyConfig
from ledger_modules.operating.config import OperatingFeeConfig

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    """Arguments for ``ledger_kernel.db.engine.init_engine_from_url``."""

    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self):
        if self.level.upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {sorted(LOG_LEVELS)}")


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime settings.  ``checksum`` identifies the source file content."""

    config_id: str
    version: int
    checksum: str
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    custody: CustodyConfig = field(default_factory=CustodyConfig)
    operating: OperatingFeeConfig = field(default_factory=OperatingFeeConfig)
