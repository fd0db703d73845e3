"""
Config -> Kernel bridges.

Functions that hand ``LedgerSettings`` sections to the kernel.  These live in
ledger_config (the producer) because the kernel must never import
ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import configure_logging_from_settings, init_engine_from_settings

    settings = get_active_config()
    configure_logging_from_settings(settings)
    init_engine_from_settings(settings)
    service = CustodyLedgerService(session, config=settings.custody)
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.engine import Engine

from ledger_config.schema import LedgerSettings
from ledger_kernel.db.engine import init_engine_from_url
from ledger_kernel.logging_config import configure_logging


def configure_logging_from_settings(settings: LedgerSettings, stream: Any = None) -> None:
    """Configure the ledger_kernel logger at the settings' level (idempotent)."""
    configure_logging(
        level=logging.getLevelName(settings.logging.level.upper()),
        stream=stream,
    )


def init_engine_from_settings(settings: LedgerSettings) -> Engine:
    """Initialize the module-level engine from the database section."""
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
