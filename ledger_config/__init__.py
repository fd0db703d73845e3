"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It loads a YAML settings file, validates every section and returns a
    frozen ``LedgerSettings``.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    config id, version and SHA-256 checksum, tying ledger activity to the
    exact settings that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_settings
from ledger_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerSettings:
    """
    Load and validate the active ledger settings.

    Args:
        config_path: YAML settings file.  Defaults to
            ``ledger_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: a section fails validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    settings = load_settings(path)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
        },
    )
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "get_active_config",
]
