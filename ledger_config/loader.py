"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into ``LedgerSettings``.  Runtime
callers go through ``ledger_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section keys  -> ``TypeError`` from the section dataclass.
* Invalid values  -> ``ValueError`` from ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import DatabaseSettings, LedgerSettings, LoggingSettings
from ledger_modules.custody.config import CustodyConfig
from ledger_modules.operating.config import OperatingFeeConfig

SECTIONS = ("database", "logging", "custody", "operating")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a settings dict.

    Missing sections take their defaults.  ``config_id`` is required.
    """
    unknown = set(data) - set(SECTIONS) - {"config_id", "version"}
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")

    return LedgerSettings(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        database=DatabaseSettings(**(data.get("database") or {})),
        logging=LoggingSettings(**(data.get("logging") or {})),
        custody=CustodyConfig.from_dict(data.get("custody") or {}),
        operating=OperatingFeeConfig.from_dict(data.get("operating") or {}),
    )


def load_settings(path: Path) -> LedgerSettings:
    return parse_settings(load_yaml_file(path))
