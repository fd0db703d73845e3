"""
ledger_engines.tracer -- LEDGER_ENGINE_TRACE records for pure engines.

Responsibility:
    ``@traced_engine`` logs one INFO record per engine call with the engine
    name and version, the call duration and a short fingerprint of the
    inputs named in ``fingerprint_fields``.  Two allocator runs over the same
    contracts and payments share a fingerprint, so a disputed fee figure can
    be matched to the run that produced it.

Architecture position:
    Engines -- the only logging the pure calculation layer does.  Inputs are
    read, never modified.

Usage:
    @traced_engine("fee_allocation", "1.0", fingerprint_fields=("contracts",))
    def compute_operating_fees(*, contracts, payments, ...):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

_logger = logging.getLogger("ledger_kernel.engines.tracer")


def _plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """First 16 hex digits of SHA-256 over the canonical JSON of the fields."""
    selected = {name: kwargs.get(name) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, default=_plain)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            result = func(*args, **kwargs)
            _logger.info("LEDGER_ENGINE_TRACE", extra={
                "trace_type": "LEDGER_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields else ""
                ),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
                "function": func.__qualname__,
            })
            return result

        return wrapper

    return decorator
