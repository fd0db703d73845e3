"""
Structured JSON logging for the ledger.

Every ledger logger lives under ``ledger_kernel`` (see ``get_logger``) and
writes one JSON object per line:

    {"ts": ..., "level": ..., "logger": ..., "message": "custody_withdrawal_completed",
     "actor_id": ..., "account_id": ..., "amount": "20.00", ...}

Fields come from three places, in order: the record itself, the ambient
``LogContext`` (who is acting on which account or employee), and the
``extra=`` dict of the call.  Exceptions logged with ``exc_info`` add their
type, ``code`` and public attributes as ``exc_*`` fields.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "ledger_kernel"

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "account_id", "employee_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """
    Ambient fields attached to every record emitted in the current context.

    Backed by ``contextvars`` so worker threads and tasks each see their own
    values.  Unknown field names are ignored; values are stored as strings.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set the given fields; ``None`` values leave a field unchanged."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: var.get()
            for name, var in _context_vars.items()
            if var.get() is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the duration of a block, then restore the old values."""
        tokens = []
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                tokens.append((var, var.set(str(value))))
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord has; anything else on a record came from extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``ledger_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
