"""Database layer - engine, base classes, and column types."""

from ledger_kernel.db.base import UUID, AuditedBase, Base, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.db.types import MONEY_TYPE, PERCENT_TYPE, round_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "AuditedBase",
    "UUIDString",
    "UUID",
    "MONEY_TYPE",
    "PERCENT_TYPE",
    "round_money",
]
