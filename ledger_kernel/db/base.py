"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the ledger store.  Every custody, payroll
    and operating table inherits its UUID key from ``Base``; tables written by
    ledger operations also inherit ``AuditedBase`` so each row carries the
    acting user and server-side timestamps.
Architecture position: Kernel > DB.  Imported by every ``ledger_modules``
    ORM file; imports nothing above ``ledger_kernel.db``.

Invariants enforced:
    - Keys are uuid4 values kept as 36-character strings, so one schema works
      on PostgreSQL in production and SQLite in tests.
    - An annotated ``Decimal`` column is always Numeric(38, 9).
    - ``created_by_id`` is NOT NULL: a ledger row without an actor cannot be
      flushed.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ledger_kernel.db.types import MONEY_TYPE


class UUIDString(TypeDecorator):
    """Python ``UUID`` in, ``String(36)`` on disk."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(str(value))


def _timestamp(*, touch_on_update: bool):
    extra = {"onupdate": func.now()} if touch_on_update else {}
    return mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, **extra
    )


class Base(DeclarativeBase):
    """Root of the ledger metadata.  Annotated types map as below."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: MONEY_TYPE,
        int: BigInteger,
        date: Date,
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class AuditedBase(Base):
    """
    Rows written by ledger operations.

    ``created_*`` is fixed at insert; ``updated_*`` follows the last
    mutation.  Services pass the operation's ``actor_id`` into both.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = _timestamp(touch_on_update=False)
    updated_at: Mapped[datetime] = _timestamp(touch_on_update=True)
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)


UUID = PyUUID
