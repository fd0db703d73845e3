"""
Operating-Fee ORM Models (``ledger_modules.operating.orm``).

Responsibility
--------------
SQLAlchemy persistence models for operating-expense withdrawals, period
closures and per-contract exclusion flags.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.

Invariants enforced
-------------------
- ``expenses_flags.contract_number`` is unique (one flag per contract).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import AuditedBase


# ---------------------------------------------------------------------------
# ExpensesWithdrawalModel
# ---------------------------------------------------------------------------

class ExpensesWithdrawalModel(AuditedBase):
    """
    ORM model for ``OperatingWithdrawal``.

    Table: ``expenses_withdrawals``
    """

    __tablename__ = "expenses_withdrawals"

    employee_id: Mapped[UUID | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal]
    withdrawal_date: Mapped[date]
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    receiver_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    __table_args__ = (
        Index("idx_expenses_withdrawals_employee_id", "employee_id"),
        Index("idx_expenses_withdrawals_date", "withdrawal_date"),
    )

    def to_dto(self):
        from ledger_modules.operating.models import OperatingWithdrawal
        return OperatingWithdrawal(
            id=self.id,
            employee_id=self.employee_id,
            amount=self.amount,
            withdrawal_date=self.withdrawal_date,
            method=self.method,
            notes=self.notes,
            receiver_name=self.receiver_name,
            sender_name=self.sender_name,
        )

    def __repr__(self) -> str:
        return (
            f"<ExpensesWithdrawalModel(id={self.id!r}, employee={self.employee_id!r}, "
            f"amount={self.amount})>"
        )


# ---------------------------------------------------------------------------
# PeriodClosureModel
# ---------------------------------------------------------------------------

class PeriodClosureModel(AuditedBase):
    """
    ORM model for ``PeriodClosure``.

    Table: ``period_closures``
    """

    __tablename__ = "period_closures"

    closure_type: Mapped[str] = mapped_column(String(30))
    contract_start: Mapped[int | None] = mapped_column(Integer, nullable=True)
    contract_end: Mapped[int | None] = mapped_column(Integer, nullable=True)
    period_start: Mapped[date | None] = mapped_column(nullable=True)
    period_end: Mapped[date | None] = mapped_column(nullable=True)
    closure_date: Mapped[date]
    total_contracts: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[Decimal]
    total_withdrawn: Mapped[Decimal]
    remaining_balance: Mapped[Decimal]
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    __table_args__ = (
        Index("idx_period_closures_type", "closure_type"),
    )

    def to_dto(self):
        from ledger_modules.operating.models import ClosureType, PeriodClosure
        return PeriodClosure(
            id=self.id,
            closure_type=ClosureType(self.closure_type),
            contract_start=self.contract_start,
            contract_end=self.contract_end,
            period_start=self.period_start,
            period_end=self.period_end,
            closure_date=self.closure_date,
            total_contracts=self.total_contracts,
            total_amount=self.total_amount,
            total_withdrawn=self.total_withdrawn,
            remaining_balance=self.remaining_balance,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<PeriodClosureModel(id={self.id!r}, type={self.closure_type!r}, "
            f"total_amount={self.total_amount})>"
        )


# ---------------------------------------------------------------------------
# ExpenseFlagModel
# ---------------------------------------------------------------------------

class ExpenseFlagModel(AuditedBase):
    """
    ORM model for ``ExpenseFlag``.

    Table: ``expenses_flags``
    """

    __tablename__ = "expenses_flags"

    contract_number: Mapped[int] = mapped_column(Integer)
    excluded: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("contract_number", name="uq_expenses_flags_contract_number"),
    )

    def to_dto(self):
        from ledger_modules.operating.models import ExpenseFlag
        return ExpenseFlag(
            contract_number=self.contract_number,
            excluded=bool(self.excluded),
        )

    def __repr__(self) -> str:
        return (
            f"<ExpenseFlagModel(contract={self.contract_number}, "
            f"excluded={self.excluded})>"
        )
