"""
Custody ORM Models (``ledger_modules.custody.orm``).

Responsibility
--------------
SQLAlchemy persistence models for custodial cash -- accounts, transactions
and expenses.  Maps the frozen DTOs in ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
- ``custody_accounts.account_number`` is unique.
- ``custody_accounts.version`` is SQLAlchemy's ``version_id_col``: every
  UPDATE is guarded by ``WHERE version = <loaded version>``, so a write
  computed from a stale row raises ``StaleDataError`` instead of landing.
- Transactions and expenses reference their account by foreign key; an
  account cannot be deleted while rows still point at it.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import AuditedBase


# ---------------------------------------------------------------------------
# CustodyAccountModel
# ---------------------------------------------------------------------------

class CustodyAccountModel(AuditedBase):
    """
    ORM model for ``CustodyAccount``.

    Table: ``custody_accounts``
    """

    __tablename__ = "custody_accounts"

    employee_id: Mapped[UUID]
    account_number: Mapped[str] = mapped_column(String(50))
    custody_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    initial_amount: Mapped[Decimal]
    current_balance: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(20), default="active")
    assigned_date: Mapped[date]
    closed_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    source_type: Mapped[str] = mapped_column(String(30), default="manual")
    source_payment_id: Mapped[UUID | None] = mapped_column(nullable=True)
    last_recomputed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_custody_accounts_account_number"),
        Index("idx_custody_accounts_employee_id", "employee_id"),
        Index("idx_custody_accounts_status", "status"),
        Index(
            "idx_custody_accounts_source_payment",
            "source_payment_id", "employee_id",
        ),
    )

    def to_dto(self):
        from ledger_modules.custody.models import AccountStatus, CustodyAccount, SourceType
        return CustodyAccount(
            id=self.id,
            employee_id=self.employee_id,
            account_number=self.account_number,
            custody_name=self.custody_name,
            initial_amount=self.initial_amount,
            current_balance=self.current_balance,
            status=AccountStatus(self.status),
            assigned_date=self.assigned_date,
            closed_date=self.closed_date,
            notes=self.notes,
            source_type=SourceType(self.source_type),
            source_payment_id=self.source_payment_id,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "CustodyAccountModel":
        return cls(
            id=dto.id,
            employee_id=dto.employee_id,
            account_number=dto.account_number,
            custody_name=dto.custody_name,
            initial_amount=dto.initial_amount,
            current_balance=dto.current_balance,
            status=dto.status.value,
            assigned_date=dto.assigned_date,
            closed_date=dto.closed_date,
            notes=dto.notes,
            source_type=dto.source_type.value,
            source_payment_id=dto.source_payment_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<CustodyAccountModel(id={self.id!r}, number={self.account_number!r}, "
            f"balance={self.current_balance}, status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# CustodyTransactionModel
# ---------------------------------------------------------------------------

class CustodyTransactionModel(AuditedBase):
    """
    ORM model for ``CustodyTransaction``.

    Table: ``custody_transactions``
    """

    __tablename__ = "custody_transactions"

    custody_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("custody_accounts.id"),
    )
    transaction_type: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal]
    transaction_date: Mapped[date]
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    receipt_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receiver_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    __table_args__ = (
        Index("idx_custody_transactions_account_id", "custody_account_id"),
        Index("idx_custody_transactions_date", "transaction_date"),
    )

    def to_dto(self):
        from ledger_modules.custody.models import CustodyTransaction, TransactionType
        return CustodyTransaction(
            id=self.id,
            custody_account_id=self.custody_account_id,
            transaction_type=TransactionType(self.transaction_type),
            amount=self.amount,
            transaction_date=self.transaction_date,
            description=self.description,
            receipt_number=self.receipt_number,
            receiver_name=self.receiver_name,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "CustodyTransactionModel":
        return cls(
            id=dto.id,
            custody_account_id=dto.custody_account_id,
            transaction_type=dto.transaction_type.value,
            amount=dto.amount,
            transaction_date=dto.transaction_date,
            description=dto.description,
            receipt_number=dto.receipt_number,
            receiver_name=dto.receiver_name,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<CustodyTransactionModel(id={self.id!r}, "
            f"type={self.transaction_type!r}, amount={self.amount})>"
        )


# ---------------------------------------------------------------------------
# CustodyExpenseModel
# ---------------------------------------------------------------------------

class CustodyExpenseModel(AuditedBase):
    """
    ORM model for ``CustodyExpense``.

    Table: ``custody_expenses``
    """

    __tablename__ = "custody_expenses"

    custody_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("custody_accounts.id"),
    )
    category: Mapped[str] = mapped_column(String(100))
    amount: Mapped[Decimal]
    expense_date: Mapped[date]
    description: Mapped[str] = mapped_column(String(500))
    receipt_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    __table_args__ = (
        Index("idx_custody_expenses_account_id", "custody_account_id"),
        Index("idx_custody_expenses_category", "category"),
    )

    def to_dto(self):
        from ledger_modules.custody.models import CustodyExpense
        return CustodyExpense(
            id=self.id,
            custody_account_id=self.custody_account_id,
            category=self.category,
            amount=self.amount,
            expense_date=self.expense_date,
            description=self.description,
            receipt_number=self.receipt_number,
            vendor_name=self.vendor_name,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "CustodyExpenseModel":
        return cls(
            id=dto.id,
            custody_account_id=dto.custody_account_id,
            category=dto.category,
            amount=dto.amount,
            expense_date=dto.expense_date,
            description=dto.description,
            receipt_number=dto.receipt_number,
            vendor_name=dto.vendor_name,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<CustodyExpenseModel(id={self.id!r}, category={self.category!r}, "
            f"amount={self.amount})>"
        )
