"""
ledger_modules.custody.models
=============================

Responsibility:
    Frozen dataclass value objects for custodial cash -- accounts, their
    transactions and expenses, statements and drift reports.  No business
    logic; structure only.

Architecture:
    Module layer (ledger_modules).  These are in-memory DTOs, NOT SQLAlchemy
    ORM models.  Every read operation of CustodyLedgerService returns these
    snapshots, so receipt and print consumers can never mutate the ledger
    through them.

Invariants enforced:
    - All monetary fields use ``Decimal`` -- never ``float``.
    - All DTOs are frozen (immutable after construction).
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AccountStatus(Enum):
    """Custody account lifecycle states."""
    ACTIVE = "active"
    CLOSED = "closed"


class SourceType(Enum):
    """Where the cash of a custody account came from."""
    MANUAL = "manual"
    DISTRIBUTED_PAYMENT = "distributed_payment"


class TransactionType(Enum):
    """Custody transaction kinds.  Adjustments carry a signed amount."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class CustodyAccount:
    """
    One custodial cash grant to one employee.

    Guarantees:
        - ``current_balance`` equals the replay of the account's rows at the
          moment the snapshot was taken.
        - ``source_payment_id`` is set iff ``source_type`` is
          DISTRIBUTED_PAYMENT.
    """
    id: UUID
    employee_id: UUID
    account_number: str
    initial_amount: Decimal
    current_balance: Decimal
    status: AccountStatus
    assigned_date: date
    source_type: SourceType
    custody_name: str | None = None
    closed_date: date | None = None
    notes: str | None = None
    source_payment_id: UUID | None = None
    version: int = 1

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


@dataclass(frozen=True)
class CustodyTransaction:
    """A deposit, withdrawal or signed adjustment against one account."""
    id: UUID
    custody_account_id: UUID
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: date
    description: str | None = None
    receipt_number: str | None = None
    receiver_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CustodyExpense:
    """A spend recorded against one account.  Always debits it."""
    id: UUID
    custody_account_id: UUID
    category: str
    amount: Decimal
    expense_date: date
    description: str
    receipt_number: str | None = None
    vendor_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CustodyDistribution:
    """One employee's share when a payment is converted to custody."""
    employee_id: UUID
    amount: Decimal
    custody_name: str | None = None


@dataclass(frozen=True)
class CustodyStatement:
    """
    Everything a receipt or print consumer needs for one account.

    Guarantees:
        ``closing_balance`` is the replayed balance of exactly the rows in
        ``transactions`` and ``expenses``.
    """
    account: CustodyAccount
    transactions: tuple[CustodyTransaction, ...]
    expenses: tuple[CustodyExpense, ...]
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_adjustments: Decimal
    total_expenses: Decimal
    closing_balance: Decimal
    expenses_by_category: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class BalanceDrift:
    """An account whose stored balance disagrees with its replay."""
    account_id: UUID
    account_number: str
    stored_balance: Decimal
    derived_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.derived_balance
