"""
ledger_modules.payroll.models
=============================

Responsibility:
    Frozen dataclass value objects for employees, cash advances and
    installation-team accounts.  No business logic; structure only.

Invariants enforced:
    - All monetary fields use ``Decimal`` -- never ``float``.
    - ``0 <= Advance.remaining <= Advance.amount``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AdvanceStatus(Enum):
    """Advance approval states.  Only approved advances reduce team balances."""
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


class TeamAccountStatus(Enum):
    """Installation-team account row states."""
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class Employee:
    """
    An employee as seen by the ledger.  Owned by the HR subsystem.

    ``linked_to_operating_expenses`` and ``installation_team_id`` decide which
    balance source the employee draws from.
    """
    id: UUID
    name: str
    position: str | None = None
    status: str = "active"
    linked_to_operating_expenses: bool = False
    installation_team_id: UUID | None = None


@dataclass(frozen=True)
class Advance:
    """A cash advance.  Fully repaid advances (remaining 0) are kept."""
    id: UUID
    employee_id: UUID
    amount: Decimal
    remaining: Decimal
    reason: str
    status: AdvanceStatus
    request_date: date

    @property
    def is_settled(self) -> bool:
        return self.remaining == 0


@dataclass(frozen=True)
class InstallationTeamAccount:
    """Money owed to an installation team for one installation."""
    id: UUID
    team_id: UUID
    amount: Decimal
    status: TeamAccountStatus
    contract_number: int | None = None
    installation_date: date | None = None
    payment_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TeamBalance:
    """
    Team-dues position of one employee.

    Guarantees:
        ``available == pending_total - outstanding_advances``.
    """
    employee_id: UUID
    team_id: UUID
    pending_total: Decimal
    outstanding_advances: Decimal
    available: Decimal
    pending_rows: int


@dataclass(frozen=True)
class TeamWithdrawal:
    """Outcome of a team-dues withdrawal."""
    advance: Advance
    settled_row_ids: tuple[UUID, ...]
    settled_total: Decimal
    unallocated: Decimal
    available_before: Decimal
