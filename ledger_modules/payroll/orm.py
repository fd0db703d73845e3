"""
Payroll ORM Models (``ledger_modules.payroll.orm``).

Responsibility
--------------
SQLAlchemy persistence models for employees, employee advances and
installation-team accounts.

Architecture position
---------------------
**Modules layer** -- persistence.  ``EmployeeModel`` inherits from ``Base``
(external HR data, no ledger audit columns); advances and team accounts are
written by the ledger and inherit from ``AuditedBase``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import AuditedBase, Base


# ---------------------------------------------------------------------------
# EmployeeModel
# ---------------------------------------------------------------------------

class EmployeeModel(Base):
    """
    ORM model for ``Employee``.

    Table: ``employees``
    """

    __tablename__ = "employees"

    name: Mapped[str] = mapped_column(String(200))
    position: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    linked_to_operating_expenses: Mapped[bool] = mapped_column(Boolean, default=False)
    installation_team_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from ledger_modules.payroll.models import Employee
        return Employee(
            id=self.id,
            name=self.name,
            position=self.position,
            status=self.status,
            linked_to_operating_expenses=bool(self.linked_to_operating_expenses),
            installation_team_id=self.installation_team_id,
        )

    @classmethod
    def from_dto(cls, dto) -> "EmployeeModel":
        return cls(
            id=dto.id,
            name=dto.name,
            position=dto.position,
            status=dto.status,
            linked_to_operating_expenses=dto.linked_to_operating_expenses,
            installation_team_id=dto.installation_team_id,
        )

    def __repr__(self) -> str:
        return f"<EmployeeModel(id={self.id!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# AdvanceModel
# ---------------------------------------------------------------------------

class AdvanceModel(AuditedBase):
    """
    ORM model for ``Advance``.

    Table: ``employee_advances``
    """

    __tablename__ = "employee_advances"

    employee_id: Mapped[UUID]
    amount: Mapped[Decimal]
    remaining: Mapped[Decimal]
    reason: Mapped[str] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(20), default="approved")
    request_date: Mapped[date]

    __table_args__ = (
        Index("idx_employee_advances_employee_status", "employee_id", "status"),
    )

    def to_dto(self):
        from ledger_modules.payroll.models import Advance, AdvanceStatus
        return Advance(
            id=self.id,
            employee_id=self.employee_id,
            amount=self.amount,
            remaining=self.remaining,
            reason=self.reason,
            status=AdvanceStatus(self.status),
            request_date=self.request_date,
        )

    def __repr__(self) -> str:
        return (
            f"<AdvanceModel(id={self.id!r}, amount={self.amount}, "
            f"remaining={self.remaining})>"
        )


# ---------------------------------------------------------------------------
# InstallationTeamAccountModel
# ---------------------------------------------------------------------------

class InstallationTeamAccountModel(AuditedBase):
    """
    ORM model for ``InstallationTeamAccount``.

    Table: ``installation_team_accounts``
    """

    __tablename__ = "installation_team_accounts"

    team_id: Mapped[UUID]
    contract_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installation_date: Mapped[date | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(20), default="pending")
    payment_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    __table_args__ = (
        Index("idx_installation_team_accounts_team_status", "team_id", "status"),
        Index("idx_installation_team_accounts_date", "installation_date"),
    )

    def to_dto(self):
        from ledger_modules.payroll.models import InstallationTeamAccount, TeamAccountStatus
        return InstallationTeamAccount(
            id=self.id,
            team_id=self.team_id,
            contract_number=self.contract_number,
            installation_date=self.installation_date,
            amount=self.amount,
            status=TeamAccountStatus(self.status),
            payment_date=self.payment_date,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<InstallationTeamAccountModel(id={self.id!r}, amount={self.amount}, "
            f"status={self.status!r})>"
        )
