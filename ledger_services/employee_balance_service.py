"""
EmployeeBalanceService -- one withdrawable balance per employee.

Responsibility:
    Resolve which balance an employee draws from and dispatch balance reads
    and withdrawals to the module that owns it.

Architecture position:
    Services -- orchestration over ``OperatingFeeService`` and
    ``PayrollService``.

Resolution order:
    1. ``linked_to_operating_expenses`` -> OperatingFeeSource.
    2. ``installation_team_id`` set     -> TeamAccountSource.
    3. otherwise                        -> PayrollSource (balance 0; salaried
       pay flows through payroll runs, so withdrawals are rejected).

Failure modes:
    - EmployeeNotFoundError for an unknown employee.
    - BalanceSourceMismatchError when withdrawing from a PayrollSource.
    - Whatever the owning module raises (InsufficientBalanceError,
      ValidationError).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import BalanceSourceMismatchError
from ledger_kernel.logging_config import get_logger
from ledger_modules.operating.config import OperatingFeeConfig
from ledger_modules.operating.service import OperatingFeeService
from ledger_modules.payroll.models import Employee
from ledger_modules.payroll.service import PayrollService

logger = get_logger("services.employee_balance")

ZERO = Decimal("0")


class BalanceSourceKind(str, Enum):
    OPERATING_FEES = "operating_fees"
    TEAM_ACCOUNT = "team_account"
    PAYROLL = "payroll"


@dataclass(frozen=True)
class EmployeeBalance:
    """Withdrawable balance of one employee and where it comes from."""

    employee_id: UUID
    source: BalanceSourceKind
    available: Decimal


@dataclass(frozen=True)
class SourceWithdrawal:
    """Result of a withdrawal dispatched to a balance source."""

    employee_id: UUID
    source: BalanceSourceKind
    amount: Decimal
    withdrawal_date: date
    record_id: UUID
    available_after: Decimal


class BalanceSource(ABC):
    """Strategy for reading and drawing down one kind of employee balance."""

    kind: BalanceSourceKind

    @abstractmethod
    def available(self, employee: Employee) -> Decimal:
        ...

    @abstractmethod
    def withdraw(
        self,
        employee: Employee,
        amount: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> SourceWithdrawal:
        ...


class OperatingFeeSource(BalanceSource):
    """Operating fees net of operating-expense withdrawals."""

    kind = BalanceSourceKind.OPERATING_FEES

    def __init__(self, operating: OperatingFeeService):
        self._operating = operating

    def available(self, employee: Employee) -> Decimal:
        return self._operating.compute_operating_fees(employee.id).remaining_balance

    def withdraw(self, employee, amount, withdrawal_date, actor_id, notes=None):
        record = self._operating.record_withdrawal(
            employee.id, amount, withdrawal_date, actor_id, notes=notes,
        )
        return SourceWithdrawal(
            employee_id=employee.id,
            source=self.kind,
            amount=record.amount,
            withdrawal_date=record.withdrawal_date,
            record_id=record.id,
            available_after=self.available(employee),
        )


class TeamAccountSource(BalanceSource):
    """Pending installation-team dues net of outstanding advances."""

    kind = BalanceSourceKind.TEAM_ACCOUNT

    def __init__(self, payroll: PayrollService):
        self._payroll = payroll

    def available(self, employee: Employee) -> Decimal:
        return self._payroll.team_available_balance(employee.id).available

    def withdraw(self, employee, amount, withdrawal_date, actor_id, notes=None):
        result = self._payroll.withdraw_team_dues(
            employee.id, amount, withdrawal_date, actor_id, notes=notes,
        )
        return SourceWithdrawal(
            employee_id=employee.id,
            source=self.kind,
            amount=result.advance.amount,
            withdrawal_date=result.advance.request_date,
            record_id=result.advance.id,
            available_after=result.available_before - result.advance.amount,
        )


class PayrollSource(BalanceSource):
    """Salaried employees: nothing to withdraw outside payroll runs."""

    kind = BalanceSourceKind.PAYROLL

    def available(self, employee: Employee) -> Decimal:
        return ZERO

    def withdraw(self, employee, amount, withdrawal_date, actor_id, notes=None):
        logger.warning("employee_withdrawal_rejected", extra={
            "employee_id": str(employee.id),
            "source": self.kind.value,
            "amount": str(amount),
        })
        raise BalanceSourceMismatchError(
            str(employee.id), "operating_fees_or_team_account", self.kind.value,
        )


class EmployeeBalanceService:
    """Dispatches employee balance reads and withdrawals to their source."""

    def __init__(
        self,
        session: Session,
        operating_config: OperatingFeeConfig | None = None,
        clock: Clock | None = None,
    ):
        clock = clock or SystemClock()
        self._payroll = PayrollService(session, clock=clock)
        self._sources: dict[BalanceSourceKind, BalanceSource] = {
            BalanceSourceKind.OPERATING_FEES: OperatingFeeSource(
                OperatingFeeService(session, config=operating_config, clock=clock),
            ),
            BalanceSourceKind.TEAM_ACCOUNT: TeamAccountSource(self._payroll),
            BalanceSourceKind.PAYROLL: PayrollSource(),
        }

    @staticmethod
    def source_kind(employee: Employee) -> BalanceSourceKind:
        if employee.linked_to_operating_expenses:
            return BalanceSourceKind.OPERATING_FEES
        if employee.installation_team_id is not None:
            return BalanceSourceKind.TEAM_ACCOUNT
        return BalanceSourceKind.PAYROLL

    def resolve_source(self, employee_id: UUID) -> BalanceSource:
        """The balance source of one employee.  Raises EmployeeNotFoundError."""
        employee = self._payroll.get_employee(employee_id)
        return self._sources[self.source_kind(employee)]

    def balance_for(self, employee_id: UUID) -> EmployeeBalance:
        employee = self._payroll.get_employee(employee_id)
        source = self._sources[self.source_kind(employee)]
        balance = EmployeeBalance(
            employee_id=employee.id,
            source=source.kind,
            available=source.available(employee),
        )
        logger.info("employee_balance_resolved", extra={
            "employee_id": str(employee_id),
            "source": source.kind.value,
            "available": str(balance.available),
        })
        return balance

    def withdraw(
        self,
        employee_id: UUID,
        amount: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> SourceWithdrawal:
        """
        Withdraw from whichever balance the employee draws on.

        Raises:
            EmployeeNotFoundError, BalanceSourceMismatchError,
            InsufficientBalanceError, ValidationError.
        """
        employee = self._payroll.get_employee(employee_id)
        source = self._sources[self.source_kind(employee)]
        logger.info("employee_withdrawal_started", extra={
            "employee_id": str(employee_id),
            "source": source.kind.value,
            "amount": str(amount),
        })
        result = source.withdraw(employee, amount, withdrawal_date, actor_id, notes)
        logger.info("employee_withdrawal_completed", extra={
            "employee_id": str(employee_id),
            "source": source.kind.value,
            "amount": str(result.amount),
            "available_after": str(result.available_after),
        })
        return result
