"""
ledger_modules.payroll.service
==============================

Responsibility:
    Team-dues balances and withdrawals for employees linked to an
    installation team, plus the cash-advance lifecycle.

Architecture:
    Module layer (ledger_modules).  Owns the transaction boundary for its
    operations.  Row selection for team-dues payoff is delegated to
    ``ledger_engines.team_settlement.select_rows_to_settle``.

Invariants enforced:
    - Team available balance = pending team-account amounts - remaining of
      approved advances.
    - A withdrawal never exceeds the available balance.
    - Pending rows are paid oldest first and only when fully covered; the
      payoff stops at the first row that does not fit.
    - 0 <= advance.remaining <= advance.amount.
    - Withdrawals for one employee are serialized by the employee lock.

Failure modes:
    - EmployeeNotFoundError, AdvanceNotFoundError.
    - BalanceSourceMismatchError when the employee has no installation team.
    - InsufficientBalanceError when the withdrawal exceeds the balance.
    - ValidationError on bad amounts or over-repayment.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.team_settlement import PendingTeamRow, select_rows_to_settle
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.validation import require_non_empty, require_positive_amount
from ledger_kernel.exceptions import (
    AdvanceNotFoundError,
    BalanceSourceMismatchError,
    EmployeeNotFoundError,
    InsufficientBalanceError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.lock_service import employee_locks
from ledger_modules._session_helpers import ledger_transaction
from ledger_modules.payroll.models import (
    Advance,
    AdvanceStatus,
    Employee,
    InstallationTeamAccount,
    TeamAccountStatus,
    TeamBalance,
    TeamWithdrawal,
)
from ledger_modules.payroll.orm import (
    AdvanceModel,
    EmployeeModel,
    InstallationTeamAccountModel,
)

logger = get_logger("modules.payroll.service")

TEAM_WITHDRAWAL_REASON = "Withdrawal from team dues"

ZERO = Decimal("0")


class PayrollService:
    """
    Team-dues and advance operations.

    Contract:
        Each public mutating method commits and returns a frozen snapshot, or
        rolls back and raises a typed LedgerError.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # =========================================================================
    # Employees
    # =========================================================================

    def get_employee(self, employee_id: UUID) -> Employee:
        """Snapshot of one employee.  Raises EmployeeNotFoundError."""
        return self._employee(employee_id).to_dto()

    # =========================================================================
    # Team dues
    # =========================================================================

    def team_available_balance(self, employee_id: UUID) -> TeamBalance:
        """
        Team-dues balance of an employee linked to an installation team.

        Raises:
            EmployeeNotFoundError, BalanceSourceMismatchError.
        """
        employee = self._employee(employee_id)
        team_id = self._team_of(employee)
        rows = self._pending_rows(team_id)
        return self._balance(employee.id, team_id, rows)

    def withdraw_team_dues(
        self,
        employee_id: UUID,
        amount: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> TeamWithdrawal:
        """
        Pay out team dues and mark the covered rows paid.

        Preconditions:
            - ``0 < amount <= available``.
        Postconditions:
            - An approved advance records the payout; its remaining is the
              part of the amount that settled no whole row, so the available
              balance drops by exactly ``amount``.
            - Pending rows are marked paid oldest first while each row fits
              in the unspent amount.
        Raises:
            ValidationError, EmployeeNotFoundError, BalanceSourceMismatchError,
            InsufficientBalanceError.
        """
        logger.info("team_withdrawal_started", extra={
            "employee_id": str(employee_id),
            "amount": str(amount),
        })
        value = require_positive_amount(amount, "amount")

        with ledger_transaction(
            self._session, "withdraw_team_dues",
            lock=employee_locks.hold(employee_id),
            entity_type="employee", entity_id=employee_id,
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            employee = self._employee(employee_id)
            team_id = self._team_of(employee)
            rows = self._pending_rows(team_id, for_update=True)
            balance = self._balance(employee.id, team_id, rows)

            if value > balance.available:
                logger.warning("team_withdrawal_rejected", extra={
                    "employee_id": str(employee_id),
                    "requested": str(value),
                    "available": str(balance.available),
                })
                raise InsufficientBalanceError(
                    str(employee_id), value, balance.available,
                )

            plan = select_rows_to_settle(
                [
                    PendingTeamRow(
                        row_id=row.id,
                        installation_date=row.installation_date,
                        amount=row.amount,
                    )
                    for row in rows
                ],
                value,
            )

            # Cash that settled no whole row stays owed against the pending rows.
            advance = AdvanceModel(
                id=uuid4(),
                employee_id=employee.id,
                amount=value,
                remaining=plan.unallocated,
                reason=f"{TEAM_WITHDRAWAL_REASON}: {notes}" if notes else TEAM_WITHDRAWAL_REASON,
                status=AdvanceStatus.APPROVED.value,
                request_date=withdrawal_date,
                created_by_id=actor_id,
            )
            self._session.add(advance)

            by_id = {row.id: row for row in rows}
            for row_id in plan.settled_row_ids:
                row = by_id[row_id]
                row.status = TeamAccountStatus.PAID.value
                row.payment_date = withdrawal_date
                row.updated_by_id = actor_id
            self._session.flush()

            result = TeamWithdrawal(
                advance=advance.to_dto(),
                settled_row_ids=tuple(plan.settled_row_ids),
                settled_total=plan.settled_total,
                unallocated=plan.unallocated,
                available_before=balance.available,
            )

        logger.info("team_withdrawal_completed", extra={
            "employee_id": str(employee_id),
            "amount": str(value),
            "rows_settled": len(result.settled_row_ids),
            "settled_total": str(result.settled_total),
            "unallocated": str(result.unallocated),
        })
        return result

    def list_team_accounts(
        self,
        employee_id: UUID,
        status: TeamAccountStatus | None = None,
    ) -> list[InstallationTeamAccount]:
        """Team-account rows of the employee's team, oldest first."""
        team_id = self._team_of(self._employee(employee_id))
        stmt = select(InstallationTeamAccountModel).where(
            InstallationTeamAccountModel.team_id == team_id,
        )
        if status is not None:
            stmt = stmt.where(InstallationTeamAccountModel.status == status.value)
        stmt = stmt.order_by(
            InstallationTeamAccountModel.installation_date,
            InstallationTeamAccountModel.id,
        )
        return [row.to_dto() for row in self._session.scalars(stmt)]

    # =========================================================================
    # Advances
    # =========================================================================

    def issue_advance(
        self,
        employee_id: UUID,
        amount: Decimal,
        reason: str,
        actor_id: UUID,
        request_date: date | None = None,
        status: AdvanceStatus = AdvanceStatus.APPROVED,
    ) -> Advance:
        """
        Record a cash advance with remaining == amount.

        Raises:
            ValidationError, EmployeeNotFoundError.
        """
        logger.info("advance_issue_started", extra={
            "employee_id": str(employee_id),
            "amount": str(amount),
            "status": status.value,
        })
        value = require_positive_amount(amount, "amount")
        reason = require_non_empty(reason, "reason")

        with ledger_transaction(
            self._session, "issue_advance",
            lock=employee_locks.hold(employee_id),
            entity_type="employee", entity_id=employee_id,
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            employee = self._employee(employee_id)
            model = AdvanceModel(
                id=uuid4(),
                employee_id=employee.id,
                amount=value,
                remaining=value,
                reason=reason,
                status=status.value,
                request_date=request_date or self._clock.today(),
                created_by_id=actor_id,
            )
            self._session.add(model)
            self._session.flush()
            dto = model.to_dto()

        logger.info("advance_issued", extra={
            "advance_id": str(dto.id),
            "employee_id": str(employee_id),
            "amount": str(dto.amount),
        })
        return dto

    def repay_advance(
        self,
        advance_id: UUID,
        amount: Decimal,
        actor_id: UUID,
    ) -> Advance:
        """
        Reduce an advance's remaining balance.

        Raises:
            AdvanceNotFoundError.
            ValidationError: amount <= 0 or amount > remaining.
        """
        logger.info("advance_repay_started", extra={
            "advance_id": str(advance_id),
            "amount": str(amount),
        })
        value = require_positive_amount(amount, "amount")

        model = self._session.get(AdvanceModel, advance_id)
        if model is None:
            raise AdvanceNotFoundError(str(advance_id))

        with ledger_transaction(
            self._session, "repay_advance",
            lock=employee_locks.hold(model.employee_id),
            entity_type="employee_advance", entity_id=advance_id,
            log_context={"actor_id": actor_id, "employee_id": model.employee_id},
        ):
            model = self._session.scalars(
                select(AdvanceModel)
                .where(AdvanceModel.id == advance_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).one()
            if value > model.remaining:
                logger.warning("advance_repay_rejected", extra={
                    "advance_id": str(advance_id),
                    "amount": str(value),
                    "remaining": str(model.remaining),
                })
                raise ValidationError(
                    f"Repayment {value} exceeds the remaining {model.remaining}",
                    field="amount",
                )
            model.remaining = model.remaining - value
            model.updated_by_id = actor_id
            self._session.flush()
            dto = model.to_dto()

        logger.info("advance_repaid", extra={
            "advance_id": str(advance_id),
            "amount": str(value),
            "remaining": str(dto.remaining),
        })
        return dto

    def list_advances(
        self,
        employee_id: UUID,
        status: AdvanceStatus | None = None,
    ) -> list[Advance]:
        """Advances of one employee, oldest first."""
        stmt = select(AdvanceModel).where(AdvanceModel.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(AdvanceModel.status == status.value)
        stmt = stmt.order_by(AdvanceModel.request_date, AdvanceModel.created_at)
        return [m.to_dto() for m in self._session.scalars(stmt)]

    # =========================================================================
    # Internals
    # =========================================================================

    def _employee(self, employee_id: UUID) -> EmployeeModel:
        model = self._session.get(EmployeeModel, employee_id)
        if model is None:
            raise EmployeeNotFoundError(str(employee_id))
        return model

    @staticmethod
    def _team_of(employee: EmployeeModel) -> UUID:
        if employee.installation_team_id is None:
            raise BalanceSourceMismatchError(
                str(employee.id), "team_account", "no_installation_team",
            )
        return employee.installation_team_id

    def _pending_rows(
        self, team_id: UUID, for_update: bool = False,
    ) -> list[InstallationTeamAccountModel]:
        stmt = select(InstallationTeamAccountModel).where(
            InstallationTeamAccountModel.team_id == team_id,
            InstallationTeamAccountModel.status == TeamAccountStatus.PENDING.value,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self._session.scalars(stmt))

    def _outstanding_advances(self, employee_id: UUID) -> Decimal:
        remaining = self._session.scalars(
            select(AdvanceModel.remaining).where(
                AdvanceModel.employee_id == employee_id,
                AdvanceModel.status == AdvanceStatus.APPROVED.value,
            )
        )
        return sum(remaining, ZERO)

    def _balance(
        self,
        employee_id: UUID,
        team_id: UUID,
        rows: list[InstallationTeamAccountModel],
    ) -> TeamBalance:
        pending_total = sum((row.amount for row in rows), ZERO)
        outstanding = self._outstanding_advances(employee_id)
        return TeamBalance(
            employee_id=employee_id,
            team_id=team_id,
            pending_total=pending_total,
            outstanding_advances=outstanding,
            available=pending_total - outstanding,
            pending_rows=len(rows),
        )
