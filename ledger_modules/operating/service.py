"""
ledger_modules.operating.service
================================

Responsibility:
    Operating-fee balances of employees linked to operating expenses:
    the fee view, the withdrawals taken against it, per-contract exclusion
    flags and period closures.

Architecture:
    Module layer (ledger_modules).  Loads contracts and payments through
    ``ContractReadService`` and hands frozen inputs to the pure engines
    ``ledger_engines.fee_allocation`` and ``ledger_engines.closure_allocation``.

Invariants enforced:
    - remaining_balance = total operating fees - total withdrawals of the
      employee.
    - A new or edited withdrawal never pushes remaining_balance below zero.
    - Contracts covered by a closure no longer contribute fees.
    - A closure consumes only withdrawals not consumed by earlier closures,
      oldest contract number first.
    - Withdrawals, closures and exclusion changes are serialized: in process
      by the fee-view lock, across processes by row locks on the employee
      rows whose balance they read or move.
    - Only employees linked to operating expenses draw from this balance.

Failure modes:
    - EmployeeNotFoundError, WithdrawalNotFoundError, ClosureNotFoundError.
    - BalanceSourceMismatchError when the employee has no operating link.
    - InsufficientBalanceError when a withdrawal exceeds the balance.
    - ValidationError on bad amounts or inverted closure bounds.
    - EmptyClosureError when a closure would cover no open contract.
    - ConfirmationRequiredError on unconfirmed deletes.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engines.closure_allocation import plan_closure
from ledger_engines.fee_allocation import (
    ClosureWindow,
    compute_operating_fees,
    fee_lines,
    uncovered_contracts,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.validation import require_positive_amount
from ledger_kernel.exceptions import (
    BalanceSourceMismatchError,
    ClosureNotFoundError,
    EmployeeNotFoundError,
    EmptyClosureError,
    InsufficientBalanceError,
    ValidationError,
    WithdrawalNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.lock_service import fee_view_locks
from ledger_modules._session_helpers import ledger_transaction, require_confirmation
from ledger_modules.contracts.service import ContractReadService
from ledger_modules.operating.config import OperatingFeeConfig
from ledger_modules.operating.models import (
    ClosureType,
    ExpenseFlag,
    OperatingFeeSummary,
    OperatingWithdrawal,
    PeriodClosure,
)
from ledger_modules.operating.orm import (
    ExpenseFlagModel,
    ExpensesWithdrawalModel,
    PeriodClosureModel,
)
from ledger_modules.payroll.orm import EmployeeModel

logger = get_logger("modules.operating.service")

ZERO = Decimal("0")

# Closures and exclusion flags move the balance of every operating employee,
# so withdrawals, closures and flags all take this one key.
FEE_VIEW_LOCK_KEY = "operating_fees"


class OperatingFeeService:
    """
    Operating-fee reads and mutations.

    Contract:
        Mutating methods commit and return a frozen snapshot, or roll back
        and raise a typed LedgerError.  The fee view itself never writes.
    """

    def __init__(
        self,
        session: Session,
        config: OperatingFeeConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or OperatingFeeConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._contracts = ContractReadService(session)

    # =========================================================================
    # Fee view
    # =========================================================================

    def compute_operating_fees(self, employee_id: UUID) -> OperatingFeeSummary:
        """
        Operating-fee position of one employee.

        Raises:
            EmployeeNotFoundError.
        """
        self._employee(employee_id)
        summary = self._summary(employee_id)
        logger.info("operating_fees_summarized", extra={
            "employee_id": str(employee_id),
            "total_contracts": summary.total_contracts,
            "total_operating_fees": str(summary.total_operating_fees),
            "total_withdrawals": str(summary.total_withdrawals),
            "remaining_balance": str(summary.remaining_balance),
        })
        return summary

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def record_withdrawal(
        self,
        employee_id: UUID,
        amount: Decimal,
        withdrawal_date: date,
        actor_id: UUID,
        method: str | None = None,
        notes: str | None = None,
        receiver_name: str | None = None,
        sender_name: str | None = None,
    ) -> OperatingWithdrawal:
        """
        Take cash against the employee's operating-fee balance.

        Preconditions:
            - ``0 < amount <= remaining_balance``.
        Raises:
            ValidationError, EmployeeNotFoundError, BalanceSourceMismatchError,
            InsufficientBalanceError.
        """
        logger.info("operating_withdrawal_started", extra={
            "employee_id": str(employee_id),
            "amount": str(amount),
        })
        value = require_positive_amount(amount, "amount")

        with ledger_transaction(
            self._session, "record_withdrawal",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="employee", entity_id=employee_id,
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            self._lock_operating_employee(employee_id)
            available = self._summary(employee_id).remaining_balance
            self._check_available(employee_id, value, available)

            model = ExpensesWithdrawalModel(
                id=uuid4(),
                employee_id=employee_id,
                amount=value,
                withdrawal_date=withdrawal_date,
                method=method,
                notes=notes,
                receiver_name=receiver_name,
                sender_name=sender_name,
                created_by_id=actor_id,
            )
            self._session.add(model)
            self._session.flush()
            dto = model.to_dto()

        logger.info("operating_withdrawal_completed", extra={
            "withdrawal_id": str(dto.id),
            "employee_id": str(employee_id),
            "amount": str(value),
            "remaining_balance": str(available - value),
        })
        return dto

    def edit_withdrawal(
        self,
        withdrawal_id: UUID,
        actor_id: UUID,
        *,
        amount: Decimal | None = None,
        withdrawal_date: date | None = None,
        method: str | None = None,
        notes: str | None = None,
        receiver_name: str | None = None,
        sender_name: str | None = None,
    ) -> OperatingWithdrawal:
        """
        Edit a withdrawal in place; ``None`` leaves a field unchanged.

        The new amount may use the old amount plus the current balance.

        Raises:
            WithdrawalNotFoundError, ValidationError, InsufficientBalanceError.
        """
        logger.info("operating_edit_withdrawal_started", extra={
            "withdrawal_id": str(withdrawal_id),
            "amount": str(amount) if amount is not None else None,
        })
        value = require_positive_amount(amount, "amount") if amount is not None else None
        employee_id = self._withdrawal(withdrawal_id).employee_id

        with ledger_transaction(
            self._session, "edit_withdrawal",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="expenses_withdrawal", entity_id=withdrawal_id,
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            if employee_id is not None:
                self._lock_employee(employee_id)
            model = self._withdrawal(withdrawal_id, for_update=True)
            if value is not None and value != model.amount:
                if employee_id is not None:
                    available = self._summary(employee_id).remaining_balance + model.amount
                    self._check_available(employee_id, value, available)
                model.amount = value
            if withdrawal_date is not None:
                model.withdrawal_date = withdrawal_date
            if method is not None:
                model.method = method
            if notes is not None:
                model.notes = notes
            if receiver_name is not None:
                model.receiver_name = receiver_name
            if sender_name is not None:
                model.sender_name = sender_name
            model.updated_by_id = actor_id
            self._session.flush()
            dto = model.to_dto()

        logger.info("operating_withdrawal_edited", extra={
            "withdrawal_id": str(withdrawal_id),
            "amount": str(dto.amount),
        })
        return dto

    def delete_withdrawal(
        self,
        withdrawal_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Remove a withdrawal.  The employee's balance grows by its amount.

        Raises:
            ConfirmationRequiredError, WithdrawalNotFoundError.
        """
        logger.info("operating_delete_withdrawal_started", extra={
            "withdrawal_id": str(withdrawal_id),
        })
        require_confirmation(confirmed, "delete_withdrawal", withdrawal_id)
        employee_id = self._withdrawal(withdrawal_id).employee_id

        with ledger_transaction(
            self._session, "delete_withdrawal",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="expenses_withdrawal", entity_id=withdrawal_id,
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            if employee_id is not None:
                self._lock_employee(employee_id)
            model = self._withdrawal(withdrawal_id, for_update=True)
            amount = model.amount
            self._session.delete(model)
            self._session.flush()

        logger.info("operating_withdrawal_deleted", extra={
            "withdrawal_id": str(withdrawal_id),
            "amount": str(amount),
        })

    def list_withdrawals(self, employee_id: UUID | None = None) -> list[OperatingWithdrawal]:
        """Withdrawals, newest first; all employees when ``employee_id`` is None."""
        stmt = select(ExpensesWithdrawalModel)
        if employee_id is not None:
            stmt = stmt.where(ExpensesWithdrawalModel.employee_id == employee_id)
        stmt = stmt.order_by(
            ExpensesWithdrawalModel.withdrawal_date.desc(),
            ExpensesWithdrawalModel.created_at.desc(),
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    # =========================================================================
    # Exclusion flags
    # =========================================================================

    def set_contract_exclusion(
        self,
        contract_number: int,
        excluded: bool,
        actor_id: UUID,
    ) -> ExpenseFlag:
        """Create or update the exclusion flag of one contract."""
        logger.info("contract_exclusion_started", extra={
            "contract_number": contract_number,
            "excluded": excluded,
        })
        with ledger_transaction(
            self._session, "set_contract_exclusion",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="expenses_flag", entity_id=contract_number,
            log_context={"actor_id": actor_id},
        ):
            self._lock_operating_rows()
            flag = self._session.scalars(
                select(ExpenseFlagModel)
                .where(ExpenseFlagModel.contract_number == contract_number)
                .with_for_update()
            ).one_or_none()
            if flag is None:
                flag = ExpenseFlagModel(
                    id=uuid4(),
                    contract_number=contract_number,
                    excluded=excluded,
                    created_by_id=actor_id,
                )
                self._session.add(flag)
            else:
                flag.excluded = excluded
                flag.updated_by_id = actor_id
            self._session.flush()
            dto = flag.to_dto()

        logger.info("contract_exclusion_set", extra={
            "contract_number": contract_number,
            "excluded": dto.excluded,
        })
        return dto

    def list_exclusions(self) -> list[ExpenseFlag]:
        """All exclusion flags, by contract number."""
        rows = self._session.scalars(
            select(ExpenseFlagModel).order_by(ExpenseFlagModel.contract_number)
        )
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Period closures
    # =========================================================================

    def create_closure(
        self,
        closure_type: ClosureType,
        actor_id: UUID,
        contract_start: int | None = None,
        contract_end: int | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
        closure_date: date | None = None,
        notes: str | None = None,
    ) -> PeriodClosure:
        """
        Close a contract range or a contract-date period.

        The closure totals cover the open, non-excluded contracts inside the
        window.  ``total_withdrawn`` is the share of all operating
        withdrawals not consumed by earlier closures that the closing
        contracts absorb when withdrawals are applied oldest contract first.

        Raises:
            ValidationError: missing or inverted bounds.
            EmptyClosureError: no open contract inside the window.
        """
        closure_type = ClosureType(closure_type)
        logger.info("period_closure_started", extra={
            "closure_type": closure_type.value,
            "contract_start": contract_start,
            "contract_end": contract_end,
            "period_start": str(period_start) if period_start else None,
            "period_end": str(period_end) if period_end else None,
        })
        window = self._closure_window(
            closure_type, contract_start, contract_end, period_start, period_end,
        )

        with ledger_transaction(
            self._session, "create_closure",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="period_closure",
            log_context={"actor_id": actor_id},
        ):
            self._lock_operating_rows()
            existing = self._closure_windows()
            excluded = self._excluded_numbers()
            open_contracts = uncovered_contracts(
                self._contracts.contract_terms(), excluded, existing,
                exclude_period_closures=True,
            )
            lines = fee_lines(
                open_contracts,
                self._contracts.payments(),
                self._config.fee_rounding_places,
                self._config.rounding,
            )
            closing = [c.contract_number for c in open_contracts if window.covers(c)]
            if not closing:
                start, end = (
                    (contract_start, contract_end)
                    if closure_type == ClosureType.CONTRACT_RANGE
                    else (period_start, period_end)
                )
                logger.warning("period_closure_rejected", extra={
                    "closure_type": closure_type.value,
                    "reason": "empty",
                })
                raise EmptyClosureError(closure_type.value, str(start), str(end))

            plan = plan_closure(
                closing_numbers=closing,
                unclosed_lines=lines,
                total_withdrawals=self._sum_withdrawals(),
                previously_consumed=self._consumed_by_closures(),
            )

            model = PeriodClosureModel(
                id=uuid4(),
                closure_type=closure_type.value,
                contract_start=window.contract_start,
                contract_end=window.contract_end,
                period_start=window.period_start,
                period_end=window.period_end,
                closure_date=closure_date or self._clock.today(),
                total_contracts=plan.total_contracts,
                total_amount=plan.total_amount,
                total_withdrawn=plan.total_withdrawn,
                remaining_balance=plan.remaining_balance,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(model)
            self._session.flush()
            dto = model.to_dto()

        logger.info("period_closure_completed", extra={
            "closure_id": str(dto.id),
            "closure_type": closure_type.value,
            "total_contracts": dto.total_contracts,
            "total_amount": str(dto.total_amount),
            "total_withdrawn": str(dto.total_withdrawn),
            "remaining_balance": str(dto.remaining_balance),
        })
        return dto

    def delete_closure(
        self,
        closure_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Reopen the contracts of a closure.

        Raises:
            ConfirmationRequiredError, ClosureNotFoundError.
        """
        logger.info("period_closure_delete_started", extra={
            "closure_id": str(closure_id),
        })
        require_confirmation(confirmed, "delete_closure", closure_id)

        with ledger_transaction(
            self._session, "delete_closure",
            lock=fee_view_locks.hold(FEE_VIEW_LOCK_KEY),
            entity_type="period_closure", entity_id=closure_id,
            log_context={"actor_id": actor_id},
        ):
            self._lock_operating_rows()
            model = self._session.get(PeriodClosureModel, closure_id)
            if model is None:
                raise ClosureNotFoundError(str(closure_id))
            self._session.delete(model)
            self._session.flush()

        logger.info("period_closure_deleted", extra={"closure_id": str(closure_id)})

    def list_closures(self) -> list[PeriodClosure]:
        """All closures, newest closure date first."""
        rows = self._session.scalars(
            select(PeriodClosureModel).order_by(
                PeriodClosureModel.closure_date.desc(),
                PeriodClosureModel.created_at.desc(),
            )
        )
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Internals
    # =========================================================================

    def _employee(self, employee_id: UUID) -> EmployeeModel:
        model = self._session.get(EmployeeModel, employee_id)
        if model is None:
            raise EmployeeNotFoundError(str(employee_id))
        return model

    def _lock_employee(self, employee_id: UUID) -> EmployeeModel | None:
        return self._session.scalars(
            select(EmployeeModel)
            .where(EmployeeModel.id == employee_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()

    def _lock_operating_employee(self, employee_id: UUID) -> EmployeeModel:
        employee = self._lock_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id))
        if not employee.linked_to_operating_expenses:
            logger.warning("operating_withdrawal_rejected", extra={
                "employee_id": str(employee_id),
                "reason": "not_linked_to_operating_expenses",
            })
            raise BalanceSourceMismatchError(
                str(employee_id), "operating_fees", "not_linked_to_operating_expenses",
            )
        return employee

    def _lock_operating_rows(self) -> None:
        """Lock every operating employee row; their balances all read the fee view."""
        self._session.scalars(
            select(EmployeeModel.id)
            .where(EmployeeModel.linked_to_operating_expenses.is_(True))
            # Id order, so two lockers never wait on each other in a cycle.
            .order_by(EmployeeModel.id)
            .with_for_update()
        ).all()

    def _withdrawal(
        self, withdrawal_id: UUID, for_update: bool = False,
    ) -> ExpensesWithdrawalModel:
        if for_update:
            model = self._session.scalars(
                select(ExpensesWithdrawalModel)
                .where(ExpensesWithdrawalModel.id == withdrawal_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).one_or_none()
        else:
            model = self._session.get(ExpensesWithdrawalModel, withdrawal_id)
        if model is None:
            raise WithdrawalNotFoundError(str(withdrawal_id))
        return model

    def _summary(self, employee_id: UUID) -> OperatingFeeSummary:
        amounts = list(self._session.scalars(
            select(ExpensesWithdrawalModel.amount).where(
                ExpensesWithdrawalModel.employee_id == employee_id,
            )
        ))
        return compute_operating_fees(
            contracts=self._contracts.contract_terms(),
            payments=self._contracts.payments(),
            excluded_contracts=self._excluded_numbers(),
            closures=self._closure_windows(),
            withdrawal_amounts=amounts,
            rounding_places=self._config.fee_rounding_places,
            rounding=self._config.rounding,
            exclude_period_closures=self._config.exclude_period_closures,
        )

    @staticmethod
    def _check_available(employee_id: UUID, value: Decimal, available: Decimal) -> None:
        if value > available:
            logger.warning("operating_withdrawal_rejected", extra={
                "employee_id": str(employee_id),
                "requested": str(value),
                "available": str(available),
            })
            raise InsufficientBalanceError(str(employee_id), value, available)

    def _excluded_numbers(self) -> frozenset[int]:
        return frozenset(self._session.scalars(
            select(ExpenseFlagModel.contract_number).where(
                ExpenseFlagModel.excluded.is_(True),
            )
        ))

    def _closure_windows(self) -> list[ClosureWindow]:
        return [
            row.to_dto().window()
            for row in self._session.scalars(select(PeriodClosureModel))
        ]

    def _sum_withdrawals(self) -> Decimal:
        total = self._session.scalar(select(func.sum(ExpensesWithdrawalModel.amount)))
        return Decimal(total) if total is not None else ZERO

    def _consumed_by_closures(self) -> Decimal:
        total = self._session.scalar(select(func.sum(PeriodClosureModel.total_withdrawn)))
        return Decimal(total) if total is not None else ZERO

    @staticmethod
    def _closure_window(
        closure_type: ClosureType,
        contract_start: int | None,
        contract_end: int | None,
        period_start: date | None,
        period_end: date | None,
    ) -> ClosureWindow:
        if closure_type == ClosureType.CONTRACT_RANGE:
            if contract_start is None or contract_end is None:
                raise ValidationError(
                    "A contract_range closure needs contract_start and contract_end",
                    field="contract_start",
                )
            if contract_start >= contract_end:
                raise ValidationError(
                    f"contract_start {contract_start} must be below contract_end {contract_end}",
                    field="contract_start",
                )
            return ClosureWindow(
                closure_type=closure_type,
                contract_start=contract_start,
                contract_end=contract_end,
            )

        if period_start is None or period_end is None:
            raise ValidationError(
                "A period closure needs period_start and period_end",
                field="period_start",
            )
        if period_start >= period_end:
            raise ValidationError(
                f"period_start {period_start} must be before period_end {period_end}",
                field="period_start",
            )
        return ClosureWindow(
            closure_type=closure_type,
            period_start=period_start,
            period_end=period_end,
        )
