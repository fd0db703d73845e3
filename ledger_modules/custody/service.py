"""
ledger_modules.custody.service
==============================

Responsibility:
    All mutations of custody accounts, their transactions and their expenses,
    with the balance invariant held as a hard postcondition of every
    operation.  Also the read side: snapshots, statements and drift reports.

Architecture:
    Module layer (ledger_modules).  Owns the transaction boundary: every
    public mutating method commits on success and rolls back on failure via
    ``ledger_transaction``.  Balance arithmetic is delegated to
    ``ledger_engines.balance.derive_balance``.

Invariants enforced:
    - current_balance == initial + deposits - withdrawals + adjustments
      - expenses, recomputed by full replay after every mutation.  There is
      no write path that sets current_balance directly.
    - Non-negative guard (unless ``CustodyConfig.allow_negative_balance``):
      no accepted operation leaves the replayed balance below zero.
    - Per-account linearizability: mutations on one account run under the
      account's process lock and a SELECT ... FOR UPDATE row lock; the
      account row's version column rejects writes computed from stale state.
    - Only active accounts can be mutated.

Failure modes:
    - ValidationError: bad amount, empty description, missing employee.
    - AccountNotFoundError / TransactionNotFoundError / ExpenseNotFoundError.
    - AccountClosedError, AccountExhaustedError, AlreadySettledError,
      SourceTypeMismatchError, ConfirmationRequiredError,
      DuplicateCustodyError (all PreconditionError).
    - InsufficientBalanceError when the guard rejects the result.
    - PersistenceError / OptimisticLockError from the store.

Audit relevance:
    Every operation logs ``<operation>_started`` and a completion or
    rejection event.  Every row records the acting user in its audit columns.

Usage::

    service = CustodyLedgerService(session, clock=clock)
    account = service.create_account(employee_id, Decimal("1000"), actor_id)
    service.add_deposit(account.id, Decimal("200"), date.today(), actor_id)
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ledger_engines.balance import BalanceBreakdown, derive_balance
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.validation import (
    parse_amount,
    require_non_empty,
    require_positive_amount,
)
from ledger_kernel.exceptions import (
    AccountClosedError,
    AccountExhaustedError,
    AccountNotFoundError,
    AlreadySettledError,
    DuplicateCustodyError,
    ExpenseNotFoundError,
    InsufficientBalanceError,
    SourceTypeMismatchError,
    TransactionNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.lock_service import account_locks
from ledger_modules._session_helpers import ledger_transaction, require_confirmation
from ledger_modules.custody.config import CustodyConfig
from ledger_modules.custody.helpers import (
    append_note,
    generate_account_number,
    settlement_split,
    validate_distributions,
)
from ledger_modules.custody.models import (
    AccountStatus,
    BalanceDrift,
    CustodyAccount,
    CustodyDistribution,
    CustodyExpense,
    CustodyStatement,
    CustodyTransaction,
    SourceType,
    TransactionType,
)
from ledger_modules.custody.orm import (
    CustodyAccountModel,
    CustodyExpenseModel,
    CustodyTransactionModel,
)

logger = get_logger("modules.custody.service")

_ACCOUNT_NUMBER_ATTEMPTS = 10


class CustodyLedgerService:
    """
    Custodial-cash ledger operations.

    Contract:
        Each public mutating method either commits and returns a frozen
        snapshot, or rolls back and raises a typed LedgerError.  No method
        leaves the session with uncommitted work.

    Guarantees:
        - All monetary amounts are ``Decimal``; floats are rejected.
        - Clock is injected; ``date.today()`` is never called directly.
        - Read methods never write.

    Non-goals:
        - Does NOT move money back to a payment source on return_custody;
          that is an external effect.
    """

    def __init__(
        self,
        session: Session,
        config: CustodyConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or CustodyConfig.with_defaults()
        self._clock = clock or SystemClock()

    # =========================================================================
    # Account creation
    # =========================================================================

    def create_account(
        self,
        employee_id: UUID | None,
        initial_amount: Decimal,
        actor_id: UUID,
        account_number: str | None = None,
        custody_name: str | None = None,
        notes: str | None = None,
        assigned_date: date | None = None,
    ) -> CustodyAccount:
        """
        Open a manual custody account.

        Preconditions:
            - ``employee_id`` is set.
            - ``initial_amount`` > 0.
        Postconditions:
            - status = active, source_type = manual,
              current_balance = initial_amount.
        Raises:
            ValidationError: missing employee, bad amount, or an explicit
                account number that is already in use.
        """
        logger.info("custody_create_account_started", extra={
            "employee_id": str(employee_id),
            "initial_amount": str(initial_amount),
        })
        if employee_id is None:
            raise ValidationError("employee_id is required", field="employee_id")
        amount = require_positive_amount(initial_amount, "initial_amount")

        with ledger_transaction(
            self._session, "create_account",
            log_context={"actor_id": actor_id, "employee_id": employee_id},
        ):
            model = self._new_account(
                employee_id=employee_id,
                amount=amount,
                actor_id=actor_id,
                account_number=account_number,
                custody_name=custody_name,
                notes=notes,
                assigned_date=assigned_date,
                source_type=SourceType.MANUAL,
                source_payment_id=None,
                reserved=set(),
            )
            self._session.flush()
            dto = model.to_dto()

        logger.info("custody_account_created", extra={
            "account_id": str(dto.id),
            "account_number": dto.account_number,
            "initial_amount": str(dto.initial_amount),
        })
        return dto

    def create_accounts_from_distributed_payment(
        self,
        source_payment_id: UUID,
        net_amount: Decimal,
        distributions: Sequence[CustodyDistribution],
        actor_id: UUID,
        notes: str | None = None,
        assigned_date: date | None = None,
    ) -> list[CustodyAccount]:
        """
        Convert a distributed customer payment into custody accounts.

        Preconditions:
            - Every distribution has an employee and an amount > 0.
            - Amounts sum to ``net_amount`` within the configured tolerance.
            - No employee appears twice, and no account already exists for
              (source_payment_id, employee_id).
        Postconditions:
            - One active distributed_payment account per distribution, all
              created in one transaction.
        Raises:
            ValidationError, DuplicateCustodyError.
        """
        logger.info("custody_convert_payment_started", extra={
            "source_payment_id": str(source_payment_id),
            "net_amount": str(net_amount),
            "distribution_count": len(distributions),
        })
        if source_payment_id is None:
            raise ValidationError("source_payment_id is required", field="source_payment_id")
        parsed = validate_distributions(
            net_amount, distributions, self._config.distribution_tolerance,
        )

        created: list[CustodyAccount] = []
        with ledger_transaction(
            self._session, "create_accounts_from_distributed_payment",
            log_context={"actor_id": actor_id},
        ):
            reserved: set[str] = set()
            for dist in parsed:
                existing = self._session.scalars(
                    select(CustodyAccountModel).where(
                        CustodyAccountModel.source_payment_id == source_payment_id,
                        CustodyAccountModel.employee_id == dist.employee_id,
                    )
                ).first()
                if existing is not None:
                    logger.warning("custody_convert_payment_duplicate", extra={
                        "source_payment_id": str(source_payment_id),
                        "employee_id": str(dist.employee_id),
                        "account_number": existing.account_number,
                    })
                    raise DuplicateCustodyError(
                        str(source_payment_id), str(dist.employee_id),
                        existing.account_number,
                    )
                model = self._new_account(
                    employee_id=dist.employee_id,
                    amount=dist.amount,
                    actor_id=actor_id,
                    account_number=None,
                    custody_name=dist.custody_name,
                    notes=notes,
                    assigned_date=assigned_date,
                    source_type=SourceType.DISTRIBUTED_PAYMENT,
                    source_payment_id=source_payment_id,
                    reserved=reserved,
                )
                reserved.add(model.account_number)
            self._session.flush()
            created = [m.to_dto() for m in self._session.scalars(
                select(CustodyAccountModel)
                .where(CustodyAccountModel.source_payment_id == source_payment_id)
                .order_by(CustodyAccountModel.account_number)
            )]

        logger.info("custody_convert_payment_completed", extra={
            "source_payment_id": str(source_payment_id),
            "account_count": len(created),
        })
        return created

    # =========================================================================
    # Transactions and expenses
    # =========================================================================

    def add_deposit(
        self,
        account_id: UUID,
        amount: Decimal,
        transaction_date: date,
        actor_id: UUID,
        description: str | None = None,
        receipt_number: str | None = None,
    ) -> CustodyTransaction:
        """
        Credit an active account.

        Raises:
            ValidationError, AccountNotFoundError, AccountClosedError.
        """
        return self._add_transaction(
            "add_deposit", account_id, TransactionType.DEPOSIT, amount,
            transaction_date, actor_id,
            description=description, receipt_number=receipt_number,
        )

    def add_withdrawal(
        self,
        account_id: UUID,
        amount: Decimal,
        transaction_date: date,
        actor_id: UUID,
        description: str | None = None,
        receipt_number: str | None = None,
        receiver_name: str | None = None,
    ) -> CustodyTransaction:
        """
        Debit an active account.

        Raises:
            ValidationError, AccountNotFoundError, AccountClosedError,
            InsufficientBalanceError (guard enabled and amount > balance).
        """
        return self._add_transaction(
            "add_withdrawal", account_id, TransactionType.WITHDRAWAL, amount,
            transaction_date, actor_id,
            description=description, receipt_number=receipt_number,
            receiver_name=receiver_name,
        )

    def record_adjustment(
        self,
        account_id: UUID,
        amount: Decimal,
        adjustment_date: date,
        reason: str,
        actor_id: UUID,
    ) -> CustodyTransaction:
        """
        Correct an account balance with an audited signed adjustment.

        A positive amount credits the account, a negative one debits it.

        Raises:
            ValidationError: zero amount or empty reason.
            InsufficientBalanceError: guard rejects the resulting balance.
        """
        signed = parse_amount(amount, "amount")
        if signed == 0:
            raise ValidationError("adjustment amount must not be zero", field="amount")
        reason = require_non_empty(reason, "reason")
        return self._add_transaction(
            "record_adjustment", account_id, TransactionType.ADJUSTMENT, signed,
            adjustment_date, actor_id, description=reason,
        )

    def add_expense(
        self,
        account_id: UUID,
        category: str,
        amount: Decimal,
        expense_date: date,
        description: str,
        actor_id: UUID,
        receipt_number: str | None = None,
        vendor_name: str | None = None,
        notes: str | None = None,
    ) -> CustodyExpense:
        """
        Record a spend against an active account.

        Preconditions:
            - ``description`` non-empty, ``amount`` > 0.
            - The account balance is > 0 before the expense.
        Raises:
            ValidationError, AccountNotFoundError, AccountClosedError,
            AccountExhaustedError (balance already <= 0),
            InsufficientBalanceError (guard enabled and amount > balance).
        """
        logger.info("custody_add_expense_started", extra={
            "account_id": str(account_id),
            "category": category,
            "amount": str(amount),
        })
        value = require_positive_amount(amount, "amount")
        text = require_non_empty(description, "description")
        category = require_non_empty(category, "category")

        with ledger_transaction(
            self._session, "add_expense",
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            self._require_active(account)
            if account.current_balance <= 0:
                logger.warning("custody_add_expense_rejected", extra={
                    "account_id": str(account_id),
                    "reason": "account_exhausted",
                    "current_balance": str(account.current_balance),
                })
                raise AccountExhaustedError(str(account_id), account.current_balance)

            expense = CustodyExpenseModel(
                id=uuid4(),
                custody_account_id=account.id,
                category=category,
                amount=value,
                expense_date=expense_date,
                description=text,
                receipt_number=receipt_number,
                vendor_name=vendor_name,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(expense)
            breakdown = self._recompute(account, actor_id, requested=value)
            dto = expense.to_dto()

        logger.info("custody_expense_added", extra={
            "account_id": str(account_id),
            "expense_id": str(dto.id),
            "amount": str(dto.amount),
            "balance": str(breakdown.balance),
        })
        return dto

    def edit_transaction(
        self,
        transaction_id: UUID,
        actor_id: UUID,
        *,
        transaction_type: TransactionType | None = None,
        amount: Decimal | None = None,
        transaction_date: date | None = None,
        description: str | None = None,
        receipt_number: str | None = None,
        receiver_name: str | None = None,
        notes: str | None = None,
    ) -> CustodyTransaction:
        """
        Edit a transaction in place; ``None`` leaves a field unchanged.

        The linked account is fixed.  A deposit may become a withdrawal and
        vice versa; adjustments stay adjustments.

        Postconditions:
            - The owning account's balance is recomputed by full replay.
        Raises:
            TransactionNotFoundError, AccountClosedError, ValidationError,
            InsufficientBalanceError.
        """
        logger.info("custody_edit_transaction_started", extra={
            "transaction_id": str(transaction_id),
            "amount": str(amount) if amount is not None else None,
        })
        account_id = self._owning_account_id(CustodyTransactionModel, transaction_id)

        with ledger_transaction(
            self._session, "edit_transaction",
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            self._require_active(account)
            txn = self._get_row(CustodyTransactionModel, transaction_id)

            current_type = TransactionType(txn.transaction_type)
            new_type = transaction_type or current_type
            if (new_type == TransactionType.ADJUSTMENT) != (
                current_type == TransactionType.ADJUSTMENT
            ):
                raise ValidationError(
                    "adjustments cannot be converted to or from other transaction types",
                    field="transaction_type",
                )
            if amount is not None:
                if new_type == TransactionType.ADJUSTMENT:
                    value = parse_amount(amount, "amount")
                    if value == 0:
                        raise ValidationError(
                            "adjustment amount must not be zero", field="amount",
                        )
                else:
                    value = require_positive_amount(amount, "amount")
                txn.amount = value
            txn.transaction_type = new_type.value
            if transaction_date is not None:
                txn.transaction_date = transaction_date
            if description is not None:
                txn.description = description
            if receipt_number is not None:
                txn.receipt_number = receipt_number
            if receiver_name is not None:
                txn.receiver_name = receiver_name
            if notes is not None:
                txn.notes = notes
            txn.updated_by_id = actor_id

            breakdown = self._recompute(account, actor_id, requested=txn.amount)
            dto = txn.to_dto()

        logger.info("custody_transaction_edited", extra={
            "transaction_id": str(transaction_id),
            "account_id": str(account_id),
            "balance": str(breakdown.balance),
        })
        return dto

    def edit_expense(
        self,
        expense_id: UUID,
        actor_id: UUID,
        *,
        category: str | None = None,
        amount: Decimal | None = None,
        expense_date: date | None = None,
        description: str | None = None,
        receipt_number: str | None = None,
        vendor_name: str | None = None,
        notes: str | None = None,
    ) -> CustodyExpense:
        """
        Edit an expense in place; ``None`` leaves a field unchanged.

        Raises:
            ExpenseNotFoundError, AccountClosedError, ValidationError,
            InsufficientBalanceError.
        """
        logger.info("custody_edit_expense_started", extra={
            "expense_id": str(expense_id),
            "amount": str(amount) if amount is not None else None,
        })
        account_id = self._owning_account_id(CustodyExpenseModel, expense_id)

        with ledger_transaction(
            self._session, "edit_expense",
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            self._require_active(account)
            expense = self._get_row(CustodyExpenseModel, expense_id)

            if amount is not None:
                expense.amount = require_positive_amount(amount, "amount")
            if description is not None:
                expense.description = require_non_empty(description, "description")
            if category is not None:
                expense.category = require_non_empty(category, "category")
            if expense_date is not None:
                expense.expense_date = expense_date
            if receipt_number is not None:
                expense.receipt_number = receipt_number
            if vendor_name is not None:
                expense.vendor_name = vendor_name
            if notes is not None:
                expense.notes = notes
            expense.updated_by_id = actor_id

            breakdown = self._recompute(account, actor_id, requested=expense.amount)
            dto = expense.to_dto()

        logger.info("custody_expense_edited", extra={
            "expense_id": str(expense_id),
            "account_id": str(account_id),
            "balance": str(breakdown.balance),
        })
        return dto

    def delete_transaction(
        self,
        transaction_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Remove a transaction and replay the account balance.

        Deleting a deposit may not overdraw the account while the guard is on.

        Raises:
            ConfirmationRequiredError, TransactionNotFoundError,
            AccountClosedError, InsufficientBalanceError.
        """
        logger.info("custody_delete_transaction_started", extra={
            "transaction_id": str(transaction_id),
        })
        require_confirmation(confirmed, "delete_transaction", transaction_id)
        self._delete_row(
            "delete_transaction", CustodyTransactionModel, transaction_id, actor_id,
        )

    def delete_expense(
        self,
        expense_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Remove an expense and replay the account balance.

        Raises:
            ConfirmationRequiredError, ExpenseNotFoundError, AccountClosedError.
        """
        logger.info("custody_delete_expense_started", extra={
            "expense_id": str(expense_id),
        })
        require_confirmation(confirmed, "delete_expense", expense_id)
        self._delete_row("delete_expense", CustodyExpenseModel, expense_id, actor_id)

    # =========================================================================
    # Settlement, return and deletion
    # =========================================================================

    def settle(
        self,
        account_id: UUID,
        actor_id: UUID,
        returned_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> CustodyAccount:
        """
        Close an account once its cash is handed back or written off.

        Preconditions:
            - The account is active.
            - ``0 <= returned_amount <= current_balance`` (defaults to the
              whole balance).
        Postconditions:
            - A withdrawal records the returned cash (when > 0) and a signed
              adjustment writes off any difference, so the replayed balance
              is exactly 0.
            - status = closed, closed_date = today, settlement note appended.
        Raises:
            AlreadySettledError: the account is already closed.  Nothing
                changes, so retrying a settlement is safe.
            ValidationError: returned_amount out of range.
        """
        logger.info("custody_settle_started", extra={
            "account_id": str(account_id),
            "returned_amount": str(returned_amount) if returned_amount is not None else None,
        })
        with ledger_transaction(
            self._session, "settle",
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            if account.status == AccountStatus.CLOSED.value:
                logger.warning("custody_settle_rejected", extra={
                    "account_id": str(account_id),
                    "reason": "already_settled",
                    "closed_date": str(account.closed_date),
                })
                raise AlreadySettledError(str(account_id), str(account.closed_date))

            balance = self._replay(account).balance
            returned, adjustment = settlement_split(balance, returned_amount)
            today = self._clock.today()

            if returned > 0:
                self._session.add(CustodyTransactionModel(
                    id=uuid4(),
                    custody_account_id=account.id,
                    transaction_type=TransactionType.WITHDRAWAL.value,
                    amount=returned,
                    transaction_date=today,
                    description=self._config.handover_description,
                    notes=notes,
                    created_by_id=actor_id,
                ))
            if adjustment != 0:
                self._session.add(CustodyTransactionModel(
                    id=uuid4(),
                    custody_account_id=account.id,
                    transaction_type=TransactionType.ADJUSTMENT.value,
                    amount=adjustment,
                    transaction_date=today,
                    description=self._config.writeoff_reason,
                    notes=notes,
                    created_by_id=actor_id,
                ))
            self._recompute(account, actor_id, requested=returned)

            note = f"{self._config.settlement_note} on {today.isoformat()}: returned {returned}"
            if adjustment != 0:
                note += f", written off {-adjustment}"
            if notes:
                note += f" - {notes}"
            account.status = AccountStatus.CLOSED.value
            account.closed_date = today
            account.notes = append_note(account.notes, note)
            self._session.flush()
            dto = account.to_dto()

        logger.info("custody_account_settled", extra={
            "account_id": str(account_id),
            "returned_amount": str(returned),
            "written_off": str(-adjustment),
            "closed_date": str(dto.closed_date),
        })
        return dto

    def return_custody(
        self,
        account_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Hard-delete an active distributed_payment account and its rows.

        The money is implied to flow back to the originating payment; that
        side effect is outside the ledger.

        Raises:
            ConfirmationRequiredError, AccountNotFoundError,
            SourceTypeMismatchError (manual account),
            AccountClosedError (settled account).
        """
        logger.info("custody_return_started", extra={"account_id": str(account_id)})
        require_confirmation(confirmed, "return_custody", account_id)
        self._delete_account(
            "return_custody", account_id, actor_id, SourceType.DISTRIBUTED_PAYMENT,
        )

    def delete_custody(
        self,
        account_id: UUID,
        actor_id: UUID,
        confirmed: bool = False,
    ) -> None:
        """
        Hard-delete an active manual account, cascading to its rows.

        Postconditions:
            - Expenses, transactions and the account are removed in one
              transaction.  On failure nothing is removed.
        Raises:
            ConfirmationRequiredError, AccountNotFoundError,
            SourceTypeMismatchError (distributed_payment account),
            AccountClosedError (settled account).
        """
        logger.info("custody_delete_started", extra={"account_id": str(account_id)})
        require_confirmation(confirmed, "delete_custody", account_id)
        self._delete_account("delete_custody", account_id, actor_id, SourceType.MANUAL)

    # =========================================================================
    # Repair
    # =========================================================================

    def recompute_balance(self, account_id: UUID, actor_id: UUID) -> CustodyAccount:
        """
        Replay an account and persist the result (repair path).

        Works on closed accounts too.  The guard is not applied: repairing a
        drifted balance must always be possible.
        """
        logger.info("custody_recompute_started", extra={"account_id": str(account_id)})
        with ledger_transaction(
            self._session, "recompute_balance",
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            previous = account.current_balance
            self._recompute(account, actor_id, requested=Decimal("0"), enforce_guard=False)
            dto = account.to_dto()

        logger.info("custody_balance_recomputed", extra={
            "account_id": str(account_id),
            "previous_balance": str(previous),
            "balance": str(dto.current_balance),
        })
        return dto

    # =========================================================================
    # Queries
    # =========================================================================

    def get_account(self, account_id: UUID) -> CustodyAccount:
        """Snapshot of one account.  Raises AccountNotFoundError."""
        model = self._session.get(CustodyAccountModel, account_id)
        if model is None:
            raise AccountNotFoundError(str(account_id))
        return model.to_dto()

    def list_accounts(
        self,
        employee_id: UUID | None = None,
        status: AccountStatus | None = None,
    ) -> list[CustodyAccount]:
        """Accounts, optionally filtered by employee and status."""
        stmt = select(CustodyAccountModel)
        if employee_id is not None:
            stmt = stmt.where(CustodyAccountModel.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(CustodyAccountModel.status == status.value)
        stmt = stmt.order_by(
            CustodyAccountModel.assigned_date, CustodyAccountModel.account_number,
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def list_transactions(self, account_id: UUID) -> list[CustodyTransaction]:
        """Transactions of one account, oldest first.  Unknown id -> []."""
        return [m.to_dto() for m in self._transactions_of(account_id)]

    def list_expenses(self, account_id: UUID) -> list[CustodyExpense]:
        """Expenses of one account, oldest first.  Unknown id -> []."""
        return [m.to_dto() for m in self._expenses_of(account_id)]

    def get_statement(self, account_id: UUID) -> CustodyStatement:
        """
        Account, rows and totals for receipt/print consumers.

        Produces no writes.
        """
        account = self.get_account(account_id)
        transactions = tuple(self.list_transactions(account_id))
        expenses = tuple(self.list_expenses(account_id))
        breakdown = derive_balance(account.initial_amount, transactions, expenses)

        by_category: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for exp in expenses:
            by_category[exp.category] += exp.amount

        return CustodyStatement(
            account=account,
            transactions=transactions,
            expenses=expenses,
            total_deposits=breakdown.total_deposits,
            total_withdrawals=breakdown.total_withdrawals,
            total_adjustments=breakdown.total_adjustments,
            total_expenses=breakdown.total_expenses,
            closing_balance=breakdown.balance,
            expenses_by_category=dict(by_category),
        )

    def find_balance_drift(self) -> list[BalanceDrift]:
        """Accounts whose stored balance differs from the replayed value."""
        drifts: list[BalanceDrift] = []
        for account in self._session.scalars(
            select(CustodyAccountModel).order_by(CustodyAccountModel.account_number)
        ):
            derived = self._replay(account).balance
            if derived != account.current_balance:
                drifts.append(BalanceDrift(
                    account_id=account.id,
                    account_number=account.account_number,
                    stored_balance=account.current_balance,
                    derived_balance=derived,
                ))
        if drifts:
            logger.warning("custody_balance_drift_detected", extra={
                "account_count": len(drifts),
                "account_ids": [str(d.account_id) for d in drifts],
            })
        return drifts

    # =========================================================================
    # Internals
    # =========================================================================

    def _add_transaction(
        self,
        operation: str,
        account_id: UUID,
        transaction_type: TransactionType,
        amount: Decimal,
        transaction_date: date,
        actor_id: UUID,
        description: str | None = None,
        receipt_number: str | None = None,
        receiver_name: str | None = None,
    ) -> CustodyTransaction:
        logger.info(f"custody_{operation}_started", extra={
            "account_id": str(account_id),
            "transaction_type": transaction_type.value,
            "amount": str(amount),
        })
        if transaction_type == TransactionType.ADJUSTMENT:
            value = amount
        else:
            value = require_positive_amount(amount, "amount")
        if transaction_date is None:
            raise ValidationError("transaction_date is required", field="transaction_date")

        with ledger_transaction(
            self._session, operation,
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            self._require_active(account)
            txn = CustodyTransactionModel(
                id=uuid4(),
                custody_account_id=account.id,
                transaction_type=transaction_type.value,
                amount=value,
                transaction_date=transaction_date,
                description=description,
                receipt_number=receipt_number,
                receiver_name=receiver_name,
                created_by_id=actor_id,
            )
            self._session.add(txn)
            breakdown = self._recompute(account, actor_id, requested=abs(value))
            dto = txn.to_dto()

        logger.info(f"custody_{operation}_completed", extra={
            "account_id": str(account_id),
            "transaction_id": str(dto.id),
            "amount": str(dto.amount),
            "balance": str(breakdown.balance),
        })
        return dto

    def _delete_row(
        self,
        operation: str,
        model_cls: type[CustodyTransactionModel] | type[CustodyExpenseModel],
        row_id: UUID,
        actor_id: UUID,
    ) -> None:
        account_id = self._owning_account_id(model_cls, row_id)
        with ledger_transaction(
            self._session, operation,
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            self._require_active(account)
            row = self._get_row(model_cls, row_id)
            amount = row.amount
            self._session.delete(row)
            breakdown = self._recompute(account, actor_id, requested=abs(amount))

        logger.info(f"custody_{operation}_completed", extra={
            "row_id": str(row_id),
            "account_id": str(account_id),
            "amount": str(amount),
            "balance": str(breakdown.balance),
        })

    def _delete_account(
        self,
        operation: str,
        account_id: UUID,
        actor_id: UUID,
        required_source: SourceType,
    ) -> None:
        with ledger_transaction(
            self._session, operation,
            lock=account_locks.hold(account_id),
            entity_type="custody_account", entity_id=account_id,
            log_context={"actor_id": actor_id, "account_id": account_id},
        ):
            account = self._lock_account(account_id)
            if account.source_type != required_source.value:
                logger.warning(f"custody_{operation}_rejected", extra={
                    "account_id": str(account_id),
                    "reason": "source_type_mismatch",
                    "source_type": account.source_type,
                })
                raise SourceTypeMismatchError(
                    str(account_id), required_source.value, account.source_type,
                )
            self._require_active(account)

            expenses_deleted = self._session.execute(
                delete(CustodyExpenseModel)
                .where(CustodyExpenseModel.custody_account_id == account_id)
            ).rowcount
            transactions_deleted = self._session.execute(
                delete(CustodyTransactionModel)
                .where(CustodyTransactionModel.custody_account_id == account_id)
            ).rowcount
            account_number = account.account_number
            self._session.delete(account)
            self._session.flush()

        logger.info(f"custody_{operation}_completed", extra={
            "account_id": str(account_id),
            "account_number": account_number,
            "transactions_deleted": transactions_deleted,
            "expenses_deleted": expenses_deleted,
        })

    def _new_account(
        self,
        *,
        employee_id: UUID,
        amount: Decimal,
        actor_id: UUID,
        account_number: str | None,
        custody_name: str | None,
        notes: str | None,
        assigned_date: date | None,
        source_type: SourceType,
        source_payment_id: UUID | None,
        reserved: set[str],
    ) -> CustodyAccountModel:
        if account_number is not None:
            account_number = require_non_empty(account_number, "account_number")
            if self._account_number_taken(account_number):
                raise ValidationError(
                    f"account number {account_number} is already in use",
                    field="account_number",
                )
        else:
            account_number = self._unique_account_number(reserved)

        model = CustodyAccountModel(
            id=uuid4(),
            employee_id=employee_id,
            account_number=account_number,
            custody_name=custody_name,
            initial_amount=amount,
            current_balance=amount,
            status=AccountStatus.ACTIVE.value,
            assigned_date=assigned_date or self._clock.today(),
            notes=notes,
            source_type=source_type.value,
            source_payment_id=source_payment_id,
            last_recomputed_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self._session.add(model)
        return model

    def _unique_account_number(self, reserved: set[str]) -> str:
        for _ in range(_ACCOUNT_NUMBER_ATTEMPTS):
            candidate = generate_account_number(
                self._config.account_number_prefix, self._clock.now(),
            )
            if candidate not in reserved and not self._account_number_taken(candidate):
                return candidate
        raise ValidationError(
            "could not generate a unique account number", field="account_number",
        )

    def _account_number_taken(self, account_number: str) -> bool:
        return self._session.scalars(
            select(CustodyAccountModel.id)
            .where(CustodyAccountModel.account_number == account_number)
        ).first() is not None

    def _lock_account(self, account_id: UUID) -> CustodyAccountModel:
        account = self._session.scalars(
            select(CustodyAccountModel)
            .where(CustodyAccountModel.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if account is None:
            logger.warning("custody_account_not_found", extra={
                "account_id": str(account_id),
            })
            raise AccountNotFoundError(str(account_id))
        return account

    def _require_active(self, account: CustodyAccountModel) -> None:
        if account.status != AccountStatus.ACTIVE.value:
            logger.warning("custody_account_not_active", extra={
                "account_id": str(account.id),
                "status": account.status,
            })
            raise AccountClosedError(str(account.id), account.status)

    def _owning_account_id(self, model_cls, row_id: UUID) -> UUID:
        account_id = self._session.scalars(
            select(model_cls.custody_account_id).where(model_cls.id == row_id)
        ).first()
        if account_id is None:
            raise self._not_found_error(model_cls)(str(row_id))
        return account_id

    def _get_row(self, model_cls, row_id: UUID):
        row = self._session.scalars(
            select(model_cls)
            .where(model_cls.id == row_id)
            .execution_options(populate_existing=True)
        ).first()
        if row is None:
            raise self._not_found_error(model_cls)(str(row_id))
        return row

    @staticmethod
    def _not_found_error(model_cls):
        if model_cls is CustodyExpenseModel:
            return ExpenseNotFoundError
        return TransactionNotFoundError

    def _transactions_of(self, account_id: UUID) -> list[CustodyTransactionModel]:
        return list(self._session.scalars(
            select(CustodyTransactionModel)
            .where(CustodyTransactionModel.custody_account_id == account_id)
            .order_by(
                CustodyTransactionModel.transaction_date,
                CustodyTransactionModel.created_at,
                CustodyTransactionModel.id,
            )
        ))

    def _expenses_of(self, account_id: UUID) -> list[CustodyExpenseModel]:
        return list(self._session.scalars(
            select(CustodyExpenseModel)
            .where(CustodyExpenseModel.custody_account_id == account_id)
            .order_by(
                CustodyExpenseModel.expense_date,
                CustodyExpenseModel.created_at,
                CustodyExpenseModel.id,
            )
        ))

    def _replay(self, account: CustodyAccountModel) -> BalanceBreakdown:
        self._session.flush()
        return derive_balance(
            account.initial_amount,
            self._transactions_of(account.id),
            self._expenses_of(account.id),
        )

    def _recompute(
        self,
        account: CustodyAccountModel,
        actor_id: UUID,
        requested: Decimal,
        enforce_guard: bool = True,
    ) -> BalanceBreakdown:
        """Replay the account, apply the guard, and persist the balance."""
        breakdown = self._replay(account)
        if (
            enforce_guard
            and not self._config.allow_negative_balance
            and breakdown.balance < 0
        ):
            logger.warning("custody_guard_rejected", extra={
                "account_id": str(account.id),
                "requested": str(requested),
                "available": str(account.current_balance),
                "resulting_balance": str(breakdown.balance),
            })
            raise InsufficientBalanceError(
                str(account.id), requested, account.current_balance,
            )
        account.current_balance = breakdown.balance
        account.last_recomputed_at = self._clock.now()
        account.updated_by_id = actor_id
        self._session.flush()
        return breakdown
