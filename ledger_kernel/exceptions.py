"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Cash custody is money entrusted to people.  Callers (the UI layer) must be
able to tell "the amount was invalid" apart from "the account is already
settled" apart from "the database was unreachable" without parsing message
strings.  Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        service.add_withdrawal(account_id, Decimal("500"), today, actor_id)
    except InsufficientBalanceError as e:
        show_error(f"Only {e.available} available")   # Structured data
        api_response(code=e.code)                     # Machine-readable

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerError:

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- AccountClosedError            (also a PreconditionError)
    |   +-- AccountExhaustedError         (also a PreconditionError)
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- WithdrawalNotFoundError
    |   +-- ClosureNotFoundError
    |   +-- AdvanceNotFoundError
    |
    +-- PreconditionError
    |   +-- AlreadySettledError
    |   +-- SourceTypeMismatchError
    |   +-- ConfirmationRequiredError
    |   +-- BalanceSourceMismatchError
    |   +-- DuplicateCustodyError
    |   +-- EmptyClosureError
    |
    +-- InsufficientBalanceError
    |
    +-- PersistenceError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|-----------------------------------
Validation    | VALIDATION_ERROR          | Missing/invalid field, amount <= 0
              | ACCOUNT_CLOSED            | Mutating a closed custody account
              | ACCOUNT_EXHAUSTED         | Expense on a zero/negative balance
--------------|---------------------------|-----------------------------------
Not found     | ACCOUNT_NOT_FOUND         | Unknown custody account id
              | TRANSACTION_NOT_FOUND     | Unknown custody transaction id
              | EXPENSE_NOT_FOUND         | Unknown custody expense id
              | EMPLOYEE_NOT_FOUND        | Unknown employee id
              | WITHDRAWAL_NOT_FOUND      | Unknown operating withdrawal id
              | CLOSURE_NOT_FOUND         | Unknown period closure id
              | ADVANCE_NOT_FOUND         | Unknown advance id
--------------|---------------------------|-----------------------------------
Precondition  | ALREADY_SETTLED           | settle() on a closed account
              | SOURCE_TYPE_MISMATCH      | return/delete on wrong source type
              | CONFIRMATION_REQUIRED     | Destructive op without confirmation
              | BALANCE_SOURCE_MISMATCH   | Withdrawal from the wrong source
              | DUPLICATE_CUSTODY         | Same payment converted twice
              | EMPTY_CLOSURE             | Closure range with no contracts
--------------|---------------------------|-----------------------------------
Balance       | INSUFFICIENT_BALANCE      | Withdrawal exceeds available
--------------|---------------------------|-----------------------------------
Persistence   | PERSISTENCE_ERROR         | Underlying store call failed
--------------|---------------------------|-----------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT  | Row changed by another transaction

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS FIRST:

    try:
        service.settle(account_id, actor_id)
    except AlreadySettledError:
        pass  # Settlement is idempotent from the caller's point of view
    except PreconditionError as e:
        notify_user(e.code)

2. RETRY ONLY PERSISTENCE FAILURES, AND ONLY ON USER REQUEST:

    except PersistenceError as e:
        offer_manual_retry(e.operation)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. AccountClosedError and AccountExhaustedError inherit from BOTH
   ValidationError and PreconditionError.  Callers that treat them as input
   validation failures and callers that treat them as state preconditions
   both catch them.

2. Codes are class attributes so they are available without instantiation.
"""

from decimal import Decimal


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation


class ValidationError(LedgerError):
    """A required field is missing or a value is invalid."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Not found


class NotFoundError(LedgerError):
    """Base exception for unknown entity ids."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class AccountNotFoundError(NotFoundError):
    """Custody account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"
    entity_type: str = "Custody account"


class TransactionNotFoundError(NotFoundError):
    """Custody transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"
    entity_type: str = "Custody transaction"


class ExpenseNotFoundError(NotFoundError):
    """Custody expense with given ID was not found."""

    code: str = "EXPENSE_NOT_FOUND"
    entity_type: str = "Custody expense"


class EmployeeNotFoundError(NotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"
    entity_type: str = "Employee"


class WithdrawalNotFoundError(NotFoundError):
    """Operating-expense withdrawal with given ID was not found."""

    code: str = "WITHDRAWAL_NOT_FOUND"
    entity_type: str = "Operating withdrawal"


class ClosureNotFoundError(NotFoundError):
    """Period closure with given ID was not found."""

    code: str = "CLOSURE_NOT_FOUND"
    entity_type: str = "Period closure"


class AdvanceNotFoundError(NotFoundError):
    """Employee advance with given ID was not found."""

    code: str = "ADVANCE_NOT_FOUND"
    entity_type: str = "Employee advance"


# Preconditions


class PreconditionError(LedgerError):
    """Operation is not valid in the current state."""

    code: str = "PRECONDITION_FAILED"


class AccountClosedError(PreconditionError, ValidationError):
    """Attempted to mutate a custody account that is not active."""

    code: str = "ACCOUNT_CLOSED"

    def __init__(self, account_id: str, status: str):
        self.account_id = account_id
        self.status = status
        LedgerError.__init__(
            self, f"Custody account {account_id} is {status}, not active"
        )
        self.field = "account_id"


class AccountExhaustedError(PreconditionError, ValidationError):
    """Attempted to add an expense to an account whose balance is already <= 0."""

    code: str = "ACCOUNT_EXHAUSTED"

    def __init__(self, account_id: str, current_balance: Decimal):
        self.account_id = account_id
        self.current_balance = current_balance
        LedgerError.__init__(
            self,
            f"Cannot add an expense to custody account {account_id}: "
            f"balance is {current_balance}",
        )
        self.field = "account_id"


class AlreadySettledError(PreconditionError):
    """Custody account was already settled (closed)."""

    code: str = "ALREADY_SETTLED"

    def __init__(self, account_id: str, closed_date: str | None):
        self.account_id = account_id
        self.closed_date = closed_date
        super().__init__(
            f"Custody account {account_id} was already settled on {closed_date}"
        )


class SourceTypeMismatchError(PreconditionError):
    """Operation requires a different custody source type."""

    code: str = "SOURCE_TYPE_MISMATCH"

    def __init__(self, account_id: str, expected: str, actual: str):
        self.account_id = account_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Custody account {account_id} has source type {actual}; "
            f"operation requires {expected}"
        )


class ConfirmationRequiredError(PreconditionError):
    """Destructive operation invoked without the caller's confirmation."""

    code: str = "CONFIRMATION_REQUIRED"

    def __init__(self, operation: str, entity_id: str):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(f"{operation} on {entity_id} requires confirmation")


class BalanceSourceMismatchError(PreconditionError):
    """Employee does not draw from the requested balance source."""

    code: str = "BALANCE_SOURCE_MISMATCH"

    def __init__(self, employee_id: str, expected: str, actual: str):
        self.employee_id = employee_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Employee {employee_id} uses balance source {actual}, not {expected}"
        )


class DuplicateCustodyError(PreconditionError):
    """A custody account already exists for this payment and employee."""

    code: str = "DUPLICATE_CUSTODY"

    def __init__(self, source_payment_id: str, employee_id: str, account_number: str):
        self.source_payment_id = source_payment_id
        self.employee_id = employee_id
        self.account_number = account_number
        super().__init__(
            f"Payment {source_payment_id} was already converted to custody "
            f"{account_number} for employee {employee_id}"
        )


class EmptyClosureError(PreconditionError):
    """No eligible contracts fall inside the requested closure."""

    code: str = "EMPTY_CLOSURE"

    def __init__(self, closure_type: str, start: str, end: str):
        self.closure_type = closure_type
        self.start = start
        self.end = end
        super().__init__(
            f"No open contracts in {closure_type} {start}..{end}"
        )


# Balance


class InsufficientBalanceError(LedgerError):
    """Withdrawal or expense would exceed the available balance."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, entity_id: str, requested: Decimal, available: Decimal):
        self.entity_id = entity_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance on {entity_id}: requested {requested}, "
            f"available {available}"
        )


# Persistence


class PersistenceError(LedgerError):
    """The underlying store call failed."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


# Concurrency


class ConcurrencyError(LedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
