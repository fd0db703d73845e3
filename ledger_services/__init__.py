"""
ledger_services -- Package init and public API.

Responsibility:
    Orchestration over the ledger modules.  Services here pick which
    module owns an operation for a given employee and never touch ORM
    rows directly.

Architecture position:
    Services -- above ledger_modules.

        ledger_services/ -> ledger_modules/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_modules/  -> ledger_services/ (FORBIDDEN)
"""

from ledger_services.employee_balance_service import (
    BalanceSource,
    BalanceSourceKind,
    EmployeeBalance,
    EmployeeBalanceService,
    OperatingFeeSource,
    PayrollSource,
    SourceWithdrawal,
    TeamAccountSource,
)

__all__ = [
    "BalanceSource",
    "BalanceSourceKind",
    "EmployeeBalance",
    "EmployeeBalanceService",
    "OperatingFeeSource",
    "PayrollSource",
    "SourceWithdrawal",
    "TeamAccountSource",
]
