"""
ledger_modules.operating
========================

Responsibility:
    Operating fees earned on contract rent, the withdrawals employees take
    against them, per-contract exclusion flags and period closures.

Architecture:
    Module layer (ledger_modules).  May import from ledger_kernel,
    ledger_engines and sibling modules' read services.
"""

from ledger_modules.operating.config import OperatingFeeConfig
from ledger_modules.operating.models import (
    ClosureType,
    ExpenseFlag,
    FeeLine,
    OperatingFeeSummary,
    OperatingWithdrawal,
    PeriodClosure,
)
from ledger_modules.operating.service import OperatingFeeService

__all__ = [
    "ClosureType",
    "ExpenseFlag",
    "FeeLine",
    "OperatingFeeConfig",
    "OperatingFeeService",
    "OperatingFeeSummary",
    "OperatingWithdrawal",
    "PeriodClosure",
]
