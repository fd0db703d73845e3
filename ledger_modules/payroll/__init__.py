"""
ledger_modules.payroll
======================

Responsibility:
    Employees as seen by the ledger, cash advances, and installation-team
    accounts with their oldest-first payoff on team-dues withdrawals.

Architecture:
    Module layer (ledger_modules).  May import from ledger_kernel and
    ledger_engines.
"""

from ledger_modules.payroll.models import (
    Advance,
    AdvanceStatus,
    Employee,
    InstallationTeamAccount,
    TeamAccountStatus,
    TeamBalance,
    TeamWithdrawal,
)
from ledger_modules.payroll.service import PayrollService

__all__ = [
    "Advance",
    "AdvanceStatus",
    "Employee",
    "InstallationTeamAccount",
    "PayrollService",
    "TeamAccountStatus",
    "TeamBalance",
    "TeamWithdrawal",
]
