"""
ledger_modules.custody
======================

Responsibility:
    The custodial-cash ledger: named cash accounts entrusted to employees,
    tracked as mini-ledgers of deposits, withdrawals, signed adjustments and
    expenses, with settlement, return and deletion.

Architecture:
    Module layer (ledger_modules).  May import from ledger_kernel and
    ledger_engines.  MUST NOT be imported by ledger_kernel or ledger_engines.

Invariants enforced:
    - current_balance is derived by replay after every mutation.
    - Non-negative guard on by default (CustodyConfig).
    - Every mutation is one transaction under a per-account lock.
"""

from ledger_modules.custody.config import CustodyConfig
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
from ledger_modules.custody.service import CustodyLedgerService

__all__ = [
    "AccountStatus",
    "BalanceDrift",
    "CustodyAccount",
    "CustodyConfig",
    "CustodyDistribution",
    "CustodyExpense",
    "CustodyLedgerService",
    "CustodyStatement",
    "CustodyTransaction",
    "SourceType",
    "TransactionType",
]
