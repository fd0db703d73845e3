"""
Ledger Engines - pure calculation functions.

All engines are side-effect free: no database, no clock, no I/O beyond the
LEDGER_ENGINE_TRACE log record.

Engines:
    - balance: custody account balance replay
    - fee_allocation: operating fees owed from contract payments
    - closure_allocation: FIFO withdrawal consumption for period closures
    - team_settlement: oldest-first payoff of pending team rows
"""

from ledger_engines.balance import BalanceBreakdown, derive_balance
from ledger_engines.closure_allocation import ClosurePlan, allocate_fifo, plan_closure
from ledger_engines.fee_allocation import (
    PAID_ENTRY_TYPES,
    ClosureType,
    ClosureWindow,
    ContractTerms,
    FeeLine,
    OperatingFeeSummary,
    PaymentRecord,
    compute_operating_fees,
    fee_lines,
    uncovered_contracts,
)
from ledger_engines.team_settlement import (
    PendingTeamRow,
    TeamSettlementPlan,
    select_rows_to_settle,
)

__all__ = [
    "BalanceBreakdown",
    "derive_balance",
    "ClosurePlan",
    "allocate_fifo",
    "plan_closure",
    "PAID_ENTRY_TYPES",
    "ClosureType",
    "ClosureWindow",
    "ContractTerms",
    "FeeLine",
    "OperatingFeeSummary",
    "PaymentRecord",
    "compute_operating_fees",
    "fee_lines",
    "uncovered_contracts",
    "PendingTeamRow",
    "TeamSettlementPlan",
    "select_rows_to_settle",
]
