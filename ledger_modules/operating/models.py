"""
ledger_modules.operating.models
===============================

Responsibility:
    Frozen dataclass value objects for the operating-fee side of the ledger:
    operating-expense withdrawals, period closures and per-contract
    exclusion flags.  The fee summary itself is the engine's
    ``OperatingFeeSummary``.

Invariants enforced:
    - All monetary fields use ``Decimal`` -- never ``float``.
    - ``PeriodClosure.remaining_balance == total_amount - total_withdrawn``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_engines.fee_allocation import ClosureType, ClosureWindow, FeeLine, OperatingFeeSummary


@dataclass(frozen=True)
class OperatingWithdrawal:
    """Cash taken by an employee against their operating-fee balance."""
    id: UUID
    employee_id: UUID | None
    amount: Decimal
    withdrawal_date: date
    method: str | None = None
    notes: str | None = None
    receiver_name: str | None = None
    sender_name: str | None = None


@dataclass(frozen=True)
class PeriodClosure:
    """
    A closed-out contract range or contract-date period.

    Contracts it covers no longer accrue operating fees.
    """
    id: UUID
    closure_type: ClosureType
    closure_date: date
    total_contracts: int
    total_amount: Decimal
    total_withdrawn: Decimal
    remaining_balance: Decimal
    contract_start: int | None = None
    contract_end: int | None = None
    period_start: date | None = None
    period_end: date | None = None
    notes: str | None = None

    def window(self) -> ClosureWindow:
        return ClosureWindow(
            closure_type=self.closure_type,
            contract_start=self.contract_start,
            contract_end=self.contract_end,
            period_start=self.period_start,
            period_end=self.period_end,
        )


@dataclass(frozen=True)
class ExpenseFlag:
    """Manual exclusion of one contract from fee computation."""
    contract_number: int
    excluded: bool


__all__ = [
    "ClosureType",
    "ExpenseFlag",
    "FeeLine",
    "OperatingFeeSummary",
    "OperatingWithdrawal",
    "PeriodClosure",
]
