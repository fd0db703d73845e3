"""
Module: ledger_engines.fee_allocation
Responsibility:
    Compute the operating fees owed to an employee from contract payments,
    net of the operating-expense withdrawals already taken.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Callers load contracts,
    payments, exclusion flags, closures and withdrawals and pass them in as
    frozen inputs.

Algorithm:
    1. Uncovered contracts = all contracts, minus those flagged excluded,
       minus those whose number lies in a contract_range closure
       (start <= number <= end).  Optionally also minus those whose
       contract_date lies in a period closure.
    2. total_amount = rent + installation + print;
       total_paid = sum of payments whose entry_type counts as paid.
    3. rent_paid_estimate = total_paid * rent / total_amount (0 when
       total_amount is 0).  Payments are assumed to settle the three cost
       components in proportion to their share of the contract total; no
       upstream record states how a payment was actually applied.
    4. collected_fee = round(rent_paid_estimate * rate / 100), rounded with
       one tie-break to a fixed number of places (default: whole units,
       ROUND_HALF_UP).
    5. remaining_balance = sum(collected_fee) - sum(withdrawals).

Invariants enforced:
    - Determinism: identical inputs give identical totals (no clock, no I/O,
      input order only affects the order of the per-contract lines).
    - Missing data is zero: a contract without payments, a payment without a
      contract, a missing rate or cost contributes nothing and never raises.

Usage:
    from ledger_engines.fee_allocation import compute_operating_fees

    summary = compute_operating_fees(
        contracts=contracts,
        payments=payments,
        excluded_contracts=frozenset({17}),
        closures=closures,
        withdrawal_amounts=[Decimal("20")],
    )
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import round_money
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.fee_allocation")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

PAID_ENTRY_TYPES: frozenset[str] = frozenset({"receipt", "account_payment", "payment"})


class ClosureType(str, Enum):
    """How a period closure selects contracts."""

    CONTRACT_RANGE = "contract_range"
    PERIOD = "period"


@dataclass(frozen=True)
class ContractTerms:
    """Cost and fee terms of one contract.  Missing values count as zero."""

    contract_number: int
    contract_date: date | None = None
    total_rent: Decimal | None = None
    installation_cost: Decimal | None = None
    print_cost: Decimal | None = None
    operating_fee_rate: Decimal | None = None

    @property
    def total_amount(self) -> Decimal:
        return (
            (self.total_rent or ZERO)
            + (self.installation_cost or ZERO)
            + (self.print_cost or ZERO)
        )


@dataclass(frozen=True)
class PaymentRecord:
    """A customer payment row.  Only paid entry types count."""

    contract_number: int | None
    amount: Decimal | None
    entry_type: str | None

    @property
    def counts_as_paid(self) -> bool:
        return self.entry_type in PAID_ENTRY_TYPES


@dataclass(frozen=True)
class ClosureWindow:
    """
    The coverage of one period closure.

    A contract_range closure covers contract numbers in [contract_start,
    contract_end]; a period closure covers contract dates in [period_start,
    period_end].  A window with a missing bound covers nothing.
    """

    closure_type: ClosureType
    contract_start: int | None = None
    contract_end: int | None = None
    period_start: date | None = None
    period_end: date | None = None

    def covers_number(self, contract_number: int) -> bool:
        if self.closure_type != ClosureType.CONTRACT_RANGE:
            return False
        if self.contract_start is None or self.contract_end is None:
            return False
        return self.contract_start <= contract_number <= self.contract_end

    def covers_date(self, contract_date: date | None) -> bool:
        if self.closure_type != ClosureType.PERIOD or contract_date is None:
            return False
        if self.period_start is None or self.period_end is None:
            return False
        return self.period_start <= contract_date <= self.period_end

    def covers(self, contract: ContractTerms, include_periods: bool = True) -> bool:
        if self.covers_number(contract.contract_number):
            return True
        return include_periods and self.covers_date(contract.contract_date)


@dataclass(frozen=True)
class FeeLine:
    """Fee computation for one uncovered contract."""

    contract_number: int
    total_amount: Decimal
    total_paid: Decimal
    rent_paid_estimate: Decimal
    operating_fee_rate: Decimal
    collected_fee: Decimal


@dataclass(frozen=True)
class OperatingFeeSummary:
    """
    Read-only operating-fee position of one employee.

    Guarantees:
        - ``remaining_balance == total_operating_fees - total_withdrawals``.
        - ``total_operating_fees == sum(line.collected_fee for line in lines)``.
    """

    total_contracts: int
    total_operating_fees: Decimal
    total_withdrawals: Decimal
    remaining_balance: Decimal
    withdrawals_count: int
    lines: tuple[FeeLine, ...]


def is_covered(
    contract: ContractTerms,
    closures: Iterable[ClosureWindow],
    include_periods: bool,
) -> bool:
    """True if any closure covers the contract."""
    return any(c.covers(contract, include_periods) for c in closures)


def uncovered_contracts(
    contracts: Iterable[ContractTerms],
    excluded_contracts: frozenset[int] | set[int],
    closures: Sequence[ClosureWindow],
    exclude_period_closures: bool = False,
) -> list[ContractTerms]:
    """Contracts that are neither flagged excluded nor inside a closure."""
    return [
        c
        for c in contracts
        if c.contract_number not in excluded_contracts
        and not is_covered(c, closures, exclude_period_closures)
    ]


def paid_totals(payments: Iterable[PaymentRecord]) -> dict[int, Decimal]:
    """Sum paid-type payment amounts per contract number."""
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for p in payments:
        if p.contract_number is None or p.amount is None or not p.counts_as_paid:
            continue
        totals[p.contract_number] += p.amount
    return totals


def fee_line(
    contract: ContractTerms,
    total_paid: Decimal,
    rounding_places: int = 0,
    rounding: str = ROUND_HALF_UP,
) -> FeeLine:
    """
    Compute the collected operating fee of one contract.

    Postconditions:
        rent_paid_estimate is kept at full precision; only the final fee is
        rounded.
    """
    total_amount = contract.total_amount
    rent = contract.total_rent or ZERO
    rate = contract.operating_fee_rate or ZERO
    if total_amount > 0:
        rent_paid_estimate = total_paid * rent / total_amount
    else:
        rent_paid_estimate = ZERO
    collected = round_money(rent_paid_estimate * rate / HUNDRED, rounding_places, rounding)
    return FeeLine(
        contract_number=contract.contract_number,
        total_amount=total_amount,
        total_paid=total_paid,
        rent_paid_estimate=rent_paid_estimate,
        operating_fee_rate=rate,
        collected_fee=collected,
    )


def fee_lines(
    contracts: Iterable[ContractTerms],
    payments: Iterable[PaymentRecord],
    rounding_places: int = 0,
    rounding: str = ROUND_HALF_UP,
) -> list[FeeLine]:
    """Fee lines for the given contracts, in the order given."""
    paid = paid_totals(payments)
    return [
        fee_line(c, paid.get(c.contract_number, ZERO), rounding_places, rounding)
        for c in contracts
    ]


@traced_engine(
    "fee_allocation",
    "1.0",
    fingerprint_fields=("contracts", "payments", "excluded_contracts", "closures"),
)
def compute_operating_fees(
    *,
    contracts: Sequence[ContractTerms],
    payments: Sequence[PaymentRecord],
    excluded_contracts: frozenset[int] | set[int],
    closures: Sequence[ClosureWindow],
    withdrawal_amounts: Sequence[Decimal],
    rounding_places: int = 0,
    rounding: str = ROUND_HALF_UP,
    exclude_period_closures: bool = False,
) -> OperatingFeeSummary:
    """
    Compute the operating-fee summary for one employee.

    Preconditions:
        withdrawal_amounts are the employee's operating-expense withdrawals.
    Postconditions:
        Returns an OperatingFeeSummary; never raises on missing joins.
    """
    eligible = uncovered_contracts(
        contracts, excluded_contracts, closures, exclude_period_closures
    )
    lines = fee_lines(eligible, payments, rounding_places, rounding)

    total_fees = sum((line.collected_fee for line in lines), ZERO)
    total_withdrawals = sum((a for a in withdrawal_amounts if a is not None), ZERO)

    logger.debug(
        "operating_fees_computed",
        extra={
            "contract_count": len(contracts),
            "uncovered_count": len(eligible),
            "total_operating_fees": str(total_fees),
            "total_withdrawals": str(total_withdrawals),
        },
    )

    return OperatingFeeSummary(
        total_contracts=len(eligible),
        total_operating_fees=total_fees,
        total_withdrawals=total_withdrawals,
        remaining_balance=total_fees - total_withdrawals,
        withdrawals_count=len(withdrawal_amounts),
        lines=tuple(lines),
    )
