"""
Module: ledger_engines.closure_allocation
Responsibility:
    Decide how much of the operating-expense withdrawals a new period
    closure consumes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Algorithm:
    available = total withdrawals - withdrawals consumed by earlier closures
    (floored at zero).  Walk every unclosed contract in ascending contract
    number; each contract with a positive collected fee absorbs
    min(available, fee).  The closure's total_withdrawn is the part absorbed
    by the contracts being closed.  Absorption by open contracts outside the
    closure still reduces ``available`` because those contracts are older in
    the FIFO order.

Invariants enforced:
    - 0 <= total_withdrawn <= total_amount for the closing contracts.
    - remaining_balance == total_amount - total_withdrawn.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.fee_allocation import FeeLine
from ledger_engines.tracer import traced_engine

ZERO = Decimal("0")


@dataclass(frozen=True)
class ClosurePlan:
    """Totals to persist on a new period closure."""

    total_contracts: int
    total_amount: Decimal
    total_withdrawn: Decimal
    remaining_balance: Decimal


def allocate_fifo(
    lines: Sequence[FeeLine],
    available: Decimal,
) -> dict[int, Decimal]:
    """
    Spread ``available`` over the lines in ascending contract-number order.

    Returns contract_number -> allocated amount for every line (0 where
    nothing was absorbed).
    """
    remaining = max(ZERO, available)
    allocation: dict[int, Decimal] = {}
    for line in sorted(lines, key=lambda ln: ln.contract_number):
        if remaining <= 0 or line.collected_fee <= 0:
            allocation[line.contract_number] = ZERO
            continue
        taken = min(remaining, line.collected_fee)
        allocation[line.contract_number] = taken
        remaining -= taken
    return allocation


@traced_engine("closure_allocation", "1.0", fingerprint_fields=("closing_numbers",))
def plan_closure(
    *,
    closing_numbers: Collection[int],
    unclosed_lines: Sequence[FeeLine],
    total_withdrawals: Decimal,
    previously_consumed: Decimal,
) -> ClosurePlan:
    """
    Compute closure totals.

    Preconditions:
        closing_numbers is a subset of the contract numbers in unclosed_lines.
    """
    closing = set(closing_numbers)
    allocation = allocate_fifo(unclosed_lines, total_withdrawals - previously_consumed)

    total_amount = sum(
        (ln.collected_fee for ln in unclosed_lines if ln.contract_number in closing),
        ZERO,
    )
    withdrawn = sum(
        (amt for number, amt in allocation.items() if number in closing),
        ZERO,
    )
    return ClosurePlan(
        total_contracts=len(closing),
        total_amount=total_amount,
        total_withdrawn=withdrawn,
        remaining_balance=total_amount - withdrawn,
    )
