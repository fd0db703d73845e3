"""
Module: ledger_engines.balance
Responsibility:
    Derive a custody account's balance from its rows.  The stored
    ``current_balance`` column is only ever a cache of this function's
    output.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - balance == initial + deposits - withdrawals + adjustments - expenses,
      computed by full replay of the row set, never by applying a delta.
    - Adjustments are signed: a positive adjustment credits the account,
      a negative one debits it.

Failure modes:
    - ValueError on an unknown transaction type.

Usage:
    from ledger_engines.balance import derive_balance

    breakdown = derive_balance(
        initial_amount=Decimal("1000"),
        transactions=account_transactions,
        expenses=account_expenses,
    )
    breakdown.balance  # Decimal("900")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
ADJUSTMENT = "adjustment"


class TransactionLike(Protocol):
    transaction_type: str
    amount: Decimal


class ExpenseLike(Protocol):
    amount: Decimal


@dataclass(frozen=True)
class BalanceBreakdown:
    """
    Result of replaying an account's rows.

    Guarantees:
        ``balance == initial_amount + total_deposits - total_withdrawals
        + total_adjustments - total_expenses``.
    """

    initial_amount: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_adjustments: Decimal
    total_expenses: Decimal
    balance: Decimal


def derive_balance(
    initial_amount: Decimal,
    transactions: Iterable[TransactionLike],
    expenses: Iterable[ExpenseLike],
) -> BalanceBreakdown:
    """
    Replay the row set of one account.

    Preconditions:
        transactions carry ``transaction_type`` in {deposit, withdrawal,
        adjustment} (plain strings or str-valued enums).
    Postconditions:
        Result is independent of row order.
    Raises:
        ValueError: On an unknown transaction type.
    """
    deposits = Decimal("0")
    withdrawals = Decimal("0")
    adjustments = Decimal("0")
    for txn in transactions:
        kind = getattr(txn.transaction_type, "value", txn.transaction_type)
        if kind == DEPOSIT:
            deposits += txn.amount
        elif kind == WITHDRAWAL:
            withdrawals += txn.amount
        elif kind == ADJUSTMENT:
            adjustments += txn.amount
        else:
            raise ValueError(f"Unknown transaction type: {kind!r}")

    spent = sum((e.amount for e in expenses), Decimal("0"))
    balance = initial_amount + deposits - withdrawals + adjustments - spent
    return BalanceBreakdown(
        initial_amount=initial_amount,
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        total_adjustments=adjustments,
        total_expenses=spent,
        balance=balance,
    )
