"""
Module: ledger_engines.team_settlement
Responsibility:
    Choose which pending installation-team rows a team-dues withdrawal pays
    off.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Rows are visited oldest first by installation_date (row id breaks
      ties, so the order is total).
    - A row is marked paid only if its whole amount fits in the budget still
      unspent.  The walk stops at the first row that does not fit; a row is
      never partially paid and younger rows are never paid ahead of it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

ZERO = Decimal("0")


@dataclass(frozen=True)
class PendingTeamRow:
    """A pending installation-team account row."""

    row_id: UUID | str
    installation_date: date | None
    amount: Decimal


@dataclass(frozen=True)
class TeamSettlementPlan:
    """
    Rows to mark paid for one withdrawal.

    Guarantees:
        ``settled_total + unallocated == withdrawal amount``.
    """

    settled_row_ids: tuple[UUID | str, ...]
    settled_total: Decimal
    unallocated: Decimal


def _fifo_key(row: PendingTeamRow) -> tuple:
    # Rows without a date sort last.
    return (row.installation_date is None, row.installation_date or date.max, str(row.row_id))


def select_rows_to_settle(
    rows: Iterable[PendingTeamRow],
    amount: Decimal,
) -> TeamSettlementPlan:
    """
    Greedy oldest-first selection of fully covered rows.

    Preconditions:
        amount >= 0.
    Postconditions:
        The selected rows are a prefix of the FIFO order whose cumulative
        amount is <= ``amount``.
    """
    budget = amount
    settled: list[UUID | str] = []
    for row in sorted(rows, key=_fifo_key):
        if budget <= 0:
            break
        if row.amount <= budget:
            settled.append(row.row_id)
            budget -= row.amount
        else:
            break
    return TeamSettlementPlan(
        settled_row_ids=tuple(settled),
        settled_total=amount - budget,
        unallocated=budget,
    )
