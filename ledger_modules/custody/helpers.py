"""
Custody Helpers (``ledger_modules.custody.helpers``).

Responsibility
--------------
Pure functions used by ``CustodyLedgerService``: account-number generation,
distribution validation for payment conversions, the settlement split, and
note handling.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
database access.

Failure modes
-------------
* Invalid distributions or settlement amounts -> ``ValidationError``.
"""

from __future__ import annotations

import secrets
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from ledger_kernel.domain.validation import require_non_negative_amount, require_positive_amount
from ledger_kernel.exceptions import ValidationError
from ledger_modules.custody.models import CustodyDistribution

ZERO = Decimal("0")


def generate_account_number(prefix: str, now: datetime, token: int | None = None) -> str:
    """
    Build a human-readable account number ``<prefix>-<time6>-<rand3>``.

    The time part is the last six digits of the millisecond timestamp; the
    random part separates numbers generated within the same millisecond.
    The format is not a contract; the unique constraint on the column is.
    """
    millis = int(now.timestamp() * 1000)
    if token is None:
        token = secrets.randbelow(1000)
    return f"{prefix}-{millis % 1_000_000:06d}-{token % 1000:03d}"


def validate_distributions(
    net_amount: Decimal,
    distributions: Sequence[CustodyDistribution],
    tolerance: Decimal,
) -> list[CustodyDistribution]:
    """
    Check a payment-to-custody split.

    Preconditions:
        - ``net_amount`` > 0.
    Postconditions:
        - Returns the distributions with amounts parsed to Decimal.
    Raises:
        ValidationError: If there are no distributions, any distribution has
            no employee or a non-positive amount, an employee appears twice,
            or the amounts do not sum to ``net_amount`` within ``tolerance``.
    """
    net = require_positive_amount(net_amount, "net_amount")
    if not distributions:
        raise ValidationError("At least one distribution is required", field="distributions")

    seen: set = set()
    parsed: list[CustodyDistribution] = []
    for dist in distributions:
        if dist.employee_id is None:
            raise ValidationError("Every distribution needs an employee", field="employee_id")
        if dist.employee_id in seen:
            raise ValidationError(
                f"Employee {dist.employee_id} appears in more than one distribution",
                field="employee_id",
            )
        seen.add(dist.employee_id)
        amount = require_positive_amount(dist.amount, "amount")
        parsed.append(
            CustodyDistribution(
                employee_id=dist.employee_id,
                amount=amount,
                custody_name=dist.custody_name,
            )
        )

    total = sum((d.amount for d in parsed), ZERO)
    if abs(total - net) > tolerance:
        raise ValidationError(
            f"Distributions total {total} but the payment net is {net}",
            field="distributions",
        )
    return parsed


def settlement_split(
    current_balance: Decimal,
    returned_amount: Decimal | None,
) -> tuple[Decimal, Decimal]:
    """
    Split a settlement into (returned cash, write-off adjustment).

    Preconditions:
        - ``0 <= returned_amount <= max(current_balance, 0)``.
    Postconditions:
        - ``current_balance - returned + adjustment == 0``.
        - ``returned`` defaults to the positive part of the balance.
    Raises:
        ValidationError: If ``returned_amount`` is outside the range.
    """
    ceiling = max(current_balance, ZERO)
    if returned_amount is None:
        returned = ceiling
    else:
        returned = require_non_negative_amount(returned_amount, "returned_amount")
    if returned > ceiling:
        raise ValidationError(
            f"Returned amount {returned} exceeds the balance {ceiling}",
            field="returned_amount",
        )
    adjustment = returned - current_balance
    return returned, adjustment


def append_note(existing: str | None, note: str) -> str:
    """Append ``note`` on its own line."""
    if existing:
        return f"{existing}\n{note}"
    return note
