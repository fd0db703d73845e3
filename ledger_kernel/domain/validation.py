"""
Boundary validation helpers for ledger inputs.

Pure checks with no I/O.  Amounts enter the ledger as Decimal or decimal
strings; floats are rejected outright because they cannot represent currency
exactly, and negative or zero amounts are rejected where a positive amount is
required.  All failures raise ``ValidationError`` with the offending field.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from ledger_kernel.exceptions import ValidationError


def require_decimal(value: Any, name: str = "amount") -> None:
    """Raise ValidationError unless value is a Decimal."""
    if not isinstance(value, Decimal):
        raise ValidationError(
            f"{name} must be Decimal, not {type(value).__name__}", field=name
        )


def parse_amount(value: Any, name: str = "amount") -> Decimal:
    """
    Convert a boundary amount to Decimal.

    Accepts Decimal, int, or a decimal string.  Rejects floats, booleans,
    NaN/infinite values and anything unparsable.

    Raises:
        ValidationError: If value cannot be an exact currency amount.
    """
    if value is None:
        raise ValidationError(f"{name} is required", field=name)
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{name} must be a Decimal or decimal string, not {type(value).__name__}",
            field=name,
        )
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} is not a number: {value!r}", field=name)
    else:
        raise ValidationError(
            f"{name} must be a Decimal or decimal string, not {type(value).__name__}",
            field=name,
        )
    if not amount.is_finite():
        raise ValidationError(f"{name} must be finite", field=name)
    return amount


def require_positive_amount(value: Any, name: str = "amount") -> Decimal:
    """Parse value and require it to be strictly greater than zero."""
    amount = parse_amount(value, name)
    if amount <= 0:
        raise ValidationError(f"{name} must be greater than zero", field=name)
    return amount


def require_non_negative_amount(value: Any, name: str = "amount") -> Decimal:
    """Parse value and require it to be zero or greater."""
    amount = parse_amount(value, name)
    if amount < 0:
        raise ValidationError(f"{name} must not be negative", field=name)
    return amount


def require_non_empty(value: str | None, name: str) -> str:
    """Require a non-blank string and return it stripped."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required", field=name)
    return str(value).strip()
