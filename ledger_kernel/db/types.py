"""
Module: ledger_kernel.db.types
Responsibility: Column precision constants and the single sanctioned rounding
    helper for money.  Centralizes precision so every model and engine uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by every layer.

Invariants enforced:
    - No floats.  All monetary amounts are Decimal with explicit precision.
    - round_money() is the ONLY rounding function for monetary values; the
      tie-break (ROUND_HALF_UP by default) is applied uniformly.
"""

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric

# 38 digits total, 9 decimal places
MONEY_TYPE = Numeric(38, 9)

# Percentages such as operating fee rates (12.5 for 12.5%)
PERCENT_TYPE = Numeric(9, 4)

DEFAULT_ROUNDING = ROUND_HALF_UP

ROUNDING_MODES: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only sanctioned rounding function for money.  With
    ``decimal_places=0`` the result is a whole-unit amount (``Decimal("50")``).
    """
    if decimal_places <= 0:
        return value.quantize(Decimal("1"), rounding=rounding)
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
