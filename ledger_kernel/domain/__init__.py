"""
Pure domain layer.

Clock abstraction and boundary validation with NO dependencies on the ORM,
the database, or I/O.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.validation import (
    parse_amount,
    require_decimal,
    require_non_empty,
    require_positive_amount,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "parse_amount",
    "require_decimal",
    "require_non_empty",
    "require_positive_amount",
]
