"""
ledger_modules.custody.config
=============================

Responsibility:
    Configuration schema for the custody ledger.  Defines the structure,
    validation rules, and defaults for custody settings.  Actual values are
    loaded at runtime via ``ledger_config.get_active_config()``.

Invariants enforced:
    - ``distribution_tolerance`` is non-negative.
    - ``account_number_prefix`` is a non-empty token without whitespace.

Failure modes:
    - Invalid configuration values -> ``ValueError`` from ``__post_init__``.

Audit relevance:
    ``allow_negative_balance`` decides whether a withdrawal may overdraw an
    account.  It defaults to False; turning it on should be audited.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.custody.config")


@dataclass
class CustodyConfig:
    """
    Configuration schema for the custody ledger.

    Contract:
        All fields have defaults.  ``__post_init__`` validates all
        constraints and raises ``ValueError`` on violation.

    Example::

        config = CustodyConfig(allow_negative_balance=False,
                               account_number_prefix="CUS")
    """

    # Guard: reject withdrawals/expenses/edits that leave the balance < 0
    allow_negative_balance: bool = False

    # Generated account numbers look like CUS-<time suffix>-<random>
    account_number_prefix: str = "CUS"

    # Distributed payment conversion
    distribution_tolerance: Decimal = Decimal("0.01")

    # Text written by settle()
    handover_description: str = "Custody handover - remaining balance returned"
    writeoff_reason: str = "Custody settlement - unreturned balance written off"
    settlement_note: str = "Custody settled"

    def __post_init__(self):
        if isinstance(self.distribution_tolerance, (int, str)):
            self.distribution_tolerance = Decimal(str(self.distribution_tolerance))
        if self.distribution_tolerance < 0:
            raise ValueError("distribution_tolerance cannot be negative")

        if not self.account_number_prefix or any(
            ch.isspace() for ch in self.account_number_prefix
        ):
            raise ValueError("account_number_prefix must be a non-empty token")

        logger.info(
            "custody_config_initialized",
            extra={
                "allow_negative_balance": self.allow_negative_balance,
                "account_number_prefix": self.account_number_prefix,
                "distribution_tolerance": str(self.distribution_tolerance),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the default guard enabled."""
        logger.info("custody_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a YAML section)."""
        logger.info(
            "custody_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
