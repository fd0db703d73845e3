"""
ledger_modules.operating.config
===============================

Responsibility:
    Configuration schema for operating-fee computation.

Invariants enforced:
    - ``fee_rounding_places`` is between 0 and 9 (column scale).
    - ``rounding_mode`` is one of the supported tie-breaks.

Failure modes:
    - Invalid configuration values -> ``ValueError`` from ``__post_init__``.

Audit relevance:
    Rounding settings change every fee total.  A change must be applied to
    all contracts at once, never per contract.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.db.types import ROUNDING_MODES
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.operating.config")


@dataclass
class OperatingFeeConfig:
    """
    Configuration schema for the operating-fee allocator.

    Contract:
        Defaults round each contract's fee to whole currency units with
        ROUND_HALF_UP and exclude only contract_range closures from the
        employee view.
    """

    fee_rounding_places: int = 0
    rounding_mode: str = "half_up"

    # Also drop contracts whose date lies in a period closure
    exclude_period_closures: bool = False

    def __post_init__(self):
        if not 0 <= self.fee_rounding_places <= 9:
            raise ValueError("fee_rounding_places must be between 0 and 9")
        if self.rounding_mode not in ROUNDING_MODES:
            raise ValueError(
                f"rounding_mode must be one of {sorted(ROUNDING_MODES)}, "
                f"got {self.rounding_mode!r}"
            )

        logger.info(
            "operating_fee_config_initialized",
            extra={
                "fee_rounding_places": self.fee_rounding_places,
                "rounding_mode": self.rounding_mode,
                "exclude_period_closures": self.exclude_period_closures,
            },
        )

    @property
    def rounding(self) -> str:
        """The ``decimal`` rounding constant for ``rounding_mode``."""
        return ROUNDING_MODES[self.rounding_mode]

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with whole-unit ROUND_HALF_UP rounding."""
        logger.info("operating_fee_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a YAML section)."""
        logger.info(
            "operating_fee_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
