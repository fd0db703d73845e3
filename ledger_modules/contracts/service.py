"""
ledger_modules.contracts.service
================================

Read-only access to contracts and customer payments, shaped as the frozen
inputs of ``ledger_engines.fee_allocation``.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_engines.fee_allocation import ContractTerms, PaymentRecord
from ledger_kernel.logging_config import get_logger
from ledger_modules.contracts.orm import ContractModel, CustomerPaymentModel

logger = get_logger("modules.contracts.service")


class ContractReadService:
    """Loads contract terms and payments.  Never writes."""

    def __init__(self, session: Session):
        self._session = session

    def contract_terms(self) -> list[ContractTerms]:
        """All contracts, ascending by contract number."""
        rows = self._session.scalars(
            select(ContractModel).order_by(ContractModel.contract_number)
        )
        return [row.to_terms() for row in rows]

    def payments(self) -> list[PaymentRecord]:
        """All customer payments, including ones with no matching contract."""
        rows = self._session.scalars(select(CustomerPaymentModel))
        records = [row.to_record() for row in rows]
        logger.debug("contract_payments_loaded", extra={"payment_count": len(records)})
        return records
