"""
Contract and Payment ORM Models (``ledger_modules.contracts.orm``).

Responsibility
--------------
Read-only mappings of the contract and customer-payment tables owned by the
billing subsystem.  The ledger never writes to them outside of tests and
fixtures; the operating-fee allocator reads them.

Architecture position
---------------------
**Modules layer** -- persistence.  Inherits from ``Base`` rather than
``AuditedBase``: these rows are external data and carry no ledger audit
columns.

Invariants enforced
-------------------
* Cost, rate and payment columns are nullable.  A missing value is read as
  zero by the allocator, never as an error.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.db.types import PERCENT_TYPE


class ContractModel(Base):
    """
    A customer rental contract.

    Table: ``contracts``
    """

    __tablename__ = "contracts"

    contract_number: Mapped[int] = mapped_column(Integer)
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contract_date: Mapped[date | None] = mapped_column(nullable=True)
    total_rent: Mapped[Decimal | None] = mapped_column(nullable=True)
    installation_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    print_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    operating_fee_rate: Mapped[Decimal | None] = mapped_column(PERCENT_TYPE, nullable=True)

    __table_args__ = (
        UniqueConstraint("contract_number", name="uq_contracts_contract_number"),
        Index("idx_contracts_contract_date", "contract_date"),
    )

    def to_terms(self):
        from ledger_engines.fee_allocation import ContractTerms
        return ContractTerms(
            contract_number=self.contract_number,
            contract_date=self.contract_date,
            total_rent=self.total_rent,
            installation_cost=self.installation_cost,
            print_cost=self.print_cost,
            operating_fee_rate=self.operating_fee_rate,
        )

    def __repr__(self) -> str:
        return f"<ContractModel(number={self.contract_number}, rent={self.total_rent})>"


class CustomerPaymentModel(Base):
    """
    A customer payment.  Only receipt, account_payment and payment entry
    types count toward a contract's paid total.

    Table: ``customer_payments``
    """

    __tablename__ = "customer_payments"

    contract_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    entry_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    distributed_payment_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_customer_payments_contract_number", "contract_number"),
    )

    def to_record(self):
        from ledger_engines.fee_allocation import PaymentRecord
        return PaymentRecord(
            contract_number=self.contract_number,
            amount=self.amount,
            entry_type=self.entry_type,
        )

    def __repr__(self) -> str:
        return (
            f"<CustomerPaymentModel(contract={self.contract_number}, "
            f"amount={self.amount}, type={self.entry_type!r})>"
        )
