"""
ledger_modules.contracts
========================

Read-only contract and customer-payment data consumed by the operating-fee
allocator.  Owned by the billing subsystem.
"""

from ledger_modules.contracts.service import ContractReadService

__all__ = ["ContractReadService"]
