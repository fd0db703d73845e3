"""Kernel services shared by the ledger modules."""

from ledger_kernel.services.lock_service import (
    KeyedLockRegistry,
    account_locks,
    employee_locks,
    fee_view_locks,
)

__all__ = [
    "KeyedLockRegistry",
    "account_locks",
    "employee_locks",
    "fee_view_locks",
]
