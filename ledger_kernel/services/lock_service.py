"""
Module: ledger_kernel.services.lock_service
Responsibility: Process-local serialization point for ledger mutations keyed
    by entity (custody account id, employee id) or by shared view
    (the operating-fee view).
Architecture position: Kernel > Services.  Imported by module services; has
    no database dependency.

Invariants enforced:
    - At most one thread inside a guarded block per key.  Two withdrawals
      against the same account run one after the other, so the second
      always reads the balance the first committed.
    - Locks are reference counted and removed when unused; the registry does
      not grow with the number of accounts ever touched.

Failure modes:
    - None raised here.  Cross-process serialization is provided by the
      database row lock (SELECT ... FOR UPDATE) and the version column on the
      account row; this registry only removes needless contention inside one
      process.
"""

import threading
from contextlib import contextmanager
from typing import Generator, Hashable

from ledger_kernel.logging_config import get_logger

logger = get_logger("services.lock")


class KeyedLockRegistry:
    """Reference-counted map of key -> threading.Lock."""

    def __init__(self, name: str):
        self._name = name
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._refcounts: dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Generator[None, None, None]:
        """Hold the lock for ``key`` for the duration of the block."""
        key = str(key)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refcounts[key] = self._refcounts.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refcounts[key] -= 1
                if self._refcounts[key] == 0:
                    del self._refcounts[key]
                    del self._locks[key]

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)

    def __repr__(self) -> str:
        return f"<KeyedLockRegistry {self._name} keys={self.active_keys()}>"


account_locks = KeyedLockRegistry("custody_account")
employee_locks = KeyedLockRegistry("employee")
fee_view_locks = KeyedLockRegistry("operating_fee_view")
