"""
Shared transaction helpers for module services.

Used by ledger_modules/*/service.py so every mutating operation has the same
boundary: take the per-entity lock, run the body, commit, and on any failure
roll back and surface a typed ledger error.

Architecture: Modules layer. Imports only from ledger_kernel.
"""

from __future__ import annotations

from contextlib import contextmanager, nullcontext
from typing import ContextManager, Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.exceptions import (
    ConfirmationRequiredError,
    LedgerError,
    OptimisticLockError,
    PersistenceError,
)
from ledger_kernel.logging_config import LogContext, get_logger

logger = get_logger("modules.session")


@contextmanager
def ledger_transaction(
    session: Session,
    operation: str,
    *,
    lock: ContextManager | None = None,
    entity_type: str = "entity",
    entity_id: object = None,
    log_context: dict | None = None,
) -> Generator[None, None, None]:
    """
    Run one mutating operation as a single database transaction.

    Preconditions:
        The session has no pending work from an earlier operation.
    Postconditions:
        On normal exit the session is committed (while the lock is still
        held).  On any exception the session is rolled back and:
            - LedgerError subclasses propagate unchanged;
            - StaleDataError becomes OptimisticLockError;
            - any other SQLAlchemyError becomes PersistenceError.
        ``log_context`` fields (actor_id, account_id, employee_id) are bound
        to every log record emitted inside the block.
    """
    guard = lock if lock is not None else nullcontext()
    with LogContext.bind(**(log_context or {})), guard:
        try:
            yield
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except StaleDataError as exc:
            session.rollback()
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "operation": operation,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
            )
            raise OptimisticLockError(entity_type, str(entity_id)) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "persistence_failure",
                extra={"operation": operation, "error": str(exc)},
            )
            raise PersistenceError(operation, str(exc)) from exc
        except Exception:
            session.rollback()
            raise


def require_confirmation(confirmed: bool, operation: str, entity_id: object) -> None:
    """Raise ConfirmationRequiredError unless the caller confirmed."""
    if not confirmed:
        logger.info(
            "confirmation_missing",
            extra={"operation": operation, "entity_id": str(entity_id)},
        )
        raise ConfirmationRequiredError(operation, str(entity_id))
