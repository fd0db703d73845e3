"""
Module: ledger_kernel.db.engine
Responsibility: The one place the ledger store is connected.  Holds the
    process-wide engine and session factory, creates and drops the schema,
    and offers ``session_scope`` for callers that group several service calls.
Architecture position: Kernel > DB.  ``create_tables`` reaches up into
    ``ledger_modules._orm_registry`` lazily so that every table is registered
    before ``create_all``; nothing else here imports above the kernel.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED; custody rows are
      serialized by explicit ``SELECT ... FOR UPDATE`` in the services.
    - In-memory SQLite uses a single shared connection (StaticPool), so every
      session of a test sees the same database.  File SQLite gets a normal
      pool so worker threads hold their own connections.
    - Sessions keep attribute values after commit; services build their
      returned snapshots after the commit has happened.

Failure modes:
    - RuntimeError from ``get_engine`` / ``get_session`` /
      ``get_session_factory`` before ``init_engine_from_url``.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Ledger store not initialized; call init_engine_from_url() first."


def _sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(
    database_url: str,
    echo: bool,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        event.listen(engine, "connect", _sqlite_pragmas)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Connect the ledger store.

    ``database_url`` is a SQLAlchemy URL such as
    ``postgresql://ledger@db/ledger`` or ``sqlite:///ledger.db``.  Pool
    arguments apply to PostgreSQL only.  Calling again without
    ``reset_engine()`` replaces the previous engine.
    """
    global _engine, _SessionFactory

    _engine = _build_engine(
        database_url, echo, pool_size, max_overflow,
        pool_pre_ping, pool_timeout, pool_recycle,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": _engine.dialect.name,
        "pool_size": None if _engine.dialect.name == "sqlite" else pool_size,
        "echo": echo,
    })
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that need one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session that commits on normal exit and rolls back on error.

    Usage:
        with session_scope() as session:
            service = CustodyLedgerService(session)
            service.add_deposit(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every ledger table registered by ``ledger_modules``."""
    from ledger_kernel.db.base import Base
    from ledger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every ledger table.  Tests only."""
    from ledger_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
