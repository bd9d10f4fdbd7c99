"""
Database session configuration.

This module owns the process-wide engine and session factory. The handle is
created by ``init_db()`` and released by ``dispose_db()``; it carries no
per-request state.
"""

import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from pos_ledger.app.core.config import settings

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()

# Connection execution option overriding the SQLite BEGIN mode of one transaction
SQLITE_BEGIN_OPTION = "sqlite_begin_mode"


class Database:
    """Holder for the shared engine and session factory."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self.engine is not None


database = Database()


def create_engine(database_url: str, **engine_kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite engines get driver-level autocommit and an explicit BEGIN so that
    SAVEPOINT works and writers serialize on the database lock. File
    databases run in WAL mode so readers never wait on a writer. Other
    backends get the configured connection pool.
    """
    is_sqlite = database_url.startswith("sqlite")

    if is_sqlite:
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        if ":memory:" in database_url:
            engine_kwargs.setdefault("poolclass", StaticPool)
    else:
        engine_kwargs.setdefault("pool_size", settings.db_pool_size)
        engine_kwargs.setdefault("max_overflow", settings.db_max_overflow)

    engine = create_async_engine(
        database_url,
        echo=settings.db_echo,
        future=True,
        **engine_kwargs,
    )

    if is_sqlite:
        _configure_sqlite(engine, settings.sqlite_begin_mode)

    return engine


def _configure_sqlite(engine: AsyncEngine, begin_mode: str) -> None:
    """Hand transaction control from the sqlite3 driver to SQLAlchemy."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, begin_mode)
        conn.exec_driver_sql(f"BEGIN {mode}".strip())


def init_db(database_url: str = None, **engine_kwargs) -> AsyncEngine:
    """
    Initialize the shared engine and session factory.

    Calling it again replaces the previous handle; call ``dispose_db()``
    first to release its connections.
    """
    url = database_url or settings.database_url
    database.engine = create_engine(url, **engine_kwargs)
    database.session_factory = async_sessionmaker(
        database.engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Database initialized", extra={"dialect": database.engine.dialect.name})
    return database.engine


async def create_all() -> None:
    """Create every table registered on ``Base``."""
    # Import models to ensure they are registered with Base
    from pos_ledger.app.models import audit_log, cash_session, ledger_entry, order, payout, rider_shift  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    """Release the shared engine."""
    if database.engine is not None:
        await database.engine.dispose()
    database.engine = None
    database.session_factory = None


def get_engine() -> AsyncEngine:
    if not database.is_initialized:
        init_db()
    return database.engine


def get_session_factory() -> async_sessionmaker:
    if not database.is_initialized:
        init_db()
    return database.session_factory
