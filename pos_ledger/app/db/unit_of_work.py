"""
Unit of work.

One UnitOfWork is one database transaction. Every ledger write takes it as a
required argument, so postings composed by a caller always commit or roll
back together.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction, async_sessionmaker

from pos_ledger.app.db.session import SQLITE_BEGIN_OPTION, get_session_factory

# SQLite begin mode for units of work that never write
READ_ONLY_BEGIN_MODE = "DEFERRED"


class UnitOfWork:
    """
    Async context manager around a single AsyncSession.

    Commits on clean exit unless ``commit_on_exit`` is False, rolls back when
    the block raises or anything is left uncommitted, always closes the
    session. A ``read_only`` unit of work starts its SQLite transaction
    deferred so it does not take the write lock.

    Usage:
        async with UnitOfWork() as uow:
            await PostingEngine.record_order_sale(uow, order_id)
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        commit_on_exit: bool = True,
        read_only: bool = False,
    ):
        self._session_factory = session_factory
        self._commit_on_exit = commit_on_exit
        self._read_only = read_only
        self._session: Optional[AsyncSession] = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its 'async with' block")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        factory = self._session_factory or get_session_factory()
        self._session = factory()
        if self._read_only:
            await self._session.connection(
                execution_options={SQLITE_BEGIN_OPTION: READ_ONLY_BEGIN_MODE}
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None and self._commit_on_exit and not self._read_only:
                await self._session.commit()
            else:
                await self._session.rollback()
        finally:
            await self._session.close()
            self._session = None
        return False

    async def commit(self) -> None:
        """Commit now so a failure reaches the caller before it answers."""
        if self._read_only:
            raise RuntimeError("Cannot commit a read-only UnitOfWork")
        await self.session.commit()

    async def flush(self) -> None:
        await self.session.flush()

    def savepoint(self) -> AsyncSessionTransaction:
        """
        Nested transaction for a step that may lose a uniqueness race.

        Usage:
            async with uow.savepoint():
                ...
        """
        return self.session.begin_nested()
