"""
Request dependencies for FastAPI.

Every request runs in exactly one unit of work, scoped to the tenant named
by the ``X-Restaurant-ID`` header.
"""

from typing import AsyncGenerator

from fastapi import Header

from pos_ledger.app.db.unit_of_work import UnitOfWork


async def get_uow() -> AsyncGenerator[UnitOfWork, None]:
    """
    FastAPI dependency yielding the request's unit of work.

    Write endpoints call ``await uow.commit()`` before returning, so a failed
    commit becomes the response. Anything left uncommitted is rolled back.
    """
    async with UnitOfWork(commit_on_exit=False) as uow:
        yield uow


async def get_read_uow() -> AsyncGenerator[UnitOfWork, None]:
    """FastAPI dependency yielding a read-only unit of work."""
    async with UnitOfWork(read_only=True) as uow:
        yield uow


async def get_restaurant_id(
    restaurant_id: str = Header(..., alias="X-Restaurant-ID", min_length=1)
) -> str:
    return restaurant_id
