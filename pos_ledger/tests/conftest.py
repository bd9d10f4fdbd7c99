"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.pool import NullPool

from pos_ledger.app.main import app
from pos_ledger.app.db.session import create_all, dispose_db, get_session_factory, init_db
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.tests.helpers import RESTAURANT_ID, create_order

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test, installed as the shared handle."""
    engine = init_db(TEST_DATABASE_URL)
    await create_all()

    yield engine

    await dispose_db()


@pytest.fixture
async def file_engine(tmp_path):
    """
    File-backed database for tests that run units of work concurrently.

    NullPool gives every unit of work its own connection, so writers really
    contend for the SQLite lock.
    """
    engine = init_db(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    await create_all()

    yield engine

    await dispose_db()


@pytest.fixture
def make_uow(engine):
    """Factory for units of work bound to the test database."""
    def _make() -> UnitOfWork:
        return UnitOfWork(get_session_factory())
    return _make


@pytest.fixture
async def client(engine):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def headers():
    return {"X-Restaurant-ID": RESTAURANT_ID}


@pytest.fixture
def order_factory():
    return create_order
