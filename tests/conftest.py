"""
This file contains shared fixtures for the test suite.
"""

import os

import pytest
import pytest_asyncio

# Set env vars before any application modules are imported
os.environ.setdefault("DB_DATABASE", ":memory:")
os.environ.setdefault("PYTHONIOENCODING", "utf-8")

from dbc import Connection, Dbc, SQLitePool  # noqa: E402
from tests.fakes import FakePool, FakeSession  # noqa: E402


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_pool(fake_session):
    return FakePool(fake_session)


@pytest.fixture
def fake_conn(fake_session, fake_pool):
    """Connection already checked out from the fake pool."""
    fake_pool.checked_out += 1
    return Connection(fake_session, fake_pool)


@pytest.fixture
def fake_dbc(fake_pool):
    return Dbc(fake_pool)


USERS_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    ctime DATETIME DEFAULT CURRENT_TIMESTAMP,
    mtime DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


@pytest_asyncio.fixture
async def sqlite_pool(tmp_path):
    """File-backed SQLitePool with an empty ``users`` table."""
    pool = SQLitePool(str(tmp_path / "test.db"), connection_limit=3, queue_limit=2, acquire_timeout=1.0)
    session = await pool.acquire()
    await session.execute(USERS_SCHEMA)
    await pool.release(session)
    yield pool
    await pool.close()


@pytest_asyncio.fixture
async def sqlite_dbc(sqlite_pool):
    dbc = Dbc(sqlite_pool)
    yield dbc
    await dbc.close()
