"""
Pocket Diary Backend: Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the test suite.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: AsyncMock session, for call-order assertions
    ├── db_engine / db_session: SQLite (aiosqlite) database with the schema
    ├── registered_user: a user created through AuthService
    └── test_client: httpx AsyncClient over ASGITransport, sessions from db_engine
"""

import os
import tempfile

# Settings are read at import time; these must be set before any
# pocketdiary import.
_TEST_DIR = tempfile.mkdtemp(prefix="pocketdiary_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["ENCRYPT_KEY"] = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
os.environ["GROQ_API_KEY"] = "test-key-not-real"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "100000"
os.environ["KEEPALIVE_INTERVAL"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocketdiary.database import Base, build_engine, get_db_session
import pocketdiary.models  # noqa: F401


TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "pw123"
TEST_NAME = "Ann"
TEST_THEME = 1


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.assert_not_awaited()
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """A fresh SQLite database file with foreign keys on and the schema created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """One session on the test database; changes are flushed, never committed."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def registered_user(db_session):
    """Registers TEST_EMAIL and returns its per-user key."""
    from pocketdiary.services.auth_service import auth_service

    return await auth_service.register(
        db_session, TEST_EMAIL, TEST_PASSWORD, TEST_NAME, TEST_THEME
    )


@pytest_asyncio.fixture
async def test_client(db_engine, monkeypatch):
    """
    HTTPX AsyncClient against a fresh app.

    get_db_session is overridden to open sessions on the test database with
    the same commit/rollback behavior as the real dependency. The module
    engine used by /health is swapped for the test engine too.

    Usage:
        response = await test_client.post("/api/users/login", json={...})
    """
    from pocketdiary.main import create_app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr("pocketdiary.database.engine", db_engine)
    app = create_app()
    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
