"""Pytest configuration and shared fixtures."""

import base64
import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault(
    "ACCESS_TOKEN_SIGNING_KEY",
    base64.b64encode(b"orchestra-test-signing-key-" * 4).decode(),
)

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orchestra.core.database import Base, get_db
from orchestra.crud.user import user_crud
from orchestra.main import app
from orchestra.models.user import User
from orchestra.services.accesstoken.jwt import JwtService

# Use StaticPool so in-memory SQLite shares one connection
# (NullPool creates a new connection per call, losing all tables each time)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SIGNING_KEY = b"unit-test-signing-key-for-hs512-" * 2

TEST_PASSWORD = "correct horse battery staple"


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys for SQLite."""
    if hasattr(dbapi_conn, "execute"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine with all tables."""
    from orchestra import models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> async_sessionmaker:
    """Session factory bound to the test engine (for tests needing several sessions)."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest_asyncio.fixture(scope="function")
async def async_client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Async client talking to the app in-process. Redirects are not followed."""
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def signing_key() -> bytes:
    return TEST_SIGNING_KEY


@pytest.fixture
def jwt_service(signing_key: bytes) -> JwtService:
    """Token service with a fixed key, independent of settings."""
    return JwtService(signing_key=signing_key, validity_seconds=300)


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_password: str) -> User:
    """Enabled user with a local password."""
    return await user_crud.create(
        db_session,
        email="test@example.com",
        full_name="Test User",
        image_url="https://example.com/test.png",
        password=test_password,
    )
