"""Database configuration and session management."""

from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from orchestra.config import settings


def _engine_options(database_url: str) -> dict[str, Any]:
    """Pool and server settings only apply to PostgreSQL (asyncpg)."""
    options: dict[str, Any] = {"echo": settings.DB_ECHO}
    if make_url(database_url).get_backend_name() == "postgresql":
        options.update(
            pool_size=settings.DB_POOL_SIZE,  # Connection pool size (default: 20)
            max_overflow=settings.DB_MAX_OVERFLOW,  # Extra connections allowed (default: 10)
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=3600,  # Recycle connections after 1 hour
            connect_args={
                "server_settings": {
                    "application_name": "orchestra_api",  # Identify app in database logs
                    "statement_timeout": "30000",  # 30 second query timeout
                },
            },
        )
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create database tables (schema migrations are managed outside this service)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
