"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engine: asyncpg for PostgreSQL in production,
aiosqlite for local development and tests. Provides module-level engine and
session factory singletons, plus an async generator for FastAPI dependency
injection.

CHANGELOG:
- 2026-10-18: init_engine returns the session factory
- 2026-10-13: Read DATABASE_URL through Settings
- 2026-10-12: Initial creation
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from liveone.config import get_settings

# Module-level singletons, initialized lazily via init_engine().
async_engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine from configuration.

    Args:
        database_url: Optional URL override. Defaults to Settings.database_url.

    Returns:
        AsyncEngine: Configured async engine.
    """
    return create_async_engine(database_url or get_settings().database_url, echo=False)


def create_session_factory(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: Optional async engine. If not provided, creates one from config.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    if engine is None:
        engine = create_engine()
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def init_engine() -> async_sessionmaker[AsyncSession]:
    """Initialize the module-level async engine and session factory.

    Call this at application or daemon startup. Safe to call multiple times;
    subsequent calls return the existing factory.

    Returns:
        async_sessionmaker: The module-level session factory.
    """
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is None or async_session_factory is None:
        async_engine = create_engine()
        async_session_factory = create_session_factory(async_engine)
    return async_session_factory


async def dispose_engine() -> None:
    """Dispose the module-level engine and reset the singletons."""
    global async_engine, async_session_factory  # noqa: PLW0603
    if async_engine is not None:
        await async_engine.dispose()
    async_engine = None
    async_session_factory = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for FastAPI dependency injection.

    Initializes the engine on first call if not already done.
    The session is automatically closed after the request completes.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    factory = init_engine()
    async with factory() as session:
        yield session
