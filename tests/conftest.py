"""
Shared test fixtures for LiveOne tests.

Environment variables are set to test values so Settings validate without
real services. Database tests run against a temporary SQLite file through
aiosqlite with the ORM schema created directly from the models. Redis cache
invalidation is replaced by an AsyncMock so no Redis server is needed.

CHANGELOG:
- 2026-10-14: Add seeded system fixtures
- 2026-10-12: Initial creation
"""

from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from liveone.config import get_settings
from liveone.db.models import Base, System, VendorCredentials
from liveone.db.session import create_engine, create_session_factory

API_TOKEN = "test-token-abc"
OWNER_ID = "owner-001"
CRON_SECRET = "cron-secret-xyz"


@pytest.fixture(autouse=True)
def _set_test_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Set environment variables for testing and reset cached Settings."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("API_TOKENS", f"{API_TOKEN}:{OWNER_ID}")
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("ENPHASE_API_KEY", "test-api-key")
    monkeypatch.setenv("ENPHASE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("ENPHASE_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("HEALTH_PATH", str(tmp_path / "health.json"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def mock_invalidate() -> Generator[AsyncMock, None, None]:
    """Replace Redis cache invalidation used by the ingestion service."""
    with patch(
        "liveone.services.ingestion.invalidate_system_cache", new=AsyncMock()
    ) as mock:
        yield mock


@pytest.fixture()
def mock_redis() -> AsyncMock:
    """Create a mock async Redis client.

    Returns:
        AsyncMock: A mock that behaves like a redis.asyncio.Redis client.
    """
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.delete = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture()
def mock_db_session() -> AsyncMock:
    """Create a mock async database session.

    Returns:
        AsyncMock: A mock that behaves like an SQLAlchemy AsyncSession.
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a fresh SQLite file with all tables created."""
    eng = create_engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture()
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


async def add_system(
    db: AsyncSession,
    vendor_type: str = "enphase",
    vendor_site_id: str = "123456",
    owner_id: str | None = OWNER_ID,
    status: str = "active",
    display_name: str = "Test System",
    location: dict | None = None,
    timezone_offset_min: int = 600,
    credentials: dict | None = None,
) -> System:
    """Insert a system (and optional credentials) and return it."""
    system = System(
        owner_id=owner_id,
        vendor_type=vendor_type,
        vendor_site_id=vendor_site_id,
        status=status,
        display_name=display_name,
        location=location,
        timezone_offset_min=timezone_offset_min,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )
    db.add(system)
    await db.commit()
    if credentials is not None:
        db.add(
            VendorCredentials(
                system_id=system.id,
                vendor_type=vendor_type,
                data=credentials,
                updated_at=datetime(2026, 1, 1, tzinfo=UTC),
            )
        )
        await db.commit()
    return system


def make_system(**overrides: object) -> System:
    """Build a transient System (not persisted) for pure-function tests."""
    defaults: dict[str, object] = {
        "id": 1,
        "owner_id": OWNER_ID,
        "vendor_type": "enphase",
        "vendor_site_id": "123456",
        "status": "active",
        "display_name": "Test System",
        "location": None,
        "timezone_offset_min": 600,
    }
    defaults.update(overrides)
    return System(**defaults)
