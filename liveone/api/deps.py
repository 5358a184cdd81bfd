"""
FastAPI dependency injection providers.

Provides database sessions and authentication dependencies for use with
FastAPI's Depends() mechanism. The auth objects themselves are built at
startup and stored on app.state.

CHANGELOG:
- 2026-10-13: Add owner and cron auth dependencies
- 2026-10-12: Initial creation
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from liveone.db.session import get_async_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Thin wrapper around get_async_session so tests can override one
    dependency for every route.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session

async def get_owner_id(request: Request) -> str:
    """Return the owner id of the request's API bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    return await request.app.state.auth.verify(request)

async def require_cron(request: Request) -> None:
    """Reject requests that do not carry the cron secret.

    Raises:
        HTTPException: 401 on a missing or wrong secret.
    """
    await request.app.state.cron_auth.verify(request)
