"""
Redis client for cache operations.

Provides helper functions for creating Redis connections and invalidating
system-specific cache entries. Cache invalidation is best-effort: connection
failures are logged but do not propagate exceptions.

CHANGELOG:
- 2026-10-13: Key latest readings by system id
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging

import redis.asyncio as redis

from liveone.config import get_settings

logger = logging.getLogger(__name__)


def latest_cache_key(system_id: int) -> str:
    """Return the cache key holding a system's latest reading."""
    return f"latest:{system_id}"


async def get_redis() -> redis.Redis:
    """Create and return an async Redis client from Settings.redis_url.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(get_settings().redis_url)


async def invalidate_system_cache(system_id: int) -> None:
    """Delete the latest-reading cache key for a system.

    Best-effort operation: if Redis is unavailable or the delete fails,
    the error is logged but not raised, so polling is never blocked by
    cache infrastructure issues.

    Args:
        system_id: The system whose cache should be cleared.
    """
    try:
        client = await get_redis()
        try:
            await client.delete(latest_cache_key(system_id))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for system %s",
            system_id,
            exc_info=True,
        )
