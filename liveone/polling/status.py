"""
Per-system polling health counters.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from liveone.db.models import PollingStatus

logger = logging.getLogger(__name__)

_MAX_ERROR_LENGTH = 1000


async def get_status(db: AsyncSession, system_id: int) -> PollingStatus | None:
    """Return the polling_status row for a system, or None."""
    return await db.get(PollingStatus, system_id)


async def _get_or_create(db: AsyncSession, system_id: int) -> PollingStatus:
    status = await db.get(PollingStatus, system_id)
    if status is None:
        status = PollingStatus(
            system_id=system_id,
            consecutive_errors=0,
            total_polls=0,
            successful_polls=0,
        )
        db.add(status)
    return status


async def record_success(db: AsyncSession, system_id: int, now: datetime) -> None:
    """Record a successful poll: reset the error streak and commit."""
    status = await _get_or_create(db, system_id)
    status.last_poll_time = now
    status.last_success_time = now
    status.last_error = None
    status.consecutive_errors = 0
    status.total_polls = (status.total_polls or 0) + 1
    status.successful_polls = (status.successful_polls or 0) + 1
    status.updated_at = now
    await db.commit()


async def record_error(
    db: AsyncSession, system_id: int, error: str, now: datetime
) -> None:
    """Record a failed poll: extend the error streak and commit."""
    status = await _get_or_create(db, system_id)
    status.last_poll_time = now
    status.last_error_time = now
    status.last_error = error[:_MAX_ERROR_LENGTH]
    status.consecutive_errors = (status.consecutive_errors or 0) + 1
    status.total_polls = (status.total_polls or 0) + 1
    status.updated_at = now
    await db.commit()
    if status.consecutive_errors in (1, 5, 10) or status.consecutive_errors % 60 == 0:
        logger.warning(
            "System %s has failed %d polls in a row: %s",
            system_id,
            status.consecutive_errors,
            error,
        )
