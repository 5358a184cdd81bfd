"""
Vendor adapter for Enphase systems.

Enphase is polled on the dawn/dusk-aware schedule. Between 01:00 and 05:00
local a poll only tops up yesterday when its evening data is incomplete;
otherwise a poll stores today's intervals so far. Older incomplete days
are only fetched by an on-demand backfill.

CHANGELOG:
- 2026-10-18: Add on-demand history backfill
- 2026-10-14: Support fetching an explicit day
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from liveone.config import get_settings
from liveone.dates import local_now
from liveone.vendors.base import (
    PollingResult,
    ScheduleDecision,
    VendorAdapter,
    VendorError,
)
from liveone.vendors.enphase.client import EnphaseClient
from liveone.vendors.enphase.history import (
    DayFetchResult,
    backfill_history,
    check_and_fetch_yesterday_if_needed,
    fetch_enphase_day,
)
from liveone.vendors.enphase.schedule import (
    YESTERDAY_CHECK_HOURS,
    check_polling_schedule,
    next_poll_time,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from liveone.db.models import PollingStatus, System

logger = logging.getLogger(__name__)


class EnphaseAdapter(VendorAdapter):
    """Adapter for Enphase microinverter systems.

    Args:
        client: Optional Enphase client; built from Settings when omitted.
    """

    vendor_type = "enphase"
    display_name = "Enphase"
    data_source = "poll"

    def __init__(self, client: EnphaseClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> EnphaseClient:
        if self._client is None:
            self._client = EnphaseClient.from_settings(get_settings())
        return self._client

    async def should_poll(
        self,
        system: System,
        status: PollingStatus | None,
        now: datetime,
        force: bool = False,
    ) -> ScheduleDecision:
        if force:
            return ScheduleDecision(True, "Forced")
        last_poll = status.last_poll_time if status is not None else None
        return check_polling_schedule(system, last_poll, now)

    async def poll(
        self,
        db: AsyncSession,
        system: System,
        now: datetime,
        force: bool = False,
        day: date | None = None,
    ) -> PollingResult:
        """Fetch and store Enphase intervals for *system*.

        Args:
            db: Active database session.
            system: The Enphase system.
            now: Reference time.
            force: Unused here; the schedule is applied by should_poll.
            day: Fetch this local date instead of the scheduled target.
        """
        local = local_now(system.timezone_offset_min, now)
        try:
            if day is not None:
                result = await fetch_enphase_day(db, system, day, self.client, now=now)
            elif local.hour in YESTERDAY_CHECK_HOURS:
                result = await check_and_fetch_yesterday_if_needed(
                    db, system, self.client, now=now
                )
            else:
                result = await fetch_enphase_day(db, system, None, self.client, now=now)
        except VendorError as exc:
            logger.warning("Enphase poll failed for system %s: %s", system.id, exc)
            return self.error(exc)

        if result.error_count and not result.upserted_count:
            return self.error(f"Failed to store {result.error_count} intervals")
        if not result.fetched:
            logger.info(
                "Enphase system %s: %s, nothing fetched", system.id, result.reason
            )
        return self.polled(result.upserted_count, next_poll_time(system, now))

    async def backfill(
        self,
        db: AsyncSession,
        system: System,
        days: int,
        now: datetime | None = None,
        dry_run: bool = False,
    ) -> list[DayFetchResult]:
        """Fetch incomplete days for *system*, walking back from yesterday.

        Raises:
            VendorError: Token refresh or an Enphase request failed.
        """
        return await backfill_history(
            db, system, self.client, days, now=now, dry_run=dry_run
        )
