"""
Enphase day fetches, completeness checks and incremental backfill.

Enphase labels each 5-minute interval by its END time, so a local day runs
from 00:05 to 00:00 of the next day (288 intervals). Historical days are
requested with ``start_at`` at local midnight and ``granularity=day`` and
filtered to ``start <= end_at <= next midnight``; today is requested without
parameters and stored as returned.

A day is refetched only when its stored data is incomplete: the 01:00-05:00
check looks at yesterday's evening (18:00-23:55, 72 intervals) and the
backfill looks at the whole day. Both require at least 80% coverage.

CHANGELOG:
- 2026-10-14: Add backfill_history
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from liveone.dates import (
    calendar_date_to_unix_range,
    ensure_utc,
    today_in_timezone,
    utc_now,
    yesterday_in_timezone,
)
from liveone.db.models import IntervalReading
from liveone.services.ingestion import upsert_intervals
from liveone.vendors.enphase.auth import get_valid_access_token

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from liveone.db.models import System
    from liveone.vendors.enphase.client import EnphaseClient

logger = logging.getLogger(__name__)

INTERVAL_SECONDS = 300
INTERVALS_PER_DAY = 288
EVENING_EXPECTED_INTERVALS = 72
COMPLETE_PERCENT = 80


@dataclass(frozen=True)
class DayFetchResult:
    """Outcome of fetching one day of Enphase intervals.

    Attributes:
        day: Local calendar date that was requested.
        fetched: False when the fetch was skipped because data was complete.
        interval_count: Intervals kept after range filtering.
        upserted_count: Rows written.
        error_count: Rows in failed batches.
        dry_run: True when nothing was written on purpose.
        reason: Why the fetch was skipped, if it was.
    """

    day: date
    fetched: bool = True
    interval_count: int = 0
    upserted_count: int = 0
    error_count: int = 0
    dry_run: bool = False
    reason: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def intervals_to_records(
    system_id: int,
    intervals: list[dict[str, Any]],
    start_unix: int | None = None,
    end_unix: int | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Map Enphase intervals to ``interval_readings`` rows.

    Intervals are kept when ``start_unix <= end_at <= end_unix`` (either
    bound may be omitted). The interval ending at next midnight belongs to
    the requested day.
    """
    created_at = ensure_utc(now) if now is not None else utc_now()
    records = []
    for interval in intervals:
        end_at = int(interval["end_at"])
        if start_unix is not None and end_at < start_unix:
            continue
        if end_unix is not None and end_at > end_unix:
            continue
        powr = interval.get("powr")
        records.append(
            {
                "system_id": system_id,
                "interval_end": end_at,
                "solar_w_avg": powr,
                "solar_w_min": powr,
                "solar_w_max": powr,
                "solar_interval_wh": interval.get("enwh"),
                "sample_count": 1,
                "created_at": created_at,
            }
        )
    return records


async def _count_intervals(
    db: AsyncSession, system_id: int, first_end: int, last_end: int
) -> int:
    stmt = select(func.count()).where(
        IntervalReading.system_id == system_id,
        IntervalReading.interval_end >= first_end,
        IntervalReading.interval_end <= last_end,
    )
    return int((await db.execute(stmt)).scalar_one())


def _percent(count: int, expected: int) -> int:
    return round(count / expected * 100)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def fetch_enphase_day(
    db: AsyncSession,
    system: System,
    day: date | None,
    client: EnphaseClient,
    dry_run: bool = False,
    now: datetime | None = None,
) -> DayFetchResult:
    """Fetch one local day of intervals and upsert them.

    Args:
        db: Active database session.
        system: The Enphase system.
        day: Local date to fetch; None means today.
        client: Enphase API client.
        dry_run: Fetch and map, but write nothing.
        now: Reference time (default: now).

    Returns:
        DayFetchResult with counts.

    Raises:
        CredentialsNotFoundError, TokenRefreshError, VendorApiError: From
            token handling or the API call.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    offset = system.timezone_offset_min
    today = today_in_timezone(offset, now)
    day = day or today
    is_today = day == today
    label = "today" if is_today else day.isoformat()

    access_token = await get_valid_access_token(db, system, client, now)

    if is_today:
        logger.info("Fetching Enphase data for today for system %s", system.id)
        data = await client.get_production_micro(system.vendor_site_id, access_token)
        start_unix = end_unix = None
    else:
        start_unix, end_unix = calendar_date_to_unix_range(day, offset)
        logger.info(
            "Fetching Enphase data for %s (%d..%d) for system %s",
            label,
            start_unix,
            end_unix,
            system.id,
        )
        data = await client.get_production_micro(
            system.vendor_site_id, access_token, start_unix, end_unix
        )

    intervals = (data or {}).get("intervals") or []
    if not intervals:
        logger.info("No Enphase intervals returned for %s (system %s)", label, system.id)
        return DayFetchResult(day=day, dry_run=dry_run)

    records = intervals_to_records(system.id, intervals, start_unix, end_unix, now)
    if dry_run:
        logger.info(
            "Dry run: %d Enphase intervals for %s not written", len(records), label
        )
        return DayFetchResult(day=day, interval_count=len(records), dry_run=True)

    upserted, errors = await upsert_intervals(db, system.id, records)
    logger.info(
        "Upserted %d/%d Enphase intervals for %s (system %s, %d errors)",
        upserted,
        len(records),
        label,
        system.id,
        errors,
    )
    return DayFetchResult(
        day=day,
        interval_count=len(records),
        upserted_count=upserted,
        error_count=errors,
    )


async def has_complete_evening_data(
    db: AsyncSession, system_id: int, day: date, offset_min: int
) -> bool:
    """Return True when 18:00-23:55 of *day* is at least 80% stored.

    Interval ends from 18:00 to 23:55 inclusive are counted against the 72
    expected intervals.
    """
    day_start, day_end = calendar_date_to_unix_range(day, offset_min)
    count = await _count_intervals(
        db, system_id, day_start + 18 * 3600, day_end - INTERVAL_SECONDS
    )
    pct = _percent(count, EVENING_EXPECTED_INTERVALS)
    logger.info(
        "Evening data for system %s on %s is %d%% complete (%d/%d intervals)",
        system_id,
        day,
        pct,
        count,
        EVENING_EXPECTED_INTERVALS,
    )
    return pct >= COMPLETE_PERCENT


async def has_complete_day_data(
    db: AsyncSession, system_id: int, day: date, offset_min: int
) -> bool:
    """Return True when at least 80% of the day's 288 intervals are stored."""
    day_start, day_end = calendar_date_to_unix_range(day, offset_min)
    count = await _count_intervals(
        db, system_id, day_start + INTERVAL_SECONDS, day_end
    )
    return _percent(count, INTERVALS_PER_DAY) >= COMPLETE_PERCENT


async def check_and_fetch_yesterday_if_needed(
    db: AsyncSession,
    system: System,
    client: EnphaseClient,
    dry_run: bool = False,
    now: datetime | None = None,
) -> DayFetchResult:
    """Refetch yesterday's full day only when its evening data is incomplete."""
    yesterday = yesterday_in_timezone(system.timezone_offset_min, now)
    if await has_complete_evening_data(
        db, system.id, yesterday, system.timezone_offset_min
    ):
        logger.info(
            "Yesterday's data for system %s is complete, skipping fetch", system.id
        )
        return DayFetchResult(
            day=yesterday, fetched=False, reason="Data already complete"
        )

    logger.info("Yesterday's data for system %s is incomplete, refetching", system.id)
    return await fetch_enphase_day(db, system, yesterday, client, dry_run, now)


async def backfill_history(
    db: AsyncSession,
    system: System,
    client: EnphaseClient,
    days: int,
    now: datetime | None = None,
    dry_run: bool = False,
) -> list[DayFetchResult]:
    """Fetch incomplete days walking back from yesterday.

    Args:
        db: Active database session.
        system: The Enphase system.
        client: Enphase API client.
        days: Number of days to examine, starting with yesterday.
        now: Reference time (default: now).
        dry_run: Fetch and map, but write nothing.

    Returns:
        One DayFetchResult per examined day, newest first.
    """
    offset = system.timezone_offset_min
    yesterday = yesterday_in_timezone(offset, now)
    results: list[DayFetchResult] = []

    for back in range(days):
        day = yesterday - timedelta(days=back)
        if await has_complete_day_data(db, system.id, day, offset):
            results.append(
                DayFetchResult(day=day, fetched=False, reason="Data already complete")
            )
            continue
        results.append(await fetch_enphase_day(db, system, day, client, dry_run, now))

    fetched = sum(1 for r in results if r.fetched)
    logger.info(
        "Backfill for system %s examined %d days, fetched %d", system.id, days, fetched
    )
    return results
