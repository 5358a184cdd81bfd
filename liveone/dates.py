"""
Date and time helpers for systems that carry a fixed UTC offset.

Every system stores ``timezone_offset_min`` (minutes ahead of UTC, e.g. 600
for AEST). Day boundaries, local hours and the Enphase day ranges are all
derived from that offset rather than from a named timezone.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone


def offset_tz(offset_min: int) -> timezone:
    """Return a fixed-offset tzinfo for *offset_min* minutes ahead of UTC."""
    return timezone(timedelta(minutes=offset_min))


def ensure_utc(dt: datetime) -> datetime:
    """Return *dt* as an aware UTC datetime.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)``
    columns; values are always written in UTC, so naive means UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def local_now(offset_min: int, now: datetime | None = None) -> datetime:
    """Return the wall-clock time at *offset_min* for *now* (default: now)."""
    now = ensure_utc(now) if now is not None else utc_now()
    return now.astimezone(offset_tz(offset_min))


def today_in_timezone(offset_min: int, now: datetime | None = None) -> date:
    """Return today's calendar date at the given offset."""
    return local_now(offset_min, now).date()


def yesterday_in_timezone(offset_min: int, now: datetime | None = None) -> date:
    """Return yesterday's calendar date at the given offset."""
    return today_in_timezone(offset_min, now) - timedelta(days=1)


def calendar_date_to_unix_range(day: date, offset_min: int) -> tuple[int, int]:
    """Convert a local calendar date to ``(start, end)`` Unix seconds.

    ``start`` is local midnight of *day*; ``end`` is local midnight of the
    following day (not 23:59:59), matching Enphase's interval-end labelling
    where the 23:55-00:00 interval ends at the next midnight.

    Args:
        day: The local calendar date.
        offset_min: Minutes ahead of UTC.

    Returns:
        Tuple of ``(start_unix, end_unix)`` in seconds.
    """
    start = datetime(day.year, day.month, day.day, tzinfo=offset_tz(offset_min))
    end = start + timedelta(days=1)
    return int(start.timestamp()), int(end.timestamp())


def from_unix(ts: int | float) -> datetime:
    """Convert Unix seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=UTC)


def next_minute_boundary(now: datetime | None = None) -> datetime:
    """Return the next ``:00`` second strictly after *now*."""
    now = ensure_utc(now) if now is not None else utc_now()
    return now.replace(second=0, microsecond=0) + timedelta(minutes=1)
