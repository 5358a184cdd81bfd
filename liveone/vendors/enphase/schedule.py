"""
Dawn/dusk-aware polling schedule for Enphase systems.

The Enphase API is rate limited and only publishes 5-minute production
intervals, so systems are polled on the local ``:00`` and ``:30`` between
dawn + 30 min and dusk + 30 min, plus once an hour from 01:00 to 05:00 local
to top up yesterday's data if it is incomplete.

Rules, applied in order (all times local to the system's offset):
1. Never polled: poll.
2. Polled less than 25 minutes ago: skip.
3. Inside the active window [dawn + 30, dusk + 30]: poll at :00/:30 only.
4. Hours 01-05 at :00: poll (yesterday check).
5. Otherwise skip.

Dawn and dusk are civil twilight from astral. When the sun never reaches
civil twilight (polar day or night) the active window is 05:00-20:00.

CHANGELOG:
- 2026-10-18: Compute dawn and dusk without requiring a sunrise
- 2026-10-14: Add next_poll_time
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from astral import Observer
from astral.sun import dawn, dusk

from liveone.dates import ensure_utc, local_now, offset_tz, utc_now
from liveone.vendors.base import ScheduleDecision

if TYPE_CHECKING:
    from liveone.db.models import System

logger = logging.getLogger(__name__)

MIN_POLL_GAP_MINUTES = 25
WINDOW_PADDING_MINUTES = 30
YESTERDAY_CHECK_HOURS = range(1, 6)
FALLBACK_WINDOW = (5 * 60, 20 * 60)
_SLOT_MINUTES = (0, 30)


def _minutes_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def _fmt_minutes(minutes: int) -> str:
    suffix = " (+1d)" if minutes >= 24 * 60 else ""
    return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}{suffix}"


def _sun_times(
    lat: float, lon: float, day: date, tz: timezone
) -> tuple[datetime, datetime]:
    """Return civil (dawn, dusk) for *day*, localised to *tz*.

    Computed independently of sunrise and sunset, which do not exist in
    polar night even though civil twilight does.

    Raises:
        ValueError: The sun never reaches civil twilight on *day*.
    """
    observer = Observer(latitude=lat, longitude=lon)
    return dawn(observer, date=day, tzinfo=tz), dusk(observer, date=day, tzinfo=tz)


def active_window(system: System, day: date) -> tuple[int, int]:
    """Return the active polling window for *day* in local minutes.

    Args:
        system: The Enphase system (location and offset are read from it).
        day: Local calendar date.

    Returns:
        ``(start, end)`` minutes since local midnight, inclusive. ``end``
        may exceed 1440 when dusk + 30 falls after midnight.
    """
    lat, lon = system.coordinates()
    try:
        dawn_at, dusk_at = _sun_times(
            lat, lon, day, offset_tz(system.timezone_offset_min)
        )
    except ValueError:
        logger.debug(
            "No civil twilight at (%s, %s) on %s, using fallback window",
            lat,
            lon,
            day,
        )
        return FALLBACK_WINDOW

    dawn_min = _minutes_of_day(dawn_at)
    dusk_min = _minutes_of_day(dusk_at)
    if dusk_min < dawn_min:
        dusk_min += 24 * 60
    return dawn_min + WINDOW_PADDING_MINUTES, dusk_min + WINDOW_PADDING_MINUTES


def _is_due_slot(local: datetime, window: tuple[int, int]) -> bool:
    """True when *local* is a scheduled poll minute (ignoring the poll gap)."""
    minutes = _minutes_of_day(local)
    start, end = window
    if start <= minutes <= end:
        return local.minute in _SLOT_MINUTES
    return local.hour in YESTERDAY_CHECK_HOURS and local.minute == 0


def next_poll_time(system: System, now: datetime | None = None) -> datetime | None:
    """Return the next scheduled poll slot strictly after *now*.

    Scans local ``:00``/``:30`` slots over the next 24 hours and returns
    the first one inside the active window or the 01:00-05:00 check hours.

    Args:
        system: The Enphase system.
        now: Reference time (default: now).

    Returns:
        The slot as an aware UTC datetime, or None if none is found.
    """
    local = local_now(system.timezone_offset_min, now)
    slot = local.replace(second=0, microsecond=0)
    slot += timedelta(minutes=30 - slot.minute % 30)
    windows: dict[date, tuple[int, int]] = {}

    for _ in range(48):
        day = slot.date()
        if day not in windows:
            windows[day] = active_window(system, day)
        if _is_due_slot(slot, windows[day]):
            return ensure_utc(slot)
        slot += timedelta(minutes=30)
    return None


def check_polling_schedule(
    system: System,
    last_poll_time: datetime | None,
    now: datetime | None = None,
) -> ScheduleDecision:
    """Decide whether an Enphase system should be polled at *now*.

    Args:
        system: The Enphase system.
        last_poll_time: When the system was last polled, or None.
        now: Reference time (default: now).

    Returns:
        ScheduleDecision with the verdict, a reason and the next slot.
    """
    now = ensure_utc(now) if now is not None else utc_now()

    if last_poll_time is None:
        return ScheduleDecision(True, "Never polled")

    minutes_since = int((now - ensure_utc(last_poll_time)).total_seconds() // 60)
    if minutes_since < MIN_POLL_GAP_MINUTES:
        return ScheduleDecision(
            False,
            f"Polled {minutes_since} minutes ago "
            f"(minimum {MIN_POLL_GAP_MINUTES} min interval)",
            next_poll_time(system, now),
        )

    local = local_now(system.timezone_offset_min, now)
    minutes = _minutes_of_day(local)
    start, end = active_window(system, local.date())

    if start <= minutes <= end:
        if local.minute in _SLOT_MINUTES:
            return ScheduleDecision(
                True,
                f"Active solar hours ({_fmt_minutes(start)}-{_fmt_minutes(end)})",
            )
        return ScheduleDecision(
            False,
            f"Active hours but not at :00 or :30 (current :{local.minute:02d})",
            next_poll_time(system, now),
        )

    if local.hour in YESTERDAY_CHECK_HOURS and local.minute == 0:
        return ScheduleDecision(True, f"{local.hour:02d}:00 check of yesterday's data")

    if minutes < start:
        reason = (
            f"{start - minutes} minutes before dawn+30min "
            f"(window opens {_fmt_minutes(start)})"
        )
    else:
        reason = (
            f"{minutes - end} minutes after dusk+30min "
            f"(window closed {_fmt_minutes(end)})"
        )
    return ScheduleDecision(False, reason, next_poll_time(system, now))
