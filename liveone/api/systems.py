"""
Per-system read endpoints: latest reading and polling status.

GET /v1/systems/{system_id}/latest returns the newest point-in-time reading,
or the newest 5-minute interval for systems that only report intervals.
Results are cached in Redis under ``latest:{system_id}`` for CACHE_TTL_S
seconds; Redis failures fall back to the database.

GET /v1/systems/{system_id}/status returns the polling health counters and,
for Enphase systems, the next scheduled poll.

Both require an API bearer token whose owner owns the system.

CHANGELOG:
- 2026-10-14: Add status endpoint
- 2026-10-13: Initial creation

TODO:
- None
"""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liveone.api.deps import get_db, get_owner_id
from liveone.cache.redis_client import get_redis, latest_cache_key
from liveone.dates import ensure_utc, from_unix
from liveone.db.models import IntervalReading, Reading, System
from liveone.polling.status import get_status
from liveone.vendors.enphase.schedule import next_poll_time

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/systems", tags=["systems"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _iso(value) -> str | None:
    return ensure_utc(value).isoformat() if value is not None else None


def _reading_to_dict(reading: Reading) -> dict[str, Any]:
    """Serialise a Reading to a JSON-compatible dict."""
    return {
        "source": "readings",
        "system_id": reading.system_id,
        "timestamp": _iso(reading.inverter_time),
        "received_time": _iso(reading.received_time),
        "delay_seconds": reading.delay_seconds,
        "solar_w": reading.solar_w,
        "solar_local_w": reading.solar_local_w,
        "solar_remote_w": reading.solar_remote_w,
        "load_w": reading.load_w,
        "battery_w": reading.battery_w,
        "grid_w": reading.grid_w,
        "battery_soc": reading.battery_soc,
        "fault_code": reading.fault_code,
        "fault_timestamp": reading.fault_timestamp,
        "generator_status": reading.generator_status,
        "solar_kwh_total": reading.solar_kwh_total,
        "load_kwh_total": reading.load_kwh_total,
        "battery_in_kwh_total": reading.battery_in_kwh_total,
        "battery_out_kwh_total": reading.battery_out_kwh_total,
        "grid_in_kwh_total": reading.grid_in_kwh_total,
        "grid_out_kwh_total": reading.grid_out_kwh_total,
    }


def _interval_to_dict(interval: IntervalReading) -> dict[str, Any]:
    """Serialise an IntervalReading to a JSON-compatible dict."""
    return {
        "source": "intervals",
        "system_id": interval.system_id,
        "timestamp": from_unix(interval.interval_end).isoformat(),
        "interval_end": interval.interval_end,
        "solar_w": interval.solar_w_avg,
        "solar_w_min": interval.solar_w_min,
        "solar_w_max": interval.solar_w_max,
        "solar_interval_wh": interval.solar_interval_wh,
        "sample_count": interval.sample_count,
    }


async def _owned_system(db: AsyncSession, system_id: int, owner_id: str) -> System:
    """Load a system and check the caller owns it.

    Raises:
        HTTPException: 404 if the system does not exist, 403 if not owned.
    """
    system = await db.get(System, system_id)
    if system is None:
        raise HTTPException(status_code=404, detail=f"System {system_id} not found.")
    if system.owner_id != owner_id:
        raise HTTPException(
            status_code=403,
            detail="System does not belong to the authenticated owner.",
        )
    return system


async def _cache_get(key: str) -> dict | None:
    try:
        redis_client = await get_redis()
        try:
            cached = await redis_client.get(key)
        finally:
            await redis_client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB", key, exc_info=True
        )
        return None
    return json.loads(cached) if cached is not None else None


async def _cache_set(key: str, value: dict, ttl: int) -> None:
    try:
        redis_client = await get_redis()
        try:
            await redis_client.set(key, json.dumps(value), ex=ttl)
        finally:
            await redis_client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/{system_id}/latest")
async def latest(
    request: Request,
    system_id: int,
    owner_id: Annotated[str, Depends(get_owner_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Return the latest reading for a system.

    Raises:
        HTTPException: 403 if the system is not owned by the caller.
        HTTPException: 404 if the system or its data does not exist.
    """
    await _owned_system(db, system_id, owner_id)

    cache_key = latest_cache_key(system_id)
    cached = await _cache_get(cache_key)
    if cached is not None:
        return cached

    stmt = (
        select(Reading)
        .where(Reading.system_id == system_id)
        .order_by(Reading.inverter_time.desc())
        .limit(1)
    )
    reading = (await db.execute(stmt)).scalar_one_or_none()
    if reading is not None:
        payload = _reading_to_dict(reading)
    else:
        stmt = (
            select(IntervalReading)
            .where(IntervalReading.system_id == system_id)
            .order_by(IntervalReading.interval_end.desc())
            .limit(1)
        )
        interval = (await db.execute(stmt)).scalar_one_or_none()
        if interval is None:
            raise HTTPException(
                status_code=404,
                detail=f"No data found for system {system_id}.",
            )
        payload = _interval_to_dict(interval)

    await _cache_set(cache_key, payload, request.app.state.settings.cache_ttl_s)
    return payload


@router.get("/{system_id}/status")
async def status(
    system_id: int,
    owner_id: Annotated[str, Depends(get_owner_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Return polling health for a system.

    Raises:
        HTTPException: 403 if the system is not owned by the caller.
        HTTPException: 404 if the system does not exist.
    """
    system = await _owned_system(db, system_id, owner_id)
    row = await get_status(db, system_id)

    payload: dict[str, Any] = {
        "system_id": system.id,
        "display_name": system.display_name,
        "vendor_type": system.vendor_type,
        "status": system.status,
        "last_poll_time": _iso(row.last_poll_time) if row else None,
        "last_success_time": _iso(row.last_success_time) if row else None,
        "last_error_time": _iso(row.last_error_time) if row else None,
        "last_error": row.last_error if row else None,
        "consecutive_errors": row.consecutive_errors if row else 0,
        "total_polls": row.total_polls if row else 0,
        "successful_polls": row.successful_polls if row else 0,
        "next_poll": None,
    }
    if system.vendor_type.lower() == "enphase":
        payload["next_poll"] = _iso(next_poll_time(system))
    return payload
