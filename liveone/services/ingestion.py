"""
Idempotent storage of vendor telemetry.

Point-in-time readings are inserted with ON CONFLICT (system_id,
inverter_time) DO NOTHING; 5-minute intervals are upserted with ON
CONFLICT (system_id, interval_end) DO UPDATE so a later fetch of the same day
replaces partial values. Enphase supplies its own intervals; point-in-time
readings are rolled up into their 5-minute interval after each insert. The
insert construct is picked per dialect so the same code runs against
PostgreSQL (asyncpg) and SQLite (aiosqlite). The Redis latest-reading cache
for the system is invalidated after every write.

CHANGELOG:
- 2026-10-18: Roll readings up into 5-minute intervals
- 2026-10-13: Add upsert_intervals in batches of 300
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging
import math
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from liveone.cache.redis_client import invalidate_system_cache
from liveone.dates import ensure_utc, from_unix
from liveone.db.models import IntervalReading, Reading

logger = logging.getLogger(__name__)

INTERVAL_BATCH_SIZE = 300
INTERVAL_SECONDS = 300

_INTERVAL_UPDATE_COLUMNS = (
    "solar_w_avg",
    "solar_w_min",
    "solar_w_max",
    "solar_interval_wh",
    "sample_count",
    "created_at",
)


def _insert_for(db: AsyncSession):
    """Return the dialect-specific ``insert`` for the session's bind."""
    if db.bind.dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def store_reading(db: AsyncSession, reading: dict[str, Any]) -> int:
    """Insert one point-in-time reading, ignoring duplicates.

    Args:
        db: Async SQLAlchemy session.
        reading: Column values for a ``readings`` row.

    Returns:
        int: 1 if the row was inserted, 0 if it already existed.
    """
    insert = _insert_for(db)
    stmt = (
        insert(Reading)
        .values(**reading)
        .on_conflict_do_nothing(index_elements=["system_id", "inverter_time"])
    )
    result = await db.execute(stmt)
    await db.commit()

    inserted = max(result.rowcount or 0, 0)
    if inserted:
        await invalidate_system_cache(reading["system_id"])
    else:
        logger.debug(
            "Duplicate reading for system %s at %s ignored",
            reading["system_id"],
            reading["inverter_time"],
        )
    return inserted


async def upsert_intervals(
    db: AsyncSession,
    system_id: int,
    records: list[dict[str, Any]],
) -> tuple[int, int]:
    """Upsert interval rows in batches of INTERVAL_BATCH_SIZE.

    A failing batch is rolled back and counted as errors; later batches
    still run.

    Args:
        db: Async SQLAlchemy session.
        system_id: Owning system (used for cache invalidation and logs).
        records: Column values for ``interval_readings`` rows.

    Returns:
        tuple[int, int]: ``(upserted_count, error_count)``.
    """
    if not records:
        return 0, 0

    insert = _insert_for(db)
    upserted = 0
    errors = 0
    batches = (len(records) + INTERVAL_BATCH_SIZE - 1) // INTERVAL_BATCH_SIZE

    for idx in range(batches):
        batch = records[idx * INTERVAL_BATCH_SIZE : (idx + 1) * INTERVAL_BATCH_SIZE]
        stmt = insert(IntervalReading).values(batch)
        stmt = stmt.on_conflict_do_update(
            index_elements=["system_id", "interval_end"],
            set_={col: stmt.excluded[col] for col in _INTERVAL_UPDATE_COLUMNS},
        )
        try:
            await db.execute(stmt)
            await db.commit()
        except Exception:
            await db.rollback()
            errors += len(batch)
            logger.error(
                "Failed to upsert interval batch %d/%d for system %s",
                idx + 1,
                batches,
                system_id,
                exc_info=True,
            )
            continue
        upserted += len(batch)
        logger.debug(
            "Upserted interval batch %d/%d (%d records) for system %s",
            idx + 1,
            batches,
            len(batch),
            system_id,
        )

    if upserted:
        await invalidate_system_cache(system_id)
    return upserted, errors


def interval_end_for(reading_time: datetime) -> int:
    """Return the Unix end of the 5-minute interval containing *reading_time*.

    A reading exactly on a boundary belongs to the interval ending there.
    """
    ts = ensure_utc(reading_time).timestamp()
    return int(math.ceil(ts / INTERVAL_SECONDS) * INTERVAL_SECONDS)


async def aggregate_interval(
    db: AsyncSession, system_id: int, reading_time: datetime
) -> int:
    """Roll the readings of one 5-minute interval up into interval_readings.

    Solar power is summarised as rounded avg/min/max over the readings in
    ``(interval_end - 300, interval_end]``; ``sample_count`` counts every
    reading in the interval.

    Args:
        db: Async SQLAlchemy session.
        system_id: System whose readings are aggregated.
        reading_time: Time of the reading that was just stored.

    Returns:
        int: 1 if the interval row was written, 0 otherwise.
    """
    end = interval_end_for(reading_time)
    stmt = (
        select(Reading)
        .where(
            Reading.system_id == system_id,
            Reading.inverter_time > from_unix(end - INTERVAL_SECONDS),
            Reading.inverter_time <= from_unix(end),
        )
        .order_by(Reading.inverter_time)
    )
    readings = (await db.execute(stmt)).scalars().all()
    if not readings:
        return 0

    solar = [r.solar_w for r in readings if r.solar_w is not None]
    record = {
        "system_id": system_id,
        "interval_end": end,
        "solar_w_avg": round(sum(solar) / len(solar)) if solar else None,
        "solar_w_min": round(min(solar)) if solar else None,
        "solar_w_max": round(max(solar)) if solar else None,
        "solar_interval_wh": None,
        "sample_count": len(readings),
    }
    upserted, errors = await upsert_intervals(db, system_id, [record])
    if errors:
        logger.warning(
            "Failed to aggregate interval ending %s for system %s", end, system_id
        )
    else:
        logger.debug(
            "Aggregated %d readings into interval ending %s for system %s",
            len(readings),
            end,
            system_id,
        )
    return upserted
