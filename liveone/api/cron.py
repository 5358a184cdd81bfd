"""
Cron endpoints for externally scheduled polling passes and history backfill.

A scheduler or an operator with curl calls these with
``Authorization: Bearer <CRON_SECRET>``. POST /v1/cron/poll is called once a
minute and runs the same polling pass as the daemon, returning its summary.

Poll query parameters:
- force: Poll every selected system regardless of its schedule.
- system_id: Only poll this system.
- date: Fetch this local date (YYYY-MM-DD) for Enphase systems.

POST /v1/cron/backfill fetches incomplete days of Enphase history for one
system, walking back from yesterday (system_id, days, dry_run).

CHANGELOG:
- 2026-10-18: Add Enphase backfill endpoint
- 2026-10-14: Add date parameter for Enphase day refetches
- 2026-10-13: Initial creation

TODO:
- None
"""

import datetime
import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from liveone.api.deps import get_db, require_cron
from liveone.db.models import System
from liveone.polling.service import poll_all_systems
from liveone.vendors.base import VendorError
from liveone.vendors.enphase.adapter import EnphaseAdapter
from liveone.vendors.registry import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cron", tags=["cron"])


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SystemPollOut(BaseModel):
    """Outcome of polling one system."""

    system_id: int
    display_name: str
    vendor_type: str
    action: str
    records_processed: int
    reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    next_poll: datetime.datetime | None = None
    duration_ms: int


class PollResponse(BaseModel):
    """Summary of a polling pass."""

    success: bool
    timestamp: datetime.datetime
    duration_ms: int
    polled: int
    skipped: int
    errors: int
    results: list[SystemPollOut]


class BackfillDayOut(BaseModel):
    """Outcome of one backfilled day."""

    day: datetime.date
    fetched: bool
    interval_count: int
    upserted_count: int
    error_count: int
    dry_run: bool
    reason: str | None = None


class BackfillResponse(BaseModel):
    """Summary of a history backfill."""

    system_id: int
    days: int
    fetched: int
    upserted: int
    results: list[BackfillDayOut]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post(
    "/poll",
    response_model=PollResponse,
    dependencies=[Depends(require_cron)],
)
async def cron_poll(
    db: Annotated[AsyncSession, Depends(get_db)],
    force: Annotated[bool, Query()] = False,
    system_id: Annotated[int | None, Query()] = None,
    day: Annotated[datetime.date | None, Query(alias="date")] = None,
) -> PollResponse:
    """Run one polling pass and return its summary.

    Args:
        db: Async database session.
        force: Ignore adapter schedules.
        system_id: Restrict the pass to one system.
        day: Explicit local date for Enphase fetches.

    Returns:
        PollResponse: Counts and per-system results.
    """
    started = datetime.datetime.now(tz=datetime.UTC)
    logger.info(
        "Cron poll triggered (force=%s, system_id=%s, date=%s)", force, system_id, day
    )
    summary = await poll_all_systems(
        db, started, force=force, system_id=system_id, day=day
    )
    elapsed = datetime.datetime.now(tz=datetime.UTC) - started
    return PollResponse(
        success=True,
        timestamp=started,
        duration_ms=int(elapsed.total_seconds() * 1000),
        polled=summary.polled,
        skipped=summary.skipped,
        errors=summary.errors,
        results=[
            SystemPollOut(**{**asdict(r), "action": r.action.value})
            for r in summary.results
        ],
    )


@router.post(
    "/backfill",
    response_model=BackfillResponse,
    dependencies=[Depends(require_cron)],
)
async def cron_backfill(
    db: Annotated[AsyncSession, Depends(get_db)],
    system_id: Annotated[int, Query()],
    days: Annotated[int, Query(ge=1, le=90)] = 7,
    dry_run: Annotated[bool, Query()] = False,
) -> BackfillResponse:
    """Fetch incomplete days of Enphase history for one system.

    Args:
        db: Async database session.
        system_id: The Enphase system to backfill.
        days: Days to examine, starting with yesterday.
        dry_run: Fetch and map, but write nothing.

    Returns:
        BackfillResponse: Per-day outcomes, newest first.

    Raises:
        HTTPException: 404 unknown system, 400 not an Enphase system,
            502 the Enphase API failed.
    """
    system = await db.get(System, system_id)
    if system is None:
        raise HTTPException(status_code=404, detail="System not found")
    adapter = get_registry().get_adapter(system.vendor_type)
    if not isinstance(adapter, EnphaseAdapter):
        raise HTTPException(
            status_code=400,
            detail=f"Backfill is not supported for {system.vendor_type} systems",
        )

    logger.info(
        "Cron backfill triggered (system_id=%s, days=%s, dry_run=%s)",
        system_id,
        days,
        dry_run,
    )
    try:
        results = await adapter.backfill(db, system, days, dry_run=dry_run)
    except VendorError as exc:
        logger.warning("Backfill failed for system %s: %s", system_id, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return BackfillResponse(
        system_id=system_id,
        days=days,
        fetched=sum(1 for r in results if r.fetched),
        upserted=sum(r.upserted_count for r in results),
        results=[BackfillDayOut(**asdict(r)) for r in results],
    )
