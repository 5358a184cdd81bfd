"""
One polling pass over all active systems.

Shared by the cron endpoint and the polling daemon. Each system is resolved
to its vendor adapter, checked against the adapter's schedule (unless
forced), polled, and its outcome recorded in polling_status. A failure in
one system is logged and recorded without stopping the pass.

CHANGELOG:
- 2026-10-14: Add per-system duration to results
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liveone.dates import ensure_utc, utc_now
from liveone.db.models import System
from liveone.polling.status import get_status, record_error, record_success
from liveone.vendors.base import PollAction, PollingResult
from liveone.vendors.enphase.adapter import EnphaseAdapter
from liveone.vendors.registry import VendorRegistry, get_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemPollResult:
    """PollingResult of one system, labelled for reporting."""

    system_id: int
    display_name: str
    vendor_type: str
    action: PollAction
    records_processed: int = 0
    reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    next_poll: datetime | None = None
    duration_ms: int = 0


@dataclass
class PollingSummary:
    """Counts and per-system results of one polling pass."""

    polled: int = 0
    skipped: int = 0
    errors: int = 0
    results: list[SystemPollResult] = field(default_factory=list)

    def add(self, result: SystemPollResult) -> None:
        self.results.append(result)
        if result.action is PollAction.POLLED:
            self.polled += 1
        elif result.action is PollAction.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1


def _labelled(
    system: System, result: PollingResult, started: float
) -> SystemPollResult:
    return SystemPollResult(
        system_id=system.id,
        display_name=system.display_name,
        vendor_type=system.vendor_type,
        action=result.action,
        records_processed=result.records_processed,
        reason=result.reason,
        error=result.error,
        error_code=result.error_code,
        next_poll=result.next_poll,
        duration_ms=int((time.monotonic() - started) * 1000),
    )


async def _select_systems(db: AsyncSession, system_id: int | None) -> list[System]:
    if system_id is not None:
        stmt = select(System).where(System.id == system_id)
    else:
        stmt = select(System).where(System.status == "active").order_by(System.id)
    systems = list((await db.execute(stmt)).scalars().all())
    # Detached so a rollback after one system's failure cannot expire the rest.
    for system in systems:
        db.expunge(system)
    return systems


async def poll_system(
    db: AsyncSession,
    system: System,
    now: datetime,
    force: bool = False,
    registry: VendorRegistry | None = None,
    day: date | None = None,
) -> SystemPollResult:
    """Poll one system and record its status.

    Args:
        db: Active database session.
        system: System to poll.
        now: Reference time.
        force: Ignore the adapter's schedule.
        registry: Vendor registry (default: process-wide).
        day: Explicit local date to fetch (Enphase only).

    Returns:
        SystemPollResult; never raises for vendor or storage failures.
    """
    registry = registry or get_registry()
    started = time.monotonic()
    adapter = registry.get_adapter(system.vendor_type)
    if adapter is None:
        logger.error(
            "No adapter for vendor type %r (system %s)", system.vendor_type, system.id
        )
        return _labelled(
            system,
            PollingResult(
                PollAction.ERROR, error=f"Unknown vendor type: {system.vendor_type}"
            ),
            started,
        )

    try:
        status = await get_status(db, system.id)
        decision = await adapter.should_poll(system, status, now, force)
        if not decision.should_poll:
            return _labelled(
                system,
                adapter.skipped(decision.reason or "Not due", decision.next_poll),
                started,
            )

        if day is not None and isinstance(adapter, EnphaseAdapter):
            result = await adapter.poll(db, system, now, force, day=day)
        else:
            result = await adapter.poll(db, system, now, force)
    except Exception as exc:
        logger.error("Error polling system %s", system.id, exc_info=True)
        await db.rollback()
        result = adapter.error(exc)

    try:
        if result.action is PollAction.POLLED:
            await record_success(db, system.id, now)
        elif result.action is PollAction.ERROR:
            await record_error(db, system.id, result.error or "Unknown error", now)
    except Exception:
        logger.error(
            "Failed to record polling status for system %s", system.id, exc_info=True
        )
        await db.rollback()

    return _labelled(system, result, started)


async def poll_all_systems(
    db: AsyncSession,
    now: datetime | None = None,
    force: bool = False,
    system_id: int | None = None,
    registry: VendorRegistry | None = None,
    day: date | None = None,
) -> PollingSummary:
    """Run one polling pass.

    Args:
        db: Active database session.
        now: Reference time (default: now).
        force: Poll every selected system regardless of schedule.
        system_id: Only poll this system (any status).
        registry: Vendor registry (default: process-wide).
        day: Explicit local date to fetch (Enphase only).

    Returns:
        PollingSummary with counts and per-system results.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    systems = await _select_systems(db, system_id)
    summary = PollingSummary()

    for system in systems:
        summary.add(await poll_system(db, system, now, force, registry, day))

    logger.info(
        "Polling pass complete: %d systems, polled=%d skipped=%d errors=%d",
        len(systems),
        summary.polled,
        summary.skipped,
        summary.errors,
    )
    return summary
