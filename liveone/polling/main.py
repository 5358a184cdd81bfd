"""
Polling daemon main loop.

Wakes on every minute boundary and runs one polling pass over all active
systems. Each vendor adapter decides whether its systems are due, so the
daemon itself only keeps time. A failing pass is logged and does not stop
the loop. Graceful shutdown on SIGTERM/SIGINT sets a shared asyncio.Event;
the loop finishes its current pass and exits.

Structured JSON logging is used for all events. A HealthWriter records the
outcome of each pass in a JSON health file.

CHANGELOG:
- 2026-10-14: Align passes to minute boundaries
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING

from liveone.dates import next_minute_boundary, utc_now
from liveone.health import HealthWriter
from liveone.log_setup import configure_logging, log_config_summary
from liveone.polling.service import PollingSummary, poll_all_systems

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Single-iteration function (easily testable)
# ---------------------------------------------------------------------------


async def _pass_once(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    health: HealthWriter | None,
) -> PollingSummary | None:
    """Run one polling pass in a fresh session.

    Catches all exceptions so that the caller's loop is never broken.

    Args:
        session_factory: Factory for database sessions.
        health: HealthWriter instance, or None to skip health writes.

    Returns:
        The pass summary, or None if the pass raised.
    """
    summary: PollingSummary | None = None
    try:
        async with session_factory() as db:
            summary = await poll_all_systems(db, utc_now())
    except Exception:
        logger.error("Polling pass error", exc_info=True)

    if health is not None:
        try:
            if summary is None:
                health.record_failure()
            else:
                health.record_pass(summary.polled, summary.skipped, summary.errors)
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
    return summary


def _seconds_until_next_minute() -> float:
    now = utc_now()
    return max((next_minute_boundary(now) - now).total_seconds(), 0.0)


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_loop(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Run a polling pass on every minute boundary until shutdown.

    Args:
        session_factory: Factory for database sessions.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Polling loop started")
    while not shutdown_event.is_set():
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=_seconds_until_next_minute(),
            )
        if shutdown_event.is_set():
            break
        await _pass_once(session_factory=session_factory, health=health)
    logger.info("Polling loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, open the database, run the loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    from liveone.config import get_settings
    from liveone.db import session as db_session

    settings = get_settings()
    configure_logging(settings.log_level)
    log_config_summary(settings, logger)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    session_factory = db_session.init_engine()
    health = HealthWriter(settings.health_path)

    try:
        await run_loop(
            session_factory=session_factory,
            shutdown_event=shutdown_event,
            health=health,
        )
    finally:
        await db_session.dispose_engine()
        logger.info("Shutdown complete")


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the polling daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
