"""
Unit tests for the polling daemon loop.

Tests verify:
- _pass_once() runs a pass and records it in the health file.
- A raising pass is logged, recorded as a failure, and does not propagate.
- run_loop() runs passes until the shutdown event is set.
- Shutdown before the first boundary runs no pass.
- async_main() runs the loop on the initialised session factory and
  always disposes the engine.

CHANGELOG:
- 2026-10-18: Add async_main tests
- 2026-10-14: Minute-boundary scheduling
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from liveone.health import HealthWriter
from liveone.polling import main as daemon
from liveone.polling.service import PollingSummary


class TestPassOnce:
    @pytest.mark.asyncio
    async def test_pass_records_health(self, session_factory, tmp_path: Path) -> None:
        health = HealthWriter(tmp_path / "health.json")
        summary = PollingSummary(polled=2, skipped=1, errors=0)

        with patch.object(
            daemon, "poll_all_systems", AsyncMock(return_value=summary)
        ) as mock_poll:
            result = await daemon._pass_once(
                session_factory=session_factory, health=health
            )

        assert result is summary
        mock_poll.assert_awaited_once()
        data = json.loads((tmp_path / "health.json").read_text())
        assert data["last_summary"] == {"polled": 2, "skipped": 1, "errors": 0}
        assert data["consecutive_failed_passes"] == 0

    @pytest.mark.asyncio
    async def test_pass_error_is_contained(
        self, session_factory, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        health = HealthWriter(tmp_path / "health.json")

        with patch.object(
            daemon, "poll_all_systems", AsyncMock(side_effect=RuntimeError("db gone"))
        ):
            result = await daemon._pass_once(
                session_factory=session_factory, health=health
            )

        assert result is None
        assert "Polling pass error" in caplog.text
        data = json.loads((tmp_path / "health.json").read_text())
        assert data["consecutive_failed_passes"] == 1

    @pytest.mark.asyncio
    async def test_pass_without_health(self, session_factory) -> None:
        with patch.object(
            daemon, "poll_all_systems", AsyncMock(return_value=PollingSummary())
        ):
            result = await daemon._pass_once(
                session_factory=session_factory, health=None
            )
        assert result is not None


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_runs_until_shutdown(self, session_factory) -> None:
        shutdown = asyncio.Event()
        calls = 0

        async def _fake_pass(**kwargs):
            nonlocal calls
            calls += 1
            if calls == 3:
                shutdown.set()

        with (
            patch.object(daemon, "_seconds_until_next_minute", return_value=0.0),
            patch.object(daemon, "_pass_once", side_effect=_fake_pass),
        ):
            await asyncio.wait_for(
                daemon.run_loop(session_factory=session_factory, shutdown_event=shutdown),
                timeout=5,
            )

        assert calls == 3

    @pytest.mark.asyncio
    async def test_shutdown_before_first_boundary(self, session_factory) -> None:
        shutdown = asyncio.Event()
        shutdown.set()
        mock_pass = AsyncMock()

        with patch.object(daemon, "_pass_once", mock_pass):
            await daemon.run_loop(session_factory=session_factory, shutdown_event=shutdown)

        mock_pass.assert_not_awaited()

    def test_handle_signal_sets_event(self) -> None:
        event = asyncio.Event()
        daemon._handle_signal(event)
        assert event.is_set()

    def test_seconds_until_next_minute_in_range(self) -> None:
        assert 0.0 <= daemon._seconds_until_next_minute() <= 60.0


class TestAsyncMain:
    @pytest.mark.asyncio
    async def test_runs_loop_with_initialised_factory(self) -> None:
        factory = object()
        mock_run = AsyncMock()
        mock_dispose = AsyncMock()

        with (
            patch.object(daemon, "configure_logging"),
            patch.object(daemon, "log_config_summary"),
            patch.object(daemon, "run_loop", mock_run),
            patch("liveone.db.session.init_engine", return_value=factory),
            patch("liveone.db.session.dispose_engine", mock_dispose),
        ):
            await daemon.async_main()

        assert mock_run.await_args.kwargs["session_factory"] is factory
        mock_dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disposes_engine_when_loop_fails(self) -> None:
        mock_dispose = AsyncMock()

        with (
            patch.object(daemon, "configure_logging"),
            patch.object(daemon, "log_config_summary"),
            patch.object(daemon, "run_loop", AsyncMock(side_effect=RuntimeError)),
            patch("liveone.db.session.init_engine", return_value=object()),
            patch("liveone.db.session.dispose_engine", mock_dispose),
            pytest.raises(RuntimeError),
        ):
            await daemon.async_main()

        mock_dispose.assert_awaited_once()
