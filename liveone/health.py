"""
Health file writer for the polling daemon.

Writes a JSON health file at a configurable path with four fields:
- last_pass_ts: ISO timestamp of the most recent polling pass.
- last_success_ts: ISO timestamp of the most recent pass without errors.
- last_summary: Counts (polled/skipped/errors) of the most recent pass.
- consecutive_failed_passes: Passes in a row that raised or reported errors.

The file is overwritten on every state change, providing a simple liveness
signal that a container HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-14: Track consecutive failed passes
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes daemon health status to a JSON file.

    Each mutating method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest status.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_pass_ts: str | None = None
        self._last_success_ts: str | None = None
        self._last_summary: dict[str, int] | None = None
        self._consecutive_failed_passes: int = 0

    def record_pass(self, polled: int, skipped: int, errors: int) -> None:
        """Record a completed polling pass and write health file.

        Args:
            polled: Systems polled in the pass.
            skipped: Systems skipped by their schedule.
            errors: Systems whose poll failed.
        """
        now = datetime.now(tz=UTC).isoformat()
        self._last_pass_ts = now
        self._last_summary = {"polled": polled, "skipped": skipped, "errors": errors}
        if errors:
            self._consecutive_failed_passes += 1
        else:
            self._last_success_ts = now
            self._consecutive_failed_passes = 0
        self._write()

    def record_failure(self) -> None:
        """Record a pass that raised before producing a summary."""
        self._last_pass_ts = datetime.now(tz=UTC).isoformat()
        self._consecutive_failed_passes += 1
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_pass_ts": self._last_pass_ts,
            "last_success_ts": self._last_success_ts,
            "last_summary": self._last_summary,
            "consecutive_failed_passes": self._consecutive_failed_passes,
        }
        self.path.write_text(json.dumps(data))
