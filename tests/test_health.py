"""
Unit tests for the daemon health writer and the API health endpoints.

Tests verify:
- record_pass() writes last_pass_ts, last_summary and last_success_ts.
- Passes with errors and raised passes extend consecutive_failed_passes.
- A clean pass resets the failure streak.
- GET /health and GET / return {"status": "ok"} without auth.

CHANGELOG:
- 2026-10-14: Track consecutive failed passes
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

from liveone.health import HealthWriter


class TestHealthWriter:
    """HealthWriter rewrites the JSON file on every state change."""

    def test_record_pass_writes_all_fields(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(health_path)

        writer.record_pass(polled=2, skipped=1, errors=0)

        data = json.loads(health_path.read_text())
        assert set(data) == {
            "last_pass_ts",
            "last_success_ts",
            "last_summary",
            "consecutive_failed_passes",
        }
        assert "T" in data["last_pass_ts"]
        assert data["last_success_ts"] == data["last_pass_ts"]
        assert data["last_summary"] == {"polled": 2, "skipped": 1, "errors": 0}
        assert data["consecutive_failed_passes"] == 0

    def test_pass_with_errors_is_not_a_success(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(str(health_path))

        writer.record_pass(polled=0, skipped=0, errors=1)

        data = json.loads(health_path.read_text())
        assert data["last_success_ts"] is None
        assert data["consecutive_failed_passes"] == 1

    def test_failures_accumulate_and_reset(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        writer = HealthWriter(health_path)

        writer.record_failure()
        writer.record_pass(polled=0, skipped=0, errors=3)
        data = json.loads(health_path.read_text())
        assert data["consecutive_failed_passes"] == 2

        writer.record_pass(polled=1, skipped=0, errors=0)
        data = json.loads(health_path.read_text())
        assert data["consecutive_failed_passes"] == 0
        assert data["last_success_ts"] is not None


class TestHealthEndpoints:
    """Liveness endpoints need no authentication."""

    def test_health_returns_ok(self) -> None:
        from liveone.api.main import app

        with TestClient(app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_root_returns_ok(self) -> None:
        from liveone.api.main import app

        with TestClient(app) as client:
            response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
