"""
Unit tests for LiveOne Settings.

Tests verify:
- Defaults and env var loading.
- HTTPS enforcement on vendor base URLs.
- ENVIRONMENT, LOG_LEVEL and numeric validation.
- Secrets never appear in the startup config summary.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from liveone.config import Settings, get_settings
from liveone.log_setup import _strip_password, log_config_summary, masked_token


class TestSettingsLoading:
    def test_loads_from_env(self) -> None:
        settings = get_settings()
        assert settings.cron_secret == "cron-secret-xyz"
        assert settings.enphase_client_id == "test-client-id"
        assert settings.is_development is False

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cors_origin_list_splits_and_strips(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CORS_ORIGINS", " https://a.example , ,https://b.example")
        assert Settings().cors_origin_list == ["https://a.example", "https://b.example"]

    def test_development_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", " Development ")
        assert Settings().is_development is True


class TestSettingsValidation:
    def test_rejects_http_vendor_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENPHASE_BASE_URL", "http://api.enphaseenergy.com")
        with pytest.raises(ValidationError, match="HTTPS"):
            Settings()

    def test_strips_trailing_slash(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SELECTRONIC_BASE_URL", "https://select.live/")
        assert Settings().selectronic_base_url == "https://select.live"

    def test_rejects_unknown_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", "staging")
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_unknown_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_zero_cache_ttl(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_TTL_S", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_rejects_non_positive_timeout(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HTTP_TIMEOUT_S", "0")
        with pytest.raises(ValidationError):
            Settings()


class TestConfigSummary:
    """Startup logging masks secrets."""

    def test_secrets_not_logged(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv(
            "DATABASE_URL", "postgresql+asyncpg://liveone:hunter2@db/liveone"
        )
        settings = Settings()
        logger = logging.getLogger("test.config")
        with caplog.at_level(logging.INFO, logger="test.config"):
            log_config_summary(settings, logger)

        text = caplog.text
        assert "cron-secret-xyz" not in text
        assert "test-client-secret" not in text
        assert "test-api-key" not in text
        assert "hunter2" not in text
        assert "liveone:***@db/liveone" in text

    def test_masked_token_empty(self) -> None:
        assert masked_token("") == "empty"
        assert masked_token(None) == "empty"

    def test_masked_token_fingerprint(self) -> None:
        masked = masked_token("abcdef")
        assert masked.startswith("len=6 sha256=")
        assert "abcdef" not in masked

    def test_strip_password_without_credentials(self) -> None:
        assert _strip_password("redis://localhost:6379/0") == "redis://localhost:6379/0"
