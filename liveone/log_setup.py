"""
Structured JSON logging shared by the API and the polling daemon.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from datetime import UTC, datetime


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Replaces any existing root handlers with a single stderr handler.

    Args:
        level: Root log level name (e.g. ``INFO``).
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: object, logger: logging.Logger) -> None:
    """Log a config summary at startup, excluding secrets.

    Secrets (cron secret, API tokens, Enphase client secret and API key)
    are only logged as fingerprints.

    Args:
        settings: A Settings instance (or any object with the same attrs).
        logger: Logger to write the summary to.
    """
    logger.info(
        "LiveOne starting with config: "
        "environment=%s, database_url=%s, redis_url=%s, "
        "enphase_base_url=%s, selectronic_base_url=%s, "
        "cache_ttl_s=%s, health_path=%s, "
        "cron_secret_masked=%s, enphase_client_secret_masked=%s, "
        "enphase_api_key_masked=%s",
        settings.environment,  # type: ignore[union-attr]
        _strip_password(settings.database_url),  # type: ignore[union-attr]
        _strip_password(settings.redis_url),  # type: ignore[union-attr]
        settings.enphase_base_url,  # type: ignore[union-attr]
        settings.selectronic_base_url,  # type: ignore[union-attr]
        settings.cache_ttl_s,  # type: ignore[union-attr]
        settings.health_path,  # type: ignore[union-attr]
        masked_token(settings.cron_secret),  # type: ignore[union-attr]
        masked_token(settings.enphase_client_secret),  # type: ignore[union-attr]
        masked_token(settings.enphase_api_key),  # type: ignore[union-attr]
    )


def _strip_password(url: str) -> str:
    """Replace the password component of a URL with ``***``."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    creds, _, host = rest.rpartition("@")
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
