"""
Authentication package.

Exports the BearerAuth and CronAuth dependency classes and token parsing
utilities for use by FastAPI route handlers.

CHANGELOG:
- 2026-10-13: Export CronAuth and verify_cron_secret
- 2026-10-12: Initial creation

TODO:
- None
"""

from liveone.auth.bearer import (
    BearerAuth,
    CronAuth,
    parse_api_tokens,
    verify_bearer_token,
    verify_cron_secret,
)

__all__ = [
    "BearerAuth",
    "CronAuth",
    "parse_api_tokens",
    "verify_bearer_token",
    "verify_cron_secret",
]
