"""
Enphase token lifecycle: keep a valid access token per system.

Access tokens are refreshed when they expire within the next hour, so a
poll never starts with a token that could lapse mid-request. Refreshed
tokens replace the stored credential document.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from liveone.dates import ensure_utc, from_unix, utc_now
from liveone.vendors.base import CredentialsNotFoundError, TokenRefreshError
from liveone.vendors.credentials import get_credentials, store_credentials

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from liveone.db.models import System
    from liveone.vendors.enphase.client import EnphaseClient

logger = logging.getLogger(__name__)

REFRESH_MARGIN = timedelta(hours=1)


def _parse_expires_at(value: Any) -> datetime | None:
    """Parse a stored ``expires_at`` (ISO string or Unix ms) as UTC."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return from_unix(value / 1000)
    try:
        return ensure_utc(datetime.fromisoformat(str(value)))
    except ValueError:
        logger.warning("Unparseable Enphase expires_at %r, forcing refresh", value)
        return None


async def store_enphase_tokens(
    db: AsyncSession,
    system_id: int,
    tokens: dict[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Convert an OAuth token response to the stored format and save it.

    Args:
        db: Active database session.
        system_id: System the tokens belong to.
        tokens: OAuth response with ``access_token``, ``refresh_token``,
            ``expires_in`` and optionally ``enl_uid``.
        now: Reference time for ``expires_at`` (default: now).

    Returns:
        The credential document that was stored.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    credentials = {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "expires_at": (now + timedelta(seconds=int(tokens["expires_in"]))).isoformat(),
        "enphase_user_id": str(tokens.get("enl_uid") or ""),
    }
    await store_credentials(db, system_id, "enphase", credentials)
    return credentials


async def get_valid_access_token(
    db: AsyncSession,
    system: System,
    client: EnphaseClient,
    now: datetime | None = None,
) -> str:
    """Return an access token valid for at least another hour.

    Args:
        db: Active database session.
        system: The Enphase system.
        client: Client used for the refresh exchange.
        now: Reference time (default: now).

    Returns:
        A usable access token.

    Raises:
        CredentialsNotFoundError: No credentials are stored for the system.
        TokenRefreshError: The refresh exchange failed.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    credentials = await get_credentials(db, system.id)
    if not credentials:
        raise CredentialsNotFoundError(system.id, "enphase")

    expires_at = _parse_expires_at(credentials.get("expires_at"))
    if expires_at is not None and expires_at > now + REFRESH_MARGIN:
        return credentials["access_token"]

    refresh_token = credentials.get("refresh_token")
    if not refresh_token:
        raise TokenRefreshError(f"No refresh token stored for system {system.id}")

    logger.info("Enphase token expiring soon for system %s, refreshing", system.id)
    tokens = await client.refresh_tokens(refresh_token)
    tokens.setdefault("refresh_token", refresh_token)
    await store_enphase_tokens(db, system.id, tokens, now)
    logger.info("Enphase token refreshed for system %s", system.id)
    return tokens["access_token"]
