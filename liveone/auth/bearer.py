"""
Bearer token authentication for the LiveOne API.

Parses read-access tokens from the API_TOKENS setting and validates incoming
Authorization: Bearer {token} headers. A separate CronAuth dependency guards
the cron poll endpoint with CRON_SECRET. All comparisons are constant-time
via secrets.compare_digest.

CHANGELOG:
- 2026-10-18: Log empty token or owner entries
- 2026-10-13: Add CronAuth for the cron poll trigger
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging
import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


def parse_api_tokens(raw: str) -> dict[str, str]:
    """Build the token -> owner_id map from API_TOKENS.

    Each comma-separated entry is ``token:owner_id``; only the first colon
    splits, so owner IDs may contain colons. Entries missing the colon, the
    token or the owner are dropped and logged by position, never by value.

    Args:
        raw: The API_TOKENS setting.

    Returns:
        dict[str, str]: Owner of each accepted token.
    """
    token_map: dict[str, str] = {}
    if not raw or not raw.strip():
        return token_map

    for position, entry in enumerate(raw.split(",")):
        token, sep, owner_id = entry.partition(":")
        token, owner_id = token.strip(), owner_id.strip()
        if not sep:
            logger.warning(
                "Skipping malformed API_TOKENS entry at position %d"
                " (no colon separator)",
                position,
            )
        elif not token or not owner_id:
            logger.warning(
                "Skipping API_TOKENS entry at position %d (empty token or owner)",
                position,
            )
        else:
            token_map[token] = owner_id
    return token_map


def verify_bearer_token(
    token: str,
    token_map: dict[str, str],
) -> str | None:
    """Return the owner of *token*, or None when it is not a configured token.

    Every configured token is compared with secrets.compare_digest, even
    after a match.

    Args:
        token: Credential from the Authorization header.
        token_map: Output of parse_api_tokens.
    """
    if not token:
        return None

    presented = token.encode("utf-8")
    owner: str | None = None
    for candidate, candidate_owner in token_map.items():
        if secrets.compare_digest(presented, candidate.encode("utf-8")):
            owner = candidate_owner
    return owner


def verify_cron_secret(
    authorization: str | None,
    cron_secret: str,
    is_development: bool,
) -> bool:
    """Check a raw Authorization header against the cron secret.

    When no secret is configured only the development environment is
    allowed through, so production never runs an unguarded poll trigger.

    Args:
        authorization: Raw Authorization header value, if any.
        cron_secret: The configured CRON_SECRET (may be empty).
        is_development: Whether the service runs in development mode.

    Returns:
        bool: True if the request may trigger a poll.
    """
    if not cron_secret:
        return is_development
    if not authorization:
        return False
    return secrets.compare_digest(
        authorization.encode("utf-8"), f"Bearer {cron_secret}".encode("utf-8")
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class BearerAuth:
    """Dependency resolving an API token to the owner whose systems it can read.

    Attributes:
        token_map: Output of parse_api_tokens.
        scheme: HTTPBearer scheme, which also documents the auth in OpenAPI.
    """

    def __init__(self, token_map: dict[str, str]) -> None:
        self.token_map = token_map
        self.scheme = HTTPBearer(auto_error=False)

    async def verify(self, request: Request) -> str:
        """Return the owner_id for the request's bearer token.

        Raises:
            HTTPException: 401 when the header is missing or the token is
                not configured.
        """
        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)
        if credentials is None:
            raise _unauthorized("Missing authorization credentials.")

        owner_id = verify_bearer_token(credentials.credentials, self.token_map)
        if owner_id is None:
            raise _unauthorized("Invalid or expired token.")
        return owner_id


class CronAuth:
    """FastAPI dependency guarding cron-triggered endpoints.

    Attributes:
        cron_secret: The configured CRON_SECRET.
        is_development: Allow unauthenticated calls when no secret is set.
    """

    def __init__(self, cron_secret: str, is_development: bool) -> None:
        self.cron_secret = cron_secret
        self.is_development = is_development

    async def verify(self, request: Request) -> None:
        """Raise 401 unless the request carries the cron secret.

        Raises:
            HTTPException: 401 Unauthorized on a missing or wrong secret.
        """
        authorization = request.headers.get("Authorization")
        if not verify_cron_secret(authorization, self.cron_secret, self.is_development):
            logger.warning("Rejected cron request: bad or missing secret")
            raise _unauthorized("Unauthorized")
