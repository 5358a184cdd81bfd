"""
HTTPS client for the Enphase v4 API.

Covers the two calls the poller needs: the OAuth refresh-token exchange and
the ``production_micro`` telemetry endpoint (5-minute microinverter
production intervals). Every API call carries both the OAuth bearer token
and the developer API key in the ``key`` header.

Operations:
- refresh_tokens(refresh_token): Exchange a refresh token for new tokens.
- get_production_micro(site_id, access_token, start_at, end_at): Intervals
  for today (no range) or for a full historical day.

CHANGELOG:
- 2026-10-13: Accept an injected httpx.AsyncClient
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from liveone.config import Settings
from liveone.vendors.base import TokenRefreshError, VendorApiError

logger = logging.getLogger(__name__)


def clean_site_id(vendor_site_id: str) -> str:
    """Strip a float-style suffix (``"12345.0"``) from an Enphase system id."""
    return str(vendor_site_id).split(".")[0]


def _error_detail(response: httpx.Response) -> str:
    """Best-effort extraction of an OAuth/JSON error message."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error_description") or body.get("error") or body)[:200]
    return str(body)[:200]


class EnphaseClient:
    """Async client for the Enphase v4 API.

    Args:
        base_url: API base URL, e.g. ``https://api.enphaseenergy.com``.
        api_key: Developer API key sent in the ``key`` header.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        timeout: Request timeout in seconds.
        http_client: Optional shared ``httpx.AsyncClient``. When omitted a
            short-lived client is opened per request.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client_id: str,
        client_secret: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._http = http_client

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> EnphaseClient:
        """Build a client from application Settings."""
        return cls(
            base_url=settings.enphase_base_url,
            api_key=settings.enphase_api_key,
            client_id=settings.enphase_client_id,
            client_secret=settings.enphase_client_secret,
            timeout=settings.http_timeout_s,
            http_client=http_client,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def refresh_tokens(self, refresh_token: str) -> dict[str, Any]:
        """Exchange *refresh_token* for a new token set.

        Returns:
            The token response: ``access_token``, ``refresh_token``,
            ``expires_in`` (seconds) and optionally ``enl_uid``.

        Raises:
            TokenRefreshError: On a network failure or non-2xx response.
        """
        logger.info("Refreshing Enphase access token")
        try:
            response = await self._send(
                "POST",
                "/oauth/token",
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as exc:
            raise TokenRefreshError(f"Token refresh failed: {exc}") from exc

        if not response.is_success:
            raise TokenRefreshError(
                f"Token refresh failed: {response.status_code} - "
                f"{_error_detail(response)}"
            )

        tokens = response.json()
        if not tokens.get("access_token") or "expires_in" not in tokens:
            raise TokenRefreshError("Token refresh failed: incomplete token response")
        return tokens

    async def get_production_micro(
        self,
        site_id: str,
        access_token: str,
        start_at: int | None = None,
        end_at: int | None = None,
    ) -> dict[str, Any]:
        """Fetch 5-minute microinverter production intervals.

        Without *start_at* the API returns today's partial data. With it,
        ``granularity=day`` returns the full day starting at *start_at*.

        Args:
            site_id: Enphase system id.
            access_token: Valid OAuth access token.
            start_at: Local midnight of the requested day, Unix seconds.
            end_at: Next local midnight, Unix seconds.

        Returns:
            The decoded JSON body with an ``intervals`` list of
            ``{end_at, devices_reporting, powr, enwh}`` objects.

        Raises:
            VendorApiError: On a network failure or non-2xx response.
        """
        params: dict[str, str] = {}
        if start_at is not None:
            params["start_at"] = str(start_at)
            params["granularity"] = "day"
            if end_at is not None:
                params["end_at"] = str(end_at)

        path = f"/api/v4/systems/{clean_site_id(site_id)}/telemetry/production_micro"
        logger.debug("GET %s params=%s", path, params)
        try:
            response = await self._send(
                "GET",
                path,
                params=params or None,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "key": self._api_key,
                },
            )
        except httpx.HTTPError as exc:
            raise VendorApiError(f"Enphase request failed: {exc}") from exc

        if not response.is_success:
            raise VendorApiError(
                f"Enphase API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._http is not None:
            return await self._http.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout, verify=True) as client:
            return await client.request(method, url, **kwargs)
