"""
Tests for the Enphase API client and token lifecycle.

Tests verify:
- Token refresh POSTs a refresh_token grant with HTTP Basic client auth.
- Refresh failures raise TokenRefreshError.
- production_micro requests carry the bearer token and API key, with
  start_at/granularity/end_at only for historical days.
- get_valid_access_token() reuses tokens valid for more than an hour and
  refreshes (and stores) tokens that expire sooner.

CHANGELOG:
- 2026-10-13: Use httpx.MockTransport instead of patching httpx
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import base64
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs

import httpx
import pytest
from conftest import add_system

from liveone.vendors.base import (
    CredentialsNotFoundError,
    TokenRefreshError,
    VendorApiError,
)
from liveone.vendors.credentials import get_credentials
from liveone.vendors.enphase.auth import (
    _parse_expires_at,
    get_valid_access_token,
    store_enphase_tokens,
)
from liveone.vendors.enphase.client import EnphaseClient, clean_site_id

NOW = datetime(2026, 3, 15, 2, 0, tzinfo=UTC)
BASE_URL = "https://api.enphaseenergy.com"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(handler, requests: list[httpx.Request] | None = None) -> EnphaseClient:
    """EnphaseClient whose HTTP calls are answered by *handler*."""

    def _record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return EnphaseClient(
        base_url=BASE_URL,
        api_key="test-api-key",
        client_id="cid",
        client_secret="csecret",
        http_client=http,
    )


def _token_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_in": 86400,
            "enl_uid": 4242,
        },
    )


def _fail(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected request: {request.method} {request.url}")


def _credentials(expires_at: datetime | str | int) -> dict:
    if isinstance(expires_at, datetime):
        expires_at = expires_at.isoformat()
    return {
        "access_token": "old-access",
        "refresh_token": "old-refresh",
        "expires_at": expires_at,
        "enphase_user_id": "1",
    }


# ---------------------------------------------------------------------------
# EnphaseClient
# ---------------------------------------------------------------------------


class TestEnphaseClient:
    def test_clean_site_id(self) -> None:
        assert clean_site_id("12345.0") == "12345"
        assert clean_site_id("12345") == "12345"

    @pytest.mark.asyncio
    async def test_refresh_tokens_request(self) -> None:
        requests: list[httpx.Request] = []
        tokens = await _client(_token_response, requests).refresh_tokens("r-tok")

        assert tokens["access_token"] == "new-access"
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/oauth/token"
        form = parse_qs(request.content.decode())
        assert form == {"grant_type": ["refresh_token"], "refresh_token": ["r-tok"]}
        expected = base64.b64encode(b"cid:csecret").decode()
        assert request.headers["authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_refresh_tokens_http_error(self) -> None:
        client = _client(
            lambda r: httpx.Response(400, json={"error_description": "Invalid token"})
        )
        with pytest.raises(TokenRefreshError, match="400 - Invalid token"):
            await client.refresh_tokens("r-tok")

    @pytest.mark.asyncio
    async def test_refresh_tokens_incomplete_response(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"access_token": "x"}))
        with pytest.raises(TokenRefreshError, match="incomplete"):
            await client.refresh_tokens("r-tok")

    @pytest.mark.asyncio
    async def test_refresh_tokens_network_error(self) -> None:
        def _boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TokenRefreshError, match="connection refused"):
            await _client(_boom).refresh_tokens("r-tok")

    @pytest.mark.asyncio
    async def test_production_micro_today_has_no_params(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda r: httpx.Response(200, json={"intervals": []}), requests)

        await client.get_production_micro("123.0", "acc")

        request = requests[0]
        assert request.url.path == "/api/v4/systems/123/telemetry/production_micro"
        assert request.url.query == b""
        assert request.headers["authorization"] == "Bearer acc"
        assert request.headers["key"] == "test-api-key"

    @pytest.mark.asyncio
    async def test_production_micro_historical_params(self) -> None:
        requests: list[httpx.Request] = []
        client = _client(lambda r: httpx.Response(200, json={"intervals": []}), requests)

        await client.get_production_micro("123", "acc", 1000, 87400)

        params = requests[0].url.params
        assert params["start_at"] == "1000"
        assert params["granularity"] == "day"
        assert params["end_at"] == "87400"

    @pytest.mark.asyncio
    async def test_production_micro_error_has_status(self) -> None:
        client = _client(lambda r: httpx.Response(429, text="Too Many Requests"))
        with pytest.raises(VendorApiError) as exc_info:
            await client.get_production_micro("123", "acc")
        assert exc_info.value.status_code == 429


# ---------------------------------------------------------------------------
# Token lifecycle
# ---------------------------------------------------------------------------


class TestParseExpiresAt:
    def test_iso_string(self) -> None:
        assert _parse_expires_at("2026-03-15T03:00:00+00:00") == datetime(
            2026, 3, 15, 3, 0, tzinfo=UTC
        )

    def test_naive_iso_is_utc(self) -> None:
        assert _parse_expires_at("2026-03-15T03:00:00").tzinfo is not None

    def test_unix_milliseconds(self) -> None:
        ms = int(datetime(2026, 3, 15, 3, 0, tzinfo=UTC).timestamp() * 1000)
        assert _parse_expires_at(ms) == datetime(2026, 3, 15, 3, 0, tzinfo=UTC)

    def test_garbage(self) -> None:
        assert _parse_expires_at("soon") is None
        assert _parse_expires_at(None) is None


class TestGetValidAccessToken:
    @pytest.mark.asyncio
    async def test_missing_credentials(self, db) -> None:
        system = await add_system(db)
        with pytest.raises(CredentialsNotFoundError):
            await get_valid_access_token(db, system, _client(_fail), NOW)

    @pytest.mark.asyncio
    async def test_token_valid_for_hours_is_reused(self, db) -> None:
        system = await add_system(
            db, credentials=_credentials(NOW + timedelta(hours=5))
        )
        token = await get_valid_access_token(db, system, _client(_fail), NOW)
        assert token == "old-access"

    @pytest.mark.asyncio
    async def test_token_expiring_within_hour_is_refreshed(self, db) -> None:
        system = await add_system(
            db, credentials=_credentials(NOW + timedelta(minutes=59))
        )
        requests: list[httpx.Request] = []

        token = await get_valid_access_token(
            db, system, _client(_token_response, requests), NOW
        )

        assert token == "new-access"
        assert parse_qs(requests[0].content.decode())["refresh_token"] == [
            "old-refresh"
        ]
        stored = await get_credentials(db, system.id)
        assert stored["access_token"] == "new-access"
        assert stored["refresh_token"] == "new-refresh"
        assert stored["expires_at"] == (NOW + timedelta(days=1)).isoformat()
        assert stored["enphase_user_id"] == "4242"

    @pytest.mark.asyncio
    async def test_refresh_keeps_old_refresh_token_when_not_rotated(self, db) -> None:
        system = await add_system(db, credentials=_credentials(NOW))
        client = _client(
            lambda r: httpx.Response(
                200, json={"access_token": "new-access", "expires_in": 3600}
            )
        )

        await get_valid_access_token(db, system, client, NOW)

        stored = await get_credentials(db, system.id)
        assert stored["refresh_token"] == "old-refresh"
        assert stored["enphase_user_id"] == ""

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates(self, db) -> None:
        system = await add_system(db, credentials=_credentials(NOW))
        client = _client(lambda r: httpx.Response(401, json={"error": "invalid"}))
        with pytest.raises(TokenRefreshError):
            await get_valid_access_token(db, system, client, NOW)
        stored = await get_credentials(db, system.id)
        assert stored["access_token"] == "old-access"

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, db) -> None:
        creds = _credentials(NOW)
        del creds["refresh_token"]
        system = await add_system(db, credentials=creds)
        with pytest.raises(TokenRefreshError, match="No refresh token"):
            await get_valid_access_token(db, system, _client(_fail), NOW)

    @pytest.mark.asyncio
    async def test_store_enphase_tokens(self, db) -> None:
        system = await add_system(db)
        stored = await store_enphase_tokens(
            db,
            system.id,
            {"access_token": "a", "refresh_token": "r", "expires_in": "60"},
            NOW,
        )
        assert stored["expires_at"] == (NOW + timedelta(seconds=60)).isoformat()
        assert await get_credentials(db, system.id) == stored
