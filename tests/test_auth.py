"""
Tests for API bearer tokens and the cron secret.

Tests verify:
- API_TOKENS parsing into a token -> owner_id map.
- Constant-time token verification.
- Cron secret checks, including the development escape hatch.
- 401 responses from the BearerAuth and CronAuth dependencies.

CHANGELOG:
- 2026-10-18: Cover empty token and owner entries
- 2026-10-13: Add cron secret tests
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient

from liveone.auth import (
    BearerAuth,
    CronAuth,
    parse_api_tokens,
    verify_bearer_token,
    verify_cron_secret,
)

# ---------------------------------------------------------------------------
# parse_api_tokens
# ---------------------------------------------------------------------------


class TestParseApiTokens:
    def test_parses_pairs(self) -> None:
        assert parse_api_tokens("tok1:owner1, tok2 : owner2") == {
            "tok1": "owner1",
            "tok2": "owner2",
        }

    def test_empty_string(self) -> None:
        assert parse_api_tokens("") == {}
        assert parse_api_tokens("   ") == {}

    def test_skips_malformed_entries(self, caplog: pytest.LogCaptureFixture) -> None:
        result = parse_api_tokens("good:owner,badentry,:noowner,notoken:")
        assert result == {"good": "owner"}
        assert "position 1" in caplog.text

    def test_owner_may_contain_colon(self) -> None:
        assert parse_api_tokens("tok:owner:42") == {"tok": "owner:42"}

    def test_empty_token_or_owner_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        assert parse_api_tokens("good:owner, :someone") == {"good": "owner"}
        assert "position 1 (empty token or owner)" in caplog.text
        assert "someone" not in caplog.text


# ---------------------------------------------------------------------------
# verify_bearer_token / verify_cron_secret
# ---------------------------------------------------------------------------


class TestVerifyBearerToken:
    def test_valid_token_returns_owner(self) -> None:
        assert verify_bearer_token("abc", {"abc": "owner-1"}) == "owner-1"

    def test_invalid_token_returns_none(self) -> None:
        assert verify_bearer_token("nope", {"abc": "owner-1"}) is None

    def test_empty_token_returns_none(self) -> None:
        assert verify_bearer_token("", {"": "owner-1"}) is None


class TestVerifyCronSecret:
    def test_matching_secret(self) -> None:
        assert verify_cron_secret("Bearer s3cret", "s3cret", False) is True

    def test_wrong_secret(self) -> None:
        assert verify_cron_secret("Bearer other", "s3cret", False) is False

    def test_missing_header(self) -> None:
        assert verify_cron_secret(None, "s3cret", True) is False

    def test_scheme_is_required(self) -> None:
        assert verify_cron_secret("s3cret", "s3cret", False) is False

    def test_no_secret_in_development_allows(self) -> None:
        assert verify_cron_secret(None, "", True) is True

    def test_no_secret_in_production_denies(self) -> None:
        assert verify_cron_secret("Bearer anything", "", False) is False


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _app(auth: BearerAuth, cron: CronAuth) -> FastAPI:
    app = FastAPI()

    @app.get("/owner")
    async def owner(owner_id: str = Depends(auth.verify)) -> dict:
        return {"owner_id": owner_id}

    @app.post("/cron", dependencies=[Depends(cron.verify)])
    async def cron_route() -> dict:
        return {"ok": True}

    return app


class TestDependencies:
    """BearerAuth and CronAuth raise 401 with a WWW-Authenticate header."""

    @pytest.fixture()
    def client(self) -> TestClient:
        return TestClient(
            _app(BearerAuth({"tok": "owner-1"}), CronAuth("s3cret", False))
        )

    def test_bearer_valid(self, client: TestClient) -> None:
        response = client.get("/owner", headers={"Authorization": "Bearer tok"})
        assert response.status_code == 200
        assert response.json() == {"owner_id": "owner-1"}

    def test_bearer_missing(self, client: TestClient) -> None:
        response = client.get("/owner")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_bearer_invalid(self, client: TestClient) -> None:
        response = client.get("/owner", headers={"Authorization": "Bearer bad"})
        assert response.status_code == 401

    def test_cron_valid(self, client: TestClient) -> None:
        response = client.post("/cron", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200

    def test_cron_invalid(self, client: TestClient) -> None:
        response = client.post("/cron", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_cron_auth_raises_http_exception(self) -> None:
        from starlette.requests import Request

        request = Request({"type": "http", "headers": []})
        with pytest.raises(HTTPException) as exc_info:
            await CronAuth("s3cret", False).verify(request)
        assert exc_info.value.status_code == 401
