"""
Select.Live client for Selectronic SP PRO inverters.

Select.Live has no token API: a form login sets session cookies, which are
then sent with each ``/dashboard/hfdata/{system}`` request. The session
lasts about 30 minutes; an expired session answers 401 and is renewed once.
Around minutes 48-52 of each hour the service often answers 500/503 (the
"magic window"), which is reported with its own message.

Operations:
- authenticate(): Form login, returns True on success.
- fetch_data(): Latest high-frequency snapshot as SelectronicData.

CHANGELOG:
- 2026-10-13: Retry once after a 401
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from liveone.dates import ensure_utc, from_unix, utc_now

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
DATA_PATH = "/dashboard/hfdata"
MAGIC_WINDOW_MINUTES = range(48, 53)

AUTH_FAILED = "Authentication failed. Please check credentials."
MAGIC_WINDOW = "API unavailable during magic window (48-52 minutes past hour)."

_USER_AGENT = "LiveOne/1.0"


@dataclass(frozen=True)
class SelectronicData:
    """One snapshot from Select.Live.

    Power in watts, lifetime totals in kWh (the API's ``*_wh_total``
    fields are kWh despite their names).
    """

    timestamp: datetime
    solar_w: float
    solar_inverter_w: float
    shunt_w: float
    load_w: float
    battery_w: float
    grid_w: float
    battery_soc: float
    fault_code: int
    fault_timestamp: int
    generator_status: int
    solar_kwh_total: float
    load_kwh_total: float
    battery_in_kwh_total: float
    battery_out_kwh_total: float
    grid_in_kwh_total: float
    grid_out_kwh_total: float
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_response(
        cls, body: dict[str, Any], now: datetime | None = None
    ) -> SelectronicData:
        """Map a ``hfdata`` JSON body to SelectronicData.

        Missing items default to 0; a missing timestamp falls back to *now*.
        """
        items = body.get("items") or {}

        def num(key: str) -> float:
            return items.get(key) or 0

        solar_inverter_w = num("solarinverter_w")
        shunt_w = num("shunt_w")
        ts = items.get("timestamp")
        if ts:
            timestamp = from_unix(ts)
        else:
            timestamp = ensure_utc(now) if now is not None else utc_now()

        return cls(
            timestamp=timestamp,
            solar_w=solar_inverter_w + shunt_w,
            solar_inverter_w=solar_inverter_w,
            shunt_w=shunt_w,
            load_w=num("load_w"),
            battery_w=num("battery_w"),
            grid_w=num("grid_w"),
            battery_soc=num("battery_soc"),
            fault_code=int(num("fault_code")),
            fault_timestamp=int(num("fault_ts")),
            generator_status=int(num("gen_status")),
            solar_kwh_total=num("solar_wh_total"),
            load_kwh_total=num("load_wh_total"),
            battery_in_kwh_total=num("battery_in_wh_total"),
            battery_out_kwh_total=num("battery_out_wh_total"),
            grid_in_kwh_total=num("grid_in_wh_total"),
            grid_out_kwh_total=num("grid_out_wh_total"),
            raw=body,
        )


@dataclass(frozen=True)
class FetchResult:
    """Outcome of SelectronicClient.fetch_data.

    Attributes:
        success: True when ``data`` holds a snapshot.
        data: The snapshot (success only).
        error: Error message (failure only).
        status_code: HTTP status of a failed response, if any.
    """

    success: bool
    data: SelectronicData | None = None
    error: str | None = None
    status_code: int | None = None


def in_magic_window(now: datetime | None = None) -> bool:
    """True during minutes 48-52 of the hour."""
    now = now if now is not None else utc_now()
    return now.minute in MAGIC_WINDOW_MINUTES


class SelectronicClient:
    """Cookie-session client for one Select.Live system.

    Args:
        email: Select.Live account email.
        password: Select.Live account password.
        system_number: Select.Live system (serial) number.
        base_url: Select.Live base URL.
        timeout: Request timeout in seconds.
        cookies: Session cookies from an earlier login, if any.
        http_client: Optional shared ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        email: str,
        password: str,
        system_number: str,
        base_url: str = "https://select.live",
        timeout: float = 30.0,
        cookies: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._email = email
        self._password = password
        self._system_number = system_number
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._cookies: dict[str, str] = dict(cookies or {})
        self._http = http_client

    @property
    def cookies(self) -> dict[str, str]:
        """Current session cookies (a copy)."""
        return dict(self._cookies)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def authenticate(self) -> bool:
        """Log in with a form POST, without following redirects.

        Returns:
            True when the login redirected to the dashboard or systems page,
            or answered 200 with session cookies and no error message.
        """
        logger.info("Authenticating with Select.Live for system %s", self._system_number)
        try:
            response = await self._send(
                "POST",
                LOGIN_PATH,
                data={"email": self._email, "pwd": self._password},
                headers={"User-Agent": _USER_AGENT, "Accept": "*/*"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Select.Live login request failed: %s", exc)
            return False

        self._cookies.update(dict(response.cookies.items()))

        if response.status_code in (301, 302):
            location = response.headers.get("location", "")
            if "dashboard" in location or "systems" in location:
                logger.info("Select.Live login succeeded (redirect to %s)", location)
                return True

        if response.status_code == 200:
            if "Bad email address or password" in response.text:
                logger.warning("Select.Live login rejected: bad email or password")
                return False
            if self._cookies:
                logger.info("Select.Live login succeeded (session cookies)")
                return True
            logger.warning("Select.Live returned the login page without cookies")
            return False

        logger.warning("Unexpected Select.Live login status %d", response.status_code)
        return False

    async def fetch_data(self, now: datetime | None = None) -> FetchResult:
        """Fetch the latest snapshot, logging in first if needed.

        A 401 clears the session, logs in again and retries once.

        Args:
            now: Reference time for the magic-window check and the
                timestamp fallback (default: now).
        """
        now = ensure_utc(now) if now is not None else utc_now()
        if not self._cookies and not await self.authenticate():
            return FetchResult(False, error=AUTH_FAILED)

        try:
            response = await self._get_data()
            if response.status_code == 401:
                logger.info("Select.Live session expired, re-authenticating")
                self._cookies.clear()
                if not await self.authenticate():
                    return FetchResult(False, error=AUTH_FAILED, status_code=401)
                response = await self._get_data()
        except httpx.HTTPError as exc:
            logger.warning("Select.Live data request failed: %s", exc)
            return FetchResult(False, error=str(exc) or type(exc).__name__)

        if not response.is_success:
            status = response.status_code
            if status in (500, 503) and in_magic_window(now):
                logger.warning("Select.Live request failed during magic window")
                return FetchResult(
                    False, error=f"{MAGIC_WINDOW} (HTTP {status})", status_code=status
                )
            return FetchResult(
                False,
                error=f"HTTP {status}: {response.reason_phrase}",
                status_code=status,
            )

        try:
            body = response.json()
        except ValueError:
            return FetchResult(False, error="Invalid JSON from Select.Live")

        data = SelectronicData.from_response(body, now)
        logger.debug(
            "Select.Live data at %s (%ds delay)",
            data.timestamp.isoformat(),
            int((now - data.timestamp).total_seconds()),
        )
        return FetchResult(True, data=data)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_data(self) -> httpx.Response:
        cookie = "; ".join(f"{k}={v}" for k, v in self._cookies.items())
        return await self._send(
            "GET",
            f"{DATA_PATH}/{self._system_number}",
            headers={
                "Cookie": cookie,
                "User-Agent": _USER_AGENT,
                "Accept": "application/json",
            },
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._http is not None:
            return await self._http.request(method, url, follow_redirects=False, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout, verify=True) as client:
            return await client.request(method, url, follow_redirects=False, **kwargs)
