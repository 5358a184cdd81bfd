"""
Vendor adapter for Selectronic systems via Select.Live.

Selectronic is polled on every tick. Session cookies are cached per
(email, system) for 25 minutes of the 30-minute session lifetime and renewed
when fewer than 5 minutes remain. Each successful poll stores one reading
and refreshes the 5-minute interval it falls in.

CHANGELOG:
- 2026-10-18: Aggregate new readings into 5-minute intervals
- 2026-10-13: Cache session cookies instead of re-logging every poll
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx

from liveone.config import get_settings
from liveone.dates import ensure_utc, next_minute_boundary
from liveone.services.ingestion import aggregate_interval, store_reading
from liveone.vendors.base import CredentialsNotFoundError, PollingResult, VendorAdapter
from liveone.vendors.credentials import get_credentials
from liveone.vendors.selectronic.client import (
    AUTH_FAILED,
    SelectronicClient,
    SelectronicData,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from liveone.db.models import System

logger = logging.getLogger(__name__)

AUTH_CACHE_TTL = timedelta(minutes=25)
AUTH_RENEW_MARGIN = timedelta(minutes=5)


@dataclass
class _CachedSession:
    cookies: dict[str, str]
    expires: datetime


def reading_from_data(
    system_id: int, data: SelectronicData, received: datetime
) -> dict[str, Any]:
    """Map a Select.Live snapshot to a ``readings`` row.

    SOC is rounded to 0.1 % and lifetime totals to 1 Wh (0.001 kWh). Zero
    fault timestamps and generator states are stored as NULL.
    """
    received = ensure_utc(received)
    return {
        "system_id": system_id,
        "inverter_time": data.timestamp,
        "received_time": received,
        "delay_seconds": int((received - data.timestamp).total_seconds()),
        "solar_w": data.solar_w,
        "solar_local_w": data.shunt_w,
        "solar_remote_w": data.solar_inverter_w,
        "load_w": data.load_w,
        "battery_w": data.battery_w,
        "grid_w": data.grid_w,
        "battery_soc": round(data.battery_soc, 1),
        "fault_code": str(data.fault_code),
        "fault_timestamp": data.fault_timestamp or None,
        "generator_status": data.generator_status or None,
        "solar_kwh_total": round(data.solar_kwh_total, 3),
        "load_kwh_total": round(data.load_kwh_total, 3),
        "battery_in_kwh_total": round(data.battery_in_kwh_total, 3),
        "battery_out_kwh_total": round(data.battery_out_kwh_total, 3),
        "grid_in_kwh_total": round(data.grid_in_kwh_total, 3),
        "grid_out_kwh_total": round(data.grid_out_kwh_total, 3),
    }


class SelectronicAdapter(VendorAdapter):
    """Adapter for Selectronic SP PRO systems on Select.Live.

    Args:
        base_url: Select.Live base URL (default: Settings).
        timeout: Request timeout in seconds (default: Settings).
        http_client: Optional shared ``httpx.AsyncClient``.
    """

    vendor_type = "selectronic"
    display_name = "Selectronic"
    data_source = "poll"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._http = http_client
        self._auth_cache: dict[str, _CachedSession] = {}

    def _client(
        self, credentials: dict[str, Any], system: System, cookies: dict[str, str] | None
    ) -> SelectronicClient:
        settings = get_settings()
        return SelectronicClient(
            email=credentials["email"],
            password=credentials["password"],
            system_number=system.vendor_site_id,
            base_url=self._base_url or settings.selectronic_base_url,
            timeout=self._timeout or settings.http_timeout_s,
            cookies=cookies,
            http_client=self._http,
        )

    async def poll(
        self,
        db: AsyncSession,
        system: System,
        now: datetime,
        force: bool = False,
    ) -> PollingResult:
        now = ensure_utc(now)
        credentials = await get_credentials(db, system.id)
        if not credentials or not credentials.get("email"):
            return self.error(CredentialsNotFoundError(system.id, self.vendor_type))

        cache_key = f"{credentials['email']}:{system.vendor_site_id}"
        cached = self._auth_cache.get(cache_key)
        if cached is not None and cached.expires > now + AUTH_RENEW_MARGIN:
            client = self._client(credentials, system, cached.cookies)
        else:
            client = self._client(credentials, system, None)
            if not await client.authenticate():
                self._auth_cache.pop(cache_key, None)
                return self.error(AUTH_FAILED)
            self._auth_cache[cache_key] = _CachedSession(
                client.cookies, now + AUTH_CACHE_TTL
            )

        result = await client.fetch_data(now)
        if not result.success or result.data is None:
            if result.status_code == 401:
                self._auth_cache.pop(cache_key, None)
            return self.error(result.error or "Failed to fetch data", result.status_code)

        entry = self._auth_cache.get(cache_key)
        if entry is None or entry.cookies != client.cookies:
            # the client logged in again after a 401
            self._auth_cache[cache_key] = _CachedSession(
                client.cookies, now + AUTH_CACHE_TTL
            )

        data = result.data
        reading = reading_from_data(system.id, data, now)
        inserted = await store_reading(db, reading)
        if inserted:
            await aggregate_interval(db, system.id, reading["inverter_time"])
        logger.info(
            "Selectronic system %s: solar=%sW load=%sW battery=%sW soc=%.1f%% at %s",
            system.id,
            data.solar_w,
            data.load_w,
            data.battery_w,
            data.battery_soc,
            data.timestamp.isoformat(),
        )
        return self.polled(inserted, next_minute_boundary(now))
