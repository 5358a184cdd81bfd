"""
SQLAlchemy ORM models for the LiveOne database.

Defines the vendor systems, their stored credentials and polling status,
point-in-time readings (Selectronic) and vendor-supplied 5-minute intervals
(Enphase). Composite primary keys on (system_id, time) make every write
idempotent.

CHANGELOG:
- 2026-10-18: Accept JSON-encoded location strings
- 2026-10-13: Add interval_readings for Enphase 5-minute data
- 2026-10-12: Initial creation

TODO:
- None
"""

import datetime
import json
import logging
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Double,
    ForeignKey,
    Integer,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

logger = logging.getLogger(__name__)

DEFAULT_LATITUDE = -37.8136
DEFAULT_LONGITUDE = 144.9631


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all LiveOne ORM models."""

    pass


class System(Base):
    """A vendor installation (inverter site) owned by a user.

    Attributes:
        id: Surrogate key.
        owner_id: Identifier of the owning user.
        vendor_type: Adapter key, e.g. ``enphase`` or ``selectronic``.
        vendor_site_id: The vendor's identifier for the site.
        status: ``active``, ``disabled`` or ``removed``.
        display_name: Human-readable name.
        location: JSON object with ``lat``/``lon`` (nullable), possibly stored
            as an encoded string.
        timezone_offset_min: Standard offset in minutes ahead of UTC.
        created_at: Creation time in UTC.
    """

    __tablename__ = "systems"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    vendor_type: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_site_id: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'active'"), index=True
    )
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    timezone_offset_min: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("600")
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def coordinates(self) -> tuple[float, float]:
        """Return ``(lat, lon)``, falling back to Melbourne when unset.

        ``location`` may hold a JSON-encoded string instead of an object;
        an unparseable string counts as unset.
        """
        loc: Any = self.location or {}
        if isinstance(loc, str):
            try:
                loc = json.loads(loc)
            except ValueError:
                logger.warning("System %s has an unparseable location", self.id)
                loc = {}
        if not isinstance(loc, dict):
            loc = {}
        lat, lon = loc.get("lat"), loc.get("lon")
        if lat is None or lon is None:
            return DEFAULT_LATITUDE, DEFAULT_LONGITUDE
        return float(lat), float(lon)

    def __repr__(self) -> str:
        """Return string representation of the System."""
        return (
            f"System(id={self.id!r}, vendor_type={self.vendor_type!r}, "
            f"display_name={self.display_name!r})"
        )


class VendorCredentials(Base):
    """Vendor credentials for a system, stored as a JSON document.

    Enphase: ``access_token``, ``refresh_token``, ``expires_at`` (ISO 8601),
    ``enphase_user_id``. Selectronic: ``email``, ``password``.
    """

    __tablename__ = "vendor_credentials"

    system_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("systems.id", ondelete="CASCADE"),
        primary_key=True,
    )
    vendor_type: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class PollingStatus(Base):
    """Health counters for a system's vendor polling."""

    __tablename__ = "polling_status"

    system_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("systems.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_poll_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_success_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error_time: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    consecutive_errors: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    total_polls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    successful_polls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Reading(Base):
    """Point-in-time telemetry reading for a system.

    Power values are in watts (battery positive = discharging for
    Selectronic), energy totals are lifetime kWh counters.
    """

    __tablename__ = "readings"

    system_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("systems.id", ondelete="CASCADE"),
        primary_key=True,
    )
    inverter_time: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    received_time: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    delay_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    solar_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_local_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_remote_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    load_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_soc: Mapped[float | None] = mapped_column(Double, nullable=True)
    fault_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    fault_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    generator_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    solar_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    load_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_in_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_out_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_in_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_out_kwh_total: Mapped[float | None] = mapped_column(Double, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the Reading."""
        return (
            f"Reading(system_id={self.system_id!r}, "
            f"inverter_time={self.inverter_time!r}, solar_w={self.solar_w!r})"
        )


class IntervalReading(Base):
    """Vendor-aggregated 5-minute interval for a system.

    ``interval_end`` is Unix seconds and marks the END of the interval, so
    the 23:55-00:00 interval of a day is labelled with the next midnight.
    """

    __tablename__ = "interval_readings"

    system_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("systems.id", ondelete="CASCADE"),
        primary_key=True,
    )
    interval_end: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    solar_w_avg: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_w_min: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_w_max: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_interval_wh: Mapped[float | None] = mapped_column(Double, nullable=True)
    sample_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
