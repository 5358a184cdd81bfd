"""
Vendor adapter contract, result types and the vendor error hierarchy.

Every vendor integration subclasses VendorAdapter and is looked up through
the VendorRegistry. Adapters decide whether a system is due
(``should_poll``) and perform the poll (``poll``), always returning a
PollingResult instead of raising for expected vendor failures.

CHANGELOG:
- 2026-10-13: Add VendorApiError.status_code
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from liveone.db.models import PollingStatus, System


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class VendorError(Exception):
    """Base class for failures talking to a vendor."""


class CredentialsNotFoundError(VendorError):
    """No stored credentials exist for the system."""

    def __init__(self, system_id: int, vendor_type: str) -> None:
        super().__init__(f"No {vendor_type} credentials for system {system_id}")
        self.system_id = system_id
        self.vendor_type = vendor_type


class TokenRefreshError(VendorError):
    """The OAuth refresh-token exchange failed."""


class VendorApiError(VendorError):
    """A vendor API call returned an unexpected response.

    Attributes:
        status_code: HTTP status of the failed response, if there was one.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class PollAction(enum.StrEnum):
    """Outcome of a single system poll."""

    POLLED = "POLLED"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ScheduleDecision:
    """Whether a system is due for polling, and why.

    Attributes:
        should_poll: True when the system should be polled now.
        reason: Human-readable explanation (always set when skipping).
        next_poll: Next time the system is expected to be due, if known.
    """

    should_poll: bool
    reason: str | None = None
    next_poll: datetime | None = None


@dataclass(frozen=True)
class PollingResult:
    """Result of an adapter poll.

    Attributes:
        action: POLLED, SKIPPED or ERROR.
        records_processed: Rows written (POLLED only).
        reason: Why the poll was skipped or failed.
        error: Error message (ERROR only).
        error_code: HTTP status or other vendor code (ERROR only).
        next_poll: Next expected poll time, if known.
    """

    action: PollAction
    records_processed: int = 0
    reason: str | None = None
    error: str | None = None
    error_code: str | None = None
    next_poll: datetime | None = None


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------


class VendorAdapter(abc.ABC):
    """Base class for vendor integrations.

    Subclasses set ``vendor_type``, ``display_name`` and ``data_source``
    and implement ``poll``. The default ``should_poll`` polls on every
    tick unless forced or overridden.
    """

    vendor_type: str
    display_name: str
    data_source: str = "poll"

    async def should_poll(
        self,
        system: System,
        status: PollingStatus | None,
        now: datetime,
        force: bool = False,
    ) -> ScheduleDecision:
        """Decide whether *system* is due at *now*."""
        if force:
            return ScheduleDecision(True, "Forced")
        return ScheduleDecision(True)

    @abc.abstractmethod
    async def poll(
        self,
        db: AsyncSession,
        system: System,
        now: datetime,
        force: bool = False,
    ) -> PollingResult:
        """Fetch and store data for *system*."""

    # -- result helpers ----------------------------------------------------

    @staticmethod
    def skipped(reason: str, next_poll: datetime | None = None) -> PollingResult:
        return PollingResult(PollAction.SKIPPED, reason=reason, next_poll=next_poll)

    @staticmethod
    def polled(records: int, next_poll: datetime | None = None) -> PollingResult:
        return PollingResult(
            PollAction.POLLED, records_processed=records, next_poll=next_poll
        )

    @staticmethod
    def error(
        error: str | BaseException, error_code: str | int | None = None
    ) -> PollingResult:
        message = str(error) if isinstance(error, BaseException) else error
        if error_code is None and isinstance(error, VendorApiError):
            error_code = error.status_code
        return PollingResult(
            PollAction.ERROR,
            error=message,
            error_code=str(error_code) if error_code is not None else None,
        )
