"""
Stored vendor credentials.

Credentials live in the vendor_credentials table as one JSON document per
system. Callers get plain dicts back; vendor modules own the field layout.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from liveone.dates import utc_now
from liveone.db.models import VendorCredentials

logger = logging.getLogger(__name__)


async def get_credentials(db: AsyncSession, system_id: int) -> dict[str, Any] | None:
    """Return the stored credential document for a system, or None."""
    row = await db.get(VendorCredentials, system_id)
    if row is None:
        return None
    return dict(row.data)


async def store_credentials(
    db: AsyncSession,
    system_id: int,
    vendor_type: str,
    data: dict[str, Any],
) -> None:
    """Create or replace the credential document for a system and commit.

    Args:
        db: Active database session.
        system_id: Owning system.
        vendor_type: Vendor the credentials belong to.
        data: JSON-serialisable credential fields.
    """
    row = await db.get(VendorCredentials, system_id)
    if row is None:
        row = VendorCredentials(system_id=system_id, vendor_type=vendor_type, data=data)
        db.add(row)
    else:
        row.vendor_type = vendor_type
        row.data = data
    row.updated_at = utc_now()
    await db.commit()
    logger.info("Stored %s credentials for system %s", vendor_type, system_id)
