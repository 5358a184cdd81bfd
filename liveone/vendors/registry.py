"""
Registry mapping vendor types to adapter instances.

Lookups are case-insensitive. ``select.live`` is kept as an alias of
``selectronic`` for systems created under the old vendor name.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

from liveone.vendors.base import VendorAdapter
from liveone.vendors.enphase.adapter import EnphaseAdapter
from liveone.vendors.selectronic.adapter import SelectronicAdapter

logger = logging.getLogger(__name__)


class VendorRegistry:
    """Holds one adapter instance per vendor type.

    Args:
        adapters: Initial ``vendor_type -> adapter`` mapping. When omitted
            the built-in Enphase and Selectronic adapters are registered.
    """

    def __init__(self, adapters: dict[str, VendorAdapter] | None = None) -> None:
        self._adapters: dict[str, VendorAdapter] = {}
        if adapters is None:
            selectronic = SelectronicAdapter()
            adapters = {
                "selectronic": selectronic,
                "select.live": selectronic,
                "enphase": EnphaseAdapter(),
            }
        for vendor_type, adapter in adapters.items():
            self.register(vendor_type, adapter)

    def register(self, vendor_type: str, adapter: VendorAdapter) -> None:
        """Register (or replace) the adapter for *vendor_type*."""
        self._adapters[vendor_type.lower()] = adapter
        logger.debug("Registered adapter for %s", vendor_type)

    def get_adapter(self, vendor_type: str) -> VendorAdapter | None:
        """Return the adapter for *vendor_type*, or None if unsupported."""
        return self._adapters.get(vendor_type.lower())

    def is_supported(self, vendor_type: str) -> bool:
        return vendor_type.lower() in self._adapters

    def vendor_types(self) -> list[str]:
        """All registered vendor type keys, aliases included."""
        return list(self._adapters)

    def supports_polling(self, vendor_type: str) -> bool:
        """True when the vendor's data is pulled (not pushed)."""
        adapter = self.get_adapter(vendor_type)
        if adapter is None:
            return False
        return adapter.data_source in ("poll", "combined")


_default_registry: VendorRegistry | None = None


def get_registry() -> VendorRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _default_registry  # noqa: PLW0603
    if _default_registry is None:
        _default_registry = VendorRegistry()
    return _default_registry
