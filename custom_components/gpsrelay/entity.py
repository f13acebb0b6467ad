"""Base entity for the GPS Relay integration."""

from __future__ import annotations

from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import GPSRelayCoordinator


class GPSRelayEntity(CoordinatorEntity[GPSRelayCoordinator]):
    """Base class for GPS Relay entities."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: GPSRelayCoordinator) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, coordinator.device_id)},
            name=coordinator.device_id,
            manufacturer="GPS Relay",
            model="Location relay",
        )
