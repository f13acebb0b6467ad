"""Binary sensor platform for GPS Relay."""

from __future__ import annotations

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from .const import DOMAIN, STATUS_MOVING
from .coordinator import GPSRelayCoordinator
from .entity import GPSRelayEntity


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up GPS Relay binary sensors from a config entry."""
    coordinator: GPSRelayCoordinator = hass.data[DOMAIN][config_entry.entry_id]
    async_add_entities(
        [GPSRelayTrackingSensor(coordinator), GPSRelayMovingSensor(coordinator)]
    )


class GPSRelayTrackingSensor(GPSRelayEntity, BinarySensorEntity):
    """Binary sensor showing whether fixes are being relayed."""

    _attr_device_class = BinarySensorDeviceClass.RUNNING
    _attr_translation_key = "tracking"

    def __init__(self, coordinator: GPSRelayCoordinator) -> None:
        """Initialize the binary sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"gpsrelay_{coordinator.device_id}_tracking"

    @property
    def is_on(self) -> bool | None:
        """Return true while tracking."""
        if self.coordinator.data is None:
            return None
        return self.coordinator.data.tracking


class GPSRelayMovingSensor(GPSRelayEntity, BinarySensorEntity):
    """Binary sensor indicating whether the device is moving."""

    _attr_device_class = BinarySensorDeviceClass.MOTION
    _attr_translation_key = "moving"

    def __init__(self, coordinator: GPSRelayCoordinator) -> None:
        """Initialize the binary sensor."""
        super().__init__(coordinator)
        self._attr_unique_id = f"gpsrelay_{coordinator.device_id}_moving"

    @property
    def is_on(self) -> bool | None:
        """Return true if the device is moving."""
        if self.coordinator.data is None:
            return None
        return self.coordinator.status == STATUS_MOVING
