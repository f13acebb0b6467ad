"""Device tracker platform for GPS Relay."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from homeassistant.components.device_tracker import SourceType, TrackerEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from .const import (
    ATTR_DEVICE_ID,
    ATTR_HEADING,
    ATTR_LAST_SENT,
    ATTR_SENT_COUNT,
    ATTR_SPEED,
    DOMAIN,
)
from .coordinator import GPSRelayCoordinator
from .entity import GPSRelayEntity
from .models import LocationRecord


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the GPS Relay device tracker from a config entry."""
    coordinator: GPSRelayCoordinator = hass.data[DOMAIN][config_entry.entry_id]
    async_add_entities([GPSRelayTracker(coordinator)])


class GPSRelayTracker(GPSRelayEntity, TrackerEntity):
    """Position of the last record relayed for a device."""

    _attr_name = None

    def __init__(self, coordinator: GPSRelayCoordinator) -> None:
        """Initialize the tracker entity."""
        super().__init__(coordinator)
        self._attr_unique_id = f"gpsrelay_{coordinator.device_id}"

    @property
    def _record(self) -> LocationRecord | None:
        if self.coordinator.data is None:
            return None
        return self.coordinator.data.last_record

    @property
    def source_type(self) -> SourceType:
        """Return the source type."""
        return SourceType.GPS

    @property
    def latitude(self) -> float | None:
        """Return latitude value of the device."""
        if (record := self._record) is None:
            return None
        return record.lat

    @property
    def longitude(self) -> float | None:
        """Return longitude value of the device."""
        if (record := self._record) is None:
            return None
        return record.lng

    @property
    def location_accuracy(self) -> float:
        """Return the location accuracy of the device."""
        if (record := self._record) is None or record.accuracy is None:
            return 0
        return record.accuracy

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        """Return additional state attributes."""
        if self.coordinator.data is None:
            return None

        data = self.coordinator.data
        attrs: dict[str, Any] = {
            ATTR_DEVICE_ID: self.coordinator.device_id,
            ATTR_SENT_COUNT: data.sent_count,
        }

        if (record := data.last_record) is not None:
            if record.speed is not None:
                attrs[ATTR_SPEED] = record.speed
            if record.heading is not None:
                attrs[ATTR_HEADING] = record.heading
        if (last_sent := data.last_sent) is not None:
            attrs[ATTR_LAST_SENT] = _isoformat(last_sent)

        return attrs


def _isoformat(value: datetime) -> str:
    return dt_util.as_utc(value).isoformat()
