"""Sensor platform for GPS Relay."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory, UnitOfSpeed
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from .const import DOMAIN, STATUS_IDLE, STATUS_MOVING, STATUS_OFFLINE
from .coordinator import GPSRelayCoordinator
from .entity import GPSRelayEntity
from .models import TrackerState, device_status


@dataclass(frozen=True, kw_only=True)
class GPSRelaySensorEntityDescription(SensorEntityDescription):
    """Describe a GPS Relay sensor entity."""

    value_fn: Callable[[TrackerState], float | int | str | datetime | None]


def _speed(state: TrackerState) -> float | None:
    if state.last_record is None:
        return None
    return state.last_record.speed


SENSOR_DESCRIPTIONS: tuple[GPSRelaySensorEntityDescription, ...] = (
    GPSRelaySensorEntityDescription(
        key="status",
        translation_key="status",
        device_class=SensorDeviceClass.ENUM,
        options=[STATUS_MOVING, STATUS_IDLE, STATUS_OFFLINE],
        value_fn=lambda state: device_status(state.last_record, dt_util.utcnow()),
    ),
    GPSRelaySensorEntityDescription(
        key="speed",
        translation_key="speed",
        device_class=SensorDeviceClass.SPEED,
        native_unit_of_measurement=UnitOfSpeed.KILOMETERS_PER_HOUR,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=_speed,
    ),
    GPSRelaySensorEntityDescription(
        key="sent_count",
        translation_key="sent_count",
        state_class=SensorStateClass.TOTAL_INCREASING,
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda state: state.sent_count,
    ),
    GPSRelaySensorEntityDescription(
        key="last_sent",
        translation_key="last_sent",
        device_class=SensorDeviceClass.TIMESTAMP,
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda state: state.last_sent,
    ),
    GPSRelaySensorEntityDescription(
        key="last_error",
        translation_key="last_error",
        entity_category=EntityCategory.DIAGNOSTIC,
        value_fn=lambda state: state.last_error,
    ),
    GPSRelaySensorEntityDescription(
        key="message",
        translation_key="message",
        value_fn=lambda state: state.success_message,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up GPS Relay sensors from a config entry."""
    coordinator: GPSRelayCoordinator = hass.data[DOMAIN][config_entry.entry_id]
    async_add_entities(
        GPSRelaySensor(coordinator, description) for description in SENSOR_DESCRIPTIONS
    )


class GPSRelaySensor(GPSRelayEntity, SensorEntity):
    """Represent a GPS Relay sensor."""

    entity_description: GPSRelaySensorEntityDescription

    def __init__(
        self,
        coordinator: GPSRelayCoordinator,
        description: GPSRelaySensorEntityDescription,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"gpsrelay_{coordinator.device_id}_{description.key}"

    @property
    def native_value(self) -> float | int | str | datetime | None:
        """Return the sensor value."""
        if self.coordinator.data is None:
            return None
        return self.entity_description.value_fn(self.coordinator.data)
