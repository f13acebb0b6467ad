"""Data models for the GPS Relay integration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .const import MOVING_SPEED_THRESHOLD, OFFLINE_AFTER, STATUS_IDLE, STATUS_MOVING, STATUS_OFFLINE


@dataclass(frozen=True)
class LocationRecord:
    """Canonical location record relayed to a sink."""

    device_id: str
    lat: float
    lng: float
    timestamp: int
    speed: float | None = None  # km/h
    heading: float | None = None
    accuracy: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation."""
        return {
            "deviceId": self.device_id,
            "lat": self.lat,
            "lng": self.lng,
            "speed": self.speed,
            "heading": self.heading,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationRecord:
        """Build a record from its wire representation."""
        return cls(
            device_id=str(data["deviceId"]),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            timestamp=int(data["timestamp"]),
            speed=data.get("speed"),
            heading=data.get("heading"),
            accuracy=data.get("accuracy"),
        )

    def position(self) -> dict[str, Any]:
        """Return the position part of the record, as cached by the worker."""
        return {
            "lat": self.lat,
            "lng": self.lng,
            "speed": self.speed,
            "heading": self.heading,
            "accuracy": self.accuracy,
        }


@dataclass
class RawSample:
    """A position fix as reported by a location source."""

    latitude: float
    longitude: float
    speed: float | None = None  # m/s
    heading: float | None = None
    accuracy: float | None = None
    fix_time: datetime | None = None


@dataclass
class TrackerState:
    """State shown to the user while relaying."""

    tracking: bool = False
    last_record: LocationRecord | None = None
    sent_count: int = 0
    last_sent: datetime | None = None
    last_error: str | None = None
    success_message: str | None = None


def device_status(record: LocationRecord | None, now: datetime) -> str:
    """Classify a device as moving, idle or offline from its latest record."""
    if record is None:
        return STATUS_OFFLINE

    age_ms = now.timestamp() * 1000 - record.timestamp
    if age_ms > OFFLINE_AFTER.total_seconds() * 1000:
        return STATUS_OFFLINE
    if record.speed is not None and record.speed > MOVING_SPEED_THRESHOLD:
        return STATUS_MOVING
    return STATUS_IDLE
