"""Turn raw position fixes into location records."""

from __future__ import annotations

import time
from typing import Any

from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import State

from .api import FixError
from .const import SPEED_FACTOR
from .models import LocationRecord, RawSample


def convert_speed(raw_speed: float | None) -> float | None:
    """Convert a speed in m/s to km/h, keeping an unknown speed unknown."""
    if raw_speed is None:
        return None
    return float(raw_speed) * SPEED_FACTOR


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_record(
    device_id: str, sample: RawSample, now_ms: int | None = None
) -> LocationRecord:
    """Build a location record from a raw sample.

    The timestamp is taken when the record is built, not from the fix.
    """
    return LocationRecord(
        device_id=device_id,
        lat=float(sample.latitude),
        lng=float(sample.longitude),
        timestamp=now_ms if now_ms is not None else _now_ms(),
        speed=convert_speed(sample.speed),
        heading=_optional_float(sample.heading),
        accuracy=_optional_float(sample.accuracy),
    )


def record_from_position(
    device_id: str, position: dict[str, Any], now_ms: int | None = None
) -> LocationRecord:
    """Rebuild a record from an already normalized position."""
    return LocationRecord(
        device_id=device_id,
        lat=float(position["lat"]),
        lng=float(position["lng"]),
        timestamp=now_ms if now_ms is not None else _now_ms(),
        speed=_optional_float(position.get("speed")),
        heading=_optional_float(position.get("heading")),
        accuracy=_optional_float(position.get("accuracy")),
    )


def sample_from_state(state: State | None) -> RawSample:
    """Extract a raw sample from a tracker entity state.

    Raises FixError when the state carries no usable position.
    """
    if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
        raise FixError("Position unavailable")

    attrs = state.attributes
    try:
        latitude = float(attrs["latitude"])
        longitude = float(attrs["longitude"])
    except (KeyError, ValueError, TypeError) as err:
        raise FixError(f"Position unavailable for {state.entity_id}") from err

    heading = attrs.get("course")
    if heading is None:
        heading = attrs.get("heading")

    return RawSample(
        latitude=latitude,
        longitude=longitude,
        speed=_optional_float(attrs.get("speed")),
        heading=_optional_float(heading),
        accuracy=_optional_float(attrs.get("gps_accuracy")),
        fix_time=state.last_updated,
    )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None
