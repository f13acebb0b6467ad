"""Relay sinks for location records."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Protocol

from .api import GPSRelayApiClient, SendError
from .const import STORE_KEY_PREFIX
from .models import LocationRecord
from .store import LocationStore

_LOGGER = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Outcome of a single send."""

    ok: bool
    ack: dict[str, Any] = field(default_factory=dict)
    error: SendError | None = None


class RelaySink(Protocol):
    """Something a location record can be delivered to."""

    async def async_send(self, record: LocationRecord) -> SendResult:
        """Deliver one record."""


def store_key(device_id: str) -> str:
    """Return the store key for a device."""
    return f"{STORE_KEY_PREFIX}{device_id}"


class RemoteSink:
    """Deliver records to an HTTP endpoint."""

    def __init__(self, api_client: GPSRelayApiClient) -> None:
        """Initialize the sink."""
        self._api_client = api_client

    async def async_send(self, record: LocationRecord) -> SendResult:
        """POST the record; failures are returned, not raised."""
        try:
            ack = await self._api_client.async_post_location(record)
        except SendError as err:
            _LOGGER.debug(
                "Sending location of %s to %s failed: %s",
                record.device_id,
                self._api_client.endpoint,
                err,
            )
            return SendResult(ok=False, error=err)
        return SendResult(ok=True, ack=ack)


class LocalSink:
    """Deliver records into the shared location store."""

    def __init__(self, store: LocationStore) -> None:
        """Initialize the sink."""
        self._store = store

    async def async_send(self, record: LocationRecord) -> SendResult:
        """Write the record under its device key."""
        key = store_key(record.device_id)
        try:
            value = json.dumps(record.to_dict())
        except (TypeError, ValueError) as err:
            return SendResult(ok=False, error=SendError(f"Cannot serialize record: {err}"))

        self._store.set(key, value)
        return SendResult(ok=True, ack={"key": key})
