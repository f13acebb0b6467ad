"""GPS Relay API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from .const import API_TIMEOUT
from .models import LocationRecord

_LOGGER = logging.getLogger(__name__)

REQUIRED_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class GPSRelayError(Exception):
    """General GPS Relay error."""


class CapabilityUnavailable(GPSRelayError):
    """The host has no usable location source."""


class FixError(GPSRelayError):
    """A single position fix could not be obtained."""


class SendError(GPSRelayError):
    """A location record could not be delivered."""


class GPSRelayApiClient:
    """Client for a location collection endpoint."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        timeout: float = API_TIMEOUT,
    ) -> None:
        """Initialize the API client."""
        self._session = session
        self._endpoint = endpoint
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        """Return the configured endpoint."""
        return self._endpoint

    async def async_post_location(self, record: LocationRecord) -> dict[str, Any]:
        """POST a location record and return the decoded response body."""
        try:
            async with asyncio.timeout(self._timeout):
                resp = await self._session.post(
                    self._endpoint, json=record.to_dict(), headers=REQUIRED_HEADERS
                )
                body = await _async_read_json(resp)
        except (TimeoutError, aiohttp.ClientError) as err:
            raise SendError(f"Error communicating with {self._endpoint}: {err}") from err

        if not 200 <= resp.status < 300:
            message = None
            if isinstance(body, dict):
                message = body.get("error")
            if not isinstance(message, str) or not message:
                message = f"HTTP {resp.status}"
            raise SendError(message)

        if not isinstance(body, dict):
            return {}
        return body


async def _async_read_json(resp: aiohttp.ClientResponse) -> Any:
    """Decode a JSON body, returning None when it cannot be parsed."""
    try:
        return await resp.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError):
        _LOGGER.debug("Response from %s is not JSON", resp.url)
        return None
