"""Config flow for GPS Relay integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult

from .const import (
    CONF_BACKGROUND,
    CONF_DEVICE_ID,
    CONF_ENDPOINT,
    CONF_INTERVAL,
    CONF_SINK,
    CONF_SOURCE,
    CONF_TIMEOUT,
    DEFAULT_BACKGROUND,
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    DOMAIN,
    SINK_REMOTE,
    SINKS,
    SOURCE_SIMULATION,
)

_LOGGER = logging.getLogger(__name__)

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_DEVICE_ID): str,
        vol.Required(CONF_SOURCE, default=SOURCE_SIMULATION): str,
        vol.Required(CONF_SINK, default=SINK_REMOTE): vol.In(SINKS),
        vol.Optional(CONF_ENDPOINT, default=""): str,
        vol.Required(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(int), vol.Range(min=5, max=60)
        ),
        vol.Required(CONF_BACKGROUND, default=DEFAULT_BACKGROUND): bool,
        vol.Required(CONF_INTERVAL, default=DEFAULT_INTERVAL): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=300)
        ),
    }
)


def validate_endpoint(endpoint: str) -> str:
    """Return the endpoint if it is an http(s) URL, raise vol.Invalid otherwise."""
    url = vol.Url()(endpoint)
    if not url.startswith(("http://", "https://")):
        raise vol.Invalid("endpoint must be an http(s) URL")
    return url


class GPSRelayConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for GPS Relay."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            device_id = user_input[CONF_DEVICE_ID].strip()
            source = user_input[CONF_SOURCE].strip()

            if not device_id:
                errors[CONF_DEVICE_ID] = "invalid_device_id"

            if source != SOURCE_SIMULATION and self.hass.states.get(source) is None:
                errors[CONF_SOURCE] = "source_not_found"

            endpoint = user_input.get(CONF_ENDPOINT, "").strip()
            if user_input[CONF_SINK] == SINK_REMOTE:
                try:
                    endpoint = validate_endpoint(endpoint)
                except vol.Invalid:
                    errors[CONF_ENDPOINT] = "invalid_endpoint"

            if not errors:
                await self.async_set_unique_id(device_id)
                self._abort_if_unique_id_configured()

                _LOGGER.debug("Creating GPS Relay entry for %s", device_id)
                return self.async_create_entry(
                    title=device_id,
                    data={
                        **user_input,
                        CONF_DEVICE_ID: device_id,
                        CONF_SOURCE: source,
                        CONF_ENDPOINT: endpoint,
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=self.add_suggested_values_to_schema(
                STEP_USER_DATA_SCHEMA, user_input
            ),
            errors=errors,
        )
