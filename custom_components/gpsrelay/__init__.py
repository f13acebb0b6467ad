"""The GPS Relay integration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
import logging

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import async_track_time_interval

from .api import GPSRelayApiClient
from .const import (
    ATTR_ACCURACY,
    ATTR_DEVICE_ID,
    ATTR_HEADING,
    ATTR_LATITUDE,
    ATTR_LONGITUDE,
    ATTR_SPEED,
    CONF_BACKGROUND,
    CONF_ENDPOINT,
    CONF_INTERVAL,
    CONF_SINK,
    CONF_SOURCE,
    DEFAULT_BACKGROUND,
    DEFAULT_INTERVAL,
    DOMAIN,
    EVENT_LOCATION_STORED,
    SERVICE_SEND_LOCATION,
    SERVICE_START_TRACKING,
    SERVICE_STOP_TRACKING,
    SINK_REMOTE,
    SOURCE_SIMULATION,
    STORE_KEY_PREFIX,
)
from .coordinator import GPSRelayCoordinator
from .relay import LocalSink, RelaySink, RemoteSink
from .sampler import EntityLocationSource, LocationSource, SimulatedLocationSource
from .store import LocationStore, StoreChange
from .worker import BackgroundRelayWorker, IntervalAction

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.BINARY_SENSOR, Platform.DEVICE_TRACKER, Platform.SENSOR]

DATA_STORE = f"{DOMAIN}_store"

TRACKING_SERVICE_SCHEMA = vol.Schema({vol.Optional(ATTR_DEVICE_ID): cv.string})

SEND_LOCATION_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_DEVICE_ID): cv.string,
        vol.Required(ATTR_LATITUDE): vol.Coerce(float),
        vol.Required(ATTR_LONGITUDE): vol.Coerce(float),
        vol.Optional(ATTR_SPEED): vol.Coerce(float),
        vol.Optional(ATTR_HEADING): vol.Coerce(float),
        vol.Optional(ATTR_ACCURACY): vol.Coerce(float),
    }
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up GPS Relay from a config entry."""
    config = {**entry.data, **entry.options}
    interval = timedelta(seconds=config.get(CONF_INTERVAL, DEFAULT_INTERVAL))

    sink: RelaySink
    worker: BackgroundRelayWorker | None = None
    if config[CONF_SINK] == SINK_REMOTE:
        api_client = GPSRelayApiClient(
            session=async_get_clientsession(hass),
            endpoint=config[CONF_ENDPOINT],
        )
        sink = RemoteSink(api_client)
        if config.get(CONF_BACKGROUND, DEFAULT_BACKGROUND):
            worker = BackgroundRelayWorker(
                RemoteSink(api_client),
                interval=interval,
                scheduler=_interval_scheduler(hass),
            )
    else:
        sink = LocalSink(_async_get_store(hass))

    source: LocationSource
    if config[CONF_SOURCE] == SOURCE_SIMULATION:
        source = SimulatedLocationSource(interval=interval.total_seconds())
    else:
        source = EntityLocationSource(hass, config[CONF_SOURCE])

    coordinator = GPSRelayCoordinator(hass, entry, source, sink, worker)
    await coordinator.async_config_entry_first_refresh()
    if worker is not None:
        await worker.async_start()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _async_register_services(hass)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: GPSRelayCoordinator = hass.data[DOMAIN].pop(entry.entry_id)
        await coordinator.async_shutdown()
        if not hass.data[DOMAIN]:
            for service in (
                SERVICE_START_TRACKING,
                SERVICE_STOP_TRACKING,
                SERVICE_SEND_LOCATION,
            ):
                hass.services.async_remove(DOMAIN, service)
    return unload_ok


def _interval_scheduler(
    hass: HomeAssistant,
) -> Callable[[IntervalAction, timedelta], Callable[[], None]]:
    """Return a worker scheduler backed by the Home Assistant event helpers."""

    def schedule(action: IntervalAction, interval: timedelta) -> Callable[[], None]:
        return async_track_time_interval(hass, action, interval)

    return schedule


@callback
def _async_get_store(hass: HomeAssistant) -> LocationStore:
    """Return the location store shared by all entries."""
    if (store := hass.data.get(DATA_STORE)) is not None:
        return store

    store = LocationStore()

    @callback
    def _location_stored(change: StoreChange) -> None:
        hass.bus.async_fire(
            EVENT_LOCATION_STORED,
            {
                "key": change.key,
                ATTR_DEVICE_ID: change.key.removeprefix(STORE_KEY_PREFIX),
            },
        )

    store.async_listen(None, _location_stored)
    hass.data[DATA_STORE] = store
    return store


def _coordinators(hass: HomeAssistant, call: ServiceCall) -> list[GPSRelayCoordinator]:
    coordinators: list[GPSRelayCoordinator] = list(hass.data.get(DOMAIN, {}).values())
    if (device_id := call.data.get(ATTR_DEVICE_ID)) is not None:
        coordinators = [c for c in coordinators if c.device_id == device_id]
        if not coordinators:
            raise HomeAssistantError(f"Unknown device {device_id}")
    return coordinators


@callback
def _async_register_services(hass: HomeAssistant) -> None:
    """Register the tracking services once."""
    if hass.services.has_service(DOMAIN, SERVICE_START_TRACKING):
        return

    async def async_start_tracking(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call):
            coordinator.async_start_tracking()

    async def async_stop_tracking(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call):
            coordinator.async_stop_tracking()

    async def async_send_location(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call):
            result = await coordinator.async_send_manual(
                latitude=call.data[ATTR_LATITUDE],
                longitude=call.data[ATTR_LONGITUDE],
                speed=call.data.get(ATTR_SPEED),
                heading=call.data.get(ATTR_HEADING),
                accuracy=call.data.get(ATTR_ACCURACY),
            )
            if not result.ok:
                raise HomeAssistantError(
                    f"Failed to send location for {coordinator.device_id}: {result.error}"
                )

    hass.services.async_register(
        DOMAIN, SERVICE_START_TRACKING, async_start_tracking, TRACKING_SERVICE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_STOP_TRACKING, async_stop_tracking, TRACKING_SERVICE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SEND_LOCATION, async_send_location, SEND_LOCATION_SCHEMA
    )
