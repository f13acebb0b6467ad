"""DataUpdateCoordinator for GPS Relay."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.event import async_call_later
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from .api import CapabilityUnavailable, FixError
from .const import (
    CONF_DEVICE_ID,
    CONF_TIMEOUT,
    DEFAULT_TIMEOUT,
    DOMAIN,
    MSG_START_TRACKING,
    MSG_STOP_TRACKING,
    MSG_UPDATE_POSITION,
    OFFLINE_AFTER,
    SUCCESS_MESSAGE_TTL,
)
from .models import LocationRecord, RawSample, TrackerState, device_status
from .relay import RelaySink, SendResult
from .sampler import LocationSampler, LocationSource, SamplerOptions
from .transform import build_record
from .worker import BackgroundRelayWorker

_LOGGER = logging.getLogger(__name__)


class GPSRelayCoordinator(DataUpdateCoordinator[TrackerState]):
    """Coordinator relaying fixes of one device and holding its visible state."""

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        source: LocationSource,
        sink: RelaySink,
        worker: BackgroundRelayWorker | None = None,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            config_entry=config_entry,
        )
        self.device_id: str = config_entry.data[CONF_DEVICE_ID]
        self.sink = sink
        self.worker = worker
        self.sampler = LocationSampler(
            source,
            self._handle_sample,
            self._handle_fix_error,
            SamplerOptions(timeout=config_entry.data.get(CONF_TIMEOUT, DEFAULT_TIMEOUT)),
        )
        self._state = TrackerState()
        self._cancel_success_clear: Callable[[], None] | None = None
        self._cancel_offline_check: Callable[[], None] | None = None

    async def _async_update_data(self) -> TrackerState:
        """Return the current state; updates are pushed, not polled."""
        return self._state

    @property
    def status(self) -> str:
        """Return moving, idle or offline for the last relayed record."""
        return device_status(self._state.last_record, dt_util.utcnow())

    @callback
    def async_start_tracking(self) -> None:
        """Start relaying fixes."""
        try:
            self.sampler.start()
        except CapabilityUnavailable as err:
            _LOGGER.error("Cannot track %s: %s", self.device_id, err)
            self._state.tracking = False
            self._state.last_error = str(err)
            self._async_publish()
            return

        _LOGGER.info("Tracking started for %s", self.device_id)
        self._state.tracking = True
        self._state.last_error = None
        self._state.success_message = None
        if self.worker is not None:
            self.worker.post({"type": MSG_START_TRACKING, "deviceId": self.device_id})
        self._async_publish()

    @callback
    def async_stop_tracking(self) -> None:
        """Stop relaying fixes. In-flight sends are left to finish."""
        self.sampler.stop()
        if self.worker is not None:
            self.worker.post({"type": MSG_STOP_TRACKING})
        if self._state.tracking:
            _LOGGER.info("Tracking stopped for %s", self.device_id)
        self._state.tracking = False
        self._async_publish()

    async def async_send_record(self, record: LocationRecord) -> SendResult:
        """Send one record and reflect the outcome in the state."""
        result = await self.sink.async_send(record)

        if result.ok:
            self._state.sent_count += 1
            self._state.last_record = record
            self._state.last_sent = dt_util.utcnow()
            self._state.last_error = None
            self._state.success_message = "Location sent"
            self._schedule_success_clear()
            self._schedule_offline_check()
        else:
            _LOGGER.debug("Send failed for %s: %s", self.device_id, result.error)
            self._state.last_error = str(result.error)
            self._state.success_message = None

        self._async_publish()
        return result

    async def async_send_manual(
        self,
        latitude: float,
        longitude: float,
        speed: float | None = None,
        heading: float | None = None,
        accuracy: float | None = None,
    ) -> SendResult:
        """Send a position entered by hand. Speed is already in km/h."""
        record = LocationRecord(
            device_id=self.device_id,
            lat=latitude,
            lng=longitude,
            timestamp=int(dt_util.utcnow().timestamp() * 1000),
            speed=speed,
            heading=heading,
            accuracy=accuracy,
        )
        return await self.async_send_record(record)

    async def async_shutdown(self) -> None:
        """Stop tracking and release timers."""
        self.sampler.stop()
        if self._cancel_success_clear is not None:
            self._cancel_success_clear()
            self._cancel_success_clear = None
        if self._cancel_offline_check is not None:
            self._cancel_offline_check()
            self._cancel_offline_check = None
        if self.worker is not None:
            await self.worker.async_shutdown()
        await super().async_shutdown()

    @callback
    def _handle_sample(self, sample: RawSample) -> None:
        record = build_record(self.device_id, sample)
        _LOGGER.debug("New fix for %s: %s", self.device_id, record)
        if self.worker is not None:
            self.worker.post({"type": MSG_UPDATE_POSITION, "position": record.position()})
        self.config_entry.async_create_background_task(
            self.hass,
            self.async_send_record(record),
            f"{DOMAIN} send {self.device_id}",
        )

    @callback
    def _handle_fix_error(self, err: FixError) -> None:
        self._state.tracking = False
        self._state.last_error = f"GPS error: {err}"
        self._state.success_message = None
        if self.worker is not None:
            self.worker.post({"type": MSG_STOP_TRACKING})
        self._async_publish()

    def _schedule_success_clear(self) -> None:
        if self._cancel_success_clear is not None:
            self._cancel_success_clear()
        self._cancel_success_clear = async_call_later(
            self.hass, SUCCESS_MESSAGE_TTL, self._clear_success
        )

    @callback
    def _clear_success(self, _now: datetime) -> None:
        self._cancel_success_clear = None
        self._state.success_message = None
        self._async_publish()

    def _schedule_offline_check(self) -> None:
        # Entities derive the status from the clock, so publish again once the
        # last record is old enough to count as offline.
        if self._cancel_offline_check is not None:
            self._cancel_offline_check()
        self._cancel_offline_check = async_call_later(
            self.hass, OFFLINE_AFTER, self._offline_check
        )

    @callback
    def _offline_check(self, _now: datetime) -> None:
        self._cancel_offline_check = None
        self._async_publish()

    @callback
    def _async_publish(self) -> None:
        self.async_set_updated_data(self._state)
