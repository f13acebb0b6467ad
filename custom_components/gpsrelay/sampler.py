"""Location sampling for the GPS Relay integration."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
import math
import random
from typing import Protocol

from homeassistant.const import ATTR_ENTITY_ID
from homeassistant.core import Event, EventStateChangedData, HomeAssistant, State, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.event import async_track_state_change_event
from homeassistant.util import dt as dt_util

from .api import CapabilityUnavailable, FixError
from .const import (
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    SIMULATION_BASE_LAT,
    SIMULATION_BASE_LNG,
    SIMULATION_RADIUS,
    SPEED_FACTOR,
)
from .models import RawSample
from .transform import sample_from_state

_LOGGER = logging.getLogger(__name__)

SampleCallback = Callable[[RawSample], None]
ErrorCallback = Callable[[FixError], None]


@dataclass(frozen=True)
class SamplerOptions:
    """Positioning options passed to a location source."""

    high_accuracy: bool = True
    timeout: float = DEFAULT_TIMEOUT
    maximum_age: float = 0.0


class LocationSource(Protocol):
    """A host capability producing position fixes."""

    @property
    def available(self) -> bool:
        """Return True if the source can produce fixes."""

    def subscribe(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> Callable[[], None]:
        """Deliver every new fix until the returned callable is invoked."""

    def request_fix(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> None:
        """Deliver a single fix."""


class TrackingHandle:
    """Handle of an active subscription, returned by LocationSampler.start()."""

    def __init__(self) -> None:
        """Initialize an active handle."""
        self.active = True
        self._unsubscribe: Callable[[], None] | None = None

    def cancel(self) -> None:
        """Cancel the subscription. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class LocationSampler:
    """Feed position fixes from a source to a handler.

    At most one subscription is active at a time.
    """

    def __init__(
        self,
        source: LocationSource,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: SamplerOptions | None = None,
    ) -> None:
        """Initialize the sampler."""
        self._source = source
        self._on_sample = on_sample
        self._on_error = on_error
        self._options = options or SamplerOptions()
        self._handle: TrackingHandle | None = None

    @property
    def is_running(self) -> bool:
        """Return True while a subscription is active."""
        return self._handle is not None and self._handle.active

    def start(self) -> TrackingHandle:
        """Start sampling and return the handle of the subscription."""
        if self._handle is not None and self._handle.active:
            return self._handle

        if not self._source.available:
            raise CapabilityUnavailable("Location services are not available")

        handle = TrackingHandle()

        def _on_sample(sample: RawSample) -> None:
            if handle.active:
                self._on_sample(sample)

        def _on_error(err: FixError) -> None:
            if not handle.active:
                return
            _LOGGER.warning("Location fix failed, stopping: %s", err)
            self.stop(handle)
            self._on_error(err)

        def _on_initial_error(err: FixError) -> None:
            if handle.active:
                _LOGGER.debug("Initial location fix failed: %s", err)

        self._handle = handle
        handle._unsubscribe = self._source.subscribe(_on_sample, _on_error, self._options)
        # Ask for a fix right away rather than waiting for the next update
        self._source.request_fix(_on_sample, _on_initial_error, self._options)
        return handle

    def stop(self, handle: TrackingHandle | None = None) -> None:
        """Stop sampling. Does nothing if not started."""
        if handle is None:
            handle = self._handle
        if handle is None:
            return
        handle.cancel()
        if handle is self._handle:
            self._handle = None


class EntityLocationSource:
    """Use a Home Assistant tracker entity as the location source."""

    def __init__(self, hass: HomeAssistant, entity_id: str) -> None:
        """Initialize the source."""
        self._hass = hass
        self._entity_id = entity_id

    @property
    def available(self) -> bool:
        """Return True if the entity exists."""
        return self._hass.states.get(self._entity_id) is not None

    def subscribe(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> Callable[[], None]:
        """Deliver a sample on every state change of the entity."""

        @callback
        def _state_changed(event: Event[EventStateChangedData]) -> None:
            try:
                sample = sample_from_state(event.data["new_state"])
            except FixError as err:
                on_error(err)
                return
            on_sample(sample)

        return async_track_state_change_event(
            self._hass, [self._entity_id], _state_changed
        )

    def request_fix(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> None:
        """Deliver the current position, refreshing it when too old."""
        state = self._hass.states.get(self._entity_id)
        if state is not None and options.maximum_age > 0:
            age = (dt_util.utcnow() - state.last_updated).total_seconds()
            if age <= options.maximum_age:
                self._deliver(state, on_sample, on_error)
                return

        self._hass.async_create_task(
            self._async_fresh_fix(on_sample, on_error, options),
            f"gpsrelay fix {self._entity_id}",
        )

    async def _async_fresh_fix(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> None:
        """Ask the entity for an update and wait for its next state."""
        future: asyncio.Future[State | None] = self._hass.loop.create_future()

        @callback
        def _state_changed(event: Event[EventStateChangedData]) -> None:
            if not future.done():
                future.set_result(event.data["new_state"])

        unsub = async_track_state_change_event(
            self._hass, [self._entity_id], _state_changed
        )
        try:
            await self._hass.services.async_call(
                "homeassistant",
                "update_entity",
                {ATTR_ENTITY_ID: self._entity_id},
                blocking=False,
            )
            async with asyncio.timeout(options.timeout):
                new_state = await future
        except TimeoutError:
            on_error(FixError("Timeout expired"))
            return
        except HomeAssistantError as err:
            on_error(FixError(f"Cannot refresh {self._entity_id}: {err}"))
            return
        finally:
            unsub()

        self._deliver(new_state, on_sample, on_error)

    @staticmethod
    def _deliver(
        state: State | None, on_sample: SampleCallback, on_error: ErrorCallback
    ) -> None:
        try:
            sample = sample_from_state(state)
        except FixError as err:
            on_error(err)
            return
        on_sample(sample)


class SimulatedLocationSource:
    """Produce fixes moving around a base point."""

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        base_lat: float = SIMULATION_BASE_LAT,
        base_lng: float = SIMULATION_BASE_LNG,
        radius: float = SIMULATION_RADIUS,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the simulation."""
        self._interval = interval
        self._base_lat = base_lat
        self._base_lng = base_lng
        self._radius = radius
        self._rng = rng or random.Random()
        self._angle = self._rng.random() * 360

    @property
    def available(self) -> bool:
        """Return True, the simulation is always available."""
        return True

    def next_sample(self) -> RawSample:
        """Advance the simulation and return the new fix."""
        self._angle += (self._rng.random() - 0.5) * 30
        rad = math.radians(self._angle)
        speed_kmh = 20 + self._rng.random() * 40
        return RawSample(
            latitude=self._base_lat + math.sin(rad) * self._radius,
            longitude=self._base_lng + math.cos(rad) * self._radius,
            speed=speed_kmh / SPEED_FACTOR,
            heading=self._angle % 360,
            accuracy=5.0,
            fix_time=dt_util.utcnow(),
        )

    def subscribe(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> Callable[[], None]:
        """Deliver a simulated fix every interval."""
        loop = asyncio.get_running_loop()
        timer: asyncio.TimerHandle | None = None

        def _emit() -> None:
            nonlocal timer
            timer = loop.call_later(self._interval, _emit)
            on_sample(self.next_sample())

        timer = loop.call_later(self._interval, _emit)

        def _cancel() -> None:
            if timer is not None:
                timer.cancel()

        return _cancel

    def request_fix(
        self, on_sample: SampleCallback, on_error: ErrorCallback, options: SamplerOptions
    ) -> None:
        """Deliver one simulated fix on the next loop iteration."""
        asyncio.get_running_loop().call_soon(lambda: on_sample(self.next_sample()))
