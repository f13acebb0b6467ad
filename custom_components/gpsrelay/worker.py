"""Background relay worker.

The worker keeps relaying the last known position while the foreground
tracker is not delivering fixes. It owns its state and only talks to the
outside through messages posted to its mailbox:

    {"type": "START_TRACKING", "deviceId": "phone-1"}
    {"type": "STOP_TRACKING"}
    {"type": "UPDATE_POSITION", "position": {"lat": ..., "lng": ..., ...}}

On every interval tick the cached position, if any, is sent again with a
fresh timestamp. Failed sends are logged and the timer keeps running.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any

from homeassistant.core import callback
from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_INTERVAL,
    MSG_START_TRACKING,
    MSG_STOP_TRACKING,
    MSG_UPDATE_POSITION,
)
from .models import LocationRecord
from .relay import RelaySink
from .transform import record_from_position

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartTracking:
    """Start the interval timer for a device."""

    device_id: str


@dataclass(frozen=True)
class StopTracking:
    """Cancel the interval timer."""


@dataclass(frozen=True)
class UpdatePosition:
    """Replace the cached position."""

    position: dict[str, Any]


WorkerMessage = StartTracking | StopTracking | UpdatePosition

IntervalAction = Callable[[datetime], None]
IntervalScheduler = Callable[[IntervalAction, timedelta], Callable[[], None]]


def parse_message(message: dict[str, Any]) -> WorkerMessage | None:
    """Parse a control message, returning None if it is not understood."""
    msg_type = message.get("type")

    if msg_type == MSG_START_TRACKING:
        device_id = message.get("deviceId")
        if not device_id:
            return None
        return StartTracking(str(device_id))

    if msg_type == MSG_STOP_TRACKING:
        return StopTracking()

    if msg_type == MSG_UPDATE_POSITION:
        position = message.get("position")
        if not isinstance(position, dict) or "lat" not in position or "lng" not in position:
            return None
        return UpdatePosition(dict(position))

    return None


def loop_interval_scheduler(
    action: IntervalAction, interval: timedelta
) -> Callable[[], None]:
    """Call action every interval on the running event loop."""
    loop = asyncio.get_running_loop()
    seconds = interval.total_seconds()
    timer: asyncio.TimerHandle | None = None

    def _fire() -> None:
        nonlocal timer
        timer = loop.call_later(seconds, _fire)
        action(dt_util.utcnow())

    timer = loop.call_later(seconds, _fire)

    def _cancel() -> None:
        if timer is not None:
            timer.cancel()

    return _cancel


class BackgroundRelayWorker:
    """Actor re-sending the most recent position on a fixed interval."""

    def __init__(
        self,
        sink: RelaySink,
        interval: timedelta = timedelta(seconds=DEFAULT_INTERVAL),
        scheduler: IntervalScheduler = loop_interval_scheduler,
    ) -> None:
        """Initialize an idle worker with an empty cache."""
        self._sink = sink
        self._interval = interval
        self._scheduler = scheduler
        self._mailbox: asyncio.Queue[WorkerMessage] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._cancel_timer: Callable[[], None] | None = None
        self._device_id: str | None = None
        self._position: dict[str, Any] | None = None
        self._sends: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        """Return True while the interval timer is active."""
        return self._cancel_timer is not None

    @property
    def device_id(self) -> str | None:
        """Return the device being relayed."""
        return self._device_id

    @property
    def position(self) -> dict[str, Any] | None:
        """Return the cached position."""
        return self._position

    def post(self, message: dict[str, Any] | WorkerMessage) -> None:
        """Put a message in the mailbox."""
        if isinstance(message, dict):
            parsed = parse_message(message)
            if parsed is None:
                _LOGGER.warning("Ignoring unknown worker message: %s", message)
                return
            message = parsed
        self._mailbox.put_nowait(message)

    async def async_start(self) -> None:
        """Start processing the mailbox."""
        if self._task is None:
            self._task = asyncio.create_task(self._async_run(), name="gpsrelay worker")

    async def async_join(self) -> None:
        """Wait until every posted message has been handled."""
        await self._mailbox.join()

    async def async_shutdown(self) -> None:
        """Stop the timer, the mailbox loop and any send still in flight."""
        self._stop_timer()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        sends = list(self._sends)
        for task in sends:
            task.cancel()
        if sends:
            await asyncio.gather(*sends, return_exceptions=True)

    async def _async_run(self) -> None:
        while True:
            message = await self._mailbox.get()
            try:
                self._handle(message)
            finally:
                self._mailbox.task_done()

    def _handle(self, message: WorkerMessage) -> None:
        if isinstance(message, StartTracking):
            self._stop_timer()
            self._device_id = message.device_id
            self._cancel_timer = self._scheduler(self._tick, self._interval)
            _LOGGER.info("Background relay started for %s", message.device_id)
        elif isinstance(message, StopTracking):
            if self._stop_timer():
                _LOGGER.info("Background relay stopped for %s", self._device_id)
        elif isinstance(message, UpdatePosition):
            self._position = message.position

    def _stop_timer(self) -> bool:
        if self._cancel_timer is None:
            return False
        self._cancel_timer()
        self._cancel_timer = None
        return True

    @callback
    def _tick(self, now: datetime) -> None:
        if self._cancel_timer is None or self._position is None or self._device_id is None:
            return

        try:
            record = record_from_position(self._device_id, self._position)
        except (KeyError, ValueError, TypeError) as err:
            _LOGGER.warning("Cached position cannot be sent: %s", err)
            return

        task = asyncio.get_running_loop().create_task(self._async_send(record))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _async_send(self, record: LocationRecord) -> None:
        result = await self._sink.async_send(record)
        if result.ok:
            _LOGGER.debug("Background location sent for %s", record.device_id)
        else:
            _LOGGER.warning(
                "Background location send failed for %s: %s",
                record.device_id,
                result.error,
            )
