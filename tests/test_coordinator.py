"""Tests for the GPS Relay coordinator."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from homeassistant.util import dt as dt_util

from custom_components.gpsrelay.api import FixError, SendError
from custom_components.gpsrelay.const import (
    CONF_DEVICE_ID,
    CONF_TIMEOUT,
    OFFLINE_AFTER,
    SUCCESS_MESSAGE_TTL,
)
from custom_components.gpsrelay.coordinator import GPSRelayCoordinator
from custom_components.gpsrelay.relay import SendResult
from tests.conftest import MANILA, FakeSource, make_record


class FakeCallLater:
    """Stand-in for async_call_later keeping every timer it was asked for."""

    def __init__(self) -> None:
        self.timers: list[tuple[float | timedelta, object, MagicMock]] = []

    def __call__(self, hass, delay, action):
        cancel = MagicMock()
        self.timers.append((delay, action, cancel))
        return cancel

    def scheduled(self, delay) -> list[tuple[object, MagicMock]]:
        return [(action, cancel) for d, action, cancel in self.timers if d == delay]

    def fire(self, delay, now=None) -> None:
        action, _ = self.scheduled(delay)[-1]
        action(now or dt_util.utcnow())


@pytest.fixture
def call_later():
    fake = FakeCallLater()
    with patch("custom_components.gpsrelay.coordinator.async_call_later", fake):
        yield fake


@pytest.fixture
def mock_worker():
    worker = MagicMock()
    worker.async_shutdown = AsyncMock()
    return worker


@pytest.fixture
def mock_entry():
    entry = MagicMock()
    entry.entry_id = "entry-1"
    entry.data = {CONF_DEVICE_ID: "uncle-phone", CONF_TIMEOUT: 10}
    return entry


def _make_coordinator(entry, source, sink, worker=None) -> GPSRelayCoordinator:
    coordinator = GPSRelayCoordinator(MagicMock(), entry, source, sink, worker)
    coordinator.async_update_listeners = MagicMock()
    return coordinator


@pytest.fixture
async def coordinator(mock_entry, fake_source, mock_sink, mock_worker):
    return _make_coordinator(mock_entry, fake_source, mock_sink, mock_worker)


def _posted_types(worker: MagicMock) -> list[str]:
    return [c.args[0]["type"] for c in worker.post.call_args_list]


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------


class TestSendRecord:
    @pytest.mark.asyncio
    async def test_success_updates_counters(self, coordinator, call_later):
        record = make_record()

        result = await coordinator.async_send_record(record)

        assert result.ok
        state = coordinator.data
        assert state.sent_count == 1
        assert state.last_record == record
        assert state.last_sent is not None
        assert state.last_error is None
        assert state.success_message == "Location sent"
        coordinator.async_update_listeners.assert_called()

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, coordinator, mock_sink, call_later):
        mock_sink.async_send.return_value = SendResult(ok=False, error=SendError("db down"))
        await coordinator.async_send_record(make_record())
        mock_sink.async_send.return_value = SendResult(ok=True)

        await coordinator.async_send_record(make_record())

        assert coordinator.data.last_error is None
        assert coordinator.data.sent_count == 1

    @pytest.mark.asyncio
    async def test_success_message_expires(self, coordinator, call_later):
        await coordinator.async_send_record(make_record())
        coordinator.async_update_listeners.reset_mock()

        call_later.fire(SUCCESS_MESSAGE_TTL)

        assert coordinator.data.success_message is None
        assert coordinator.data.sent_count == 1
        coordinator.async_update_listeners.assert_called_once()

    @pytest.mark.asyncio
    async def test_second_success_restarts_message_timer(self, coordinator, call_later):
        await coordinator.async_send_record(make_record())
        await coordinator.async_send_record(make_record())

        timers = call_later.scheduled(SUCCESS_MESSAGE_TTL)
        assert len(timers) == 2
        timers[0][1].assert_called_once()
        timers[1][1].assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_shows_error(self, coordinator, mock_sink, call_later):
        mock_sink.async_send.return_value = SendResult(ok=False, error=SendError("db down"))

        result = await coordinator.async_send_record(make_record())

        assert not result.ok
        state = coordinator.data
        assert state.last_error == "db down"
        assert state.success_message is None
        assert state.sent_count == 0
        assert state.last_record is None
        assert call_later.timers == []

    @pytest.mark.asyncio
    async def test_manual_send_keeps_speed(self, coordinator, mock_sink, call_later):
        await coordinator.async_send_manual(14.6, 121.0, speed=12.0)

        record = mock_sink.async_send.await_args.args[0]
        assert record.device_id == "uncle-phone"
        assert record.speed == 12.0
        assert record.heading is None


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


class TestTracking:
    @pytest.mark.asyncio
    async def test_start_turns_tracking_on(self, coordinator, fake_source, mock_worker):
        coordinator.async_start_tracking()

        assert coordinator.data.tracking
        assert fake_source.subscribe_calls == 1
        mock_worker.post.assert_called_once_with(
            {"type": "START_TRACKING", "deviceId": "uncle-phone"}
        )

    @pytest.mark.asyncio
    async def test_unavailable_source_shows_error(self, mock_entry, mock_sink, mock_worker):
        coordinator = _make_coordinator(
            mock_entry, FakeSource(available=False), mock_sink, mock_worker
        )

        coordinator.async_start_tracking()

        assert not coordinator.data.tracking
        assert coordinator.data.last_error == "Location services are not available"
        mock_worker.post.assert_not_called()
        coordinator.async_update_listeners.assert_called_once()

    @pytest.mark.asyncio
    async def test_sample_updates_worker_before_send(
        self, coordinator, fake_source, mock_entry, mock_worker, mock_sink, call_later
    ):
        sends = []

        def _capture(hass, target, name):
            # The cached worker position is already set when the send is queued
            assert _posted_types(mock_worker)[-1] == "UPDATE_POSITION"
            sends.append(target)
            return MagicMock()

        mock_entry.async_create_background_task.side_effect = _capture
        coordinator.async_start_tracking()

        fake_source.on_sample(MANILA)
        assert len(sends) == 1
        await sends[0]

        position = mock_worker.post.call_args_list[-1].args[0]["position"]
        assert position["lat"] == MANILA.latitude
        assert position["speed"] == pytest.approx(9.0)
        assert mock_sink.async_send.await_args.args[0].speed == pytest.approx(9.0)
        assert coordinator.data.sent_count == 1

    @pytest.mark.asyncio
    async def test_fix_error_stops_tracking(self, coordinator, fake_source, mock_worker):
        coordinator.async_start_tracking()

        fake_source.on_error(FixError("denied"))

        assert not coordinator.data.tracking
        assert coordinator.data.last_error == "GPS error: denied"
        assert fake_source.unsubscribe_calls == 1
        assert _posted_types(mock_worker) == ["START_TRACKING", "STOP_TRACKING"]

    @pytest.mark.asyncio
    async def test_stop_tracking(self, coordinator, fake_source, mock_worker):
        coordinator.async_start_tracking()

        coordinator.async_stop_tracking()

        assert not coordinator.data.tracking
        assert fake_source.unsubscribe_calls == 1
        assert _posted_types(mock_worker) == ["START_TRACKING", "STOP_TRACKING"]

    @pytest.mark.asyncio
    async def test_without_worker(self, mock_entry, fake_source, mock_sink):
        coordinator = _make_coordinator(mock_entry, fake_source, mock_sink)

        coordinator.async_start_tracking()
        coordinator.async_stop_tracking()

        assert not coordinator.data.tracking

    @pytest.mark.asyncio
    async def test_shutdown_releases_timers_and_worker(
        self, coordinator, fake_source, mock_worker, call_later
    ):
        coordinator.async_start_tracking()
        await coordinator.async_send_record(make_record())

        await coordinator.async_shutdown()

        assert fake_source.unsubscribe_calls == 1
        call_later.scheduled(SUCCESS_MESSAGE_TTL)[-1][1].assert_called_once()
        call_later.scheduled(OFFLINE_AFTER)[-1][1].assert_called_once()
        mock_worker.async_shutdown.assert_awaited_once()


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatus:
    @pytest.mark.asyncio
    async def test_offline_without_record(self, coordinator):
        assert coordinator.status == "offline"

    @pytest.mark.asyncio
    async def test_becomes_offline_when_record_ages(self, coordinator, call_later):
        now = dt_util.utcnow()
        await coordinator.async_send_record(
            make_record(timestamp=int(now.timestamp() * 1000), speed=9.0)
        )
        assert coordinator.status == "moving"
        coordinator.async_update_listeners.reset_mock()

        later = now + OFFLINE_AFTER + timedelta(seconds=1)
        with patch(
            "custom_components.gpsrelay.coordinator.dt_util.utcnow", return_value=later
        ):
            call_later.fire(OFFLINE_AFTER, later)
            assert coordinator.status == "offline"

        coordinator.async_update_listeners.assert_called_once()

    @pytest.mark.asyncio
    async def test_new_send_restarts_offline_timer(self, coordinator, call_later):
        await coordinator.async_send_record(make_record())
        await coordinator.async_send_record(make_record())

        timers = call_later.scheduled(OFFLINE_AFTER)
        assert len(timers) == 2
        timers[0][1].assert_called_once()
        timers[1][1].assert_not_called()
