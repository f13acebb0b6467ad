"""Shared fixtures for the GPS Relay tests.

Everything here runs without a Home Assistant instance: the aiohttp
session, location sources and the worker's interval timer are replaced
by small fakes.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.gpsrelay.models import LocationRecord, RawSample
from custom_components.gpsrelay.relay import SendResult


MANILA = RawSample(latitude=14.5995, longitude=120.9842, speed=2.5, heading=90, accuracy=5)


def make_record(**kwargs: Any) -> LocationRecord:
    """Build a LocationRecord with sensible defaults."""
    defaults: dict[str, Any] = dict(
        device_id="uncle-phone",
        lat=14.5995,
        lng=120.9842,
        timestamp=1_700_000_000_000,
        speed=9.0,
        heading=90.0,
        accuracy=5.0,
    )
    defaults.update(kwargs)
    return LocationRecord(**defaults)


def make_response(
    status: int, body: Any = None, json_error: Exception | None = None
) -> MagicMock:
    """Build a mock aiohttp response."""
    resp = MagicMock()
    resp.status = status
    resp.url = "http://collector.local/api/phone-location"
    if json_error is not None:
        resp.json = AsyncMock(side_effect=json_error)
    else:
        resp.json = AsyncMock(return_value=body)
    return resp


@pytest.fixture
def mock_session():
    """Mock aiohttp session whose post() returns a 200 {"ok": true}."""
    session = MagicMock()
    session.post = AsyncMock(return_value=make_response(200, {"ok": True}))
    return session


@pytest.fixture
def mock_sink():
    """Mock relay sink that always succeeds."""
    sink = MagicMock()
    sink.async_send = AsyncMock(return_value=SendResult(ok=True))
    return sink


class FakeSource:
    """Location source recording how the sampler uses it."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.fix_requests = 0
        self.options = None
        self.on_sample: Callable[[RawSample], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None
        self.fix_on_sample: Callable[[RawSample], None] | None = None
        self.fix_on_error: Callable[[Exception], None] | None = None

    def subscribe(self, on_sample, on_error, options):
        self.subscribe_calls += 1
        self.on_sample = on_sample
        self.on_error = on_error
        self.options = options

        def _unsubscribe() -> None:
            self.unsubscribe_calls += 1

        return _unsubscribe

    def request_fix(self, on_sample, on_error, options):
        self.fix_requests += 1
        self.fix_on_sample = on_sample
        self.fix_on_error = on_error


class FakeScheduler:
    """Interval scheduler driven by hand with tick()."""

    def __init__(self) -> None:
        self.action: Callable[[datetime], None] | None = None
        self.interval: timedelta | None = None
        self.scheduled = 0
        self.cancelled = 0

    @property
    def active(self) -> bool:
        return self.scheduled > self.cancelled

    def __call__(self, action, interval):
        self.action = action
        self.interval = interval
        self.scheduled += 1

        def _cancel() -> None:
            self.cancelled += 1

        return _cancel

    def tick(self) -> None:
        if self.active and self.action is not None:
            self.action(datetime.now())


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()
