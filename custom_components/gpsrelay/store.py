"""Shared key-value store used as a same-process location channel."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import json
import logging

from .models import LocationRecord

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreChange:
    """Change notification for a single key."""

    key: str
    new_value: str | None
    old_value: str | None


StoreListener = Callable[[StoreChange], None]


class LocationStore:
    """In-memory store shared by every relay in the process.

    Writes are last-write-wins. Each write notifies the listeners of that
    key, and the listeners registered for all keys, exactly once.
    """

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._data: dict[str, str] = {}
        self._listeners: dict[str | None, list[StoreListener]] = {}

    def get(self, key: str) -> str | None:
        """Return the raw value stored under key."""
        return self._data.get(key)

    def keys(self, prefix: str = "") -> list[str]:
        """Return the stored keys starting with prefix."""
        return [key for key in self._data if key.startswith(prefix)]

    def set(self, key: str, value: str) -> None:
        """Store value under key and notify listeners."""
        old_value = self._data.get(key)
        self._data[key] = value
        self._notify(StoreChange(key, value, old_value))

    def async_listen(
        self, key: str | None, listener: StoreListener
    ) -> Callable[[], None]:
        """Listen for changes of key, or of every key when key is None."""
        self._listeners.setdefault(key, []).append(listener)

        def remove_listener() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return remove_listener

    def records(self, prefix: str) -> dict[str, LocationRecord]:
        """Decode every record stored under prefix, skipping bad entries."""
        records: dict[str, LocationRecord] = {}
        for key in self.keys(prefix):
            try:
                records[key] = LocationRecord.from_dict(json.loads(self._data[key]))
            except (ValueError, KeyError, TypeError) as err:
                _LOGGER.warning("Ignoring unreadable entry %s: %s", key, err)
        return records

    def _notify(self, change: StoreChange) -> None:
        for listener in (
            *self._listeners.get(change.key, ()),
            *self._listeners.get(None, ()),
        ):
            listener(change)
