"""In-memory stand-ins for the store and reminder dispatcher.

Both record every call so tests can assert on the exact interaction with the
managers, and both support failure injection.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from custom_components.medreminder.store import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed KeyValueStore.

    Set `fail_reads` / `fail_writes` to make the next calls raise OSError.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[str] = []

    async def async_get(self, key: str) -> Any | None:
        if self.fail_reads:
            raise OSError("read failed")
        value = self.data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def async_set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise OSError("write failed")
        self.writes.append(key)
        self.data[key] = copy.deepcopy(value)

    async def async_delete(self, key: str) -> None:
        if self.fail_writes:
            raise OSError("delete failed")
        self.data.pop(key, None)


@dataclass
class FakeDispatcher:
    """Reminder dispatcher that hands out sequential handles.

    Triggers listed in `fail_on` raise when scheduled; handles listed in
    `fail_cancel` raise when cancelled.
    """

    scheduled: dict[str, tuple[dict[str, Any], datetime]] = field(default_factory=dict)
    cancelled: list[str] = field(default_factory=list)
    fail_on: set[datetime] = field(default_factory=set)
    fail_cancel: set[str] = field(default_factory=set)
    _counter: int = 0

    async def async_dispatch_schedule(
        self, content: dict[str, Any], trigger: datetime
    ) -> str:
        if trigger in self.fail_on:
            raise RuntimeError(f"dispatcher rejected {trigger.isoformat()}")
        self._counter += 1
        handle = f"handle-{self._counter}"
        self.scheduled[handle] = (content, trigger)
        return handle

    async def async_dispatch_cancel(self, handle: str) -> None:
        if handle in self.fail_cancel:
            raise RuntimeError(f"cannot cancel {handle}")
        self.cancelled.append(handle)
        self.scheduled.pop(handle, None)

    @property
    def triggers(self) -> list[datetime]:
        """Return the triggers of the reminders still scheduled."""
        return sorted(trigger for _, trigger in self.scheduled.values())
