"""Base manager class for MedReminder managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)

from .. import const

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Format: 'medreminder_{entry_id}_{suffix}'
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


class BaseManager(ABC):
    """Base class for all MedReminder managers with scoped event support.

    Provides:
    - Instance-scoped event emitting (emit)
    - Instance-scoped event listening (listen)
    - Listener cleanup via async_unload

    Subclasses must implement:
    - async_setup(): Load persisted state, subscribe to events
    """

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        """Initialize manager.

        Args:
            hass: Home Assistant instance
            entry_id: Config entry id scoping this manager's events
        """
        self.hass = hass
        self.entry_id = entry_id
        self._unsubscribers: list[Callable[[], None]] = []

    def emit(self, suffix: str, **payload: Any) -> None:
        """Emit instance-scoped event to other managers and entities.

        Example:
            self.emit(
                const.SIGNAL_SUFFIX_REMINDER_TRIGGERED,
                schedule_id="med1-0",
                reminder_id="a1b2",
            )
        """
        signal = get_event_signal(self.entry_id, suffix)
        const.LOGGER.debug(
            "Emitting event '%s' for instance %s with payload keys: %s",
            suffix,
            self.entry_id,
            list(payload.keys()),
        )
        # Pass payload as single dict argument (dispatcher only supports *args)
        async_dispatcher_send(self.hass, signal, payload)

    def listen(self, suffix: str, callback: Callable[..., Any]) -> None:
        """Subscribe to instance-scoped event until async_unload.

        Supports both sync and async callbacks; the callback receives the
        payload dict as its only argument.
        """
        signal = get_event_signal(self.entry_id, suffix)
        self._unsubscribers.append(async_dispatcher_connect(self.hass, signal, callback))
        const.LOGGER.debug(
            "Manager %s listening to event '%s' for instance %s",
            self.__class__.__name__,
            suffix,
            self.entry_id,
        )

    async def async_unload(self) -> None:
        """Drop all event subscriptions."""
        while self._unsubscribers:
            self._unsubscribers.pop()()

    @abstractmethod
    async def async_setup(self) -> None:
        """Set up the manager (load state, subscribe to events).

        Called once during coordinator initialization.
        """
