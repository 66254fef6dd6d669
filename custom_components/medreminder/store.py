# File: store.py
"""Handles persistent data storage for the MedReminder integration.

Uses Home Assistant's Storage helper to save and load issued-reminder sets,
the adherence ledger and the medicine registry, ensuring the state is
preserved across restarts.

Managers depend on the small `KeyValueStore` contract, not on the Home
Assistant implementation, so they can be driven by any store in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import copy
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from . import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


class KeyValueStore(ABC):
    """Key-value persistence contract used by the managers.

    - async_get returns None for an absent key (never raises for absence)
    - async_set overwrites the value stored under a key
    - async_delete removes a key; deleting an absent key is a no-op
    """

    @abstractmethod
    async def async_get(self, key: str) -> Any | None:
        """Return the value stored under key, or None."""

    @abstractmethod
    async def async_set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def async_delete(self, key: str) -> None:
        """Remove key."""


class MedReminderStore(KeyValueStore):
    """Key-value store backed by a single Home Assistant Store file.

    Thin wrapper around Home Assistant's Store API. All keys live in one JSON
    document that is loaded once and written back on every change.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = {}  # In-memory data cache for quick access.

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        Missing or unreadable storage leaves an empty cache; a read failure is
        logged and treated as empty so setup never fails on it.
        """
        const.LOGGER.debug("DEBUG: MedReminderStore: Loading data from storage")
        try:
            existing_data = await self._store.async_load()
        except (HomeAssistantError, OSError, ValueError) as err:
            const.LOGGER.error(
                "ERROR: Failed to read storage %s: %s. Starting with empty data",
                self._storage_key,
                err,
            )
            existing_data = None

        if existing_data is None:
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = {}
        elif not isinstance(existing_data, dict):
            const.LOGGER.error(
                "ERROR: Storage %s holds %s instead of a mapping. Starting with empty data",
                self._storage_key,
                type(existing_data).__name__,
            )
            self._data = {}
        else:
            self._data = existing_data
            const.LOGGER.debug(
                "DEBUG: Loaded existing data from storage: %s keys", len(self._data)
            )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    def get_storage_path(self) -> str:
        """Get the storage file path."""
        return self._store.path

    async def async_get(self, key: str) -> Any | None:
        """Return a copy of the value stored under key, or None."""
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def async_set(self, key: str, value: Any) -> None:
        """Store value under key and save."""
        self._data[key] = copy.deepcopy(value)
        await self.async_save()

    async def async_delete(self, key: str) -> None:
        """Remove key and save if it was present."""
        if self._data.pop(key, None) is not None:
            await self.async_save()

    async def async_save(self) -> None:
        """Save the current data structure to storage asynchronously.

        Raises:
            No exceptions raised - errors are logged but do not stop execution.
            OSError: Logged when file system issues prevent saving.
            TypeError: Logged when data contains non-serializable types.
            ValueError: Logged when data is invalid for JSON serialization.
        """
        try:
            await self._store.async_save(self._data)
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        except TypeError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s. "
                "Data contains types that cannot be converted to JSON",
                err,
            )
        except ValueError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to invalid data format: %s. "
                "Data structure may be corrupted",
                err,
            )

    async def async_delete_storage(self) -> None:
        """Delete the storage file completely from disk."""
        self._data = {}
        try:
            await self._store.async_remove()
            const.LOGGER.info(
                "INFO: Storage file removed successfully: %s",
                self._store.path,
            )
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )
