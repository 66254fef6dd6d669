"""Base entity classes for MedReminder integration."""

from __future__ import annotations

from homeassistant.helpers.device_registry import DeviceEntryType, DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from . import const
from .coordinator import MedReminderCoordinator


class MedReminderCoordinatorEntity(CoordinatorEntity[MedReminderCoordinator]):
    """Base entity class for MedReminder sensors with typed coordinator access."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: MedReminderCoordinator, uid_suffix: str) -> None:
        """Initialize the entity with a unique id scoped to the config entry."""
        super().__init__(coordinator)
        entry_id = coordinator.config_entry.entry_id
        self._attr_unique_id = f"{entry_id}{uid_suffix}"
        self._attr_device_info = DeviceInfo(
            identifiers={(const.DOMAIN, entry_id)},
            name=const.MEDREMINDER_TITLE,
            entry_type=DeviceEntryType.SERVICE,
        )

    @property
    def coordinator(self) -> MedReminderCoordinator:
        """Return typed coordinator.

        Uses object.__getattribute__ to access the private _coordinator attribute
        set by the parent CoordinatorEntity class.
        """
        return object.__getattribute__(self, "_coordinator")

    @coordinator.setter
    def coordinator(self, value: MedReminderCoordinator) -> None:
        """Set coordinator with proper typing."""
        object.__setattr__(self, "_coordinator", value)
