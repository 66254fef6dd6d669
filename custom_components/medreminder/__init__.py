# File: __init__.py
"""Initialization file for the MedReminder integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and preparing the coordinator for data handling.

Key Features:
- Config entry setup and unload support.
- Coordinator initialization and restore of persisted schedules.
- Routing of "Taken" / "Missed" notification actions.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import Event, HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady

from . import const
from .coordinator import MedReminderCoordinator
from .notification_action_handler import async_handle_notification_action
from .services import async_setup_services, async_unload_services
from .store import MedReminderStore


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for MedReminder entry: %s", entry.entry_id)

    # Must be done before any component that reads the default timezone
    const.set_default_timezone(hass, entry.options.get(const.CONF_TIME_ZONE))

    store = MedReminderStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    coordinator = MedReminderCoordinator(hass, entry, store)
    await coordinator.async_setup()

    try:
        await coordinator.async_config_entry_first_refresh()
    except ConfigEntryNotReady as e:
        const.LOGGER.error("ERROR: Failed to refresh coordinator data: %s", e)
        await coordinator.async_unload_managers()
        raise

    hass.data.setdefault(const.DOMAIN, {})[entry.entry_id] = {
        const.COORDINATOR: coordinator,
        const.STORE: store,
    }

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    async def handle_notification_event(event: Event) -> None:
        """Handle notification action events."""
        await async_handle_notification_action(hass, event)

    entry.async_on_unload(
        hass.bus.async_listen(const.NOTIFICATION_EVENT, handle_notification_event)
    )
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    const.LOGGER.info("INFO: MedReminder setup complete for entry: %s", entry.entry_id)
    return True


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry after its options changed."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading MedReminder entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        entry_data = hass.data[const.DOMAIN].pop(entry.entry_id)
        coordinator: MedReminderCoordinator = entry_data[const.COORDINATOR]
        await coordinator.async_unload_managers()

        if not hass.data[const.DOMAIN]:
            await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry by deleting its storage file."""
    const.LOGGER.info("INFO: Removing MedReminder entry: %s", entry.entry_id)

    store = MedReminderStore(hass, const.STORAGE_KEY)
    await store.async_delete_storage()

    const.LOGGER.info("INFO: MedReminder entry data cleared: %s", entry.entry_id)
