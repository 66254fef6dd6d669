"""Diagnostics support for MedReminder integration.

The diagnostics JSON returns the raw storage data (medicines, schedules,
issued-reminder sets and the adherence ledger) plus the current summary.
"""

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import MedReminderCoordinator


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    entry_data = hass.data[const.DOMAIN][entry.entry_id]
    coordinator: MedReminderCoordinator = entry_data[const.COORDINATOR]

    return {
        "options": dict(entry.options),
        "storage": entry_data[const.STORE].data,
        "summary": coordinator.data,
    }
