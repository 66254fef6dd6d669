# File: notification_action_handler.py
"""Handle notification actions from HA companion notifications.

When a user taps "Taken" or "Missed" on a reminder, this handler completes the
reminder and records the dose outcome through the coordinator.

Separation of concerns:
- notification_action_handler.py = INCOMING action button callbacks
- NotificationManager = OUTGOING reminders
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntryState

from . import const

if TYPE_CHECKING:
    from homeassistant.core import Event, HomeAssistant

    from .coordinator import MedReminderCoordinator


@dataclass
class ParsedAction:
    """Type-safe parsed notification action.

    Action strings are pipe-separated: "action_type|schedule_id|reminder_id"

    Example:
        parsed = ParsedAction(
            action_type="MEDREMINDER_TAKEN",
            schedule_id="aspirin-0",
            reminder_id="4f1c2d...",
        )
    """

    action_type: str
    schedule_id: str
    reminder_id: str

    @property
    def taken(self) -> bool:
        """Return True if the action reports the dose as taken."""
        return self.action_type == const.ACTION_DOSE_TAKEN


def parse_notification_action(action_field: str) -> ParsedAction | None:
    """Parse a notification action string into a ParsedAction.

    Returns:
        ParsedAction if valid, None if the string is not a MedReminder action
        or is malformed.

    Example:
        >>> parsed = parse_notification_action("MEDREMINDER_TAKEN|aspirin-0|ab12")
        >>> parsed.schedule_id  # "aspirin-0"
        >>> parsed.taken        # True
    """
    if not action_field:
        return None

    parts = action_field.split(const.ACTION_SEPARATOR)
    if parts[0] not in (const.ACTION_DOSE_TAKEN, const.ACTION_DOSE_MISSED):
        # Actions of other integrations share the same event
        return None
    if len(parts) != 3 or not all(parts):
        const.LOGGER.warning("Invalid action string format: %s", action_field)
        return None

    return ParsedAction(
        action_type=parts[0], schedule_id=parts[1], reminder_id=parts[2]
    )


def _find_coordinator(
    hass: HomeAssistant, schedule_id: str
) -> MedReminderCoordinator | None:
    """Return the coordinator of the loaded entry tracking a schedule."""
    fallback: MedReminderCoordinator | None = None
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state != ConfigEntryState.LOADED:
            continue
        entry_data = hass.data.get(const.DOMAIN, {}).get(entry.entry_id)
        if not entry_data:
            continue
        coordinator: MedReminderCoordinator = entry_data[const.COORDINATOR]
        if schedule_id in coordinator.schedules:
            return coordinator
        fallback = fallback or coordinator
    return fallback


async def async_handle_notification_action(hass: HomeAssistant, event: Event) -> None:
    """Handle notification actions from HA companion notifications.

    Args:
        hass: Home Assistant instance
        event: Event containing the notification action data
    """
    parsed = parse_notification_action(event.data.get(const.NOTIFY_ACTION, ""))
    if parsed is None:
        return

    coordinator = _find_coordinator(hass, parsed.schedule_id)
    if coordinator is None:
        const.LOGGER.error("No loaded MedReminder entry for action: %s", parsed)
        return

    try:
        await coordinator.async_complete_reminder(
            parsed.schedule_id, parsed.reminder_id, parsed.taken
        )
    except ValueError as err:
        const.LOGGER.error(
            "Failed processing notification action %s: %s", parsed.action_type, err
        )
        return

    await coordinator.async_request_refresh()
