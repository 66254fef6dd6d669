# File: notification_manager.py
"""Notification Manager for MedReminder integration.

This manager is the reminder dispatcher backed by Home Assistant:
- Holds one point-in-time timer per scheduled reminder
- Sends the reminder through the configured notify service when it fires
- Attaches "Taken" / "Missed" action buttons to every reminder
- Emits REMINDER_TRIGGERED once a reminder has been delivered

Separation of concerns:
- NotificationManager = OUTGOING reminders
- notification_action_handler.py = INCOMING action button callbacks
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
import uuid

from homeassistant.core import callback
from homeassistant.helpers.event import async_track_point_in_utc_time

from .. import const
from ..utils.dt_utils import as_utc, dt_now_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..type_defs import ReminderContent


# =============================================================================
# Module-level helper for testability
# =============================================================================


async def async_send_notification(
    hass: HomeAssistant,
    service: str,
    title: str,
    message: str,
    actions: list[dict[str, Any]] | None = None,
    extra_data: dict[str, Any] | None = None,
) -> None:
    """Send a notification via Home Assistant service call.

    This is a module-level function that can be easily mocked in tests.

    Args:
        hass: Home Assistant instance
        service: Notification service as "notify.service_name" or just the name
        title: Notification title
        message: Notification message
        actions: Optional list of action button dictionaries
        extra_data: Optional extra data (e.g., tag)
    """
    if "." in service:
        domain, svc = service.split(".", 1)
    else:
        domain = const.NOTIFY_DOMAIN
        svc = service

    payload: dict[str, Any] = {
        const.NOTIFY_TITLE: title,
        const.NOTIFY_MESSAGE: message,
    }

    if actions:
        data = payload.setdefault(const.NOTIFY_DATA, {})
        data[const.NOTIFY_ACTIONS] = actions

    if extra_data:
        data = payload.setdefault(const.NOTIFY_DATA, {})
        data.update(extra_data)

    const.LOGGER.debug(
        "async_send_notification: %s.%s - title='%s', message='%s'",
        domain,
        svc,
        title,
        message,
    )

    await hass.services.async_call(domain, svc, payload, blocking=True)


def build_reminder_actions(schedule_id: str, reminder_id: str) -> list[dict[str, str]]:
    """Build the Taken / Missed action buttons for one reminder.

    Action strings are pipe-separated: "ACTION|schedule_id|reminder_id".
    """
    return [
        {
            const.NOTIFY_ACTION: const.ACTION_SEPARATOR.join(
                (const.ACTION_DOSE_TAKEN, schedule_id, reminder_id)
            ),
            const.NOTIFY_TITLE: const.ACTION_TITLE_TAKEN,
        },
        {
            const.NOTIFY_ACTION: const.ACTION_SEPARATOR.join(
                (const.ACTION_DOSE_MISSED, schedule_id, reminder_id)
            ),
            const.NOTIFY_TITLE: const.ACTION_TITLE_MISSED,
        },
    ]


class NotificationManager(BaseManager):
    """Reminder dispatcher delivering through a Home Assistant notify service.

    Timers live in memory only. Reminders issued before a restart are
    re-issued by the schedule manager when the integration is set up again.
    """

    def __init__(
        self, hass: HomeAssistant, entry_id: str, notify_service: str
    ) -> None:
        """Initialize notification manager.

        Args:
            hass: Home Assistant instance
            entry_id: Config entry id scoping events
            notify_service: Notify service in "notify.name" format
        """
        super().__init__(hass, entry_id)
        self._notify_service = notify_service
        self._timers: dict[str, Callable[[], None]] = {}

    async def async_setup(self) -> None:
        """Nothing to load; timers are created on demand."""
        const.LOGGER.debug(
            "DEBUG: NotificationManager ready, delivering via '%s'",
            self._notify_service,
        )

    @property
    def scheduled_count(self) -> int:
        """Return how many reminders are waiting for their trigger."""
        return len(self._timers)

    # =========================================================================
    # Dispatcher
    # =========================================================================

    async def async_dispatch_schedule(
        self, content: ReminderContent, trigger: datetime
    ) -> str:
        """Schedule one reminder and return its handle.

        Raises:
            ValueError: If the trigger is not in the future.
        """
        trigger_utc = as_utc(trigger)
        if trigger_utc <= dt_now_utc():
            raise ValueError(f"Trigger {trigger.isoformat()} is not in the future")

        reminder_id = uuid.uuid4().hex

        @callback
        def _fire(_now: datetime) -> None:
            self._timers.pop(reminder_id, None)
            self.hass.async_create_task(self._async_deliver(reminder_id, content))

        self._timers[reminder_id] = async_track_point_in_utc_time(
            self.hass, _fire, trigger_utc
        )
        return reminder_id

    async def async_dispatch_cancel(self, handle: str) -> None:
        """Cancel a pending reminder. Unknown handles are ignored."""
        unsub = self._timers.pop(handle, None)
        if unsub is None:
            const.LOGGER.debug("DEBUG: No pending reminder for handle '%s'", handle)
            return
        unsub()

    async def async_unload(self) -> None:
        """Cancel every pending timer and drop event subscriptions."""
        while self._timers:
            _, unsub = self._timers.popitem()
            unsub()
        await super().async_unload()

    # =========================================================================
    # Delivery
    # =========================================================================

    async def _async_deliver(self, reminder_id: str, content: ReminderContent) -> None:
        """Send a fired reminder and report it as delivered."""
        schedule_id = content.get("data", {}).get(const.DATA_SCHEDULE_ID, "")
        sent = await self._send_notification(
            self._notify_service,
            content.get("title", ""),
            content.get("body", ""),
            actions=build_reminder_actions(schedule_id, reminder_id),
            extra_data={const.NOTIFY_TAG: f"{const.DOMAIN}_{schedule_id}"},
        )
        if not sent:
            return
        self.emit(
            const.SIGNAL_SUFFIX_REMINDER_TRIGGERED,
            schedule_id=schedule_id,
            reminder_id=reminder_id,
        )

    async def _send_notification(
        self,
        notify_service: str,
        title: str,
        message: str,
        actions: list[dict[str, str]] | None = None,
        extra_data: dict[str, str] | None = None,
    ) -> bool:
        """Send a notification using the specified notify service.

        Gracefully handles a notify service that is not (yet) available.

        Returns:
            True if the notify service accepted the notification.
        """
        if "." not in notify_service:
            domain = const.NOTIFY_DOMAIN
            service = notify_service
        else:
            domain, service = notify_service.split(".", 1)

        if not self.hass.services.has_service(domain, service):
            const.LOGGER.warning(
                "Notification service '%s.%s' not available - skipping reminder",
                domain,
                service,
            )
            return False

        const.LOGGER.debug(
            "Sending reminder via '%s.%s': title='%s', message='%s'",
            domain,
            service,
            title,
            message,
        )

        try:
            await async_send_notification(
                self.hass,
                notify_service,
                title,
                message,
                actions,
                extra_data,
            )
            const.LOGGER.debug("Reminder sent via '%s.%s'", domain, service)
            return True

        except Exception as err:  # pylint: disable=broad-exception-caught
            # Runs in a fire-and-forget task; errors must not escape it
            const.LOGGER.error(
                "Unexpected error sending reminder via '%s.%s': %s",
                domain,
                service,
                err,
            )
            return False
