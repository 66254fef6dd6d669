# File: managers/reminder_manager.py
"""Reminder Manager - Issues, re-issues and cancels reminders per schedule.

Responsibilities:
- Expand a schedule spec through the RecurrenceEngine
- Submit each occurrence to the injected dispatcher, tolerating failures
- Persist the issued-reminder set under "schedule:{schedule_id}"
- Drive the reminder state machine:
  scheduled → triggered → completed, or scheduled → cancelled (removed)

Rescheduling is idempotent and destructive-first: the previous issued set of
a schedule is always cancelled before new reminders are issued. Restoring
after a restart keeps triggered reminders so they stay actionable. All
mutations of one schedule's set are serialized with a per-schedule lock.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from .. import const
from ..engines.recurrence_engine import (
    RecurrenceEngine,
    ScheduleSpecError,
    validate_schedule_spec,
)
from ..utils.dt_utils import as_utc
from .base_manager import BaseManager

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..store import KeyValueStore
    from ..type_defs import (
        IssuedReminder,
        ReminderContent,
        ReminderDispatcher,
        ScheduleSpec,
    )


def schedule_store_key(schedule_id: str) -> str:
    """Return the store key holding a schedule's issued reminders."""
    return f"{const.STORE_KEY_SCHEDULE_PREFIX}{schedule_id}"


def reminder_state(reminder: IssuedReminder) -> str:
    """Return the lifecycle state of an issued reminder."""
    if reminder.get(const.DATA_REMINDER_COMPLETED):
        return const.REMINDER_STATE_COMPLETED
    if reminder.get(const.DATA_REMINDER_DELIVERED):
        return const.REMINDER_STATE_TRIGGERED
    return const.REMINDER_STATE_SCHEDULED


class ReminderManager(BaseManager):
    """Manager for the issued-reminder sets of all schedules.

    The dispatcher and store are injected so the manager can run against the
    Home Assistant notification manager in production and fakes in tests.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        store: KeyValueStore,
        dispatcher: ReminderDispatcher,
    ) -> None:
        """Initialize reminder manager.

        Args:
            hass: Home Assistant instance
            entry_id: Config entry id scoping events
            store: Key-value store for issued-reminder sets
            dispatcher: Notification dispatch capability
        """
        super().__init__(hass, entry_id)
        self._store = store
        self._dispatcher = dispatcher
        self._locks: dict[str, asyncio.Lock] = {}

    async def async_setup(self) -> None:
        """Subscribe to delivery events from the dispatcher."""
        self.listen(
            const.SIGNAL_SUFFIX_REMINDER_TRIGGERED, self._async_handle_reminder_triggered
        )

    def _lock_for(self, schedule_id: str) -> asyncio.Lock:
        """Return the lock serializing mutations of one schedule's set."""
        return self._locks.setdefault(schedule_id, asyncio.Lock())

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def async_reschedule(
        self, spec: ScheduleSpec, now: datetime | None = None
    ) -> list[str]:
        """Cancel a schedule's reminders and issue one per expanded occurrence.

        Args:
            spec: Schedule to (re)issue.
            now: Reference instant for dropping past occurrences.

        Returns:
            Handles of the reminders issued successfully.

        Raises:
            ScheduleSpecError: If schedule_id, dtstart or rrule is missing.
            RecurrenceError: If the rule, zone or occurrence count is invalid.
        """
        engine = self._engine_for(spec)
        schedule_id = spec[const.DATA_SCHEDULE_ID]

        async with self._lock_for(schedule_id):
            await self._async_cancel_unlocked(schedule_id)

            triggers = engine.expand(
                spec[const.DATA_SCHEDULE_OCCURRENCE_COUNT], now=now
            )
            issued = await self._async_issue(spec, triggers)
            await self._async_write(schedule_id, issued)

        const.LOGGER.info(
            "INFO: Scheduled %d of %d reminders for '%s'",
            len(issued),
            len(triggers),
            schedule_id,
        )
        self.emit(const.SIGNAL_SUFFIX_SCHEDULE_CHANGED, schedule_id=schedule_id)
        return [reminder[const.DATA_REMINDER_ID] for reminder in issued]

    async def async_restore(
        self, spec: ScheduleSpec, now: datetime | None = None
    ) -> list[str]:
        """Re-issue a schedule after a restart.

        Dispatcher timers of the previous run are gone, so scheduled reminders
        are replaced by a fresh expansion from `now`. Triggered reminders keep
        their ids so actions on already delivered notifications still
        complete them. Completed reminders are dropped.

        Returns:
            Handles of the reminders issued by this call.

        Raises:
            ScheduleSpecError: If schedule_id, dtstart or rrule is missing.
            RecurrenceError: If the rule, zone or occurrence count is invalid.
        """
        engine = self._engine_for(spec)
        schedule_id = spec[const.DATA_SCHEDULE_ID]

        async with self._lock_for(schedule_id):
            previous = await self._async_read(schedule_id)
            kept = [
                reminder
                for reminder in previous
                if reminder_state(reminder) == const.REMINDER_STATE_TRIGGERED
            ]
            await self._async_cancel_reminders(
                schedule_id,
                [
                    reminder
                    for reminder in previous
                    if reminder_state(reminder) == const.REMINDER_STATE_SCHEDULED
                ],
            )

            kept_triggers = {
                reminder.get(const.DATA_REMINDER_TRIGGER) for reminder in kept
            }
            triggers = [
                trigger
                for trigger in engine.expand(
                    spec[const.DATA_SCHEDULE_OCCURRENCE_COUNT], now=now
                )
                if as_utc(trigger).isoformat() not in kept_triggers
            ]
            issued = await self._async_issue(spec, triggers)
            await self._async_write(schedule_id, kept + issued)

        const.LOGGER.debug(
            "DEBUG: Restored '%s' with %d pending and %d new reminders",
            schedule_id,
            len(kept),
            len(issued),
        )
        return [reminder[const.DATA_REMINDER_ID] for reminder in issued]

    def _engine_for(self, spec: ScheduleSpec) -> RecurrenceEngine:
        validate_schedule_spec(spec)
        return RecurrenceEngine(
            spec[const.DATA_SCHEDULE_DTSTART],
            spec.get(const.DATA_SCHEDULE_TIMEZONE),
            spec[const.DATA_SCHEDULE_RRULE],
        )

    async def _async_issue(
        self, spec: ScheduleSpec, triggers: list[datetime]
    ) -> list[IssuedReminder]:
        """Submit each trigger to the dispatcher, skipping failed ones."""
        schedule_id = spec[const.DATA_SCHEDULE_ID]
        issued: list[IssuedReminder] = []

        for trigger in triggers:
            content: ReminderContent = {
                "title": spec.get(const.DATA_SCHEDULE_TITLE, ""),
                "body": spec.get(const.DATA_SCHEDULE_BODY, ""),
                "data": {const.DATA_SCHEDULE_ID: schedule_id},
            }
            try:
                handle = await self._dispatcher.async_dispatch_schedule(
                    content, trigger
                )
            except Exception as err:  # pylint: disable=broad-exception-caught
                # One failed occurrence must not abort the rest
                const.LOGGER.warning(
                    "WARNING: Failed to schedule reminder for '%s' at %s: %s",
                    schedule_id,
                    trigger.isoformat(),
                    err,
                )
                continue

            issued.append(
                {
                    const.DATA_REMINDER_ID: handle,
                    const.DATA_REMINDER_SCHEDULE_ID: schedule_id,
                    const.DATA_REMINDER_TRIGGER: as_utc(trigger).isoformat(),
                    const.DATA_REMINDER_DELIVERED: False,
                    const.DATA_REMINDER_COMPLETED: False,
                }
            )
        return issued

    async def async_cancel(self, schedule_id: str) -> None:
        """Cancel every issued reminder of a schedule and drop the persisted set.

        Raises:
            ScheduleSpecError: If schedule_id is empty.
        """
        if not schedule_id:
            raise ScheduleSpecError("schedule_id is required")

        async with self._lock_for(schedule_id):
            await self._async_cancel_unlocked(schedule_id)

        self.emit(const.SIGNAL_SUFFIX_SCHEDULE_CHANGED, schedule_id=schedule_id)

    async def _async_cancel_unlocked(self, schedule_id: str) -> None:
        """Cancel and delete a schedule's issued set. Caller holds the lock."""
        issued = await self._async_read(schedule_id)
        await self._async_cancel_reminders(schedule_id, issued)
        await self._async_delete(schedule_id)
        if issued:
            const.LOGGER.debug(
                "DEBUG: Cancelled %d reminders for '%s'", len(issued), schedule_id
            )

    async def _async_cancel_reminders(
        self, schedule_id: str, reminders: list[IssuedReminder]
    ) -> None:
        """Request cancellation of each reminder, tolerating failures."""
        for reminder in reminders:
            handle = reminder.get(const.DATA_REMINDER_ID)
            try:
                await self._dispatcher.async_dispatch_cancel(handle)
            except Exception as err:  # pylint: disable=broad-exception-caught
                const.LOGGER.warning(
                    "WARNING: Failed to cancel reminder '%s' for '%s': %s",
                    handle,
                    schedule_id,
                    err,
                )

    # =========================================================================
    # State machine
    # =========================================================================

    async def async_mark_triggered(self, schedule_id: str, reminder_id: str) -> bool:
        """Record that the dispatcher delivered a reminder.

        Returns:
            True if the reminder was found in the schedule's set.
        """
        return (
            await self._async_update_reminder(
                schedule_id, reminder_id, {const.DATA_REMINDER_DELIVERED: True}
            )
            is not None
        )

    async def async_mark_completed(
        self, schedule_id: str, reminder_id: str
    ) -> IssuedReminder | None:
        """Record that the user acted on a reminder.

        Completing a reminder that was never reported as delivered also marks
        it delivered.

        Returns:
            The updated reminder, or None if it is not in the schedule's set.
        """
        return await self._async_update_reminder(
            schedule_id,
            reminder_id,
            {
                const.DATA_REMINDER_DELIVERED: True,
                const.DATA_REMINDER_COMPLETED: True,
            },
        )

    async def _async_update_reminder(
        self, schedule_id: str, reminder_id: str, changes: dict[str, Any]
    ) -> IssuedReminder | None:
        """Apply field changes to one reminder of a schedule's set."""
        async with self._lock_for(schedule_id):
            issued = await self._async_read(schedule_id)
            for index, reminder in enumerate(issued):
                if reminder.get(const.DATA_REMINDER_ID) == reminder_id:
                    updated: IssuedReminder = {**reminder, **changes}  # type: ignore[typeddict-item]
                    issued[index] = updated
                    await self._async_write(schedule_id, issued)
                    const.LOGGER.debug(
                        "DEBUG: Reminder '%s' of '%s' is now %s",
                        reminder_id,
                        schedule_id,
                        reminder_state(updated),
                    )
                    return updated

        const.LOGGER.warning(
            "WARNING: Reminder '%s' not found for schedule '%s'",
            reminder_id,
            schedule_id,
        )
        return None

    async def _async_handle_reminder_triggered(self, payload: dict[str, Any]) -> None:
        """Handle REMINDER_TRIGGERED event from the dispatcher."""
        await self.async_mark_triggered(
            payload[const.DATA_SCHEDULE_ID], payload[const.FIELD_REMINDER_ID]
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def async_get_reminders(self, schedule_id: str) -> list[IssuedReminder]:
        """Return the issued reminders of a schedule (empty if none)."""
        return await self._async_read(schedule_id)

    async def async_get_pending_reminders(
        self, schedule_ids: Iterable[str]
    ) -> list[IssuedReminder]:
        """Return triggered reminders still awaiting a dose outcome."""
        pending: list[IssuedReminder] = []
        for schedule_id in schedule_ids:
            pending.extend(
                reminder
                for reminder in await self._async_read(schedule_id)
                if reminder_state(reminder) == const.REMINDER_STATE_TRIGGERED
            )
        return sorted(pending, key=lambda r: r.get(const.DATA_REMINDER_TRIGGER, ""))

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _async_read(self, schedule_id: str) -> list[IssuedReminder]:
        """Read a schedule's issued set, treating failures as empty."""
        key = schedule_store_key(schedule_id)
        try:
            value = await self._store.async_get(key)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to read '%s': %s", key, err)
            return []

        if value is None:
            return []
        if not isinstance(value, list):
            const.LOGGER.error(
                "ERROR: Ignoring malformed reminder set under '%s': %s",
                key,
                type(value).__name__,
            )
            return []
        return [reminder for reminder in value if isinstance(reminder, dict)]

    async def _async_write(self, schedule_id: str, issued: list[IssuedReminder]) -> None:
        """Overwrite a schedule's issued set, logging failures."""
        key = schedule_store_key(schedule_id)
        try:
            await self._store.async_set(key, issued)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to write '%s': %s", key, err)

    async def _async_delete(self, schedule_id: str) -> None:
        """Delete a schedule's issued set, logging failures."""
        key = schedule_store_key(schedule_id)
        try:
            await self._store.async_delete(key)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to delete '%s': %s", key, err)
