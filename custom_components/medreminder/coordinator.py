# File: coordinator.py
"""Coordinator for the MedReminder integration.

Owns the managers, publishes a read-only adherence summary on a fixed polling
interval, and exposes the operations used by services, entities and the
notification action handler.
"""

# pylint: disable=too-many-public-methods

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import const
from .engines.adherence_engine import AdherenceEngine
from .engines.recurrence_engine import medicine_id_for, schedule_time_of_day
from .managers import (
    AdherenceManager,
    NotificationManager,
    ReminderManager,
    ScheduleManager,
)
from .utils.dt_utils import as_local, dt_parse, get_time_zone, normalize_time_of_day

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import KeyValueStore
    from .type_defs import (
        AdherenceRecord,
        CalendarDay,
        DoseSlotStatus,
        IssuedReminder,
        MedicineData,
        ReminderDispatcher,
        ScheduleSpec,
    )


class MedReminderCoordinator(DataUpdateCoordinator):
    """Coordinator for MedReminder integration.

    Polling never mutates state; it only recomputes the adherence summary
    from the ledger and the active schedules.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: KeyValueStore,
        dispatcher: ReminderDispatcher | None = None,
    ) -> None:
        """Initialize the MedReminderCoordinator.

        Args:
            hass: Home Assistant instance
            config_entry: Config entry holding the integration options
            store: Key-value store shared by the managers
            dispatcher: Reminder dispatcher; defaults to the notify-service one
        """
        options = {**config_entry.data, **config_entry.options}
        update_interval_seconds = options.get(
            const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
        )

        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=timedelta(seconds=update_interval_seconds),
        )
        self.store = store

        entry_id = config_entry.entry_id
        if dispatcher is None:
            dispatcher = NotificationManager(
                hass,
                entry_id,
                options.get(const.CONF_NOTIFY_SERVICE, const.DEFAULT_NOTIFY_SERVICE),
            )
        self.dispatcher = dispatcher

        self.reminder_manager = ReminderManager(hass, entry_id, store, dispatcher)
        self.adherence_manager = AdherenceManager(
            hass,
            entry_id,
            store,
            timezone_for=self._medicine_timezone,
        )
        self.schedule_manager = ScheduleManager(
            hass,
            entry_id,
            store,
            self.reminder_manager,
            int(
                options.get(const.CONF_OCCURRENCE_COUNT, const.DEFAULT_OCCURRENCE_COUNT)
            ),
        )

    # -------------------------------------------------------------------------------------
    # Setup / teardown
    # -------------------------------------------------------------------------------------

    async def async_setup(self) -> None:
        """Set up managers and re-issue persisted schedules."""
        if isinstance(self.dispatcher, NotificationManager):
            await self.dispatcher.async_setup()
        await self.reminder_manager.async_setup()
        await self.adherence_manager.async_setup()
        await self.schedule_manager.async_setup()
        await self.schedule_manager.async_restore()

    async def async_unload_managers(self) -> None:
        """Cancel pending timers and drop event subscriptions."""
        await self.schedule_manager.async_unload()
        await self.adherence_manager.async_unload()
        await self.reminder_manager.async_unload()
        if isinstance(self.dispatcher, NotificationManager):
            await self.dispatcher.async_unload()

    def _medicine_timezone(self, medicine_id: str) -> str | None:
        return self.schedule_manager.get_medicine_timezone(medicine_id)

    async def _async_update_data(self) -> dict[str, Any]:
        """Periodic update."""
        try:
            pending = await self.reminder_manager.async_get_pending_reminders(
                self.schedule_manager.schedule_ids
            )
            return AdherenceEngine.summary(
                self.adherence_manager.records,
                self.schedule_manager.schedules.values(),
                pending,
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise UpdateFailed(f"Error updating MedReminder data: {err}") from err

    # -------------------------------------------------------------------------------------
    # Read-only accessors
    # -------------------------------------------------------------------------------------

    @property
    def medicines(self) -> dict[str, MedicineData]:
        """Return registered medicines."""
        return self.schedule_manager.medicines

    @property
    def schedules(self) -> dict[str, ScheduleSpec]:
        """Return active schedule specs."""
        return self.schedule_manager.schedules

    def percentage(self, start: str | date, end: str | date) -> int:
        """Return the adherence percentage over [start, end]."""
        return AdherenceEngine.percentage(self.adherence_manager.records, start, end)

    def streak(self, today: date | None = None) -> int:
        """Return the current run of fully-taken days."""
        return AdherenceEngine.streak(self.adherence_manager.records, today)

    def day_status(self, day: str | date) -> str:
        """Return the status of a calendar day."""
        return AdherenceEngine.day_status(self.adherence_manager.records, day)

    def dose_status(
        self,
        day: str | date,
        schedule_id: str,
        now: datetime | None = None,
    ) -> str:
        """Return taken, missed or pending for a schedule's dose on a day.

        Raises:
            ValueError: If the schedule is unknown.
        """
        spec = self.schedules.get(schedule_id)
        if spec is None:
            raise ValueError(f"Schedule '{schedule_id}' not found")
        return AdherenceEngine.dose_status(
            self.adherence_manager.records,
            day,
            spec,
            schedule_time_of_day(spec),
            now,
        )

    def day_detail(
        self, day: str | date, now: datetime | None = None
    ) -> list[DoseSlotStatus]:
        """Return every expected dose of a day with its status."""
        return AdherenceEngine.day_detail(
            self.adherence_manager.records, self.schedules.values(), day, now
        )

    def month_calendar(self, year: int, month: int) -> list[CalendarDay | None]:
        """Return the Sunday-first month grid of day statuses."""
        return AdherenceEngine.month_calendar(
            self.adherence_manager.records, year, month
        )

    # -------------------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------------------

    async def async_add_medicine(self, **kwargs: Any) -> MedicineData:
        """Add or edit a medicine. See ScheduleManager.async_add_medicine."""
        return await self.schedule_manager.async_add_medicine(**kwargs)

    async def async_remove_medicine(self, medicine_id: str) -> None:
        """Remove a medicine and cancel its reminders."""
        await self.schedule_manager.async_remove_medicine(medicine_id)

    async def async_reschedule(
        self, spec: ScheduleSpec, now: datetime | None = None
    ) -> list[str]:
        """Issue (or re-issue) reminders for a raw schedule spec."""
        return await self.schedule_manager.async_register_schedule(spec, now=now)

    async def async_cancel(self, schedule_id: str) -> None:
        """Cancel a schedule's reminders and stop tracking it."""
        await self.schedule_manager.async_unregister_schedule(schedule_id)

    async def async_set_taken(
        self, medicine_id: str, day: str | date, time_value: Any, taken: bool
    ) -> AdherenceRecord:
        """Record a dose outcome."""
        return await self.adherence_manager.async_set_taken(
            medicine_id, day, time_value, taken
        )

    async def async_toggle_taken(
        self, medicine_id: str, day: str | date, time_value: Any
    ) -> AdherenceRecord:
        """Flip a dose outcome."""
        return await self.adherence_manager.async_toggle_taken(
            medicine_id, day, time_value
        )

    async def async_complete_reminder(
        self, schedule_id: str, reminder_id: str, taken: bool
    ) -> AdherenceRecord:
        """Complete a delivered reminder and record the dose outcome.

        The dose slot is the reminder's trigger read as local wall-clock time
        in the schedule's zone.

        Raises:
            ValueError: If the reminder is not part of the schedule.
        """
        reminder: IssuedReminder | None = (
            await self.reminder_manager.async_mark_completed(schedule_id, reminder_id)
        )
        if reminder is None:
            raise ValueError(
                const.ERROR_REMINDER_NOT_FOUND_FMT.format(reminder_id, schedule_id)
            )

        spec = self.schedules.get(schedule_id)
        tz = get_time_zone(spec.get(const.DATA_SCHEDULE_TIMEZONE) if spec else None)
        trigger = dt_parse(reminder[const.DATA_REMINDER_TRIGGER])
        if trigger is None:
            raise ValueError(
                f"Reminder '{reminder_id}' has an unreadable trigger "
                f"'{reminder[const.DATA_REMINDER_TRIGGER]}'"
            )
        local_trigger = as_local(trigger, tz)
        medicine_id = medicine_id_for(spec or {const.DATA_SCHEDULE_ID: schedule_id})

        return await self.adherence_manager.async_set_taken(
            medicine_id,
            local_trigger.date(),
            normalize_time_of_day(local_trigger, tz),
            taken,
        )
