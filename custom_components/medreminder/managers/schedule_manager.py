# File: managers/schedule_manager.py
"""Schedule Manager - Medicine registry and schedule supersession.

A medicine is stored once under "medicines" with its dosing pattern; each of
its daily dose times becomes a schedule spec stored under "schedules" and
issued through the ReminderManager.

Schedules are never edited in place. Editing a medicine derives a fresh set
of specs; slots that disappeared are cancelled and every remaining slot is
rescheduled, which cancels its previous reminders first.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from .. import const
from ..engines.recurrence_engine import (
    RecurrenceError,
    build_schedule_specs,
    medicine_id_for,
    normalize_frequency,
    schedule_time_of_day,
    validate_schedule_spec,
)
from ..utils.dt_utils import date_key, dt_today_local, get_time_zone
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import date, datetime

    from homeassistant.core import HomeAssistant

    from ..store import KeyValueStore
    from ..type_defs import MedicineData, ScheduleSpec
    from .reminder_manager import ReminderManager


class ScheduleManager(BaseManager):
    """Manager for medicines and the schedule specs derived from them."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        store: KeyValueStore,
        reminder_manager: ReminderManager,
        occurrence_count: int = const.DEFAULT_OCCURRENCE_COUNT,
    ) -> None:
        """Initialize schedule manager.

        Args:
            hass: Home Assistant instance
            entry_id: Config entry id scoping events
            store: Key-value store for medicines and schedules
            reminder_manager: Issues and cancels reminders per schedule
            occurrence_count: Occurrences issued per schedule
        """
        super().__init__(hass, entry_id)
        self._store = store
        self._reminders = reminder_manager
        self._occurrence_count = occurrence_count
        self._medicines: dict[str, MedicineData] = {}
        self._schedules: dict[str, ScheduleSpec] = {}
        self._lock = asyncio.Lock()

    async def async_setup(self) -> None:
        """Load medicines and schedules from the store."""
        self._medicines = await self._async_load_mapping(const.STORE_KEY_MEDICINES)
        self._schedules = await self._async_load_mapping(const.STORE_KEY_SCHEDULES)
        const.LOGGER.debug(
            "DEBUG: Loaded %d medicines and %d schedules",
            len(self._medicines),
            len(self._schedules),
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def medicines(self) -> dict[str, MedicineData]:
        """Return registered medicines by id."""
        return self._medicines

    @property
    def schedules(self) -> dict[str, ScheduleSpec]:
        """Return active schedule specs by schedule id."""
        return self._schedules

    @property
    def occurrence_count(self) -> int:
        """Return the number of occurrences issued per schedule."""
        return self._occurrence_count

    @property
    def schedule_ids(self) -> list[str]:
        """Return active schedule ids, sorted."""
        return sorted(self._schedules)

    def get_medicine_name(self, medicine_id: str) -> str:
        """Return a medicine's display name."""
        medicine = self._medicines.get(medicine_id)
        if medicine is None:
            return const.DISPLAY_UNKNOWN_MEDICINE
        return medicine.get(const.DATA_MEDICINE_NAME) or const.DISPLAY_UNKNOWN_MEDICINE

    def get_medicine_timezone(self, medicine_id: str) -> str | None:
        """Return the zone name of a medicine or of its raw schedules."""
        medicine = self._medicines.get(medicine_id)
        if medicine is not None:
            return medicine.get(const.DATA_MEDICINE_TIMEZONE)
        for spec in self._schedules.values():
            if medicine_id_for(spec) == medicine_id:
                return spec.get(const.DATA_SCHEDULE_TIMEZONE)
        return None

    # =========================================================================
    # Medicines
    # =========================================================================

    async def async_add_medicine(
        self,
        medicine_id: str,
        name: str,
        frequency: str,
        dose_times: list[Any],
        start_date: str | date | None = None,
        timezone: str | None = None,
        body: str | None = None,
        now: datetime | None = None,
    ) -> MedicineData:
        """Add a medicine, or supersede the schedules of an existing one.

        Raises:
            ScheduleSpecError: If the medicine id or dose times are missing.
            RecurrenceError: If the frequency, zone or start date is invalid.
            ValueError: If a dose time cannot be read.
        """
        canonical = normalize_frequency(frequency)
        try:
            tz = get_time_zone(timezone)
        except ValueError as err:
            raise RecurrenceError(str(err)) from err
        start = date_key(start_date) if start_date else dt_today_local(tz).isoformat()

        specs = build_schedule_specs(
            medicine_id,
            name,
            canonical,
            dose_times,
            start,
            tz.key,
            occurrence_count=self._occurrence_count,
            body=body,
        )
        new_ids = [spec[const.DATA_SCHEDULE_ID] for spec in specs]

        async with self._lock:
            previous = self._medicines.get(medicine_id)
            stale = [
                schedule_id
                for schedule_id in (previous or {}).get(
                    const.DATA_MEDICINE_SCHEDULE_IDS, []
                )
                if schedule_id not in new_ids
            ]
            for schedule_id in stale:
                await self._reminders.async_cancel(schedule_id)
                self._schedules.pop(schedule_id, None)

            for spec in specs:
                await self._reminders.async_reschedule(spec, now=now)
                self._schedules[spec[const.DATA_SCHEDULE_ID]] = spec

            medicine: MedicineData = {
                const.DATA_MEDICINE_ID: medicine_id,
                const.DATA_MEDICINE_NAME: name,
                const.DATA_MEDICINE_BODY: body or "",
                const.DATA_MEDICINE_FREQUENCY: canonical,
                const.DATA_MEDICINE_DOSE_TIMES: [
                    schedule_time_of_day(spec) for spec in specs
                ],
                const.DATA_MEDICINE_START_DATE: start,
                const.DATA_MEDICINE_TIMEZONE: tz.key,
                const.DATA_MEDICINE_SCHEDULE_IDS: new_ids,
            }
            self._medicines[medicine_id] = medicine
            await self._async_persist()

        const.LOGGER.info(
            "INFO: %s medicine '%s' with %d dose times (%s)",
            "Updated" if previous else "Added",
            medicine_id,
            len(specs),
            canonical,
        )
        self.emit(const.SIGNAL_SUFFIX_SCHEDULE_CHANGED, medicine_id=medicine_id)
        return medicine

    async def async_remove_medicine(self, medicine_id: str) -> None:
        """Remove a medicine and cancel all of its reminders.

        Adherence records of the medicine are kept.

        Raises:
            ValueError: If the medicine is unknown.
        """
        async with self._lock:
            medicine = self._medicines.pop(medicine_id, None)
            if medicine is None:
                raise ValueError(const.ERROR_MEDICINE_NOT_FOUND_FMT.format(medicine_id))

            for schedule_id in medicine.get(const.DATA_MEDICINE_SCHEDULE_IDS, []):
                await self._reminders.async_cancel(schedule_id)
                self._schedules.pop(schedule_id, None)

            await self._async_persist()

        const.LOGGER.info("INFO: Removed medicine '%s'", medicine_id)
        self.emit(const.SIGNAL_SUFFIX_SCHEDULE_CHANGED, medicine_id=medicine_id)

    # =========================================================================
    # Raw schedules
    # =========================================================================

    async def async_register_schedule(
        self, spec: ScheduleSpec, now: datetime | None = None
    ) -> list[str]:
        """Track a schedule spec and (re)issue its reminders."""
        validate_schedule_spec(spec)
        async with self._lock:
            handles = await self._reminders.async_reschedule(spec, now=now)
            self._schedules[spec[const.DATA_SCHEDULE_ID]] = dict(spec)  # type: ignore[assignment]
            await self._async_persist()
        return handles

    async def async_unregister_schedule(self, schedule_id: str) -> None:
        """Stop tracking a schedule and cancel its reminders."""
        async with self._lock:
            await self._reminders.async_cancel(schedule_id)
            spec = self._schedules.pop(schedule_id, None)
            if spec is not None:
                medicine = self._medicines.get(medicine_id_for(spec))
                if medicine is not None:
                    ids = medicine.get(const.DATA_MEDICINE_SCHEDULE_IDS, [])
                    medicine[const.DATA_MEDICINE_SCHEDULE_IDS] = [
                        sid for sid in ids if sid != schedule_id
                    ]
            await self._async_persist()

    async def async_restore(self, now: datetime | None = None) -> int:
        """Re-issue every tracked schedule after a restart.

        Dispatcher timers do not survive a restart, so each schedule is
        re-expanded from `now` while its triggered reminders stay pending.
        Schedules derived from a medicine take the configured occurrence
        count; raw schedules keep their own. A schedule that fails is logged
        and skipped.

        Returns:
            Number of schedules restored.
        """
        derived = {
            schedule_id
            for medicine in self._medicines.values()
            for schedule_id in medicine.get(const.DATA_MEDICINE_SCHEDULE_IDS, [])
        }
        recounted = False
        restored = 0

        for schedule_id, spec in list(self._schedules.items()):
            if (
                schedule_id in derived
                and spec.get(const.DATA_SCHEDULE_OCCURRENCE_COUNT)
                != self._occurrence_count
            ):
                spec = {  # type: ignore[assignment]
                    **spec,
                    const.DATA_SCHEDULE_OCCURRENCE_COUNT: self._occurrence_count,
                }
                self._schedules[schedule_id] = spec
                recounted = True
            try:
                await self._reminders.async_restore(spec, now=now)
            except ValueError as err:
                const.LOGGER.error(
                    "ERROR: Failed to restore schedule '%s': %s", schedule_id, err
                )
                continue
            restored += 1

        if recounted:
            await self._async_persist()

        const.LOGGER.debug(
            "DEBUG: Restored %d of %d schedules", restored, len(self._schedules)
        )
        return restored

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _async_load_mapping(self, key: str) -> dict[str, Any]:
        try:
            value = await self._store.async_get(key)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to read '%s': %s", key, err)
            return {}
        if value is None:
            return {}
        if not isinstance(value, dict):
            const.LOGGER.error(
                "ERROR: Ignoring malformed '%s': %s", key, type(value).__name__
            )
            return {}
        return value

    async def _async_persist(self) -> None:
        try:
            await self._store.async_set(const.STORE_KEY_MEDICINES, self._medicines)
            await self._store.async_set(const.STORE_KEY_SCHEDULES, self._schedules)
        except Exception as err:  # pylint: disable=broad-exception-caught
            const.LOGGER.error("ERROR: Failed to persist medicine schedules: %s", err)
