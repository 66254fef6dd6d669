"""Adherence Engine - Pure reconciliation of dose records against schedules.

Derives everything the history and today views need from two inputs:
- the adherence ledger (records keyed by "{medicine_id}-{date}-{HH:MM}")
- the active schedule specs

Design Principles:
    - Stateless: No coordinator or hass reference, operates on passed data
    - Pure: Ledger updates return a new snapshot instead of mutating input
    - Neutral on empty data: 0 %, streak 0, "no-data" (never raises)
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, tzinfo
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils.dt_utils import (
    as_utc,
    date_key,
    dt_now_iso,
    dt_now_utc,
    dt_today_local,
    get_time_zone,
    local_instant,
    normalize_time_of_day,
)
from ..utils.math_utils import calculate_percentage
from .recurrence_engine import (
    RecurrenceEngine,
    RecurrenceError,
    medicine_id_for,
    schedule_time_of_day,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..type_defs import (
        AdherenceHistory,
        AdherenceRecord,
        CalendarDay,
        DoseSlotStatus,
        IssuedReminder,
        RecordsMapping,
        ScheduleSpec,
    )


class AdherenceEngine:
    """Stateless adherence calculations.

    All methods are static and operate on the records mapping passed in.
    The engine does NOT persist data; the adherence manager owns persistence.

    Example:
        records = adherence_manager.records
        AdherenceEngine.percentage(records, "2026-01-01", "2026-01-30")  # → 67
        AdherenceEngine.streak(records, today=date(2026, 1, 30))  # → 3
    """

    # ────────────────────────────────────────────────────────────────
    # Ledger snapshots
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def ledger_key(medicine_id: str, day: str, time_of_day: str) -> str:
        """Return the unique ledger key for a dose slot."""
        return f"{medicine_id}-{day}-{time_of_day}"

    @staticmethod
    def build_record(
        medicine_id: str,
        day: str | date,
        time_value: Any,
        taken: bool,
        recorded_at: str | None = None,
        tz: tzinfo | None = None,
    ) -> AdherenceRecord:
        """Build a normalized adherence record.

        Aware date and time values are read as wall-clock time in `tz`, the
        zone of the medicine's schedule.

        Raises:
            ValueError: If the date or time value cannot be normalized.
        """
        if not medicine_id:
            raise ValueError("medicine_id is required")
        return {
            const.DATA_RECORD_MEDICINE_ID: str(medicine_id),
            const.DATA_RECORD_DATE: date_key(day, tz),
            const.DATA_RECORD_TIME: normalize_time_of_day(time_value, tz),
            const.DATA_RECORD_TAKEN: bool(taken),
            const.DATA_RECORD_RECORDED_AT: recorded_at or dt_now_iso(),
        }

    @staticmethod
    def with_record(
        records: RecordsMapping, record: AdherenceRecord
    ) -> AdherenceHistory:
        """Return a new snapshot with `record` written over its key."""
        key = AdherenceEngine.ledger_key(
            record[const.DATA_RECORD_MEDICINE_ID],
            record[const.DATA_RECORD_DATE],
            record[const.DATA_RECORD_TIME],
        )
        snapshot = dict(records)
        snapshot[key] = record
        return snapshot

    @staticmethod
    def records_for_date(records: RecordsMapping, day: str | date) -> list[AdherenceRecord]:
        """Return the records of one date, ordered by time of day."""
        day_str = date_key(day)
        return sorted(
            (r for r in records.values() if r.get(const.DATA_RECORD_DATE) == day_str),
            key=lambda r: (r.get(const.DATA_RECORD_TIME, ""), r.get(const.DATA_RECORD_MEDICINE_ID, "")),
        )

    @staticmethod
    def records_in_range(
        records: RecordsMapping, start: str | date, end: str | date
    ) -> list[AdherenceRecord]:
        """Return records whose date is in [start, end] inclusive."""
        start_str = date_key(start)
        end_str = date_key(end)
        return [
            r
            for r in records.values()
            if start_str <= r.get(const.DATA_RECORD_DATE, "") <= end_str
        ]

    # ────────────────────────────────────────────────────────────────
    # Aggregates
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def percentage(records: RecordsMapping, start: str | date, end: str | date) -> int:
        """Return the share of taken records in [start, end], 0 if none."""
        in_range = AdherenceEngine.records_in_range(records, start, end)
        taken = sum(1 for r in in_range if r.get(const.DATA_RECORD_TAKEN))
        return calculate_percentage(taken, len(in_range))

    @staticmethod
    def streak(records: RecordsMapping, today: date | None = None) -> int:
        """Count consecutive fully-taken days walking backward from today.

        A day counts only if it has at least one record and every record is
        taken. The walk stops at the first day that does not, today included.
        """
        day = today or dt_today_local()
        count = 0
        while True:
            day_records = AdherenceEngine.records_for_date(records, day)
            if not day_records:
                break
            if not all(r.get(const.DATA_RECORD_TAKEN) for r in day_records):
                break
            count += 1
            day -= timedelta(days=1)
        return count

    @staticmethod
    def day_status(records: RecordsMapping, day: str | date) -> str:
        """Classify a date as complete, partial, missed or no-data."""
        day_records = AdherenceEngine.records_for_date(records, day)
        if not day_records:
            return const.DAY_STATUS_NO_DATA

        taken = [bool(r.get(const.DATA_RECORD_TAKEN)) for r in day_records]
        if all(taken):
            return const.DAY_STATUS_COMPLETE
        if any(taken):
            return const.DAY_STATUS_PARTIAL
        return const.DAY_STATUS_MISSED

    @staticmethod
    def dose_status(
        records: RecordsMapping,
        day: str | date,
        schedule: ScheduleSpec,
        time_of_day: Any,
        now: datetime | None = None,
    ) -> str:
        """Return taken, missed or pending for one expected dose slot.

        A record decides the status. Without one, the dose is pending while
        its local wall-clock instant on `day` is still after `now`, and missed
        once that instant has passed.
        """
        tz = get_time_zone(schedule.get(const.DATA_SCHEDULE_TIMEZONE))
        day_str = date_key(day)
        slot_time = normalize_time_of_day(time_of_day, tz)
        key = AdherenceEngine.ledger_key(medicine_id_for(schedule), day_str, slot_time)

        record = records.get(key)
        if record is not None:
            if record.get(const.DATA_RECORD_TAKEN):
                return const.DOSE_STATUS_TAKEN
            return const.DOSE_STATUS_MISSED

        reference = as_utc(now) if now is not None else dt_now_utc()
        if local_instant(day_str, slot_time, tz) > reference:
            return const.DOSE_STATUS_PENDING
        return const.DOSE_STATUS_MISSED

    # ────────────────────────────────────────────────────────────────
    # Calendar / day detail
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def expected_doses(
        schedules: Iterable[ScheduleSpec], day: str | date
    ) -> list[tuple[ScheduleSpec, str]]:
        """Return (schedule, "HH:MM") for every dose slot expected on `day`.

        Schedules that cannot be expanded are skipped with a warning.
        """
        expected: list[tuple[ScheduleSpec, str]] = []
        day_str = date_key(day)
        for spec in schedules:
            try:
                engine = RecurrenceEngine(
                    spec.get(const.DATA_SCHEDULE_DTSTART),
                    spec.get(const.DATA_SCHEDULE_TIMEZONE),
                    spec.get(const.DATA_SCHEDULE_RRULE),
                )
                if engine.occurs_on(day_str):
                    expected.append((spec, schedule_time_of_day(spec)))
            except RecurrenceError as err:
                const.LOGGER.warning(
                    "AdherenceEngine: Skipping schedule '%s': %s",
                    spec.get(const.DATA_SCHEDULE_ID),
                    err,
                )
        return sorted(expected, key=lambda item: (item[1], item[0].get(const.DATA_SCHEDULE_ID, "")))

    @staticmethod
    def day_detail(
        records: RecordsMapping,
        schedules: Iterable[ScheduleSpec],
        day: str | date,
        now: datetime | None = None,
    ) -> list[DoseSlotStatus]:
        """List every expected dose slot of a day with its dose status."""
        detail: list[DoseSlotStatus] = []
        for spec, time_of_day in AdherenceEngine.expected_doses(schedules, day):
            detail.append(
                {
                    "schedule_id": spec[const.DATA_SCHEDULE_ID],
                    "medicine_id": medicine_id_for(spec),
                    "title": spec.get(const.DATA_SCHEDULE_TITLE)
                    or const.DISPLAY_UNKNOWN_MEDICINE,
                    "time": time_of_day,
                    "status": AdherenceEngine.dose_status(
                        records, day, spec, time_of_day, now
                    ),
                }
            )
        return detail

    @staticmethod
    def medication_dots(
        records: RecordsMapping,
        schedules: Iterable[ScheduleSpec],
        day: str | date,
        now: datetime | None = None,
    ) -> dict[str, list[str]]:
        """Return per-medicine dot colors for a calendar day.

        Uses the same dose status rule as day_detail, one dot per expected dose.
        """
        dots: dict[str, list[str]] = {}
        for slot in AdherenceEngine.day_detail(records, schedules, day, now):
            dots.setdefault(slot["medicine_id"], []).append(
                const.DOSE_STATUS_DOT_COLORS[slot["status"]]
            )
        return dots

    @staticmethod
    def month_calendar(
        records: RecordsMapping, year: int, month: int
    ) -> list[CalendarDay | None]:
        """Return a Sunday-first month grid of day statuses.

        Leading cells before the first of the month are None.
        """
        first_weekday, days_in_month = calendar.monthrange(year, month)
        # monthrange weekday is Monday=0; the grid starts on Sunday
        leading = (first_weekday + 1) % 7
        cells: list[CalendarDay | None] = [None] * leading
        for day_num in range(1, days_in_month + 1):
            day = date(year, month, day_num)
            cells.append(
                {
                    "date": day.isoformat(),
                    "status": AdherenceEngine.day_status(records, day),
                }
            )
        return cells

    @staticmethod
    def summary(
        records: RecordsMapping,
        schedules: Iterable[ScheduleSpec],
        reminders: Iterable[IssuedReminder] = (),
        now: datetime | None = None,
        window_days: int = const.DEFAULT_ADHERENCE_WINDOW_DAYS,
    ) -> dict[str, Any]:
        """Build the read-only snapshot published by the coordinator."""
        reference = as_utc(now) if now is not None else dt_now_utc()
        today = date.fromisoformat(date_key(reference))
        window_start = today - timedelta(days=window_days)
        schedule_list = list(schedules)

        return {
            const.SUMMARY_TODAY: today.isoformat(),
            const.SUMMARY_WINDOW_START: window_start.isoformat(),
            const.SUMMARY_ADHERENCE_RATE: AdherenceEngine.percentage(
                records, window_start, today
            ),
            const.SUMMARY_STREAK: AdherenceEngine.streak(records, today),
            const.SUMMARY_TODAY_STATUS: AdherenceEngine.day_status(records, today),
            const.SUMMARY_TODAY_DOSES: AdherenceEngine.day_detail(
                records, schedule_list, today, reference
            ),
            const.SUMMARY_TODAY_DOTS: AdherenceEngine.medication_dots(
                records, schedule_list, today, reference
            ),
            const.SUMMARY_PENDING_REMINDERS: list(reminders),
        }
