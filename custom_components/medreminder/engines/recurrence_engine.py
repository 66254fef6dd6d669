"""Recurrence Engine for MedReminder.

Expands a medication's recurrence rule into a bounded, ordered list of future
trigger instants in the user's local time zone.

- `dateutil.rrule.rrulestr` parses RFC 5545 RRULE strings
- Occurrences are generated on naive local wall-clock time and localized
  afterwards, so "08:00" stays 08:00 on both sides of a DST change

IMPORTANT: This module must NOT import from coordinator.py or managers to
avoid circular imports. Only import from const.py, type_defs.py, utils and
standard libraries.
"""

from __future__ import annotations

from datetime import date, datetime, time
from itertools import islice
from typing import TYPE_CHECKING

from dateutil.rrule import rrule, rrulestr

from .. import const
from ..utils.dt_utils import (
    as_utc,
    date_key,
    dt_now_utc,
    dt_parse,
    get_time_zone,
    local_instant,
    normalize_time_of_day,
)

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from ..type_defs import ScheduleSpec


class RecurrenceError(ValueError):
    """Raised for an invalid rrule, time zone, dtstart or occurrence cap."""


class ScheduleSpecError(ValueError):
    """Raised when a schedule spec is missing a required field."""


class RecurrenceEngine:
    """Expands one recurrence rule anchored at a local start instant.

    Example:
        engine = RecurrenceEngine(
            "2026-01-05T08:00:00", "America/New_York", "FREQ=DAILY;INTERVAL=1"
        )
        engine.expand(5, now=datetime(2026, 1, 1, tzinfo=UTC))
        # → five 08:00 America/New_York instants, Jan 5 to Jan 9
    """

    def __init__(
        self,
        dtstart: str | datetime | None,
        timezone: str | None,
        rrule_string: str | None,
    ) -> None:
        """Parse and validate the rule.

        Args:
            dtstart: Start instant. Naive values are local wall-clock time in
                     `timezone`; aware values are converted to `timezone`.
            timezone: IANA time zone name. Empty uses the default timezone.
            rrule_string: RRULE body, with or without a leading "RRULE:".

        Raises:
            RecurrenceError: If any input is missing or invalid.
        """
        if not dtstart:
            raise RecurrenceError("dtstart is required")
        if not rrule_string or not rrule_string.strip():
            raise RecurrenceError("rrule is required")

        try:
            self._tz: ZoneInfo = get_time_zone(timezone)
        except ValueError as err:
            raise RecurrenceError(str(err)) from err

        start = dt_parse(dtstart, self._tz)
        if start is None:
            raise RecurrenceError(f"Invalid dtstart '{dtstart}'")

        # rrule works on wall-clock time; the zone is re-attached per occurrence
        self._start_local = start.astimezone(self._tz).replace(tzinfo=None)
        self._rrule_string = self._strip_prefix(rrule_string)
        self._rule = self._parse_rule(self._rrule_string, self._start_local)

    @property
    def timezone(self) -> ZoneInfo:
        """Return the zone occurrences are computed in."""
        return self._tz

    @property
    def rrule_string(self) -> str:
        """Return the normalized RRULE body (no "RRULE:" prefix)."""
        return self._rrule_string

    # =========================================================================
    # Expansion
    # =========================================================================

    def expand(self, cap: int, now: datetime | None = None) -> list[datetime]:
        """Return the future trigger instants among the first `cap` occurrences.

        Occurrences at or before `now` are dropped, not rewound, so the result
        may hold fewer than `cap` entries.

        Args:
            cap: Maximum number of occurrences to generate (must be > 0).
            now: Reference instant. Defaults to the current time.

        Returns:
            Ordered list of aware datetimes in the rule's time zone.
        """
        if isinstance(cap, bool) or not isinstance(cap, int) or cap <= 0:
            raise RecurrenceError(f"Occurrence cap must be a positive integer: {cap!r}")

        reference = as_utc(now) if now is not None else dt_now_utc()
        triggers: list[datetime] = []

        for occurrence in islice(self._rule, cap):
            trigger = self._localize(occurrence)
            if trigger <= reference:
                const.LOGGER.debug(
                    "RecurrenceEngine: Skipping past trigger %s", trigger.isoformat()
                )
                continue
            triggers.append(trigger)

        return triggers

    def occurs_on(self, day: str | date) -> bool:
        """Return True if the rule has an occurrence on the given local date."""
        day_obj = date.fromisoformat(date_key(day))
        first = self._rule.after(datetime.combine(day_obj, time.min), inc=True)
        return first is not None and first.date() == day_obj

    def _localize(self, occurrence: datetime) -> datetime:
        """Attach the rule's zone to a wall-clock occurrence."""
        return occurrence.replace(tzinfo=self._tz)

    # =========================================================================
    # Parsing
    # =========================================================================

    @staticmethod
    def _strip_prefix(rrule_string: str) -> str:
        """Remove surrounding whitespace and an optional "RRULE:" prefix."""
        text = rrule_string.strip()
        if text.upper().startswith("RRULE:"):
            text = text[len("RRULE:") :]
        return text

    @staticmethod
    def _parse_rule(rrule_string: str, start_local: datetime) -> rrule:
        """Parse a single RRULE body anchored at `start_local`."""
        if "\n" in rrule_string or "DTSTART" in rrule_string.upper():
            raise RecurrenceError(
                f"Expected a single RRULE without DTSTART: '{rrule_string}'"
            )
        try:
            rule = rrulestr(rrule_string, dtstart=start_local)
        except (ValueError, TypeError) as err:
            raise RecurrenceError(f"Invalid rrule '{rrule_string}': {err}") from err
        if not isinstance(rule, rrule):
            raise RecurrenceError(f"Unsupported rrule '{rrule_string}'")
        return rule


# =============================================================================
# Module-level helpers
# =============================================================================


def expand(
    dtstart: str | datetime | None,
    timezone: str | None,
    rrule_string: str | None,
    cap: int,
    now: datetime | None = None,
) -> list[datetime]:
    """Expand a recurrence rule into future trigger instants.

    Pure function: the same inputs (including `now`) always return the same
    sequence.
    """
    return RecurrenceEngine(dtstart, timezone, rrule_string).expand(cap, now=now)


def occurs_on(
    dtstart: str | datetime | None,
    timezone: str | None,
    rrule_string: str | None,
    day: str | date,
) -> bool:
    """Return True if the rule expects an occurrence on a local date."""
    return RecurrenceEngine(dtstart, timezone, rrule_string).occurs_on(day)


def normalize_frequency(frequency: str) -> str:
    """Map a frequency spelling to its canonical identifier.

    Raises:
        RecurrenceError: If the frequency is not supported.
    """
    text = (frequency or "").strip().lower()
    canonical = const.FREQUENCY_ALIASES.get(text, text.replace(" ", "_"))
    if canonical not in const.FREQUENCY_OPTIONS:
        raise RecurrenceError(
            f"Unsupported frequency '{frequency}'. Valid options: "
            f"{', '.join(const.FREQUENCY_OPTIONS)}"
        )
    return canonical


def frequency_to_rrule(
    frequency: str, dtstart: str | datetime, timezone: str | None = None
) -> str:
    """Return the RRULE body for a dosing frequency.

    Weekly rules are anchored on the local weekday of `dtstart`. The second
    slot of a twice-weekly rule is always three days after the first.

    Examples:
        daily            → "FREQ=DAILY;INTERVAL=1"
        every_other_day  → "FREQ=DAILY;INTERVAL=2"
        once_week (Mon)  → "FREQ=WEEKLY;BYDAY=MO"
        twice_week (Mon) → "FREQ=WEEKLY;BYDAY=MO,TH"
    """
    canonical = normalize_frequency(frequency)

    if canonical == const.FREQUENCY_DAILY:
        return "FREQ=DAILY;INTERVAL=1"
    if canonical == const.FREQUENCY_EVERY_OTHER_DAY:
        return "FREQ=DAILY;INTERVAL=2"

    try:
        tz = get_time_zone(timezone)
    except ValueError as err:
        raise RecurrenceError(str(err)) from err
    start = dt_parse(dtstart, tz)
    if start is None:
        raise RecurrenceError(f"Invalid dtstart '{dtstart}'")

    weekday = start.astimezone(tz).weekday()
    first = const.RRULE_WEEKDAY_CODES[weekday]
    if canonical == const.FREQUENCY_ONCE_WEEK:
        return f"FREQ=WEEKLY;BYDAY={first}"

    second = const.RRULE_WEEKDAY_CODES[
        (weekday + const.TWICE_WEEKLY_OFFSET_DAYS) % 7
    ]
    return f"FREQ=WEEKLY;BYDAY={first},{second}"


def medicine_id_for(spec: ScheduleSpec) -> str:
    """Return the medicine id of a schedule spec.

    Falls back to the part of "{medicine_id}-{dose_index}" before the last dash.
    """
    medicine_id = spec.get(const.DATA_SCHEDULE_MEDICINE_ID)
    if medicine_id:
        return medicine_id
    return spec[const.DATA_SCHEDULE_ID].rsplit("-", 1)[0]


def validate_schedule_spec(spec: ScheduleSpec) -> None:
    """Fail fast on a schedule spec that cannot be expanded.

    Raises:
        ScheduleSpecError: If schedule_id, dtstart or rrule is missing.
        RecurrenceError: If the rule, zone or occurrence count is invalid.
    """
    for field in (
        const.DATA_SCHEDULE_ID,
        const.DATA_SCHEDULE_DTSTART,
        const.DATA_SCHEDULE_RRULE,
    ):
        if not spec.get(field):
            raise ScheduleSpecError(f"Schedule spec is missing '{field}'")

    count = spec.get(const.DATA_SCHEDULE_OCCURRENCE_COUNT)
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise RecurrenceError(
            f"occurrence_count must be a positive integer: {count!r}"
        )

    RecurrenceEngine(
        spec[const.DATA_SCHEDULE_DTSTART],
        spec.get(const.DATA_SCHEDULE_TIMEZONE),
        spec[const.DATA_SCHEDULE_RRULE],
    )


def build_schedule_specs(
    medicine_id: str,
    name: str,
    frequency: str,
    dose_times: list[str],
    start_date: str | date,
    timezone: str | None,
    occurrence_count: int = const.DEFAULT_OCCURRENCE_COUNT,
    body: str | None = None,
) -> list[ScheduleSpec]:
    """Derive one schedule spec per daily dose time of a medicine.

    Dose times are normalized to "HH:MM", de-duplicated and sorted; the dose
    index in each `schedule_id` follows that order. Every spec shares the
    medicine's date cadence and differs only in time of day.
    """
    if not medicine_id:
        raise ScheduleSpecError("medicine_id is required")
    if not dose_times:
        raise ScheduleSpecError(f"Medicine '{medicine_id}' has no dose times")

    try:
        tz = get_time_zone(timezone)
    except ValueError as err:
        raise RecurrenceError(str(err)) from err

    normalized = sorted({normalize_time_of_day(value, tz) for value in dose_times})
    specs: list[ScheduleSpec] = []

    for index, time_of_day in enumerate(normalized):
        dtstart = local_instant(start_date, time_of_day, tz)
        spec: ScheduleSpec = {
            const.DATA_SCHEDULE_ID: f"{medicine_id}-{index}",
            const.DATA_SCHEDULE_MEDICINE_ID: medicine_id,
            const.DATA_SCHEDULE_TITLE: name,
            const.DATA_SCHEDULE_BODY: body or f"Time to take {name} ({time_of_day})",
            const.DATA_SCHEDULE_DTSTART: dtstart.replace(tzinfo=None).isoformat(),
            const.DATA_SCHEDULE_TIMEZONE: tz.key,
            const.DATA_SCHEDULE_RRULE: frequency_to_rrule(frequency, dtstart, tz.key),
            const.DATA_SCHEDULE_OCCURRENCE_COUNT: occurrence_count,
        }
        specs.append(spec)

    return specs


def schedule_time_of_day(spec: ScheduleSpec) -> str:
    """Return the local "HH:MM" dose time of a schedule spec."""
    engine = RecurrenceEngine(
        spec[const.DATA_SCHEDULE_DTSTART],
        spec.get(const.DATA_SCHEDULE_TIMEZONE),
        spec[const.DATA_SCHEDULE_RRULE],
    )
    start = dt_parse(spec[const.DATA_SCHEDULE_DTSTART], engine.timezone)
    return normalize_time_of_day(start, engine.timezone)
