"""Unit tests for recurrence_engine.py.

Covers:
- Determinism for fixed inputs
- Wall-clock stability across a DST transition
- Frequency → RRULE mapping, including the twice-weekly +3 day slot
- Dropping (not rewinding) occurrences at or before now
- Validation errors
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from custom_components.medreminder import const
from custom_components.medreminder.engines.recurrence_engine import (
    RecurrenceEngine,
    RecurrenceError,
    ScheduleSpecError,
    build_schedule_specs,
    expand,
    frequency_to_rrule,
    occurs_on,
    validate_schedule_spec,
)
from tests.helpers import make_spec

NEW_YORK = "America/New_York"
JAN_1 = datetime(2026, 1, 1, tzinfo=UTC)


class TestExpand:
    """Test expansion of a rule into trigger instants."""

    def test_same_inputs_same_sequence(self) -> None:
        """Expanding twice with a fixed now returns identical instants."""
        first = expand("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=1", 5, JAN_1)
        second = expand("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=1", 5, JAN_1)

        assert first == second
        assert len(first) == 5
        assert [t.day for t in first] == [5, 6, 7, 8, 9]

    def test_daily_keeps_wall_clock_across_dst(self) -> None:
        """08:00 stays 08:00 local when clocks spring forward on 2026-03-08."""
        triggers = expand(
            "2026-03-06T08:00:00",
            NEW_YORK,
            "FREQ=DAILY;INTERVAL=1",
            4,
            datetime(2026, 3, 1, tzinfo=UTC),
        )

        assert [(t.day, t.hour, t.minute) for t in triggers] == [
            (6, 8, 0),
            (7, 8, 0),
            (8, 8, 0),
            (9, 8, 0),
        ]
        utc = [t.astimezone(UTC) for t in triggers]
        assert utc[1].hour == 13
        assert utc[2].hour == 12
        assert utc[2] - utc[1] == timedelta(hours=23)
        assert utc[3] - utc[2] == timedelta(hours=24)

    def test_every_other_day_interval(self) -> None:
        """INTERVAL=2 skips every second day."""
        triggers = expand(
            "2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=2", 3, JAN_1
        )
        assert [t.day for t in triggers] == [5, 7, 9]

    def test_past_occurrences_are_dropped_not_rewound(self) -> None:
        """Occurrences at or before now are removed from the capped window."""
        now = datetime(2026, 1, 7, 13, 0, tzinfo=UTC)  # exactly 08:00 New York
        triggers = expand(
            "2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=1", 5, now
        )

        assert [t.day for t in triggers] == [8, 9]
        assert all(t > now for t in triggers)

    def test_rrule_prefix_is_accepted(self) -> None:
        """A leading "RRULE:" is stripped."""
        engine = RecurrenceEngine(
            "2026-01-05T08:00:00", NEW_YORK, "RRULE:FREQ=DAILY;INTERVAL=1"
        )
        assert engine.rrule_string == "FREQ=DAILY;INTERVAL=1"
        assert len(engine.expand(2, now=JAN_1)) == 2

    def test_triggers_carry_the_schedule_zone(self) -> None:
        """Every trigger is aware and in the requested zone."""
        triggers = expand(
            "2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=1", 2, JAN_1
        )
        assert all(t.tzinfo == ZoneInfo(NEW_YORK) for t in triggers)

    @pytest.mark.parametrize(
        ("dtstart", "timezone", "rrule", "cap"),
        [
            (None, NEW_YORK, "FREQ=DAILY", 3),
            ("2026-01-05T08:00:00", "Mars/Olympus", "FREQ=DAILY", 3),
            ("2026-01-05T08:00:00", NEW_YORK, "FREQ=SOMETIMES", 3),
            ("2026-01-05T08:00:00", NEW_YORK, "", 3),
            ("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY", 0),
            ("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY", -2),
            ("not a date", NEW_YORK, "FREQ=DAILY", 3),
        ],
    )
    def test_invalid_inputs_raise(self, dtstart, timezone, rrule, cap) -> None:
        """Bad dtstart, zone, rule or cap raise RecurrenceError."""
        with pytest.raises(RecurrenceError):
            expand(dtstart, timezone, rrule, cap, JAN_1)

    def test_recurrence_error_is_value_error(self) -> None:
        """Callers may catch ValueError."""
        assert issubclass(RecurrenceError, ValueError)
        assert issubclass(ScheduleSpecError, ValueError)


class TestFrequencyToRrule:
    """Test mapping of dosing frequencies to RRULE bodies."""

    def test_daily(self) -> None:
        assert frequency_to_rrule("daily", "2026-01-05T08:00:00") == "FREQ=DAILY;INTERVAL=1"

    def test_every_other_day(self) -> None:
        assert (
            frequency_to_rrule(const.FREQUENCY_EVERY_OTHER_DAY, "2026-01-05T08:00:00")
            == "FREQ=DAILY;INTERVAL=2"
        )

    def test_once_week_anchors_on_start_weekday(self) -> None:
        # 2026-01-05 is a Monday
        assert (
            frequency_to_rrule("once_week", "2026-01-05T08:00:00", NEW_YORK)
            == "FREQ=WEEKLY;BYDAY=MO"
        )

    @pytest.mark.parametrize(
        ("dtstart", "expected"),
        [
            ("2026-01-05T08:00:00", "FREQ=WEEKLY;BYDAY=MO,TH"),
            ("2026-01-09T08:00:00", "FREQ=WEEKLY;BYDAY=FR,MO"),
            ("2026-01-11T08:00:00", "FREQ=WEEKLY;BYDAY=SU,WE"),
        ],
    )
    def test_twice_week_second_day_is_three_days_later(self, dtstart, expected) -> None:
        """The second weekly slot is always the anchor weekday + 3 (mod 7)."""
        assert frequency_to_rrule("twice_week", dtstart, NEW_YORK) == expected

    def test_twice_week_expansion(self) -> None:
        """Monday anchor yields Monday/Thursday occurrences."""
        rule = frequency_to_rrule("twice weekly", "2026-01-05T08:00:00", NEW_YORK)
        triggers = expand("2026-01-05T08:00:00", NEW_YORK, rule, 4, JAN_1)

        assert [t.day for t in triggers] == [5, 8, 12, 15]
        assert [t.strftime("%a") for t in triggers] == ["Mon", "Thu", "Mon", "Thu"]

    def test_aliases_are_accepted(self) -> None:
        assert (
            frequency_to_rrule("Every other day", "2026-01-05T08:00:00")
            == "FREQ=DAILY;INTERVAL=2"
        )
        assert (
            frequency_to_rrule("once weekly", "2026-01-05T08:00:00", NEW_YORK)
            == "FREQ=WEEKLY;BYDAY=MO"
        )

    def test_unknown_frequency_raises(self) -> None:
        with pytest.raises(RecurrenceError):
            frequency_to_rrule("hourly", "2026-01-05T08:00:00")


class TestOccursOn:
    """Test per-day occurrence checks."""

    def test_every_other_day(self) -> None:
        args = ("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY;INTERVAL=2")
        assert occurs_on(*args, "2026-01-05") is True
        assert occurs_on(*args, "2026-01-06") is False
        assert occurs_on(*args, "2026-01-07") is True

    def test_before_start_is_false(self) -> None:
        assert (
            occurs_on("2026-01-05T08:00:00", NEW_YORK, "FREQ=DAILY", "2026-01-04")
            is False
        )


class TestScheduleSpecs:
    """Test spec validation and per-dose-time spec derivation."""

    def test_missing_fields_fail_fast(self) -> None:
        for field in (
            const.DATA_SCHEDULE_ID,
            const.DATA_SCHEDULE_DTSTART,
            const.DATA_SCHEDULE_RRULE,
        ):
            spec = make_spec()
            spec[field] = ""
            with pytest.raises(ScheduleSpecError):
                validate_schedule_spec(spec)

    def test_non_positive_count_is_rejected(self) -> None:
        with pytest.raises(RecurrenceError):
            validate_schedule_spec(make_spec(occurrence_count=0))

    def test_one_spec_per_distinct_dose_time(self) -> None:
        """Dose times are normalized, de-duplicated and sorted."""
        specs = build_schedule_specs(
            "aspirin",
            "Aspirin",
            "daily",
            ["20:00", "8:00 AM", "08:00"],
            "2026-01-05",
            NEW_YORK,
            occurrence_count=3,
        )

        assert [s[const.DATA_SCHEDULE_ID] for s in specs] == ["aspirin-0", "aspirin-1"]
        assert [s[const.DATA_SCHEDULE_DTSTART] for s in specs] == [
            "2026-01-05T08:00:00",
            "2026-01-05T20:00:00",
        ]
        assert all(s[const.DATA_SCHEDULE_MEDICINE_ID] == "aspirin" for s in specs)
        assert all(s[const.DATA_SCHEDULE_RRULE] == "FREQ=DAILY;INTERVAL=1" for s in specs)
        assert specs[0][const.DATA_SCHEDULE_BODY] == "Time to take Aspirin (08:00)"

    def test_no_dose_times_raises(self) -> None:
        with pytest.raises(ScheduleSpecError):
            build_schedule_specs("aspirin", "Aspirin", "daily", [], "2026-01-05", NEW_YORK)
