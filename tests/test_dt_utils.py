"""Unit tests for utils/dt_utils.py and utils/math_utils.py."""

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from custom_components.medreminder.utils import dt_utils
from custom_components.medreminder.utils.dt_utils import (
    date_key,
    get_time_zone,
    local_instant,
    normalize_time_of_day,
    parse_clock_time,
)
from custom_components.medreminder.utils.math_utils import (
    calculate_percentage,
    round_half_up,
)

NEW_YORK = ZoneInfo("America/New_York")


class TestNormalizeTimeOfDay:
    """Every representation of the same local clock time yields one key."""

    def test_clock_string_and_local_datetime_collide(self) -> None:
        """"08:00" and a datetime at 08:00 local produce the same key."""
        as_string = normalize_time_of_day("08:00", NEW_YORK)
        as_datetime = normalize_time_of_day(
            datetime(2026, 1, 5, 8, 0, tzinfo=NEW_YORK), NEW_YORK
        )
        assert as_string == as_datetime == "08:00"

    @pytest.mark.parametrize(
        "value",
        [
            "08:00",
            "8:00",
            "8:00 AM",
            "8am",
            "08:00:00",
            "2026-01-05T08:00:00",
            "2026-01-05T13:00:00+00:00",
            datetime(2026, 1, 5, 13, 0, tzinfo=UTC),
            datetime(2026, 1, 5, 8, 0),
            time(8, 0),
        ],
    )
    def test_variants_normalize_to_local_hh_mm(self, value) -> None:
        assert normalize_time_of_day(value, NEW_YORK) == "08:00"

    def test_pm_times(self) -> None:
        assert normalize_time_of_day("8pm") == "20:00"
        assert normalize_time_of_day("12:30 AM") == "00:30"
        assert normalize_time_of_day("12:15 PM") == "12:15"

    def test_aware_datetime_uses_default_zone_when_none_given(self) -> None:
        dt_utils.set_default_timezone(NEW_YORK)
        assert normalize_time_of_day(datetime(2026, 7, 1, 12, 0, tzinfo=UTC)) == "08:00"

    @pytest.mark.parametrize("value", ["banana", 800, None])
    def test_unreadable_values_raise(self, value) -> None:
        with pytest.raises(ValueError):
            normalize_time_of_day(value)

    def test_bare_number_is_not_a_clock_time(self) -> None:
        assert parse_clock_time("8") is None
        assert parse_clock_time("25:00") is None


class TestDates:
    """Test date keys, zones and local instants."""

    def test_date_key_variants(self) -> None:
        assert date_key("2026-01-05") == "2026-01-05"
        assert date_key(date(2026, 1, 5)) == "2026-01-05"
        assert date_key("01/05/2026") == "2026-01-05"

    def test_date_key_reads_aware_datetimes_in_local_zone(self) -> None:
        dt_utils.set_default_timezone(NEW_YORK)
        assert date_key(datetime(2026, 1, 6, 2, 0, tzinfo=UTC)) == "2026-01-05"

    def test_date_key_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            date_key("someday")

    def test_unknown_zone_raises(self) -> None:
        with pytest.raises(ValueError):
            get_time_zone("Mars/Olympus")

    def test_empty_zone_is_default(self) -> None:
        dt_utils.set_default_timezone(NEW_YORK)
        assert get_time_zone("") is NEW_YORK
        assert get_time_zone(None) is NEW_YORK

    def test_local_instant(self) -> None:
        instant = local_instant("2026-03-08", "08:00", NEW_YORK)
        assert instant == datetime(2026, 3, 8, 12, 0, tzinfo=UTC)


class TestMath:
    """Test percentage rounding."""

    @pytest.mark.parametrize(
        ("taken", "total", "expected"),
        [(2, 3, 67), (1, 2, 50), (1, 8, 13), (3, 8, 38), (0, 5, 0), (5, 5, 100), (0, 0, 0)],
    )
    def test_percentage_rounds_half_up(self, taken, total, expected) -> None:
        assert calculate_percentage(taken, total) == expected

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(1.49) == 1
