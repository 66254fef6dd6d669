# File: utils/dt_utils.py
"""Date and time utilities for MedReminder.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Uses standard library: datetime, zoneinfo; third-party: dateutil.

Functions:
    - set_default_timezone / get_default_timezone: Configure the local zone
    - get_time_zone: Resolve an IANA name to a ZoneInfo
    - dt_today_local / dt_today_iso / dt_now_local / dt_now_utc: Current time
    - as_utc / as_local: Timezone conversion
    - dt_parse_date / dt_parse / dt_to_utc: Parsing
    - date_key: Normalize a date input to "YYYY-MM-DD"
    - parse_clock_time: Parse "8:00", "08:00:00", "8:00 PM" into a time
    - normalize_time_of_day: Canonical "HH:MM" key from any time representation
    - local_instant: Combine a date and "HH:MM" into a local aware datetime
    - iter_dates: Inclusive date range iterator
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
import logging
import re
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as dt_parser

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import tzinfo

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

TIME_OF_DAY_FORMAT = "%H:%M"

# "8:00", "08:00", "8:00:00", "8:00 AM", "8:00pm", "8 PM"
_CLOCK_TIME_RE = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?::(?P<second>\d{2}))?"
    r"\s*(?P<meridiem>[AaPp]\.?[Mm]\.?)?\s*$"
)


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Return the configured default timezone."""
    return DEFAULT_TIME_ZONE


def get_time_zone(name: str | None) -> ZoneInfo:
    """Resolve an IANA time zone name.

    Args:
        name: IANA name such as "America/New_York". None or empty returns the
              configured default timezone.

    Raises:
        ValueError: If the name is not a known time zone.
    """
    if not name:
        return DEFAULT_TIME_ZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as err:
        raise ValueError(f"Unknown time zone '{name}'") from err


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_today_local(tz: tzinfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`."""
    return datetime.now(tz or DEFAULT_TIME_ZONE).date()


def dt_today_iso(tz: tzinfo | None = None) -> str:
    """Return today's date in local timezone as ISO string (YYYY-MM-DD)."""
    return dt_today_local(tz).isoformat()


def dt_now_local(tz: tzinfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware)."""
    return datetime.now(tz or DEFAULT_TIME_ZONE)


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_iso() -> str:
    """Return the current UTC datetime as an ISO 8601 string."""
    return dt_now_utc().isoformat()


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC. Naive input is read in the default timezone."""
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a datetime to local timezone. Naive input is read as UTC."""
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_str: str | None) -> date | None:
    """Safely parse a date string into a `datetime.date`.

    Accepts "2025-04-07" (ISO) and "04/07/2025" (US) formats, or a full ISO
    datetime string whose date portion is used.

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    try:
        return date.fromisoformat(date_str)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(date_str).date()
    except ValueError:
        pass

    for fmt in ("%m/%d/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    return None


def dt_parse(
    dt_input: str | date | datetime | None,
    default_tzinfo: tzinfo | None = None,
) -> datetime | None:
    """Normalize a string, date or datetime into an aware datetime.

    Naive values are interpreted as wall-clock time in `default_tzinfo`
    (the configured default timezone when omitted).

    Returns:
        Aware datetime, or None if the input could not be parsed.

    Example:
        >>> dt_parse("2025-04-15T08:00", ZoneInfo("America/New_York"))
        datetime.datetime(2025, 4, 15, 8, 0, tzinfo=ZoneInfo('America/New_York'))
    """
    if not dt_input:
        return None

    tz_info = default_tzinfo or DEFAULT_TIME_ZONE
    result: datetime | None = None

    if isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, date):
        result = datetime.combine(dt_input, time.min)
    elif isinstance(dt_input, str):
        try:
            result = datetime.fromisoformat(dt_input.strip().replace("Z", "+00:00"))
        except ValueError:
            parsed_date = dt_parse_date(dt_input)
            if parsed_date is None:
                return None
            result = datetime.combine(parsed_date, time.min)
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=tz_info)
    return result


def dt_to_utc(dt_input: str | datetime | None) -> datetime | None:
    """Parse a datetime input, apply the default timezone if naive, convert to UTC."""
    result = dt_parse(dt_input)
    return as_utc(result) if result else None


def date_key(value: str | date | datetime, tz: tzinfo | None = None) -> str:
    """Normalize a date input to the canonical "YYYY-MM-DD" key.

    Aware datetimes are converted to `tz` (default timezone when omitted)
    first so the key is the local calendar day.

    Raises:
        ValueError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = as_local(value, tz)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        parsed = dt_parse_date(value.strip())
        if parsed is not None:
            return parsed.isoformat()
    raise ValueError(f"Cannot read '{value}' as a date (expected YYYY-MM-DD)")


# ==============================================================================
# Time-of-day normalization
# ==============================================================================


def parse_clock_time(value: str) -> time | None:
    """Parse a clock-time string into a `datetime.time`.

    Accepts 24h ("08:00", "8:00", "20:15:30") and 12h ("8:00 PM", "8pm")
    spellings. Returns None when the string is not a clock time.
    """
    match = _CLOCK_TIME_RE.match(value)
    if not match:
        return None

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    second = int(match.group("second") or 0)
    meridiem = match.group("meridiem")

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem[0].lower() == "p"
        hour = hour % 12 + (12 if is_pm else 0)
    elif match.group("minute") is None:
        # A bare number is not a clock time without AM/PM
        return None

    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return None
    return time(hour, minute, second)


def normalize_time_of_day(
    value: str | time | datetime, tz: tzinfo | None = None
) -> str:
    """Return the canonical 24h "HH:MM" key for a time representation.

    Accepted variants:
        - clock-time string: "8:00", "08:00", "8:00 AM", "20:00:00"
        - date-time string: "2026-01-18T08:00:00-05:00", "2026-01-18 08:00"
        - datetime: aware values are converted to `tz` (default timezone when
          omitted) before the wall-clock hour and minute are read; naive
          values are taken as local wall-clock time
        - time: hour and minute are read directly

    Two representations of the same local clock time always produce the same
    key.

    Raises:
        ValueError: For unsupported types or unparseable strings.
    """
    tz_info = tz or DEFAULT_TIME_ZONE

    if isinstance(value, datetime):
        local = value.astimezone(tz_info) if value.tzinfo is not None else value
        return local.strftime(TIME_OF_DAY_FORMAT)

    if isinstance(value, time):
        return value.strftime(TIME_OF_DAY_FORMAT)

    if isinstance(value, str):
        clock = parse_clock_time(value)
        if clock is not None:
            return clock.strftime(TIME_OF_DAY_FORMAT)
        try:
            parsed = dt_parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            try:
                parsed = dt_parser.parse(value)
            except (ValueError, OverflowError) as err:
                raise ValueError(
                    f"Cannot read '{value}' as a time of day (expected HH:MM)"
                ) from err
        return normalize_time_of_day(parsed, tz_info)

    raise ValueError(
        f"Unsupported time representation {type(value).__name__}: {value!r}"
    )


def local_instant(
    day: str | date, time_of_day: str, tz: tzinfo | None = None
) -> datetime:
    """Combine a local date and "HH:MM" into an aware local datetime.

    Example:
        >>> local_instant("2026-03-08", "08:00", ZoneInfo("America/New_York"))
        datetime.datetime(2026, 3, 8, 8, 0, tzinfo=ZoneInfo('America/New_York'))
    """
    day_obj = date.fromisoformat(date_key(day))
    clock = datetime.strptime(normalize_time_of_day(time_of_day), TIME_OF_DAY_FORMAT)
    return datetime.combine(day_obj, clock.time(), tzinfo=tz or DEFAULT_TIME_ZONE)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
