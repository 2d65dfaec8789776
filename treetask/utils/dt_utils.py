# File: utils/dt_utils.py
"""Date and time utilities for TreeTask.

Pure Python date/time functions shared by every engine. Timestamps crossing
the engine boundary are integer epoch milliseconds; internally all calendar
arithmetic happens on `datetime.date` values in the configured local
timezone, so DST days of 23 or 25 hours never shift a day-key.

Functions:
    - set_default_timezone / get_default_timezone: Local calendar configuration
    - dt_now_utc / dt_now_ms: Current instant
    - as_local / start_of_local_day: Timezone conversion
    - ms_to_local / local_to_ms: Epoch-ms <-> aware datetime
    - day_start / ms_to_date / date_to_day_key: Day-key normalization
    - combine_date_and_time / time_of_day / local_noon: Instant construction
    - add_days / add_months / months_between: Calendar stepping
    - sunday_week_start / monday_week_start / sunday_weekday_index: Week math
    - dt_parse / dt_to_ms: Normalize user-supplied inputs
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

# Module-level logger
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

MS_PER_SECOND = 1000
DAYS_PER_WEEK = 7
MONTHS_PER_YEAR = 12
ALL_DAY_ANCHOR_HOUR = 12

# Default timezone - overridden by ScheduleManager from options
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo | str) -> None:
    """Set the local calendar timezone for all dt_utils functions.

    Args:
        tz: ZoneInfo object or IANA timezone name

    Raises:
        ValueError: If the timezone name is unknown
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    if isinstance(tz, str):
        try:
            tz = ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError) as err:
            raise ValueError(f"Unknown time zone: {tz}") from err
    _LOGGER.debug("Default time zone set to %s", tz)
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current local calendar timezone.

    Returns:
        The configured default timezone (ZoneInfo object)
    """
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_ms() -> int:
    """Return the current instant as epoch milliseconds."""
    return local_to_ms(dt_now_utc())


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to the local timezone.

    Args:
        dt_obj: Datetime object; naive values are treated as UTC
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime in local timezone
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


def start_of_local_day(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Get the start of day (00:00:00) for a datetime in local timezone.

    Args:
        dt_obj: Datetime object (can be in any timezone)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime at 00:00:00 in local timezone (timezone-aware)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    local_dt = as_local(dt_obj, tz_info)
    return datetime.combine(local_dt.date(), time(), tzinfo=tz_info)


def ms_to_local(ms: int, tz: ZoneInfo | None = None) -> datetime:
    """Convert epoch milliseconds to an aware local datetime."""
    return datetime.fromtimestamp(ms / MS_PER_SECOND, tz=tz or DEFAULT_TIME_ZONE)


def local_to_ms(dt_obj: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds.

    Naive datetimes are interpreted in DEFAULT_TIME_ZONE.
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return round(dt_obj.timestamp() * MS_PER_SECOND)


# ==============================================================================
# Day-keys
# ==============================================================================


def ms_to_date(ms: int, tz: ZoneInfo | None = None) -> date:
    """Return the local calendar date containing an instant."""
    return ms_to_local(ms, tz).date()


def date_to_day_key(day: date, tz: ZoneInfo | None = None) -> int:
    """Return the day-key (epoch ms of local midnight) for a calendar date."""
    return local_to_ms(datetime.combine(day, time(), tzinfo=tz or DEFAULT_TIME_ZONE))


def day_start(ms: int, tz: ZoneInfo | None = None) -> int:
    """Truncate an instant to its local midnight day-key.

    Example:
        2025-01-06T15:30 local -> epoch ms of 2025-01-06T00:00 local
    """
    return date_to_day_key(ms_to_date(ms, tz), tz)


def combine_date_and_time(day: date, tod: time, tz: ZoneInfo | None = None) -> int:
    """Build the instant for a calendar date at a local time of day."""
    return local_to_ms(datetime.combine(day, tod, tzinfo=tz or DEFAULT_TIME_ZONE))


def time_of_day(ms: int, tz: ZoneInfo | None = None) -> time:
    """Return the local wall-clock time of an instant (tz-naive)."""
    return ms_to_local(ms, tz).time()


def local_noon(ms: int, tz: ZoneInfo | None = None) -> int:
    """Return local noon of the day containing an instant.

    All-day entities are anchored here so DST shifts never move them
    across a day boundary.
    """
    return combine_date_and_time(
        ms_to_date(ms, tz), time(hour=ALL_DAY_ANCHOR_HOUR), tz
    )


# ==============================================================================
# Calendar Stepping
# ==============================================================================


def add_days(day: date, days: int) -> date:
    """Shift a calendar date by whole days."""
    return day + timedelta(days=days)


def add_months(day: date, months: int) -> date:
    """Shift a calendar date by whole months, clamping the day-of-month.

    Example:
        add_months(date(2025, 1, 31), 1) -> date(2025, 2, 28)
    """
    return day + relativedelta(months=months)


def months_between(start: date, end: date) -> int:
    """Whole calendar-month difference, ignoring day-of-month."""
    return (end.year - start.year) * MONTHS_PER_YEAR + (end.month - start.month)


def sunday_weekday_index(day: date) -> int:
    """Return the Sunday-based weekday index (Sun=0 ... Sat=6)."""
    return day.isoweekday() % DAYS_PER_WEEK


def sunday_week_start(day: date) -> date:
    """Return the Sunday that starts the Sunday-aligned week of a date."""
    return day - timedelta(days=sunday_weekday_index(day))


def monday_week_start(day: date) -> date:
    """Return the Monday that starts the ISO week of a date."""
    return day - timedelta(days=day.weekday())


# ==============================================================================
# Input Normalization
# ==============================================================================


def dt_parse(
    dt_input: str | date | datetime | None, tz: ZoneInfo | None = None
) -> datetime | None:
    """Normalize string/date/datetime input to an aware datetime.

    Naive values are interpreted in the local timezone. Dates become local
    midnight.

    Args:
        dt_input: ISO string, date or datetime, or None
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Aware datetime, or None if the input could not be parsed.
    """
    if not dt_input:
        return None

    tz_info = tz or DEFAULT_TIME_ZONE
    result: datetime

    if isinstance(dt_input, str):
        try:
            result = datetime.fromisoformat(dt_input)
        except ValueError:
            _LOGGER.debug("Unable to parse datetime string: %s", dt_input)
            return None
    elif isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, date):
        result = datetime.combine(dt_input, time())
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=tz_info)
    return result


def dt_to_ms(
    value: int | str | date | datetime, tz: ZoneInfo | None = None
) -> int:
    """Normalize an epoch-ms int, ISO string, date or datetime to epoch ms.

    Raises:
        ValueError: If the value cannot be interpreted as an instant
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, int):
        return value
    parsed = dt_parse(value, tz)
    if parsed is None:
        raise ValueError(f"Not a timestamp: {value!r}")
    return local_to_ms(parsed)
