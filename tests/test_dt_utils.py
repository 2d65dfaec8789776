"""Unit tests for utils/dt_utils.py.

Test Categories:
- Timezone configuration
- Day-key normalization across DST transitions
- Calendar stepping (month clamping, week starts)
- Input normalization (dt_parse / dt_to_ms)
"""

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from tests.helpers import at, day_key
from treetask import const
from treetask.utils import dt_utils

# =============================================================================
# Timezone configuration
# =============================================================================


class TestTimezoneConfiguration:
    """Tests for set_default_timezone / get_default_timezone."""

    def test_accepts_zone_name(self) -> None:
        """IANA names are resolved to ZoneInfo."""
        dt_utils.set_default_timezone("America/New_York")
        assert dt_utils.get_default_timezone() == ZoneInfo("America/New_York")

    def test_rejects_unknown_zone(self) -> None:
        """Unknown names raise ValueError and keep the previous zone."""
        previous = dt_utils.get_default_timezone()
        with pytest.raises(ValueError, match="Unknown time zone"):
            dt_utils.set_default_timezone("Mars/Olympus_Mons")
        assert dt_utils.get_default_timezone() == previous

    def test_explicit_tz_overrides_default(self) -> None:
        """A tz argument wins over the configured default."""
        instant = at(2025, 1, 15, 0, 30)  # 23:30 UTC on Jan 14
        assert dt_utils.ms_to_date(instant) == date(2025, 1, 15)
        assert dt_utils.ms_to_date(instant, ZoneInfo("UTC")) == date(2025, 1, 14)


# =============================================================================
# Day-keys
# =============================================================================


class TestDayKeys:
    """Tests for day_start and date/day-key conversions."""

    def test_day_start_truncates_to_local_midnight(self) -> None:
        """Any instant in a day maps to that day's midnight."""
        assert dt_utils.day_start(at(2025, 1, 6, 15, 30)) == at(2025, 1, 6)
        assert dt_utils.day_start(at(2025, 1, 6, 23, 59)) == at(2025, 1, 6)

    def test_day_start_is_idempotent(self) -> None:
        """Normalizing a day-key returns it unchanged."""
        key = day_key(2025, 6, 1)
        assert dt_utils.day_start(key) == key

    def test_spring_forward_day_is_23_hours(self) -> None:
        """Day-keys stay at midnight across the March DST switch."""
        gap = day_key(2025, 3, 31) - day_key(2025, 3, 30)
        assert gap == 23 * const.MS_PER_HOUR
        assert dt_utils.ms_to_date(day_key(2025, 3, 31)) == date(2025, 3, 31)

    def test_fall_back_day_is_25_hours(self) -> None:
        """Day-keys stay at midnight across the October DST switch."""
        gap = day_key(2025, 10, 27) - day_key(2025, 10, 26)
        assert gap == 25 * const.MS_PER_HOUR

    def test_combine_date_and_time(self) -> None:
        """Wall-clock time is applied in the local zone."""
        instant = dt_utils.combine_date_and_time(date(2025, 7, 4), time(9, 15))
        assert instant == at(2025, 7, 4, 9, 15)
        assert dt_utils.time_of_day(instant) == time(9, 15)

    def test_local_noon(self) -> None:
        """All-day anchors land on local noon of the same day."""
        assert dt_utils.local_noon(at(2025, 3, 30, 1)) == at(2025, 3, 30, 12)


# =============================================================================
# Calendar stepping
# =============================================================================


class TestCalendarStepping:
    """Tests for add_months, months_between and week starts."""

    @pytest.mark.parametrize(
        ("start", "months", "expected"),
        [
            (date(2025, 1, 31), 1, date(2025, 2, 28)),
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2025, 3, 31), -1, date(2025, 2, 28)),
            (date(2025, 12, 15), 2, date(2026, 2, 15)),
        ],
    )
    def test_add_months_clamps(self, start: date, months: int, expected: date) -> None:
        """Month steps clamp to the last day of short months."""
        assert dt_utils.add_months(start, months) == expected

    def test_months_between_ignores_day(self) -> None:
        """Only year and month count."""
        assert dt_utils.months_between(date(2025, 1, 31), date(2025, 2, 1)) == 1
        assert dt_utils.months_between(date(2024, 11, 1), date(2025, 1, 31)) == 2

    def test_week_starts(self) -> None:
        """Sunday- and Monday-aligned week starts."""
        wednesday = date(2025, 1, 15)
        assert dt_utils.sunday_week_start(wednesday) == date(2025, 1, 12)
        assert dt_utils.monday_week_start(wednesday) == date(2025, 1, 13)
        sunday = date(2025, 1, 12)
        assert dt_utils.sunday_weekday_index(sunday) == 0
        assert dt_utils.sunday_week_start(sunday) == sunday
        assert dt_utils.monday_week_start(sunday) == date(2025, 1, 6)


# =============================================================================
# Input normalization
# =============================================================================


class TestInputNormalization:
    """Tests for dt_parse and dt_to_ms."""

    def test_naive_string_is_local(self) -> None:
        """Naive ISO strings are read as local wall-clock time."""
        assert dt_utils.dt_to_ms("2025-01-15T08:00:00") == at(2025, 1, 15, 8)

    def test_aware_string_keeps_offset(self) -> None:
        """Aware ISO strings keep their own offset."""
        assert dt_utils.dt_to_ms("2025-01-15T07:00:00+00:00") == at(2025, 1, 15, 8)

    def test_date_is_local_midnight(self) -> None:
        """Dates become local midnight."""
        assert dt_utils.dt_to_ms(date(2025, 1, 15)) == day_key(2025, 1, 15)

    def test_int_passes_through(self) -> None:
        """Epoch-ms ints are returned untouched."""
        assert dt_utils.dt_to_ms(1_700_000_000_000) == 1_700_000_000_000

    @pytest.mark.parametrize("value", [True, "not a date", ""])
    def test_rejects_garbage(self, value: object) -> None:
        """Booleans and unparseable strings raise ValueError."""
        with pytest.raises(ValueError, match="Not a timestamp"):
            dt_utils.dt_to_ms(value)  # type: ignore[arg-type]

    def test_dt_parse_unparseable_returns_none(self) -> None:
        """dt_parse reports failure as None."""
        assert dt_utils.dt_parse("yesterday-ish") is None
        assert dt_utils.dt_parse(None) is None

    def test_dt_parse_datetime_naive(self) -> None:
        """Naive datetimes get the local zone attached."""
        parsed = dt_utils.dt_parse(datetime(2025, 1, 15, 8))
        assert parsed is not None
        assert parsed.tzinfo == dt_utils.get_default_timezone()
