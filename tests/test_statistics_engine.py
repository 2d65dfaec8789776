"""Tests for HabitStatisticsEngine.

Tests cover:
- Range statistics (counts, rounding, empty ranges)
- Exclusions and stray completions
- Rolling rates over trailing windows
- Report period ordering and week boundaries
"""

from __future__ import annotations

import pytest

from tests.helpers import at, day_key
from treetask import const
from treetask.engines.statistics_engine import HabitStatisticsEngine
from treetask.patterns import DailyPattern, WeeklyPattern

# =============================================================================
# Range Statistics
# =============================================================================


class TestRangeStats:
    """Tests for range_stats."""

    def test_three_of_four(self) -> None:
        """Three completions over four daily occurrences is 75%."""
        pattern = DailyPattern(
            completed_instances={day_key(2024, 1, d) for d in (1, 2, 3)}
        )
        stats = HabitStatisticsEngine.range_stats(
            pattern, at(2024, 1, 1, 9), day_key(2024, 1, 1), day_key(2024, 1, 4)
        )
        assert stats == {"completed": 3, "total": 4, "percent": 75}

    def test_rounds_half_up(self) -> None:
        """3 of 8 is 37.5%, reported as 38."""
        pattern = DailyPattern(
            completed_instances={day_key(2024, 1, d) for d in (1, 2, 3)}
        )
        stats = HabitStatisticsEngine.range_stats(
            pattern, at(2024, 1, 1, 9), day_key(2024, 1, 1), day_key(2024, 1, 8)
        )
        assert stats[const.DATA_STATS_PERCENT] == 38  # type: ignore[literal-required]

    def test_no_occurrences_is_zero(self) -> None:
        """A range before the anchor has no occurrences and 0%."""
        stats = HabitStatisticsEngine.range_stats(
            DailyPattern(),
            at(2024, 2, 1, 9),
            day_key(2024, 1, 1),
            day_key(2024, 1, 31),
        )
        assert stats == {"completed": 0, "total": 0, "percent": 0}

    def test_exclusions_shrink_total(self) -> None:
        """Skipped days are not counted as misses."""
        pattern = WeeklyPattern(
            days_of_week={"Mon", "Thu"},
            exclude_dates={day_key(2024, 1, 4)},
            completed_instances={day_key(2024, 1, 1), day_key(2024, 1, 8)},
        )
        stats = HabitStatisticsEngine.range_stats(
            pattern, at(2024, 1, 1, 7), day_key(2024, 1, 1), day_key(2024, 1, 14)
        )
        assert stats == {"completed": 2, "total": 3, "percent": 67}

    def test_completion_off_schedule_ignored(self) -> None:
        """Completions on days without an occurrence do not count."""
        pattern = WeeklyPattern(
            days_of_week={"Mon"},
            completed_instances={day_key(2024, 1, 1), day_key(2024, 1, 2)},
        )
        stats = HabitStatisticsEngine.range_stats(
            pattern, at(2024, 1, 1, 7), day_key(2024, 1, 1), day_key(2024, 1, 7)
        )
        assert stats == {"completed": 1, "total": 1, "percent": 100}

    def test_end_condition_limits_total(self) -> None:
        """Occurrences after the series ends are not counted."""
        pattern = DailyPattern(
            end_condition=const.END_CONDITION_AFTER_OCCURRENCES,
            end_count=5,
            completed_instances={day_key(2024, 1, 5)},
        )
        stats = HabitStatisticsEngine.range_stats(
            pattern, at(2024, 1, 1, 7), day_key(2024, 1, 1), day_key(2024, 1, 31)
        )
        assert stats == {"completed": 1, "total": 5, "percent": 20}


# =============================================================================
# Rolling Rates
# =============================================================================


class TestRollingRates:
    """Tests for rolling_rates."""

    def test_trailing_windows(self) -> None:
        """Windows count back from today, today inclusive."""
        pattern = DailyPattern(
            completed_instances={day_key(2024, 1, d) for d in range(4, 11)}
        )
        rates = HabitStatisticsEngine.rolling_rates(
            pattern, at(2024, 1, 1, 9), at(2024, 1, 10, 20)
        )
        assert list(rates) == list(const.HABIT_ROLLING_PERIODS)
        assert rates["last7d"] == 100
        # Only Jan 1-10 exist in the longer windows
        assert rates["last14d"] == 70
        assert rates["last365d"] == 70


# =============================================================================
# Report
# =============================================================================


class TestReport:
    """Tests for report."""

    @pytest.fixture
    def pattern(self) -> DailyPattern:
        """Daily habit checked off on Jan 2, 8 and 9."""
        return DailyPattern(
            completed_instances={
                day_key(2024, 1, 2),
                day_key(2024, 1, 8),
                day_key(2024, 1, 9),
            }
        )

    def test_period_order(self, pattern: DailyPattern) -> None:
        """Periods come out in fixed order."""
        report = HabitStatisticsEngine.report(
            pattern, at(2024, 1, 1, 9), at(2024, 1, 10, 12)
        )
        assert [block["period"] for block in report] == [
            const.HABIT_REPORT_THIS_WEEK,
            const.HABIT_REPORT_LAST_WEEK,
            *const.HABIT_REPORT_ROLLING_PERIODS,
            const.HABIT_REPORT_ALL,
        ]

    def test_week_boundaries(self, pattern: DailyPattern) -> None:
        """This week runs Monday to today, last week Monday to Sunday."""
        report = {
            block["period"]: block
            for block in HabitStatisticsEngine.report(
                pattern, at(2024, 1, 1, 9), at(2024, 1, 10, 12)
            )
        }
        this_week = report[const.HABIT_REPORT_THIS_WEEK]
        last_week = report[const.HABIT_REPORT_LAST_WEEK]
        assert (this_week["completed"], this_week["total"]) == (2, 3)
        assert this_week["percent"] == 67
        assert (last_week["completed"], last_week["total"]) == (1, 7)
        assert last_week["percent"] == 14

    def test_all_since_anchor(self, pattern: DailyPattern) -> None:
        """The all-time block starts at the anchor."""
        report = HabitStatisticsEngine.report(
            pattern, at(2024, 1, 1, 9), at(2024, 1, 10, 12)
        )
        all_time = report[-1]
        assert (all_time["completed"], all_time["total"]) == (3, 10)
        assert all_time["percent"] == 30
