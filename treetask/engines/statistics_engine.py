"""Habit Statistics Engine - completion rates for recurring habits.

A habit's rate over a period is the share of its occurrences in that period
that were checked off. Occurrences come from RecurrenceEngine, so exclusions
and end conditions shrink the denominator; completions on days that are not
occurrences are ignored.

Percentages are whole numbers rounded half up (3 of 8 -> 38).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .. import const
from ..type_defs import HabitRangeStats, HabitReportBlock
from ..utils.dt_utils import (
    add_days,
    date_to_day_key,
    monday_week_start,
    ms_to_date,
)
from .completion_engine import InstanceCompletionTracker
from .recurrence_engine import RecurrenceEngine

if TYPE_CHECKING:
    from ..patterns import RecurrencePattern


def _percent(completed: int, total: int) -> int:
    if total == 0:
        return 0
    return (completed * 200 + total) // (2 * total)


class HabitStatisticsEngine:
    """Pure logic engine for habit completion statistics.

    All methods are static - no instance state.
    """

    @staticmethod
    def range_stats(
        pattern: RecurrencePattern,
        anchor_start: int,
        range_start: int,
        range_end: int,
        *,
        max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
    ) -> HabitRangeStats:
        """Count occurrences and completions in an inclusive day range.

        Returns:
            {"completed": n, "total": m, "percent": p}; percent is 0 when
            the range holds no occurrence.
        """
        engine = RecurrenceEngine(pattern, anchor_start, max_iterations=max_iterations)
        completed_keys = set(InstanceCompletionTracker.completed_days(pattern))

        total = 0
        completed = 0
        for day_key in engine.enumerate_occurrences(range_start, range_end):
            total += 1
            if day_key in completed_keys:
                completed += 1

        return HabitRangeStats(
            completed=completed,
            total=total,
            percent=_percent(completed, total),
        )

    @staticmethod
    def rolling_rates(
        pattern: RecurrencePattern,
        anchor_start: int,
        now: int,
        *,
        max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
    ) -> dict[str, int]:
        """Percent completed over trailing windows ending today.

        Returns:
            {"last7d": p, "last14d": p, "last30d": p, "last90d": p,
            "last365d": p}
        """
        today = ms_to_date(now)
        rates: dict[str, int] = {}
        for label, days in const.HABIT_ROLLING_PERIODS.items():
            stats = HabitStatisticsEngine.range_stats(
                pattern,
                anchor_start,
                date_to_day_key(add_days(today, -(days - 1))),
                date_to_day_key(today),
                max_iterations=max_iterations,
            )
            rates[label] = stats[const.DATA_STATS_PERCENT]  # type: ignore[literal-required]
        return rates

    @staticmethod
    def report(
        pattern: RecurrencePattern,
        anchor_start: int,
        now: int,
        *,
        max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
    ) -> list[HabitReportBlock]:
        """Build the ordered period breakdown for a habit report.

        Periods: this week (Monday to today), last week (Monday to Sunday),
        trailing 30/60/180/365 days, and everything since the anchor.
        """
        today = ms_to_date(now)
        this_monday = monday_week_start(today)

        periods: list[tuple[str, int, int]] = [
            (
                const.HABIT_REPORT_THIS_WEEK,
                date_to_day_key(this_monday),
                date_to_day_key(today),
            ),
            (
                const.HABIT_REPORT_LAST_WEEK,
                date_to_day_key(add_days(this_monday, -const.DAYS_PER_WEEK)),
                date_to_day_key(add_days(this_monday, -1)),
            ),
        ]
        periods.extend(
            (
                label,
                date_to_day_key(add_days(today, -(days - 1))),
                date_to_day_key(today),
            )
            for label, days in const.HABIT_REPORT_ROLLING_PERIODS.items()
        )
        periods.append((const.HABIT_REPORT_ALL, anchor_start, date_to_day_key(today)))

        report: list[HabitReportBlock] = []
        for label, start, end in periods:
            stats = HabitStatisticsEngine.range_stats(
                pattern, anchor_start, start, end, max_iterations=max_iterations
            )
            report.append(HabitReportBlock(period=label, **stats))
        return report
