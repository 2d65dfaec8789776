"""Calendar Engine - Pure date arithmetic for calendar viewports.

This engine provides stateless functions for:
- Day-key normalization (local midnight)
- Day grids for day / 3-day / week / 2-week / month views (Monday start)
- Stepping a view anchor forward or backward by the view's natural unit

ARCHITECTURE: Pure logic, no state. All methods are static and operate on
epoch-ms timestamps in the configured local timezone.
"""

from __future__ import annotations

from datetime import date

from .. import const
from ..utils.dt_utils import (
    add_days,
    add_months,
    combine_date_and_time,
    date_to_day_key,
    day_start,
    monday_week_start,
    ms_to_date,
    time_of_day,
)


class CalendarEngine:
    """Pure logic engine for viewport date math.

    All methods are static - no instance state.
    """

    @staticmethod
    def day_start(timestamp: int) -> int:
        """Truncate a timestamp to its local midnight day-key."""
        return day_start(timestamp)

    @staticmethod
    def grid_days(anchor: int, view_type: str) -> list[int]:
        """Return the ordered day-keys rendered by a view.

        Args:
            anchor: Any instant inside the period being viewed
            view_type: One of const.VIEW_TYPES

        Returns:
            day: the anchor day; 3days: anchor day plus the next two;
            week/2weeks: 7/14 days from the Monday of the anchor's week;
            month: 42 days from the Monday on or before the 1st of the
            anchor's month.

        Raises:
            ValueError: If view_type is unknown
        """
        CalendarEngine._require_view(view_type)
        anchor_day = ms_to_date(anchor)

        first: date
        if view_type in (const.VIEW_DAY, const.VIEW_3DAYS):
            first = anchor_day
        elif view_type in (const.VIEW_WEEK, const.VIEW_2WEEKS):
            first = monday_week_start(anchor_day)
        else:
            first = monday_week_start(anchor_day.replace(day=1))

        return [
            date_to_day_key(add_days(first, offset))
            for offset in range(const.VIEW_GRID_SIZE[view_type])
        ]

    @staticmethod
    def step_date(timestamp: int, view_type: str, direction: int) -> int:
        """Move a view anchor by one view unit, keeping the time of day.

        Month views step by calendar month and clamp the day-of-month
        (Jan 31 -> Feb 28).

        Args:
            timestamp: Current view anchor
            view_type: One of const.VIEW_TYPES
            direction: const.DIRECTION_FORWARD or const.DIRECTION_BACKWARD

        Raises:
            ValueError: If view_type or direction is invalid
        """
        CalendarEngine._require_view(view_type)
        if direction not in (const.DIRECTION_FORWARD, const.DIRECTION_BACKWARD):
            raise ValueError(f"Invalid step direction: {direction!r}")

        current = ms_to_date(timestamp)
        if view_type == const.VIEW_MONTH:
            target = add_months(current, direction)
        else:
            target = add_days(current, direction * const.VIEW_STEP_DAYS[view_type])
        return combine_date_and_time(target, time_of_day(timestamp))

    @staticmethod
    def _require_view(view_type: str) -> None:
        if view_type not in const.VIEW_GRID_SIZE:
            raise ValueError(f"Unknown calendar view type: {view_type!r}")
