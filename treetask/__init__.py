# File: __init__.py
"""TreeTask recurrence and scheduling engine.

Decides which calendar days a repeating task or time block occurs on,
enumerates and indexes occurrences, splits a series when one occurrence or
the rest of it is edited, and tracks per-occurrence completion.

Key Features:
- Daily / Weekly / Monthly recurrence with intervals, weekday sets,
  exclusions and end conditions.
- "This", "this and future" and "all" edits with coverage preservation.
- Multi-day spillover for long blocks and habit completion statistics.
"""

from __future__ import annotations

from .engines import (
    CalendarEngine,
    HabitStatisticsEngine,
    InstanceCompletionTracker,
    RecurrenceEngine,
    SeriesSplitter,
    SplitResult,
)
from .exceptions import (
    EntityValidationError,
    InvalidInstanceError,
    InvalidPatternError,
    IterationLimitExceededError,
    TreeTaskError,
)
from .managers import ScheduleManager
from .patterns import DailyPattern, MonthlyPattern, RecurrencePattern, WeeklyPattern
from .store import SchedulingStore

__all__ = [
    "CalendarEngine",
    "DailyPattern",
    "EntityValidationError",
    "HabitStatisticsEngine",
    "InstanceCompletionTracker",
    "InvalidInstanceError",
    "InvalidPatternError",
    "IterationLimitExceededError",
    "MonthlyPattern",
    "RecurrenceEngine",
    "RecurrencePattern",
    "ScheduleManager",
    "SchedulingStore",
    "SeriesSplitter",
    "SplitResult",
    "TreeTaskError",
    "WeeklyPattern",
]
