"""Engine modules for TreeTask.

Contains the pure computation engines:
- calendar_engine: Day-keys, view grids and view stepping
- recurrence_engine: Occurrence membership, indexing, enumeration, spillover
- series_engine: Head/body/tail splits for "this"/"future"/"all" edits
- completion_engine: Per-occurrence check-offs
- statistics_engine: Habit completion rates
"""

# Use relative imports within package to avoid mypy module resolution issues
from .calendar_engine import CalendarEngine
from .completion_engine import InstanceCompletionTracker
from .recurrence_engine import (
    RecurrenceEngine,
    current_instance_on_or_before,
    enumerate_occurrences,
    next_occurrence_after,
    occurrence_index,
    occurs_on,
)
from .series_engine import SeriesSplitter, SplitResult
from .statistics_engine import HabitStatisticsEngine

__all__ = [
    "CalendarEngine",
    "HabitStatisticsEngine",
    "InstanceCompletionTracker",
    "RecurrenceEngine",
    "SeriesSplitter",
    "SplitResult",
    "current_instance_on_or_before",
    "enumerate_occurrences",
    "next_occurrence_after",
    "occurrence_index",
    "occurs_on",
]
