"""Type definitions for TreeTask data structures.

TypedDicts describe the dict shapes the store persists and the engines pass
around. They are STATIC ANALYSIS ONLY; runtime validation lives in
patterns.py (recurrence rules) and data_builders.py (entities and options).

IMPORTANT: This file must NOT import from engines, managers or the store to
avoid circular dependencies. Only typing machinery.
"""

from typing import Any, NotRequired, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

EntityId = str  # UUID string
EpochMs = int  # Milliseconds since the Unix epoch
DayKey = int  # Epoch ms of local midnight


# =============================================================================
# Recurrence
# =============================================================================


class RecurrencePatternData(TypedDict):
    """JSON form of a recurrence pattern (external contract, camelCase keys)."""

    frequency: str  # FREQUENCY_* wire value
    interval: int
    daysOfWeek: NotRequired[list[str]]  # Weekly only
    endCondition: str  # END_CONDITION_* wire value
    endCount: NotRequired[int]  # After X occurrences only
    endDate: NotRequired[DayKey]  # Until specific date only
    excludeDates: NotRequired[list[DayKey]]
    completedInstances: NotRequired[list[DayKey]]


# =============================================================================
# Entities
# =============================================================================


class TaskData(TypedDict):
    """Type definition for a task entity."""

    id: EntityId
    title: str
    description: str
    parent_id: EntityId | None
    status: str
    priority: str
    task_type: str | None
    tags: list[str]
    scheduled_time: EpochMs | None  # Anchor instant
    is_all_day: bool
    time_estimate_minutes: int | None
    is_recurring: bool
    recurrence_pattern: RecurrencePatternData | None
    created_at: EpochMs
    completed_at: NotRequired[EpochMs | None]


class TimeBlockData(TypedDict):
    """Type definition for a time block entity."""

    id: EntityId
    title: str
    start_time: EpochMs  # Anchor instant
    end_time: EpochMs
    task_type: str | None
    tags: list[str]
    color: str | None
    is_recurring: bool
    recurrence_pattern: RecurrencePatternData | None


# Entities are handled generically by the splitter and store
EntityData = TaskData | TimeBlockData | dict[str, Any]


class ResolvedBlock(TypedDict):
    """Time block placed on a concrete day (original or spilled occurrence)."""

    id: EntityId
    start: EpochMs
    end: EpochMs
    is_recurring: bool
    data: TimeBlockData | dict[str, Any]


# =============================================================================
# Options
# =============================================================================


class ScheduleOptions(TypedDict, total=False):
    """Validated options for ScheduleManager."""

    time_zone: str
    max_iterations: int
    habit_tag: str | None


# =============================================================================
# Statistics
# =============================================================================


class HabitRangeStats(TypedDict):
    """Completion totals for one habit over a day range."""

    completed: int
    total: int
    percent: int


class HabitReportBlock(HabitRangeStats):
    """Completion totals for one named report period."""

    period: str
