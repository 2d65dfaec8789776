# File: const.py
"""Constants for the TreeTask scheduling engine.

This file centralizes wire labels, data keys, defaults and limits used across
the engines, the store and the manager, so every module agrees on the exact
strings persisted in the JSON form of tasks, time blocks and recurrence
patterns.
"""

import logging
from typing import Final

# ------------------------------------------------------------------------------------------------
# General
# ------------------------------------------------------------------------------------------------
TREETASK_TITLE = "TreeTask"

# Logger
LOGGER = logging.getLogger(__package__)

# Storage schema
STORAGE_SCHEMA_VERSION = 1

# ------------------------------------------------------------------------------------------------
# Time
# ------------------------------------------------------------------------------------------------
MS_PER_SECOND: Final = 1000
MS_PER_MINUTE: Final = 60 * MS_PER_SECOND
MS_PER_HOUR: Final = 60 * MS_PER_MINUTE
MS_PER_DAY: Final = 24 * MS_PER_HOUR
DAYS_PER_WEEK: Final = 7
MONTHS_PER_YEAR: Final = 12

# All-day entities are anchored at local noon to stay clear of DST transitions
ALL_DAY_ANCHOR_HOUR: Final = 12

# Day-of-month values every month has
MAX_SAFE_DAY_OF_MONTH: Final = 28

# ------------------------------------------------------------------------------------------------
# Recurrence: frequencies, end conditions, weekdays (wire values)
# ------------------------------------------------------------------------------------------------
FREQUENCY_DAILY = "Daily"
FREQUENCY_WEEKLY = "Weekly"
FREQUENCY_MONTHLY = "Monthly"

FREQUENCY_OPTIONS = [FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_MONTHLY]

END_CONDITION_AFTER_OCCURRENCES = "After X occurrences"
END_CONDITION_UNTIL_DATE = "Until specific date"
END_CONDITION_NO_END = "No end date"

END_CONDITION_OPTIONS = [
    END_CONDITION_AFTER_OCCURRENCES,
    END_CONDITION_UNTIL_DATE,
    END_CONDITION_NO_END,
]

# Sunday-first ordering matches the Sunday-anchored week used for interval math
WEEKDAY_SUN = "Sun"
WEEKDAY_MON = "Mon"
WEEKDAY_TUE = "Tue"
WEEKDAY_WED = "Wed"
WEEKDAY_THU = "Thu"
WEEKDAY_FRI = "Fri"
WEEKDAY_SAT = "Sat"

WEEKDAY_LABELS: Final[tuple[str, ...]] = (
    WEEKDAY_SUN,
    WEEKDAY_MON,
    WEEKDAY_TUE,
    WEEKDAY_WED,
    WEEKDAY_THU,
    WEEKDAY_FRI,
    WEEKDAY_SAT,
)

# Label -> Sunday-based index (Sun=0 ... Sat=6)
WEEKDAY_INDEX: Final[dict[str, int]] = {
    label: idx for idx, label in enumerate(WEEKDAY_LABELS)
}

# Sunday-based index -> RFC 5545 BYDAY token
RRULE_WEEKDAY_TOKENS: Final[tuple[str, ...]] = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

# ------------------------------------------------------------------------------------------------
# Recurrence pattern JSON keys (external contract, camelCase)
# ------------------------------------------------------------------------------------------------
DATA_PATTERN_FREQUENCY = "frequency"
DATA_PATTERN_INTERVAL = "interval"
DATA_PATTERN_DAYS_OF_WEEK = "daysOfWeek"
DATA_PATTERN_END_CONDITION = "endCondition"
DATA_PATTERN_END_COUNT = "endCount"
DATA_PATTERN_END_DATE = "endDate"
DATA_PATTERN_EXCLUDE_DATES = "excludeDates"
DATA_PATTERN_COMPLETED_INSTANCES = "completedInstances"

DEFAULT_PATTERN_INTERVAL = 1

# ------------------------------------------------------------------------------------------------
# Entity keys
# ------------------------------------------------------------------------------------------------
DATA_ENTITY_ID = "id"
DATA_ENTITY_TITLE = "title"
DATA_ENTITY_TASK_TYPE = "task_type"
DATA_ENTITY_TAGS = "tags"
DATA_ENTITY_IS_RECURRING = "is_recurring"
DATA_ENTITY_RECURRENCE_PATTERN = "recurrence_pattern"

# Tasks
DATA_TASK_DESCRIPTION = "description"
DATA_TASK_PARENT_ID = "parent_id"
DATA_TASK_STATUS = "status"
DATA_TASK_PRIORITY = "priority"
DATA_TASK_SCHEDULED_TIME = "scheduled_time"
DATA_TASK_IS_ALL_DAY = "is_all_day"
DATA_TASK_TIME_ESTIMATE_MINUTES = "time_estimate_minutes"
DATA_TASK_CREATED_AT = "created_at"
DATA_TASK_COMPLETED_AT = "completed_at"

# Time blocks
DATA_BLOCK_START_TIME = "start_time"
DATA_BLOCK_END_TIME = "end_time"
DATA_BLOCK_COLOR = "color"

# Keys an update payload may never overwrite on a split fragment
PROTECTED_ENTITY_KEYS: Final[frozenset[str]] = frozenset(
    {DATA_ENTITY_ID, DATA_TASK_CREATED_AT}
)

# Recurrence keys stripped from a standalone (body) entity
RECURRENCE_ENTITY_KEYS: Final[frozenset[str]] = frozenset(
    {DATA_ENTITY_IS_RECURRING, DATA_ENTITY_RECURRENCE_PATTERN}
)

# Task status
TASK_STATUS_NOT_STARTED = "Not Started"
TASK_STATUS_IN_PROGRESS = "In Progress"
TASK_STATUS_COMPLETED = "Completed"
TASK_STATUS_CANCELLED = "Cancelled"

TASK_STATUS_OPTIONS = [
    TASK_STATUS_NOT_STARTED,
    TASK_STATUS_IN_PROGRESS,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_CANCELLED,
]

TASK_FINISHED_STATUSES: Final[frozenset[str]] = frozenset(
    {TASK_STATUS_COMPLETED, TASK_STATUS_CANCELLED}
)

# Task priority
TASK_PRIORITY_LOW = "Low"
TASK_PRIORITY_MEDIUM = "Medium"
TASK_PRIORITY_HIGH = "High"
TASK_PRIORITY_CRITICAL = "Critical"

TASK_PRIORITY_OPTIONS = [
    TASK_PRIORITY_LOW,
    TASK_PRIORITY_MEDIUM,
    TASK_PRIORITY_HIGH,
    TASK_PRIORITY_CRITICAL,
]

DEFAULT_TASK_PRIORITY = TASK_PRIORITY_MEDIUM

# Task types considered habits for calendar filtering
TASK_TYPE_HEALTH = "Health"
TASK_TYPE_HABIT = "Habit"

HABIT_TASK_TYPES: Final[frozenset[str]] = frozenset({TASK_TYPE_HEALTH, TASK_TYPE_HABIT})

# ------------------------------------------------------------------------------------------------
# Calendar views
# ------------------------------------------------------------------------------------------------
VIEW_DAY = "day"
VIEW_3DAYS = "3days"
VIEW_WEEK = "week"
VIEW_2WEEKS = "2weeks"
VIEW_MONTH = "month"

VIEW_TYPES = [VIEW_DAY, VIEW_3DAYS, VIEW_WEEK, VIEW_2WEEKS, VIEW_MONTH]

# Views in which habits are rendered
HABIT_VISIBLE_VIEWS: Final[frozenset[str]] = frozenset({VIEW_DAY, VIEW_3DAYS})

# Day step per view (month views step by calendar month instead)
VIEW_STEP_DAYS: Final[dict[str, int]] = {
    VIEW_DAY: 1,
    VIEW_3DAYS: 3,
    VIEW_WEEK: 7,
    VIEW_2WEEKS: 14,
}

VIEW_GRID_SIZE: Final[dict[str, int]] = {
    VIEW_DAY: 1,
    VIEW_3DAYS: 3,
    VIEW_WEEK: 7,
    VIEW_2WEEKS: 14,
    VIEW_MONTH: 42,
}

DIRECTION_FORWARD = 1
DIRECTION_BACKWARD = -1

# ------------------------------------------------------------------------------------------------
# Series splitting
# ------------------------------------------------------------------------------------------------
UPDATE_MODE_THIS = "this"
UPDATE_MODE_FUTURE = "future"
UPDATE_MODE_ALL = "all"

UPDATE_MODES = [UPDATE_MODE_THIS, UPDATE_MODE_FUTURE, UPDATE_MODE_ALL]

SPLIT_ACTION_EDIT = "edit"
SPLIT_ACTION_DELETE = "delete"

# ------------------------------------------------------------------------------------------------
# Habit statistics periods
# ------------------------------------------------------------------------------------------------
# Trailing windows (days, today inclusive)
HABIT_ROLLING_PERIODS: Final[dict[str, int]] = {
    "last7d": 7,
    "last14d": 14,
    "last30d": 30,
    "last90d": 90,
    "last365d": 365,
}

HABIT_REPORT_THIS_WEEK = "this_week"
HABIT_REPORT_LAST_WEEK = "last_week"
HABIT_REPORT_ALL = "all"

HABIT_REPORT_ROLLING_PERIODS: Final[dict[str, int]] = {
    "month": 30,
    "2months": 60,
    "6months": 180,
    "year": 365,
}

# Statistics payload keys
DATA_STATS_PERIOD = "period"
DATA_STATS_COMPLETED = "completed"
DATA_STATS_TOTAL = "total"
DATA_STATS_PERCENT = "percent"

# ------------------------------------------------------------------------------------------------
# Options
# ------------------------------------------------------------------------------------------------
CONF_TIME_ZONE = "time_zone"
CONF_MAX_ITERATIONS = "max_iterations"
CONF_HABIT_TAG = "habit_tag"

DEFAULT_TIME_ZONE_NAME = "UTC"

# Safety cap for forward iteration over a series
DEFAULT_MAX_ITERATIONS = 10000

# ------------------------------------------------------------------------------------------------
# Store
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_TASKS = "tasks"
DATA_TIME_BLOCKS = "time_blocks"
