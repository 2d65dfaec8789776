"""Entity lifecycle helpers.

This module is the SINGLE SOURCE OF TRUTH for:
- Task and time block field defaults
- Entity validation (titles, statuses, recurrence patterns)
- Complete entity structure building
- Uniform accessors used by the engines (anchor, duration, pattern)
- Options validation for ScheduleManager

### Build Functions
Each entity type has a `build_<entity>()` function that:
- Takes user input keyed by DATA_* constants
- Generates the id (UUID) for new entities
- Sets timestamps (created_at)
- Applies field defaults
- Returns the complete entity dict ready for storage

One function handles both create (existing=None) and update
(existing=<entity>): fields missing from the input keep their existing
value on update and fall back to defaults on create.

### Accessors
Tasks anchor at `scheduled_time` and last `time_estimate_minutes`; time
blocks anchor at `start_time` and last until `end_time`. The accessors hide
that difference so splitting and day resolution treat both alike.
"""

from __future__ import annotations

import copy
from typing import Any, cast
import uuid
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import voluptuous as vol

from . import const
from .exceptions import EntityValidationError, InvalidPatternError
from .patterns import RecurrencePattern
from .type_defs import EntityData, ScheduleOptions, TaskData, TimeBlockData
from .utils.dt_utils import dt_now_ms, dt_to_ms, local_noon

# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _normalize_list_field(value: Any) -> list[Any]:
    """Normalize a field that should be a list.

    Strings become a one-item list instead of being split into characters.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    if isinstance(value, str):
        return [value] if value else []
    return list(value)


def _normalize_timestamp(field: str, value: Any) -> int | None:
    """Normalize a timestamp field to epoch ms (None passes through)."""
    if value is None:
        return None
    try:
        return dt_to_ms(value)
    except ValueError as err:
        raise EntityValidationError(field, str(err)) from err


def _normalize_pattern(
    is_recurring: bool, raw_pattern: Any
) -> dict[str, Any] | None:
    """Validate the recurrence pattern of a recurring entity.

    Accepts a RecurrencePattern or its JSON dict form and stores the
    canonical dict form. Non-recurring entities never carry a pattern.
    """
    if not is_recurring:
        return None
    if raw_pattern is None:
        raise InvalidPatternError(
            const.DATA_ENTITY_RECURRENCE_PATTERN, "required for recurring entities"
        )
    if isinstance(raw_pattern, RecurrencePattern):
        pattern = raw_pattern
    else:
        pattern = RecurrencePattern.from_dict(raw_pattern)
    return cast("dict[str, Any]", pattern.to_dict())


def _require_title(user_input: dict[str, Any], title: Any, is_create: bool) -> str:
    name = str(title).strip() if title else ""
    if (is_create or const.DATA_ENTITY_TITLE in user_input) and not name:
        raise EntityValidationError(const.DATA_ENTITY_TITLE, "title cannot be empty")
    return name


# ==============================================================================
# TASKS
# ==============================================================================


def build_task(
    user_input: dict[str, Any],
    existing: TaskData | None = None,
) -> TaskData:
    """Build task data for create or update operations.

    Args:
        user_input: Data with DATA_* keys (may have missing fields)
        existing: None for create, existing TaskData for update

    Returns:
        Complete TaskData ready for storage

    Raises:
        EntityValidationError: On an empty title or an unknown status/priority
        InvalidPatternError: If a recurring task has no valid pattern

    Examples:
        # CREATE mode - generates UUID, applies const.DEFAULT_* for missing fields
        task = build_task({DATA_ENTITY_TITLE: "Stretch"})

        # UPDATE mode - preserves existing fields not in user_input
        task = build_task({DATA_TASK_PRIORITY: "High"}, existing=old_task)
    """
    is_create = existing is None

    def get_field(data_key: str, default: Any) -> Any:
        """Get field value: user_input > existing > default."""
        if data_key in user_input:
            return user_input[data_key]
        if existing is not None:
            return existing.get(data_key, default)
        return default

    title = _require_title(
        user_input, get_field(const.DATA_ENTITY_TITLE, ""), is_create
    )

    status = get_field(const.DATA_TASK_STATUS, const.TASK_STATUS_NOT_STARTED)
    if status not in const.TASK_STATUS_OPTIONS:
        raise EntityValidationError(const.DATA_TASK_STATUS, f"unknown status {status!r}")

    priority = get_field(const.DATA_TASK_PRIORITY, const.DEFAULT_TASK_PRIORITY)
    if priority not in const.TASK_PRIORITY_OPTIONS:
        raise EntityValidationError(
            const.DATA_TASK_PRIORITY, f"unknown priority {priority!r}"
        )

    estimate = get_field(const.DATA_TASK_TIME_ESTIMATE_MINUTES, None)
    if estimate is not None and (
        isinstance(estimate, bool) or not isinstance(estimate, int) or estimate < 0
    ):
        raise EntityValidationError(
            const.DATA_TASK_TIME_ESTIMATE_MINUTES,
            "must be a non-negative integer",
        )

    is_all_day = bool(get_field(const.DATA_TASK_IS_ALL_DAY, False))
    scheduled_time = _normalize_timestamp(
        const.DATA_TASK_SCHEDULED_TIME,
        get_field(const.DATA_TASK_SCHEDULED_TIME, None),
    )
    if is_all_day and scheduled_time is not None:
        scheduled_time = local_noon(scheduled_time)

    is_recurring = bool(get_field(const.DATA_ENTITY_IS_RECURRING, False))
    pattern = _normalize_pattern(
        is_recurring, get_field(const.DATA_ENTITY_RECURRENCE_PATTERN, None)
    )
    if is_recurring and scheduled_time is None:
        raise EntityValidationError(
            const.DATA_TASK_SCHEDULED_TIME, "recurring tasks need a scheduled time"
        )

    # For id: generate new UUID for create, preserve existing for update
    if existing is None:
        entity_id = str(uuid.uuid4())
        created_at = dt_now_ms()
    else:
        entity_id = existing[const.DATA_ENTITY_ID]
        created_at = existing.get(const.DATA_TASK_CREATED_AT, dt_now_ms())

    return TaskData(
        id=entity_id,
        title=title,
        description=str(get_field(const.DATA_TASK_DESCRIPTION, "") or ""),
        parent_id=get_field(const.DATA_TASK_PARENT_ID, None),
        status=status,
        priority=priority,
        task_type=get_field(const.DATA_ENTITY_TASK_TYPE, None),
        tags=_normalize_list_field(get_field(const.DATA_ENTITY_TAGS, [])),
        scheduled_time=scheduled_time,
        is_all_day=is_all_day,
        time_estimate_minutes=estimate,
        is_recurring=is_recurring,
        recurrence_pattern=pattern,  # type: ignore[typeddict-item]
        created_at=created_at,
        completed_at=get_field(const.DATA_TASK_COMPLETED_AT, None),
    )


# ==============================================================================
# TIME BLOCKS
# ==============================================================================


def build_time_block(
    user_input: dict[str, Any],
    existing: TimeBlockData | None = None,
) -> TimeBlockData:
    """Build time block data for create or update operations.

    Raises:
        EntityValidationError: On an empty title, missing times, or an end
            time before the start time
        InvalidPatternError: If a recurring block has no valid pattern
    """
    is_create = existing is None

    def get_field(data_key: str, default: Any) -> Any:
        """Get field value: user_input > existing > default."""
        if data_key in user_input:
            return user_input[data_key]
        if existing is not None:
            return existing.get(data_key, default)
        return default

    title = _require_title(
        user_input, get_field(const.DATA_ENTITY_TITLE, ""), is_create
    )

    start_time = _normalize_timestamp(
        const.DATA_BLOCK_START_TIME, get_field(const.DATA_BLOCK_START_TIME, None)
    )
    end_time = _normalize_timestamp(
        const.DATA_BLOCK_END_TIME, get_field(const.DATA_BLOCK_END_TIME, None)
    )
    if start_time is None or end_time is None:
        raise EntityValidationError(
            const.DATA_BLOCK_START_TIME, "time blocks need a start and an end time"
        )
    if end_time < start_time:
        raise EntityValidationError(
            const.DATA_BLOCK_END_TIME, "end time is before start time"
        )

    is_recurring = bool(get_field(const.DATA_ENTITY_IS_RECURRING, False))
    pattern = _normalize_pattern(
        is_recurring, get_field(const.DATA_ENTITY_RECURRENCE_PATTERN, None)
    )

    entity_id = (
        str(uuid.uuid4()) if existing is None else existing[const.DATA_ENTITY_ID]
    )

    return TimeBlockData(
        id=entity_id,
        title=title,
        start_time=start_time,
        end_time=end_time,
        task_type=get_field(const.DATA_ENTITY_TASK_TYPE, None),
        tags=_normalize_list_field(get_field(const.DATA_ENTITY_TAGS, [])),
        color=get_field(const.DATA_BLOCK_COLOR, None),
        is_recurring=is_recurring,
        recurrence_pattern=pattern,  # type: ignore[typeddict-item]
    )


# ==============================================================================
# ACCESSORS
# ==============================================================================


def is_time_block(entity: EntityData) -> bool:
    """Return True for time blocks, False for tasks."""
    return const.DATA_BLOCK_START_TIME in entity


def get_anchor(entity: EntityData) -> int | None:
    """Return the instant the entity (or its series) starts at."""
    if is_time_block(entity):
        return entity[const.DATA_BLOCK_START_TIME]  # type: ignore[typeddict-item]
    return entity.get(const.DATA_TASK_SCHEDULED_TIME)


def get_duration_ms(entity: EntityData) -> int:
    """Return how long one occurrence lasts, in ms."""
    if is_time_block(entity):
        return int(
            entity[const.DATA_BLOCK_END_TIME]  # type: ignore[typeddict-item]
            - entity[const.DATA_BLOCK_START_TIME]  # type: ignore[typeddict-item]
        )
    minutes = entity.get(const.DATA_TASK_TIME_ESTIMATE_MINUTES) or 0
    return int(minutes) * const.MS_PER_MINUTE


def get_pattern(entity: EntityData) -> RecurrencePattern | None:
    """Return the parsed recurrence pattern, or None for one-off entities.

    Raises:
        InvalidPatternError: If the stored pattern is malformed
    """
    if not entity.get(const.DATA_ENTITY_IS_RECURRING):
        return None
    raw = entity.get(const.DATA_ENTITY_RECURRENCE_PATTERN)
    if raw is None:
        return None
    return RecurrencePattern.from_dict(raw)


def with_anchor(entity: EntityData, start: int) -> dict[str, Any]:
    """Return a deep copy re-anchored at `start`.

    Time blocks keep their duration; tasks only move their scheduled time.
    """
    moved = copy.deepcopy(dict(entity))
    if is_time_block(entity):
        moved[const.DATA_BLOCK_END_TIME] = start + get_duration_ms(entity)
        moved[const.DATA_BLOCK_START_TIME] = start
    else:
        moved[const.DATA_TASK_SCHEDULED_TIME] = start
    return moved


def with_pattern(
    entity: EntityData, pattern: RecurrencePattern | None
) -> dict[str, Any]:
    """Return a deep copy carrying `pattern` (None makes it a one-off)."""
    updated = copy.deepcopy(dict(entity))
    updated[const.DATA_ENTITY_IS_RECURRING] = pattern is not None
    updated[const.DATA_ENTITY_RECURRENCE_PATTERN] = (
        pattern.to_dict() if pattern is not None else None
    )
    return updated


# ==============================================================================
# OPTIONS
# ==============================================================================


def _valid_time_zone(value: Any) -> str:
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as err:
        raise vol.Invalid(f"unknown time zone {name!r}") from err
    return name


OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Optional(
            const.CONF_TIME_ZONE, default=const.DEFAULT_TIME_ZONE_NAME
        ): _valid_time_zone,
        vol.Optional(
            const.CONF_MAX_ITERATIONS, default=const.DEFAULT_MAX_ITERATIONS
        ): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional(const.CONF_HABIT_TAG, default=None): vol.Any(None, str),
    }
)


def validate_options(options: dict[str, Any] | None) -> ScheduleOptions:
    """Validate manager options and fill defaults.

    Raises:
        vol.Invalid: If an option is malformed or unknown
    """
    return cast("ScheduleOptions", OPTIONS_SCHEMA(dict(options or {})))
