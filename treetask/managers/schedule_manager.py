"""Schedule Manager - store-facing orchestration of tasks and time blocks.

This manager handles every operation that reads or writes the store:
- Creating tasks and time blocks
- Editing and deleting recurring series ("this", "future", "all")
- Per-occurrence completion and one-off task status toggles
- Resolving what is shown on a calendar day (including spillover)
- Currently active time blocks and habit completion rates

ARCHITECTURE:
- ScheduleManager = STATEFUL, owns the injected SchedulingStore
- RecurrenceEngine / SeriesSplitter / InstanceCompletionTracker /
  HabitStatisticsEngine = pure logic (STATELESS)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .. import const, data_builders as db
from ..engines.completion_engine import InstanceCompletionTracker
from ..engines.recurrence_engine import RecurrenceEngine
from ..engines.series_engine import SeriesSplitter, SplitResult
from ..engines.statistics_engine import HabitStatisticsEngine
from ..exceptions import InvalidInstanceError, InvalidPatternError
from ..type_defs import ResolvedBlock
from ..utils.dt_utils import (
    add_days,
    date_to_day_key,
    day_start,
    dt_now_ms,
    get_default_timezone,
    ms_to_date,
    set_default_timezone,
)

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from ..patterns import RecurrencePattern
    from ..store import SchedulingStore
    from ..type_defs import (
        EntityData,
        HabitReportBlock,
        ScheduleOptions,
        TaskData,
        TimeBlockData,
    )


class ScheduleManager:
    """Manager for scheduling workflows.

    Responsibilities:
    - Build and store entities through data_builders
    - Turn series edits into SplitResults and apply them atomically
    - Answer day and "now" queries over the stored entities

    NOT responsible for:
    - Occurrence math (RecurrenceEngine)
    - Persistence format (SchedulingStore and its persist callback)
    """

    def __init__(
        self, store: SchedulingStore, options: dict[str, Any] | None = None
    ) -> None:
        """Initialize the manager.

        The `time_zone` option becomes the process-wide default used by
        dt_utils and every engine, so the most recently constructed manager
        decides the local calendar for all managers in the process.

        Args:
            store: Store holding tasks and time blocks
            options: Raw options, validated with data_builders.OPTIONS_SCHEMA

        Raises:
            vol.Invalid: If the options are malformed
        """
        self._options: ScheduleOptions = db.validate_options(options)
        set_default_timezone(self._options[const.CONF_TIME_ZONE])  # type: ignore[literal-required]
        self.store = store

    @property
    def options(self) -> ScheduleOptions:
        """Validated options."""
        return self._options

    @property
    def time_zone(self) -> ZoneInfo:
        """Local time zone currently in effect for day-keys."""
        return get_default_timezone()

    @property
    def _max_iterations(self) -> int:
        return self._options[const.CONF_MAX_ITERATIONS]  # type: ignore[literal-required]

    # =========================================================================
    # Create
    # =========================================================================

    def create_task(self, user_input: dict[str, Any]) -> TaskData:
        """Build, validate and store a new task."""
        task = db.build_task(user_input)
        self.store.add(task)
        const.LOGGER.info(
            "Task created: '%s' (recurring=%s)",
            task[const.DATA_ENTITY_TITLE],
            task[const.DATA_ENTITY_IS_RECURRING],
        )
        return task

    def create_time_block(self, user_input: dict[str, Any]) -> TimeBlockData:
        """Build, validate and store a new time block."""
        block = db.build_time_block(user_input)
        self.store.add(block)
        const.LOGGER.info(
            "Time block created: '%s' (recurring=%s)",
            block[const.DATA_ENTITY_TITLE],
            block[const.DATA_ENTITY_IS_RECURRING],
        )
        return block

    # =========================================================================
    # Series edits
    # =========================================================================

    def update_recurring(
        self,
        entity_id: str,
        split_day: int,
        mode: str,
        updates: dict[str, Any] | None = None,
        new_start: int | None = None,
    ) -> SplitResult:
        """Edit one occurrence, the rest of the series, or all of it.

        Raises:
            KeyError: If the entity does not exist
            InvalidPatternError: If the entity is not recurring
            InvalidInstanceError: If split_day is not an occurrence
        """
        entity = self.store.get(entity_id)
        result = SeriesSplitter.split(
            entity,
            split_day,
            mode,
            action=const.SPLIT_ACTION_EDIT,
            updates=updates,
            new_start=new_start,
        )
        result = self._normalize_result(result)
        self.store.apply_split(result)
        const.LOGGER.info(
            "Series '%s' edited (mode=%s, day=%s)",
            entity.get(const.DATA_ENTITY_TITLE, entity_id),
            mode,
            day_start(split_day),
        )
        return result

    def delete_recurring(
        self, entity_id: str, split_day: int, mode: str
    ) -> SplitResult:
        """Delete one occurrence, the rest of the series, or all of it.

        Raises:
            KeyError: If the entity does not exist
            InvalidInstanceError: If split_day is not an occurrence
        """
        entity = self.store.get(entity_id)
        result = SeriesSplitter.split(
            entity, split_day, mode, action=const.SPLIT_ACTION_DELETE
        )
        self.store.apply_split(result)
        const.LOGGER.info(
            "Series '%s' deleted (mode=%s, day=%s)",
            entity.get(const.DATA_ENTITY_TITLE, entity_id),
            mode,
            day_start(split_day),
        )
        return result

    def _normalize_result(self, result: SplitResult) -> SplitResult:
        """Re-run the builders so edited entities obey the same rules as new ones."""

        def rebuild(entity: dict[str, Any] | None) -> dict[str, Any] | None:
            if entity is None:
                return None
            if db.is_time_block(entity):
                return dict(db.build_time_block({}, existing=entity))  # type: ignore[arg-type]
            return dict(db.build_task({}, existing=entity))  # type: ignore[arg-type]

        return SplitResult(
            mode=result.mode,
            head=rebuild(result.head),
            body=rebuild(result.body),
            tail=rebuild(result.tail),
            removed_ids=list(result.removed_ids),
        )

    # =========================================================================
    # Completion
    # =========================================================================

    def toggle_instance(self, entity_id: str, instance_day: int) -> bool:
        """Flip the completion of one occurrence.

        Returns:
            True if the occurrence is now complete.

        Raises:
            KeyError: If the entity does not exist
            InvalidPatternError: If the entity is not recurring
        """
        entity = self.store.get(entity_id)
        pattern = self._require_pattern(entity)
        toggled = InstanceCompletionTracker.toggle(pattern, instance_day)
        self.store.update(db.with_pattern(entity, toggled))

        completed = InstanceCompletionTracker.is_complete(toggled, instance_day)
        const.LOGGER.info(
            "Instance %s of '%s' marked %s",
            day_start(instance_day),
            entity.get(const.DATA_ENTITY_TITLE, entity_id),
            "complete" if completed else "incomplete",
        )
        return completed

    def toggle_task_status(
        self, task_id: str, instance_day: int | None = None, now: int | None = None
    ) -> dict[str, Any]:
        """Toggle a task between done and not done.

        One-off tasks flip their own status. Recurring tasks flip the
        occurrence on `instance_day`, defaulting to the current occurrence.

        Raises:
            KeyError: If the task does not exist
            InvalidInstanceError: If a recurring task has no current occurrence
        """
        task = self.store.get(task_id)

        if task.get(const.DATA_ENTITY_IS_RECURRING):
            day = instance_day
            if day is None:
                day = self.current_instance(task_id, now)
            if day is None:
                raise InvalidInstanceError(task_id, day_start(now or dt_now_ms()))
            self.toggle_instance(task_id, day)
            return self.store.get(task_id)

        updated = dict(task)
        if task.get(const.DATA_TASK_STATUS) == const.TASK_STATUS_COMPLETED:
            updated[const.DATA_TASK_STATUS] = const.TASK_STATUS_NOT_STARTED
            updated[const.DATA_TASK_COMPLETED_AT] = None
        else:
            updated[const.DATA_TASK_STATUS] = const.TASK_STATUS_COMPLETED
            updated[const.DATA_TASK_COMPLETED_AT] = now if now is not None else dt_now_ms()
        self.store.update(updated)
        const.LOGGER.info(
            "Task '%s' status set to %s",
            task.get(const.DATA_ENTITY_TITLE, task_id),
            updated[const.DATA_TASK_STATUS],
        )
        return self.store.get(task_id)

    def current_instance(self, entity_id: str, now: int | None = None) -> int | None:
        """Return the latest occurrence day-key on or before now."""
        entity = self.store.get(entity_id)
        engine = self._engine(entity)
        if engine is None:
            return None
        return engine.current_instance_on_or_before(now if now is not None else dt_now_ms())

    # =========================================================================
    # Day queries
    # =========================================================================

    def tasks_for_day(
        self, day: int, view_type: str = const.VIEW_DAY
    ) -> list[dict[str, Any]]:
        """Return the tasks shown on a day, each placed at its instance start.

        Recurring tasks appear on days they occur and on later days their
        duration spills into. Habits only show in day and 3-day views.
        """
        if view_type not in const.VIEW_TYPES:
            raise ValueError(f"Unknown calendar view type: {view_type!r}")

        day_key = day_start(day)
        shown: list[dict[str, Any]] = []
        for task in self.store.tasks():
            if task.get(const.DATA_TASK_SCHEDULED_TIME) is None:
                continue
            if view_type not in const.HABIT_VISIBLE_VIEWS and self._is_habit(task):
                continue
            window = self._window_on(task, day_key)
            if window is not None:
                shown.append(db.with_anchor(task, window[0]))

        shown.sort(key=lambda t: t[const.DATA_TASK_SCHEDULED_TIME])
        return shown

    def resolved_blocks_for_day(self, day: int) -> list[ResolvedBlock]:
        """Return the time blocks shown on a day with their concrete windows."""
        day_key = day_start(day)
        resolved: list[ResolvedBlock] = []
        for block in self.store.time_blocks():
            window = self._window_on(block, day_key)
            if window is None:
                continue
            resolved.append(
                ResolvedBlock(
                    id=block[const.DATA_ENTITY_ID],
                    start=window[0],
                    end=window[1],
                    is_recurring=bool(block.get(const.DATA_ENTITY_IS_RECURRING)),
                    data=block,  # type: ignore[typeddict-item]
                )
            )
        resolved.sort(key=lambda b: b["start"])
        return resolved

    def active_time_blocks(self, now: int | None = None) -> list[dict[str, Any]]:
        """Return the time blocks whose window contains `now`."""
        now = now if now is not None else dt_now_ms()
        active: list[dict[str, Any]] = []
        for block in self.store.time_blocks():
            duration = db.get_duration_ms(block)
            engine = self._engine(block)
            if engine is not None:
                if engine.is_active_at(now, duration):
                    active.append(block)
                continue
            start = block[const.DATA_BLOCK_START_TIME]
            if start <= now <= start + duration:
                active.append(block)
        return active

    # =========================================================================
    # Habits
    # =========================================================================

    def habit_rates(self, task_id: str, now: int | None = None) -> dict[str, int]:
        """Return trailing completion percentages for a recurring task."""
        task = self.store.get(task_id)
        pattern = self._require_pattern(task)
        return HabitStatisticsEngine.rolling_rates(
            pattern,
            db.get_anchor(task),  # type: ignore[arg-type]
            now if now is not None else dt_now_ms(),
            max_iterations=self._max_iterations,
        )

    def habit_report(
        self, task_id: str, now: int | None = None
    ) -> list[HabitReportBlock]:
        """Return the per-period completion report for a recurring task."""
        task = self.store.get(task_id)
        pattern = self._require_pattern(task)
        return HabitStatisticsEngine.report(
            pattern,
            db.get_anchor(task),  # type: ignore[arg-type]
            now if now is not None else dt_now_ms(),
            max_iterations=self._max_iterations,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _engine(self, entity: EntityData) -> RecurrenceEngine | None:
        pattern = db.get_pattern(entity)
        anchor = db.get_anchor(entity)
        if pattern is None or anchor is None:
            return None
        return RecurrenceEngine(pattern, anchor, max_iterations=self._max_iterations)

    def _window_on(self, entity: EntityData, day_key: int) -> tuple[int, int] | None:
        """Concrete (start, end) of an entity on a day, or None if absent."""
        duration = db.get_duration_ms(entity)
        engine = self._engine(entity)
        if engine is not None:
            return engine.instance_window(day_key, duration)

        start = db.get_anchor(entity)
        if start is None:
            return None
        # Zero-length items still occupy the instant they start at
        end = start + max(duration, 1)
        next_day_key = date_to_day_key(add_days(ms_to_date(day_key), 1))
        if start < next_day_key and end > day_key:
            return start, start + duration
        return None

    def _is_habit(self, task: EntityData) -> bool:
        if task.get(const.DATA_ENTITY_TASK_TYPE) in const.HABIT_TASK_TYPES:
            return True
        habit_tag = self._options.get(const.CONF_HABIT_TAG)  # type: ignore[misc]
        return bool(habit_tag) and habit_tag in task.get(const.DATA_ENTITY_TAGS, [])

    @staticmethod
    def _require_pattern(entity: EntityData) -> RecurrencePattern:
        pattern = db.get_pattern(entity)
        if pattern is None:
            raise InvalidPatternError(
                const.DATA_ENTITY_RECURRENCE_PATTERN,
                f"entity {entity.get(const.DATA_ENTITY_ID)} is not recurring",
            )
        return pattern
