"""Tests for ScheduleManager - store-facing scheduling workflows.

Test Categories:
- Options validation and creation
- Recurring edits and deletes through the store
- Completion toggles (recurring instances and one-off tasks)
- Day queries (spillover, habit filtering, resolved blocks)
- Active time blocks and habit statistics
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from freezegun import freeze_time
import pytest
import voluptuous as vol

from tests.helpers import TEST_TIME_ZONE, at, day_key, pattern_dict
from treetask import const
from treetask.data_builders import get_pattern
from treetask.exceptions import (
    EntityValidationError,
    InvalidInstanceError,
    InvalidPatternError,
)
from treetask.managers import ScheduleManager
from treetask.store import SchedulingStore
from treetask.utils.dt_utils import get_default_timezone

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def manager(store: SchedulingStore) -> ScheduleManager:
    """Manager over an empty store in the test time zone."""
    return ScheduleManager(
        store, {const.CONF_TIME_ZONE: TEST_TIME_ZONE, const.CONF_HABIT_TAG: "habit"}
    )


def recurring_task(
    manager: ScheduleManager,
    pattern: dict[str, Any],
    anchor: int,
    **fields: Any,
) -> dict[str, Any]:
    """Create and store a recurring task."""
    user_input: dict[str, Any] = {
        const.DATA_ENTITY_TITLE: "Meditate",
        const.DATA_TASK_SCHEDULED_TIME: anchor,
        const.DATA_TASK_TIME_ESTIMATE_MINUTES: 20,
        const.DATA_ENTITY_IS_RECURRING: True,
        const.DATA_ENTITY_RECURRENCE_PATTERN: pattern,
    }
    user_input.update(fields)
    return dict(manager.create_task(user_input))


# =============================================================================
# Setup and creation
# =============================================================================


class TestSetup:
    """Options and entity creation."""

    def test_invalid_options(self, store: SchedulingStore) -> None:
        """Bad options are rejected up front."""
        with pytest.raises(vol.Invalid):
            ScheduleManager(store, {const.CONF_MAX_ITERATIONS: -1})

    def test_options_defaults(self, manager: ScheduleManager) -> None:
        """Unspecified options get defaults."""
        assert manager.options[const.CONF_MAX_ITERATIONS] == const.DEFAULT_MAX_ITERATIONS  # type: ignore[literal-required]

    def test_create_stores_entities(self, manager: ScheduleManager) -> None:
        """Created tasks and blocks are stored."""
        task = manager.create_task({const.DATA_ENTITY_TITLE: "Pay rent"})
        block = manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Lunch",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 1, 12),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 1, 13),
            }
        )
        assert manager.store.get(task[const.DATA_ENTITY_ID]) == task
        assert manager.store.get(block[const.DATA_ENTITY_ID]) == block

    def test_time_zone_is_process_wide(self, manager: ScheduleManager) -> None:
        """The latest manager's time zone applies to every manager."""
        assert str(manager.time_zone) == TEST_TIME_ZONE
        other = ScheduleManager(SchedulingStore(), {const.CONF_TIME_ZONE: "UTC"})
        assert str(other.time_zone) == "UTC"
        assert str(manager.time_zone) == "UTC"
        assert str(get_default_timezone()) == "UTC"


# =============================================================================
# Series edits
# =============================================================================


class TestSeriesEdits:
    """update_recurring and delete_recurring."""

    def test_edit_this_stores_head_and_body(self, manager: ScheduleManager) -> None:
        """The series skips the day and a standalone task is added."""
        task = recurring_task(
            manager,
            pattern_dict(
                const.FREQUENCY_DAILY,
                endCondition=const.END_CONDITION_AFTER_OCCURRENCES,
                endCount=5,
            ),
            at(2024, 1, 1, 9),
        )
        result = manager.update_recurring(
            task[const.DATA_ENTITY_ID],
            day_key(2024, 1, 3),
            const.UPDATE_MODE_THIS,
            {const.DATA_ENTITY_TITLE: "Long meditation"},
        )

        assert result.body is not None
        stored_body = manager.store.get(result.body[const.DATA_ENTITY_ID])
        assert stored_body[const.DATA_ENTITY_TITLE] == "Long meditation"
        assert stored_body[const.DATA_ENTITY_IS_RECURRING] is False

        head_pattern = get_pattern(manager.store.get(task[const.DATA_ENTITY_ID]))
        assert head_pattern is not None
        assert day_key(2024, 1, 3) in head_pattern.exclude_dates
        assert len(manager.store.tasks()) == 2

    def test_edit_future_stores_tail(self, manager: ScheduleManager) -> None:
        """Head and tail are both stored."""
        task = recurring_task(
            manager,
            pattern_dict(
                const.FREQUENCY_DAILY,
                endCondition=const.END_CONDITION_AFTER_OCCURRENCES,
                endCount=5,
            ),
            at(2024, 1, 1, 9),
        )
        result = manager.update_recurring(
            task[const.DATA_ENTITY_ID], day_key(2024, 1, 3), const.UPDATE_MODE_FUTURE
        )
        assert result.tail is not None
        tail_pattern = get_pattern(manager.store.get(result.tail[const.DATA_ENTITY_ID]))
        assert tail_pattern is not None
        assert tail_pattern.end_count == 3

    def test_edit_future_validates_tail(self, manager: ScheduleManager) -> None:
        """Updates go through the builders; bad values leave the store untouched."""
        task = recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 9)
        )
        with pytest.raises(EntityValidationError, match="unknown priority"):
            manager.update_recurring(
                task[const.DATA_ENTITY_ID],
                day_key(2024, 1, 3),
                const.UPDATE_MODE_FUTURE,
                {const.DATA_TASK_PRIORITY: "Whenever"},
            )
        assert manager.store.tasks() == [task]

    def test_delete_all(self, manager: ScheduleManager) -> None:
        """Deleting the whole series removes it."""
        task = recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 9)
        )
        manager.delete_recurring(
            task[const.DATA_ENTITY_ID], day_key(2024, 1, 2), const.UPDATE_MODE_ALL
        )
        assert manager.store.tasks() == []

    def test_unknown_entity(self, manager: ScheduleManager) -> None:
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            manager.update_recurring("missing", day_key(2024, 1, 2), const.UPDATE_MODE_ALL)

    def test_non_occurrence(self, manager: ScheduleManager) -> None:
        """Splitting on a day without an occurrence fails."""
        task = recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_WEEKLY, daysOfWeek=["Mon"]),
            at(2024, 1, 1, 9),
        )
        with pytest.raises(InvalidInstanceError):
            manager.delete_recurring(
                task[const.DATA_ENTITY_ID], day_key(2024, 1, 2), const.UPDATE_MODE_THIS
            )


# =============================================================================
# Completion
# =============================================================================


class TestCompletion:
    """toggle_instance and toggle_task_status."""

    def test_toggle_instance(self, manager: ScheduleManager) -> None:
        """Toggling flips and persists the occurrence's state."""
        task = recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 9)
        )
        task_id = task[const.DATA_ENTITY_ID]
        assert manager.toggle_instance(task_id, day_key(2024, 1, 4)) is True
        assert manager.toggle_instance(task_id, at(2024, 1, 4, 15)) is False

    def test_toggle_instance_requires_series(self, manager: ScheduleManager) -> None:
        """One-off tasks have no instances."""
        task = manager.create_task({const.DATA_ENTITY_TITLE: "Once"})
        with pytest.raises(InvalidPatternError):
            manager.toggle_instance(task[const.DATA_ENTITY_ID], day_key(2024, 1, 1))

    @freeze_time("2024-01-10 11:00:00", tz_offset=0)
    def test_recurring_status_toggles_current_instance(
        self, manager: ScheduleManager
    ) -> None:
        """Without a day, the latest occurrence up to now is toggled."""
        task = recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_WEEKLY, daysOfWeek=["Mon"]),
            at(2024, 1, 1, 9),
        )
        updated = manager.toggle_task_status(task[const.DATA_ENTITY_ID])
        pattern = get_pattern(updated)
        assert pattern is not None
        assert pattern.completed_instances == frozenset({day_key(2024, 1, 8)})
        assert updated[const.DATA_TASK_STATUS] == const.TASK_STATUS_NOT_STARTED

    def test_recurring_status_before_first_occurrence(
        self, manager: ScheduleManager
    ) -> None:
        """A series that has not started has no current instance."""
        task = recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 6, 1, 9)
        )
        with pytest.raises(InvalidInstanceError):
            manager.toggle_task_status(task[const.DATA_ENTITY_ID], now=at(2024, 5, 1))

    def test_one_off_status(self, manager: ScheduleManager) -> None:
        """One-off tasks flip between Completed and Not Started."""
        task = manager.create_task({const.DATA_ENTITY_TITLE: "Once"})
        done = manager.toggle_task_status(task[const.DATA_ENTITY_ID], now=at(2024, 1, 2, 8))
        assert done[const.DATA_TASK_STATUS] == const.TASK_STATUS_COMPLETED
        assert done[const.DATA_TASK_COMPLETED_AT] == at(2024, 1, 2, 8)

        undone = manager.toggle_task_status(task[const.DATA_ENTITY_ID])
        assert undone[const.DATA_TASK_STATUS] == const.TASK_STATUS_NOT_STARTED
        assert undone[const.DATA_TASK_COMPLETED_AT] is None

    def test_current_instance(self, manager: ScheduleManager) -> None:
        """The current instance respects exclusions."""
        task = recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_DAILY, excludeDates=[day_key(2024, 1, 5)]),
            at(2024, 1, 1, 9),
        )
        assert manager.current_instance(
            task[const.DATA_ENTITY_ID], at(2024, 1, 5, 10)
        ) == day_key(2024, 1, 4)


# =============================================================================
# Day queries
# =============================================================================


class TestDayQueries:
    """tasks_for_day and resolved_blocks_for_day."""

    def test_recurring_task_placed_on_day(self, manager: ScheduleManager) -> None:
        """Returned copies carry the instance start."""
        recurring_task(manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 9))
        shown = manager.tasks_for_day(day_key(2024, 1, 20))
        assert [t[const.DATA_TASK_SCHEDULED_TIME] for t in shown] == [at(2024, 1, 20, 9)]

    def test_spillover_from_previous_day(self, manager: ScheduleManager) -> None:
        """A late occurrence shows on the next day at its original start."""
        recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_WEEKLY, daysOfWeek=["Mon"]),
            at(2024, 1, 1, 23),
            time_estimate_minutes=120,
        )
        shown = manager.tasks_for_day(day_key(2024, 1, 9))
        assert [t[const.DATA_TASK_SCHEDULED_TIME] for t in shown] == [at(2024, 1, 8, 23)]
        assert manager.tasks_for_day(day_key(2024, 1, 10)) == []

    def test_one_off_overlap(self, manager: ScheduleManager) -> None:
        """One-off tasks show on every day they overlap."""
        manager.create_task(
            {
                const.DATA_ENTITY_TITLE: "Night shift",
                const.DATA_TASK_SCHEDULED_TIME: at(2024, 1, 1, 23, 30),
                const.DATA_TASK_TIME_ESTIMATE_MINUTES: 60,
            }
        )
        manager.create_task({const.DATA_ENTITY_TITLE: "Someday"})
        assert len(manager.tasks_for_day(day_key(2024, 1, 1))) == 1
        assert len(manager.tasks_for_day(day_key(2024, 1, 2))) == 1
        assert manager.tasks_for_day(day_key(2024, 1, 3)) == []

    def test_sorted_by_start(self, manager: ScheduleManager) -> None:
        """Results are ordered by start."""
        recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 18), title="Late"
        )
        recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 6), title="Early"
        )
        shown = manager.tasks_for_day(day_key(2024, 2, 1))
        assert [t[const.DATA_ENTITY_TITLE] for t in shown] == ["Early", "Late"]

    @pytest.mark.parametrize(
        ("view_type", "visible"),
        [
            (const.VIEW_DAY, True),
            (const.VIEW_3DAYS, True),
            (const.VIEW_WEEK, False),
            (const.VIEW_MONTH, False),
        ],
    )
    def test_habits_only_in_short_views(
        self, manager: ScheduleManager, view_type: str, visible: bool
    ) -> None:
        """Habits by type or by tag are hidden in longer views."""
        recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_DAILY),
            at(2024, 1, 1, 7),
            task_type=const.TASK_TYPE_HABIT,
        )
        recurring_task(
            manager,
            pattern_dict(const.FREQUENCY_DAILY),
            at(2024, 1, 1, 8),
            tags=["habit"],
        )
        recurring_task(
            manager, pattern_dict(const.FREQUENCY_DAILY), at(2024, 1, 1, 9), title="Work"
        )
        shown = manager.tasks_for_day(day_key(2024, 1, 3), view_type)
        assert len(shown) == (3 if visible else 1)

    def test_unknown_view(self, manager: ScheduleManager) -> None:
        """Unknown view types are rejected."""
        with pytest.raises(ValueError, match="Unknown calendar view type"):
            manager.tasks_for_day(day_key(2024, 1, 1), "year")

    def test_resolved_blocks(self, manager: ScheduleManager) -> None:
        """Blocks resolve to concrete windows, spillover included."""
        block = manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Night",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 5, 22),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 6, 6),
                const.DATA_ENTITY_IS_RECURRING: True,
                const.DATA_ENTITY_RECURRENCE_PATTERN: pattern_dict(
                    const.FREQUENCY_WEEKLY, daysOfWeek=["Fri"]
                ),
            }
        )
        resolved = manager.resolved_blocks_for_day(day_key(2024, 1, 6))
        assert len(resolved) == 1
        assert resolved[0]["id"] == block[const.DATA_ENTITY_ID]
        assert resolved[0]["start"] == at(2024, 1, 5, 22)
        assert resolved[0]["end"] == at(2024, 1, 6, 6)
        assert resolved[0]["is_recurring"] is True
        assert manager.resolved_blocks_for_day(day_key(2024, 1, 7)) == []

    def test_resolved_block_data_is_detached(self) -> None:
        """Editing a resolved block's data leaves the stored block alone."""
        persist = MagicMock()
        manager = ScheduleManager(
            SchedulingStore(persist=persist), {const.CONF_TIME_ZONE: TEST_TIME_ZONE}
        )
        block = manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Focus",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 1, 9),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 1, 11),
                const.DATA_ENTITY_IS_RECURRING: True,
                const.DATA_ENTITY_RECURRENCE_PATTERN: pattern_dict(const.FREQUENCY_DAILY),
            }
        )
        writes = persist.call_count

        resolved = manager.resolved_blocks_for_day(day_key(2024, 1, 3))
        resolved[0]["data"][const.DATA_ENTITY_TITLE] = "Scrolling"
        resolved_pattern = resolved[0]["data"][const.DATA_ENTITY_RECURRENCE_PATTERN]
        resolved_pattern[const.DATA_PATTERN_INTERVAL] = 9

        stored = manager.store.get(block[const.DATA_ENTITY_ID])
        assert stored[const.DATA_ENTITY_TITLE] == "Focus"
        stored_pattern = stored[const.DATA_ENTITY_RECURRENCE_PATTERN]
        assert stored_pattern[const.DATA_PATTERN_INTERVAL] == 1
        assert persist.call_count == writes


# =============================================================================
# Active blocks and habits
# =============================================================================


class TestActiveAndHabits:
    """active_time_blocks, habit_rates and habit_report."""

    def test_active_blocks(self, manager: ScheduleManager) -> None:
        """Recurring and one-off blocks containing now are active."""
        recurring = manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Night",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 1, 22),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 2, 1),
                const.DATA_ENTITY_IS_RECURRING: True,
                const.DATA_ENTITY_RECURRENCE_PATTERN: pattern_dict(const.FREQUENCY_DAILY),
            }
        )
        manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Dentist",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 5, 10),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 5, 11),
            }
        )

        active = manager.active_time_blocks(at(2024, 1, 5, 0, 30))
        assert [b[const.DATA_ENTITY_ID] for b in active] == [recurring[const.DATA_ENTITY_ID]]
        assert [
            b[const.DATA_ENTITY_TITLE] for b in manager.active_time_blocks(at(2024, 1, 5, 10, 30))
        ] == ["Dentist"]
        assert manager.active_time_blocks(at(2024, 1, 5, 2)) == []

    def test_active_blocks_are_copies(self, manager: ScheduleManager) -> None:
        """Mutating an active block does not reach the store."""
        block = manager.create_time_block(
            {
                const.DATA_ENTITY_TITLE: "Dentist",
                const.DATA_BLOCK_START_TIME: at(2024, 1, 5, 10),
                const.DATA_BLOCK_END_TIME: at(2024, 1, 5, 11),
            }
        )
        active = manager.active_time_blocks(at(2024, 1, 5, 10, 30))
        active[0][const.DATA_BLOCK_END_TIME] = at(2024, 1, 5, 18)
        assert manager.store.get(block[const.DATA_ENTITY_ID])[
            const.DATA_BLOCK_END_TIME
        ] == at(2024, 1, 5, 11)
        assert manager.active_time_blocks(at(2024, 1, 5, 12)) == []

    def test_habit_rates_and_report(self, manager: ScheduleManager) -> None:
        """Statistics use the stored completions."""
        task = recurring_task(
            manager,
            pattern_dict(
                const.FREQUENCY_DAILY,
                completedInstances=[day_key(2024, 1, d) for d in range(4, 11)],
            ),
            at(2024, 1, 1, 9),
        )
        rates = manager.habit_rates(task[const.DATA_ENTITY_ID], at(2024, 1, 10, 20))
        assert rates["last7d"] == 100
        report = manager.habit_report(task[const.DATA_ENTITY_ID], at(2024, 1, 10, 20))
        assert report[-1]["period"] == const.HABIT_REPORT_ALL
        assert report[-1]["completed"] == 7

    def test_habit_stats_need_series(self, manager: ScheduleManager) -> None:
        """One-off tasks have no rates."""
        task = manager.create_task({const.DATA_ENTITY_TITLE: "Once"})
        with pytest.raises(InvalidPatternError):
            manager.habit_rates(task[const.DATA_ENTITY_ID])
