"""Series Engine - split recurring entities when one occurrence is edited.

Edits and deletions of a recurring task or time block come in three modes:

- this:   only the chosen occurrence; the series skips that day and, for
          edits, a standalone copy (the body) takes its place
- future: the chosen occurrence and everything after it; the series (head)
          ends the day before and, for edits, a new series (tail) continues
          from the chosen day
- all:    the whole series is updated in place or removed

Every operation is pure: the input entity is never mutated, and the result
describes what the store must write. For unchanged timing, the head and tail
together occur on exactly the same days as the original (the chosen day
aside for "this").

IMPORTANT: This module must NOT import from managers or the store.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any
import uuid

from .. import const
from ..data_builders import (
    get_anchor,
    get_pattern,
    is_time_block,
    with_anchor,
    with_pattern,
)
from ..exceptions import EntityValidationError, InvalidInstanceError, InvalidPatternError
from ..patterns import RecurrencePattern
from ..type_defs import EntityData
from ..utils.dt_utils import add_days, date_to_day_key, day_start, dt_now_ms, ms_to_date
from .completion_engine import InstanceCompletionTracker
from .recurrence_engine import RecurrenceEngine


@dataclass(frozen=True)
class SplitResult:
    """Entities produced by a split.

    Attributes:
        mode: One of const.UPDATE_MODES
        head: The original entity, modified (None if it must be removed)
        body: Standalone replacement for a single edited occurrence
        tail: New series continuing from the split day
        removed_ids: Ids the store must delete
    """

    mode: str
    head: dict[str, Any] | None
    body: dict[str, Any] | None = None
    tail: dict[str, Any] | None = None
    removed_ids: list[str] = field(default_factory=list)


class SeriesSplitter:
    """Pure logic engine for series splits.

    All methods are static - no instance state.
    """

    # =========================================================================
    # Edit
    # =========================================================================

    @staticmethod
    def edit_this(
        entity: EntityData,
        split_day: int,
        updates: dict[str, Any] | None = None,
        new_start: int | None = None,
    ) -> SplitResult:
        """Detach one occurrence into a standalone entity.

        The series skips `split_day`. The body is a new non-recurring entity
        at `new_start` (default: the occurrence's own start) with `updates`
        applied. A task body is Completed if the occurrence was checked off.

        Raises:
            InvalidPatternError: If the entity is not recurring
            InvalidInstanceError: If split_day is not an occurrence
        """
        pattern, engine = SeriesSplitter._require_series(entity)
        day_key = SeriesSplitter._require_occurrence(entity, engine, split_day)
        was_completed = InstanceCompletionTracker.is_complete(pattern, day_key)

        head_pattern = InstanceCompletionTracker.mark_incomplete(
            pattern.with_excluded(day_key), day_key
        )
        head = with_pattern(entity, head_pattern)

        start = new_start if new_start is not None else engine.instance_start(day_key)
        body = SeriesSplitter._new_entity_from(with_pattern(with_anchor(entity, start), None))
        if not is_time_block(entity):
            body[const.DATA_TASK_STATUS] = (
                const.TASK_STATUS_COMPLETED
                if was_completed
                else const.TASK_STATUS_NOT_STARTED
            )
        body = SeriesSplitter._apply_updates(body, updates, allow_recurrence=False)

        const.LOGGER.debug(
            "SeriesSplitter: Detached %s from series %s as %s",
            day_key,
            entity[const.DATA_ENTITY_ID],
            body[const.DATA_ENTITY_ID],
        )
        return SplitResult(mode=const.UPDATE_MODE_THIS, head=head, body=body)

    @staticmethod
    def edit_future(
        entity: EntityData,
        split_day: int,
        updates: dict[str, Any] | None = None,
        new_start: int | None = None,
    ) -> SplitResult:
        """End the series before `split_day` and continue it as a new one.

        The head keeps every occurrence before the split day, expressed as
        "Until" the previous day. The tail starts at `new_start` (default:
        the split occurrence's own start) and keeps the remaining count of
        an "After X occurrences" series. Exclusions and completions on or
        after the split day move to the tail.

        Raises:
            InvalidPatternError: If the entity is not recurring
            InvalidInstanceError: If split_day is not an occurrence
        """
        pattern, engine = SeriesSplitter._require_series(entity)
        day_key = SeriesSplitter._require_occurrence(entity, engine, split_day)
        head, removed_ids = SeriesSplitter._truncate(entity, pattern, engine, day_key)

        tail_pattern = pattern.evolve(
            exclude_dates=_on_or_after(pattern.exclude_dates, day_key),
            completed_instances=_on_or_after(pattern.completed_instances, day_key),
        )
        if pattern.end_condition == const.END_CONDITION_AFTER_OCCURRENCES:
            consumed = engine.occurrence_index(day_key) - 1
            tail_pattern = tail_pattern.ending_after(
                pattern.end_count - consumed  # type: ignore[operator]
            )

        start = new_start if new_start is not None else engine.instance_start(day_key)
        tail = SeriesSplitter._new_entity_from(
            with_pattern(with_anchor(entity, start), tail_pattern)
        )
        tail = SeriesSplitter._apply_updates(tail, updates, allow_recurrence=True)

        const.LOGGER.debug(
            "SeriesSplitter: Split series %s at %s, tail %s",
            entity[const.DATA_ENTITY_ID],
            day_key,
            tail[const.DATA_ENTITY_ID],
        )
        return SplitResult(
            mode=const.UPDATE_MODE_FUTURE,
            head=head,
            tail=tail,
            removed_ids=removed_ids,
        )

    @staticmethod
    def edit_all(entity: EntityData, updates: dict[str, Any]) -> SplitResult:
        """Apply `updates` to the whole series in place.

        Raises:
            InvalidPatternError: If the entity is not recurring or the
                updated pattern is malformed
        """
        SeriesSplitter._require_series(entity)
        head = SeriesSplitter._apply_updates(
            copy.deepcopy(dict(entity)), updates, allow_recurrence=True
        )
        return SplitResult(mode=const.UPDATE_MODE_ALL, head=head)

    # =========================================================================
    # Delete
    # =========================================================================

    @staticmethod
    def delete_this(entity: EntityData, split_day: int) -> SplitResult:
        """Skip one occurrence."""
        pattern, engine = SeriesSplitter._require_series(entity)
        day_key = SeriesSplitter._require_occurrence(entity, engine, split_day)
        head_pattern = InstanceCompletionTracker.mark_incomplete(
            pattern.with_excluded(day_key), day_key
        )
        return SplitResult(
            mode=const.UPDATE_MODE_THIS, head=with_pattern(entity, head_pattern)
        )

    @staticmethod
    def delete_future(entity: EntityData, split_day: int) -> SplitResult:
        """End the series the day before `split_day`.

        If nothing would remain, the whole entity is removed.
        """
        pattern, engine = SeriesSplitter._require_series(entity)
        day_key = SeriesSplitter._require_occurrence(entity, engine, split_day)
        head, removed_ids = SeriesSplitter._truncate(entity, pattern, engine, day_key)
        return SplitResult(
            mode=const.UPDATE_MODE_FUTURE, head=head, removed_ids=removed_ids
        )

    @staticmethod
    def delete_all(entity: EntityData) -> SplitResult:
        """Remove the entity and every occurrence."""
        return SplitResult(
            mode=const.UPDATE_MODE_ALL,
            head=None,
            removed_ids=[entity[const.DATA_ENTITY_ID]],
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    @staticmethod
    def split(
        entity: EntityData,
        split_day: int,
        mode: str,
        *,
        action: str = const.SPLIT_ACTION_EDIT,
        updates: dict[str, Any] | None = None,
        new_start: int | None = None,
    ) -> SplitResult:
        """Dispatch an edit or delete by mode.

        Raises:
            ValueError: If mode or action is unknown
        """
        if mode not in const.UPDATE_MODES:
            raise ValueError(f"Unknown update mode: {mode!r}")

        if action == const.SPLIT_ACTION_DELETE:
            if mode == const.UPDATE_MODE_THIS:
                return SeriesSplitter.delete_this(entity, split_day)
            if mode == const.UPDATE_MODE_FUTURE:
                return SeriesSplitter.delete_future(entity, split_day)
            return SeriesSplitter.delete_all(entity)

        if action != const.SPLIT_ACTION_EDIT:
            raise ValueError(f"Unknown split action: {action!r}")

        if mode == const.UPDATE_MODE_THIS:
            return SeriesSplitter.edit_this(entity, split_day, updates, new_start)
        if mode == const.UPDATE_MODE_FUTURE:
            return SeriesSplitter.edit_future(entity, split_day, updates, new_start)
        return SeriesSplitter.edit_all(entity, updates or {})

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _require_series(
        entity: EntityData,
    ) -> tuple[RecurrencePattern, RecurrenceEngine]:
        pattern = get_pattern(entity)
        if pattern is None:
            raise InvalidPatternError(
                const.DATA_ENTITY_RECURRENCE_PATTERN,
                f"entity {entity.get(const.DATA_ENTITY_ID)} is not recurring",
            )
        anchor = get_anchor(entity)
        if anchor is None:
            raise EntityValidationError(
                const.DATA_TASK_SCHEDULED_TIME, "recurring entity has no anchor time"
            )
        return pattern, RecurrenceEngine(pattern, anchor)

    @staticmethod
    def _require_occurrence(
        entity: EntityData, engine: RecurrenceEngine, split_day: int
    ) -> int:
        day_key = day_start(split_day)
        if not engine.occurs_on(day_key):
            raise InvalidInstanceError(entity.get(const.DATA_ENTITY_ID), day_key)
        return day_key

    @staticmethod
    def _truncate(
        entity: EntityData,
        pattern: RecurrencePattern,
        engine: RecurrenceEngine,
        day_key: int,
    ) -> tuple[dict[str, Any] | None, list[str]]:
        """Head ending the day before `day_key`, or removal if it is empty."""
        previous_day = date_to_day_key(add_days(ms_to_date(day_key), -1))
        has_earlier = (
            next(
                engine.enumerate_occurrences(engine.anchor_day_key, previous_day), None
            )
            is not None
        )
        if not has_earlier:
            return None, [entity[const.DATA_ENTITY_ID]]

        head_pattern = pattern.ending_until(previous_day).evolve(
            exclude_dates=_before(pattern.exclude_dates, day_key),
            completed_instances=_before(pattern.completed_instances, day_key),
        )
        return with_pattern(entity, head_pattern), []

    @staticmethod
    def _new_entity_from(entity: dict[str, Any]) -> dict[str, Any]:
        """Give a derived entity its own identity."""
        entity[const.DATA_ENTITY_ID] = str(uuid.uuid4())
        if not is_time_block(entity):
            entity[const.DATA_TASK_CREATED_AT] = dt_now_ms()
        return entity

    @staticmethod
    def _apply_updates(
        entity: dict[str, Any],
        updates: dict[str, Any] | None,
        *,
        allow_recurrence: bool,
    ) -> dict[str, Any]:
        """Merge user updates, never touching id or created_at.

        A replacement recurrence pattern is validated and stored in its
        canonical dict form.
        """
        for key, value in (updates or {}).items():
            if key in const.PROTECTED_ENTITY_KEYS:
                continue
            if key in const.RECURRENCE_ENTITY_KEYS and not allow_recurrence:
                continue
            entity[key] = copy.deepcopy(value)

        if not allow_recurrence:
            return entity

        if not entity.get(const.DATA_ENTITY_IS_RECURRING):
            entity[const.DATA_ENTITY_RECURRENCE_PATTERN] = None
            return entity

        raw = entity.get(const.DATA_ENTITY_RECURRENCE_PATTERN)
        if raw is None:
            raise InvalidPatternError(
                const.DATA_ENTITY_RECURRENCE_PATTERN, "required for recurring entities"
            )
        pattern = raw if isinstance(raw, RecurrencePattern) else RecurrencePattern.from_dict(raw)
        entity[const.DATA_ENTITY_RECURRENCE_PATTERN] = pattern.to_dict()
        return entity


def _before(days: frozenset[int], day_key: int) -> frozenset[int]:
    return frozenset(d for d in days if day_start(d) < day_key)


def _on_or_after(days: frozenset[int], day_key: int) -> frozenset[int]:
    return frozenset(d for d in days if day_start(d) >= day_key)
