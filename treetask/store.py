# File: store.py
"""Holds scheduling data for TreeTask.

In-memory store of tasks and time blocks keyed by id, with an optional
persistence callback. Splits of recurring series touch up to three entities
and must land together, so they are applied as one staged batch.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from . import const
from .data_builders import is_time_block

if TYPE_CHECKING:
    from collections.abc import Callable

    from .engines.series_engine import SplitResult
    from .type_defs import EntityData


class SchedulingStore:
    """Handles storage operations for TreeTask data.

    Utilizes the entity id as the primary key for tasks and time blocks.
    Entities are copied on the way in and on the way out, so callers never
    share references with the stored data. Changes go through `update`.
    """

    def __init__(
        self,
        data: dict[str, Any] | None = None,
        persist: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            data: Previously persisted data, or None for an empty store
            persist: Called with the full data after every change; an
                exception aborts the change
        """
        self._data: dict[str, Any] = (
            copy.deepcopy(data) if data is not None else self.get_default_structure()
        )
        self._persist = persist

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure.

        This is the SINGLE SOURCE OF TRUTH for the TreeTask storage schema.
        """
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.STORAGE_SCHEMA_VERSION,
            },
            const.DATA_TASKS: {},
            const.DATA_TIME_BLOCKS: {},
        }

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data."""
        return self._data

    # -------------------------------------------------------------------------
    # Entity access
    # -------------------------------------------------------------------------

    def get(self, entity_id: str) -> dict[str, Any]:
        """Return a task or time block by id.

        Raises:
            KeyError: If no entity has this id
        """
        return copy.deepcopy(self._find(self._data, entity_id)[entity_id])

    def tasks(self) -> list[dict[str, Any]]:
        """Return all tasks."""
        return copy.deepcopy(list(self._data[const.DATA_TASKS].values()))

    def time_blocks(self) -> list[dict[str, Any]]:
        """Return all time blocks."""
        return copy.deepcopy(list(self._data[const.DATA_TIME_BLOCKS].values()))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, entity: EntityData) -> None:
        """Insert a new entity.

        Raises:
            ValueError: If the id is already in use
        """
        self._commit(lambda staged: self._stage_add(staged, entity))

    def update(self, entity: EntityData) -> None:
        """Replace an existing entity.

        Raises:
            KeyError: If no entity has this id
        """
        self._commit(lambda staged: self._stage_update(staged, entity))

    def remove(self, entity_id: str) -> None:
        """Delete an entity.

        Raises:
            KeyError: If no entity has this id
        """
        self._commit(lambda staged: self._stage_remove(staged, entity_id))

    def apply_split(self, result: SplitResult) -> None:
        """Apply a split's head, body, tail and removals atomically.

        Either every change is stored (and persisted) or none is.
        """

        def stage(staged: dict[str, Any]) -> None:
            if result.head is not None:
                self._stage_update(staged, result.head)
            if result.body is not None:
                self._stage_add(staged, result.body)
            if result.tail is not None:
                self._stage_add(staged, result.tail)
            for entity_id in result.removed_ids:
                self._stage_remove(staged, entity_id)

        self._commit(stage)
        const.LOGGER.debug(
            "SchedulingStore: Applied %s split (head=%s, body=%s, tail=%s, removed=%s)",
            result.mode,
            result.head is not None,
            result.body is not None,
            result.tail is not None,
            result.removed_ids,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _commit(self, stage: Callable[[dict[str, Any]], None]) -> None:
        """Stage changes on a copy, persist, then swap it in."""
        staged = copy.deepcopy(self._data)
        try:
            stage(staged)
            if self._persist is not None:
                self._persist(staged)
        except Exception:
            const.LOGGER.warning(
                "SchedulingStore: Change rejected, keeping previous data"
            )
            raise
        self._data = staged

    @staticmethod
    def _bucket(data: dict[str, Any], entity: EntityData) -> dict[str, Any]:
        key = const.DATA_TIME_BLOCKS if is_time_block(entity) else const.DATA_TASKS
        return data[key]

    @staticmethod
    def _find(data: dict[str, Any], entity_id: str) -> dict[str, Any]:
        for key in (const.DATA_TASKS, const.DATA_TIME_BLOCKS):
            if entity_id in data[key]:
                return data[key]
        raise KeyError(entity_id)

    @staticmethod
    def _stage_add(data: dict[str, Any], entity: EntityData) -> None:
        entity_id = entity[const.DATA_ENTITY_ID]
        if any(
            entity_id in data[key] for key in (const.DATA_TASKS, const.DATA_TIME_BLOCKS)
        ):
            raise ValueError(f"Entity id already exists: {entity_id}")
        SchedulingStore._bucket(data, entity)[entity_id] = copy.deepcopy(dict(entity))

    @staticmethod
    def _stage_update(data: dict[str, Any], entity: EntityData) -> None:
        entity_id = entity[const.DATA_ENTITY_ID]
        SchedulingStore._find(data, entity_id)[entity_id] = copy.deepcopy(dict(entity))

    @staticmethod
    def _stage_remove(data: dict[str, Any], entity_id: str) -> None:
        del SchedulingStore._find(data, entity_id)[entity_id]
