"""Instance Completion Engine - per-occurrence check-offs for a series.

Completion of one occurrence never touches the series' own status; it lives
in the pattern's `completed_instances` set of day-keys.

Rules:
- Stored values are compared by their local day, so a value carrying a time
  of day still matches its day-key
- Operations are idempotent and copy-on-write (a new pattern is returned)
- End conditions and exclusions are not consulted; stale entries for days
  that are no longer occurrences are kept untouched
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..utils.dt_utils import day_start

if TYPE_CHECKING:
    from ..patterns import RecurrencePattern


class InstanceCompletionTracker:
    """Pure logic for completed-instance bookkeeping.

    All methods are static - no instance state.
    """

    @staticmethod
    def is_complete(pattern: RecurrencePattern, day: int) -> bool:
        """Return True if the occurrence on `day` is checked off."""
        key = day_start(day)
        return any(day_start(stored) == key for stored in pattern.completed_instances)

    @staticmethod
    def mark_complete(pattern: RecurrencePattern, day: int) -> RecurrencePattern:
        """Return a pattern with `day` checked off."""
        if InstanceCompletionTracker.is_complete(pattern, day):
            return pattern
        return pattern.with_completed(pattern.completed_instances | {day_start(day)})

    @staticmethod
    def mark_incomplete(pattern: RecurrencePattern, day: int) -> RecurrencePattern:
        """Return a pattern with every entry for `day` removed."""
        key = day_start(day)
        remaining = {d for d in pattern.completed_instances if day_start(d) != key}
        if len(remaining) == len(pattern.completed_instances):
            return pattern
        return pattern.with_completed(remaining)

    @staticmethod
    def toggle(pattern: RecurrencePattern, day: int) -> RecurrencePattern:
        """Flip the completion state of `day`."""
        if InstanceCompletionTracker.is_complete(pattern, day):
            return InstanceCompletionTracker.mark_incomplete(pattern, day)
        return InstanceCompletionTracker.mark_complete(pattern, day)

    @staticmethod
    def completed_days(pattern: RecurrencePattern) -> list[int]:
        """Return the checked-off day-keys, normalized and ascending."""
        return sorted({day_start(d) for d in pattern.completed_instances})
