"""Error taxonomy for the TreeTask scheduling engine.

Every error is recoverable by the caller (reject the edit, surface a
message). The engines raise these instead of repairing malformed input.
"""

from __future__ import annotations


class TreeTaskError(Exception):
    """Base class for all scheduling engine errors."""


class InvalidPatternError(TreeTaskError):
    """Raised when a recurrence pattern is malformed.

    Attributes:
        field: Pattern field (JSON key) that failed validation
        reason: Human readable description of the problem
    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize InvalidPatternError.

        Args:
            field: Pattern field (JSON key) that failed validation
            reason: Human readable description of the problem
        """
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid recurrence pattern field '{field}': {reason}")


class InvalidInstanceError(TreeTaskError):
    """Raised when a split/delete targets a day that is not an occurrence.

    Attributes:
        entity_id: ID of the recurring entity (None for bare pattern queries)
        instance_day: Day-key (epoch ms) that was requested
    """

    def __init__(self, entity_id: str | None, instance_day: int) -> None:
        """Initialize InvalidInstanceError.

        Args:
            entity_id: ID of the recurring entity, if known
            instance_day: Day-key (epoch ms) that was requested
        """
        self.entity_id = entity_id
        self.instance_day = instance_day
        owner = f"series {entity_id}" if entity_id else "pattern"
        super().__init__(
            f"Day {instance_day} is not an occurrence of {owner}"
        )


class IterationLimitExceededError(TreeTaskError):
    """Raised when a series walk hits its safety cap.

    Usually means a pathological pattern or an unreasonably wide range.

    Attributes:
        operation: Name of the engine operation that gave up
        limit: Iteration cap that was reached
    """

    def __init__(self, operation: str, limit: int) -> None:
        """Initialize IterationLimitExceededError."""
        self.operation = operation
        self.limit = limit
        super().__init__(f"{operation} exceeded {limit} iterations")


class EntityValidationError(TreeTaskError):
    """Raised when a task or time block fails business validation.

    Attributes:
        field: Entity key that failed validation
        reason: Human readable description of the problem
    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize EntityValidationError."""
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for '{field}': {reason}")
