"""Recurrence pattern value objects and their JSON codec.

A recurrence pattern is a closed sum type keyed by frequency:

- DailyPattern: every N days
- WeeklyPattern: every N Sunday-aligned weeks on a set of weekdays
- MonthlyPattern: every N months on the anchor's day-of-month

Only WeeklyPattern carries `days_of_week`, so the weekday set is required
exactly where it matters. All variants are frozen: mutations return new
values, which keeps each split fragment the exclusive owner of its pattern.

The JSON form (camelCase keys) is validated with voluptuous; any schema
violation surfaces as InvalidPatternError naming the offending field.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
import json
from typing import Any, ClassVar

import voluptuous as vol

from . import const
from .exceptions import InvalidPatternError
from .type_defs import RecurrencePatternData

# =============================================================================
# SCHEMA
# =============================================================================


def _strict_int(value: Any) -> int:
    """Accept ints (and integral floats from JSON), reject bools and fractions."""
    if isinstance(value, bool):
        raise vol.Invalid("expected an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise vol.Invalid("expected an integer")
    return value


_POSITIVE_INT = vol.All(_strict_int, vol.Range(min=1))

PATTERN_SCHEMA = vol.Schema(
    {
        vol.Required(const.DATA_PATTERN_FREQUENCY): vol.In(const.FREQUENCY_OPTIONS),
        vol.Optional(
            const.DATA_PATTERN_INTERVAL, default=const.DEFAULT_PATTERN_INTERVAL
        ): _POSITIVE_INT,
        vol.Optional(const.DATA_PATTERN_DAYS_OF_WEEK): [
            vol.In(const.WEEKDAY_LABELS)
        ],
        vol.Required(const.DATA_PATTERN_END_CONDITION): vol.In(
            const.END_CONDITION_OPTIONS
        ),
        vol.Optional(const.DATA_PATTERN_END_COUNT): vol.Any(None, _POSITIVE_INT),
        vol.Optional(const.DATA_PATTERN_END_DATE): vol.Any(None, _strict_int),
        vol.Optional(const.DATA_PATTERN_EXCLUDE_DATES): [_strict_int],
        vol.Optional(const.DATA_PATTERN_COMPLETED_INSTANCES): [_strict_int],
    },
    extra=vol.REMOVE_EXTRA,
)


# =============================================================================
# PATTERN VARIANTS
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class RecurrencePattern:
    """Fields shared by every recurrence variant.

    Attributes:
        interval: Step between occurrences in the variant's unit (>= 1)
        end_condition: One of const.END_CONDITION_*
        end_count: Total occurrences, inclusive of the first (AfterX only)
        end_date: Inclusive last day-key (Until only)
        exclude_dates: Day-keys skipped regardless of the rule
        completed_instances: Day-keys the user checked off
    """

    frequency: ClassVar[str]

    interval: int = const.DEFAULT_PATTERN_INTERVAL
    end_condition: str = const.END_CONDITION_NO_END
    end_count: int | None = None
    end_date: int | None = None
    exclude_dates: frozenset[int] = frozenset()
    completed_instances: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        """Validate shape; raise InvalidPatternError on malformed input."""
        if type(self) is RecurrencePattern:
            raise TypeError(
                "RecurrencePattern is abstract; use DailyPattern, "
                "WeeklyPattern or MonthlyPattern"
            )

        # Containers may arrive as lists; freeze them
        object.__setattr__(self, "exclude_dates", frozenset(self.exclude_dates))
        object.__setattr__(
            self, "completed_instances", frozenset(self.completed_instances)
        )

        if (
            isinstance(self.interval, bool)
            or not isinstance(self.interval, int)
            or self.interval < 1
        ):
            raise InvalidPatternError(
                const.DATA_PATTERN_INTERVAL,
                f"must be a positive integer, got {self.interval!r}",
            )

        if self.end_condition not in const.END_CONDITION_OPTIONS:
            raise InvalidPatternError(
                const.DATA_PATTERN_END_CONDITION,
                f"unknown end condition {self.end_condition!r}",
            )

        if self.end_condition == const.END_CONDITION_AFTER_OCCURRENCES:
            if (
                isinstance(self.end_count, bool)
                or not isinstance(self.end_count, int)
                or self.end_count < 1
            ):
                raise InvalidPatternError(
                    const.DATA_PATTERN_END_COUNT,
                    "a positive count is required when ending after X occurrences",
                )
        elif self.end_count is not None:
            raise InvalidPatternError(
                const.DATA_PATTERN_END_COUNT,
                f"not allowed with end condition {self.end_condition!r}",
            )

        if self.end_condition == const.END_CONDITION_UNTIL_DATE:
            if isinstance(self.end_date, bool) or not isinstance(self.end_date, int):
                raise InvalidPatternError(
                    const.DATA_PATTERN_END_DATE,
                    "an end date is required when ending on a specific date",
                )
        elif self.end_date is not None:
            raise InvalidPatternError(
                const.DATA_PATTERN_END_DATE,
                f"not allowed with end condition {self.end_condition!r}",
            )

    # -------------------------------------------------------------------------
    # Copy-on-write helpers
    # -------------------------------------------------------------------------

    def evolve(self, **changes: Any) -> RecurrencePattern:
        """Return a validated copy with fields replaced."""
        return replace(self, **changes)

    def with_excluded(self, day_key: int) -> RecurrencePattern:
        """Return a copy that additionally skips `day_key`."""
        return self.evolve(exclude_dates=self.exclude_dates | {day_key})

    def with_completed(self, completed: Iterable[int]) -> RecurrencePattern:
        """Return a copy with a replaced completed-instance set."""
        return self.evolve(completed_instances=frozenset(completed))

    def ending_until(self, end_day_key: int) -> RecurrencePattern:
        """Return a copy ending on (and including) `end_day_key`."""
        return self.evolve(
            end_condition=const.END_CONDITION_UNTIL_DATE,
            end_count=None,
            end_date=end_day_key,
        )

    def ending_after(self, count: int) -> RecurrencePattern:
        """Return a copy ending after `count` occurrences."""
        return self.evolve(
            end_condition=const.END_CONDITION_AFTER_OCCURRENCES,
            end_count=count,
            end_date=None,
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> RecurrencePatternData:
        """Serialize to the JSON-compatible dict form.

        Optional keys are omitted when unset or empty; sets become sorted
        lists so the output is deterministic.
        """
        data: dict[str, Any] = {
            const.DATA_PATTERN_FREQUENCY: self.frequency,
            const.DATA_PATTERN_INTERVAL: self.interval,
            const.DATA_PATTERN_END_CONDITION: self.end_condition,
        }
        if self.end_count is not None:
            data[const.DATA_PATTERN_END_COUNT] = self.end_count
        if self.end_date is not None:
            data[const.DATA_PATTERN_END_DATE] = self.end_date
        if self.exclude_dates:
            data[const.DATA_PATTERN_EXCLUDE_DATES] = sorted(self.exclude_dates)
        if self.completed_instances:
            data[const.DATA_PATTERN_COMPLETED_INSTANCES] = sorted(
                self.completed_instances
            )
        return data  # type: ignore[return-value]

    def to_json(self) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict())

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> RecurrencePattern:
        """Parse and validate the JSON dict form.

        A missing `interval` defaults to 1. `daysOfWeek` is required for
        Weekly and ignored otherwise; end fields that do not belong to the
        chosen end condition are ignored.

        Raises:
            InvalidPatternError: On any schema or shape violation
        """
        try:
            validated = PATTERN_SCHEMA(dict(data) if isinstance(data, Mapping) else data)
        except vol.Invalid as err:
            raise _pattern_error_from(err) from err

        end_condition = validated[const.DATA_PATTERN_END_CONDITION]
        kwargs: dict[str, Any] = {
            "interval": validated[const.DATA_PATTERN_INTERVAL],
            "end_condition": end_condition,
            "exclude_dates": frozenset(
                validated.get(const.DATA_PATTERN_EXCLUDE_DATES, [])
            ),
            "completed_instances": frozenset(
                validated.get(const.DATA_PATTERN_COMPLETED_INSTANCES, [])
            ),
        }
        if end_condition == const.END_CONDITION_AFTER_OCCURRENCES:
            kwargs["end_count"] = validated.get(const.DATA_PATTERN_END_COUNT)
        elif end_condition == const.END_CONDITION_UNTIL_DATE:
            kwargs["end_date"] = validated.get(const.DATA_PATTERN_END_DATE)

        frequency = validated[const.DATA_PATTERN_FREQUENCY]
        if frequency == const.FREQUENCY_WEEKLY:
            if const.DATA_PATTERN_DAYS_OF_WEEK not in validated:
                raise InvalidPatternError(
                    const.DATA_PATTERN_DAYS_OF_WEEK, "required for Weekly patterns"
                )
            return WeeklyPattern(
                days_of_week=frozenset(validated[const.DATA_PATTERN_DAYS_OF_WEEK]),
                **kwargs,
            )
        return _SIMPLE_VARIANTS[frequency](**kwargs)

    @staticmethod
    def from_json(raw: str) -> RecurrencePattern:
        """Parse a JSON string.

        Raises:
            InvalidPatternError: If the string is not valid JSON or the
                decoded value is not a valid pattern
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as err:
            raise InvalidPatternError("pattern", f"invalid JSON: {err.msg}") from err
        return RecurrencePattern.from_dict(data)


@dataclass(frozen=True, kw_only=True)
class DailyPattern(RecurrencePattern):
    """Every `interval` days from the anchor day."""

    frequency: ClassVar[str] = const.FREQUENCY_DAILY


@dataclass(frozen=True, kw_only=True)
class WeeklyPattern(RecurrencePattern):
    """Every `interval` Sunday-aligned weeks on the listed weekdays.

    An empty weekday set is valid and never occurs.
    """

    frequency: ClassVar[str] = const.FREQUENCY_WEEKLY

    days_of_week: frozenset[str]

    def __post_init__(self) -> None:
        """Validate weekday labels on top of the common checks."""
        object.__setattr__(self, "days_of_week", frozenset(self.days_of_week))
        unknown = sorted(d for d in self.days_of_week if d not in const.WEEKDAY_INDEX)
        if unknown:
            raise InvalidPatternError(
                const.DATA_PATTERN_DAYS_OF_WEEK, f"unknown weekday labels {unknown}"
            )
        super().__post_init__()

    @property
    def weekday_indices(self) -> tuple[int, ...]:
        """Active weekdays as ascending Sunday-based indices (Sun=0)."""
        return tuple(sorted(const.WEEKDAY_INDEX[d] for d in self.days_of_week))

    def to_dict(self) -> RecurrencePatternData:
        """Serialize, listing weekdays in Sun..Sat order."""
        data = super().to_dict()
        data[const.DATA_PATTERN_DAYS_OF_WEEK] = [
            const.WEEKDAY_LABELS[idx] for idx in self.weekday_indices
        ]
        return data


@dataclass(frozen=True, kw_only=True)
class MonthlyPattern(RecurrencePattern):
    """Every `interval` months on the anchor's day-of-month.

    Months without that day (e.g. the 31st in April) are skipped.
    """

    frequency: ClassVar[str] = const.FREQUENCY_MONTHLY


_SIMPLE_VARIANTS: dict[str, type[RecurrencePattern]] = {
    const.FREQUENCY_DAILY: DailyPattern,
    const.FREQUENCY_MONTHLY: MonthlyPattern,
}


def _pattern_error_from(err: vol.Invalid) -> InvalidPatternError:
    """Map the first voluptuous error to an InvalidPatternError."""
    first = err.errors[0] if isinstance(err, vol.MultipleInvalid) else err
    field = str(first.path[0]) if first.path else "pattern"
    return InvalidPatternError(field, first.msg)
