"""Recurrence Engine for TreeTask.

Occurrence oracle for a recurrence pattern anchored at a start instant:

- membership: does day D have an occurrence (`occurs_on`)
- position: 1-based index of an occurrence in the series (`occurrence_index`)
- stepping: the next structural occurrence after a day
- enumeration: lazy walk over a day range, stopping at the end condition
- spillover: multi-day occurrences that started earlier but still cover D

Membership and index are closed-form checks on local calendar dates; stepping
and enumeration walk a `dateutil.rrule` built from the pattern, which carries
no exclusions or end condition (those are applied on top). The anchor's
time of day is kept separately to build the instant each occurrence starts
at.

IMPORTANT: This module must NOT import from managers or the store.
Only import from const.py, patterns.py, exceptions.py, utils and dateutil.
"""

from __future__ import annotations

from datetime import date, datetime, time
import math
from typing import TYPE_CHECKING, ClassVar

from dateutil.rrule import (
    DAILY,
    FR,
    MO,
    MONTHLY,
    SA,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    rrule,
    weekday,
)

from .. import const
from ..exceptions import InvalidInstanceError, IterationLimitExceededError
from ..patterns import WeeklyPattern
from ..utils.dt_utils import (
    add_days,
    add_months,
    combine_date_and_time,
    date_to_day_key,
    months_between,
    ms_to_date,
    sunday_week_start,
    sunday_weekday_index,
    time_of_day,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..patterns import RecurrencePattern


class RecurrenceEngine:
    """Occurrence math for one pattern and anchor.

    Frequencies:
    - Daily: every `interval` days from the anchor day
    - Weekly: active weekdays in every `interval`-th Sunday-aligned week,
      counted from the anchor's week (days before the anchor never occur)
    - Monthly: the anchor's day-of-month every `interval` months; months
      lacking that day are skipped but still count toward the index

    Precedence for membership: before anchor -> excluded -> past end date ->
    frequency match -> occurrence count.
    """

    FREQUENCY_TO_RRULE: ClassVar[dict[str, int]] = {
        const.FREQUENCY_DAILY: DAILY,
        const.FREQUENCY_WEEKLY: WEEKLY,
        const.FREQUENCY_MONTHLY: MONTHLY,
    }

    # Indexed by Sunday-based weekday index
    RRULE_WEEKDAYS: ClassVar[tuple[weekday, ...]] = (SU, MO, TU, WE, TH, FR, SA)

    def __init__(
        self,
        pattern: RecurrencePattern,
        anchor_start: int,
        *,
        max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
    ) -> None:
        """Initialize the engine.

        Args:
            pattern: Validated recurrence pattern
            anchor_start: Epoch-ms instant the series was first scheduled at
            max_iterations: Safety cap for forward walks over the series
        """
        self._pattern = pattern
        self._anchor_start = anchor_start
        self._anchor_day = ms_to_date(anchor_start)
        self._anchor_time = time_of_day(anchor_start)
        self._interval = pattern.interval
        self._max_iterations = max_iterations

        # Stored keys may carry a time of day; match on calendar dates only
        self._excluded = frozenset(ms_to_date(d) for d in pattern.exclude_dates)

        self._end_day: date | None = None
        if pattern.end_condition == const.END_CONDITION_UNTIL_DATE:
            self._end_day = ms_to_date(pattern.end_date)  # type: ignore[arg-type]

        self._end_count: int | None = None
        if pattern.end_condition == const.END_CONDITION_AFTER_OCCURRENCES:
            self._end_count = pattern.end_count

        self._weekdays: tuple[int, ...] = ()
        if isinstance(pattern, WeeklyPattern):
            self._weekdays = pattern.weekday_indices

        self._rule = self._build_rule()

    def _build_rule(self) -> rrule | None:
        """Build the open-ended structural rule for the pattern.

        Exclusions and end conditions are applied on top of the rule, so it
        carries neither. A Weekly pattern without weekdays has no rule.
        """
        freq = self._pattern.frequency

        rrule_weekdays = None
        if freq == const.FREQUENCY_WEEKLY:
            if not self._weekdays:
                return None
            rrule_weekdays = [self.RRULE_WEEKDAYS[d] for d in self._weekdays]

        # Months without the anchor's day produce no occurrence
        month_day = self._anchor_day.day if freq == const.FREQUENCY_MONTHLY else None

        # Type stubs expect Literal[0-6], but rrule accepts int at runtime
        return rrule(
            self.FREQUENCY_TO_RRULE[freq],  # type: ignore[arg-type]
            dtstart=self._midnight(self._anchor_day),
            interval=self._interval,
            wkst=SU,
            byweekday=rrule_weekdays,
            bymonthday=month_day,
        )

    @staticmethod
    def _midnight(day: date) -> datetime:
        return datetime.combine(day, time.min)

    @property
    def pattern(self) -> RecurrencePattern:
        """The pattern this engine evaluates."""
        return self._pattern

    @property
    def anchor_day_key(self) -> int:
        """Day-key of the anchor day."""
        return date_to_day_key(self._anchor_day)

    # =========================================================================
    # Membership and index
    # =========================================================================

    def occurs_on(self, target_day: int) -> bool:
        """Return True if the series has an occurrence on the target's day.

        Args:
            target_day: Any instant within the day to test
        """
        return self._occurs(ms_to_date(target_day))

    def occurrence_index(self, target_day: int) -> int:
        """Return the 1-based position of an occurrence in the series.

        The index is structural: excluded days still consume a position and
        end conditions are not applied. Daily and Weekly indexes equal the
        position of the day in a cycle-by-cycle, weekday-by-weekday
        enumeration. Monthly indexes count interval cycles, so a month that
        lacks the anchor's day still uses up a position.

        Raises:
            InvalidInstanceError: If the day is not a structural occurrence
        """
        day = ms_to_date(target_day)
        if day < self._anchor_day or not self._matches_frequency(day):
            raise InvalidInstanceError(None, date_to_day_key(day))
        return self._index(day)

    def _occurs(self, day: date) -> bool:
        if day < self._anchor_day:
            return False
        if day in self._excluded:
            return False
        if self._end_day is not None and day > self._end_day:
            return False
        if not self._matches_frequency(day):
            return False
        if self._end_count is not None and self._index(day) > self._end_count:
            return False
        return True

    def _matches_frequency(self, day: date) -> bool:
        """Structural frequency match for a day on or after the anchor."""
        freq = self._pattern.frequency

        if freq == const.FREQUENCY_DAILY:
            return (day - self._anchor_day).days % self._interval == 0

        if freq == const.FREQUENCY_WEEKLY:
            if sunday_weekday_index(day) not in self._weekdays:
                return False
            return self._weeks_from_anchor(day) % self._interval == 0

        if freq == const.FREQUENCY_MONTHLY:
            if day.day != self._anchor_day.day:
                return False
            return months_between(self._anchor_day, day) % self._interval == 0

        return False

    def _index(self, day: date) -> int:
        """Closed-form structural index of a day that matches the frequency."""
        freq = self._pattern.frequency

        if freq == const.FREQUENCY_DAILY:
            return (day - self._anchor_day).days // self._interval + 1

        if freq == const.FREQUENCY_WEEKLY:
            cycles = self._weeks_from_anchor(day) // self._interval
            anchor_idx = sunday_weekday_index(self._anchor_day)
            # Active weekdays in the anchor's own week that precede the anchor
            skipped_in_first_week = sum(1 for d in self._weekdays if d < anchor_idx)
            position = self._weekdays.index(sunday_weekday_index(day)) + 1
            return cycles * len(self._weekdays) + position - skipped_in_first_week

        return months_between(self._anchor_day, day) // self._interval + 1

    def _weeks_from_anchor(self, day: date) -> int:
        return (
            sunday_week_start(day) - sunday_week_start(self._anchor_day)
        ).days // const.DAYS_PER_WEEK

    def _past_end(self, day: date) -> bool:
        """True once a structural occurrence lies beyond the end condition."""
        if self._end_day is not None and day > self._end_day:
            return True
        return self._end_count is not None and self._index(day) > self._end_count

    # =========================================================================
    # Stepping
    # =========================================================================

    def next_occurrence_after(self, instance_day: int) -> int:
        """Return the next structural occurrence strictly after a day.

        Exclusions and end conditions are ignored; callers re-check
        membership with `occurs_on` when needed. A Weekly pattern with no
        active weekdays steps by `interval` weeks.

        Raises:
            IterationLimitExceededError: If the rule has no later occurrence
        """
        day = ms_to_date(instance_day)
        if self._rule is None:
            return date_to_day_key(add_days(day, const.DAYS_PER_WEEK * self._interval))

        following = self._rule.after(self._midnight(day))
        if following is None:
            const.LOGGER.warning(
                "RecurrenceEngine: No %s occurrence after %s",
                self._pattern.frequency,
                day,
            )
            raise IterationLimitExceededError("next_occurrence_after", self._max_iterations)
        return date_to_day_key(following.date())

    # =========================================================================
    # Enumeration
    # =========================================================================

    def enumerate_occurrences(self, range_start: int, range_end: int) -> Iterator[int]:
        """Lazily yield occurrence day-keys within an inclusive day range.

        Each call returns a fresh generator. Walks the structural rule from
        max(anchor, range_start), yields days passing `occurs_on`, and stops
        at range_end or once the end condition is exceeded.

        Raises:
            IterationLimitExceededError: If more than `max_iterations`
                structural steps are needed (raised during iteration)
        """
        start = max(ms_to_date(range_start), self._anchor_day)
        end = ms_to_date(range_end)
        if start > end or self._rule is None:
            return

        steps = 0
        for occurrence in self._rule.xafter(self._midnight(start), inc=True):
            current = occurrence.date()
            if current > end or self._past_end(current):
                return
            steps += 1
            if steps > self._max_iterations:
                const.LOGGER.warning(
                    "RecurrenceEngine: Max iterations (%s) reached enumerating %s",
                    self._max_iterations,
                    self._pattern.frequency,
                )
                raise IterationLimitExceededError(
                    "enumerate_occurrences", self._max_iterations
                )
            if self._occurs(current):
                yield date_to_day_key(current)

    def current_instance_on_or_before(self, now: int) -> int | None:
        """Return the latest occurrence on or before now's day.

        Iterates forward from the anchor. Hitting the iteration cap is
        treated as "no instance found".

        Returns:
            Day-key of the occurrence, or None if there is none yet.
        """
        now_day = ms_to_date(now)
        if now_day < self._anchor_day or self._rule is None:
            return None

        latest: date | None = None
        steps = 0
        for occurrence in self._rule:
            current = occurrence.date()
            if current > now_day or self._past_end(current):
                break
            steps += 1
            if steps > self._max_iterations:
                const.LOGGER.warning(
                    "RecurrenceEngine: Max iterations (%s) reached resolving "
                    "current instance, treating as none",
                    self._max_iterations,
                )
                return None
            if self._occurs(current):
                latest = current

        return date_to_day_key(latest) if latest is not None else None

    # =========================================================================
    # Instants and spillover
    # =========================================================================

    def instance_start(self, day_key: int) -> int:
        """Return the instant an occurrence on this day starts.

        The anchor's local time of day is applied to the given day.
        """
        return combine_date_and_time(ms_to_date(day_key), self._anchor_time)

    def spillover_start(self, target_day: int, duration_ms: int) -> int | None:
        """Find an earlier occurrence whose duration reaches into target_day.

        Scans back ceil(duration / day) + 1 days. Only the nearest earlier
        occurrence is considered; older ones end sooner.

        Returns:
            Start instant of the spilling occurrence, or None.
        """
        if duration_ms <= 0:
            return None

        target = ms_to_date(target_day)
        target_key = date_to_day_key(target)
        lookback = math.ceil(duration_ms / const.MS_PER_DAY) + 1

        for days_back in range(1, lookback + 1):
            candidate = add_days(target, -days_back)
            if self._occurs(candidate):
                start = combine_date_and_time(candidate, self._anchor_time)
                if start + duration_ms > target_key:
                    return start
                return None
        return None

    def instance_window(
        self, target_day: int, duration_ms: int
    ) -> tuple[int, int] | None:
        """Return (start, end) of the occurrence shown on target_day.

        Prefers an occurrence starting that day; otherwise an earlier one
        spilling into it.
        """
        day = ms_to_date(target_day)
        if self._occurs(day):
            start = combine_date_and_time(day, self._anchor_time)
            return start, start + max(duration_ms, 0)

        spill = self.spillover_start(target_day, duration_ms)
        if spill is None:
            return None
        return spill, spill + duration_ms

    def covers_day(self, target_day: int, duration_ms: int) -> bool:
        """True if an occurrence starts on, or spills into, target_day."""
        return self.instance_window(target_day, duration_ms) is not None

    def is_active_at(self, now: int, duration_ms: int) -> bool:
        """True if an occurrence window contains the instant `now` (inclusive)."""
        day = ms_to_date(now)
        if self._occurs(day):
            start = combine_date_and_time(day, self._anchor_time)
            if start <= now <= start + duration_ms:
                return True

        spill = self.spillover_start(now, duration_ms)
        return spill is not None and spill <= now <= spill + duration_ms

    # =========================================================================
    # Export
    # =========================================================================

    def to_rrule_string(self) -> str:
        """Generate an RFC 5545 RRULE string for calendar export.

        Returns:
            RRULE string (e.g. "FREQ=WEEKLY;INTERVAL=1;WKST=SU;BYDAY=MO,WE")
            or empty string for a Weekly pattern without weekdays.
        """
        freq = self._pattern.frequency
        parts = [f"FREQ={freq.upper()}", f"INTERVAL={self._interval}"]

        if freq == const.FREQUENCY_WEEKLY:
            if not self._weekdays:
                return ""
            tokens = ",".join(const.RRULE_WEEKDAY_TOKENS[d] for d in self._weekdays)
            parts.extend(["WKST=SU", f"BYDAY={tokens}"])
        elif freq == const.FREQUENCY_MONTHLY:
            parts.append(f"BYMONTHDAY={self._anchor_day.day}")

        if self._end_count is not None and self._skips_short_months():
            # COUNT only counts real occurrences; skipped months consume an index
            last_cycle = add_months(
                self._anchor_day, (self._end_count - 1) * self._interval
            )
            parts.append(f"UNTIL={last_cycle.strftime('%Y%m%d')}")
        elif self._end_count is not None:
            parts.append(f"COUNT={self._end_count}")
        elif self._end_day is not None:
            parts.append(f"UNTIL={self._end_day.strftime('%Y%m%d')}")

        return ";".join(parts)

    def _skips_short_months(self) -> bool:
        return (
            self._pattern.frequency == const.FREQUENCY_MONTHLY
            and self._anchor_day.day > const.MAX_SAFE_DAY_OF_MONTH
        )


# =============================================================================
# Function-style API
# =============================================================================


def occurs_on(pattern: RecurrencePattern, anchor_start: int, target_day: int) -> bool:
    """Return True if `pattern` anchored at `anchor_start` occurs on target_day."""
    return RecurrenceEngine(pattern, anchor_start).occurs_on(target_day)


def occurrence_index(
    pattern: RecurrencePattern, anchor_start: int, target_day: int
) -> int:
    """Return the 1-based structural index of an occurrence."""
    return RecurrenceEngine(pattern, anchor_start).occurrence_index(target_day)


def next_occurrence_after(pattern: RecurrencePattern, instance_day: int) -> int:
    """Return the next structural occurrence after an occurrence day.

    The instance day itself serves as the anchor, so Monthly steps keep its
    day-of-month.
    """
    return RecurrenceEngine(pattern, instance_day).next_occurrence_after(instance_day)


def enumerate_occurrences(
    pattern: RecurrencePattern,
    anchor_start: int,
    range_start: int,
    range_end: int,
    *,
    max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
) -> Iterator[int]:
    """Lazily yield occurrence day-keys in [range_start, range_end]."""
    engine = RecurrenceEngine(pattern, anchor_start, max_iterations=max_iterations)
    return engine.enumerate_occurrences(range_start, range_end)


def current_instance_on_or_before(
    pattern: RecurrencePattern,
    anchor_start: int,
    now: int,
    *,
    max_iterations: int = const.DEFAULT_MAX_ITERATIONS,
) -> int | None:
    """Return the latest occurrence day-key on or before now, if any."""
    engine = RecurrenceEngine(pattern, anchor_start, max_iterations=max_iterations)
    return engine.current_instance_on_or_before(now)
