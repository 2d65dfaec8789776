"""Test helpers for TreeTask.

Day-keys depend on the configured local timezone, so build them inside
tests (after the autouse timezone fixture ran), never at import time.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from treetask import const
from treetask.utils.dt_utils import date_to_day_key, local_to_ms

TEST_TIME_ZONE = "Europe/Berlin"


def day_key(year: int, month: int, day: int) -> int:
    """Return the local midnight day-key for a calendar date."""
    return date_to_day_key(date(year, month, day))


def at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Return the epoch-ms instant of a local wall-clock time."""
    return local_to_ms(datetime(year, month, day, hour, minute))


def pattern_dict(frequency: str, **fields: Any) -> dict[str, Any]:
    """Build a JSON pattern dict that never ends unless told otherwise."""
    data: dict[str, Any] = {
        const.DATA_PATTERN_FREQUENCY: frequency,
        const.DATA_PATTERN_INTERVAL: 1,
        const.DATA_PATTERN_END_CONDITION: const.END_CONDITION_NO_END,
    }
    data.update(fields)
    return data
