"""Shared fixtures for TreeTask tests."""

from __future__ import annotations

from collections.abc import Iterator
from zoneinfo import ZoneInfo

import pytest

from tests.helpers import TEST_TIME_ZONE
from treetask.store import SchedulingStore
from treetask.utils.dt_utils import get_default_timezone, set_default_timezone


@pytest.fixture(autouse=True)
def local_time_zone() -> Iterator[ZoneInfo]:
    """Run every test in a DST-observing local calendar, then restore."""
    previous = get_default_timezone()
    set_default_timezone(TEST_TIME_ZONE)
    yield get_default_timezone()
    set_default_timezone(previous)


@pytest.fixture
def store() -> SchedulingStore:
    """Return an empty in-memory store."""
    return SchedulingStore()
