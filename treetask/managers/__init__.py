"""Manager modules for TreeTask.

Managers orchestrate workflows and coordinate between engines.
They are stateful and own the store they are given.
"""

from .schedule_manager import ScheduleManager

__all__ = [
    "ScheduleManager",
]
