# File: utils/__init__.py
"""Pure Python utilities for TreeTask.

Submodules:
    - dt_utils: Timezone configuration, epoch-ms/day-key conversions and
      calendar stepping

Usage:
    from .utils import dt_utils
    from .utils.dt_utils import day_start
"""

from . import dt_utils

__all__ = ["dt_utils"]
