# File: utils/__init__.py
"""Pure Python utilities for MedReminder.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Date/time parsing, time-of-day normalization, local instants
    - math_utils: Percentage rounding
"""

from . import dt_utils, math_utils

__all__ = ["dt_utils", "math_utils"]
