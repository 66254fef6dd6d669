# File: utils/math_utils.py
"""Math and calculation utilities for MedReminder.

Pure Python math functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Functions:
    - round_half_up: Integer rounding with halves rounded away from zero
    - calculate_percentage: Whole-number percentage with zero-total protection
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounded up.

    Python's built-in round() uses banker's rounding (round(2.5) == 2), which
    would report 1 taken dose out of 8 as 12% instead of 13%.

    Examples:
        round_half_up(66.666) → 67
        round_half_up(12.5) → 13
        round_half_up(50.0) → 50
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_percentage(current: int, total: int) -> int:
    """Calculate a whole-number percentage.

    Args:
        current: Count of matching items
        total: Count of all items

    Returns:
        Percentage (0-100), or 0 if total is 0

    Examples:
        calculate_percentage(2, 3) → 67
        calculate_percentage(1, 2) → 50
        calculate_percentage(5, 0) → 0
    """
    if total <= 0:
        return 0
    return round_half_up(100 * current / total)
