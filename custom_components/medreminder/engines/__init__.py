"""Engine modules for MedReminder integration.

Contains pure computation engines (no Home Assistant state):
- recurrence_engine: RRULE expansion and frequency → RRULE mapping
- adherence_engine: Ledger snapshots, percentages, streaks, day/dose statuses
"""

from .adherence_engine import AdherenceEngine
from .recurrence_engine import (
    RecurrenceEngine,
    RecurrenceError,
    ScheduleSpecError,
    build_schedule_specs,
    expand,
    frequency_to_rrule,
    occurs_on,
)

__all__ = [
    "AdherenceEngine",
    "RecurrenceEngine",
    "RecurrenceError",
    "ScheduleSpecError",
    "build_schedule_specs",
    "expand",
    "frequency_to_rrule",
    "occurs_on",
]
