"""Type definitions for MedReminder data structures.

TypedDict is used for the fixed-key structures that are persisted to storage
(schedule specs, issued reminders, adherence records, medicines). Keyed
collections whose keys are built at runtime stay `dict[str, ...]`.

IMPORTANT: This file must NOT import from coordinator.py or any manager to
avoid circular dependencies. Only typing machinery is imported here.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime validation of stored data
stays in the managers and engines.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, NotRequired, Protocol, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

MedicineId = str
ScheduleId = str  # "{medicine_id}-{dose_index}"
ReminderId = str  # Opaque handle returned by the dispatcher
ISODatetime = str  # ISO 8601 datetime string "2026-01-18T12:30:00+00:00"
ISODate = str  # ISO 8601 date string (no time) "2026-01-18"
TimeOfDay = str  # Canonical 24h "HH:MM"
LedgerKey = str  # "{medicine_id}-{date}-{time}"


# =============================================================================
# Scheduling
# =============================================================================


class ScheduleSpec(TypedDict):
    """One recurring dose-time slot of a medicine.

    Superseded (replaced) rather than mutated when the user edits timing.
    """

    schedule_id: ScheduleId
    medicine_id: NotRequired[MedicineId]
    title: str
    body: str
    dtstart: ISODatetime
    timezone: str  # IANA name
    rrule: str
    occurrence_count: int


class IssuedReminder(TypedDict):
    """A reminder issued through the dispatcher for one occurrence."""

    id: ReminderId
    schedule_id: ScheduleId
    trigger: ISODatetime  # UTC
    delivered: bool
    completed: bool


class ReminderContent(TypedDict):
    """Content handed to the dispatcher for one occurrence."""

    title: str
    body: str
    data: dict[str, Any]


class MedicineData(TypedDict):
    """A medicine on the user's schedule with its dosing pattern."""

    medicine_id: MedicineId
    name: str
    body: str
    frequency: str
    dose_times: list[TimeOfDay]
    start_date: ISODate
    timezone: str
    schedule_ids: list[ScheduleId]


# =============================================================================
# Adherence
# =============================================================================


class AdherenceRecord(TypedDict):
    """A user-reported dose outcome. Unique per (medicine_id, date, time)."""

    medicine_id: MedicineId
    date: ISODate
    time: TimeOfDay
    taken: bool
    recorded_at: ISODatetime


AdherenceHistory = dict[LedgerKey, AdherenceRecord]


class DoseSlotStatus(TypedDict):
    """An expected dose slot on a given day with its derived status."""

    schedule_id: ScheduleId
    medicine_id: MedicineId
    title: str
    time: TimeOfDay
    status: str


class CalendarDay(TypedDict):
    """One cell of a month calendar grid."""

    date: ISODate
    status: str


# =============================================================================
# Dispatcher capability
# =============================================================================


class ReminderDispatcher(Protocol):
    """Notification dispatch capability consumed by the reminder manager."""

    async def async_dispatch_schedule(
        self, content: ReminderContent, trigger: datetime
    ) -> ReminderId:
        """Schedule one notification at `trigger` and return its handle."""

    async def async_dispatch_cancel(self, handle: ReminderId) -> None:
        """Cancel a previously scheduled notification."""


RecordsMapping = Mapping[LedgerKey, AdherenceRecord]
