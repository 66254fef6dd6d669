"""Manager modules for MedReminder integration.

Managers orchestrate workflows and coordinate between engines.
They are stateful, event-aware, and own persistence of their data.
"""

from .adherence_manager import AdherenceManager
from .base_manager import BaseManager
from .notification_manager import NotificationManager
from .reminder_manager import ReminderManager
from .schedule_manager import ScheduleManager

__all__ = [
    "AdherenceManager",
    "BaseManager",
    "NotificationManager",
    "ReminderManager",
    "ScheduleManager",
]
