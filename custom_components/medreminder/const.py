# File: const.py
"""Constants for the MedReminder integration.

This file centralizes configuration keys, defaults, storage keys, service
names, status values and frequency identifiers for consistency across the
integration.
"""

import logging

import homeassistant.util.dt as dt_util
from homeassistant.const import Platform

from .utils import dt_utils


def set_default_timezone(hass, time_zone: str | None = None):
    """Set the default timezone from the entry option or Home Assistant config.

    Also configures the pure dt_utils module so engines share the same zone.
    """
    global DEFAULT_TIME_ZONE
    DEFAULT_TIME_ZONE = dt_util.get_time_zone(
        time_zone or hass.config.time_zone
    ) or dt_util.get_time_zone(hass.config.time_zone)
    if DEFAULT_TIME_ZONE is not None:
        dt_utils.set_default_timezone(DEFAULT_TIME_ZONE)


# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
MEDREMINDER_TITLE = "MedReminder"

DOMAIN = "medreminder"

LOGGER = logging.getLogger(__package__)

PLATFORMS = [
    Platform.SENSOR,
]

# Coordinator
COORDINATOR = "coordinator"
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORE = "store"
STORAGE_KEY = "medreminder_data"
STORAGE_VERSION = 1

# Default timezone: initially None, to be set once hass is available.
DEFAULT_TIME_ZONE = None

# ------------------------------------------------------------------------------------------------
# Key-value store keys
# ------------------------------------------------------------------------------------------------
STORE_KEY_SCHEDULE_PREFIX = "schedule:"
STORE_KEY_ADHERENCE_HISTORY = "adherence_history"
STORE_KEY_MEDICINES = "medicines"
STORE_KEY_SCHEDULES = "schedules"

# ------------------------------------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------------------------------------
CONF_NOTIFY_SERVICE = "notify_service"
CONF_TIME_ZONE = "time_zone"
CONF_OCCURRENCE_COUNT = "occurrence_count"
CONF_UPDATE_INTERVAL = "update_interval_seconds"

DEFAULT_NOTIFY_SERVICE = "notify.notify"
DEFAULT_OCCURRENCE_COUNT = 10
DEFAULT_UPDATE_INTERVAL = 30
DEFAULT_ADHERENCE_WINDOW_DAYS = 30

MAX_OCCURRENCE_COUNT = 100

# ------------------------------------------------------------------------------------------------
# Frequencies
# ------------------------------------------------------------------------------------------------
FREQUENCY_DAILY = "daily"
FREQUENCY_EVERY_OTHER_DAY = "every_other_day"
FREQUENCY_ONCE_WEEK = "once_week"
FREQUENCY_TWICE_WEEK = "twice_week"

FREQUENCY_OPTIONS = [
    FREQUENCY_DAILY,
    FREQUENCY_EVERY_OTHER_DAY,
    FREQUENCY_ONCE_WEEK,
    FREQUENCY_TWICE_WEEK,
]

# Free-text spellings accepted alongside the canonical identifiers
FREQUENCY_ALIASES = {
    "every other day": FREQUENCY_EVERY_OTHER_DAY,
    "once weekly": FREQUENCY_ONCE_WEEK,
    "once a week": FREQUENCY_ONCE_WEEK,
    "twice weekly": FREQUENCY_TWICE_WEEK,
    "twice a week": FREQUENCY_TWICE_WEEK,
}

FREQUENCY_LABELS = {
    FREQUENCY_DAILY: "Daily",
    FREQUENCY_EVERY_OTHER_DAY: "Every Other Day",
    FREQUENCY_TWICE_WEEK: "Twice a Week",
    FREQUENCY_ONCE_WEEK: "Once a Week",
}

# Second weekly slot of a twice-weekly schedule, in days after the anchor day
TWICE_WEEKLY_OFFSET_DAYS = 3

RRULE_WEEKDAY_CODES = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]

# ------------------------------------------------------------------------------------------------
# Schedule / reminder / record fields
# ------------------------------------------------------------------------------------------------
DATA_SCHEDULE_ID = "schedule_id"
DATA_SCHEDULE_MEDICINE_ID = "medicine_id"
DATA_SCHEDULE_TITLE = "title"
DATA_SCHEDULE_BODY = "body"
DATA_SCHEDULE_DTSTART = "dtstart"
DATA_SCHEDULE_TIMEZONE = "timezone"
DATA_SCHEDULE_RRULE = "rrule"
DATA_SCHEDULE_OCCURRENCE_COUNT = "occurrence_count"

DATA_REMINDER_ID = "id"
DATA_REMINDER_SCHEDULE_ID = "schedule_id"
DATA_REMINDER_TRIGGER = "trigger"
DATA_REMINDER_DELIVERED = "delivered"
DATA_REMINDER_COMPLETED = "completed"

DATA_RECORD_MEDICINE_ID = "medicine_id"
DATA_RECORD_DATE = "date"
DATA_RECORD_TIME = "time"
DATA_RECORD_TAKEN = "taken"
DATA_RECORD_RECORDED_AT = "recorded_at"

DATA_MEDICINE_ID = "medicine_id"
DATA_MEDICINE_NAME = "name"
DATA_MEDICINE_BODY = "body"
DATA_MEDICINE_FREQUENCY = "frequency"
DATA_MEDICINE_DOSE_TIMES = "dose_times"
DATA_MEDICINE_START_DATE = "start_date"
DATA_MEDICINE_TIMEZONE = "timezone"
DATA_MEDICINE_SCHEDULE_IDS = "schedule_ids"

# Notification content keys
NOTIFY_DOMAIN = "notify"
NOTIFY_TITLE = "title"
NOTIFY_MESSAGE = "message"
NOTIFY_DATA = "data"
NOTIFY_ACTIONS = "actions"
NOTIFY_ACTION = "action"
NOTIFY_TAG = "tag"

# ------------------------------------------------------------------------------------------------
# Statuses
# ------------------------------------------------------------------------------------------------
DAY_STATUS_COMPLETE = "complete"
DAY_STATUS_PARTIAL = "partial"
DAY_STATUS_MISSED = "missed"
DAY_STATUS_NO_DATA = "no-data"

DOSE_STATUS_TAKEN = "taken"
DOSE_STATUS_MISSED = "missed"
DOSE_STATUS_PENDING = "pending"

REMINDER_STATE_SCHEDULED = "scheduled"
REMINDER_STATE_TRIGGERED = "triggered"
REMINDER_STATE_COMPLETED = "completed"

# Calendar dot colors per dose status
DOT_COLOR_TAKEN = "#34C759"
DOT_COLOR_MISSED = "#FF3B30"
DOT_COLOR_PENDING = "#C7C7CC"

DOSE_STATUS_DOT_COLORS = {
    DOSE_STATUS_TAKEN: DOT_COLOR_TAKEN,
    DOSE_STATUS_MISSED: DOT_COLOR_MISSED,
    DOSE_STATUS_PENDING: DOT_COLOR_PENDING,
}

# ------------------------------------------------------------------------------------------------
# Events / signals
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_REMINDER_TRIGGERED = "reminder_triggered"
SIGNAL_SUFFIX_ADHERENCE_CHANGED = "adherence_changed"
SIGNAL_SUFFIX_SCHEDULE_CHANGED = "schedule_changed"

NOTIFICATION_EVENT = "mobile_app_notification_action"

ACTION_DOSE_TAKEN = "MEDREMINDER_TAKEN"
ACTION_DOSE_MISSED = "MEDREMINDER_MISSED"
ACTION_SEPARATOR = "|"
ACTION_TITLE_TAKEN = "Taken"
ACTION_TITLE_MISSED = "Missed"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_ADD_MEDICINE = "add_medicine"
SERVICE_REMOVE_MEDICINE = "remove_medicine"
SERVICE_RESCHEDULE = "reschedule"
SERVICE_CANCEL_SCHEDULE = "cancel_schedule"
SERVICE_SET_DOSE_TAKEN = "set_dose_taken"
SERVICE_TOGGLE_DOSE = "toggle_dose"
SERVICE_COMPLETE_REMINDER = "complete_reminder"

FIELD_MEDICINE_ID = "medicine_id"
FIELD_NAME = "name"
FIELD_BODY = "body"
FIELD_FREQUENCY = "frequency"
FIELD_DOSE_TIMES = "dose_times"
FIELD_START_DATE = "start_date"
FIELD_SCHEDULE_ID = "schedule_id"
FIELD_TITLE = "title"
FIELD_DTSTART = "dtstart"
FIELD_TIMEZONE = "timezone"
FIELD_RRULE = "rrule"
FIELD_OCCURRENCE_COUNT = "occurrence_count"
FIELD_DATE = "date"
FIELD_TIME = "time"
FIELD_TAKEN = "taken"
FIELD_REMINDER_ID = "reminder_id"

# ------------------------------------------------------------------------------------------------
# Sensors
# ------------------------------------------------------------------------------------------------
SENSOR_UID_SUFFIX_ADHERENCE_RATE = "_adherence_rate"
SENSOR_UID_SUFFIX_STREAK = "_adherence_streak"
SENSOR_UID_SUFFIX_TODAY_STATUS = "_today_status"
SENSOR_UID_SUFFIX_PENDING_REMINDERS = "_pending_reminders"

TRANS_KEY_SENSOR_ADHERENCE_RATE = "adherence_rate"
TRANS_KEY_SENSOR_ADHERENCE_STREAK = "adherence_streak"
TRANS_KEY_SENSOR_TODAY_STATUS = "today_status"
TRANS_KEY_SENSOR_PENDING_REMINDERS = "pending_reminders"

ATTR_DESCRIPTION = "description"
ATTR_WINDOW_DAYS = "window_days"
ATTR_START_DATE = "start_date"
ATTR_END_DATE = "end_date"
ATTR_DOSES = "doses"
ATTR_DOTS = "dots"
ATTR_REMINDERS = "reminders"

SUMMARY_ADHERENCE_RATE = "adherence_rate"
SUMMARY_STREAK = "streak"
SUMMARY_TODAY = "today"
SUMMARY_TODAY_STATUS = "today_status"
SUMMARY_TODAY_DOSES = "today_doses"
SUMMARY_TODAY_DOTS = "today_dots"
SUMMARY_PENDING_REMINDERS = "pending_reminders"
SUMMARY_WINDOW_START = "window_start"

# ------------------------------------------------------------------------------------------------
# Errors / messages
# ------------------------------------------------------------------------------------------------
MSG_NO_ENTRY_FOUND = "No MedReminder entry found"
ERROR_MEDICINE_NOT_FOUND_FMT = "Medicine '{}' not found"
ERROR_REMINDER_NOT_FOUND_FMT = "Reminder '{}' not found for schedule '{}'"
ERROR_SINGLE_INSTANCE = "single_instance_allowed"
ERROR_INVALID_NOTIFY_SERVICE = "invalid_notify_service"
ERROR_INVALID_TIME_ZONE = "invalid_time_zone"

DISPLAY_UNKNOWN_MEDICINE = "Unknown Medicine"
