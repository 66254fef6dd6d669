# File: sensor.py
"""Sensors for the MedReminder integration.

Sensors Defined in This File (4):

01. AdherenceRateSensor
02. AdherenceStreakSensor
03. TodayStatusSensor
04. PendingRemindersSensor

All values come from the coordinator's polled summary; sensors never mutate
state.
"""

from typing import Any

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import MedReminderCoordinator
from .entity import MedReminderCoordinatorEntity


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities
):
    """Set up sensors for MedReminder integration."""
    data = hass.data[const.DOMAIN][entry.entry_id]
    coordinator: MedReminderCoordinator = data[const.COORDINATOR]

    async_add_entities(
        [
            AdherenceRateSensor(coordinator),
            AdherenceStreakSensor(coordinator),
            TodayStatusSensor(coordinator),
            PendingRemindersSensor(coordinator),
        ]
    )


# ------------------------------------------------------------------------------------------
class AdherenceRateSensor(MedReminderCoordinatorEntity, SensorEntity):
    """Share of recorded doses taken over the rolling adherence window."""

    _attr_translation_key = const.TRANS_KEY_SENSOR_ADHERENCE_RATE
    _attr_icon = "mdi:pill"
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: MedReminderCoordinator):
        """Initialize the sensor."""
        super().__init__(coordinator, const.SENSOR_UID_SUFFIX_ADHERENCE_RATE)

    @property
    def native_value(self) -> int | None:
        """Return the adherence percentage."""
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get(const.SUMMARY_ADHERENCE_RATE)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose the window the rate covers."""
        summary = self.coordinator.data or {}
        return {
            const.ATTR_DESCRIPTION: "Doses recorded as taken in the last 30 days",
            const.ATTR_WINDOW_DAYS: const.DEFAULT_ADHERENCE_WINDOW_DAYS,
            const.ATTR_START_DATE: summary.get(const.SUMMARY_WINDOW_START),
            const.ATTR_END_DATE: summary.get(const.SUMMARY_TODAY),
        }


# ------------------------------------------------------------------------------------------
class AdherenceStreakSensor(MedReminderCoordinatorEntity, SensorEntity):
    """Consecutive days, ending today, on which every recorded dose was taken."""

    _attr_translation_key = const.TRANS_KEY_SENSOR_ADHERENCE_STREAK
    _attr_native_unit_of_measurement = "days"
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: MedReminderCoordinator):
        """Initialize the sensor."""
        super().__init__(coordinator, const.SENSOR_UID_SUFFIX_STREAK)

    @property
    def native_value(self) -> int | None:
        """Return the current streak."""
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get(const.SUMMARY_STREAK)

    @property
    def icon(self) -> str:
        """Return a fire icon while a streak is running."""
        return "mdi:fire" if self.native_value else "mdi:fire-off"


# ------------------------------------------------------------------------------------------
class TodayStatusSensor(MedReminderCoordinatorEntity, SensorEntity):
    """Today's day status with every expected dose and its calendar dot."""

    _attr_translation_key = const.TRANS_KEY_SENSOR_TODAY_STATUS
    _attr_icon = "mdi:calendar-check"

    def __init__(self, coordinator: MedReminderCoordinator):
        """Initialize the sensor."""
        super().__init__(coordinator, const.SENSOR_UID_SUFFIX_TODAY_STATUS)

    @property
    def native_value(self) -> str | None:
        """Return complete, partial, missed or no-data."""
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get(const.SUMMARY_TODAY_STATUS)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose today's dose slots and per-medicine dot colors."""
        summary = self.coordinator.data or {}
        return {
            const.ATTR_DOSES: summary.get(const.SUMMARY_TODAY_DOSES, []),
            const.ATTR_DOTS: summary.get(const.SUMMARY_TODAY_DOTS, {}),
        }


# ------------------------------------------------------------------------------------------
class PendingRemindersSensor(MedReminderCoordinatorEntity, SensorEntity):
    """Delivered reminders still awaiting a Taken or Missed answer."""

    _attr_translation_key = const.TRANS_KEY_SENSOR_PENDING_REMINDERS
    _attr_icon = "mdi:bell-ring"
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: MedReminderCoordinator):
        """Initialize the sensor."""
        super().__init__(coordinator, const.SENSOR_UID_SUFFIX_PENDING_REMINDERS)

    @property
    def native_value(self) -> int:
        """Return how many reminders are pending."""
        summary = self.coordinator.data or {}
        return len(summary.get(const.SUMMARY_PENDING_REMINDERS, []))

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose the pending reminders."""
        summary = self.coordinator.data or {}
        return {const.ATTR_REMINDERS: summary.get(const.SUMMARY_PENDING_REMINDERS, [])}
