# File: services.py
"""Defines custom services for the MedReminder integration.

These services allow direct actions through scripts or automations: managing
medicines and raw schedules, and recording dose outcomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from . import const

if TYPE_CHECKING:
    from .coordinator import MedReminderCoordinator
    from .type_defs import ScheduleSpec

# --- Service Schemas ---
OCCURRENCE_COUNT_VALIDATOR = vol.All(
    vol.Coerce(int), vol.Range(min=1, max=const.MAX_OCCURRENCE_COUNT)
)

ADD_MEDICINE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_MEDICINE_ID): cv.string,
        vol.Required(const.FIELD_NAME): cv.string,
        vol.Required(const.FIELD_FREQUENCY): cv.string,
        vol.Required(const.FIELD_DOSE_TIMES): vol.All(cv.ensure_list, [cv.string]),
        vol.Optional(const.FIELD_START_DATE): cv.string,
        vol.Optional(const.FIELD_TIMEZONE): cv.string,
        vol.Optional(const.FIELD_BODY): cv.string,
    }
)

REMOVE_MEDICINE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_MEDICINE_ID): cv.string,
    }
)

RESCHEDULE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SCHEDULE_ID): cv.string,
        vol.Required(const.FIELD_DTSTART): cv.string,
        vol.Required(const.FIELD_RRULE): cv.string,
        vol.Optional(const.FIELD_MEDICINE_ID): cv.string,
        vol.Optional(const.FIELD_TITLE, default=""): cv.string,
        vol.Optional(const.FIELD_BODY, default=""): cv.string,
        vol.Optional(const.FIELD_TIMEZONE): cv.string,
        vol.Optional(const.FIELD_OCCURRENCE_COUNT): OCCURRENCE_COUNT_VALIDATOR,
    }
)

CANCEL_SCHEDULE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SCHEDULE_ID): cv.string,
    }
)

SET_DOSE_TAKEN_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_MEDICINE_ID): cv.string,
        vol.Required(const.FIELD_DATE): cv.string,
        vol.Required(const.FIELD_TIME): cv.string,
        vol.Required(const.FIELD_TAKEN): cv.boolean,
    }
)

TOGGLE_DOSE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_MEDICINE_ID): cv.string,
        vol.Required(const.FIELD_DATE): cv.string,
        vol.Required(const.FIELD_TIME): cv.string,
    }
)

COMPLETE_REMINDER_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SCHEDULE_ID): cv.string,
        vol.Required(const.FIELD_REMINDER_ID): cv.string,
        vol.Optional(const.FIELD_TAKEN, default=True): cv.boolean,
    }
)


def get_first_medreminder_entry(hass: HomeAssistant) -> str | None:
    """Retrieve the first MedReminder config entry ID."""
    domain_entries = hass.data.get(const.DOMAIN)
    if not domain_entries:
        return None
    return next(iter(domain_entries.keys()), None)


def _get_coordinator(hass: HomeAssistant, service: str) -> MedReminderCoordinator:
    """Return the coordinator of the first loaded entry.

    Raises:
        HomeAssistantError: If no entry is loaded.
    """
    entry_id = get_first_medreminder_entry(hass)
    if not entry_id:
        const.LOGGER.warning("WARNING: %s: %s", service, const.MSG_NO_ENTRY_FOUND)
        raise HomeAssistantError(const.MSG_NO_ENTRY_FOUND)
    return hass.data[const.DOMAIN][entry_id][const.COORDINATOR]


def async_setup_services(hass: HomeAssistant):
    """Register MedReminder services."""

    async def handle_add_medicine(call: ServiceCall):
        """Handle adding or editing a medicine."""
        coordinator = _get_coordinator(hass, "Add Medicine")
        try:
            await coordinator.async_add_medicine(
                medicine_id=call.data[const.FIELD_MEDICINE_ID],
                name=call.data[const.FIELD_NAME],
                frequency=call.data[const.FIELD_FREQUENCY],
                dose_times=call.data[const.FIELD_DOSE_TIMES],
                start_date=call.data.get(const.FIELD_START_DATE),
                timezone=call.data.get(const.FIELD_TIMEZONE),
                body=call.data.get(const.FIELD_BODY),
            )
        except ValueError as err:
            const.LOGGER.warning("WARNING: Add Medicine: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    async def handle_remove_medicine(call: ServiceCall):
        """Handle removing a medicine."""
        coordinator = _get_coordinator(hass, "Remove Medicine")
        try:
            await coordinator.async_remove_medicine(call.data[const.FIELD_MEDICINE_ID])
        except ValueError as err:
            const.LOGGER.warning("WARNING: Remove Medicine: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    async def handle_reschedule(call: ServiceCall):
        """Handle issuing reminders for a raw schedule."""
        coordinator = _get_coordinator(hass, "Reschedule")
        spec: ScheduleSpec = {
            const.DATA_SCHEDULE_ID: call.data[const.FIELD_SCHEDULE_ID],
            const.DATA_SCHEDULE_TITLE: call.data[const.FIELD_TITLE],
            const.DATA_SCHEDULE_BODY: call.data[const.FIELD_BODY],
            const.DATA_SCHEDULE_DTSTART: call.data[const.FIELD_DTSTART],
            const.DATA_SCHEDULE_TIMEZONE: call.data.get(const.FIELD_TIMEZONE, ""),
            const.DATA_SCHEDULE_RRULE: call.data[const.FIELD_RRULE],
            const.DATA_SCHEDULE_OCCURRENCE_COUNT: call.data.get(
                const.FIELD_OCCURRENCE_COUNT,
                coordinator.schedule_manager.occurrence_count,
            ),
        }
        if call.data.get(const.FIELD_MEDICINE_ID):
            spec[const.DATA_SCHEDULE_MEDICINE_ID] = call.data[const.FIELD_MEDICINE_ID]

        try:
            handles = await coordinator.async_reschedule(spec)
        except ValueError as err:
            const.LOGGER.warning("WARNING: Reschedule: %s", err)
            raise HomeAssistantError(str(err)) from err

        const.LOGGER.info(
            "INFO: Reschedule: '%s' has %d pending reminders",
            spec[const.DATA_SCHEDULE_ID],
            len(handles),
        )
        await coordinator.async_request_refresh()

    async def handle_cancel_schedule(call: ServiceCall):
        """Handle cancelling a schedule's reminders."""
        coordinator = _get_coordinator(hass, "Cancel Schedule")
        try:
            await coordinator.async_cancel(call.data[const.FIELD_SCHEDULE_ID])
        except ValueError as err:
            const.LOGGER.warning("WARNING: Cancel Schedule: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    async def handle_set_dose_taken(call: ServiceCall):
        """Handle recording a dose outcome."""
        coordinator = _get_coordinator(hass, "Set Dose Taken")
        try:
            await coordinator.async_set_taken(
                call.data[const.FIELD_MEDICINE_ID],
                call.data[const.FIELD_DATE],
                call.data[const.FIELD_TIME],
                call.data[const.FIELD_TAKEN],
            )
        except ValueError as err:
            const.LOGGER.warning("WARNING: Set Dose Taken: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    async def handle_toggle_dose(call: ServiceCall):
        """Handle flipping a dose outcome."""
        coordinator = _get_coordinator(hass, "Toggle Dose")
        try:
            await coordinator.async_toggle_taken(
                call.data[const.FIELD_MEDICINE_ID],
                call.data[const.FIELD_DATE],
                call.data[const.FIELD_TIME],
            )
        except ValueError as err:
            const.LOGGER.warning("WARNING: Toggle Dose: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    async def handle_complete_reminder(call: ServiceCall):
        """Handle completing a delivered reminder."""
        coordinator = _get_coordinator(hass, "Complete Reminder")
        try:
            await coordinator.async_complete_reminder(
                call.data[const.FIELD_SCHEDULE_ID],
                call.data[const.FIELD_REMINDER_ID],
                call.data[const.FIELD_TAKEN],
            )
        except ValueError as err:
            const.LOGGER.warning("WARNING: Complete Reminder: %s", err)
            raise HomeAssistantError(str(err)) from err
        await coordinator.async_request_refresh()

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_ADD_MEDICINE,
        handle_add_medicine,
        schema=ADD_MEDICINE_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REMOVE_MEDICINE,
        handle_remove_medicine,
        schema=REMOVE_MEDICINE_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RESCHEDULE,
        handle_reschedule,
        schema=RESCHEDULE_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CANCEL_SCHEDULE,
        handle_cancel_schedule,
        schema=CANCEL_SCHEDULE_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_SET_DOSE_TAKEN,
        handle_set_dose_taken,
        schema=SET_DOSE_TAKEN_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_TOGGLE_DOSE,
        handle_toggle_dose,
        schema=TOGGLE_DOSE_SCHEMA,
    )

    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_COMPLETE_REMINDER,
        handle_complete_reminder,
        schema=COMPLETE_REMINDER_SCHEMA,
    )

    const.LOGGER.info("INFO: MedReminder services have been registered successfully")


async def async_unload_services(hass: HomeAssistant):
    """Unregister MedReminder services when unloading the integration."""
    services = [
        const.SERVICE_ADD_MEDICINE,
        const.SERVICE_REMOVE_MEDICINE,
        const.SERVICE_RESCHEDULE,
        const.SERVICE_CANCEL_SCHEDULE,
        const.SERVICE_SET_DOSE_TAKEN,
        const.SERVICE_TOGGLE_DOSE,
        const.SERVICE_COMPLETE_REMINDER,
    ]

    for service in services:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: MedReminder services have been unregistered")
