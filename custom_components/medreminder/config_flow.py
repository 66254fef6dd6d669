# File: config_flow.py
"""Config flow for the MedReminder integration.

A single instance holds the reminder settings: the notify service reminders
are delivered through, the time zone schedules default to, the number of
occurrences issued per schedule and the polling interval. The options flow
edits the same settings and reloads the entry.
"""

from typing import Any, Optional

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import HomeAssistant, callback

from . import const
from .utils.dt_utils import get_time_zone

# pylint: disable=abstract-method


def build_settings_schema(defaults: dict[str, Any]) -> vol.Schema:
    """Return the settings form schema pre-filled with `defaults`."""
    return vol.Schema(
        {
            vol.Required(
                const.CONF_NOTIFY_SERVICE,
                default=defaults.get(
                    const.CONF_NOTIFY_SERVICE, const.DEFAULT_NOTIFY_SERVICE
                ),
            ): str,
            vol.Optional(
                const.CONF_TIME_ZONE,
                default=defaults.get(const.CONF_TIME_ZONE, ""),
            ): str,
            vol.Required(
                const.CONF_OCCURRENCE_COUNT,
                default=defaults.get(
                    const.CONF_OCCURRENCE_COUNT, const.DEFAULT_OCCURRENCE_COUNT
                ),
            ): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=const.MAX_OCCURRENCE_COUNT)
            ),
            vol.Required(
                const.CONF_UPDATE_INTERVAL,
                default=defaults.get(
                    const.CONF_UPDATE_INTERVAL, const.DEFAULT_UPDATE_INTERVAL
                ),
            ): vol.All(vol.Coerce(int), vol.Range(min=5)),
        }
    )


def validate_settings(hass: HomeAssistant, user_input: dict[str, Any]) -> dict[str, str]:
    """Validate the settings form and return field errors."""
    errors: dict[str, str] = {}

    notify_service = user_input.get(const.CONF_NOTIFY_SERVICE, "")
    if "." in notify_service:
        domain, service = notify_service.split(".", 1)
    else:
        domain, service = const.NOTIFY_DOMAIN, notify_service
    if domain != const.NOTIFY_DOMAIN or not hass.services.has_service(domain, service):
        errors[const.CONF_NOTIFY_SERVICE] = const.ERROR_INVALID_NOTIFY_SERVICE

    time_zone = user_input.get(const.CONF_TIME_ZONE)
    if time_zone:
        try:
            get_time_zone(time_zone)
        except ValueError:
            errors[const.CONF_TIME_ZONE] = const.ERROR_INVALID_TIME_ZONE

    return errors


class MedReminderConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for MedReminder."""

    VERSION = 1

    async def async_step_user(self, user_input: Optional[dict[str, Any]] = None):
        """Collect the reminder settings."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_settings(self.hass, user_input)
            if not errors:
                const.LOGGER.debug("DEBUG: Creating MedReminder entry: %s", user_input)
                return self.async_create_entry(
                    title=const.MEDREMINDER_TITLE, data={}, options=user_input
                )

        return self.async_show_form(
            step_id="user",
            data_schema=build_settings_schema(user_input or {}),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Return the Options Flow."""
        return MedReminderOptionsFlowHandler(config_entry)


class MedReminderOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow editing the reminder settings."""

    def __init__(self, _config_entry: config_entries.ConfigEntry):
        """Initialize the options flow."""
        self._entry_options: dict[str, Any] = {}

    async def async_step_init(self, user_input: Optional[dict[str, Any]] = None):
        """Show the settings form pre-filled with the current options."""
        self._entry_options = dict(self.config_entry.options)

        errors: dict[str, str] = {}
        if user_input is not None:
            errors = validate_settings(self.hass, user_input)
            if not errors:
                self._entry_options.update(user_input)
                const.LOGGER.debug(
                    "DEBUG: Updating MedReminder options: %s", self._entry_options
                )
                return self.async_create_entry(title="", data=self._entry_options)

        return self.async_show_form(
            step_id="init",
            data_schema=build_settings_schema(user_input or self._entry_options),
            errors=errors,
        )
