"""Config flow for Prayer Location integration."""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback, valid_entity_id

from .const import (
    CALC_METHODS,
    CONF_CALCULATION_METHOD,
    CONF_ENTRY_NAME,
    CONF_LANGUAGE,
    CONF_LOCATION_ENTITY,
    CONF_NOTIFICATION_LEAD,
    CONF_NOTIFY_SERVICE,
    DEFAULT_CALCULATION_METHOD,
    DEFAULT_ENTRY_NAME,
    DEFAULT_LANGUAGE,
    DEFAULT_LOCATION_ENTITY,
    DEFAULT_NOTIFICATION_LEAD,
    DOMAIN,
)

lead_minutes = vol.All(vol.Coerce(int), vol.Range(min=0, max=120))
calculation_method = vol.All(vol.Coerce(int), vol.In(CALC_METHODS))

_LOGGER = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    CONF_ENTRY_NAME: DEFAULT_ENTRY_NAME,
    CONF_LOCATION_ENTITY: DEFAULT_LOCATION_ENTITY,
    CONF_LANGUAGE: DEFAULT_LANGUAGE,
    CONF_CALCULATION_METHOD: DEFAULT_CALCULATION_METHOD,
    CONF_NOTIFY_SERVICE: '',
    CONF_NOTIFICATION_LEAD: DEFAULT_NOTIFICATION_LEAD,
}


def _build_schema(defaults: Dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_ENTRY_NAME, default=defaults[CONF_ENTRY_NAME]): cv.string,
            vol.Required(CONF_LOCATION_ENTITY, default=defaults[CONF_LOCATION_ENTITY]): cv.string,
            vol.Required(CONF_LANGUAGE, default=defaults[CONF_LANGUAGE]): cv.string,
            vol.Required(CONF_CALCULATION_METHOD, default=defaults[CONF_CALCULATION_METHOD]): calculation_method,
            vol.Optional(CONF_NOTIFY_SERVICE, default=defaults[CONF_NOTIFY_SERVICE]): cv.string,
            vol.Required(CONF_NOTIFICATION_LEAD, default=defaults[CONF_NOTIFICATION_LEAD]): lead_minutes,
        }
    )


CONFIG_SCHEMA = _build_schema(DEFAULTS)


def _validate(user_input: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    # If entry_name is null or empty string, add error
    if not user_input.get(CONF_ENTRY_NAME):
        errors['base'] = 'entry_name_required'
    # Location entity must be a well-formed entity id carrying coordinates
    elif not valid_entity_id(user_input.get(CONF_LOCATION_ENTITY) or ''):
        errors['base'] = 'invalid_location_entity'
    elif not user_input.get(CONF_LANGUAGE):
        errors['base'] = 'language_required'
    return errors


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            self.data = dict(user_input)
            # Create new guid for the entry
            self.data['guid'] = str(uuid.uuid4())
            errors = _validate(self.data)
            if not errors:
                # One entry per location entity and calculation method
                self._async_abort_entries_match({
                    CONF_LOCATION_ENTITY: self.data[CONF_LOCATION_ENTITY],
                    CONF_CALCULATION_METHOD: self.data[CONF_CALCULATION_METHOD],
                })
                return self.async_create_entry(title=f"{self.data[CONF_ENTRY_NAME]}", data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._entry = config_entry

    def _defaults(self) -> Dict[str, Any]:
        # Options override data, data overrides the built-in defaults
        defaults = dict(DEFAULTS)
        for key in DEFAULTS:
            if key in self._entry.data:
                defaults[key] = self._entry.data[key]
            if key in self._entry.options:
                defaults[key] = self._entry.options[key]
        return defaults

    async def async_step_init(
        self, user_input: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        errors: Dict[str, str] = {}

        if user_input is not None:
            errors = _validate(user_input)
            if not errors:
                new_data = {'guid': self._entry.data['guid'], **user_input}

                # Rename the entry in the UI
                self.hass.config_entries.async_update_entry(
                    self._entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )

                return self.async_create_entry(title=f"{new_data[CONF_ENTRY_NAME]}", data=new_data)

        return self.async_show_form(step_id="init", data_schema=_build_schema(self._defaults()), errors=errors)
