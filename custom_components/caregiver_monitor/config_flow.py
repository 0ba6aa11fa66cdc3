"""Config flow for Caregiver Monitor integration."""
from __future__ import annotations

from urllib.parse import urlparse

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback

from .const import (
    CONF_API_KEY,
    CONF_AUTH_TOKEN,
    CONF_DATABASE_URL,
    CONF_DEVICE_ID,
    CONF_EVENT_TYPE_FILTER,
    CONF_MODEL,
    CONF_SUMMARY_ENABLED,
    CONF_TIME_RANGE_FILTER,
    DEFAULT_MODEL,
    DEFAULT_SUMMARY_ENABLED,
    DOMAIN,
    EVENT_TYPE_FILTERS,
    FILTER_ALL,
    TIME_RANGE_FILTERS,
)


def _normalize_url(value: str) -> str:
    url = (value or "").strip().rstrip("/")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise vol.Invalid(f"Invalid database URL: {value}")
    return url


def _clean_device_id(value: str) -> str:
    device_id = (value or "").strip().strip("/")
    # path separators and RTDB-reserved characters would escape the device node
    if any(ch in device_id for ch in "/.#$[]"):
        raise vol.Invalid(f"Invalid device id: {value}")
    return device_id


class CaregiverMonitorConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    async def async_step_user(self, user_input=None):
        errors = {}
        if user_input is not None:
            device_id = url = ""
            try:
                device_id = _clean_device_id(user_input.get(CONF_DEVICE_ID, ""))
            except vol.Invalid:
                errors[CONF_DEVICE_ID] = "invalid_device_id"
            try:
                url = _normalize_url(user_input.get(CONF_DATABASE_URL, ""))
            except vol.Invalid:
                errors[CONF_DATABASE_URL] = "invalid_url"
            if not errors:
                if not device_id:
                    errors[CONF_DEVICE_ID] = "required"
                else:
                    await self.async_set_unique_id(device_id)
                    self._abort_if_unique_id_configured()
                    data = {
                        CONF_DEVICE_ID: device_id,
                        CONF_DATABASE_URL: url,
                        CONF_AUTH_TOKEN: (user_input.get(CONF_AUTH_TOKEN) or "").strip(),
                        CONF_API_KEY: (user_input.get(CONF_API_KEY) or "").strip(),
                        CONF_MODEL: (user_input.get(CONF_MODEL) or "").strip() or DEFAULT_MODEL,
                    }
                    return self.async_create_entry(title=f"Medicine Box {device_id}", data=data)

        schema = vol.Schema(
            {
                vol.Required(CONF_DEVICE_ID): str,
                vol.Required(
                    CONF_DATABASE_URL,
                    description={
                        "suggested_value": "https://my-project-default-rtdb.firebaseio.com",
                    },
                ): str,
                vol.Optional(CONF_AUTH_TOKEN, default=""): str,
                vol.Optional(CONF_API_KEY, default=""): str,
                vol.Optional(CONF_MODEL, default=DEFAULT_MODEL): str,
            }
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry):
        return CaregiverMonitorOptionsFlow()


class CaregiverMonitorOptionsFlow(config_entries.OptionsFlow):
    async def async_step_init(self, user_input=None):
        if user_input is not None:
            return self.async_create_entry(
                title="",
                data={
                    CONF_EVENT_TYPE_FILTER: user_input.get(CONF_EVENT_TYPE_FILTER, FILTER_ALL),
                    CONF_TIME_RANGE_FILTER: user_input.get(CONF_TIME_RANGE_FILTER, FILTER_ALL),
                    CONF_SUMMARY_ENABLED: bool(user_input.get(CONF_SUMMARY_ENABLED, DEFAULT_SUMMARY_ENABLED)),
                },
            )

        options = self.config_entry.options
        schema = vol.Schema(
            {
                vol.Optional(
                    CONF_EVENT_TYPE_FILTER, default=options.get(CONF_EVENT_TYPE_FILTER, FILTER_ALL)
                ): vol.In(EVENT_TYPE_FILTERS),
                vol.Optional(
                    CONF_TIME_RANGE_FILTER, default=options.get(CONF_TIME_RANGE_FILTER, FILTER_ALL)
                ): vol.In(TIME_RANGE_FILTERS),
                vol.Optional(
                    CONF_SUMMARY_ENABLED, default=options.get(CONF_SUMMARY_ENABLED, DEFAULT_SUMMARY_ENABLED)
                ): bool,
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema)
