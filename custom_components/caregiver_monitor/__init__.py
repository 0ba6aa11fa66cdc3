"""Caregiver Monitor integration for Home Assistant."""
from __future__ import annotations

import logging

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse, callback
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.dispatcher import async_dispatcher_connect, async_dispatcher_send

from .const import (
    ATTR_ENTRY_ID,
    ATTR_MESSAGE,
    ATTR_TEXT,
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
    EVENTS_PATH,
    MESSAGES_PATH,
    REMINDERS_PATH,
    SERVICE_ASK,
    SERVICE_CLEAR_CHAT,
    SERVICE_REFRESH_SUMMARY,
    SERVICE_SEND_MESSAGE,
    SERVICE_SET_FILTERS,
    SERVICES,
    SIGNAL_HISTORY_UPDATED,
    TIME_RANGE_FILTERS,
)
from .entity import report_for_entry
from .history import HistoryManager
from .store import RemoteStoreReader
from .summarizer import AISummarizerClient, SummaryManager

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["sensor"]

ENTRY_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})

ASK_SCHEMA = ENTRY_SCHEMA.extend({vol.Required(ATTR_MESSAGE): cv.string})

SET_FILTERS_SCHEMA = ENTRY_SCHEMA.extend(
    {
        vol.Optional(CONF_EVENT_TYPE_FILTER): vol.In(EVENT_TYPE_FILTERS),
        vol.Optional(CONF_TIME_RANGE_FILTER): vol.In(TIME_RANGE_FILTERS),
    }
)

SEND_MESSAGE_SCHEMA = ENTRY_SCHEMA.extend({vol.Required(ATTR_TEXT): cv.string})


def _request_summary(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Fire off a summary for the current report without waiting for it."""
    runtime = hass.data[DOMAIN]["entries"].get(entry.entry_id)
    if not runtime:
        return
    if not entry.options.get(CONF_SUMMARY_ENABLED, DEFAULT_SUMMARY_ENABLED):
        return
    history: HistoryManager = runtime["history"]
    summary: SummaryManager = runtime["summary"]
    if not summary.available or not history.has_data:
        return
    snapshot = report_for_entry(entry, history).snapshot()
    entry.async_create_background_task(
        hass, summary.async_refresh(snapshot), name=f"{DOMAIN} summary {entry.entry_id}"
    )


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Caregiver Monitor from a config entry."""
    store = hass.data.setdefault(DOMAIN, {})
    store.setdefault("entries", {})

    device_id: str = entry.data[CONF_DEVICE_ID]
    history = HistoryManager(hass, entry.entry_id, device_id)
    api_key = (entry.data.get(CONF_API_KEY) or "").strip()
    client = AISummarizerClient(hass, api_key, entry.data.get(CONF_MODEL) or DEFAULT_MODEL) if api_key else None
    reader = RemoteStoreReader(hass, entry.data[CONF_DATABASE_URL], entry.data.get(CONF_AUTH_TOKEN))
    store["entries"][entry.entry_id] = {
        "history": history,
        "summary": SummaryManager(hass, entry.entry_id, client),
        "reader": reader,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _LOGGER.debug("%s: sensor platform forwarded for entry %s", DOMAIN, entry.entry_id)

    @callback
    def _history_updated(entry_id: str):
        if entry_id == entry.entry_id:
            _request_summary(hass, entry)

    entry.async_on_unload(async_dispatcher_connect(hass, SIGNAL_HISTORY_UPDATED, _history_updated))
    entry.async_on_unload(reader.subscribe(REMINDERS_PATH.format(device_id=device_id), history.async_set_reminders))
    entry.async_on_unload(reader.subscribe(EVENTS_PATH.format(device_id=device_id), history.async_set_events))
    entry.async_on_unload(entry.add_update_listener(_options_updated))

    if not store.get("services_registered"):
        _register_services(hass)
        store["services_registered"] = True
        _LOGGER.debug("%s: services registered", DOMAIN)

    return True


async def _options_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    # Filters changed: sensors recompute and a new summary is requested
    async_dispatcher_send(hass, SIGNAL_HISTORY_UPDATED, entry.entry_id)


def _target_entries(hass: HomeAssistant, call: ServiceCall) -> list[ConfigEntry]:
    loaded = hass.data.get(DOMAIN, {}).get("entries", {})
    entry_id = call.data.get(ATTR_ENTRY_ID)
    if entry_id:
        if entry_id not in loaded:
            raise HomeAssistantError(f"Caregiver monitor entry not found: {entry_id}")
        ids = [entry_id]
    else:
        ids = list(loaded)
    if not ids:
        raise HomeAssistantError("No caregiver monitor configured")
    entries = []
    for eid in ids:
        entry = hass.config_entries.async_get_entry(eid)
        if entry is not None:
            entries.append(entry)
    return entries


def _single_entry(hass: HomeAssistant, call: ServiceCall) -> ConfigEntry:
    entries = _target_entries(hass, call)
    if len(entries) != 1:
        raise HomeAssistantError("Several devices configured; provide entry_id")
    return entries[0]


def _register_services(hass: HomeAssistant) -> None:
    def _runtime(entry: ConfigEntry) -> dict:
        return hass.data[DOMAIN]["entries"][entry.entry_id]

    async def refresh_summary(call: ServiceCall):
        for entry in _target_entries(hass, call):
            runtime = _runtime(entry)
            summary: SummaryManager = runtime["summary"]
            if not summary.available:
                raise HomeAssistantError(f"No AI API key configured for {entry.title}")
            snapshot = report_for_entry(entry, runtime["history"]).snapshot()
            await summary.async_refresh(snapshot)

    async def ask(call: ServiceCall) -> ServiceResponse:
        entry = _single_entry(hass, call)
        message = call.data[ATTR_MESSAGE].strip()
        if not message:
            raise HomeAssistantError("Message cannot be empty")
        runtime = _runtime(entry)
        snapshot = report_for_entry(entry, runtime["history"]).snapshot()
        reply = await runtime["summary"].async_ask(message, snapshot)
        return {"reply": reply}

    async def clear_chat(call: ServiceCall):
        for entry in _target_entries(hass, call):
            _runtime(entry)["summary"].clear_chat()

    async def set_filters(call: ServiceCall):
        updates = {
            key: call.data[key]
            for key in (CONF_EVENT_TYPE_FILTER, CONF_TIME_RANGE_FILTER)
            if key in call.data
        }
        if not updates:
            raise HomeAssistantError("Provide event_type_filter and/or time_range_filter")
        for entry in _target_entries(hass, call):
            hass.config_entries.async_update_entry(entry, options={**entry.options, **updates})

    async def send_message(call: ServiceCall):
        text = call.data[ATTR_TEXT].strip()
        if not text:
            raise HomeAssistantError("Message cannot be empty")
        for entry in _target_entries(hass, call):
            reader: RemoteStoreReader = _runtime(entry)["reader"]
            path = MESSAGES_PATH.format(device_id=entry.data[CONF_DEVICE_ID])
            # server-side timestamp placeholder
            await reader.async_push(path, {"text": text, "timestamp": {".sv": "timestamp"}})

    hass.services.async_register(DOMAIN, SERVICE_REFRESH_SUMMARY, refresh_summary, schema=ENTRY_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_ASK, ask, schema=ASK_SCHEMA, supports_response=SupportsResponse.ONLY
    )
    hass.services.async_register(DOMAIN, SERVICE_CLEAR_CHAT, clear_chat, schema=ENTRY_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_SET_FILTERS, set_filters, schema=SET_FILTERS_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_SEND_MESSAGE, send_message, schema=SEND_MESSAGE_SCHEMA)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not ok:
        return False

    store = hass.data.get(DOMAIN, {})
    store.get("entries", {}).pop(entry.entry_id, None)
    # Remove services once the last device is gone
    if not store.get("entries"):
        for svc in SERVICES:
            if hass.services.has_service(DOMAIN, svc):
                hass.services.async_remove(DOMAIN, svc)
        store["services_registered"] = False
    return True
