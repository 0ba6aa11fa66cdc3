"""Helpers shared by the integration tests."""
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.caregiver_monitor.const import (
    DOMAIN,
    CONF_API_KEY,
    CONF_AUTH_TOKEN,
    CONF_DATABASE_URL,
    CONF_DEVICE_ID,
    CONF_MODEL,
    DEFAULT_MODEL,
)
from custom_components.caregiver_monitor.store import StoreSnapshot

REMINDERS = {
    "r1": {"medicine": "Aspirin", "time": "09:00", "days": ["Mon", "Wed", "Fri"], "active": True},
    "r2": {"medicine": "Vitamin D", "time": 2000, "days": "Sat,Sun", "active": False},
}

EVENTS = {
    "e1": {"type": "Medicine Taken", "timestamp": "2025-01-01 10:00"},
    "e2": {"type": "Emergency", "timestamp": "2025-01-01 11:00"},
}


async def setup_entry(hass, options=None, api_key=""):
    entry = MockConfigEntry(
        domain=DOMAIN,
        unique_id="box1",
        data={
            CONF_DEVICE_ID: "box1",
            CONF_DATABASE_URL: "https://demo-default-rtdb.firebaseio.com",
            CONF_AUTH_TOKEN: "",
            CONF_API_KEY: api_key,
            CONF_MODEL: DEFAULT_MODEL,
        },
        options=options or {},
        title="Medicine Box box1",
    )
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return entry


async def push(hass, store_callbacks, reminders=REMINDERS, events=EVENTS, wait_background_tasks=True):
    store_callbacks["reminders/box1"](StoreSnapshot(exists=reminders is not None, value=reminders))
    store_callbacks["events/box1"](StoreSnapshot(exists=events is not None, value=events))
    await hass.async_block_till_done(wait_background_tasks=wait_background_tasks)
