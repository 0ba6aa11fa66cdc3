"""Base entity for Caregiver Monitor sensors."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import async_generate_entity_id

from .analytics import Report, build_report
from .const import (
    CONF_DEVICE_ID,
    CONF_EVENT_TYPE_FILTER,
    CONF_TIME_RANGE_FILTER,
    DOMAIN,
    FILTER_ALL,
    SIGNAL_HISTORY_UPDATED,
)
from .history import HistoryManager


def slugify(name: str) -> str:
    base = "".join(ch if ch.isalnum() else "_" for ch in name.lower())
    return "_".join([p for p in base.split("_") if p])


def report_for_entry(entry: ConfigEntry, history: HistoryManager, now: Optional[datetime] = None) -> Report:
    """Build the report for the entry's current filter selection."""
    return build_report(
        history.raw_reminders,
        history.events,
        type_filter=entry.options.get(CONF_EVENT_TYPE_FILTER, FILTER_ALL),
        time_filter=entry.options.get(CONF_TIME_RANGE_FILTER, FILTER_ALL),
        now=now,
    )


class CaregiverMonitorEntity(SensorEntity):
    """Sensor fed by one device's history; recomputes on every push."""

    _attr_should_poll = False
    _label = ""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry, history: HistoryManager, key: str) -> None:
        self.hass = hass
        self._entry = entry
        self._history = history
        self._report: Optional[Report] = None
        device_id = entry.data[CONF_DEVICE_ID]
        slug = slugify(device_id)
        self._attr_name = f"Caregiver {device_id} {self._label}".strip()
        self._attr_unique_id = f"{slug}_{key}"
        self.entity_id = async_generate_entity_id("sensor.{}", f"caregiver_{slug}_{key}", hass=hass)
        self._attr_device_info = {
            "identifiers": {(DOMAIN, device_id)},
            "name": f"Medicine Box {device_id}",
            "manufacturer": "Smart Medicine Box",
        }

    @property
    def report(self) -> Report:
        if self._report is None:
            self._report = report_for_entry(self._entry, self._history)
        return self._report

    @callback
    def _recompute(self) -> None:
        self._report = report_for_entry(self._entry, self._history)

    async def async_added_to_hass(self) -> None:
        @callback
        def _updated(entry_id: str):
            if entry_id == self._entry.entry_id:
                self._recompute()
                self.async_write_ha_state()

        self.async_on_remove(async_dispatcher_connect(self.hass, SIGNAL_HISTORY_UPDATED, _updated))
        self._recompute()
