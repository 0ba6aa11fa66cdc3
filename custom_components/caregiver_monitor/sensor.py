"""Sensor platform for Caregiver Monitor."""
from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, MAX_STATE_LENGTH, SIGNAL_SUMMARY_UPDATED
from .entity import CaregiverMonitorEntity
from .history import HistoryManager
from .summarizer import SummaryManager


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    runtime = hass.data[DOMAIN]["entries"][entry.entry_id]
    history: HistoryManager = runtime["history"]
    summary: SummaryManager = runtime["summary"]
    async_add_entities(
        [
            MedicineTakenSensor(hass, entry, history, "medicine_taken"),
            EmergencySensor(hass, entry, history, "emergencies"),
            ScheduledRemindersSensor(hass, entry, history, "scheduled_reminders"),
            DailyActivitySensor(hass, entry, history, "daily_activity"),
            LastEventSensor(hass, entry, history, "last_event"),
            SummarySensor(hass, entry, history, "ai_summary", summary),
        ]
    )


class MedicineTakenSensor(CaregiverMonitorEntity):
    """Medicine-taken events in the selected window."""

    _attr_icon = "mdi:pill"
    _label = "Medicine Taken"

    @property
    def native_value(self):
        return self.report.totals.get("medicine_taken", 0)

    @property
    def extra_state_attributes(self):
        return {
            "time_range_filter": self.report.time_range_filter,
            "event_type_filter": self.report.event_type_filter,
        }


class EmergencySensor(CaregiverMonitorEntity):
    """Emergency events in the selected window."""

    _attr_icon = "mdi:alert-octagon"
    _label = "Emergencies"

    @property
    def native_value(self):
        return self.report.totals.get("emergencies", 0)

    @property
    def extra_state_attributes(self):
        return {
            "time_range_filter": self.report.time_range_filter,
            "event_type_filter": self.report.event_type_filter,
        }


class ScheduledRemindersSensor(CaregiverMonitorEntity):
    """Enabled reminders, with the normalized schedule in attributes."""

    _attr_icon = "mdi:calendar-clock"
    _label = "Scheduled Reminders"

    @property
    def native_value(self):
        return self.report.totals.get("scheduled_reminders", 0)

    @property
    def extra_state_attributes(self):
        return {"reminders": [r.as_dict() for r in self.report.reminders]}


class DailyActivitySensor(CaregiverMonitorEntity):
    """Number of days with activity; the chart series lives in attributes."""

    _attr_icon = "mdi:chart-bar"
    _label = "Daily Activity"

    @property
    def native_value(self):
        return len(self.report.buckets)

    @property
    def extra_state_attributes(self):
        return {
            "time_range_filter": self.report.time_range_filter,
            "event_type_filter": self.report.event_type_filter,
            "totals": dict(self.report.totals),
            "daily_series": self.report.daily_series,
        }


class LastEventSensor(CaregiverMonitorEntity):
    """Most recent event logged by the device, regardless of filters."""

    _attr_icon = "mdi:history"
    _label = "Last Event"

    @property
    def native_value(self):
        recent = self._history.recent(1)
        return recent[0].get("type") if recent else None

    @property
    def extra_state_attributes(self):
        recent = self._history.recent(20)
        return {
            "timestamp": recent[0].get("timestamp") if recent else None,
            "recent_events": recent,
        }


class SummarySensor(CaregiverMonitorEntity):
    """AI-written summary of the current report."""

    _attr_icon = "mdi:text-box-outline"
    _label = "AI Summary"

    def __init__(self, hass, entry, history, key, summary: SummaryManager) -> None:
        super().__init__(hass, entry, history, key)
        self._summary = summary

    @property
    def available(self) -> bool:
        return self._summary.available

    @property
    def native_value(self):
        text = self._summary.slot.text
        if not text:
            return None
        if len(text) <= MAX_STATE_LENGTH:
            return text
        return text[: MAX_STATE_LENGTH - 1] + "…"

    @property
    def extra_state_attributes(self):
        return {
            "summary": self._summary.slot.text,
            "pending": self._summary.slot.pending,
            "request_sequence": self._summary.slot.sequence,
        }

    async def async_added_to_hass(self) -> None:
        await super().async_added_to_hass()

        @callback
        def _summary_updated(entry_id: str):
            if entry_id == self._entry.entry_id:
                self.async_write_ha_state()

        self.async_on_remove(async_dispatcher_connect(self.hass, SIGNAL_SUMMARY_UPDATED, _summary_updated))
