"""Device history snapshots and event log filtering."""
from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
import logging
from typing import TYPE_CHECKING, Any, Dict, List

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.util import dt as dt_util

from .const import (
    FILTER_ALL,
    SIGNAL_HISTORY_UPDATED,
    TIME_DAY,
    TIME_MONTH,
    TIME_WEEK,
)
from .schedule import NormalizedReminder, normalize_reminders, reminders_from_snapshot

if TYPE_CHECKING:
    from .store import StoreSnapshot

_LOGGER = logging.getLogger(__name__)


def normalize_timestamp(value: Any) -> str:
    """Swap the first space separator for the ISO "T"."""
    if not isinstance(value, str):
        return ""
    return value.strip().replace(" ", "T", 1)


def parse_timestamp(value: Any, tz: tzinfo | None = None) -> datetime | None:
    text = normalize_timestamp(value)
    if not text:
        return None
    try:
        parsed = dt_util.parse_datetime(text)
    except ValueError:
        parsed = None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    if tz is None:
        return parsed.replace(tzinfo=None)
    return parsed.astimezone(tz)


def in_time_window(timestamp: Any, time_filter: str, now: datetime) -> bool:
    if time_filter == FILTER_ALL:
        return True
    ts = parse_timestamp(timestamp, now.tzinfo)
    if time_filter == TIME_DAY:
        return ts is not None and ts.date() == now.date()
    if time_filter == TIME_WEEK:
        return ts is not None and now - timedelta(days=7) <= ts <= now
    if time_filter == TIME_MONTH:
        return ts is not None and (ts.year, ts.month) == (now.year, now.month)
    return True


def filter_events(
    events: List[Dict[str, Any]],
    type_filter: str = FILTER_ALL,
    time_filter: str = FILTER_ALL,
    now: datetime | None = None,
) -> List[Dict[str, Any]]:
    """Select events by type and time window, keeping input order."""
    if now is None:
        now = dt_util.now()
    out: List[Dict[str, Any]] = []
    for event in events:
        if type_filter != FILTER_ALL and event.get("type") != type_filter:
            continue
        if not in_time_window(event.get("timestamp"), time_filter, now):
            continue
        out.append(event)
    return out


def events_from_snapshot(value: Any) -> List[Dict[str, Any]]:
    """Flatten an events node into records sorted newest first."""
    if not isinstance(value, dict):
        return []
    events = [{"id": key, **info} for key, info in value.items() if isinstance(info, dict)]
    events.sort(key=lambda e: normalize_timestamp(e.get("timestamp")), reverse=True)
    return events


class HistoryManager:
    """Holds the latest reminder and event snapshots for one device.

    Snapshots are replaced wholesale on every store push; consumers recompute
    from the current lists and never mutate them.
    """

    def __init__(self, hass: HomeAssistant, entry_id: str, device_id: str) -> None:
        self.hass = hass
        self.entry_id = entry_id
        self.device_id = device_id
        self._reminders: List[Dict[str, Any]] = []
        self._events: List[Dict[str, Any]] = []

    @property
    def raw_reminders(self) -> List[Dict[str, Any]]:
        return list(self._reminders)

    @property
    def events(self) -> List[Dict[str, Any]]:
        return list(self._events)

    @property
    def reminders(self) -> List[NormalizedReminder]:
        return normalize_reminders(self._reminders)

    @property
    def has_data(self) -> bool:
        return bool(self._reminders or self._events)

    def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._events[:limit]

    @callback
    def async_set_reminders(self, snapshot: StoreSnapshot) -> None:
        value = snapshot.value if snapshot.exists else None
        self._reminders = reminders_from_snapshot(self.device_id, value)
        _LOGGER.debug("%s: %d reminders loaded", self.device_id, len(self._reminders))
        async_dispatcher_send(self.hass, SIGNAL_HISTORY_UPDATED, self.entry_id)

    @callback
    def async_set_events(self, snapshot: StoreSnapshot) -> None:
        value = snapshot.value if snapshot.exists else None
        self._events = events_from_snapshot(value)
        _LOGGER.debug("%s: %d events loaded", self.device_id, len(self._events))
        async_dispatcher_send(self.hass, SIGNAL_HISTORY_UPDATED, self.entry_id)
