"""Daily aggregation and chart/stats assembly."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List

from homeassistant.util import dt as dt_util

from .const import EVENT_EMERGENCY, EVENT_MEDICINE_TAKEN, FILTER_ALL
from .history import filter_events, normalize_timestamp
from .schedule import NormalizedReminder, normalize_reminders


@dataclass
class DailyBucket:
    date: str
    medicine_count: int = 0
    emergency_count: int = 0
    reminder_count: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "medicine_count": self.medicine_count,
            "emergency_count": self.emergency_count,
            "reminder_count": self.reminder_count,
        }


def date_key(timestamp: Any) -> str:
    """Return the YYYY-MM-DD part of a stored timestamp."""
    return normalize_timestamp(timestamp).split("T", 1)[0]


def weekday_of(key: str) -> int | None:
    """Weekday of a date key with Sunday as 0, or None if unparseable."""
    try:
        day = date.fromisoformat(key)
    except ValueError:
        return None
    return (day.weekday() + 1) % 7


def scheduled_count(reminders: List[NormalizedReminder], weekday: int | None) -> int:
    if weekday is None:
        return 0
    return sum(1 for rem in reminders if rem.scheduled_on(weekday))


def aggregate_daily(
    events: List[Dict[str, Any]], reminders: List[NormalizedReminder]
) -> List[DailyBucket]:
    """Bucket events per calendar date, ascending.

    Only dates that have at least one event get a bucket. A day with
    reminders scheduled but nothing logged does not appear.
    """
    buckets: Dict[str, DailyBucket] = {}
    for event in events:
        key = date_key(event.get("timestamp"))
        if not key:
            continue
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = DailyBucket(date=key)
        kind = event.get("type")
        if kind == EVENT_MEDICINE_TAKEN:
            bucket.medicine_count += 1
        elif kind == EVENT_EMERGENCY:
            bucket.emergency_count += 1

    for key, bucket in buckets.items():
        bucket.reminder_count = scheduled_count(reminders, weekday_of(key))

    return [buckets[key] for key in sorted(buckets)]


def compute_totals(
    buckets: List[DailyBucket], reminders: List[NormalizedReminder]
) -> Dict[str, int]:
    return {
        "medicine_taken": sum(b.medicine_count for b in buckets),
        "emergencies": sum(b.emergency_count for b in buckets),
        "scheduled_reminders": sum(1 for r in reminders if r.enabled),
    }


@dataclass
class Report:
    """Everything the sensors and the summarizer need for one pass."""

    time_range_filter: str
    event_type_filter: str
    reminders: List[NormalizedReminder] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    buckets: List[DailyBucket] = field(default_factory=list)
    totals: Dict[str, int] = field(default_factory=dict)

    @property
    def daily_series(self) -> List[Dict[str, Any]]:
        return [b.as_dict() for b in self.buckets]

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view handed verbatim to the AI summarizer."""
        return {
            "time_range_filter": self.time_range_filter,
            "event_type_filter": self.event_type_filter,
            "totals": dict(self.totals),
            "daily_series": self.daily_series,
            "normalized_reminders": [r.as_dict() for r in self.reminders],
            "filtered_raw_events": [dict(e) for e in self.events],
        }


def build_report(
    raw_reminders: List[Dict[str, Any]],
    events: List[Dict[str, Any]],
    type_filter: str = FILTER_ALL,
    time_filter: str = FILTER_ALL,
    now: datetime | None = None,
) -> Report:
    """Run normalizer, filter, aggregator and assembler over one snapshot."""
    if now is None:
        now = dt_util.now()
    reminders = normalize_reminders(raw_reminders)
    filtered = filter_events(events, type_filter, time_filter, now)
    buckets = aggregate_daily(filtered, reminders)
    return Report(
        time_range_filter=time_filter,
        event_type_filter=type_filter,
        reminders=reminders,
        events=filtered,
        buckets=buckets,
        totals=compute_totals(buckets, reminders),
    )
