"""Reminder normalization.

Stored reminders come from several generations of the dispenser app and the
caregiver UI, so ``days``, ``time`` and ``enabled`` have no fixed encoding.
Everything here is fail-open: a field that cannot be understood falls back to
the permissive default instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any, Dict, List, Tuple

# Index 0 is Sunday, matching the device firmware and the chart weekday.
DAY_PREFIXES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

NO_TIME = (-1, -1)

_DAYS_KEYS = ("days", "daysOfWeek", "daysArray")
_TIME_KEYS = ("time", "timeStr", "timeFormatted")
_SINGLE_MARKERS = ("medicine", "time", "days")


@dataclass(frozen=True)
class NormalizedReminder:
    id: str
    medicine: str
    hour: int
    minute: int
    days: Tuple[bool, ...] = field(default=(True,) * 7)
    enabled: bool = True

    def scheduled_on(self, weekday: int) -> bool:
        """Return True when enabled and scheduled for weekday (0=Sunday)."""
        if not self.enabled or len(self.days) != 7:
            return False
        return 0 <= weekday <= 6 and self.days[weekday]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medicine": self.medicine,
            "hour": self.hour,
            "minute": self.minute,
            "days": list(self.days),
            "enabled": self.enabled,
        }


def _truthy(value: Any) -> bool:
    """Truthiness as the stored JSON was written by the web UI.

    Empty containers count as true there, unlike Python.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _day_index(value: Any) -> int | None:
    """Map an int, numeric string or day name to a weekday index."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num: float | None = float(value)
    elif isinstance(value, str):
        token = value.strip().lower()
        if not token:
            return None
        num = _as_number(token)
        if num is None:
            for idx, prefix in enumerate(DAY_PREFIXES):
                if token.startswith(prefix):
                    return idx
            return None
    else:
        return None
    if num is None or not num.is_integer():
        return None
    idx = int(num)
    return idx if 0 <= idx <= 6 else None


def parse_days(raw: Any) -> List[bool]:
    """Parse a stored day spec into seven booleans, Sunday first."""
    if raw is None:
        return [True] * 7

    if isinstance(raw, (list, tuple)):
        tokens = list(raw)
    elif isinstance(raw, str):
        tokens = [t.strip() for t in raw.split(",") if t.strip()]
    elif isinstance(raw, dict):
        out = [False] * 7
        for key, val in raw.items():
            num = _as_number(str(key))
            if num is not None and num.is_integer() and 0 <= num <= 6:
                out[int(num)] = _truthy(val)
        return out
    else:
        return [True] * 7

    out = [False] * 7
    for token in tokens:
        idx = _day_index(token)
        if idx is not None:
            out[idx] = True
    return out


def _from_hhmm(num: float) -> Tuple[int, int]:
    if not math.isfinite(num):
        return NO_TIME
    whole = math.floor(num)
    # remainder keeps the sign of the dividend
    return math.floor(whole / 100), int(math.fmod(whole, 100))


def parse_time(raw: Any) -> Tuple[int, int]:
    """Parse "HH:MM", HHMM or "HHMM" into (hour, minute); (-1, -1) otherwise."""
    if raw is None or isinstance(raw, bool):
        return NO_TIME
    if isinstance(raw, (int, float)):
        return _from_hhmm(float(raw))
    if not isinstance(raw, str):
        return NO_TIME

    text = raw.strip()
    if ":" in text:
        hh, mm = text.split(":", 1)
        try:
            return int(hh.strip()), int(mm.strip())
        except ValueError:
            return NO_TIME
    num = _as_number(text)
    if num is None:
        return NO_TIME
    return _from_hhmm(num)


def resolve_enabled(raw: Dict[str, Any]) -> bool:
    """Read ``enabled``, falling back to ``active``.

    A reminder carrying neither is enabled; an ``active`` present as null is not.
    """
    candidate = raw.get("enabled")
    if candidate is None:
        if "active" not in raw:
            return True
        candidate = raw["active"]
    if isinstance(candidate, bool):
        return candidate
    return _truthy(candidate)


def _first_present(raw: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def normalize_reminder(raw: Any, reminder_id: str | None = None) -> NormalizedReminder:
    """Normalize one stored reminder. Never raises."""
    if not isinstance(raw, dict):
        raw = {}
    rid = reminder_id if reminder_id is not None else raw.get("id")
    hour, minute = parse_time(_first_present(raw, _TIME_KEYS))
    medicine = raw.get("medicine")
    return NormalizedReminder(
        id=str(rid) if rid is not None else "",
        medicine=str(medicine) if _truthy(medicine) else "",
        hour=hour,
        minute=minute,
        days=tuple(parse_days(_first_present(raw, _DAYS_KEYS))),
        enabled=resolve_enabled(raw),
    )


def reminders_from_snapshot(device_id: str, value: Any) -> List[Dict[str, Any]]:
    """Flatten a reminders snapshot into raw reminder dicts carrying an id.

    The node is either one reminder stored directly under the device or a
    map of child id to reminder.
    """
    if not isinstance(value, dict):
        return []
    if any(key in value for key in _SINGLE_MARKERS):
        return [{"id": f"{device_id}_root", **value}]
    out: List[Dict[str, Any]] = []
    for key, child in value.items():
        if isinstance(child, dict):
            out.append({"id": key, **child})
    return out


def normalize_reminders(raw_reminders: List[Dict[str, Any]]) -> List[NormalizedReminder]:
    return [normalize_reminder(r, r.get("id") if isinstance(r, dict) else None) for r in raw_reminders]
