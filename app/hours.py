"""Opening-hours parsing and evaluation for station metadata.

Accepted shapes:
- "24/7"                         -> always open
- "08:00-22:00"                  -> same range every day
- {"mon": "08:00-22:00", ...}    -> per weekday; a missing day is closed
- "closed" as a range value      -> closed that day

A range whose close time is earlier than its open time runs past midnight,
e.g. "18:00-02:00".
"""

from __future__ import annotations

import re
from datetime import datetime, time
from typing import Dict, Optional, Tuple, Union
from zoneinfo import ZoneInfo

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
ALWAYS_OPEN = "24/7"
CLOSED = "closed"

_RANGE_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")


def _parse_clock(hour: str, minute: str) -> time:
    """Build a time from HH and MM strings; 24:00 means end of day."""
    h, m = int(hour), int(minute)
    if h == 24 and m == 0:
        return time.max
    return time(h, m)


def parse_range(value: str) -> Optional[Tuple[time, time]]:
    """Parse "HH:MM-HH:MM"; returns None for "closed"."""
    if value.strip().lower() == CLOSED:
        return None
    match = _RANGE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid hours range '{value}', expected HH:MM-HH:MM")
    try:
        return _parse_clock(match.group(1), match.group(2)), _parse_clock(match.group(3), match.group(4))
    except ValueError as exc:
        raise ValueError(f"Invalid hours range '{value}': {exc}") from exc


def validate_hours(hours: Union[str, Dict[str, str]]) -> Union[str, Dict[str, str]]:
    """Check that an hours spec can be evaluated; weekday keys are lower-cased."""
    if isinstance(hours, str):
        if hours.strip() != ALWAYS_OPEN:
            parse_range(hours)
        return hours

    normalized: Dict[str, str] = {}
    for day, value in hours.items():
        key = day.strip().lower()[:3]
        if key not in WEEKDAYS:
            raise ValueError(f"Unknown weekday '{day}'")
        if value.strip() != ALWAYS_OPEN:
            parse_range(value)
        normalized[key] = value
    return normalized


def _in_range(rng: Tuple[time, time], now: time) -> bool:
    opens, closes = rng
    if opens == closes:
        return True
    if opens < closes:
        return opens <= now < closes
    return now >= opens or now < closes


def _day_value(hours: Union[str, Dict[str, str]], weekday: int) -> Optional[str]:
    if isinstance(hours, str):
        return hours
    return hours.get(WEEKDAYS[weekday])


def is_open(
    hours: Union[str, Dict[str, str], None],
    now: datetime | None = None,
    tz: str = "UTC",
) -> bool:
    """Return whether a station with these hours is open at `now`.

    No hours at all means the station is always open.
    """
    if not hours:
        return True

    now = now.astimezone(ZoneInfo(tz)) if now else datetime.now(ZoneInfo(tz))
    today = _day_value(hours, now.weekday())
    clock = now.time()

    if today is not None:
        if today.strip() == ALWAYS_OPEN:
            return True
        rng = parse_range(today)
        if rng and rng[0] <= rng[1] and _in_range(rng, clock):
            return True
        if rng and rng[0] > rng[1] and clock >= rng[0]:
            return True

    # An overnight range from yesterday may still be running.
    yesterday = _day_value(hours, (now.weekday() - 1) % 7)
    if yesterday is not None and yesterday.strip() != ALWAYS_OPEN:
        rng = parse_range(yesterday)
        if rng and rng[0] > rng[1] and clock < rng[1]:
            return True

    return False
