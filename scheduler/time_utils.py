# scheduler/time_utils.py
"""
Clock/date helpers shared by the draft engine, conflict checks and reminders.

Dates and times travel through the bot as plain tokens:
    date  -> 'YYYY-MM-DD'
    time  -> 'HH:MM' (24h)
No timezone conversion happens anywhere; a date+time pair is a naive local instant.
"""

from __future__ import annotations

import re
from datetime import date as _date, datetime as _dt, timedelta
from typing import Optional

_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# 'H:MM' / 'HH:MM' (also 'H.MM'), optional am/pm with or without a space
_CLOCK_RE = re.compile(r"^(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)?$", re.I)


def normalize_time(raw) -> Optional[str]:
    """
    '9:00', '09:00', '9am', '9:00am', '9.00 am', '6:30pm' -> 'HH:MM'.
    12am -> 00:00, 12pm -> 12:00. Returns None for anything else.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    m = _CLOCK_RE.match(s)
    if not m:
        return None

    hh = int(m.group(1))
    mm = int(m.group(2)) if m.group(2) is not None else 0
    mer = (m.group(3) or "").lower()

    if not mer and m.group(2) is None:
        # a bare number like '9' is not a clock time
        return None
    if mer == "pm" and hh != 12:
        hh += 12
    if mer == "am" and hh == 12:
        hh = 0

    if hh > 23 or mm > 59:
        return None
    return f"{hh:02d}:{mm:02d}"


def is_iso_day(s) -> bool:
    if not isinstance(s, str) or not _ISO_DAY_RE.match(s):
        return False
    try:
        _date.fromisoformat(s)
    except ValueError:
        return False
    return True


def iso_day(d: _date) -> str:
    return d.isoformat()


def format_date(date_str: str, now: Optional[_dt] = None) -> str:
    """'Today' / 'Tomorrow' relative to `now`, else a short label like 'Mon, Mar 3'."""
    now = now or _dt.now()
    today = now.date()
    if date_str == iso_day(today):
        return "Today"
    if date_str == iso_day(today + timedelta(days=1)):
        return "Tomorrow"
    try:
        d = _date.fromisoformat(date_str)
    except (TypeError, ValueError):
        return str(date_str)
    return f"{d:%a}, {d:%b} {d.day}"


def time_to_minutes(t: str) -> int:
    hh, mm = t.split(":")
    return int(hh) * 60 + int(mm)


def time_label(start_time: Optional[str], end_time: Optional[str]) -> Optional[str]:
    if not start_time:
        return None
    return f"{start_time}-{end_time}" if end_time else start_time


def event_instant(date_str: str, start_time: str) -> _dt:
    """Naive local datetime for an event's date + start time."""
    return _dt.combine(_date.fromisoformat(date_str), _dt.strptime(start_time, "%H:%M").time())
