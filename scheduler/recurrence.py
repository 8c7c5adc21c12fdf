# scheduler/recurrence.py
"""
Weekday helpers for recurring commitments (weekly classes).

Day numbers follow the stored class rows: Sunday=0 .. Saturday=6
(Python's date.weekday() is Monday=0, so convert with day_of_week()).
"""

from __future__ import annotations

from datetime import date
from typing import Optional

WEEKDAY_NAME_TO_INT = {
    "sun": 0, "sunday": 0,
    "mon": 1, "monday": 1,
    "tue": 2, "tues": 2, "tuesday": 2,
    "wed": 3, "wednesday": 3,
    "thu": 4, "thur": 4, "thurs": 4, "thursday": 4,
    "fri": 5, "friday": 5,
    "sat": 6, "saturday": 6,
}

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def day_of_week(date_str: str) -> int:
    """'YYYY-MM-DD' -> 0..6 with 0 = Sunday."""
    return date.fromisoformat(date_str).isoweekday() % 7


def parse_day_name(text) -> Optional[int]:
    """Map 'Mon', 'monday', 'Thurs', ... to 0..6; None if unknown."""
    if not isinstance(text, str):
        return None
    return WEEKDAY_NAME_TO_INT.get(text.strip().rstrip(".").lower())


def day_name(day: int) -> str:
    return WEEKDAY_NAMES[day % 7]
