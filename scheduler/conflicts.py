# scheduler/conflicts.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from config import DEFAULT_EVENT_MINUTES
from crud import get_timed_events_on, get_classes_for_weekday
from scheduler.recurrence import day_of_week
from scheduler.time_utils import time_to_minutes

KIND_EVENT = "event"
KIND_CLASS = "class"


@dataclass
class Conflict:
    kind: str                      # 'event' (one-off) | 'class' (weekly instance)
    id: int
    title: str
    start_time: str
    end_time: Optional[str] = None
    location: Optional[str] = None


def _window(start_time: str, end_time: Optional[str], default_minutes: int) -> Tuple[int, int]:
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time) if end_time else start + default_minutes
    return start, end


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """True if [a_start, a_end) overlaps [b_start, b_end); touching edges do not."""
    return (a_start < b_end) and (b_start < a_end)


def find_conflicts(
    db: Session,
    chat_id: str,
    date: str,
    start_time: Optional[str],
    end_time: Optional[str] = None,
    *,
    default_minutes: int = DEFAULT_EVENT_MINUTES,
) -> List[Conflict]:
    """
    Return the chat's one-off events and weekly classes overlapping the proposed slot.
    Without a start time there is nothing to collide with.
    """
    if not start_time:
        return []

    new_start, new_end = _window(start_time, end_time, default_minutes)
    conflicts: List[Conflict] = []

    for ev in get_timed_events_on(db, chat_id, date):
        s, e = _window(ev.start_time, ev.end_time, default_minutes)
        if overlaps(new_start, new_end, s, e):
            conflicts.append(Conflict(KIND_EVENT, ev.id, ev.task, ev.start_time, ev.end_time, ev.location))

    for cls in get_classes_for_weekday(db, chat_id, day_of_week(date)):
        s, e = _window(cls.start_time, cls.end_time, default_minutes)
        if overlaps(new_start, new_end, s, e):
            conflicts.append(Conflict(KIND_CLASS, cls.id, cls.subject, cls.start_time, cls.end_time, cls.location))

    return conflicts
