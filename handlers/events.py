# handlers/events.py
"""
Stored-event operations that must keep reminders in sync, plus the
"change one field of a saved event" flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

import crud
from models import Event
from schemas import UpdatesFragment
from scheduler.time_utils import time_to_minutes

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "date", "time", "location")

RETRY_MESSAGES = {
    "date": '❌ Could not parse date. Try "18 Jan" or "2026-01-18".',
    "time": '❌ Could not parse time. Try "5pm-6pm" or "14:30".',
}


# ------------------------
# Writes that keep reminders in sync
# ------------------------

def add_event(db: Session, reminders, chat_id: str, fields: Dict[str, Any]) -> Event:
    event = crud.create_event(db, chat_id, fields)
    logger.info("Saved event %s for chat %s on %s", event.id, chat_id, event.date)
    if reminders is not None:
        reminders.schedule_event(chat_id, event)
    return event


def change_event(db: Session, reminders, chat_id: str, event_id: int, updates: Dict[str, Any]) -> Optional[Event]:
    event = crud.update_event(db, chat_id, event_id, updates)
    if event is not None and reminders is not None:
        reminders.reschedule_event(chat_id, event)
    return event


def remove_event(db: Session, reminders, chat_id: str, event_id: int) -> bool:
    ok = crud.delete_event(db, chat_id, event_id)
    if reminders is not None:
        reminders.cancel_event(event_id)
    if ok:
        logger.info("Deleted event %s for chat %s", event_id, chat_id)
    return ok


def clear_events(db: Session, reminders, chat_id: str) -> List[int]:
    ids = crud.delete_all_events(db, chat_id)
    if reminders is not None:
        reminders.cancel_all(ids)
    return ids


# ------------------------
# Field edit of a stored event
# ------------------------

@dataclass
class FieldEditResult:
    status: str                    # updated | not_found | retry
    event: Optional[Event] = None
    message: Optional[str] = None


def field_updates_from_text(field: str, text: str, extract: Callable, today: str) -> Optional[Dict[str, Any]]:
    """
    Translate the user's reply into column updates for `field`.
    None means the reply could not be understood.
    """
    if field == "title":
        return {"task": text}
    if field == "location":
        return {"location": text}

    fragment = extract(text, today)
    if not isinstance(fragment, UpdatesFragment):
        return None
    u = fragment.updates
    if field == "date":
        return {"date": u.date} if u.date else None
    if field == "time":
        updates = {}
        if u.start_time:
            updates["start_time"] = u.start_time
        if u.end_time:
            updates["end_time"] = u.end_time
        return updates or None
    return None


def keep_duration(event: Event, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    A start-only time edit moves the stored end along with it so the event
    keeps its length. Without a usable old length the end is dropped.
    """
    if "end_time" in updates or not event.end_time:
        return updates
    updates = dict(updates)
    new_start = time_to_minutes(updates["start_time"])
    if event.start_time and time_to_minutes(event.end_time) > time_to_minutes(event.start_time):
        new_end = new_start + time_to_minutes(event.end_time) - time_to_minutes(event.start_time)
        # stored events never run past midnight
        updates["end_time"] = f"{new_end // 60:02d}:{new_end % 60:02d}" if new_end < 24 * 60 else None
    elif time_to_minutes(event.end_time) <= new_start:
        updates["end_time"] = None
    return updates


def apply_field_edit(db: Session, reminders, session, text: str, extract: Callable, today: str) -> FieldEditResult:
    """Consume one message while the session's edit pointer is set."""
    pointer = session.editing
    event = crud.get_event(db, session.chat_id, pointer.event_id)
    if event is None:
        session.editing = None
        return FieldEditResult("not_found", message="❌ Event not found.")

    updates = field_updates_from_text(pointer.field, text, extract, today)
    if updates is None:
        return FieldEditResult("retry", event=event, message=RETRY_MESSAGES.get(pointer.field, "❌ Could not understand that. Try again."))
    if pointer.field == "time":
        updates = keep_duration(event, updates)

    event = change_event(db, reminders, session.chat_id, pointer.event_id, updates)
    session.editing = None
    return FieldEditResult("updated", event=event)
