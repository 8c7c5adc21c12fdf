# crud.py

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import Event, RecurringClass

# Columns a caller may set on an event; anything else is ignored.
EVENT_FIELDS = ("task", "date", "start_time", "end_time", "location", "type")


# ------------------------
# Events: reads
# ------------------------

def get_event(db: Session, chat_id: str, event_id: int) -> Optional[Event]:
    """Fetch a single event owned by chat_id."""
    return (
        db.query(Event)
        .filter(Event.id == event_id, Event.chat_id == str(chat_id))
        .first()
    )


def get_events_in_range(db: Session, chat_id: str, start_date: str, end_date: str) -> List[Event]:
    """Return the chat's events between start_date and end_date (inclusive)."""
    return (
        db.query(Event)
        .filter(
            Event.chat_id == str(chat_id),
            Event.date >= start_date,
            Event.date <= end_date,
        )
        .order_by(Event.date, Event.start_time)
        .all()
    )


def get_upcoming_events(db: Session, chat_id: str, today: str) -> List[Event]:
    """All of the chat's events on or after `today`."""
    return (
        db.query(Event)
        .filter(Event.chat_id == str(chat_id), Event.date >= today)
        .order_by(Event.date, Event.start_time)
        .all()
    )


def get_timed_events_on(db: Session, chat_id: str, target_date: str) -> List[Event]:
    """Events on target_date that have a start time (conflict candidates)."""
    return (
        db.query(Event)
        .filter(
            Event.chat_id == str(chat_id),
            Event.date == target_date,
            Event.start_time.isnot(None),
        )
        .order_by(Event.id)
        .all()
    )


def get_future_timed_events(db: Session, today: str) -> List[Event]:
    """Every chat's events dated today or later with a start time (reminder rescan)."""
    return (
        db.query(Event)
        .filter(Event.date >= today, Event.start_time.isnot(None))
        .order_by(Event.date, Event.start_time)
        .all()
    )


def get_chat_ids_with_events_on(db: Session, target_date: str) -> List[str]:
    rows = (
        db.query(Event.chat_id)
        .filter(Event.date == target_date)
        .distinct()
        .all()
    )
    return [r[0] for r in rows]


# ------------------------
# Events: writes
# ------------------------

def create_event(db: Session, chat_id: str, fields: Dict[str, Any]) -> Event:
    """Create and persist one event from a dict of event fields."""
    payload = {k: fields.get(k) for k in EVENT_FIELDS}
    event = Event(chat_id=str(chat_id), **payload)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def update_event(db: Session, chat_id: str, event_id: int, updates: Dict[str, Any]) -> Optional[Event]:
    """
    Apply the given field updates in place.
    Returns the updated Event, or None if it does not exist.
    """
    event = get_event(db, chat_id, event_id)
    if not event:
        return None
    changed = False
    for k, v in updates.items():
        if k in EVENT_FIELDS:
            setattr(event, k, v)
            changed = True
    if changed:
        db.commit()
        db.refresh(event)
    return event


def delete_event(db: Session, chat_id: str, event_id: int) -> bool:
    event = get_event(db, chat_id, event_id)
    if not event:
        return False
    db.delete(event)
    db.commit()
    return True


def delete_all_events(db: Session, chat_id: str) -> List[int]:
    """Delete every event of the chat; returns the deleted ids."""
    events = db.query(Event).filter(Event.chat_id == str(chat_id)).all()
    ids = [e.id for e in events]
    for e in events:
        db.delete(e)
    db.commit()
    return ids


# ------------------------
# Recurring classes
# ------------------------

def create_class(
    db: Session,
    chat_id: str,
    *,
    subject: str,
    day_of_week: int,
    start_time: str,
    end_time: str,
    location: Optional[str] = None,
) -> RecurringClass:
    row = RecurringClass(
        chat_id=str(chat_id),
        subject=subject,
        day_of_week=int(day_of_week),
        start_time=start_time,
        end_time=end_time,
        location=location,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_class(db: Session, chat_id: str, class_id: int) -> Optional[RecurringClass]:
    return (
        db.query(RecurringClass)
        .filter(RecurringClass.id == class_id, RecurringClass.chat_id == str(chat_id))
        .first()
    )


def list_classes(db: Session, chat_id: str) -> List[RecurringClass]:
    return (
        db.query(RecurringClass)
        .filter(RecurringClass.chat_id == str(chat_id))
        .order_by(RecurringClass.day_of_week, RecurringClass.start_time)
        .all()
    )


def get_classes_for_weekday(db: Session, chat_id: str, day: int) -> List[RecurringClass]:
    return (
        db.query(RecurringClass)
        .filter(RecurringClass.chat_id == str(chat_id), RecurringClass.day_of_week == int(day))
        .order_by(RecurringClass.id)
        .all()
    )


def delete_class(db: Session, chat_id: str, class_id: int) -> bool:
    row = get_class(db, chat_id, class_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True
