import crud
from handlers.classes import add_classes, validate_class
from handlers.events import apply_field_edit, clear_events, field_updates_from_text, keep_duration
from models import Event
from handlers.session_store import SessionStore
from schemas import ClassCandidate, EventFields, FailureFragment, UpdatesFragment


def _extract_with(fragment):
    return lambda text, today=None: fragment


def test_title_and_location_are_taken_verbatim():
    never = _extract_with(None)
    assert field_updates_from_text("title", "Squash finals", never, "2025-03-01") == {"task": "Squash finals"}
    assert field_updates_from_text("location", "Court 3", never, "2025-03-01") == {"location": "Court 3"}


def test_time_edit_uses_extracted_start_and_end():
    frag = UpdatesFragment(updates=EventFields(start_time="17:00", end_time="18:00"))
    assert field_updates_from_text("time", "5-6pm", _extract_with(frag), "2025-03-01") == {
        "start_time": "17:00", "end_time": "18:00",
    }
    assert field_updates_from_text("time", "soon", _extract_with(UpdatesFragment()), "2025-03-01") is None
    assert field_updates_from_text("date", "x", _extract_with(FailureFragment()), "2025-03-01") is None


def test_apply_field_edit_reschedules_reminders(db, clock, manual_scheduler, transport):
    from scheduler.reminders import ReminderScheduler

    reminders = ReminderScheduler(manual_scheduler, transport, clock=clock)
    event = crud.create_event(db, "1", {"task": "Gym", "date": "2025-03-05", "start_time": "10:00"})
    reminders.schedule_event("1", event)
    session = SessionStore(clock=clock).get_or_create("1")
    session.start_editing(event.id, "time")

    frag = UpdatesFragment(updates=EventFields(start_time="13:00"))
    result = apply_field_edit(db, reminders, session, "1pm", _extract_with(frag), "2025-03-01")
    assert result.status == "updated"
    assert result.event.start_time == "13:00"
    assert session.editing is None
    assert len(manual_scheduler.pending) == 3
    assert {j.at.hour for j in manual_scheduler.pending} == {13, 7, 12}


def test_start_only_time_edit_keeps_event_length(db, clock, manual_scheduler, transport):
    from scheduler.conflicts import find_conflicts
    from scheduler.reminders import ReminderScheduler

    reminders = ReminderScheduler(manual_scheduler, transport, clock=clock)
    event = crud.create_event(db, "1", {"task": "Gym", "date": "2025-03-05", "start_time": "10:00", "end_time": "11:00"})
    session = SessionStore(clock=clock).get_or_create("1")
    session.start_editing(event.id, "time")

    frag = UpdatesFragment(updates=EventFields(start_time="14:00"))
    result = apply_field_edit(db, reminders, session, "2pm", _extract_with(frag), "2025-03-01")
    assert (result.event.start_time, result.event.end_time) == ("14:00", "15:00")
    assert [c.id for c in find_conflicts(db, "1", "2025-03-05", "14:30", "15:30")] == [event.id]


def test_start_only_time_edit_drops_unusable_end():
    broken = Event(task="Gym", date="2025-03-05", start_time=None, end_time="11:00")
    assert keep_duration(broken, {"start_time": "14:00"}) == {"start_time": "14:00", "end_time": None}
    late = Event(task="Gym", date="2025-03-05", start_time="22:00", end_time="23:30")
    assert keep_duration(late, {"start_time": "23:00"}) == {"start_time": "23:00", "end_time": None}
    assert keep_duration(late, {"start_time": "20:00", "end_time": "21:00"}) == {"start_time": "20:00", "end_time": "21:00"}


def test_clear_events_cancels_reminders(db, clock, manual_scheduler, transport):
    from scheduler.reminders import ReminderScheduler

    reminders = ReminderScheduler(manual_scheduler, transport, clock=clock)
    for day in ("2025-03-05", "2025-03-06"):
        reminders.schedule_event("1", crud.create_event(db, "1", {"task": "Gym", "date": day, "start_time": "10:00"}))
    assert len(clear_events(db, reminders, "1")) == 2
    assert reminders.keys() == []
    assert manual_scheduler.pending == []


def test_validate_class():
    ok = validate_class(ClassCandidate(subject="Maths", day="monday", start_time="9am", end_time="10:30"))
    assert (ok.day_of_week, ok.start_time, ok.end_time) == (1, "09:00", "10:30")
    assert validate_class(ClassCandidate(subject="Maths", day="Mon", start_time="11:00", end_time="10:00")) is None
    assert validate_class(ClassCandidate(day="Mon", start_time="09:00", end_time="10:00")) is None
    assert validate_class(ClassCandidate(subject="Maths", day="Mon", start_time="9", end_time="10:00")) is None


def test_add_classes_skips_invalid_entries(db):
    result = add_classes(db, "1", [
        ClassCandidate(subject="Maths", day="Mon", start_time="09:00", end_time="10:00"),
        ClassCandidate(subject="Bio", day="Tue", start_time="13:00", end_time="14:00", location="Lab"),
        ClassCandidate(subject="???", day="Someday", start_time="09:00", end_time="10:00"),
    ])
    assert (len(result.added), result.skipped, result.total) == (2, 1, 3)
    assert [c.subject for c in crud.list_classes(db, "1")] == ["Maths", "Bio"]
