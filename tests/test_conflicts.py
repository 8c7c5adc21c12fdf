import crud
from scheduler.conflicts import KIND_CLASS, KIND_EVENT, find_conflicts, overlaps


def _event(db, chat="1", **kw):
    fields = {"task": "Existing", "date": "2025-04-10"}
    fields.update(kw)
    return crud.create_event(db, chat, fields)


def test_overlaps_is_half_open():
    assert overlaps(600, 660, 630, 690)
    assert not overlaps(600, 660, 660, 720)     # touching edges
    assert overlaps(600, 720, 630, 640)         # containment


def test_no_start_time_never_conflicts(db):
    _event(db, start_time="14:00", end_time="15:00")
    assert find_conflicts(db, "1", "2025-04-10", None) == []


def test_overlapping_event_is_reported(db):
    a = _event(db, task="Event A", start_time="14:00", end_time="15:00")
    conflicts = find_conflicts(db, "1", "2025-04-10", "14:30", "15:30")
    assert len(conflicts) == 1
    assert conflicts[0].kind == KIND_EVENT
    assert conflicts[0].id == a.id
    assert conflicts[0].title == "Event A"


def test_back_to_back_is_not_a_conflict(db):
    _event(db, start_time="10:00", end_time="11:00")
    assert find_conflicts(db, "1", "2025-04-10", "11:00", "12:00") == []


def test_missing_end_uses_default_duration(db):
    _event(db, start_time="10:00")                          # 10:00-11:00 assumed
    assert len(find_conflicts(db, "1", "2025-04-10", "10:59")) == 1
    assert find_conflicts(db, "1", "2025-04-10", "11:00") == []
    assert len(find_conflicts(db, "1", "2025-04-10", "09:30", default_minutes=31)) == 1


def test_untimed_and_other_chat_events_are_ignored(db):
    _event(db)                                              # all-day
    _event(db, chat="2", start_time="14:00", end_time="15:00")
    assert find_conflicts(db, "1", "2025-04-10", "14:00", "15:00") == []


def test_weekly_class_on_same_weekday_conflicts(db):
    # 2025-04-10 is a Thursday
    crud.create_class(db, "1", subject="Physics", day_of_week=4, start_time="09:00", end_time="10:30")
    crud.create_class(db, "1", subject="Chemistry", day_of_week=5, start_time="09:00", end_time="10:30")
    conflicts = find_conflicts(db, "1", "2025-04-10", "10:00", "11:00")
    assert [(c.kind, c.title) for c in conflicts] == [(KIND_CLASS, "Physics")]


def test_events_are_listed_before_classes(db):
    crud.create_class(db, "1", subject="Physics", day_of_week=4, start_time="09:00", end_time="10:30")
    _event(db, task="Coffee", start_time="09:30", end_time="10:00")
    conflicts = find_conflicts(db, "1", "2025-04-10", "09:00", "10:00")
    assert [c.kind for c in conflicts] == [KIND_EVENT, KIND_CLASS]
