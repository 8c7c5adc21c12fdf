from datetime import datetime

import pytest

from scheduler.recurrence import day_of_week, parse_day_name, day_name
from scheduler.time_utils import event_instant, format_date, is_iso_day, normalize_time, time_label


@pytest.mark.parametrize("raw, expected", [
    ("9:00", "09:00"),
    ("09:00", "09:00"),
    ("9am", "09:00"),
    ("9:00am", "09:00"),
    ("9.00 am", "09:00"),
    ("9.00am", "09:00"),
    ("6:30pm", "18:30"),
    ("12am", "00:00"),
    ("12pm", "12:00"),
    ("23:59", "23:59"),
])
def test_normalize_time_accepts_clock_forms(raw, expected):
    assert normalize_time(raw) == expected


@pytest.mark.parametrize("raw", ["9", "25:00", "10:75", "13pm", "abc", "noon", "", None])
def test_normalize_time_rejects_garbage(raw):
    assert normalize_time(raw) is None


def test_is_iso_day():
    assert is_iso_day("2025-03-01")
    assert not is_iso_day("2025-02-30")
    assert not is_iso_day("1 March")
    assert not is_iso_day(None)


def test_format_date_relative_labels():
    now = datetime(2025, 3, 1, 12, 0)
    assert format_date("2025-03-01", now) == "Today"
    assert format_date("2025-03-02", now) == "Tomorrow"
    assert format_date("2025-03-03", now) == "Mon, Mar 3"
    assert format_date("not a date", now) == "not a date"


def test_time_label_and_instant():
    assert time_label(None, "10:00") is None
    assert time_label("09:00", None) == "09:00"
    assert time_label("09:00", "10:00") == "09:00-10:00"
    assert event_instant("2025-03-01", "14:30") == datetime(2025, 3, 1, 14, 30)


def test_weekday_numbers_start_on_sunday():
    assert day_of_week("2025-03-02") == 0      # Sunday
    assert day_of_week("2025-03-03") == 1      # Monday
    assert day_of_week("2025-03-01") == 6      # Saturday
    assert parse_day_name("Thurs") == 4
    assert parse_day_name("someday") is None
    assert day_name(0) == "Sunday"
