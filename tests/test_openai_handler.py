import json
from datetime import date

import pytest
import requests

import openai_handler
from openai_handler import coerce_fragment, parse_class_message, parse_schedule_message
from schemas import EventsFragment, FailureFragment, UpdatesFragment

TODAY = date(2025, 3, 1)


class FakeResponse:
    def __init__(self, status_code=200, content=None):
        self.status_code = status_code
        self._content = content

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)

    def json(self):
        return {"choices": [{"message": {"content": self._content}}]}


@pytest.fixture
def llm(monkeypatch):
    """Patch the HTTP call; tests set .response and read .payloads."""
    state = type("LLM", (), {"response": None, "payloads": []})()

    def fake_post(url, headers=None, json=None, timeout=None):
        state.payloads.append(json)
        return state.response

    monkeypatch.setattr(openai_handler, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(openai_handler.requests, "post", fake_post)
    return state


def test_updates_answer_becomes_updates_fragment(llm):
    llm.response = FakeResponse(content=json.dumps({
        "kind": "updates", "success": True, "overwrite_intent": True,
        "updates": {"task": " Squash ", "date": "2025-03-05", "start_time": "5pm", "end_time": "18:00", "type": "Sports"},
    }))
    frag = parse_schedule_message("actually squash 5-6pm on wed", TODAY)
    assert isinstance(frag, UpdatesFragment)
    assert frag.overwrite_intent is True
    assert frag.updates.task == "Squash"
    assert frag.updates.start_time == "17:00"
    assert frag.updates.type == "sports"
    assert "Current date: 2025-03-01" in llm.payloads[0]["messages"][1]["content"]


def test_events_answer_drops_invalid_and_sorts(llm):
    llm.response = FakeResponse(content=json.dumps({
        "kind": "events", "success": True,
        "events": [
            {"task": "Match", "date": "2025-03-06", "start_time": "10:00"},
            {"task": "", "date": "2025-03-04"},
            {"task": "Match", "date": "2025-03-05", "start_time": None},
            {"task": "Match", "date": "2025-03-05", "start_time": "09:00"},
            "junk",
        ],
    }))
    frag = parse_schedule_message("matches 5 to 6 March", TODAY)
    assert isinstance(frag, EventsFragment)
    assert [(e.date, e.start_time) for e in frag.events] == [
        ("2025-03-05", "09:00"), ("2025-03-05", None), ("2025-03-06", "10:00"),
    ]


def test_not_schedule_answer(llm):
    llm.response = FakeResponse(content='{"success": false, "error": "not_schedule"}')
    frag = parse_schedule_message("hello there", TODAY)
    assert isinstance(frag, FailureFragment) and frag.error == "not_schedule"


@pytest.mark.parametrize("status, code", [(401, "invalid_api_key"), (429, "quota"), (500, "failed")])
def test_http_errors_map_to_failure_codes(llm, status, code):
    llm.response = FakeResponse(status_code=status)
    frag = parse_schedule_message("gym tomorrow", TODAY)
    assert isinstance(frag, FailureFragment)
    assert frag.error == code


def test_garbage_answer_is_a_failure(llm):
    llm.response = FakeResponse(content="sorry, I cannot help")
    frag = parse_schedule_message("gym tomorrow", TODAY)
    assert isinstance(frag, FailureFragment) and frag.error == "failed"


def test_network_error_is_a_failure(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(openai_handler, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(openai_handler.requests, "post", boom)
    frag = parse_schedule_message("gym tomorrow", TODAY)
    assert isinstance(frag, FailureFragment) and frag.error == "failed"


def test_events_without_valid_entries_fail():
    frag = coerce_fragment({"kind": "events", "success": True, "events": [{"task": "x"}]})
    assert isinstance(frag, FailureFragment)


def test_offline_parser_without_key(monkeypatch):
    monkeypatch.setattr(openai_handler, "OPENAI_API_KEY", "")
    frag = parse_schedule_message("Gym tomorrow 5pm-6pm", TODAY)
    assert isinstance(frag, UpdatesFragment)
    assert frag.updates.task == "Gym"
    assert frag.updates.date == "2025-03-02"
    assert (frag.updates.start_time, frag.updates.end_time) == ("17:00", "18:00")

    single = parse_schedule_message("Dentist at 9:30am", TODAY)
    assert single.updates.start_time == "09:30"
    assert single.updates.date is None


def test_class_message(llm):
    llm.response = FakeResponse(content=json.dumps({
        "success": True,
        "classes": [
            {"subject": "Maths", "day": "Mon", "start_time": "09:00", "end_time": "10:30", "location": "Room 4"},
            {"subject": "Maths", "day": "Wed", "start_time": "09:00", "end_time": "10:30"},
        ],
    }))
    result = parse_class_message("Maths Mon/Wed 9-10:30 Room 4")
    assert result.success
    assert [c.day for c in result.classes] == ["Mon", "Wed"]


def test_class_message_failure(llm):
    llm.response = FakeResponse(status_code=429)
    result = parse_class_message("Maths Mon 9-10")
    assert not result.success and result.error == "quota"
