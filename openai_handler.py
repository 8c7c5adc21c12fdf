# openai_handler.py
import json
import logging
import re
from datetime import date as _date, timedelta
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from config import OPENAI_API_KEY, OPENAI_API_URL, OPENAI_MODEL, LLM_TIMEOUT_SECONDS, EVENT_TYPES
from schemas import (
    ClassCandidate,
    ClassesResult,
    EventCreate,
    EventFields,
    EventsFragment,
    FailureFragment,
    Fragment,
    UpdatesFragment,
)
from scheduler.time_utils import normalize_time

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """LLM call failed; `code` is one of invalid_api_key | quota | failed."""

    def __init__(self, code: str, detail: str = ""):
        super().__init__(detail or code)
        self.code = code
        self.detail = detail


SCHEDULE_RULES = (
    "You extract scheduling information from chat messages.\n"
    "Return ONLY valid JSON.\n\n"
    "You must decide whether the message is:\n"
    "A) a schedule update fragment (date only/time only/title only/location only), or\n"
    "B) a multi-event bulletin or date-range (multiple dates), or\n"
    "C) not schedule-related.\n\n"
    "Output one of these JSON shapes:\n\n"
    "1) Fragment update:\n"
    '{ "kind":"updates", "success":true, "overwrite_intent": boolean, "updates": {\n'
    '   "task": string|null,\n'
    '   "date": "YYYY-MM-DD"|null,\n'
    '   "start_time": "HH:MM"|null,\n'
    '   "end_time": "HH:MM"|null,\n'
    '   "location": string|null,\n'
    f'   "type": one of {json.dumps(list(EVENT_TYPES))}|null\n'
    "} }\n\n"
    "2) Multi-event output:\n"
    '{ "kind":"events", "success":true, "events":[\n'
    '  { "task": string, "date":"YYYY-MM-DD", "start_time":"HH:MM"|null, "end_time":"HH:MM"|null, '
    '"location":string|null, "type":label|null }\n'
    "] }\n\n"
    "3) Not schedule-related:\n"
    '{ "success":false, "error":"not_schedule" }\n\n'
    "Rules:\n"
    "- Use Current date for resolving relative dates.\n"
    '- Convert times like "930pm" -> 21:30. Convert "9pm-11pm" into start/end.\n'
    "- If no time is provided, use start_time=null and end_time=null.\n"
    '- Set overwrite_intent=true if the user is correcting (words like "change", "actually", "instead").\n'
    "- For bulletins, apply header context (title/location) to each bullet.\n"
    '- If the user gives a DATE RANGE (e.g., "5 to 6 Jan"), return kind:"events" with ONE event per date.\n'
    "- Classify event types: sports (gym, run, game), meeting (call, meeting), class (lecture, class), "
    "deadline (due, submit), social (party, dinner), admin (taxes, bills).\n"
)

CLASS_RULES = (
    "You extract a weekly class timetable from a chat message.\n"
    "Return ONLY valid JSON of the shape:\n"
    '{ "success": true, "classes": [ { "subject": string, "day": weekday name, '
    '"start_time": "HH:MM", "end_time": "HH:MM", "location": string|null } ] }\n'
    'If the message holds no classes return { "success": false, "error": "not_schedule" }.\n'
    "One entry per weekday occurrence (\"Mon/Wed 9-10 Maths\" is two entries). Use 24h times.\n"
)


# ------------------------ utilities ------------------------
def _extract_json(text: str) -> str:
    """
    Best effort to extract a single JSON object from LLM text.
    Falls back to raw text if no braces found.
    """
    m = re.search(r"\{.*\}", text, re.S)
    return m.group(0) if m else text


def _chat_json(system: str, user: str, max_tokens: int = 650) -> Dict[str, Any]:
    """POST one JSON-mode chat completion and return the decoded object."""
    headers = {
        "Authorization": f"Bearer {OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": OPENAI_MODEL,
        "temperature": 0,
        "max_tokens": max_tokens,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
    }
    try:
        resp = requests.post(OPENAI_API_URL, headers=headers, json=payload, timeout=LLM_TIMEOUT_SECONDS)
        resp.raise_for_status()
        text = (resp.json()["choices"][0]["message"]["content"] or "").strip()
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        logger.warning("LLM request failed with HTTP %s", status)
        if status == 401:
            raise ExtractionError("invalid_api_key", str(e)) from e
        if status == 429:
            raise ExtractionError("quota", str(e)) from e
        raise ExtractionError("failed", str(e)) from e
    except (requests.RequestException, KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning("LLM request failed: %s", e)
        raise ExtractionError("failed", str(e)) from e

    if not text:
        raise ExtractionError("failed", "Empty model response")
    logger.debug("LLM RESPONSE: %s", text)
    try:
        data = json.loads(_extract_json(text))
    except ValueError as e:
        raise ExtractionError("failed", "Invalid JSON from model") from e
    if not isinstance(data, dict):
        raise ExtractionError("failed", "Invalid JSON object")
    return data


# ------------------------ fragment validation ------------------------
def _event_sort_key(ev: EventCreate):
    return (ev.date, ev.start_time or "23:59")


def coerce_fragment(data: Dict[str, Any]) -> Fragment:
    """Validate a raw model answer into UpdatesFragment | EventsFragment | FailureFragment."""
    kind = data.get("kind")
    if kind == "updates" and data.get("success") is True:
        try:
            updates = EventFields.model_validate(data.get("updates") or {})
        except ValidationError:
            return FailureFragment(error="failed", detail="Invalid updates object")
        return UpdatesFragment(updates=updates, overwrite_intent=bool(data.get("overwrite_intent")))

    if kind == "events" and data.get("success") is True and isinstance(data.get("events"), list):
        cleaned: List[EventCreate] = []
        for raw in data["events"]:
            if not isinstance(raw, dict):
                continue
            try:
                cleaned.append(EventCreate.model_validate(raw))
            except ValidationError:
                continue
        if not cleaned:
            return FailureFragment(error="failed", detail="No valid events extracted")
        cleaned.sort(key=_event_sort_key)
        return EventsFragment(events=cleaned)

    error = data.get("error")
    if error == "not_schedule":
        return FailureFragment(error="not_schedule")
    return FailureFragment(error="failed", detail=str(error or "Failed to parse message"))


# ------------------------ offline fallback ------------------------
_TIME_TOKEN = r"\d{1,2}(?:[:.]\d{2})?\s*(?:am|pm)?"
_RANGE_RE = re.compile(rf"\b({_TIME_TOKEN})\s*(?:-|–|to)\s*({_TIME_TOKEN})\b", re.I)
_SINGLE_RE = re.compile(r"\b(\d{1,2}[:.]\d{2}\s*(?:am|pm)?|\d{1,2}\s*(?:am|pm))\b", re.I)


def _naive_fragment(text: str, today: _date) -> Fragment:
    """
    Minimal local parser used ONLY when no API key is configured:
    today/tomorrow/ISO dates, a single time or a time range, the rest as title.
    """
    rest = text
    date_str = None
    tl = text.lower()
    if "tomorrow" in tl:
        date_str = (today + timedelta(days=1)).isoformat()
        rest = re.sub(r"\btomorrow\b", " ", rest, flags=re.I)
    elif "today" in tl:
        date_str = today.isoformat()
        rest = re.sub(r"\btoday\b", " ", rest, flags=re.I)
    else:
        m = re.search(r"\b(\d{4}-\d{2}-\d{2})\b", text)
        if m:
            date_str = m.group(1)
            rest = rest.replace(m.group(1), " ")

    start = end = None
    m = _RANGE_RE.search(rest)
    if m and normalize_time(m.group(1)) and normalize_time(m.group(2)):
        start, end = normalize_time(m.group(1)), normalize_time(m.group(2))
        rest = rest.replace(m.group(0), " ")
    else:
        m = _SINGLE_RE.search(rest)
        if m and normalize_time(m.group(1)):
            start = normalize_time(m.group(1))
            rest = rest.replace(m.group(0), " ")

    rest = re.sub(r"\b(at|on|from)\b", " ", rest, flags=re.I)
    title = re.sub(r"\s{2,}", " ", rest).strip(" ,.-") or None

    updates = EventFields(task=title, date=date_str, start_time=start, end_time=end)
    if updates.is_empty():
        return FailureFragment(error="not_schedule")
    return UpdatesFragment(updates=updates)


# ------------------------ public API ------------------------
def parse_schedule_message(message: str, today: Optional[_date] = None) -> Fragment:
    """
    Ask the LLM to classify and extract one chat message.
    Never raises: every failure comes back as a FailureFragment.
    """
    today = today or _date.today()
    if isinstance(today, str):
        today = _date.fromisoformat(today)

    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set – using naive local parser.")
        return _naive_fragment(message, today)

    user = f'Current date: {today.isoformat()}\n\nMessage:\n"""{message}"""\n\nReturn ONLY JSON.'
    try:
        data = _chat_json(SCHEDULE_RULES, user)
    except ExtractionError as e:
        return FailureFragment(error=e.code, detail=e.detail)
    return coerce_fragment(data)


def parse_class_message(message: str) -> ClassesResult:
    """Extract weekly class candidates; each is validated later on its own."""
    if not OPENAI_API_KEY:
        return ClassesResult(success=False, error="invalid_api_key")
    try:
        data = _chat_json(CLASS_RULES, f'Message:\n"""{message}"""\n\nReturn ONLY JSON.', max_tokens=900)
    except ExtractionError as e:
        return ClassesResult(success=False, error=e.code)

    if data.get("success") is not True or not isinstance(data.get("classes"), list):
        return ClassesResult(success=False, error="not_schedule" if data.get("error") == "not_schedule" else "failed")

    candidates = []
    for raw in data["classes"]:
        if isinstance(raw, dict):
            try:
                candidates.append(ClassCandidate.model_validate(raw))
            except ValidationError:
                continue
    return ClassesResult(success=True, classes=candidates)
