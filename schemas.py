# schemas.py

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from config import EVENT_TYPES
from scheduler.time_utils import is_iso_day, normalize_time


def _clean_text(v):
    if v is None:
        return None
    s = str(v).strip()
    return s or None


# -----------------------------
# Event fields (shared by drafts, fragments and stored events)
# -----------------------------
class EventFields(BaseModel):
    task: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    type: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("task", "location", mode="before")
    @classmethod
    def _strip(cls, v):
        return _clean_text(v)

    @field_validator("date", mode="before")
    @classmethod
    def _iso_date(cls, v):
        # Unusable dates are dropped rather than rejected
        return v if is_iso_day(v) else None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _clock(cls, v):
        return normalize_time(v)

    @field_validator("type", mode="before")
    @classmethod
    def _category(cls, v):
        v = _clean_text(v)
        if v is None:
            return None
        v = v.lower()
        return v if v in EVENT_TYPES else "other"

    def is_empty(self) -> bool:
        return not any(getattr(self, k) for k in EventFields.model_fields)


class EventCreate(EventFields):
    """A fully-specified event: title and date are required."""
    task: str
    date: str

    @model_validator(mode="after")
    def _require_title_and_date(self):
        if not self.task or not self.date:
            raise ValueError("task and date are required")
        return self


# -----------------------------
# Extraction results: closed tagged union
# -----------------------------
class UpdatesFragment(BaseModel):
    kind: Literal["updates"] = "updates"
    updates: EventFields = Field(default_factory=EventFields)
    overwrite_intent: bool = False


class EventsFragment(BaseModel):
    kind: Literal["events"] = "events"
    events: List[EventCreate]

    @field_validator("events")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("at least one event is required")
        return v


FailureCode = Literal["invalid_api_key", "quota", "not_schedule", "failed"]


class FailureFragment(BaseModel):
    kind: Literal["failure"] = "failure"
    error: FailureCode = "failed"
    detail: Optional[str] = None


Fragment = Union[UpdatesFragment, EventsFragment, FailureFragment]


# -----------------------------
# Recurring commitments (weekly classes)
# -----------------------------
class ClassCandidate(BaseModel):
    """Raw class entry as returned by the extractor; validated later, one by one."""
    subject: Optional[str] = None
    day: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None

    @field_validator("subject", "day", "start_time", "end_time", "location", mode="before")
    @classmethod
    def _as_text(cls, v):
        return _clean_text(v)


class RecurringClassCreate(BaseModel):
    subject: str
    day_of_week: int
    start_time: str
    end_time: str
    location: Optional[str] = None


class ClassesResult(BaseModel):
    success: bool = True
    classes: List[ClassCandidate] = []
    error: Optional[FailureCode] = None
