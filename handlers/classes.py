# handlers/classes.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

import crud
from models import RecurringClass
from scheduler.recurrence import parse_day_name
from scheduler.time_utils import normalize_time, time_to_minutes
from schemas import ClassCandidate, RecurringClassCreate

logger = logging.getLogger(__name__)


@dataclass
class ClassIntakeResult:
    added: List[RecurringClass] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.added) + self.skipped


def validate_class(candidate: ClassCandidate) -> Optional[RecurringClassCreate]:
    """Valid weekday, HH:MM start before end, non-empty subject; else None."""
    if not candidate.subject:
        return None
    day = parse_day_name(candidate.day)
    if day is None:
        return None
    start = normalize_time(candidate.start_time)
    end = normalize_time(candidate.end_time)
    if not start or not end or time_to_minutes(end) <= time_to_minutes(start):
        return None
    return RecurringClassCreate(
        subject=candidate.subject,
        day_of_week=day,
        start_time=start,
        end_time=end,
        location=candidate.location,
    )


def add_classes(db: Session, chat_id: str, candidates: Iterable[ClassCandidate]) -> ClassIntakeResult:
    """Store every valid candidate; invalid ones are skipped without failing the batch."""
    result = ClassIntakeResult()
    for cand in candidates:
        valid = validate_class(cand)
        if valid is None:
            logger.info("Skipping invalid class entry for chat %s: %r", chat_id, cand)
            result.skipped += 1
            continue
        result.added.append(crud.create_class(db, chat_id, **valid.model_dump()))
    return result
