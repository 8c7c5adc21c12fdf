# handlers/drafts.py
"""
Draft reconciliation: turns a stream of extracted fragments into saved events.

    updates fragment -> merge into the chat's active draft (or fork a new one)
                        -> 'collecting' until task + date are known
                        -> 'awaiting_confirm' (Confirm / Edit / Discard)
                        -> conflict check on Confirm
                           -> 'resolving_conflict' (Keep both / Replace / Cancel)
                        -> saved, draft removed
    events fragment  -> every event saved at once, no confirmation
    failure fragment -> nothing changes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime as _dt
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session as DBSession

import crud
from handlers.events import add_event, remove_event
from handlers.session_store import (
    AWAITING_CONFIRM,
    COLLECTING,
    RESOLVING_CONFLICT,
    Draft,
    Session,
)
from scheduler.conflicts import KIND_CLASS, Conflict, find_conflicts
from schemas import EventCreate, EventFields, EventsFragment, FailureFragment, UpdatesFragment

logger = logging.getLogger(__name__)

# Result statuses
FAILED = "failed"
NEED_DETAIL = "need_detail"
DRAFT_UPDATED = "draft_updated"
READY_TO_CONFIRM = "ready_to_confirm"
BATCH_SAVED = "batch_saved"
SAVED = "saved"
CONFLICT = "conflict"
KEPT_BOTH = "kept_both"
REPLACED = "replaced"
CONFLICT_CANCELLED = "conflict_cancelled"
EDITING = "editing"
DISCARDED = "discarded"
INCOMPLETE = "incomplete"
EXPIRED = "expired"


@dataclass
class DraftResult:
    status: str
    draft: Optional[Draft] = None
    events: List[Any] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    error: Optional[str] = None


# ------------------------
# Pure draft rules
# ------------------------

def is_complete(fields: EventFields) -> bool:
    return bool(fields.task) and bool(fields.date)


def missing_fields(fields: EventFields) -> List[str]:
    missing = []
    if not fields.task:
        missing.append("title")
    if not fields.date:
        missing.append("date")
    return missing


def should_start_new_draft(current: EventFields, updates: EventFields, overwrite_intent: bool) -> bool:
    """
    A different date on a draft that already has a title/time/location, or a
    different title on a draft that already has a date, describes another event.
    Explicit corrections always continue the current draft.
    """
    if overwrite_intent:
        return False

    has_other_info = bool(current.task or current.start_time or current.location)
    if updates.date and current.date and has_other_info and updates.date != current.date:
        return True

    if updates.task and current.task and current.date and updates.task != current.task:
        return True

    return False


def merge_draft(current: EventFields, updates: EventFields, overwrite_intent: bool, overwrite_next: bool = False) -> EventFields:
    """Fill empty fields; replace filled ones only when overwriting is allowed."""
    allow_overwrite = overwrite_intent or overwrite_next
    for name in EventFields.model_fields:
        value = getattr(updates, name)
        if value is None:
            continue
        if not getattr(current, name) or allow_overwrite:
            setattr(current, name, value)
    return current


# ------------------------
# Engine
# ------------------------

class DraftEngine:
    def __init__(self, reminders=None, clock: Optional[Callable[[], _dt]] = None, conflict_finder: Callable = find_conflicts):
        self.reminders = reminders
        self.clock = clock or _dt.now
        self.find_conflicts = conflict_finder

    def handle_fragment(self, db: DBSession, session: Session, fragment) -> DraftResult:
        if isinstance(fragment, FailureFragment):
            return DraftResult(FAILED, error=fragment.error)
        if isinstance(fragment, EventsFragment):
            return self.save_batch(db, session.chat_id, fragment.events)
        if isinstance(fragment, UpdatesFragment):
            return self.merge_updates(session, fragment)
        return DraftResult(FAILED, error="failed")

    def save_batch(self, db: DBSession, chat_id: str, events: List[EventCreate]) -> DraftResult:
        """Bulk input is authoritative: save everything, in order, without conflict checks."""
        saved = [add_event(db, self.reminders, chat_id, ev.model_dump()) for ev in events]
        return DraftResult(BATCH_SAVED, events=saved)

    def merge_updates(self, session: Session, fragment: UpdatesFragment) -> DraftResult:
        updates = fragment.updates
        if updates.is_empty():
            return DraftResult(NEED_DETAIL)

        now = self.clock()
        draft = session.active_draft() or session.new_draft(now)
        if should_start_new_draft(draft.fields, updates, fragment.overwrite_intent):
            draft = session.new_draft(now)

        merge_draft(draft.fields, updates, fragment.overwrite_intent, draft.overwrite_next)
        draft.overwrite_next = False
        draft.updated_at = now

        if is_complete(draft.fields):
            draft.state = AWAITING_CONFIRM
            return DraftResult(READY_TO_CONFIRM, draft=draft)
        return DraftResult(DRAFT_UPDATED, draft=draft, missing=missing_fields(draft.fields))

    # ------------------------
    # Button actions
    # ------------------------
    def confirm(self, db: DBSession, session: Session, draft_id: str) -> DraftResult:
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)
        if not is_complete(draft.fields):
            return DraftResult(INCOMPLETE, draft=draft, missing=missing_fields(draft.fields))

        f = draft.fields
        conflicts = self.find_conflicts(db, session.chat_id, f.date, f.start_time, f.end_time)
        if conflicts:
            draft.state = RESOLVING_CONFLICT
            draft.updated_at = self.clock()
            return DraftResult(CONFLICT, draft=draft, conflicts=conflicts)

        return self._save(db, session, draft, SAVED)

    def keep_both(self, db: DBSession, session: Session, draft_id: str) -> DraftResult:
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)
        return self._save(db, session, draft, KEPT_BOTH)

    def replace(self, db: DBSession, session: Session, draft_id: str) -> DraftResult:
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)

        f = draft.fields
        conflicts = self.find_conflicts(db, session.chat_id, f.date, f.start_time, f.end_time)
        for c in conflicts:
            if c.kind == KIND_CLASS:
                crud.delete_class(db, session.chat_id, c.id)
            else:
                remove_event(db, self.reminders, session.chat_id, c.id)
        result = self._save(db, session, draft, REPLACED)
        result.conflicts = conflicts
        return result

    def cancel_conflict(self, session: Session, draft_id: str) -> DraftResult:
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)
        draft.state = AWAITING_CONFIRM
        draft.updated_at = self.clock()
        return DraftResult(CONFLICT_CANCELLED, draft=draft)

    def edit(self, session: Session, draft_id: str) -> DraftResult:
        """The next merge into this draft overwrites, whatever the wording."""
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)
        draft.overwrite_next = True
        draft.state = COLLECTING
        draft.updated_at = self.clock()
        return DraftResult(EDITING, draft=draft)

    def discard(self, session: Session, draft_id: str) -> DraftResult:
        draft = session.find_draft(draft_id)
        if draft is None:
            return DraftResult(EXPIRED)
        session.remove_draft(draft.id)
        return DraftResult(DISCARDED, draft=draft)

    def _save(self, db: DBSession, session: Session, draft: Draft, status: str) -> DraftResult:
        event = add_event(db, self.reminders, session.chat_id, draft.fields.model_dump())
        session.remove_draft(draft.id)
        return DraftResult(status, draft=draft, events=[event])
