# handlers/session_store.py
"""
Per-conversation, in-memory draft state.

A Session holds the chat's in-flight drafts (insertion order = search order),
an optional "editing a stored event" pointer and an optional "adding classes"
flag. Nothing here is persisted; the prune sweep drops stale drafts and idle
empty sessions.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime as _dt, timedelta
from typing import Callable, Dict, List, Optional

from config import DRAFT_TTL_SECONDS, CONFIRM_TTL_SECONDS, PRUNE_INTERVAL_SECONDS
from schemas import EventFields

logger = logging.getLogger(__name__)

COLLECTING = "collecting"
AWAITING_CONFIRM = "awaiting_confirm"
RESOLVING_CONFLICT = "resolving_conflict"

_draft_seq = itertools.count(1)


@dataclass
class Draft:
    id: str
    fields: EventFields
    state: str = COLLECTING
    updated_at: Optional[_dt] = None
    overwrite_next: bool = False


@dataclass
class EditPointer:
    event_id: int
    field: str                     # title | date | time | location


@dataclass
class Session:
    chat_id: str
    updated_at: _dt
    drafts: List[Draft] = field(default_factory=list)
    editing: Optional[EditPointer] = None
    adding_classes: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    # ------------------------
    # drafts
    # ------------------------
    def new_draft(self, now: _dt) -> Draft:
        # time-ordered and unique even when two drafts start in the same millisecond;
        # the fixed-width suffix keeps string order equal to creation order
        draft = Draft(id=f"{int(now.timestamp() * 1000)}{next(_draft_seq):012d}", fields=EventFields(), updated_at=now)
        self.drafts.append(draft)
        return draft

    def active_draft(self) -> Optional[Draft]:
        """Most recently inserted draft that is still collecting input."""
        for d in reversed(self.drafts):
            if d.state == COLLECTING:
                return d
        return None

    def find_draft(self, draft_id: str) -> Optional[Draft]:
        for d in self.drafts:
            if d.id == str(draft_id):
                return d
        return None

    def remove_draft(self, draft_id: str) -> bool:
        before = len(self.drafts)
        self.drafts = [d for d in self.drafts if d.id != str(draft_id)]
        return len(self.drafts) != before

    # ------------------------
    # edit pointer / class intake (mutually exclusive)
    # ------------------------
    def start_editing(self, event_id: int, field_name: str) -> None:
        self.adding_classes = False
        self.editing = EditPointer(int(event_id), field_name)

    def start_adding_classes(self) -> None:
        self.editing = None
        self.adding_classes = True

    def clear_modes(self) -> None:
        self.editing = None
        self.adding_classes = False


class SessionStore:
    def __init__(
        self,
        clock: Optional[Callable[[], _dt]] = None,
        draft_ttl: int = DRAFT_TTL_SECONDS,
        confirm_ttl: int = CONFIRM_TTL_SECONDS,
    ):
        self.clock = clock or _dt.now
        self.draft_ttl = timedelta(seconds=draft_ttl)
        self.confirm_ttl = timedelta(seconds=confirm_ttl)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __contains__(self, chat_id) -> bool:
        return str(chat_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get_or_create(self, chat_id) -> Session:
        key = str(chat_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = Session(chat_id=key, updated_at=self.clock())
                self._sessions[key] = session
            return session

    @contextmanager
    def locked(self, chat_id):
        """
        Yield the chat's session with its lock held.
        If a prune pass dropped the session before the lock was taken, a fresh one is used instead.
        """
        while True:
            session = self.get_or_create(chat_id)
            session.lock.acquire()
            if self._sessions.get(str(chat_id)) is session:
                break
            session.lock.release()
        try:
            yield session
        finally:
            session.lock.release()

    def ttl_for(self, draft: Draft) -> timedelta:
        return self.draft_ttl if draft.state == COLLECTING else self.confirm_ttl

    def prune_expired(self, now: Optional[_dt] = None) -> int:
        """
        Drop drafts idle past their TTL, then sessions left with nothing in them.
        Sessions currently being worked on (lock held) are skipped this round.
        Returns the number of drafts removed.
        """
        now = now or self.clock()
        removed = 0
        with self._lock:
            for key, session in list(self._sessions.items()):
                if not session.lock.acquire(blocking=False):
                    continue
                try:
                    keep = [d for d in session.drafts if (now - d.updated_at) <= self.ttl_for(d)]
                    removed += len(session.drafts) - len(keep)
                    session.drafts = keep
                    idle = (now - session.updated_at) > self.draft_ttl
                    if not keep and idle and session.editing is None and not session.adding_classes:
                        del self._sessions[key]
                finally:
                    session.lock.release()
        if removed:
            logger.info("Pruned %d expired draft(s)", removed)
        return removed

    def start_pruning(self, scheduler, interval: int = PRUNE_INTERVAL_SECONDS):
        """Run prune_expired every `interval` seconds on the given scheduler."""
        def tick():
            try:
                self.prune_expired()
            finally:
                self.start_pruning(scheduler, interval)
        return scheduler.schedule(self.clock() + timedelta(seconds=interval), tick)
