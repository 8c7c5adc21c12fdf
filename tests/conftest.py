"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import init_db
from schemas import EventFields, FailureFragment, UpdatesFragment

NOW = datetime(2025, 3, 1, 12, 0)          # a Saturday


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now += timedelta(**kw)


class _Job:
    def __init__(self, at, action):
        self.at = at
        self.action = action
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose jobs only run when the test says so."""

    def __init__(self, clock):
        self.clock = clock
        self.jobs = []

    def schedule(self, at, action):
        job = _Job(at, action)
        self.jobs.append(job)
        return job

    @property
    def pending(self):
        return [j for j in self.jobs if not j.cancelled]

    def run_due(self):
        due = [j for j in self.pending if j.at <= self.clock()]
        for j in due:
            j.cancelled = True
            j.action()
        return len(due)


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.edited = []
        self.answered = []

    def send_message(self, chat_id, text, parse_mode=None, buttons=None):
        self.sent.append({"chat_id": str(chat_id), "text": text, "parse_mode": parse_mode, "buttons": buttons})
        return {}

    def edit_message(self, chat_id, message_id, text, parse_mode=None, buttons=None):
        self.edited.append({"chat_id": str(chat_id), "message_id": message_id, "text": text, "buttons": buttons})
        return {}

    def answer_callback(self, callback_id, text=None):
        self.answered.append(text)
        return {}

    @property
    def last_text(self):
        return self.sent[-1]["text"] if self.sent else None


class ScriptedExtractor:
    """Stands in for the LLM: returns queued fragments in order."""

    def __init__(self):
        self.queue = []
        self.calls = []

    def push(self, fragment):
        self.queue.append(fragment)
        return self

    def updates(self, overwrite_intent=False, **fields):
        return self.push(UpdatesFragment(updates=EventFields(**fields), overwrite_intent=overwrite_intent))

    def __call__(self, text, today=None):
        self.calls.append(text)
        if not self.queue:
            return FailureFragment(error="not_schedule")
        return self.queue.pop(0)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manual_scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def extractor():
    return ScriptedExtractor()
