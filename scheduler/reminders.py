# scheduler/reminders.py
"""
In-memory reminder registry.

Each timed event gets up to three one-shot jobs (1 day, 6 hours and 30 minutes
before start), keyed by '<event_id>-<offset_minutes>'. Registration lives only
in memory, so rescan_all() re-arms everything after a restart.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime as _dt, timedelta
from typing import Any, Callable, Dict, List, Optional

from config import REMINDER_OFFSETS, DAILY_SUMMARY_HOUR
from crud import get_future_timed_events, get_chat_ids_with_events_on, get_events_in_range
from database import db_session
from handlers.formatting import format_reminder, format_task_list
from scheduler.time_utils import event_instant, iso_day

logger = logging.getLogger(__name__)

_SNAPSHOT_KEYS = ("id", "chat_id", "task", "date", "start_time", "end_time", "location", "type")


def reminder_key(event_id: int, offset_minutes: int) -> str:
    return f"{event_id}-{offset_minutes}"


def _snapshot(event: Any) -> Dict[str, Any]:
    """Plain-dict copy so timer threads never touch a closed ORM session."""
    if isinstance(event, dict):
        return {k: event.get(k) for k in _SNAPSHOT_KEYS}
    return {k: getattr(event, k, None) for k in _SNAPSHOT_KEYS}


class ReminderScheduler:
    def __init__(self, scheduler, transport, clock: Optional[Callable[[], _dt]] = None, offsets=REMINDER_OFFSETS):
        self.scheduler = scheduler
        self.transport = transport
        self.clock = clock or _dt.now
        self.offsets = tuple(offsets)
        self._jobs: Dict[str, Any] = {}
        self._lock = threading.Lock()

    # ------------------------
    # registry
    # ------------------------
    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._jobs)

    def schedule_event(self, chat_id: str, event: Any) -> int:
        """
        Register the reminders of one event whose firing instant is still ahead.
        Returns how many were registered.
        """
        ev = _snapshot(event)
        if not ev["start_time"] or not ev["date"]:
            return 0
        try:
            start = event_instant(ev["date"], ev["start_time"])
        except ValueError:
            logger.warning("event %s has an unusable date/time: %s %s", ev["id"], ev["date"], ev["start_time"])
            return 0

        now = self.clock()
        count = 0
        for minutes, label in self.offsets:
            fire_at = start - timedelta(minutes=minutes)
            if fire_at <= now:
                continue
            key = reminder_key(ev["id"], minutes)
            action = self._make_job(key, str(chat_id), ev, label)
            with self._lock:
                old = self._jobs.pop(key, None)
                if old is not None:
                    old.cancel()
                self._jobs[key] = self.scheduler.schedule(fire_at, action)
            count += 1
        logger.debug("registered %d reminder(s) for event %s", count, ev["id"])
        return count

    def cancel_event(self, event_id: int) -> int:
        """Cancel every reminder of the event; already-fired ones are simply absent."""
        cancelled = 0
        with self._lock:
            for minutes, _ in self.offsets:
                job = self._jobs.pop(reminder_key(event_id, minutes), None)
                if job is not None:
                    job.cancel()
                    cancelled += 1
        if cancelled:
            logger.debug("cancelled %d reminder(s) for event %s", cancelled, event_id)
        return cancelled

    def reschedule_event(self, chat_id: str, event: Any) -> int:
        self.cancel_event(_snapshot(event)["id"])
        return self.schedule_event(chat_id, event)

    def cancel_all(self, event_ids) -> None:
        for event_id in event_ids:
            self.cancel_event(event_id)

    def rescan_all(self, session_factory=None) -> int:
        """Re-arm reminders for every future timed event (process start)."""
        today = iso_day(self.clock().date())
        with db_session(session_factory) as db:
            events = [_snapshot(e) for e in get_future_timed_events(db, today)]
        registered = sum(self.schedule_event(ev["chat_id"], ev) for ev in events)
        logger.info("Rescheduled reminders for %d event(s) (%d job(s))", len(events), registered)
        return registered

    def _make_job(self, key: str, chat_id: str, ev: Dict[str, Any], label: str):
        def fire():
            with self._lock:
                self._jobs.pop(key, None)
            try:
                self.transport.send_message(chat_id, format_reminder(ev, label, now=self.clock()), parse_mode="Markdown")
            except Exception:
                logger.exception("reminder %s could not be delivered", key)
        return fire

    # ------------------------
    # daily summary
    # ------------------------
    def next_summary_at(self, hour: int = DAILY_SUMMARY_HOUR) -> _dt:
        now = self.clock()
        at = now.replace(hour=hour, minute=0, second=0, microsecond=0)
        if at <= now:
            at += timedelta(days=1)
        return at

    def send_daily_summary(self, session_factory=None) -> int:
        """Send tomorrow's schedule to every chat that has something tomorrow."""
        now = self.clock()
        tomorrow = iso_day(now.date() + timedelta(days=1))
        sent = 0
        with db_session(session_factory) as db:
            for chat_id in get_chat_ids_with_events_on(db, tomorrow):
                tasks = get_events_in_range(db, chat_id, tomorrow, tomorrow)
                if not tasks:
                    continue
                text = f"🌙 *Tomorrow's Schedule*\n{format_task_list(tasks, now=now)}"
                try:
                    self.transport.send_message(chat_id, text, parse_mode="Markdown")
                    sent += 1
                except Exception:
                    logger.exception("daily summary to %s failed", chat_id)
        return sent

    def start_daily_summary(self, session_factory=None, hour: int = DAILY_SUMMARY_HOUR):
        def run():
            try:
                self.send_daily_summary(session_factory)
            finally:
                self.start_daily_summary(session_factory, hour)
        return self.scheduler.schedule(self.next_summary_at(hour), run)
