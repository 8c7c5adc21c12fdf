# bot.py
"""
Conversation front-end: routes chat messages and button presses to the draft
engine, the stored-event flows and the class intake, and renders the replies.
"""

from __future__ import annotations

import logging
from datetime import datetime as _dt, timedelta
from typing import Callable, Optional

import crud
from database import db_session
from handlers import drafts as D
from handlers.classes import add_classes
from handlers.drafts import DraftEngine
from handlers.events import EDITABLE_FIELDS, apply_field_edit, clear_events, remove_event
from handlers.formatting import (
    FIELD_PROMPTS,
    NEXT_ACTION_PROMPT,
    USAGE_HINT,
    class_list_keyboard,
    confirm_keyboard,
    conflict_keyboard,
    delete_confirm_keyboard,
    edit_fields_keyboard,
    event_picker_keyboard,
    failure_message,
    format_batch_summary,
    format_class_list,
    format_conflicts,
    format_next,
    format_preview,
    format_task_list,
    main_menu_keyboard,
)
from handlers.session_store import SessionStore
from openai_handler import parse_class_message, parse_schedule_message
from scheduler.time_utils import event_instant, iso_day

logger = logging.getLogger(__name__)

SCHEDULE_KEYWORDS = (
    "tomorrow", "today", "next", "on ", "at ", "pm", "am",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec",
    "meeting", "call", "dentist", "appointment", "gym", "schedule", "softball", "game", "deadline", "due",
)

HELP_TEXT = (
    "📋 *Available Commands:*\n\n"
    "/today - View today's events\n"
    "/week - View next 7 days\n"
    "/next - View next upcoming event\n"
    "/all - View all upcoming events\n"
    "/addclass - Add weekly classes\n"
    "/classes - View weekly classes\n"
    "/cancel - Stop editing / adding classes\n"
    "/menu - Show main menu\n"
    "/clear - Delete all events\n"
)

WELCOME_TEXT = (
    "👋 Welcome to AI Schedule Bot!\n\n"
    "Send messages like:\n"
    "• \"Meeting with Sarah tomorrow at 3pm\"\n"
    "• \"Dentist appointment next Monday 10am\"\n"
    "• \"Gym 5-6 Jan 7am\"\n\n"
    "Use /menu for quick access to all features!"
)

GENERIC_ERROR = "❌ Error. Try again."


def looks_like_schedule(text: str) -> bool:
    t = text.lower()
    return any(k in t for k in SCHEDULE_KEYWORDS) or any(ch.isdigit() for ch in t)


class ScheduleBot:
    def __init__(
        self,
        transport,
        store: Optional[SessionStore] = None,
        reminders=None,
        extract: Callable = parse_schedule_message,
        extract_classes: Callable = parse_class_message,
        session_factory=None,
        clock: Optional[Callable[[], _dt]] = None,
    ):
        self.transport = transport
        self.clock = clock or _dt.now
        self.store = store or SessionStore(clock=self.clock)
        self.reminders = reminders
        self.engine = DraftEngine(reminders=reminders, clock=self.clock)
        self.extract = extract
        self.extract_classes = extract_classes
        self.session_factory = session_factory

    def _today(self) -> str:
        return iso_day(self.clock().date())

    def _send(self, chat_id, text, **kw):
        return self.transport.send_message(chat_id, text, **kw)

    def _menu_prompt(self, chat_id):
        self._send(chat_id, NEXT_ACTION_PROMPT, buttons=main_menu_keyboard())

    # =====================================================
    # Messages
    # =====================================================
    def handle_message(self, chat_id, text: str) -> None:
        text = (text or "").strip()
        if not text:
            return
        try:
            with self.store.locked(chat_id) as session, db_session(self.session_factory) as db:
                session.updated_at = self.clock()
                if text.startswith("/"):
                    return self._command(db, session, text)
                if session.editing is not None:
                    return self._field_edit(db, session, text)
                if session.adding_classes:
                    return self._class_intake(db, session, text)
                return self._schedule_intake(db, session, text)
        except Exception:
            logger.exception("message handling failed for chat %s", chat_id)
            self._send(chat_id, GENERIC_ERROR)

    def _schedule_intake(self, db, session, text: str) -> None:
        chat_id = session.chat_id
        if not looks_like_schedule(text):
            return self._send(chat_id, USAGE_HINT)

        fragment = self.extract(text, self.clock().date())
        result = self.engine.handle_fragment(db, session, fragment)
        now = self.clock()

        if result.status == D.FAILED:
            return self._send(chat_id, failure_message(result.error))
        if result.status == D.NEED_DETAIL:
            return self._send(chat_id, "🤔 I need a bit more detail. Send a title, date or time (e.g., \"Squash tomorrow 6pm\").")
        if result.status == D.BATCH_SAVED:
            return self._send(chat_id, format_batch_summary(result.events, now=now), parse_mode="Markdown")
        if result.status == D.READY_TO_CONFIRM:
            return self._send(
                chat_id,
                f"I've prepared this event. Confirm?\n\n{format_preview(result.draft.fields, now)}",
                buttons=confirm_keyboard(result.draft.id),
            )
        missing = ", ".join(result.missing)
        self._send(
            chat_id,
            f"Draft updated. Missing: {missing}.\n\nCurrent draft:\n{format_preview(result.draft.fields, now)}\n\n"
            "Send the missing part (e.g., \"18 Jan\", \"5pm-6pm\", \"Squash IHG\").",
        )

    def _field_edit(self, db, session, text: str) -> None:
        result = apply_field_edit(db, self.reminders, session, text, self.extract, self._today())
        if result.status != "updated":
            return self._send(session.chat_id, result.message)
        preview = format_preview(result.event, self.clock(), markdown=True)
        self._send(session.chat_id, f"✅ *Updated!*\n\n{preview}", parse_mode="Markdown")
        self._menu_prompt(session.chat_id)

    def _class_intake(self, db, session, text: str) -> None:
        chat_id = session.chat_id
        extracted = self.extract_classes(text)
        if not extracted.success or not extracted.classes:
            if extracted.error in ("invalid_api_key", "quota"):
                return self._send(chat_id, failure_message(extracted.error))
            return self._send(chat_id, "❌ Couldn't read any classes. Try e.g. \"Maths Mon 09:00-10:30 Room 4\", or /cancel.")

        result = add_classes(db, chat_id, extracted.classes)
        if not result.added:
            return self._send(chat_id, f"❌ None of the {result.total} class(es) were valid (day, start/end time and subject are required). Try again or /cancel.")

        session.adding_classes = False
        self._send(chat_id, f"✅ Added {len(result.added)} of {result.total} class(es).")
        classes = crud.list_classes(db, chat_id)
        self._send(chat_id, format_class_list(classes), parse_mode="Markdown")

    # =====================================================
    # Commands
    # =====================================================
    def _command(self, db, session, text: str) -> None:
        chat_id = session.chat_id
        cmd = text.split()[0].lower().split("@")[0]

        if cmd == "/start":
            return self._send(chat_id, WELCOME_TEXT, buttons=main_menu_keyboard())
        if cmd == "/menu":
            return self._send(chat_id, "📱 *Main Menu*\n\nSelect an option:", parse_mode="Markdown", buttons=main_menu_keyboard())
        if cmd in ("/today", "/week", "/next", "/all"):
            return self._show(db, chat_id, cmd[1:])
        if cmd == "/clear":
            ids = clear_events(db, self.reminders, chat_id)
            logger.info("Cleared %d event(s) for chat %s", len(ids), chat_id)
            return self._send(chat_id, "🗑️ All tasks cleared!")
        if cmd == "/addclass":
            session.start_adding_classes()
            return self._send(chat_id, "📚 Send your classes, e.g. \"Maths Mon/Wed 09:00-10:30 Room 4\".")
        if cmd == "/classes":
            classes = crud.list_classes(db, chat_id)
            return self._send(chat_id, format_class_list(classes), parse_mode="Markdown", buttons=class_list_keyboard(classes))
        if cmd == "/cancel":
            session.clear_modes()
            return self._send(chat_id, "Cancelled.")
        if cmd in ("/", "/help"):
            return self._send(chat_id, HELP_TEXT, parse_mode="Markdown")

    def _show(self, db, chat_id: str, view: str) -> None:
        now = self.clock()
        today = iso_day(now.date())

        if view == "today":
            tasks = crud.get_events_in_range(db, chat_id, today, today)
            header, empty = "📅 *Today's Schedule*", "No tasks for today!"
        elif view == "week":
            tasks = crud.get_events_in_range(db, chat_id, today, iso_day(now.date() + timedelta(days=6)))
            header, empty = "📆 *Next 7 Days*", "No tasks this week!"
        elif view == "all":
            tasks = crud.get_upcoming_events(db, chat_id, today)
            header, empty = "📋 *All Upcoming Tasks*", "No tasks scheduled!"
        else:
            upcoming = [
                t for t in crud.get_upcoming_events(db, chat_id, today)
                if event_instant(t.date, t.start_time or "23:59") >= now
            ]
            upcoming.sort(key=lambda t: event_instant(t.date, t.start_time or "23:59"))
            if not upcoming:
                return self._send(chat_id, "✅ You have no upcoming tasks.")
            return self._send(chat_id, format_next(upcoming[0], now), parse_mode="Markdown")

        body = format_task_list(tasks, now) if tasks else f"\n{empty}"
        self._send(chat_id, f"{header}\n{body}", parse_mode="Markdown")

    # =====================================================
    # Buttons
    # =====================================================
    def handle_callback(self, chat_id, message_id, callback_id, data: str) -> None:
        if not data:
            return
        try:
            with self.store.locked(chat_id) as session, db_session(self.session_factory) as db:
                session.updated_at = self.clock()
                self._callback(db, session, message_id, callback_id, data)
        except Exception:
            logger.exception("callback %r failed for chat %s", data, chat_id)
            self.transport.answer_callback(callback_id, GENERIC_ERROR)

    def _callback(self, db, session, message_id, callback_id, data: str) -> None:
        chat_id = session.chat_id
        action, _, arg = data.partition(":")
        answer = lambda text=None: self.transport.answer_callback(callback_id, text)
        edit = lambda text, **kw: self.transport.edit_message(chat_id, message_id, text, **kw)
        now = self.clock()

        if action == "menu":
            answer()
            return self._menu(db, chat_id, arg)

        # ---- draft buttons ----
        if action in ("confirm", "edit", "discard", "conflict_keep", "conflict_replace", "conflict_cancel"):
            return self._draft_action(db, session, action, arg, answer, edit)

        # ---- stored events ----
        if action == "edit_select":
            event = self._event_or_none(db, chat_id, arg)
            if event is None:
                return answer("❌ Event not found.")
            answer()
            return edit(f"*Editing Event:*\n\n{format_preview(event, now, markdown=True)}",
                        parse_mode="Markdown", buttons=edit_fields_keyboard(event.id))

        if action == "edit_change":
            field, _, event_id = arg.partition(":")
            event = self._event_or_none(db, chat_id, event_id)
            if event is None or field not in EDITABLE_FIELDS:
                return answer("❌ Event not found.")
            session.start_editing(event.id, field)
            answer("Send the new value now.")
            return self._send(chat_id, f"Send the new {FIELD_PROMPTS[field]}:")

        if action == "cancel_edit":
            session.editing = None
            answer("Cancelled.")
            return edit("Edit cancelled.")

        if action == "delete_confirm":
            event = self._event_or_none(db, chat_id, arg)
            if event is None:
                return answer("❌ Event not found.")
            answer()
            return edit(f"*Are you sure?*\n\n{format_preview(event, now, markdown=True)}",
                        parse_mode="Markdown", buttons=delete_confirm_keyboard(event.id))

        if action == "delete_yes":
            event = self._event_or_none(db, chat_id, arg)
            if event is None:
                return answer("❌ Event not found.")
            remove_event(db, self.reminders, chat_id, event.id)
            answer("✅ Deleted.")
            edit("🗑️ Event deleted.")
            return self._menu_prompt(chat_id)

        if action == "cancel_delete":
            answer("Cancelled.")
            return edit("Delete cancelled.")

        if action == "class_delete":
            try:
                ok = crud.delete_class(db, chat_id, int(arg))
            except ValueError:
                ok = False
            if not ok:
                return answer("❌ Class not found.")
            answer("✅ Deleted.")
            classes = crud.list_classes(db, chat_id)
            return edit(format_class_list(classes), parse_mode="Markdown", buttons=class_list_keyboard(classes))

        answer()

    def _draft_action(self, db, session, action: str, draft_id: str, answer, edit) -> None:
        chat_id = session.chat_id
        now = self.clock()

        if action == "confirm":
            result = self.engine.confirm(db, session, draft_id)
        elif action == "edit":
            result = self.engine.edit(session, draft_id)
        elif action == "discard":
            result = self.engine.discard(session, draft_id)
        elif action == "conflict_keep":
            result = self.engine.keep_both(db, session, draft_id)
        elif action == "conflict_replace":
            result = self.engine.replace(db, session, draft_id)
        else:
            result = self.engine.cancel_conflict(session, draft_id)

        status = result.status
        if status == D.EXPIRED:
            return answer("❌ Draft expired.")
        if status == D.INCOMPLETE:
            return answer("Need at least title + date.")
        if status == D.CONFLICT:
            edit(format_conflicts(result.draft.fields, result.conflicts, now),
                 parse_mode="Markdown", buttons=conflict_keyboard(result.draft.id))
            return answer()
        if status == D.EDITING:
            answer("Send the corrected info now.")
            return self._send(
                chat_id,
                "✏️ Send the correction (e.g., \"actually 6pm-7pm\" or \"change date to 19 Jan\").\n\n"
                f"Current draft:\n{format_preview(result.draft.fields, now)}",
            )
        if status == D.DISCARDED:
            answer("Discarded.")
            return edit("🗑️ Discarded draft.")
        if status == D.CONFLICT_CANCELLED:
            answer("Cancelled.")
            return edit(f"Cancelled. Draft not saved.\n\n{format_preview(result.draft.fields, now)}",
                        buttons=confirm_keyboard(result.draft.id))

        saved = format_preview(result.events[0], now)
        if status == D.KEPT_BOTH:
            answer("Saved (kept both).")
            edit(f"✅ Saved (kept both)!\n\n{saved}")
        elif status == D.REPLACED:
            answer("Replaced and saved.")
            edit(f"♻️ Replaced {len(result.conflicts)} conflicting item(s) and saved:\n\n{saved}")
        else:
            answer("Saved.")
            edit(f"✅ Saved!\n\n{saved}")
        self._menu_prompt(chat_id)

    def _menu(self, db, chat_id: str, choice: str) -> None:
        if choice in ("today", "week", "next", "all"):
            return self._show(db, chat_id, choice)
        if choice in ("edit", "delete"):
            events = crud.get_upcoming_events(db, chat_id, self._today())
            if not events:
                return self._send(chat_id, f"📋 No events to {choice}.")
            if choice == "edit":
                return self._send(chat_id, "✏️ *Select an event to edit:*", parse_mode="Markdown",
                                  buttons=event_picker_keyboard(events, "edit_select", self.clock()))
            return self._send(chat_id, "🗑️ *Select an event to delete:*", parse_mode="Markdown",
                              buttons=event_picker_keyboard(events, "delete_confirm", self.clock()))
        if choice == "settings":
            return self._send(chat_id, "⚙️ Reminders fire 1 day, 6 hours and 30 minutes before each timed event.")

    @staticmethod
    def _event_or_none(db, chat_id, raw_id):
        try:
            event_id = int(raw_id)
        except (TypeError, ValueError):
            return None
        return crud.get_event(db, chat_id, event_id)
