# handlers/formatting.py
"""Message text and inline keyboards for the chat front-end (Telegram Markdown)."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Sequence

from config import BATCH_PREVIEW_LIMIT
from scheduler.recurrence import day_name
from scheduler.time_utils import format_date, time_label

ICONS = {
    "sports": "⚽",
    "meeting": "💼",
    "class": "📚",
    "deadline": "⏰",
    "social": "🎉",
    "admin": "📋",
    "other": "📌",
}

NEXT_ACTION_PROMPT = "✨ What would you like to do next?"
USAGE_HINT = "If you'd like to add something, try:\n\"18 Jan\"\n\"5pm-6pm\"\n\"Squash IHG @ Courts 1-3\""

FAILURE_MESSAGES = {
    "invalid_api_key": "❌ LLM API key is invalid (401). Replace it with a correct key.",
    "quota": "❌ LLM quota/rate limit (429). Check billing/limits on the API account.",
    "not_schedule": "I didn't detect schedule info. Send a date/time/title (e.g., \"18 Jan\", \"5pm-6pm\").",
    "failed": "❌ I couldn't parse that. Try a date/time/title fragment.",
}

FIELD_PROMPTS = {
    "title": 'title (e.g., "Squash game")',
    "date": 'date (e.g., "18 Jan" or "2026-01-18")',
    "time": 'time (e.g., "5pm-6pm" or "14:30")',
    "location": 'location (e.g., "Courts 1-3")',
}


def _get(obj: Any, key: str):
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def icon_for(kind: Optional[str]) -> str:
    return ICONS.get(kind or "", "📌")


def escape_markdown(text) -> str:
    return re.sub(r"([_*\[\]`])", r"\\\1", str(text))


def failure_message(code: Optional[str]) -> str:
    return FAILURE_MESSAGES.get(code or "failed", FAILURE_MESSAGES["failed"])


# ------------------------
# Event / draft previews
# ------------------------

def format_preview(ev: Any, now=None, *, markdown: bool = False) -> str:
    """Multi-line card for a draft or stored event."""
    esc = escape_markdown if markdown else str
    date_ = _get(ev, "date")
    lines = [
        f"{icon_for(_get(ev, 'type'))} {esc(_get(ev, 'task') or '(no title)')}",
        f"📅 {esc(format_date(date_, now)) if date_ else '(no date)'}",
        f"⏰ {esc(time_label(_get(ev, 'start_time'), _get(ev, 'end_time')) or '(no time)')}",
    ]
    if _get(ev, "location"):
        lines.append(f"📍 {esc(_get(ev, 'location'))}")
    if _get(ev, "type"):
        lines.append(f"🏷️ {_get(ev, 'type')}")
    return "\n".join(lines)


def format_task_list(tasks: Sequence[Any], now=None) -> str:
    """Events grouped under a bold date header, in the order given."""
    if not tasks:
        return "No tasks scheduled."

    out: List[str] = []
    current = None
    for t in tasks:
        if _get(t, "date") != current:
            current = _get(t, "date")
            out.append(f"\n📅 *{escape_markdown(format_date(current, now))}*")
        label = time_label(_get(t, "start_time"), _get(t, "end_time"))
        time_str = f"⏰ {escape_markdown(label)} - " if label else "• "
        loc = f" 📍 {escape_markdown(_get(t, 'location'))}" if _get(t, "location") else ""
        out.append(f"{icon_for(_get(t, 'type'))} {time_str}{escape_markdown(_get(t, 'task'))}{loc}")
    return "\n".join(out).strip()


def format_next(ev: Any, now=None) -> str:
    label = time_label(_get(ev, "start_time"), _get(ev, "end_time"))
    text = (
        "⏭️ *Next up*\n\n"
        f"{icon_for(_get(ev, 'type'))} {escape_markdown(_get(ev, 'task'))}\n"
        f"📅 {escape_markdown(format_date(_get(ev, 'date'), now))}"
    )
    if label:
        text += f" ⏰ {escape_markdown(label)}"
    if _get(ev, "location"):
        text += f"\n📍 {escape_markdown(_get(ev, 'location'))}"
    return text


def format_batch_summary(events: Sequence[Any], now=None, limit: int = BATCH_PREVIEW_LIMIT) -> str:
    """Commit report for a batch; only the first `limit` items are listed."""
    text = f"✅ Added *{len(events)}* event(s):\n"
    for e in list(events)[:limit]:
        label = time_label(_get(e, "start_time"), _get(e, "end_time"))
        text += f"\n• {escape_markdown(_get(e, 'task'))}\n  📅 {escape_markdown(format_date(_get(e, 'date'), now))}"
        if label:
            text += f" ⏰ {escape_markdown(label)}"
        text += "\n"
    if len(events) > limit:
        text += f"\n…and {len(events) - limit} more."
    return text


def format_conflicts(draft_fields: Any, conflicts: Iterable[Any], now=None) -> str:
    lines = []
    for c in conflicts:
        label = time_label(c.start_time, c.end_time)
        suffix = " (weekly class)" if c.kind == "class" else ""
        lines.append(f"• {escape_markdown(c.title)} ({escape_markdown(label)}){suffix}")
    return (
        "⚠️ *Time conflict detected*\n\n"
        f"*New event:*\n{format_preview(draft_fields, now, markdown=True)}\n\n"
        f"*Conflicts:*\n" + "\n".join(lines) + "\n\n"
        "Choose an action:"
    )


def format_reminder(ev: Any, label: str, now=None) -> str:
    return (
        f"🔔 *Reminder* ({label} before)\n\n"
        f"{icon_for(_get(ev, 'type'))} {escape_markdown(_get(ev, 'task'))}\n"
        f"📅 {escape_markdown(format_date(_get(ev, 'date'), now))}\n"
        f"⏰ {escape_markdown(time_label(_get(ev, 'start_time'), _get(ev, 'end_time')))}"
    )


def format_class_list(classes: Sequence[Any]) -> str:
    if not classes:
        return "📚 No classes saved. Use /addclass to add your timetable."
    lines = ["📚 *Weekly classes*\n"]
    for c in classes:
        loc = f" 📍 {escape_markdown(c.location)}" if c.location else ""
        lines.append(
            f"• {day_name(c.day_of_week)[:3]} {c.start_time}-{c.end_time} {escape_markdown(c.subject)}{loc}"
        )
    return "\n".join(lines)


# ------------------------
# Keyboards: rows of (label, payload)
# ------------------------

def confirm_keyboard(draft_id: str):
    return [[("✅ Confirm", f"confirm:{draft_id}"), ("✏️ Edit", f"edit:{draft_id}"), ("🗑️ Discard", f"discard:{draft_id}")]]


def conflict_keyboard(draft_id: str):
    return [
        [("✅ Keep Both", f"conflict_keep:{draft_id}"), ("♻️ Replace", f"conflict_replace:{draft_id}")],
        [("❌ Cancel", f"conflict_cancel:{draft_id}")],
    ]


def main_menu_keyboard():
    return [
        [("📅 Today", "menu:today"), ("📆 Week", "menu:week")],
        [("⏭️ Next", "menu:next"), ("📋 All", "menu:all")],
        [("✏️ Edit Events", "menu:edit"), ("🗑️ Delete Events", "menu:delete")],
        [("⚙️ Settings", "menu:settings")],
    ]


def event_picker_keyboard(events: Sequence[Any], action: str, now=None):
    prefix = "🗑️" if action == "delete_confirm" else None
    rows = []
    for ev in events:
        head = prefix or icon_for(ev.type)
        width = 28 if prefix else 30
        rows.append([(f"{head} {ev.task[:width]} ({format_date(ev.date, now)})", f"{action}:{ev.id}")])
    return rows


def edit_fields_keyboard(event_id: int):
    return [
        [("Change Title", f"edit_change:title:{event_id}"), ("Change Date", f"edit_change:date:{event_id}")],
        [("Change Time", f"edit_change:time:{event_id}"), ("Change Location", f"edit_change:location:{event_id}")],
        [("🗑️ Delete", f"delete_confirm:{event_id}"), ("❌ Cancel", "cancel_edit")],
    ]


def delete_confirm_keyboard(event_id: int):
    return [[("🗑️ Yes, Delete", f"delete_yes:{event_id}"), ("❌ Cancel", "cancel_delete")]]


def class_list_keyboard(classes: Sequence[Any]):
    return [[(f"🗑️ {day_name(c.day_of_week)[:3]} {c.subject[:24]}", f"class_delete:{c.id}")] for c in classes]
