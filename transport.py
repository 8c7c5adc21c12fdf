# transport.py
"""Thin Telegram Bot API client (sendMessage / editMessageText / answerCallbackQuery)."""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import requests

from config import TELEGRAM_TOKEN, TELEGRAM_API_URL

logger = logging.getLogger(__name__)

Buttons = Sequence[Sequence[Tuple[str, str]]]


def inline_keyboard(buttons: Optional[Buttons]) -> Optional[Dict[str, Any]]:
    if not buttons:
        return None
    return {
        "inline_keyboard": [
            [{"text": label, "callback_data": payload} for label, payload in row]
            for row in buttons
        ]
    }


class TelegramTransport:
    def __init__(self, token: str = TELEGRAM_TOKEN, api_url: str = TELEGRAM_API_URL, timeout: float = 25):
        self.base = f"{api_url.rstrip('/')}/bot{token}"
        self.timeout = timeout

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = requests.post(f"{self.base}/{method}", json=payload, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok", False):
            raise RuntimeError(f"Telegram {method} failed: {data.get('description')}")
        return data.get("result") or {}

    @staticmethod
    def _message_payload(text: str, parse_mode: Optional[str], buttons: Optional[Buttons]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        markup = inline_keyboard(buttons)
        if markup:
            payload["reply_markup"] = markup
        return payload

    def send_message(self, chat_id, text: str, parse_mode: Optional[str] = None, buttons: Optional[Buttons] = None):
        payload = self._message_payload(text, parse_mode, buttons)
        payload["chat_id"] = chat_id
        return self._call("sendMessage", payload)

    def edit_message(self, chat_id, message_id, text: str, parse_mode: Optional[str] = None, buttons: Optional[Buttons] = None):
        payload = self._message_payload(text, parse_mode, buttons)
        payload.update({"chat_id": chat_id, "message_id": message_id})
        return self._call("editMessageText", payload)

    def answer_callback(self, callback_id, text: Optional[str] = None):
        payload: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        return self._call("answerCallbackQuery", payload)

    def set_webhook(self, url: str):
        return self._call("setWebhook", {"url": url})


def parse_update(update: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Reduce a Telegram update to what the bot needs:
      {'type': 'message', 'chat_id', 'text'} or
      {'type': 'callback', 'chat_id', 'message_id', 'callback_id', 'data'}
    """
    if not isinstance(update, dict):
        return None
    cq = update.get("callback_query")
    if isinstance(cq, dict):
        msg = cq.get("message") or {}
        chat_id = (msg.get("chat") or {}).get("id")
        if chat_id is None or not cq.get("data"):
            return None
        return {
            "type": "callback",
            "chat_id": chat_id,
            "message_id": msg.get("message_id"),
            "callback_id": cq.get("id"),
            "data": cq["data"],
        }
    msg = update.get("message")
    if isinstance(msg, dict):
        chat_id = (msg.get("chat") or {}).get("id")
        text = (msg.get("text") or "").strip()
        if chat_id is None or not text:
            return None
        return {"type": "message", "chat_id": chat_id, "text": text}
    return None
