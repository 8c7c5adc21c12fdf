# config.py
"""
Runtime settings for the schedule bot.

Everything can be overridden from the environment (or a local .env file).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

# ----------------------------
# Storage
# ----------------------------
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{(BASE_DIR / 'schedule.db').as_posix()}")

# ----------------------------
# LLM (OpenAI-compatible chat completions)
# ----------------------------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "25"))

# ----------------------------
# Telegram
# ----------------------------
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN", "").strip()
TELEGRAM_API_URL = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
# public https URL of POST /webhook; registered with Telegram at startup when set
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "").strip()

# ----------------------------
# Draft sessions / scheduling policy
# ----------------------------
DRAFT_TTL_SECONDS = int(os.getenv("DRAFT_TTL_SECONDS", "90"))
CONFIRM_TTL_SECONDS = int(os.getenv("CONFIRM_TTL_SECONDS", "300"))
PRUNE_INTERVAL_SECONDS = int(os.getenv("PRUNE_INTERVAL_SECONDS", "30"))
DEFAULT_EVENT_MINUTES = int(os.getenv("DEFAULT_EVENT_MINUTES", "60"))
DAILY_SUMMARY_HOUR = int(os.getenv("DAILY_SUMMARY_HOUR", "21"))

# minutes before start -> label used in the reminder text
REMINDER_OFFSETS = (
    (24 * 60, "1 day"),
    (6 * 60, "6 hours"),
    (30, "30 minutes"),
)

BATCH_PREVIEW_LIMIT = 8

EVENT_TYPES = ("sports", "meeting", "class", "deadline", "social", "admin", "other")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
