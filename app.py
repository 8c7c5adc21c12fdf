# app.py  - Schedule bot webhook

import logging
from datetime import datetime as _dt

from flask import Flask, request, jsonify
from flask_cors import CORS

from config import LOG_LEVEL, PRUNE_INTERVAL_SECONDS, DAILY_SUMMARY_HOUR, WEBHOOK_URL
from bot import ScheduleBot
from handlers.session_store import SessionStore
from models import init_db
from scheduler.reminders import ReminderScheduler
from scheduler.timers import ThreadingScheduler
from transport import TelegramTransport, parse_update

logger = logging.getLogger(__name__)


def build_bot(transport=None, session_factory=None):
    """Wire transport, timers, reminders and sessions into one ScheduleBot."""
    transport = transport or TelegramTransport()
    timers = ThreadingScheduler()
    reminders = ReminderScheduler(timers, transport)
    store = SessionStore()
    return ScheduleBot(transport, store=store, reminders=reminders, session_factory=session_factory)


def create_app(bot=None) -> Flask:
    app = Flask(__name__)
    CORS(app)
    app.config["BOT"] = bot if bot is not None else build_bot()

    @app.get('/health')
    def health():
        return jsonify({'ok': True, 'service': 'schedule-bot', 'time': _dt.now().isoformat()})

    @app.get('/')
    def root():
        return jsonify({'status': 'running'})

    # JSON/error handler for bad JSON bodies
    @app.errorhandler(400)
    def handle_400(err):
        return jsonify({'error': 'Bad Request', 'details': str(err)}), 400

    @app.route('/webhook', methods=['POST'])
    def webhook():
        update = request.get_json(silent=True)
        if update is None:
            return jsonify({'error': 'Bad Request', 'details': 'JSON body required'}), 400

        parsed = parse_update(update)
        if parsed is None:
            # not something the bot reacts to (stickers, joins, edits...)
            return jsonify({'ok': True, 'ignored': True})

        current = app.config["BOT"]
        # Telegram retries on non-2xx, so handler failures still answer 200
        try:
            if parsed["type"] == "callback":
                current.handle_callback(parsed["chat_id"], parsed["message_id"], parsed["callback_id"], parsed["data"])
            else:
                current.handle_message(parsed["chat_id"], parsed["text"])
        except Exception:
            logger.exception("update %s could not be handled", update.get("update_id"))
            return jsonify({'ok': False})
        return jsonify({'ok': True})

    return app


def main():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()
    bot = build_bot()
    bot.reminders.rescan_all()
    bot.store.start_pruning(bot.reminders.scheduler, PRUNE_INTERVAL_SECONDS)
    bot.reminders.start_daily_summary(hour=DAILY_SUMMARY_HOUR)
    if WEBHOOK_URL:
        bot.transport.set_webhook(WEBHOOK_URL)
        logger.info("Webhook registered at %s", WEBHOOK_URL)
    logger.info("Schedule bot ready")
    create_app(bot).run(host="0.0.0.0", port=5000)


if __name__ == '__main__':
    main()
