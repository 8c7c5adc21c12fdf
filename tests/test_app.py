import pytest

from app import create_app
from transport import TelegramTransport, inline_keyboard, parse_update


class SpyBot:
    def __init__(self):
        self.messages = []
        self.callbacks = []

    def handle_message(self, chat_id, text):
        self.messages.append((chat_id, text))

    def handle_callback(self, chat_id, message_id, callback_id, data):
        self.callbacks.append((chat_id, message_id, callback_id, data))


@pytest.fixture
def spy():
    return SpyBot()


@pytest.fixture
def client(spy):
    app = create_app(spy)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is True


def test_webhook_routes_messages(client, spy):
    resp = client.post("/webhook", json={"update_id": 1, "message": {"chat": {"id": 77}, "text": " gym tomorrow "}})
    assert resp.status_code == 200
    assert spy.messages == [(77, "gym tomorrow")]


def test_webhook_routes_callbacks(client, spy):
    update = {"callback_query": {"id": "cb9", "data": "confirm:1", "message": {"message_id": 5, "chat": {"id": 77}}}}
    client.post("/webhook", json=update)
    assert spy.callbacks == [(77, 5, "cb9", "confirm:1")]


def test_webhook_ignores_other_updates(client, spy):
    resp = client.post("/webhook", json={"update_id": 2, "edited_message": {"text": "x"}})
    assert resp.get_json()["ignored"] is True
    assert spy.messages == [] and spy.callbacks == []


def test_webhook_requires_json(client):
    resp = client.post("/webhook", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_parse_update_skips_empty_text():
    assert parse_update({"message": {"chat": {"id": 1}, "text": "   "}}) is None
    assert parse_update("nope") is None


def test_inline_keyboard_shape():
    assert inline_keyboard(None) is None
    assert inline_keyboard([[("Yes", "y"), ("No", "n")]]) == {
        "inline_keyboard": [[{"text": "Yes", "callback_data": "y"}, {"text": "No", "callback_data": "n"}]]
    }


def test_transport_posts_to_bot_api(monkeypatch):
    calls = []

    class Resp:
        def raise_for_status(self):
            pass

        def json(self):
            return {"ok": True, "result": {"message_id": 3}}

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return Resp()

    monkeypatch.setattr("transport.requests.post", fake_post)
    t = TelegramTransport(token="T0K", api_url="https://api.example.org/")
    assert t.send_message(5, "hi", parse_mode="Markdown", buttons=[[("A", "a")]]) == {"message_id": 3}
    url, payload = calls[0]
    assert url == "https://api.example.org/botT0K/sendMessage"
    assert payload["chat_id"] == 5 and payload["parse_mode"] == "Markdown"
    assert payload["reply_markup"]["inline_keyboard"][0][0]["callback_data"] == "a"
