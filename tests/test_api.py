"""
HTTP tests for the FastAPI app.
Each test gets its own SQLite file and an injected reply generator, so
nothing touches the network or the configured database.
"""

import pytest
from fastapi.testclient import TestClient

from supportdesk.chat import UNAVAILABLE_REPLY
from supportdesk.config import build_config
from supportdesk.errors import StorageError
from supportdesk.main import create_app
from supportdesk.storage.sqlite_store import SQLiteStore

ORIGIN = "http://localhost:5173"
UNKNOWN_ID = "9d1c7a52-3e8f-4b6a-8c2d-7e4f1a9b0c3d"


class FakeGenerator:
    def __init__(self, reply="Our support hours are 9 AM - 6 PM EST."):
        self.reply = reply

    async def generate_reply(self, history, new_text):
        return self.reply


class CrashingStore(SQLiteStore):
    def get_messages(self, conversation_id):
        raise RuntimeError("disk on fire")


class UnreachableStore(SQLiteStore):
    def ping(self):
        raise StorageError("database is locked")


def _cfg(dev_mode=False):
    return build_config({
        "server": {"port": 3000, "dev_mode": dev_mode},
        "cors": {"origin": ORIGIN},
        "llm": {"api_key": ""},
        "logging": {"level": "WARNING"},
    })


@pytest.fixture
def store(tmp_path):
    return SQLiteStore(str(tmp_path / "api.db"))


@pytest.fixture
def client(store):
    app = create_app(_cfg(), store=store, generator=FakeGenerator())
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------------------------------------------------------
# POST /chat/message
# ---------------------------------------------------------------------------

class TestChatMessage:
    def test_new_conversation(self, client, store):
        r = client.post("/chat/message", json={"message": "What are your hours?"})
        assert r.status_code == 200
        data = r.json()
        assert data["reply"] == "Our support hours are 9 AM - 6 PM EST."
        assert len(data["sessionId"]) == 36
        assert "error" not in data

        stored = store.get_messages(data["sessionId"])
        assert [m.sender.value for m in stored] == ["user", "ai"]

    def test_session_continues(self, client):
        first = client.post("/chat/message", json={"message": "hi"}).json()
        second = client.post(
            "/chat/message",
            json={"message": "still there?", "sessionId": first["sessionId"]},
        ).json()
        assert second["sessionId"] == first["sessionId"]

        history = client.get(f"/chat/history/{first['sessionId']}").json()
        assert [m["text"] for m in history["messages"]] == [
            "hi", first["reply"], "still there?", second["reply"],
        ]

    @pytest.mark.parametrize("body, expected", [
        ({}, "Message is required"),
        ({"message": 7}, "Message must be a string"),
        ({"message": ""}, "Message cannot be empty"),
        ({"message": "   "}, "Message cannot be empty after trimming whitespace"),
        ({"message": "x" * 2001}, "Message is too long. Please keep it under 2000 characters."),
        ({"message": "hi", "sessionId": "abc"}, "Invalid session ID format"),
    ])
    def test_rejected_payloads_write_nothing(self, client, store, body, expected):
        r = client.post("/chat/message", json=body)
        assert r.status_code == 400
        assert r.json()["error"] == expected
        assert isinstance(r.json()["timestamp"], int)

        stats = store.get_stats()
        assert stats["conversations"] == 0
        assert stats["messages"] == 0

    def test_unencodable_message_writes_nothing(self, client, store):
        r = client.post(
            "/chat/message",
            content='{"message": "hi \\ud800 there"}',
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 400
        assert r.json()["error"] == "Message contains invalid characters"

        stats = store.get_stats()
        assert stats["conversations"] == 0
        assert stats["messages"] == 0

    def test_non_object_body(self, client):
        r = client.post("/chat/message", json=["hello"])
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid request data"

    def test_malformed_json(self, client):
        r = client.post(
            "/chat/message",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid JSON in request body"

    def test_disabled_llm_still_answers(self, store):
        app = create_app(_cfg(), store=store, generator=None)
        client = TestClient(app, raise_server_exceptions=False)

        r = client.post("/chat/message", json={"message": "hello?"})
        assert r.status_code == 200
        assert r.json()["reply"] == UNAVAILABLE_REPLY
        assert store.get_stats()["ai_messages"] == 1


# ---------------------------------------------------------------------------
# GET /chat/history/{sessionId}
# ---------------------------------------------------------------------------

class TestHistory:
    def test_history_shape(self, client):
        session_id = client.post("/chat/message", json={"message": "hi"}).json()["sessionId"]

        r = client.get(f"/chat/history/{session_id}")
        assert r.status_code == 200
        data = r.json()
        assert data["sessionId"] == session_id
        first = data["messages"][0]
        assert set(first) == {"id", "conversationId", "sender", "text", "timestamp"}
        assert first["conversationId"] == session_id
        assert first["sender"] == "user"

    def test_history_matches_persisted_rows(self, client, store):
        session_id = client.post("/chat/message", json={"message": "first"}).json()["sessionId"]
        client.post("/chat/message", json={"message": "second", "sessionId": session_id})

        r = client.get(f"/chat/history/{session_id}")
        assert r.status_code == 200
        assert r.json()["messages"] == [m.to_dict() for m in store.get_messages(session_id)]
        assert len(r.json()["messages"]) == 4

    def test_unknown_session(self, client):
        r = client.get(f"/chat/history/{UNKNOWN_ID}")
        assert r.status_code == 404
        assert r.json()["error"] == "Conversation not found"

    def test_malformed_session(self, client):
        r = client.get("/chat/history/not-a-uuid")
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid session ID format"


# ---------------------------------------------------------------------------
# /health, unknown routes, errors, CORS
# ---------------------------------------------------------------------------

def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["llmEnabled"] is True
    assert isinstance(data["timestamp"], int)


def test_health_reports_storage_failure(tmp_path):
    app = create_app(_cfg(), store=UnreachableStore(str(tmp_path / "x.db")), generator=None)
    data = TestClient(app).get("/health").json()
    assert data["status"] == "error"
    assert data["llmEnabled"] is False
    assert data["message"] == "Storage unavailable"


@pytest.mark.parametrize("method, path", [
    ("GET", "/nope"),
    ("GET", "/chat/message"),
    ("POST", "/health"),
])
def test_unknown_routes(client, method, path):
    r = client.request(method, path)
    assert r.status_code == 404
    assert r.json()["error"] == "Not found"


def test_unexpected_error_hides_details(tmp_path):
    store = CrashingStore(str(tmp_path / "c.db"))
    store.create_conversation(UNKNOWN_ID)
    app = create_app(_cfg(dev_mode=False), store=store, generator=None)

    r = TestClient(app, raise_server_exceptions=False).get(f"/chat/history/{UNKNOWN_ID}")
    assert r.status_code == 500
    assert r.json()["error"] == "Internal server error"
    assert "details" not in r.json()
    assert "disk on fire" not in r.text


def test_unexpected_error_details_in_dev_mode(tmp_path):
    store = CrashingStore(str(tmp_path / "c.db"))
    store.create_conversation(UNKNOWN_ID)
    app = create_app(_cfg(dev_mode=True), store=store, generator=None)

    r = TestClient(app, raise_server_exceptions=False).get(f"/chat/history/{UNKNOWN_ID}")
    assert r.status_code == 500
    assert r.json()["error"] == "Internal server error"
    assert "disk on fire" in r.json()["details"]


def test_cors_preflight_allows_configured_origin(client):
    r = client.options(
        "/chat/message",
        headers={
            "Origin": ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == ORIGIN


def test_cors_other_origin_not_echoed(client):
    r = client.get("/health", headers={"Origin": "http://evil.example"})
    assert r.headers.get("access-control-allow-origin") is None
