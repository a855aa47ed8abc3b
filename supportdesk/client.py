"""
Client side of the support chat.

ChatClient is a thin httpx wrapper over the three endpoints. ChatShell holds
the state of one on-screen conversation (messages, input, loading/typing
flags, error banner, session id) and implements the submit / new-chat flow
the terminal UI drives. The session id survives restarts via SessionFile.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

import httpx

from supportdesk.validation import MAX_MESSAGE_LENGTH, MESSAGE_TOO_LONG

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:3000"
CONNECT_ERROR = "Cannot connect to server"


class ApiError(Exception):
    """A request to the support server failed. str(e) is fit for the error banner."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ChatMessage:
    """A message as the client displays it."""
    id: str
    sender: str
    text: str
    timestamp: int

    @classmethod
    def from_wire(cls, data: dict) -> "ChatMessage":
        return cls(
            id=data["id"],
            sender=data["sender"],
            text=data["text"],
            timestamp=data["timestamp"],
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


def _unexpected(resp: httpx.Response) -> ApiError:
    return ApiError(f"Unexpected response from server (status: {resp.status_code})", resp.status_code)


class ChatClient:
    """Synchronous client for the supportdesk HTTP API."""

    def __init__(self, base_url: str | None = None, timeout: float = 90, transport: httpx.BaseTransport | None = None):
        self.base_url = (base_url or os.environ.get("SUPPORTDESK_API_URL") or DEFAULT_API_URL).rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(CONNECT_ERROR) from e

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Non-JSON response (HTTP %s): %.200s", resp.status_code, resp.text)
            raise _unexpected(resp) from None
        if not isinstance(data, dict):
            raise _unexpected(resp)
        return data

    @staticmethod
    def _error_text(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"HTTP error! status: {resp.status_code}"

    def send_message(self, message: str, session_id: str | None = None) -> dict:
        """POST /chat/message. Returns {"reply", "sessionId"}."""
        body = {"message": message}
        if session_id:
            body["sessionId"] = session_id
        resp = self._request("POST", "/chat/message", json=body)
        if resp.status_code >= 400:
            raise ApiError(self._error_text(resp), resp.status_code)
        data = self._json(resp)
        if data.get("error"):
            raise ApiError(data["error"], resp.status_code)
        if "reply" not in data or "sessionId" not in data:
            raise _unexpected(resp)
        return data

    def get_history(self, session_id: str) -> list[ChatMessage]:
        """GET /chat/history/{id}. An unknown conversation is just an empty history."""
        resp = self._request("GET", f"/chat/history/{session_id}")
        if resp.status_code == 404:
            return []
        if resp.status_code >= 400:
            raise ApiError(self._error_text(resp), resp.status_code)
        return [ChatMessage.from_wire(m) for m in self._json(resp).get("messages", [])]

    def health_check(self) -> dict:
        resp = self._request("GET", "/health")
        return self._json(resp)


class SessionFile:
    """Persists the current session id in a small file (client-side storage)."""

    def __init__(self, path: str | Path | None = None):
        default = Path.home() / ".supportdesk" / "session_id"
        self.path = Path(path) if path else default

    def load(self) -> str | None:
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return value or None

    def save(self, session_id: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(session_id, encoding="utf-8")

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class ChatShell:
    """
    UI state for one conversation.

    submit() appends the user's message optimistically, then either swaps it
    for the confirmed user+ai pair or rolls it back and sets `error`.
    """

    def __init__(self, client: ChatClient, session_file: SessionFile):
        self.client = client
        self.session_file = session_file
        self.messages: list[ChatMessage] = []
        self.input_buffer = ""
        self.loading = False
        self.typing = False
        self.error: str | None = None
        self.session_id: str | None = None

    def load(self):
        """Restore the stored session's history, if any."""
        stored = self.session_file.load()
        if not stored:
            return
        try:
            history = self.client.get_history(stored)
        except ApiError as e:
            logger.warning("Failed to load history: %s", e)
            return
        if history:
            self.messages = history
            self.session_id = stored

    def validate(self, text: str) -> str | None:
        """Client-side copy of the server's length rules. Returns an error or None."""
        trimmed = text.strip()
        if not trimmed:
            return "Please enter a message"
        if len(trimmed) > MAX_MESSAGE_LENGTH:
            return MESSAGE_TOO_LONG
        return None

    def begin_submit(self, text: str) -> tuple[ChatMessage, str] | None:
        """
        First half of a submit: validate, clear input, append the optimistic
        message. Returns (pending message, trimmed text), or None when invalid.
        """
        problem = self.validate(text)
        if problem:
            self.error = problem
            return None

        trimmed = text.strip()
        self.error = None
        self.input_buffer = ""
        self.loading = True
        self.typing = True

        pending = ChatMessage(id=f"temp-{_now_ms()}", sender="user", text=trimmed, timestamp=_now_ms())
        self.messages.append(pending)
        return pending, trimmed

    def finish_submit(self, pending: ChatMessage, trimmed: str):
        """Second half: call the server and settle the optimistic message."""
        try:
            response = self.client.send_message(trimmed, self.session_id)
        except ApiError as e:
            self.messages = [m for m in self.messages if m.id != pending.id]
            self.error = str(e) or "Failed to send message. Please try again."
            return
        finally:
            self.loading = False
            self.typing = False

        if not self.session_id:
            self.session_id = response["sessionId"]
            self.session_file.save(self.session_id)

        now = _now_ms()
        confirmed = [
            ChatMessage(id=f"user-{now}", sender="user", text=trimmed, timestamp=now),
            ChatMessage(id=f"ai-{now}", sender="ai", text=response["reply"], timestamp=now + 1),
        ]
        self.messages = [m for m in self.messages if m.id != pending.id] + confirmed

    def submit(self, text: str) -> bool:
        """Send one message. Returns True when the server confirmed the turn."""
        started = self.begin_submit(text)
        if started is None:
            return False
        self.finish_submit(*started)
        return self.error is None

    def new_chat(self):
        """Forget the conversation locally. The server is not contacted."""
        self.session_file.clear()
        self.session_id = None
        self.messages = []
        self.error = None
        self.input_buffer = ""
