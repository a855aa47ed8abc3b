"""
Data models for conversation storage.
These define the shape of data flowing between the store, the chat
service and the wire.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


def now_ms() -> int:
    """Current instant as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


class Sender(str, enum.Enum):
    """Who wrote a message. Closed set: the store enforces it with a CHECK."""
    USER = "user"
    AI = "ai"

    @property
    def prompt_role(self) -> str:
        return "Customer" if self is Sender.USER else "Agent"


@dataclass
class Conversation:
    """A chat session. Its id doubles as the client's session id."""
    id: str
    created_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {"id": self.id, "createdAt": self.created_at}


@dataclass
class Message:
    """A single message in a conversation."""
    id: str
    conversation_id: str
    sender: Sender
    text: str
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def from_row(cls, row) -> "Message":
        return cls(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender=Sender(row["sender"]),
            text=row["text"],
            timestamp=row["timestamp"],
        )

    def to_dict(self) -> dict:
        """Wire format (camelCase keys, sender as its plain string)."""
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "sender": self.sender.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }
