"""
SQLite storage for support conversations.
This is the source of truth - every conversation and every message.
Single portable file, created on first use. No migrations.

Messages are append-only: there is no update or delete path.
"""

import sqlite3
import logging
from pathlib import Path
from contextlib import contextmanager

from supportdesk.errors import DuplicateKeyError, ForeignKeyViolationError, StorageError
from supportdesk.storage.models import Conversation, Message, Sender, now_ms

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    sender TEXT NOT NULL CHECK(sender IN ('user', 'ai')),
    text TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    FOREIGN KEY (conversation_id) REFERENCES conversations(id)
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id, timestamp);
"""


class SQLiteStore:
    """Conversation store. Each call opens its own connection, so it is safe across threads."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        # Off by default in SQLite and scoped to the connection
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, conversation_id: str) -> Conversation:
        """Insert a new conversation. Raises DuplicateKeyError if the id is taken."""
        conv = Conversation(id=conversation_id, created_at=now_ms())
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO conversations (id, created_at) VALUES (?, ?)",
                    (conv.id, conv.created_at),
                )
        except sqlite3.IntegrityError as e:
            logger.warning("Conversation %s already exists: %s", conversation_id, e)
            raise DuplicateKeyError(f"Conversation {conversation_id} already exists") from e
        logger.info("Created conversation %s", conv.id)
        return conv

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, created_at FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
        if row is None:
            return None
        return Conversation(id=row["id"], created_at=row["created_at"])

    def conversation_exists(self, conversation_id: str) -> bool:
        with self._connect() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()[0]
        return count > 0

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def create_message(
        self,
        message_id: str,
        conversation_id: str,
        sender: Sender,
        text: str,
    ) -> Message:
        """
        Append a message. Raises ForeignKeyViolationError if the
        conversation does not exist.
        """
        msg = Message(
            id=message_id,
            conversation_id=conversation_id,
            sender=Sender(sender),
            text=text,
            timestamp=now_ms(),
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO messages (id, conversation_id, sender, text, timestamp)
                       VALUES (?, ?, ?, ?, ?)""",
                    (msg.id, msg.conversation_id, msg.sender.value, msg.text, msg.timestamp),
                )
        except sqlite3.IntegrityError as e:
            if "FOREIGN KEY" in str(e).upper():
                logger.error("Message %s references missing conversation %s", message_id, conversation_id)
                raise ForeignKeyViolationError(
                    f"Conversation {conversation_id} does not exist"
                ) from e
            logger.error("Failed to store message %s: %s", message_id, e)
            raise DuplicateKeyError(f"Message {message_id} already exists") from e
        logger.debug("Stored message %s (sender=%s, conv=%s)", msg.id, msg.sender.value, conversation_id)
        return msg

    def get_messages(self, conversation_id: str) -> list[Message]:
        """All messages for a conversation, oldest first. Ties keep insertion order."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM messages WHERE conversation_id = ?
                   ORDER BY timestamp ASC, rowid ASC""",
                (conversation_id,),
            ).fetchall()
        return [Message.from_row(r) for r in rows]

    def get_conversation_history(self, conversation_id: str, limit: int = 10) -> list[Message]:
        """The newest `limit` messages, returned oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM messages WHERE conversation_id = ?
                   ORDER BY timestamp DESC, rowid DESC LIMIT ?""",
                (conversation_id, limit),
            ).fetchall()
        messages = [Message.from_row(r) for r in rows]
        messages.reverse()
        return messages

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Cheap round trip used by the health check. Raises StorageError on failure."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"SQLite unavailable: {e}") from e
        return True

    def get_stats(self) -> dict:
        """Return counts of stored conversations and messages."""
        with self._connect() as conn:
            conv_count = conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
            msg_count = conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
            user_count = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE sender = ?", (Sender.USER.value,)
            ).fetchone()[0]
            ai_count = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE sender = ?", (Sender.AI.value,)
            ).fetchone()[0]

        return {
            "conversations": conv_count,
            "messages": msg_count,
            "user_messages": user_count,
            "ai_messages": ai_count,
        }
