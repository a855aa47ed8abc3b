"""
Persistence for conversations and messages.
"""
from supportdesk.storage.models import Conversation, Message, Sender
from supportdesk.storage.sqlite_store import SQLiteStore

__all__ = ["Conversation", "Message", "Sender", "SQLiteStore"]
