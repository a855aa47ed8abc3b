"""
Chat service: one chat turn, and history lookup.

A turn runs:
    validate → resolve session → persist user message → get reply
             → persist ai message → respond

Validation is the only step that can fail the turn, and it runs before
anything is written. Once the user message is stored the turn always
completes: a missing or failing completion service yields a fixed reply
text that is persisted as the ai message like any other.

Two concurrent turns on the same session are not serialized; their
messages interleave in whatever order the store records them.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from supportdesk.errors import DuplicateKeyError, NotFoundError, ValidationError
from supportdesk.reply_generator import (
    GENERIC_FAILURE,
    MAX_HISTORY_MESSAGES,
    ReplyGenerationError,
    ReplyGenerator,
)
from supportdesk.storage.models import Sender
from supportdesk.storage.sqlite_store import SQLiteStore
from supportdesk.validation import (
    ChatMessageRequest,
    ChatMessageResponse,
    HistoryResponse,
    MessageOut,
    SessionIdParam,
    validate_request,
)

logger = logging.getLogger(__name__)

UNAVAILABLE_REPLY = "Sorry, the AI service is currently unavailable."


class ChatService:
    """Orchestrates chat turns and history reads over an injected store and generator."""

    def __init__(
        self,
        store: SQLiteStore,
        generator: ReplyGenerator | None = None,
        history_limit: int = MAX_HISTORY_MESSAGES,
    ):
        self.store = store
        self.generator = generator
        self.history_limit = history_limit

    @property
    def llm_enabled(self) -> bool:
        return self.generator is not None

    def _resolve_session(self, requested: str | None) -> str:
        session_id = requested or str(uuid4())
        if not self.store.conversation_exists(session_id):
            try:
                self.store.create_conversation(session_id)
            except DuplicateKeyError:
                # Another worker created it between the check and the insert
                logger.debug("Conversation %s created concurrently", session_id)
        return session_id

    async def _reply_for(self, session_id: str, text: str) -> str:
        if self.generator is None:
            return UNAVAILABLE_REPLY
        # Includes the user message that was just stored
        history = self.store.get_conversation_history(session_id, self.history_limit)
        try:
            return await self.generator.generate_reply(history, text)
        except ReplyGenerationError as e:
            logger.warning("Reply failed for %s (%s); sending fallback", session_id, e.kind.name)
            return e.message
        except Exception:
            logger.exception("Reply generator crashed for %s; sending fallback", session_id)
            return GENERIC_FAILURE

    async def handle_turn(self, payload: Any) -> ChatMessageResponse:
        """Run one chat turn. Raises ValidationError before any write on bad input."""
        result = validate_request(ChatMessageRequest, payload)
        if not result.success:
            raise ValidationError(result.error)
        request = result.data

        session_id = self._resolve_session(request.session_id)
        self.store.create_message(str(uuid4()), session_id, Sender.USER, request.message)

        reply = await self._reply_for(session_id, request.message)

        self.store.create_message(str(uuid4()), session_id, Sender.AI, reply)
        logger.info("Turn completed for %s (%d chars in, %d out)", session_id, len(request.message), len(reply))
        return ChatMessageResponse(reply=reply, session_id=session_id)

    def get_history(self, session_id: Any) -> HistoryResponse:
        """Every message of a conversation, oldest first."""
        result = validate_request(SessionIdParam, {"sessionId": session_id})
        if not result.success:
            raise ValidationError(result.error)
        session_id = result.data.session_id

        if not self.store.conversation_exists(session_id):
            raise NotFoundError("Conversation not found")

        messages = self.store.get_messages(session_id)
        return HistoryResponse(
            session_id=session_id,
            messages=[MessageOut.model_validate(m.to_dict()) for m in messages],
        )
