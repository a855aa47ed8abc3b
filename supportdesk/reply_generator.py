"""
Reply generator. Turns a conversation into an agent reply.

Builds one text prompt (store knowledge + recent history + the new customer
message), sends it to the configured completion backend, and either returns
the trimmed completion or raises ReplyGenerationError carrying a fixed,
user-safe message. Raw provider errors are logged, never returned.

Failure classification is plain substring matching on the provider's error
text and lives entirely in classify_failure(). Treat it as best effort:
providers reword their errors.
"""

from __future__ import annotations

import enum
import logging
from typing import Sequence

from supportdesk.backends import BaseBackend, make_backend
from supportdesk.errors import UpstreamUnavailable
from supportdesk.knowledge import KNOWLEDGE_BASE
from supportdesk.storage.models import Message

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 10
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7

GENERIC_FAILURE = "Sorry, I encountered an error processing your request. Please try again."


class ReplyErrorKind(enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    EMPTY_COMPLETION = "empty_completion"
    UNKNOWN = "unknown"

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self]


USER_MESSAGES: dict[ReplyErrorKind, str] = {
    ReplyErrorKind.INVALID_CREDENTIALS: "Invalid API key. Please check your Gemini API configuration.",
    ReplyErrorKind.RATE_LIMITED: "Rate limit reached. Please try again in a moment.",
    ReplyErrorKind.TIMEOUT: "Request timeout. Please try again.",
    ReplyErrorKind.EMPTY_COMPLETION: GENERIC_FAILURE,
    ReplyErrorKind.UNKNOWN: GENERIC_FAILURE,
}


class ReplyGenerationError(UpstreamUnavailable):
    """The completion service failed; .kind says how, .message is safe to show."""

    def __init__(self, kind: ReplyErrorKind):
        super().__init__(kind.user_message)
        self.kind = kind


def classify_failure(error_text: str) -> ReplyErrorKind:
    """Map a provider error string to a failure kind. Unrecognized → UNKNOWN."""
    text = error_text or ""
    lowered = text.lower()
    if "API key" in text or "API_KEY" in text:
        return ReplyErrorKind.INVALID_CREDENTIALS
    if "quota" in lowered or "rate limit" in lowered:
        return ReplyErrorKind.RATE_LIMITED
    if "timeout" in lowered:
        return ReplyErrorKind.TIMEOUT
    return ReplyErrorKind.UNKNOWN


def build_prompt(
    history: Sequence[Message],
    new_text: str,
    max_history: int = MAX_HISTORY_MESSAGES,
) -> str:
    """Knowledge preamble, last `max_history` messages, then the new message and an Agent cue."""
    prompt = KNOWLEDGE_BASE + "\n\n"

    recent = list(history)[-max_history:] if max_history > 0 else []
    if recent:
        prompt += "CONVERSATION HISTORY:\n"
        for msg in recent:
            prompt += f"{msg.sender.prompt_role}: {msg.text}\n"
        prompt += "\n"

    prompt += f"Customer: {new_text}\n\nAgent:"
    return prompt


class ReplyGenerator:
    """Wraps a completion backend with prompt building and failure translation."""

    def __init__(
        self,
        backend: BaseBackend,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.backend = backend
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_config(cls, cfg: dict) -> "ReplyGenerator | None":
        """
        Build from the llm: block of the config.
        Returns None when no credential is configured, so the caller can
        degrade to the unavailability reply instead of failing startup.
        """
        llm_cfg = cfg.get("llm", {})
        if llm_cfg.get("provider", "gemini") == "gemini" and not llm_cfg.get("api_key"):
            logger.warning("GEMINI_API_KEY not set: AI replies are disabled")
            return None
        backend = make_backend(llm_cfg)
        logger.info("Reply generator initialized: %r", backend)
        return cls(
            backend,
            max_tokens=llm_cfg.get("max_tokens", DEFAULT_MAX_TOKENS),
            temperature=llm_cfg.get("temperature", DEFAULT_TEMPERATURE),
        )

    async def generate_reply(self, history: Sequence[Message], new_text: str) -> str:
        """Return the agent's reply. Raises ReplyGenerationError on any failure."""
        prompt = build_prompt(history, new_text)
        resp = await self.backend.complete(prompt, self.max_tokens, self.temperature)

        if not resp.ok:
            kind = classify_failure(resp.error)
            logger.warning(
                "Completion failed on '%s' (HTTP %s, %s): %s",
                resp.backend_name, resp.status_code, kind.name, resp.error,
            )
            raise ReplyGenerationError(kind)

        reply = (resp.text or "").strip()
        if not reply:
            logger.warning("Completion from '%s' was empty", resp.backend_name)
            raise ReplyGenerationError(ReplyErrorKind.EMPTY_COMPLETION)

        logger.debug("Reply generated by '%s' in %.0fms", resp.backend_name, resp.latency_ms)
        return reply
