"""
Request/response schemas.

Inbound payloads (chat request, history path param) are checked here so the
HTTP layer never special-cases malformed input. Each field validator raises
PydanticCustomError with the exact end-user message; validate_request()
reports only the first violated rule.

The output schemas keep the JSON contract between server and client in one
place. They are never used to police untrusted input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

MAX_MESSAGE_LENGTH = 2000

MESSAGE_TOO_LONG = f"Message is too long. Please keep it under {MAX_MESSAGE_LENGTH} characters."

_UUID_RE = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
    r"|00000000-0000-0000-0000-000000000000"
    r"|ffffffff-ffff-ffff-ffff-ffffffffffff)$",
    re.IGNORECASE,
)


def is_uuid(value: Any) -> bool:
    """True for canonical 8-4-4-4-12 UUID strings (versions 1-8, nil and max)."""
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def _check_session_id(value: Any, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise PydanticCustomError("session_id_required", "Session ID is required")
        return None
    if not isinstance(value, str):
        raise PydanticCustomError("session_id_type", "Session ID must be a string")
    if not is_uuid(value):
        raise PydanticCustomError("session_id_format", "Invalid session ID format")
    return value


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------

class ChatMessageRequest(BaseModel):
    """Body of POST /chat/message."""
    model_config = ConfigDict(extra="ignore")

    message: str = Field(default=None, validate_default=True)
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    # Accepted for wire compatibility with older clients; history always comes from the store
    conversation_history: Optional[list] = Field(default=None, alias="conversationHistory")

    @field_validator("message", mode="before")
    @classmethod
    def _validate_message(cls, value: Any) -> str:
        if value is None:
            raise PydanticCustomError("message_required", "Message is required")
        if not isinstance(value, str):
            raise PydanticCustomError("message_type", "Message must be a string")
        if len(value) == 0:
            raise PydanticCustomError("message_empty", "Message cannot be empty")
        trimmed = value.strip()
        if not trimmed:
            raise PydanticCustomError(
                "message_blank", "Message cannot be empty after trimming whitespace"
            )
        if len(trimmed) > MAX_MESSAGE_LENGTH:
            raise PydanticCustomError("message_too_long", MESSAGE_TOO_LONG)
        try:
            # Lone surrogates survive JSON decoding but cannot be stored
            trimmed.encode("utf-8")
        except UnicodeEncodeError:
            raise PydanticCustomError(
                "message_encoding", "Message contains invalid characters"
            ) from None
        return trimmed

    @field_validator("session_id", mode="before")
    @classmethod
    def _validate_session_id(cls, value: Any) -> Optional[str]:
        return _check_session_id(value, required=False)

    @field_validator("conversation_history", mode="before")
    @classmethod
    def _accept_history(cls, value: Any) -> Optional[list]:
        if value is None or isinstance(value, list):
            return value
        raise PydanticCustomError("history_type", "Conversation history must be an array")


class SessionIdParam(BaseModel):
    """Path parameter of GET /chat/history/{sessionId}."""
    session_id: str = Field(default=None, alias="sessionId", validate_default=True)

    @field_validator("session_id", mode="before")
    @classmethod
    def _validate_session_id(cls, value: Any) -> str:
        return _check_session_id(value, required=True)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatMessageResponse(_WireModel):
    reply: str
    session_id: str = Field(alias="sessionId")
    error: Optional[str] = None


class MessageOut(_WireModel):
    id: str
    conversation_id: str = Field(alias="conversationId")
    sender: Literal["user", "ai"]
    text: str
    timestamp: int


class HistoryResponse(_WireModel):
    session_id: str = Field(alias="sessionId")
    messages: list[MessageOut]


class HealthCheckResponse(_WireModel):
    status: Literal["ok", "error"]
    llm_enabled: bool = Field(alias="llmEnabled")
    timestamp: int
    message: Optional[str] = None


class ErrorResponse(_WireModel):
    error: str
    details: Optional[str] = None
    timestamp: Optional[int] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=BaseModel)


@dataclass
class ValidationResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: str = ""


def validate_request(schema: type[T], data: Any) -> ValidationResult[T]:
    """
    Validate untrusted input against a schema.
    Never raises: returns either the parsed model or the first error message.
    """
    if not isinstance(data, dict):
        return ValidationResult(success=False, error="Invalid request data")
    try:
        return ValidationResult(success=True, data=schema.model_validate(data))
    except PydanticValidationError as e:
        errors = e.errors()
        message = errors[0].get("msg") if errors else ""
        return ValidationResult(success=False, error=message or "Validation error")


def safe_parse(schema: type[T], data: Any) -> Optional[T]:
    """Parsed model, or None if the data does not fit the schema."""
    result = validate_request(schema, data)
    return result.data if result.success else None
