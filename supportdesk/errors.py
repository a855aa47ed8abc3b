"""
Error taxonomy for supportdesk.

Each class carries the HTTP status it maps to. main.py registers one
exception handler for SupportDeskError that turns these into the JSON
error shape; nothing else in the app needs to know about status codes.

UpstreamUnavailable is never rendered as an HTTP error: the chat turn
absorbs it into a 200 reply.
"""

from __future__ import annotations


class SupportDeskError(Exception):
    """Base for all errors raised deliberately by supportdesk."""
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(SupportDeskError):
    """Request shape or range violation. The message is safe to show end users."""
    status_code = 400
    public_message = "Invalid request data"


class NotFoundError(SupportDeskError):
    status_code = 404
    public_message = "Not found"


class StorageError(SupportDeskError):
    """Constraint violation or engine failure. Details are logged, not returned."""
    status_code = 500


class DuplicateKeyError(StorageError):
    pass


class ForeignKeyViolationError(StorageError):
    pass


class UpstreamUnavailable(SupportDeskError):
    """Completion service missing or failing."""
    status_code = 503
