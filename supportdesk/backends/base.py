"""
Base backend abstraction.
Every completion provider implements this interface so the reply generator
can treat them uniformly: prompt text in, completion text (or an error) out.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Standardized response from any backend."""
    ok: bool
    status_code: int = 200
    text: str = ""
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""


class BaseBackend(abc.ABC):
    """
    Abstract base for completion backends.
    Backends never raise on upstream failure; they return BackendResponse(ok=False)
    with the provider's error text so callers can classify it.
    """

    def __init__(self, name: str, url: str, model: str, api_key: str = "", timeout: float = 60):
        self.name = name
        self.url = url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

    @abc.abstractmethod
    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> BackendResponse:
        """Submit a single text prompt and return the generated text."""
        ...

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Check if this backend is reachable and accepts our credential."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r} model={self.model!r}>"
