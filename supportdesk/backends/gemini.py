"""
Gemini backend for Google's generateContent REST API.

The credential travels in the x-goog-api-key header. Errors are returned as
"HTTP <status>: <body excerpt>" so the provider's own wording (e.g.
"API key not valid", "RESOURCE_EXHAUSTED ... quota") survives for
classification.
"""

from __future__ import annotations

import logging
import time

import httpx

from supportdesk.backends.base import BaseBackend, BackendResponse

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://generativelanguage.googleapis.com"


class GeminiBackend(BaseBackend):
    """Backend for the Gemini API."""

    def __init__(
        self,
        name: str = "gemini",
        url: str = DEFAULT_URL,
        model: str = "gemini-1.5-flash",
        api_key: str = "",
        timeout: float = 60,
    ):
        super().__init__(name=name, url=url or DEFAULT_URL, model=model, api_key=api_key, timeout=timeout)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    @staticmethod
    def _extract_text(data: dict) -> str:
        """Join the text parts of the first candidate."""
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> BackendResponse:
        if not self.api_key:
            return BackendResponse(
                ok=False, status_code=401, backend_name=self.name,
                error="No API key configured for Gemini (GEMINI_API_KEY)",
            )

        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": temperature,
            },
        }

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/v1beta/models/{self.model}:generateContent",
                    headers=self._headers(),
                    json=body,
                )
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=f"HTTP {resp.status_code}: {resp.text[:300]}",
                    )

                data = resp.json()
                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    text=self._extract_text(data),
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Gemini backend '%s' timed out after %.0fms", self.name, latency)
            return BackendResponse(
                ok=False, status_code=504, backend_name=self.name, latency_ms=latency,
                error=f"Request timeout after {self.timeout}s",
            )
        except Exception as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Gemini backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False, status_code=0, backend_name=self.name, latency_ms=latency,
                error=str(e),
            )

    async def health_check(self) -> bool:
        """Fetch the model resource; 200 means reachable and key accepted."""
        if not self.api_key:
            return False
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(
                    f"{self.url}/v1beta/models/{self.model}",
                    headers=self._headers(),
                )
                return resp.status_code == 200
        except Exception:
            return False
