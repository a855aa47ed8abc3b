"""
Generic OpenAI-compatible backend.

Lets the support desk run against anything that speaks /v1/chat/completions:
- Ollama
- llama.cpp server
- vLLM
- OpenRouter (url https://openrouter.ai/api)

The whole prompt is sent as a single user message.
"""

from __future__ import annotations

import logging
import time

import httpx

from supportdesk.backends.base import BaseBackend, BackendResponse

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(BaseBackend):
    """
    Generic backend for OpenAI-compatible endpoints.

    Works with any service that implements /v1/chat/completions and /v1/models.
    """

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _extract_text(data: dict) -> str:
        choices = data.get("choices", [])
        if choices:
            return choices[0].get("message", {}).get("content") or ""
        return ""

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> BackendResponse:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": False,
        }

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/v1/chat/completions",
                    json=body,
                    headers=self._headers(),
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
            logger.warning(
                "OpenAI-compatible backend '%s' timed out after %.0fms",
                self.name,
                latency,
            )
            return BackendResponse(
                ok=False,
                status_code=504,
                backend_name=self.name,
                latency_ms=latency,
                error=f"Request timeout after {self.timeout}s",
            )
        except Exception as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning(
                "OpenAI-compatible backend '%s' failed: %s", self.name, e
            )
            return BackendResponse(
                ok=False,
                status_code=0,
                backend_name=self.name,
                latency_ms=latency,
                error=str(e),
            )

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5) as client:
                resp = await client.get(f"{self.url}/v1/models", headers=self._headers())
                return resp.status_code == 200
        except Exception:
            return False
