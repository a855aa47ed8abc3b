"""
Tests for completion backends.
Run with: pytest tests/test_backends.py
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from supportdesk.backends import PROVIDERS, make_backend
from supportdesk.backends.base import BackendResponse
from supportdesk.backends.gemini import GeminiBackend
from supportdesk.backends.openai_compat import OpenAICompatibleBackend


def _mock_client(mock_client_cls, post_result=None, post_side_effect=None):
    mock_client = AsyncMock()
    if post_side_effect is not None:
        mock_client.post.side_effect = post_side_effect
    else:
        mock_client.post.return_value = post_result
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _resp(status_code, json_data=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    resp.text = text
    return resp


# ---------------------------------------------------------------------------
# BackendResponse
# ---------------------------------------------------------------------------

def test_backend_response_defaults():
    ok = BackendResponse(ok=True, text="hi")
    assert ok.ok and ok.text == "hi" and ok.error == ""

    err = BackendResponse(ok=False, error="timeout")
    assert not err.ok
    assert err.text == ""


# ---------------------------------------------------------------------------
# GeminiBackend
# ---------------------------------------------------------------------------

def test_gemini_extract_text_joins_parts():
    data = {"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "there"}]}}]}
    assert GeminiBackend._extract_text(data) == "Hello there"
    assert GeminiBackend._extract_text({}) == ""
    assert GeminiBackend._extract_text({"candidates": [{"finishReason": "SAFETY"}]}) == ""


@pytest.mark.asyncio
async def test_gemini_complete_success():
    b = GeminiBackend(api_key="k-123", model="gemini-1.5-flash", url="http://fake")
    payload = {"candidates": [{"content": {"parts": [{"text": "Free shipping over $50."}]}}]}

    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, _resp(200, payload))
        result = await b.complete("prompt text", max_tokens=500, temperature=0.7)

    assert result.ok
    assert result.text == "Free shipping over $50."
    assert result.backend_name == "gemini"

    url = client.post.call_args.args[0]
    kwargs = client.post.call_args.kwargs
    assert url == "http://fake/v1beta/models/gemini-1.5-flash:generateContent"
    assert kwargs["headers"]["x-goog-api-key"] == "k-123"
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "prompt text"
    assert kwargs["json"]["generationConfig"] == {"maxOutputTokens": 500, "temperature": 0.7}


@pytest.mark.asyncio
async def test_gemini_http_error_keeps_provider_text():
    b = GeminiBackend(api_key="bad", url="http://fake")
    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, _resp(400, text='{"error": {"message": "API key not valid."}}'))
        result = await b.complete("p", 500, 0.7)

    assert not result.ok
    assert result.status_code == 400
    assert "API key not valid" in result.error


@pytest.mark.asyncio
async def test_gemini_timeout():
    b = GeminiBackend(api_key="k", url="http://fake", timeout=1)
    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, post_side_effect=httpx.TimeoutException("timed out"))
        result = await b.complete("p", 500, 0.7)

    assert not result.ok
    assert "timeout" in result.error.lower()


@pytest.mark.asyncio
async def test_gemini_transport_error():
    b = GeminiBackend(api_key="k", url="http://fake")
    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, post_side_effect=httpx.ConnectError("connection refused"))
        result = await b.complete("p", 500, 0.7)

    assert not result.ok
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_gemini_without_key_does_not_call_out():
    b = GeminiBackend(api_key="")
    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        result = await b.complete("p", 500, 0.7)
        mock_client_cls.assert_not_called()
    assert not result.ok
    assert "API key" in result.error


@pytest.mark.asyncio
async def test_gemini_health_check_without_key():
    assert await GeminiBackend(api_key="").health_check() is False


@pytest.mark.asyncio
async def test_gemini_health_check_fetches_model():
    b = GeminiBackend(api_key="k", model="gemini-1.5-flash", url="http://fake")
    with patch("supportdesk.backends.gemini.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls)
        client.get.return_value = _resp(200)
        assert await b.health_check() is True

    assert client.get.call_args.args[0] == "http://fake/v1beta/models/gemini-1.5-flash"


# ---------------------------------------------------------------------------
# OpenAICompatibleBackend
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_openai_compat_success():
    b = OpenAICompatibleBackend(name="local", url="http://fake:11434/", model="llama3.2", api_key="sk")
    assert b.url == "http://fake:11434"

    with patch("supportdesk.backends.openai_compat.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(
            mock_client_cls,
            _resp(200, {"choices": [{"message": {"content": "hello"}}]}),
        )
        result = await b.complete("prompt", max_tokens=100, temperature=0.2)

    assert result.ok
    assert result.text == "hello"
    body = client.post.call_args.kwargs["json"]
    assert body["model"] == "llama3.2"
    assert body["messages"] == [{"role": "user", "content": "prompt"}]
    assert body["max_tokens"] == 100
    assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk"


@pytest.mark.asyncio
async def test_openai_compat_rate_limited():
    b = OpenAICompatibleBackend(name="or", url="http://fake", model="m")
    with patch("supportdesk.backends.openai_compat.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, _resp(429, text="Rate limit exceeded"))
        result = await b.complete("p", 500, 0.7)

    assert not result.ok
    assert result.status_code == 429
    assert "Rate limit" in result.error


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def test_make_backend_gemini():
    b = make_backend({"provider": "gemini", "api_key": "k", "model": "gemini-1.5-flash",
                      "url": "", "timeout": 30})
    assert isinstance(b, GeminiBackend)
    assert b.url == "https://generativelanguage.googleapis.com"
    assert b.timeout == 30


def test_make_backend_openai_compat():
    b = make_backend({"provider": "openai_compat", "url": "http://localhost:11434", "model": "llama3.2"})
    assert isinstance(b, OpenAICompatibleBackend)


def test_make_backend_unknown_provider():
    with pytest.raises(ValueError):
        make_backend({"provider": "carrier-pigeon"})


def test_registry_contents():
    assert set(PROVIDERS) == {"gemini", "openai_compat"}
