"""
Completion backends for supportdesk.

Usage:
    from supportdesk.backends import make_backend
    backend = make_backend(cfg["llm"])

Adding a new provider:
    1. Create supportdesk/backends/<name>.py implementing BaseBackend.
    2. Add an entry to PROVIDERS below.
    3. Set  llm.provider: <name>  in config.yaml.
"""
from supportdesk.backends.base import BaseBackend, BackendResponse
from supportdesk.backends.gemini import GeminiBackend
from supportdesk.backends.openai_compat import OpenAICompatibleBackend

# Provider name → backend class
PROVIDERS: dict[str, type[BaseBackend]] = {
    "gemini": GeminiBackend,
    "openai_compat": OpenAICompatibleBackend,
}


def make_backend(llm_cfg: dict) -> BaseBackend:
    """
    Instantiate the configured completion backend.

    Raises:
        ValueError: If the provider is not registered.
    """
    provider = llm_cfg.get("provider", "gemini")
    cls = PROVIDERS.get(provider)
    if cls is None:
        raise ValueError(
            f"Unknown llm.provider {provider!r}. Available: {sorted(PROVIDERS)}"
        )
    return cls(
        name=provider,
        url=llm_cfg.get("url", ""),
        model=llm_cfg.get("model", ""),
        api_key=llm_cfg.get("api_key", ""),
        timeout=llm_cfg.get("timeout", 60),
    )


__all__ = [
    "BaseBackend",
    "BackendResponse",
    "GeminiBackend",
    "OpenAICompatibleBackend",
    "PROVIDERS",
    "make_backend",
]
