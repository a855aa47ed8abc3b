"""
Config loader for supportdesk.
Reads config.yaml once at startup. All other modules import from here.
Values of the form ${ENV_VAR} or ${ENV_VAR:-default} are resolved from the
environment (after .env has been loaded) so secrets never live in the file.
"""

import os
import re
import yaml
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")

# Used for any key config.yaml leaves out, and on its own when the file is absent
DEFAULTS: dict = {
    "server": {"host": "0.0.0.0", "port": "${PORT:-3000}", "dev_mode": "${APP_ENV:-production}"},
    "cors": {"origin": "${FRONTEND_URL:-http://localhost:5173}"},
    "storage": {"sqlite_path": "${CHAT_DB_PATH:-./chat.db}"},
    "llm": {
        "provider": "gemini",
        "url": "https://generativelanguage.googleapis.com",
        "api_key": "${GEMINI_API_KEY}",
        "model": "gemini-1.5-flash",
        "max_tokens": 500,
        "temperature": 0.7,
        "timeout": 60,
    },
    "history": {"limit": 10},
    "logging": {"level": "INFO"},
}


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} / ${ENV_VAR:-default} patterns with environment values."""
    def replacer(match):
        var_name, default = match.group(1), match.group(2)
        resolved = os.environ.get(var_name, "")
        if not resolved and default is not None:
            return default
        return resolved
    return _ENV_REF.sub(replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _merge(base: dict, override: dict) -> dict:
    """Deep-merge override onto base, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _number(value, default, kind=int):
    # "" comes from an unset ${VAR}; 0 is a legitimate value
    if value is None or value == "":
        return default
    return kind(value)


def _coerce(cfg: dict) -> dict:
    """Turn env-substituted strings back into the types the app expects."""
    server = cfg["server"]
    server["port"] = _number(server.get("port"), 3000)
    dev_mode = server.get("dev_mode", False)
    if isinstance(dev_mode, str):
        server["dev_mode"] = dev_mode.strip().lower() in {"1", "true", "yes", "development"}

    llm = cfg["llm"]
    llm["max_tokens"] = _number(llm.get("max_tokens"), 500)
    llm["temperature"] = _number(llm.get("temperature"), 0.7, float)
    llm["timeout"] = _number(llm.get("timeout"), 60.0, float)

    cfg["history"]["limit"] = _number(cfg["history"].get("limit"), 10)
    return cfg


def build_config(raw: dict | None) -> dict:
    """Merge a raw (already parsed) config over DEFAULTS, resolve env vars and normalize."""
    return _coerce(_walk_and_resolve(_merge(DEFAULTS, raw or {})))


def load_config(path: Path | None = None) -> dict:
    """
    Load and cache config from YAML file.
    An explicit path (argument or SUPPORTDESK_CONFIG) must exist; the default
    config.yaml may be absent, in which case DEFAULTS apply.
    """
    global _config
    if _config is not None:
        return _config

    explicit = path or os.environ.get("SUPPORTDESK_CONFIG")
    config_path = Path(explicit) if explicit else _CONFIG_PATH

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(f"Config not found: {config_path}")
    else:
        raw = {}

    _config = build_config(raw)
    return _config


def get_config() -> dict:
    """Return cached base config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def get_setting(cfg: dict, dotted: str, default=None):
    """Read a nested key like 'llm.api_key', returning default if any level is missing."""
    node = cfg
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node
