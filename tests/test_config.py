"""
Tests for the config loader: env substitution, defaults and coercion.
"""

import pytest

import supportdesk.config as config
from supportdesk.config import build_config, get_setting, load_config


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    monkeypatch.setattr(config, "_config", None)
    for var in ("PORT", "APP_ENV", "FRONTEND_URL", "CHAT_DB_PATH", "GEMINI_API_KEY",
                "LLM_PROVIDER", "SUPPORTDESK_CONFIG"):
        monkeypatch.delenv(var, raising=False)


def test_defaults_apply_to_empty_config():
    cfg = build_config({})
    assert cfg["server"]["port"] == 3000
    assert cfg["server"]["dev_mode"] is False
    assert cfg["cors"]["origin"] == "http://localhost:5173"
    assert cfg["storage"]["sqlite_path"] == "./chat.db"
    assert cfg["llm"]["provider"] == "gemini"
    assert cfg["llm"]["api_key"] == ""
    assert cfg["history"]["limit"] == 10


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("FRONTEND_URL", "https://shop.example")
    monkeypatch.setenv("GEMINI_API_KEY", "secret")

    cfg = build_config({})
    assert cfg["server"]["port"] == 8080
    assert cfg["server"]["dev_mode"] is True
    assert cfg["cors"]["origin"] == "https://shop.example"
    assert cfg["llm"]["api_key"] == "secret"


def test_file_values_merge_over_defaults():
    cfg = build_config({"llm": {"model": "gemini-1.5-pro"}, "history": {"limit": "4"}})
    assert cfg["llm"]["model"] == "gemini-1.5-pro"
    assert cfg["llm"]["max_tokens"] == 500
    assert cfg["history"]["limit"] == 4


def test_zero_temperature_is_kept():
    cfg = build_config({"llm": {"temperature": 0}})
    assert cfg["llm"]["temperature"] == 0.0


def test_inline_default_and_embedded_refs(monkeypatch):
    monkeypatch.setenv("HOSTNAME_FOR_TEST", "db-host")
    cfg = build_config({"storage": {"sqlite_path": "/data/${HOSTNAME_FOR_TEST}/${MISSING_VAR:-chat}.db"}})
    assert cfg["storage"]["sqlite_path"] == "/data/db-host/chat.db"


def test_load_config_from_explicit_path(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("server:\n  port: 4000\ncors:\n  origin: http://example.test\n")

    cfg = load_config(path)
    assert cfg["server"]["port"] == 4000
    assert cfg["cors"]["origin"] == "http://example.test"
    assert config.get_config() is cfg


def test_load_config_env_path_must_exist(monkeypatch, tmp_path):
    monkeypatch.setenv("SUPPORTDESK_CONFIG", str(tmp_path / "missing.yaml"))
    with pytest.raises(FileNotFoundError):
        load_config()


def test_missing_default_file_uses_defaults(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "_CONFIG_PATH", tmp_path / "config.yaml")
    cfg = load_config()
    assert cfg["server"]["port"] == 3000


def test_get_setting():
    cfg = build_config({})
    assert get_setting(cfg, "llm.provider") == "gemini"
    assert get_setting(cfg, "llm.nope", "x") == "x"
    assert get_setting(cfg, "server.port.deeper") is None
