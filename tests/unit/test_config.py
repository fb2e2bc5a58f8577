"""
Unit tests for configuration loading, settings validation and logging setup.
"""

import json
import logging
from pathlib import Path

import pytest
import yaml

from speaktoslides.config.loader import ConfigurationError, load_config, merge_with_env
from speaktoslides.config.settings import (
    APISettings,
    ConversationSettings,
    LLMSettings,
    LoggingSettings,
    create_settings,
)
from speaktoslides.core.logging_config import JsonFormatter, configure_logging

BASE_CONFIG = {
    "llm": {"fast_endpoint": "fast", "quality_endpoint": "quality", "fallback_endpoint": None},
    "conversation": {"history_limit": 10},
    "api": {"port": 9000, "base_url": "https://decks.example.com/"},
    "logging": {"level": "debug", "format": "json"},
}


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setenv("SPEAKTOSLIDES_CONFIG_DIR", str(tmp_path))
    for name in ("API_PORT", "APP_BASE_URL", "LOG_LEVEL", "DATABASE_URL", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def write_config(config_dir: Path, config: dict) -> None:
    (config_dir / "config.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")


class TestLoader:
    """Tests for the YAML loader."""

    def test_missing_file(self, config_dir):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config()

    def test_missing_sections(self, config_dir):
        write_config(config_dir, {"llm": {}})

        with pytest.raises(ConfigurationError, match="conversation"):
            load_config()

    def test_non_mapping_root(self, config_dir):
        (config_dir / "config.yaml").write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config()

    def test_section_must_be_mapping(self, config_dir):
        write_config(config_dir, {**BASE_CONFIG, "usage": "unlimited"})

        with pytest.raises(ConfigurationError, match="usage"):
            load_config()

    def test_bad_port_override(self, config_dir, monkeypatch):
        monkeypatch.setenv("API_PORT", "eighty")

        with pytest.raises(ConfigurationError, match="API_PORT"):
            merge_with_env(BASE_CONFIG)

    def test_env_overrides(self, config_dir, monkeypatch):
        write_config(config_dir, BASE_CONFIG)
        monkeypatch.setenv("API_PORT", "8123")
        monkeypatch.setenv("DATABASE_URL", "postgresql://db/speaktoslides")
        monkeypatch.setenv("ENVIRONMENT", "production")

        merged = merge_with_env(load_config())

        assert merged["api"]["port"] == 8123
        assert merged["database"]["url"] == "postgresql://db/speaktoslides"
        assert merged["environment"] == "production"

    def test_merge_does_not_mutate_input(self, config_dir, monkeypatch):
        config = {"api": {"port": 1}, "logging": {"level": "INFO"}}
        monkeypatch.setenv("LOG_LEVEL", "warning")

        merged = merge_with_env(config)

        assert merged["logging"]["level"] == "WARNING"
        assert config["logging"]["level"] == "INFO"


class TestSettings:
    """Tests for settings models."""

    def test_create_settings(self, config_dir):
        write_config(config_dir, BASE_CONFIG)

        settings = create_settings()

        assert settings.llm.fallback_endpoint is None
        assert settings.api.base_url == "https://decks.example.com"
        assert settings.logging.level == "DEBUG"
        assert settings.usage.anonymous_deck_limit == 1
        assert settings.is_production is False

    def test_invalid_settings_wrapped(self, config_dir):
        write_config(config_dir, {**BASE_CONFIG, "api": {"port": 70000}})

        with pytest.raises(ConfigurationError):
            create_settings()

    def test_temperature_bounds(self):
        with pytest.raises(ValueError):
            LLMSettings(temperature=3.0)

    def test_outline_bounds(self):
        with pytest.raises(ValueError):
            ConversationSettings(min_outline_slides=10, max_outline_slides=8)

    def test_base_url_scheme(self):
        with pytest.raises(ValueError):
            APISettings(base_url="speaktoslides.com")

    def test_log_format(self):
        with pytest.raises(ValueError):
            LoggingSettings(format="xml")


class TestLogging:
    """Tests for logging setup."""

    def test_json_formatter_includes_extra(self):
        record = logging.LogRecord("speaktoslides.test", logging.INFO, __file__, 1, "Stored deck", (), None)
        record.deck_id = "deck-1"

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Stored deck"
        assert payload["level"] == "INFO"
        assert payload["deck_id"] == "deck-1"

    def test_configure_logging(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(LoggingSettings(level="WARNING", format="json"))

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
