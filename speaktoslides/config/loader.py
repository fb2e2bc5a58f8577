"""
Configuration loader.

Reads ``config.yaml`` and layers environment overrides on top. The result is
a plain dict that ``settings.create_settings`` turns into validated models.
"""

import os
from pathlib import Path
from typing import Any

import yaml


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


CONFIG_FILENAME = "config.yaml"
CONFIG_DIR_ENV = "SPEAKTOSLIDES_CONFIG_DIR"

REQUIRED_SECTIONS = ["llm", "conversation", "api", "logging"]
OPTIONAL_SECTIONS = ["telegram", "transcription", "usage", "database", "tracing"]


def get_config_path(filename: str = CONFIG_FILENAME) -> Path:
    """
    Locate a configuration file.

    ``SPEAKTOSLIDES_CONFIG_DIR`` wins when set; otherwise ``config/`` at the
    project root.

    Raises:
        ConfigurationError: If the file doesn't exist
    """
    config_dir = os.getenv(CONFIG_DIR_ENV)
    if config_dir:
        config_path = Path(config_dir) / filename
    else:
        config_path = Path(__file__).resolve().parents[2] / "config" / filename

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}. "
            f"Set {CONFIG_DIR_ENV} or create config/{filename}"
        )

    return config_path


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
        content = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if not isinstance(content, dict):
        kind = "empty" if content is None else type(content).__name__
        raise ConfigurationError(f"{path} must hold a mapping of sections, got {kind}")

    return content


def load_config() -> dict[str, Any]:
    """
    Load config.yaml and check its section layout.

    Every required section must be present, and every section that is
    present must be a mapping.

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    config = _read_mapping(get_config_path())

    missing = [name for name in REQUIRED_SECTIONS if name not in config]
    if missing:
        raise ConfigurationError(f"Missing required configuration sections: {', '.join(missing)}")

    for name in REQUIRED_SECTIONS + OPTIONAL_SECTIONS:
        section = config.get(name)
        if section is not None and not isinstance(section, dict):
            raise ConfigurationError(f"Configuration section '{name}' must be a mapping")

    return config


def merge_with_env(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment overrides to a loaded config.

    Overrides:
    - API_PORT -> api.port
    - APP_BASE_URL -> api.base_url
    - LOG_LEVEL -> logging.level
    - DATABASE_URL -> database.url
    - ENVIRONMENT -> environment

    The input dict is left untouched.

    Raises:
        ConfigurationError: If API_PORT is not an integer
    """
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in config.items()}

    def section(name: str) -> dict[str, Any]:
        if not isinstance(merged.get(name), dict):
            merged[name] = {}
        return merged[name]

    if port := os.getenv("API_PORT"):
        try:
            section("api")["port"] = int(port)
        except ValueError as e:
            raise ConfigurationError(f"API_PORT must be an integer, got {port!r}") from e

    if base_url := os.getenv("APP_BASE_URL"):
        section("api")["base_url"] = base_url

    if log_level := os.getenv("LOG_LEVEL"):
        section("logging")["level"] = log_level.upper()

    if database_url := os.getenv("DATABASE_URL"):
        section("database")["url"] = database_url

    if environment := os.getenv("ENVIRONMENT"):
        merged["environment"] = environment

    return merged
