"""
Application settings management using Pydantic.

This module combines YAML configuration with environment variables to create
a unified settings object.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from speaktoslides.config.loader import ConfigurationError, load_config, merge_with_env


class LLMSettings(BaseModel):
    """Serving endpoints and generation limits for the generative model."""

    fast_endpoint: str = "databricks-claude-haiku-4-5"
    quality_endpoint: str = "databricks-claude-sonnet-4-5"
    fallback_endpoint: Optional[str] = "databricks-meta-llama-3-3-70b-instruct"
    temperature: float = 0.7
    top_p: float = 0.95
    max_tokens_chat: int = 1024
    max_tokens_deck: int = 4096

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    @field_validator("max_tokens_chat", "max_tokens_deck")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v < 1 or v > 32000:
            raise ValueError("max_tokens must be between 1 and 32000")
        return v


class ConversationSettings(BaseModel):
    """Conversation state machine settings."""

    history_limit: int = 20
    build_lease_seconds: int = 300
    min_outline_slides: int = 8
    max_outline_slides: int = 12
    pro_tier: bool = False

    @model_validator(mode="after")
    def validate_outline_bounds(self) -> "ConversationSettings":
        if not 1 <= self.min_outline_slides <= self.max_outline_slides:
            raise ValueError("Outline bounds must satisfy 1 <= min <= max")
        return self


class APISettings(BaseModel):
    """API configuration settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = "https://speaktoslides.com"
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("https://", "http://")):
            raise ValueError("base_url must start with https:// or http://")
        return v.rstrip("/")


class TelegramSettings(BaseModel):
    """Chat-bot transport settings."""

    api_base: str = "https://api.telegram.org"
    min_text_length: int = 3
    timeout: float = 30.0


class TranscriptionSettings(BaseModel):
    """Speech-to-text settings."""

    endpoint: str = "https://api.openai.com/v1/audio/transcriptions"
    model: str = "whisper-1"
    timeout: float = 60.0


class UsageSettings(BaseModel):
    """Usage limits for anonymous callers."""

    anonymous_deck_limit: int = 1


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = "sqlite:///./speaktoslides.db"
    echo: bool = False


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "text"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = ["json", "text"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v


class TracingSettings(BaseModel):
    """MLflow tracing settings."""

    enabled: bool = False
    tracking_uri: str = "databricks"
    experiment_name: str = "/Shared/speaktoslides"


class AppSettings(BaseSettings):
    """
    Main application settings.

    Combines environment variables (for secrets) with YAML configuration
    (for application settings).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Secrets from environment variables
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    telegram_webhook_secret: Optional[str] = Field(
        default=None, description="Secret Telegram echoes in the webhook header"
    )
    openai_api_key: Optional[str] = Field(default=None, description="Transcription API key")
    internal_api_secret: Optional[str] = Field(
        default=None, description="Shared secret for deck mutation endpoints"
    )

    # Application configuration (from YAML)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    api: APISettings = Field(default_factory=APISettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    usage: UsageSettings = Field(default_factory=UsageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)

    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def create_settings() -> AppSettings:
    """
    Create application settings by combining YAML config and environment variables.

    Returns:
        AppSettings instance with all configuration loaded

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid
    """
    try:
        config = load_config()
        config = merge_with_env(config)

        return AppSettings(
            llm=LLMSettings(**config["llm"]),
            conversation=ConversationSettings(**config["conversation"]),
            api=APISettings(**config["api"]),
            telegram=TelegramSettings(**config.get("telegram", {})),
            transcription=TranscriptionSettings(**config.get("transcription", {})),
            usage=UsageSettings(**config.get("usage", {})),
            database=DatabaseSettings(**config.get("database", {})),
            logging=LoggingSettings(**config["logging"]),
            tracing=TracingSettings(**config.get("tracing", {})),
            environment=config.get("environment", "development"),
        )

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to create settings: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Get the application settings singleton.

    This function is cached, so subsequent calls return the same instance.
    Use reload_settings() to force a reload during development.

    Returns:
        Cached AppSettings instance
    """
    return create_settings()


def reload_settings() -> AppSettings:
    """
    Reload settings by clearing the cache and recreating.

    Returns:
        New AppSettings instance
    """
    get_settings.cache_clear()
    return get_settings()
