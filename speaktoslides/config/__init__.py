"""Configuration loading for SpeakToSlides."""

from speaktoslides.config.loader import ConfigurationError
from speaktoslides.config.settings import AppSettings, get_settings, reload_settings

__all__ = ["AppSettings", "ConfigurationError", "get_settings", "reload_settings"]
