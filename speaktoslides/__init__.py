"""SpeakToSlides: conversational presentation builder."""

__version__ = "0.1.0"
