"""Domain models for slides, decks, outlines and conversations."""

from speaktoslides.domain.conversation import (
    Conversation,
    ConversationMessage,
    ConversationState,
    MessageRole,
)
from speaktoslides.domain.deck import Deck, Theme, derive_title, normalize_theme
from speaktoslides.domain.outline import OutlineSlide, SlideOutline
from speaktoslides.domain.slide import (
    BulletsSlide,
    ContentSlide,
    ImageSlide,
    QuoteSlide,
    Slide,
    StatItem,
    StatsSlide,
    TitleSlide,
    UnknownSlide,
    parse_slide,
    parse_slides,
)

__all__ = [
    "BulletsSlide",
    "ContentSlide",
    "Conversation",
    "ConversationMessage",
    "ConversationState",
    "Deck",
    "ImageSlide",
    "MessageRole",
    "OutlineSlide",
    "QuoteSlide",
    "Slide",
    "SlideOutline",
    "StatItem",
    "StatsSlide",
    "Theme",
    "TitleSlide",
    "UnknownSlide",
    "derive_title",
    "normalize_theme",
    "parse_slide",
    "parse_slides",
]
