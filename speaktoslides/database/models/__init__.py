"""Database models."""

from speaktoslides.database.models.conversation import (
    ConversationMessageRecord,
    ConversationRecord,
)
from speaktoslides.database.models.deck import DeckRecord
from speaktoslides.database.models.usage import UsageRecord

__all__ = [
    "ConversationMessageRecord",
    "ConversationRecord",
    "DeckRecord",
    "UsageRecord",
]
