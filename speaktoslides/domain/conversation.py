"""Conversation state for the chat planning flow.

States: gathering -> confirming -> building -> reviewing (-> editing) -> done
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from speaktoslides.domain.outline import SlideOutline


class ConversationState(str, Enum):
    GATHERING = "gathering"
    CONFIRMING = "confirming"
    BUILDING = "building"
    REVIEWING = "reviewing"
    EDITING = "editing"
    DONE = "done"

    @property
    def is_active(self) -> bool:
        return self is not ConversationState.DONE


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: datetime


class Conversation(BaseModel):
    """Snapshot of one conversation as read from storage.

    Attributes:
        id: Conversation identifier
        chat_handle: Channel-specific chat identifier
        channel: Transport the conversation arrived on
        state: Current state machine state
        messages: Append-only history in arrival order
        outline: Outline proposed to the user, if any
        deck_id: Deck built from this conversation, if any
        building_started_at: When the current build claimed the conversation
    """

    model_config = ConfigDict(frozen=True)

    id: str
    chat_handle: str
    channel: str = "telegram"
    state: ConversationState = ConversationState.GATHERING
    messages: tuple[ConversationMessage, ...] = Field(default_factory=tuple)
    outline: Optional[SlideOutline] = None
    deck_id: Optional[str] = None
    building_started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def user_messages(self) -> list[str]:
        return [m.content for m in self.messages if m.role is MessageRole.USER]
