"""Conversation and message models for the chat planning flow.

A conversation is never deleted; ending it marks its state ``done``. The
partial unique index guarantees at most one active conversation per chat
handle.
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from speaktoslides.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ConversationRecord(Base):
    """One planning conversation for a chat handle."""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=_new_id)
    chat_handle = Column(String(255), nullable=False, index=True)
    channel = Column(String(32), nullable=False, default="telegram")
    state = Column(String(20), nullable=False, default="gathering")

    outline = Column(JSON, nullable=True)  # SlideOutline.to_dict()
    deck_id = Column(String(36), nullable=True)

    # Set while a build holds the conversation
    building_started_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    messages = relationship(
        "ConversationMessageRecord",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessageRecord.id",
    )

    __table_args__ = (
        Index(
            "uq_conversations_active_chat_handle",
            "chat_handle",
            unique=True,
            sqlite_where=text("state != 'done'"),
            postgresql_where=text("state != 'done'"),
        ),
        Index("ix_conversations_handle_updated", "chat_handle", "updated_at"),
    )

    def __repr__(self):
        return f"<ConversationRecord(id='{self.id}', chat_handle='{self.chat_handle}', state='{self.state}')>"


class ConversationMessageRecord(Base):
    """Chat message within a conversation. Rows are only ever inserted."""

    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role = Column(String(20), nullable=False)  # 'user' or 'assistant'
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    conversation = relationship("ConversationRecord", back_populates="messages")

    def __repr__(self):
        return f"<ConversationMessageRecord(id={self.id}, role='{self.role}', conversation_id='{self.conversation_id}')>"
