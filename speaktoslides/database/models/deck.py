"""Stored slide decks."""
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from speaktoslides.core.database import Base


class DeckRecord(Base):
    """A generated deck: its slides as JSON plus the rendered document.

    ``slides_json`` is the source of truth; ``html_content`` is re-rendered
    from it on every edit.
    """

    __tablename__ = "decks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(255), nullable=True, index=True)

    title = Column(String(255), nullable=False, default="Presentation")
    prompt = Column(Text, nullable=True)
    theme = Column(String(20), nullable=False, default="modern")

    slides_json = Column(JSON, nullable=False, default=list)
    slide_count = Column(Integer, nullable=False, default=0)
    html_content = Column(Text, nullable=False)

    is_public = Column(Boolean, nullable=False, default=True)
    is_pro = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)

    conversation_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DeckRecord(id='{self.id}', title='{self.title}', slide_count={self.slide_count})>"
