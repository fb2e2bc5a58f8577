"""Response schemas for the API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class GenerateDeckResponse(BaseModel):
    deck_id: str
    url: str
    title: str
    slide_count: int
    theme: str


class DeckResponse(BaseModel):
    """Deck metadata plus its slides as stored."""

    id: str
    title: str
    theme: str
    slide_count: int
    slides: list[dict[str, Any]]
    view_count: int
    is_pro: bool
    url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeckUpdateResponse(BaseModel):
    deck_id: str
    title: str
    slide_count: int
    url: str
