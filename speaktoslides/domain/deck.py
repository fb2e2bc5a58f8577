"""Deck value type: title, theme and an ordered tuple of slides."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from speaktoslides.core.exceptions import GenerationFormatError
from speaktoslides.domain.slide import Slide, TitleSlide, parse_slide, parse_slides, slides_to_dicts

DEFAULT_TITLE = "Presentation"


class Theme(str, Enum):
    MODERN = "modern"
    MINIMAL = "minimal"
    BOLD = "bold"


def normalize_theme(value: Any) -> Theme:
    """Map any value to a Theme, falling back to modern."""
    if isinstance(value, Theme):
        return value
    if isinstance(value, str):
        try:
            return Theme(value.strip().lower())
        except ValueError:
            pass
    return Theme.MODERN


def derive_title(slides: Iterable[Slide], fallback: Optional[str] = None) -> str:
    """Heading of the first title slide, else ``fallback``, else the default title."""
    for slide in slides:
        if isinstance(slide, TitleSlide) and slide.heading.strip():
            return slide.heading.strip()
    if fallback and fallback.strip():
        return fallback.strip()
    return DEFAULT_TITLE


class Deck(BaseModel):
    """An immutable slide deck.

    Edits never mutate a Deck; ``with_slides`` and ``with_slide_image``
    return new values with the title re-derived from the slides.

    Attributes:
        title: Deck title
        theme: Color theme (modern, minimal or bold)
        slides: Slides in presentation order
    """

    model_config = ConfigDict(frozen=True)

    title: str = DEFAULT_TITLE
    theme: Theme = Theme.MODERN
    slides: tuple[Slide, ...] = Field(default_factory=tuple)

    @field_validator("theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value: Any) -> Theme:
        return normalize_theme(value)

    @field_validator("slides", mode="before")
    @classmethod
    def _parse_slides(cls, value: Any) -> tuple[Slide, ...]:
        if not isinstance(value, (list, tuple)):
            return ()
        return tuple(parse_slide(item) for item in value)

    @classmethod
    def from_payload(cls, payload: Any) -> Deck:
        """Build a Deck from an untrusted model payload.

        Raises:
            GenerationFormatError: If the payload is not an object with a
                ``slides`` list
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("slides"), list):
            raise GenerationFormatError(
                "AI returned unexpected structure for deck. Expected { slides: [...] }."
            )
        slides = parse_slides(payload["slides"])
        raw_title = payload.get("title")
        title = raw_title.strip() if isinstance(raw_title, str) and raw_title.strip() else None
        return cls(
            title=title or derive_title(slides),
            theme=payload.get("theme"),
            slides=tuple(slides),
        )

    @classmethod
    def from_stored(cls, slides_json: Any, theme: Any, title: Optional[str] = None) -> Deck:
        """Rebuild a Deck from persisted slide JSON, keeping the stored title."""
        slides = parse_slides(slides_json)
        stored = title.strip() if isinstance(title, str) else ""
        return cls(title=stored or derive_title(slides), theme=theme, slides=tuple(slides))

    def with_slides(self, slides: Iterable[Slide]) -> Deck:
        """Return a new Deck with ``slides`` and a re-derived title."""
        new_slides = tuple(slides)
        return Deck(title=derive_title(new_slides, self.title), theme=self.theme, slides=new_slides)

    def with_slide_image(self, index: int, image_url: str) -> Deck:
        """Return a new Deck where slide ``index`` carries ``image_url``."""
        slides = list(self.slides)
        slides[index] = slides[index].with_image(image_url)
        return self.with_slides(slides)

    @property
    def slide_count(self) -> int:
        return len(self.slides)

    def slides_as_dicts(self) -> list[dict[str, Any]]:
        return slides_to_dicts(self.slides)
