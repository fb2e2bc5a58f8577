"""Slide outline: the lightweight structure a user confirms before a build."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from speaktoslides.core.exceptions import GenerationFormatError

OUTLINE_TYPE_ICONS = {
    "title": "🎯",
    "bullets": "📋",
    "stats": "📊",
    "quote": "💬",
    "image": "🖼️",
}
DEFAULT_OUTLINE_ICON = "📝"


class OutlineSlide(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    index: int
    heading: str
    type: str = "content"
    notes: Optional[str] = None

    @field_validator("heading", "type", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)


class SlideOutline(BaseModel):
    """Title plus ordered slide headings, with no rendering fidelity."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    slides: tuple[OutlineSlide, ...]

    @classmethod
    def from_payload(cls, payload: Any) -> "SlideOutline":
        """Build an outline from untrusted model output.

        Slide indices are renumbered 1..n in the order given.

        Raises:
            GenerationFormatError: If the payload is not an outline object
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("slides"), list):
            raise GenerationFormatError(
                "AI returned unexpected structure for outline. Expected { slides: [...] }."
            )

        slides = []
        for item in payload["slides"]:
            if not isinstance(item, dict):
                continue
            slides.append(
                OutlineSlide(
                    index=len(slides) + 1,
                    heading=item.get("heading"),
                    type=item.get("type") or "content",
                    notes=item.get("notes"),
                )
            )

        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            title = slides[0].heading if slides else "Presentation"

        return cls(title=title.strip(), slides=tuple(slides))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def format_compact(self) -> str:
        """One line per slide, used as planner context."""
        return "\n".join(f"{s.index}. [{s.type}] {s.heading}" for s in self.slides)

    def format_for_user(self) -> str:
        """Human-friendly listing with a title line and per-kind icons."""
        lines = [
            f"{OUTLINE_TYPE_ICONS.get(s.type, DEFAULT_OUTLINE_ICON)} Slide {s.index}: {s.heading}"
            for s in self.slides
        ]
        return f"📊 {self.title}\n\n" + "\n".join(lines)

    def format_for_generation(self) -> str:
        """Outline lines including notes, used in the deck generation prompt."""
        lines = []
        for s in self.slides:
            line = f"Slide {s.index} [{s.type}]: {s.heading}"
            if s.notes:
                line += f" - {s.notes}"
            lines.append(line)
        return "\n".join(lines)
