"""Slide variants for representing individual slides as structured data.

A slide is a tagged variant on ``type``. Model output is untrusted, so
``parse_slide`` is tolerant: missing text defaults to empty, scalars are
coerced to strings, extra keys are ignored, and anything it cannot read
becomes an ``UnknownSlide`` that keeps the raw payload.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

MAX_BULLET_POINTS = 5


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return _as_text(value)


class SlideBase(BaseModel):
    """Fields shared by every slide kind.

    Attributes:
        user_image_url: User-supplied image that overrides any generated
            placeholder, regardless of slide kind
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    user_image_url: Optional[str] = None

    @field_validator("user_image_url", mode="before")
    @classmethod
    def _coerce_image_url(cls, value: Any) -> Optional[str]:
        return _as_optional_text(value)

    @property
    def recognized(self) -> bool:
        return True

    def with_image(self, image_url: str) -> "SlideBase":
        """Return a copy of this slide with ``user_image_url`` set."""
        return self.model_copy(update={"user_image_url": image_url})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape used in storage and prompts."""
        return self.model_dump(mode="json", exclude_none=True)


class TitleSlide(SlideBase):
    type: Literal["title"] = "title"
    heading: str = ""
    subtitle: Optional[str] = None

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("subtitle", mode="before")
    @classmethod
    def _coerce_subtitle(cls, value: Any) -> Optional[str]:
        return _as_optional_text(value)


class BulletsSlide(SlideBase):
    type: Literal["bullets"] = "bullets"
    heading: str = ""
    points: tuple[str, ...] = ()

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("points", mode="before")
    @classmethod
    def _coerce_points(cls, value: Any) -> tuple[str, ...]:
        if not isinstance(value, (list, tuple)):
            return ()
        return tuple(_as_text(point) for point in value if point is not None)


class ContentSlide(SlideBase):
    type: Literal["content"] = "content"
    heading: str = ""
    body: str = ""

    @field_validator("heading", "body", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class QuoteSlide(SlideBase):
    type: Literal["quote"] = "quote"
    text: str = ""
    attribution: Optional[str] = None

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("attribution", mode="before")
    @classmethod
    def _coerce_attribution(cls, value: Any) -> Optional[str]:
        return _as_optional_text(value)


class StatItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    value: str = ""
    label: str = ""

    @field_validator("value", "label", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class StatsSlide(SlideBase):
    type: Literal["stats"] = "stats"
    heading: str = ""
    stats: tuple[StatItem, ...] = ()

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("stats", mode="before")
    @classmethod
    def _coerce_stats(cls, value: Any) -> tuple[Any, ...]:
        if not isinstance(value, (list, tuple)):
            return ()
        return tuple(item for item in value if isinstance(item, (dict, StatItem)))


class ImageSlide(SlideBase):
    type: Literal["image"] = "image"
    heading: str = ""
    caption: Optional[str] = None
    placeholder: bool = False

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("caption", mode="before")
    @classmethod
    def _coerce_caption(cls, value: Any) -> Optional[str]:
        return _as_optional_text(value)

    @field_validator("placeholder", mode="before")
    @classmethod
    def _coerce_placeholder(cls, value: Any) -> bool:
        return bool(value)


class UnknownSlide(BaseModel):
    """A slide whose kind is missing or unrecognized.

    The raw payload is kept so the slide survives storage round trips; the
    renderer shows a fallback block for it.
    """

    model_config = ConfigDict(frozen=True)

    type: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def recognized(self) -> bool:
        return False

    @property
    def user_image_url(self) -> Optional[str]:
        return _as_optional_text(self.raw.get("user_image_url"))

    def with_image(self, image_url: str) -> "UnknownSlide":
        return UnknownSlide(type=self.type, raw={**self.raw, "user_image_url": image_url})

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)


Slide = Union[
    TitleSlide,
    BulletsSlide,
    ContentSlide,
    QuoteSlide,
    StatsSlide,
    ImageSlide,
    UnknownSlide,
]

SLIDE_TYPES: dict[str, type[SlideBase]] = {
    "title": TitleSlide,
    "bullets": BulletsSlide,
    "content": ContentSlide,
    "quote": QuoteSlide,
    "stats": StatsSlide,
    "image": ImageSlide,
}


def parse_slide(data: Any) -> Slide:
    """Parse one untrusted slide payload.

    Args:
        data: Decoded JSON value for a single slide

    Returns:
        The matching slide variant, or an UnknownSlide when the payload is not
        an object, has no recognized ``type``, or fails validation
    """
    if isinstance(data, (SlideBase, UnknownSlide)):
        return data
    if not isinstance(data, dict):
        return UnknownSlide(type="", raw={})

    slide_type = data.get("type")
    slide_cls = SLIDE_TYPES.get(slide_type) if isinstance(slide_type, str) else None
    if slide_cls is None:
        return UnknownSlide(type=_as_text(slide_type), raw=dict(data))

    try:
        return slide_cls.model_validate(data)
    except PydanticValidationError:
        return UnknownSlide(type=slide_type, raw=dict(data))


def parse_slides(items: Any) -> list[Slide]:
    """Parse a list of untrusted slide payloads. Non-lists yield an empty list."""
    if not isinstance(items, (list, tuple)):
        return []
    return [parse_slide(item) for item in items]


def slides_to_dicts(slides: Any) -> list[dict[str, Any]]:
    """Serialize slides to plain dicts for JSON storage and prompts."""
    return [slide.to_dict() for slide in slides]
