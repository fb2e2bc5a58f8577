"""Deck renderer: Deck -> self-contained interactive HTML document.

Rendering is a pure function of the deck and the tier flag. The output has
no external scripts, stylesheets or fonts, carries a restrictive
Content-Security-Policy, and escapes every piece of slide text. The same
input always produces byte-identical output.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from jinja2 import Environment, PackageLoader, StrictUndefined
from markupsafe import Markup

from speaktoslides.domain.deck import Deck
from speaktoslides.domain.slide import Slide
from speaktoslides.rendering.themes import Palette, get_palette

logger = logging.getLogger(__name__)

SWIPE_THRESHOLD_PX = 50
WATERMARK_URL = "https://speaktoslides.com"
WATERMARK_TEXT = "Made with speaktoslides.com"

SLIDE_TEMPLATES = {
    "title": "slides/title.html.j2",
    "bullets": "slides/bullets.html.j2",
    "content": "slides/content.html.j2",
    "quote": "slides/quote.html.j2",
    "stats": "slides/stats.html.j2",
    "image": "slides/image.html.j2",
}
FALLBACK_TEMPLATE = "slides/fallback.html.j2"
DECK_TEMPLATE = "deck.html.j2"

_env = Environment(
    loader=PackageLoader("speaktoslides.rendering", "templates"),
    autoescape=True,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def safe_image_url(url: Optional[str]) -> Optional[str]:
    """Return ``url`` if it is an absolute http(s) URL, else None."""
    if not url:
        return None
    candidate = url.strip()
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None
    return candidate


def render_slide(slide: Slide, index: int, total: int, palette: Palette) -> str:
    """Render one slide block.

    Unknown kinds, and any slide whose template fails, render the fallback
    block so the rest of the deck is unaffected.
    """
    template_name = SLIDE_TEMPLATES.get(slide.type) if slide.recognized else None
    if template_name is not None:
        try:
            return _env.get_template(template_name).render(
                slide=slide,
                index=index,
                total=total,
                palette=palette,
                image_url=safe_image_url(slide.user_image_url),
            )
        except Exception:
            logger.warning(
                "Slide failed to render, using fallback block",
                extra={"slide_index": index, "slide_type": slide.type},
                exc_info=True,
            )

    return _env.get_template(FALLBACK_TEMPLATE).render(index=index, total=total, palette=palette)


def render_deck(deck: Deck, pro_tier: bool = False) -> str:
    """Render a deck into a single self-contained HTML document.

    Args:
        deck: Deck to render (may have zero slides)
        pro_tier: Omit the attribution watermark when True

    Returns:
        Complete HTML document
    """
    palette = get_palette(deck.theme)
    total = len(deck.slides)
    slide_blocks = [
        Markup(render_slide(slide, index, total, palette))
        for index, slide in enumerate(deck.slides)
    ]

    return _env.get_template(DECK_TEMPLATE).render(
        title=deck.title or "Presentation",
        palette=palette,
        slides=slide_blocks,
        total=total,
        show_watermark=not pro_tier,
        watermark_url=WATERMARK_URL,
        watermark_text=WATERMARK_TEXT,
        swipe_threshold=SWIPE_THRESHOLD_PX,
    )
