"""Chat markup helpers.

Outbound chat messages use a small HTML subset (bold, italic). Any user- or
model-supplied text placed inside that markup must be escaped.
"""

from typing import Optional

from markupsafe import escape


def escape_markup(value: Optional[str]) -> str:
    """Escape text for the chat HTML subset (``&``, ``<``, ``>`` and quotes)."""
    return str(escape(value or ""))


def bold(value: str) -> str:
    return f"<b>{escape_markup(value)}</b>"


def italic(value: str) -> str:
    return f"<i>{escape_markup(value)}</i>"
