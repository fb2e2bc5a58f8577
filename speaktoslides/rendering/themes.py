"""Color palettes for deck themes."""

from dataclasses import dataclass

from speaktoslides.domain.deck import Theme, normalize_theme


@dataclass(frozen=True)
class Palette:
    bg: str
    surface: str
    accent: str
    accent_alt: str
    text: str
    text_muted: str
    border: str


PALETTES: dict[Theme, Palette] = {
    Theme.MODERN: Palette(
        bg="#0f172a",
        surface="#1e293b",
        accent="#6366f1",
        accent_alt="#4f46e5",
        text="#f1f5f9",
        text_muted="#94a3b8",
        border="#334155",
    ),
    Theme.MINIMAL: Palette(
        bg="#f8f9fa",
        surface="#ffffff",
        accent="#2563eb",
        accent_alt="#1d4ed8",
        text="#111827",
        text_muted="#6b7280",
        border="#e5e7eb",
    ),
    Theme.BOLD: Palette(
        bg="#0f0f1a",
        surface="#1a1a2e",
        accent="#f59e0b",
        accent_alt="#d97706",
        text="#ffffff",
        text_muted="#a1a1aa",
        border="#2d2d42",
    ),
}


def get_palette(theme) -> Palette:
    """Palette for ``theme``; unrecognized values get the modern palette."""
    return PALETTES[normalize_theme(theme)]
