"""Deck rendering."""

from speaktoslides.rendering.renderer import render_deck, render_slide, safe_image_url
from speaktoslides.rendering.themes import PALETTES, Palette, get_palette

__all__ = ["PALETTES", "Palette", "get_palette", "render_deck", "render_slide", "safe_image_url"]
