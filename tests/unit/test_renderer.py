"""
Unit tests for the deck renderer.

Documents are parsed with BeautifulSoup so assertions target structure
rather than exact whitespace.
"""

import pytest
from bs4 import BeautifulSoup

from speaktoslides.domain.deck import Deck, Theme
from speaktoslides.rendering import PALETTES, render_deck, safe_image_url
from speaktoslides.rendering.renderer import WATERMARK_TEXT


def make_deck(slides, title="Demo", theme="modern") -> Deck:
    return Deck.from_payload({"title": title, "theme": theme, "slides": slides})


def soup_for(deck: Deck, pro_tier: bool = False) -> BeautifulSoup:
    return BeautifulSoup(render_deck(deck, pro_tier=pro_tier), "html.parser")


@pytest.fixture
def two_slide_deck() -> Deck:
    return make_deck(
        [
            {"type": "title", "heading": "Q3 Strategy", "subtitle": "Board update"},
            {"type": "bullets", "heading": "Highlights", "points": ["Revenue up", "Churn down", "NPS 60"]},
        ]
    )


class TestDocument:
    """Document-level structure."""

    def test_rendering_is_deterministic(self, two_slide_deck):
        assert render_deck(two_slide_deck) == render_deck(two_slide_deck)

    def test_counter_starts_at_first_slide(self, two_slide_deck):
        soup = soup_for(two_slide_deck)

        assert soup.find(id="slide-counter").get_text() == "1 / 2"
        assert soup.find(id="deck")["data-total"] == "2"
        assert len(soup.select("section.slide")) == 2

    def test_single_script_and_no_external_resources(self, two_slide_deck):
        soup = soup_for(two_slide_deck)

        assert len(soup.find_all("script")) == 1
        assert soup.find_all("script", src=True) == []
        assert soup.find_all("link") == []

    def test_content_security_policy(self, two_slide_deck):
        soup = soup_for(two_slide_deck)
        csp = soup.find("meta", attrs={"http-equiv": "Content-Security-Policy"})["content"]

        assert "default-src 'none'" in csp
        assert "form-action 'none'" in csp

    def test_navigation_script(self, two_slide_deck):
        html = render_deck(two_slide_deck)

        assert "var SWIPE_THRESHOLD = 50;" in html
        assert "'slideChange'" in html
        assert "ArrowRight" in html and "ArrowLeft" in html

    def test_empty_deck(self):
        soup = soup_for(make_deck([]))

        assert soup.find(id="slide-counter").get_text() == "0 / 0"
        assert soup.find(id="empty-deck") is not None
        assert soup.find(id="prev-btn").has_attr("disabled")
        assert soup.find(id="next-btn").has_attr("disabled")

    def test_single_slide_disables_navigation(self):
        soup = soup_for(make_deck([{"type": "title", "heading": "Only"}]))

        assert soup.find(id="slide-counter").get_text() == "1 / 1"
        assert soup.find(id="next-btn").has_attr("disabled")

    @pytest.mark.parametrize("theme", [Theme.MODERN, Theme.MINIMAL, Theme.BOLD])
    def test_theme_palette(self, theme):
        html = render_deck(make_deck([{"type": "title", "heading": "T"}], theme=theme.value))

        assert f"--bg: {PALETTES[theme].bg};" in html
        assert f"--accent: {PALETTES[theme].accent};" in html

    def test_unknown_theme_uses_modern(self):
        html = render_deck(make_deck([{"type": "title", "heading": "T"}], theme="neon"))

        assert f"--bg: {PALETTES[Theme.MODERN].bg};" in html


class TestWatermark:
    """Attribution watermark by tier."""

    def test_free_tier_has_watermark(self, two_slide_deck):
        watermark = soup_for(two_slide_deck).find(id="watermark")

        assert watermark is not None
        assert watermark.get_text() == WATERMARK_TEXT

    def test_pro_tier_has_no_watermark(self, two_slide_deck):
        soup = soup_for(two_slide_deck, pro_tier=True)

        assert soup.find(id="watermark") is None
        assert WATERMARK_TEXT not in str(soup)


class TestEscaping:
    """Slide text never becomes markup."""

    def test_heading_is_escaped(self):
        deck = make_deck(
            [
                {"type": "title", "heading": "<script>alert('x')</script>"},
                {"type": "bullets", "heading": "H", "points": ["<img src=x onerror=alert(1)>"]},
            ],
            title="<b>Title</b>",
        )
        html = render_deck(deck)
        soup = BeautifulSoup(html, "html.parser")

        assert "<script>alert" not in html
        assert "&lt;script&gt;" in html
        assert len(soup.find_all("script")) == 1
        assert soup.find_all("img") == []
        assert soup.title.get_text() == "<b>Title</b>"
        assert soup.select_one(".title-heading").get_text() == "<script>alert('x')</script>"


class TestSlideKinds:
    """Per-kind rendering."""

    def test_unknown_slide_renders_fallback(self):
        soup = soup_for(make_deck([{"type": "title", "heading": "T"}, {"type": "chart", "heading": "Sales"}]))
        fallback = soup.select_one("section.slide-fallback")

        assert fallback["data-type"] == "unknown"
        assert fallback.get_text(strip=True) == "Slide 2"
        assert soup.find(id="slide-counter").get_text() == "1 / 2"

    def test_bullets_have_staggered_delays(self, two_slide_deck):
        bullets = soup_for(two_slide_deck).select("li.bullet")

        assert [b.get_text() for b in bullets] == ["Revenue up", "Churn down", "NPS 60"]
        assert "transition-delay: 0.0s" in bullets[0]["style"]
        assert "transition-delay: 0.1s" in bullets[1]["style"]

    def test_stats_and_quote(self):
        soup = soup_for(
            make_deck(
                [
                    {"type": "stats", "heading": "KPIs", "stats": [{"value": "42%", "label": "Growth"}]},
                    {"type": "quote", "text": "Ship it", "attribution": "Everyone"},
                ]
            )
        )

        assert soup.select_one(".stat-value").get_text() == "42%"
        assert soup.select_one(".quote-text").get_text() == "Ship it"
        assert "Everyone" in soup.select_one(".quote-attribution").get_text()

    def test_image_slide_without_image_shows_placeholder(self):
        soup = soup_for(make_deck([{"type": "title", "heading": "T"}, {"type": "image", "heading": "Team"}]))
        placeholder = soup.select_one(".image-placeholder")

        assert placeholder["data-image-placeholder"] == "1"
        assert soup.find_all("img") == []

    def test_user_image_takes_precedence(self):
        deck = make_deck(
            [{"type": "image", "heading": "Team", "placeholder": True}]
        ).with_slide_image(0, "https://example.com/team.png")
        soup = soup_for(deck)

        assert soup.select_one(".image-placeholder") is None
        assert soup.find("img")["src"] == "https://example.com/team.png"

    def test_user_image_on_bullets_slide(self):
        deck = make_deck(
            [{"type": "bullets", "heading": "H", "points": ["a"]}]
        ).with_slide_image(0, "https://example.com/side.png")
        soup = soup_for(deck)

        assert soup.select_one("section.slide-bullets.has-image") is not None
        assert soup.select_one(".side-image img")["src"] == "https://example.com/side.png"

    def test_unsafe_image_url_is_dropped(self):
        deck = make_deck([{"type": "image", "heading": "X"}]).with_slide_image(0, "javascript:alert(1)")
        soup = soup_for(deck)

        assert soup.find_all("img") == []
        assert soup.select_one(".image-placeholder") is not None


class TestSafeImageUrl:
    """Tests for safe_image_url."""

    @pytest.mark.parametrize(
        "url",
        ["https://example.com/a.png", "http://cdn.example.com/x.jpg", "  https://example.com/b.png  "],
    )
    def test_accepts_http_urls(self, url):
        assert safe_image_url(url) == url.strip()

    @pytest.mark.parametrize(
        "url",
        [None, "", "javascript:alert(1)", "data:image/png;base64,AAAA", "/relative.png", "https:///nohost"],
    )
    def test_rejects_other_urls(self, url):
        assert safe_image_url(url) is None
