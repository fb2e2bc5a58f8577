"""
Unit tests for chat markup helpers.
"""

from speaktoslides.utils.markup import bold, escape_markup, italic


class TestEscapeMarkup:
    """Tests for escape_markup."""

    def test_escapes_markup_characters(self):
        assert escape_markup('<a href="x">&</a>') == "&lt;a href=&#34;x&#34;&gt;&amp;&lt;/a&gt;"
        assert escape_markup("it's") == "it&#39;s"

    def test_none_is_empty(self):
        assert escape_markup(None) == ""

    def test_plain_text_unchanged(self):
        assert escape_markup("Q3 Strategy 2024") == "Q3 Strategy 2024"


class TestWrappers:
    """Tests for bold and italic."""

    def test_bold_escapes_content(self):
        assert bold("<i>") == "<b>&lt;i&gt;</b>"

    def test_italic_escapes_content(self):
        assert italic("a & b") == "<i>a &amp; b</i>"
