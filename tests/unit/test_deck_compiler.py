"""
Unit tests for DeckCompiler: deck generation, outlines and edits.
"""

import json

import pytest

from speaktoslides.core.exceptions import GenerationFormatError, RateLimitedError
from speaktoslides.domain.deck import Theme
from speaktoslides.domain.outline import SlideOutline
from speaktoslides.domain.slide import parse_slides
from speaktoslides.services.prompts import DECK_SYSTEM_PROMPT, EDIT_SYSTEM_PROMPT
from tests.fixtures.payloads import RateLimitError, deck_payload, outline_payload, queue

CURRENT_SLIDES = parse_slides(
    [
        {"type": "title", "heading": "Old Title"},
        {"type": "bullets", "heading": "Points", "points": ["a"]},
    ]
)


class TestGenerateDeck:
    """Tests for DeckCompiler.generate_deck."""

    def test_parses_deck(self, compiler, fast_model):
        queue(fast_model, deck_payload(title="Q3 Strategy", theme="bold"))

        deck = compiler.generate_deck("A deck about our Q3 strategy")

        assert deck.title == "Q3 Strategy"
        assert deck.theme is Theme.BOLD
        assert deck.slide_count == 4
        system = fast_model.invoke.call_args.args[0][0].content
        assert system == DECK_SYSTEM_PROMPT

    def test_pro_tier_uses_quality_model(self, compiler, fast_model, quality_model):
        queue(quality_model, deck_payload())

        compiler.generate_deck("A deck about our Q3 strategy", pro_tier=True)

        fast_model.invoke.assert_not_called()
        assert quality_model.invoke.call_args.kwargs["max_tokens"] == compiler.settings.llm.max_tokens_deck

    def test_fenced_output(self, compiler, fast_model):
        queue(fast_model, f"```json\n{deck_payload()}\n```")

        assert compiler.generate_deck("Anything at all").slide_count == 4

    def test_non_json_raises(self, compiler, fast_model):
        queue(fast_model, "Sorry, I can't help with that.")

        with pytest.raises(GenerationFormatError):
            compiler.generate_deck("Anything at all")

    def test_empty_slides_raises(self, compiler, fast_model):
        queue(fast_model, json.dumps({"title": "Empty", "slides": []}))

        with pytest.raises(GenerationFormatError):
            compiler.generate_deck("Anything at all")

    def test_rate_limit_propagates(self, compiler, fast_model, fallback_model):
        queue(fast_model, RateLimitError("busy"))
        queue(fallback_model, RateLimitError("busy"))

        with pytest.raises(RateLimitedError):
            compiler.generate_deck("Anything at all")


class TestGenerateOutline:
    """Tests for DeckCompiler.generate_outline."""

    def test_within_bounds(self, compiler, fast_model):
        queue(fast_model, outline_payload(count=9))

        outline = compiler.generate_outline([{"role": "user", "content": "Q3 board deck"}], "Q3 board deck")

        assert outline.title == "Q3 Strategy"
        assert len(outline.slides) == 9
        prompt = fast_model.invoke.call_args.args[0][1].content
        assert "Q3 board deck" in prompt

    @pytest.mark.parametrize("count", [3, 13])
    def test_out_of_bounds(self, compiler, fast_model, count):
        queue(fast_model, outline_payload(count=count))

        with pytest.raises(GenerationFormatError):
            compiler.generate_outline([{"role": "user", "content": "x"}], "x")


class TestEditSlides:
    """Tests for DeckCompiler.edit_slides."""

    def test_returns_replacement_slides(self, compiler, fast_model):
        queue(
            fast_model,
            json.dumps(
                [
                    {"type": "title", "heading": "Q3 Strategy"},
                    {"type": "bullets", "heading": "Points", "points": ["a", "b"]},
                ]
            ),
        )

        slides = compiler.edit_slides(CURRENT_SLIDES, "Rename the deck to Q3 Strategy")

        assert slides[0].heading == "Q3 Strategy"
        assert slides[1].points == ("a", "b")
        messages = fast_model.invoke.call_args.args[0]
        assert messages[0].content == EDIT_SYSTEM_PROMPT
        assert "Old Title" in messages[1].content
        assert "Rename the deck to Q3 Strategy" in messages[1].content

    def test_unwraps_slides_object(self, compiler, fast_model):
        queue(fast_model, json.dumps({"slides": [{"type": "title", "heading": "New"}]}))

        assert len(compiler.edit_slides(CURRENT_SLIDES, "Only keep the title")) == 1

    @pytest.mark.parametrize(
        "output",
        [
            "[]",
            json.dumps({"title": "no slides"}),
            json.dumps(["not an object"]),
            json.dumps([{"type": "title", "heading": "ok"}, {"type": "hologram"}]),
            "not json",
        ],
    )
    def test_invalid_output_raises(self, compiler, fast_model, output):
        queue(fast_model, output)

        with pytest.raises(GenerationFormatError):
            compiler.edit_slides(CURRENT_SLIDES, "change things")

    def test_pro_deck_uses_quality_model(self, compiler, fast_model, quality_model):
        queue(quality_model, json.dumps([{"type": "title", "heading": "New"}]))

        compiler.edit_slides(CURRENT_SLIDES, "change things", pro_tier=True)

        fast_model.invoke.assert_not_called()


class TestDeckPromptFromOutline:
    """Tests for the build prompt."""

    def test_includes_outline_and_context(self, compiler):
        outline = SlideOutline.from_payload(json.loads(outline_payload(count=8)))
        prompt = compiler.deck_prompt_from_outline(outline, "Board audience, 10 minutes")

        assert "Board audience, 10 minutes" in prompt
        assert "Point 2" in prompt

    def test_without_outline(self, compiler):
        assert "Just the context" in compiler.deck_prompt_from_outline(None, "Just the context")
