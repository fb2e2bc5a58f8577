"""
Unit tests for model output parsing: JSON extraction and planner replies.
"""

import pytest

from speaktoslides.core.exceptions import GenerationFormatError
from speaktoslides.services.planner_reply import PlannerSignal, parse_planner_reply, strip_markers
from speaktoslides.utils.json_utils import extract_json, strip_code_fences


class TestExtractJson:
    """Tests for extract_json."""

    def test_plain_object(self):
        assert extract_json('{"slides": []}') == {"slides": []}

    def test_fenced_object(self):
        raw = '```json\n{"title": "Deck", "slides": []}\n```'

        assert extract_json(raw) == {"title": "Deck", "slides": []}

    def test_unterminated_fence(self):
        assert extract_json('```json\n{"a": 1}') == {"a": 1}

    def test_prose_around_object(self):
        raw = 'Here is your deck:\n{"slides": [{"type": "title"}]}\nEnjoy!'

        assert extract_json(raw) == {"slides": [{"type": "title"}]}

    def test_array(self):
        assert extract_json('Sure! [{"type": "title"}]') == [{"type": "title"}]

    @pytest.mark.parametrize("raw", ["", "   ", "no json here", "{not: valid}", "```\n```"])
    def test_invalid_raises(self, raw):
        with pytest.raises(GenerationFormatError):
            extract_json(raw, what="deck")

    def test_strip_code_fences_leaves_plain_text(self):
        assert strip_code_fences("  hello  ") == "hello"


class TestPlannerReply:
    """Tests for parse_planner_reply."""

    def test_json_reply(self):
        reply = parse_planner_reply('{"kind": "ready_to_outline", "text": "Let me sketch it."}')

        assert reply.kind is PlannerSignal.READY_TO_OUTLINE
        assert reply.text == "Let me sketch it."

    def test_fenced_json_reply(self):
        reply = parse_planner_reply('```json\n{"kind": "build_now", "text": "Building!"}\n```')

        assert reply.kind is PlannerSignal.BUILD_NOW

    def test_json_after_prose(self):
        reply = parse_planner_reply(
            'Sure thing!\n{"kind": "ready_to_outline", "text": "Great, drafting your outline."}'
        )

        assert reply.kind is PlannerSignal.READY_TO_OUTLINE
        assert reply.text == "Great, drafting your outline."

    def test_json_between_prose(self):
        reply = parse_planner_reply('Okay. {"kind": "build_now", "text": "Building!"} Hang on.')

        assert reply.kind is PlannerSignal.BUILD_NOW
        assert "{" not in reply.text

    def test_braces_in_prose_stay_plain(self):
        reply = parse_planner_reply("Use {curly} braces for emphasis?")

        assert reply.kind is PlannerSignal.REPLY
        assert reply.text == "Use {curly} braces for emphasis?"

    def test_unknown_kind_is_plain_reply(self):
        reply = parse_planner_reply('{"kind": "dance", "text": "Hmm"}')

        assert reply.kind is PlannerSignal.REPLY
        assert reply.text == "Hmm"

    def test_json_text_has_markers_removed(self):
        reply = parse_planner_reply('{"kind": "build_now", "text": "Great! [BUILD_NOW]"}')

        assert reply.text == "Great!"

    @pytest.mark.parametrize(
        "raw,signal",
        [
            ("Here's my plan. [READY_TO_OUTLINE]", PlannerSignal.READY_TO_OUTLINE),
            ("On it! [build_now]", PlannerSignal.BUILD_NOW),
            ("I'll fix slide 3. [EDIT_DETECTED]", PlannerSignal.EDIT_DETECTED),
        ],
    )
    def test_legacy_markers(self, raw, signal):
        reply = parse_planner_reply(raw)

        assert reply.kind is signal
        assert "[" not in reply.text

    def test_outline_marker_wins_over_build(self):
        reply = parse_planner_reply("Okay [BUILD_NOW] [READY_TO_OUTLINE]")

        assert reply.kind is PlannerSignal.READY_TO_OUTLINE
        assert reply.text == "Okay"

    def test_plain_text_is_reply(self):
        reply = parse_planner_reply("Who is your audience?")

        assert reply.kind is PlannerSignal.REPLY
        assert reply.text == "Who is your audience?"

    def test_empty_output(self):
        reply = parse_planner_reply("")

        assert reply.kind is PlannerSignal.REPLY
        assert reply.text == ""

    def test_strip_markers_tidies_whitespace(self):
        assert strip_markers("Line one   \n\n\n\nLine two [EDIT_DETECTED]") == "Line one\n\nLine two"
