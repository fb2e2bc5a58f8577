"""
Deck compiler: prompt or conversation in, validated structured slides out.

All model output is parsed as untrusted JSON and validated against the slide
schema. The compiler never substitutes a default deck; every failure is a
typed error.
"""

import json
import logging
from typing import Iterable, Mapping, Optional, Sequence

from speaktoslides.config.settings import AppSettings
from speaktoslides.core.exceptions import GenerationFormatError
from speaktoslides.domain.deck import Deck
from speaktoslides.domain.outline import SlideOutline
from speaktoslides.domain.slide import Slide, parse_slides, slides_to_dicts
from speaktoslides.services.llm_client import LLMClient, ModelTier
from speaktoslides.services.prompts import (
    DECK_SYSTEM_PROMPT,
    EDIT_SYSTEM_PROMPT,
    build_edit_user_message,
    build_generation_prompt,
    build_outline_system_prompt,
    build_outline_user_message,
)
from speaktoslides.utils.json_utils import extract_json

logger = logging.getLogger(__name__)


class DeckCompiler:
    """Turns prompts and edit requests into Deck values via the LLM client."""

    def __init__(self, llm_client: LLMClient, settings: AppSettings):
        self.llm = llm_client
        self.settings = settings

    def _tier(self, pro_tier: bool) -> ModelTier:
        return ModelTier.QUALITY if pro_tier else ModelTier.FAST

    def generate_deck(self, prompt: str, pro_tier: bool = False) -> Deck:
        """
        Generate a full deck from a free-text prompt.

        Args:
            prompt: Natural-language description of the presentation
            pro_tier: Use the higher-quality model

        Returns:
            Parsed Deck (title from the payload, else the first title slide)

        Raises:
            GenerationFormatError: Non-JSON output or no slides list
            RateLimitedError, LLMInvocationError: From the LLM client
        """
        tier = self._tier(pro_tier)
        logger.info(
            "Generating deck",
            extra={"tier": tier.value, "prompt_preview": prompt[:100]},
        )

        raw = self.llm.complete(
            system=DECK_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.settings.llm.max_tokens_deck,
            tier=tier,
        )
        deck = Deck.from_payload(extract_json(raw, what="deck"))

        if not deck.slides:
            raise GenerationFormatError("AI returned a deck with no slides.")

        unknown = sum(1 for slide in deck.slides if not slide.recognized)
        logger.info(
            "Deck generated",
            extra={
                "title": deck.title,
                "theme": deck.theme.value,
                "slide_count": deck.slide_count,
                "unknown_slides": unknown,
            },
        )
        return deck

    def generate_outline(
        self,
        messages: Sequence[Mapping[str, str]],
        latest_utterance: str,
    ) -> SlideOutline:
        """
        Propose an outline from the conversation so far.

        Raises:
            GenerationFormatError: Non-JSON output, or a slide count outside
                the configured bounds
        """
        conv = self.settings.conversation
        transcript = [{"role": m["role"], "content": m["content"]} for m in messages]

        raw = self.llm.complete(
            system=build_outline_system_prompt(conv.min_outline_slides, conv.max_outline_slides),
            messages=[{"role": "user", "content": build_outline_user_message(transcript, latest_utterance)}],
            max_tokens=self.settings.llm.max_tokens_chat,
            tier=ModelTier.FAST,
        )
        outline = SlideOutline.from_payload(extract_json(raw, what="outline"))

        count = len(outline.slides)
        if not conv.min_outline_slides <= count <= conv.max_outline_slides:
            logger.warning(
                "Outline slide count out of bounds",
                extra={
                    "slide_count": count,
                    "min": conv.min_outline_slides,
                    "max": conv.max_outline_slides,
                },
            )
            raise GenerationFormatError(
                f"Outline has {count} slides; expected "
                f"{conv.min_outline_slides}-{conv.max_outline_slides}."
            )

        logger.info("Outline generated", extra={"title": outline.title, "slide_count": count})
        return outline

    def edit_slides(
        self,
        current_slides: Iterable[Slide],
        edit_request: str,
        pro_tier: bool = False,
    ) -> list[Slide]:
        """
        Apply a natural-language edit to a deck's slides.

        The complete current list goes in and the complete replacement list
        comes back; no diffing.

        Raises:
            GenerationFormatError: Output is not a non-empty array of slide
                objects with recognized types
        """
        slides_json = json.dumps(slides_to_dicts(current_slides), indent=2, ensure_ascii=False)

        raw = self.llm.complete(
            system=EDIT_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_edit_user_message(slides_json, edit_request)}],
            max_tokens=self.settings.llm.max_tokens_deck,
            tier=self._tier(pro_tier),
        )
        payload = extract_json(raw, what="edited slides")

        # Some models wrap the array in {"slides": [...]}
        if isinstance(payload, dict) and isinstance(payload.get("slides"), list):
            payload = payload["slides"]

        if not isinstance(payload, list) or not payload:
            raise GenerationFormatError("AI returned invalid format for edited slides.")
        if not all(isinstance(item, dict) for item in payload):
            raise GenerationFormatError("Edited slides must be JSON objects.")

        slides = parse_slides(payload)
        unrecognized = [index for index, slide in enumerate(slides) if not slide.recognized]
        if unrecognized:
            logger.warning(
                "Edit produced unrecognized slides",
                extra={"indices": unrecognized},
            )
            raise GenerationFormatError("AI returned slides with unrecognized types.")

        logger.info("Slides edited", extra={"slide_count": len(slides)})
        return slides

    def deck_prompt_from_outline(self, outline: Optional[SlideOutline], user_context: str) -> str:
        """Generation prompt for a build, from the agreed outline when there is one."""
        return build_generation_prompt(outline, user_context)
