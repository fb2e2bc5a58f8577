"""
Conversation state machine.

Decides, turn by turn, whether to keep asking questions, propose an outline,
build the deck, or apply an edit to a built deck:

    gathering -> confirming -> building -> reviewing -> done

``process_turn`` computes one transition. ``handle_message`` is the full
turn boundary used by channel adapters: it persists the turn, runs builds,
and turns every error into a reply the user can act on.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from speaktoslides.config.settings import AppSettings
from speaktoslides.core.exceptions import (
    BuildInProgressError,
    NotFoundError,
    SpeakToSlidesError,
    ValidationError,
)
from speaktoslides.domain.conversation import Conversation, ConversationState, MessageRole
from speaktoslides.domain.deck import Deck
from speaktoslides.domain.outline import SlideOutline
from speaktoslides.rendering import render_deck, safe_image_url
from speaktoslides.services.deck_compiler import DeckCompiler
from speaktoslides.services.llm_client import LLMClient, ModelTier, trim_leading_non_user
from speaktoslides.services.persistence import PersistenceGateway
from speaktoslides.services.planner_reply import PlannerSignal, parse_planner_reply
from speaktoslides.services.prompts import build_planner_system_prompt
from speaktoslides.services.usage import UsagePolicy

logger = logging.getLogger(__name__)

BUILDING_ACK = "⏳ Your deck is still being built. Hang tight! I'll send the link as soon as it's ready."
ALREADY_BUILDING = "⏳ Already building. Hang tight!"
BUILD_STARTED = "🎨 Building your deck..."
BUILD_FAILED = "❌ Failed to generate the deck. Send /build to try again, or tell me what to adjust."
NEEDS_CONTEXT = "I need to know what you're presenting first! Tell me about it."
CONVERSATION_DONE = (
    "This conversation is complete! Send /new to start a fresh deck, "
    "or just tell me what you want to present next."
)
EDIT_FAILED = "Sorry, I hit an error while editing. Could you describe the change again?"
EDIT_DECK_MISSING = "Sorry, I couldn't load the deck for editing. Try sending /new to start fresh."
FALLBACK_REPLY = "Could you tell me a bit more about your presentation?"
GENERIC_ERROR = "❌ Something went wrong. Try again, or send /new to start fresh."
OUTLINE_INTRO = "Here's what I'm thinking:"
OUTLINE_QUESTION = "Shall I build this? Or want to adjust anything?"

CHANNEL_PREFIXES = {"telegram": "tg"}

ReplyCallback = Callable[[str], None]


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one turn.

    Attributes:
        reply: Text to send back (may be empty)
        new_state: State to persist, or None to keep the current one
        outline: Outline to persist, if one was proposed
        should_build: Caller should run a build after persisting the turn
    """

    reply: str
    new_state: Optional[ConversationState] = None
    outline: Optional[SlideOutline] = None
    should_build: bool = False


@dataclass(frozen=True)
class BuildResult:
    deck_id: str
    title: str
    slide_count: int
    url: str


class ConversationEngine:
    """State machine over the persistence gateway, compiler and renderer."""

    def __init__(
        self,
        llm_client: LLMClient,
        compiler: DeckCompiler,
        gateway: PersistenceGateway,
        settings: AppSettings,
        usage: Optional[UsagePolicy] = None,
    ):
        self.llm = llm_client
        self.compiler = compiler
        self.gateway = gateway
        self.settings = settings
        self.usage = usage

    @property
    def pro_tier(self) -> bool:
        return self.settings.conversation.pro_tier

    def deck_url(self, deck_id: str) -> str:
        return f"{self.settings.api.base_url}/d/{deck_id}"

    # =========================================================================
    # Single turn
    # =========================================================================

    def process_turn(self, conversation: Conversation, utterance: str) -> TurnResult:
        """
        Compute the reply and transition for one user utterance.

        Does not persist the turn itself. In reviewing, a detected edit is
        applied to the stored deck.

        Raises:
            SpeakToSlidesError: Planner or outline generation failed
        """
        state = conversation.state

        if state in (ConversationState.GATHERING, ConversationState.CONFIRMING):
            return self._planning_turn(conversation, utterance)
        if state is ConversationState.BUILDING:
            return TurnResult(reply=BUILDING_ACK)
        if state in (ConversationState.REVIEWING, ConversationState.EDITING):
            return self._review_turn(conversation, utterance)
        return TurnResult(reply=CONVERSATION_DONE)

    def _planner_messages(self, conversation: Conversation, utterance: str) -> list[dict[str, str]]:
        """Recent history plus the new utterance, starting with a user turn."""
        limit = self.settings.conversation.history_limit
        recent = [
            {"role": m.role.value, "content": m.content}
            for m in conversation.messages[-limit:]
        ]
        last = recent[-1] if recent else None
        if not (last and last["role"] == MessageRole.USER.value and last["content"] == utterance):
            recent.append({"role": MessageRole.USER.value, "content": utterance})
        return trim_leading_non_user(recent)

    def _ask_planner(self, system: str, messages: list[dict[str, str]]):
        raw = self.llm.complete(
            system=system,
            messages=messages,
            max_tokens=self.settings.llm.max_tokens_chat,
            tier=ModelTier.FAST,
        )
        return parse_planner_reply(raw)

    def _planning_turn(self, conversation: Conversation, utterance: str) -> TurnResult:
        messages = self._planner_messages(conversation, utterance)
        reply = self._ask_planner(
            build_planner_system_prompt(conversation.state.value, outline=conversation.outline),
            messages,
        )

        logger.info(
            "Planner turn",
            extra={
                "conversation_id": conversation.id,
                "state": conversation.state.value,
                "signal": reply.kind.value,
            },
        )

        if reply.kind is PlannerSignal.READY_TO_OUTLINE:
            outline = self.compiler.generate_outline(messages, utterance)
            parts = [reply.text] if reply.text else []
            parts.extend([OUTLINE_INTRO, outline.format_for_user(), OUTLINE_QUESTION])
            return TurnResult(
                reply="\n\n".join(parts),
                new_state=ConversationState.CONFIRMING,
                outline=outline,
            )

        if reply.kind is PlannerSignal.BUILD_NOW:
            return TurnResult(reply=reply.text, should_build=True)

        return TurnResult(reply=reply.text or FALLBACK_REPLY)

    def _review_turn(self, conversation: Conversation, utterance: str) -> TurnResult:
        deck_url = self.deck_url(conversation.deck_id) if conversation.deck_id else None
        reply = self._ask_planner(
            build_planner_system_prompt(ConversationState.REVIEWING.value, deck_url=deck_url),
            self._planner_messages(conversation, utterance),
        )

        if reply.kind is not PlannerSignal.EDIT_DETECTED or not conversation.deck_id:
            return TurnResult(reply=reply.text or FALLBACK_REPLY)

        try:
            self.apply_edit(conversation.deck_id, utterance)
        except NotFoundError:
            logger.warning(
                "Deck missing for edit",
                extra={"conversation_id": conversation.id, "deck_id": conversation.deck_id},
            )
            return TurnResult(reply=EDIT_DECK_MISSING)
        except SpeakToSlidesError as e:
            logger.warning(
                "Edit failed",
                extra={"conversation_id": conversation.id, "deck_id": conversation.deck_id, "error": str(e)},
            )
            return TurnResult(reply=EDIT_FAILED)

        return TurnResult(
            reply=(
                f"✏️ Done! I've updated your deck.\n\n🔗 {deck_url}\n\n"
                "Same link, just refresh to see the changes. Anything else to tweak?"
            ),
            new_state=ConversationState.REVIEWING,
        )

    # =========================================================================
    # Build and edit
    # =========================================================================

    def build_deck(self, conversation: Conversation) -> BuildResult:
        """
        Generate, render and store a deck for the conversation.

        The build is claimed atomically; on any failure the conversation goes
        back to ``confirming`` and the error propagates.

        Raises:
            ValidationError: The conversation has no user messages yet
            BuildInProgressError: Another build holds the conversation
        """
        user_context = "\n\n".join(conversation.user_messages)
        if not user_context.strip():
            raise ValidationError("No user context to build from", user_message=NEEDS_CONTEXT)

        if not self.gateway.try_begin_build(conversation.id, self.settings.conversation.build_lease_seconds):
            raise BuildInProgressError(f"Build already running for conversation {conversation.id}")

        logger.info("Building deck", extra={"conversation_id": conversation.id})
        try:
            prompt = self.compiler.deck_prompt_from_outline(conversation.outline, user_context)
            deck = self.compiler.generate_deck(prompt, pro_tier=self.pro_tier)
            html = render_deck(deck, pro_tier=self.pro_tier)
            deck_id = self.gateway.insert_deck(
                deck,
                html,
                prompt=prompt,
                owner_id=self._owner_id(conversation),
                conversation_id=conversation.id,
                is_pro=self.pro_tier,
            )
            self.gateway.update_conversation(
                conversation.id,
                state=ConversationState.REVIEWING,
                deck_id=deck_id,
            )
        except Exception:
            logger.exception("Deck build failed", extra={"conversation_id": conversation.id})
            self._revert_build(conversation.id)
            raise

        logger.info(
            "Deck built",
            extra={"conversation_id": conversation.id, "deck_id": deck_id, "slide_count": deck.slide_count},
        )
        return BuildResult(
            deck_id=deck_id,
            title=deck.title,
            slide_count=deck.slide_count,
            url=self.deck_url(deck_id),
        )

    def _revert_build(self, conversation_id: str) -> None:
        try:
            self.gateway.update_conversation(conversation_id, state=ConversationState.CONFIRMING)
        except Exception:
            logger.exception(
                "Failed to revert conversation after build failure",
                extra={"conversation_id": conversation_id},
            )

    def apply_edit(self, deck_id: str, edit_request: str) -> Deck:
        """
        Apply a natural-language edit to a stored deck.

        Raises:
            ValidationError: Empty edit request
            NotFoundError: Deck doesn't exist
            GenerationFormatError: Model output failed validation
        """
        if not edit_request or not edit_request.strip():
            raise ValidationError("Edit request is empty", user_message="Tell me what you'd like to change.")

        stored = self.gateway.get_deck(deck_id)
        if stored is None:
            raise NotFoundError(f"Deck not found: {deck_id}")

        slides = self.compiler.edit_slides(stored.deck.slides, edit_request.strip(), pro_tier=stored.is_pro)
        deck = stored.deck.with_slides(slides)
        self.gateway.update_deck(deck_id, deck, render_deck(deck, pro_tier=stored.is_pro))

        logger.info("Applied edit", extra={"deck_id": deck_id, "slide_count": deck.slide_count})
        return deck

    def attach_image(self, deck_id: str, slide_index: int, image_url: str) -> Deck:
        """
        Set the user image on one slide and re-render the deck.

        Raises:
            ValidationError: Not an http(s) URL, or index out of range
            NotFoundError: Deck doesn't exist
        """
        url = safe_image_url(image_url)
        if url is None:
            raise ValidationError(
                "Image URL must be an absolute http(s) URL",
                user_message="Image URL must start with http:// or https://.",
            )

        stored = self.gateway.get_deck(deck_id)
        if stored is None:
            raise NotFoundError(f"Deck not found: {deck_id}")

        if not 0 <= slide_index < stored.deck.slide_count:
            raise ValidationError(
                f"Slide index {slide_index} out of range for {stored.deck.slide_count} slides",
                user_message=f"Invalid slide index. Deck has {stored.deck.slide_count} slides.",
            )

        deck = stored.deck.with_slide_image(slide_index, url)
        self.gateway.update_deck(deck_id, deck, render_deck(deck, pro_tier=stored.is_pro))

        logger.info("Attached image", extra={"deck_id": deck_id, "slide_index": slide_index})
        return deck

    # =========================================================================
    # Turn boundary
    # =========================================================================

    def handle_message(
        self,
        chat_handle: str,
        utterance: str,
        on_reply: Optional[ReplyCallback] = None,
        channel: str = "telegram",
    ) -> list[str]:
        """
        Process one inbound utterance end to end. Never raises.

        Args:
            chat_handle: Channel chat identifier
            utterance: User text (typed or transcribed)
            on_reply: Called with each reply as soon as it is ready
            channel: Transport name stored on new conversations

        Returns:
            Replies in the order they were emitted
        """
        replies: list[str] = []

        def emit(text: str) -> None:
            replies.append(text)
            if on_reply is not None:
                on_reply(text)

        try:
            conversation = self._current_conversation(chat_handle, channel)

            if conversation.state is ConversationState.BUILDING:
                emit(BUILDING_ACK)
                return replies

            self.gateway.append_message(conversation.id, MessageRole.USER, utterance)
            result = self.process_turn(conversation, utterance)

            if result.new_state is not None or result.outline is not None:
                updates = {}
                if result.new_state is not None:
                    updates["state"] = result.new_state
                if result.outline is not None:
                    updates["outline"] = result.outline
                self.gateway.update_conversation(conversation.id, **updates)

            if result.reply:
                self.gateway.append_message(conversation.id, MessageRole.ASSISTANT, result.reply)
                emit(result.reply)

            if result.should_build:
                self._build_and_announce(conversation.id, emit)

        except SpeakToSlidesError as e:
            logger.warning(
                "Turn failed",
                extra={"chat_handle": chat_handle, "error_type": type(e).__name__, "error": str(e)},
            )
            emit(e.user_message)
        except Exception:
            logger.exception("Unexpected error handling message", extra={"chat_handle": chat_handle})
            emit(GENERIC_ERROR)

        return replies

    def request_build(
        self,
        chat_handle: str,
        on_reply: Optional[ReplyCallback] = None,
        channel: str = "telegram",
    ) -> list[str]:
        """Build on explicit request (the /build command). Never raises."""
        replies: list[str] = []

        def emit(text: str) -> None:
            replies.append(text)
            if on_reply is not None:
                on_reply(text)

        try:
            conversation = self._current_conversation(chat_handle, channel)
            if conversation.state is ConversationState.BUILDING:
                emit(ALREADY_BUILDING)
            elif not conversation.user_messages:
                emit(NEEDS_CONTEXT)
            else:
                self._build_and_announce(conversation.id, emit)
        except SpeakToSlidesError as e:
            logger.warning("Build request failed", extra={"chat_handle": chat_handle, "error": str(e)})
            emit(e.user_message)
        except Exception:
            logger.exception("Unexpected error handling build request", extra={"chat_handle": chat_handle})
            emit(GENERIC_ERROR)

        return replies

    def _build_and_announce(self, conversation_id: str, emit: ReplyCallback) -> None:
        conversation = self.gateway.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation not found: {conversation_id}")

        owner_id = self._owner_id(conversation)
        if self.usage is not None:
            decision = self.usage.check(owner_id, None)
            if not decision.allowed:
                emit(f"⚠️ {decision.reason}")
                return

        emit(BUILD_STARTED)
        try:
            result = self.build_deck(conversation)
        except BuildInProgressError:
            emit(ALREADY_BUILDING)
            return
        except ValidationError as e:
            emit(e.user_message)
            return
        except SpeakToSlidesError:
            emit(BUILD_FAILED)
            return

        # Only builds that stored a deck count towards usage
        if self.usage is not None:
            self.usage.record(owner_id, None)

        emit(
            f"✅ Your deck is ready!\n\n"
            f"📊 {result.title}\n"
            f"🎞 {result.slide_count} slides\n\n"
            f"🔗 {result.url}\n\n"
            "Open the link to present. Keyboard navigation, fullscreen and touch swipe all work.\n\n"
            '💡 Want changes? Just tell me, e.g. "change slide 3" or "add a slide about X". '
            "Same link, instant update."
        )
        self.gateway.append_message(
            conversation_id,
            MessageRole.ASSISTANT,
            f"Deck ready: {result.title} ({result.slide_count} slides) {result.url}",
        )

    # =========================================================================
    # Conversation lifecycle
    # =========================================================================

    def _current_conversation(self, chat_handle: str, channel: str = "telegram") -> Conversation:
        """Active conversation for the handle, with abandoned builds released."""
        conversation = self.gateway.get_or_create_conversation(chat_handle, channel)
        if conversation.state is ConversationState.BUILDING:
            released = self.gateway.release_stale_build(
                conversation.id,
                self.settings.conversation.build_lease_seconds,
            )
            if released:
                conversation = self.gateway.get_conversation(conversation.id) or conversation
        return conversation

    def reset(self, chat_handle: str) -> int:
        """End every active conversation for the handle."""
        return self.gateway.reset_conversations(chat_handle)

    def outline_for(self, chat_handle: str) -> Optional[SlideOutline]:
        conversation = self.gateway.get_active_conversation(chat_handle)
        return conversation.outline if conversation else None

    def deck_id_for(self, chat_handle: str) -> Optional[str]:
        conversation = self.gateway.get_active_conversation(chat_handle)
        return conversation.deck_id if conversation else None

    @staticmethod
    def _owner_id(conversation: Conversation) -> str:
        prefix = CHANNEL_PREFIXES.get(conversation.channel, conversation.channel)
        return f"{prefix}_{conversation.chat_handle}"
