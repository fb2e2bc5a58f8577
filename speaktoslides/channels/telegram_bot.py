"""
Telegram chat-bot adapter.

Routes inbound updates to commands, voice transcription and the
conversation engine. Bot-authored messages use Telegram's HTML subset with
every interpolated value escaped; engine replies (which may carry model
text) are sent as plain text.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from speaktoslides.channels.telegram_client import TelegramClient
from speaktoslides.config.settings import AppSettings
from speaktoslides.core.exceptions import CapabilityUnavailableError, SpeakToSlidesError
from speaktoslides.domain.outline import DEFAULT_OUTLINE_ICON, OUTLINE_TYPE_ICONS
from speaktoslides.services.conversation_engine import GENERIC_ERROR, ConversationEngine
from speaktoslides.services.transcription import Transcriber
from speaktoslides.utils.markup import bold, escape_markup, italic

logger = logging.getLogger(__name__)


# =============================================================================
# Update payloads
# =============================================================================

class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramVoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_id: str
    duration: Optional[int] = None


class TelegramPhotoSize(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_id: str
    width: Optional[int] = None
    height: Optional[int] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: Optional[int] = None
    chat: TelegramChat
    text: Optional[str] = None
    caption: Optional[str] = None
    voice: Optional[TelegramVoice] = None
    photo: list[TelegramPhotoSize] = Field(default_factory=list)


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None


# =============================================================================
# Bot copy
# =============================================================================

WELCOME_MESSAGE = (
    "🎤 <b>Welcome to SpeakToSlides!</b>\n\n"
    "I'm your presentation coach. Tell me what you need to present, and I'll help you build a great deck.\n\n"
    "<b>How it works:</b>\n"
    "1️⃣ Tell me about your presentation\n"
    "2️⃣ I'll ask a few questions to get it right\n"
    "3️⃣ We'll agree on a structure\n"
    "4️⃣ I'll build it and send you a shareable link\n"
    "5️⃣ Want changes? Just tell me and I'll update the same link\n\n"
    "<b>Commands:</b>\n"
    "/new: Start a fresh deck\n"
    "/outline: Show the current planned structure\n"
    "/build: Build now with the current outline\n"
    "/reset: Clear the current conversation\n\n"
    "Ready? Just tell me what you need to present! 🎯"
)

HELP_MESSAGE = (
    "<b>SpeakToSlides Help</b>\n\n"
    "Describe the presentation you want. I'll ask questions to get it right, then build it for you.\n\n"
    "<b>Commands:</b>\n"
    "/new: Start a fresh conversation\n"
    "/outline: Show the current planned structure\n"
    "/build: Build now with the current outline\n"
    "/reset: Clear the conversation\n"
    "/help: This message\n\n"
    "<b>Editing:</b>\nAfter your deck is built, just tell me what to change, like "
    "\"fix slide 3\" or \"add a slide about X\". Same link, instant update!\n\n"
    "🎤 You can also send <b>voice messages</b>. I'll transcribe and use them."
)

NEW_MESSAGE = "🆕 Fresh start! What presentation are you working on?"
RESET_MESSAGE = "🗑 Conversation cleared. Ready when you are!"
NO_OUTLINE_MESSAGE = "📋 No outline yet. We're still planning. Tell me more about your presentation!"
VOICE_UNAVAILABLE_MESSAGE = "🎤 Voice transcription is not available right now. Please type your request instead!"
VOICE_PROGRESS_MESSAGE = "🎤 Transcribing your voice message..."
VOICE_FAILED_MESSAGE = "❌ Failed to process voice message. Please type your request instead."
PHOTO_NO_DECK_MESSAGE = (
    "📸 I received your image! But you don't have a deck yet.\n\n"
    "Tell me about your presentation first and I'll build one."
)
UNKNOWN_COMMAND_MESSAGE = "I don't know that command. Send /help to see what I can do."


class TelegramBot:
    """Handles one Telegram update at a time.

    Args:
        engine: Conversation engine that owns all conversation state
        client: Outbound Telegram API client
        transcriber: Speech-to-text for voice messages
        settings: Application settings
    """

    def __init__(
        self,
        engine: ConversationEngine,
        client: TelegramClient,
        transcriber: Transcriber,
        settings: AppSettings,
    ):
        self.engine = engine
        self.client = client
        self.transcriber = transcriber
        self.settings = settings
        self._commands = {
            "/start": self._handle_start,
            "/new": self._handle_new,
            "/outline": self._handle_outline,
            "/build": self._handle_build,
            "/reset": self._handle_reset,
            "/help": self._handle_help,
        }

    def handle_update(self, update: TelegramUpdate) -> None:
        """Dispatch an update. Never raises; failures become an apology."""
        message = update.message
        if message is None:
            return

        chat_id = message.chat.id
        try:
            self._dispatch(chat_id, message)
        except Exception:
            logger.exception("Failed to handle Telegram update", extra={"chat_id": chat_id})
            self.client.send_message(chat_id, GENERIC_ERROR, parse_mode=None)

    def _dispatch(self, chat_id: int, message: TelegramMessage) -> None:
        text = (message.text or "").strip()

        if text.startswith("/"):
            # "/build@SpeakToSlidesBot" -> "/build"
            command = text.split()[0].split("@")[0].lower()
            handler = self._commands.get(command)
            if handler is None:
                self.client.send_message(chat_id, UNKNOWN_COMMAND_MESSAGE, parse_mode=None)
                return
            logger.info("Telegram command", extra={"chat_id": chat_id, "command": command})
            handler(chat_id)
            return

        if message.voice is not None:
            self._handle_voice(chat_id, message.voice.file_id)
            return

        if message.photo:
            self._handle_photo(chat_id)
            return

        if len(text) >= self.settings.telegram.min_text_length:
            self._handle_text(chat_id, text)

    # Commands
    def _handle_start(self, chat_id: int) -> None:
        self.engine.reset(str(chat_id))
        self.client.send_message(chat_id, WELCOME_MESSAGE)

    def _handle_new(self, chat_id: int) -> None:
        self.engine.reset(str(chat_id))
        self.client.send_message(chat_id, NEW_MESSAGE)

    def _handle_reset(self, chat_id: int) -> None:
        self.engine.reset(str(chat_id))
        self.client.send_message(chat_id, RESET_MESSAGE)

    def _handle_help(self, chat_id: int) -> None:
        self.client.send_message(chat_id, HELP_MESSAGE)

    def _handle_outline(self, chat_id: int) -> None:
        outline = self.engine.outline_for(str(chat_id))
        if outline is None:
            self.client.send_message(chat_id, NO_OUTLINE_MESSAGE)
            return

        lines = [
            f"{OUTLINE_TYPE_ICONS.get(s.type, DEFAULT_OUTLINE_ICON)} Slide {s.index}: {escape_markup(s.heading)}"
            for s in outline.slides
        ]
        self.client.send_message(
            chat_id,
            f"📊 {bold('Current outline: ' + outline.title)}\n\n"
            + "\n".join(lines)
            + "\n\nWant to adjust anything? Or send /build to generate the deck.",
        )

    def _handle_build(self, chat_id: int) -> None:
        self.client.send_chat_action(chat_id, "typing")
        self.engine.request_build(str(chat_id), on_reply=self._replier(chat_id))

    # Content
    def _handle_text(self, chat_id: int, text: str) -> None:
        self.client.send_chat_action(chat_id, "typing")
        self.engine.handle_message(str(chat_id), text, on_reply=self._replier(chat_id))

    def _handle_voice(self, chat_id: int, file_id: str) -> None:
        if not self.transcriber.available:
            self.client.send_message(chat_id, VOICE_UNAVAILABLE_MESSAGE, parse_mode=None)
            return

        self.client.send_chat_action(chat_id, "typing")
        self.client.send_message(chat_id, VOICE_PROGRESS_MESSAGE, parse_mode=None)

        try:
            audio = self.client.download_file(file_id)
            transcript = self.transcriber.transcribe(audio, filename="voice.ogg")
        except CapabilityUnavailableError:
            self.client.send_message(chat_id, VOICE_UNAVAILABLE_MESSAGE, parse_mode=None)
            return
        except SpeakToSlidesError as e:
            logger.warning("Voice transcription failed", extra={"chat_id": chat_id, "error": str(e)})
            self.client.send_message(chat_id, VOICE_FAILED_MESSAGE, parse_mode=None)
            return
        except Exception:
            logger.exception("Voice download failed", extra={"chat_id": chat_id})
            self.client.send_message(chat_id, VOICE_FAILED_MESSAGE, parse_mode=None)
            return

        self.client.send_message(chat_id, f"💬 I heard: \"{italic(transcript)}\"")
        self._handle_text(chat_id, transcript)

    def _handle_photo(self, chat_id: int) -> None:
        deck_id = self.engine.deck_id_for(str(chat_id))
        if deck_id is None:
            self.client.send_message(chat_id, PHOTO_NO_DECK_MESSAGE, parse_mode=None)
            return

        deck_url = self.engine.deck_url(deck_id)
        self.client.send_message(
            chat_id,
            "📸 Got your image!\n\n"
            "I can't upload photos from chat yet. To put an image on a slide, open your deck "
            f"and drop it onto the slide's image area:\n🔗 {escape_markup(deck_url)}",
        )

    def _replier(self, chat_id: int):
        def send(text: str) -> None:
            self.client.send_message(chat_id, text, parse_mode=None)

        return send
