"""Speech-to-text over a Whisper-compatible HTTP API."""
import logging
from typing import Optional

import httpx

from speaktoslides.config.settings import TranscriptionSettings
from speaktoslides.core.exceptions import CapabilityUnavailableError, LLMInvocationError

logger = logging.getLogger(__name__)


class TranscriptionError(LLMInvocationError):
    """Raised when the transcription service fails or returns no text."""

    user_message = "Sorry, I couldn't process that voice message. Could you try again or type your message?"


class Transcriber:
    """Transcribes audio bytes to text.

    Without an API key the capability is off and every call raises
    CapabilityUnavailableError.
    """

    def __init__(
        self,
        api_key: Optional[str],
        settings: TranscriptionSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.settings = settings
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str:
        """
        Transcribe one audio clip.

        Raises:
            CapabilityUnavailableError: No API key configured
            TranscriptionError: HTTP failure or empty transcript
        """
        if not self.available:
            raise CapabilityUnavailableError(
                "Transcription API key not configured",
                user_message="Voice messages aren't available right now. Please type your message instead.",
            )

        try:
            with httpx.Client(timeout=self.settings.timeout, transport=self._transport) as client:
                response = client.post(
                    self.settings.endpoint,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files={"file": (filename, audio, "audio/ogg")},
                    data={"model": self.settings.model},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error("Transcription request failed", extra={"error": str(e)})
            raise TranscriptionError(f"Transcription request failed: {e}") from e
        except ValueError as e:
            raise TranscriptionError("Transcription returned invalid JSON") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError("Transcription returned no text")

        logger.info("Transcribed audio", extra={"bytes": len(audio), "chars": len(text)})
        return text.strip()
