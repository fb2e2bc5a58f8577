"""Minimal Telegram Bot API client over httpx."""
import logging
import re
from typing import Optional

import httpx
from markupsafe import Markup

from speaktoslides.config.settings import TelegramSettings
from speaktoslides.core.exceptions import CapabilityUnavailableError

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than this
MAX_MESSAGE_LENGTH = 4096

_TAG_PATTERN = re.compile(r"</?[a-zA-Z][^>]*>")


def markup_to_plain_text(text: str) -> str:
    """Drop chat HTML tags and decode entities."""
    return Markup(_TAG_PATTERN.sub("", text)).unescape()


class TelegramClient:
    """Sends messages and downloads files for one bot token.

    Attributes:
        token: Bot token; without one every send is skipped
        settings: API base URL and timeout
    """

    def __init__(
        self,
        token: Optional[str],
        settings: TelegramSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.settings.timeout, transport=self._transport)

    def _method_url(self, method: str) -> str:
        return f"{self.settings.api_base}/bot{self.token}/{method}"

    def _post(self, method: str, payload: dict) -> bool:
        if not self.configured:
            logger.warning("Telegram bot token not configured, skipping call", extra={"method": method})
            return False

        try:
            with self._client() as client:
                response = client.post(self._method_url(method), json=payload)
                response.raise_for_status()
                return bool(response.json().get("ok"))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Telegram API call failed", extra={"method": method, "error": str(e)})
            return False

    def send_message(self, chat_id: int | str, text: str, parse_mode: Optional[str] = "HTML") -> bool:
        """Send a message. Returns True when Telegram accepted it.

        ``parse_mode=None`` sends plain text, used for model output. Markup
        that is too long is sent as plain text, since cutting it could split
        a tag or an entity.
        """
        if parse_mode and len(text) > MAX_MESSAGE_LENGTH:
            logger.info("Message too long for markup, sending as plain text", extra={"length": len(text)})
            text = markup_to_plain_text(text)
            parse_mode = None

        payload = {
            "chat_id": chat_id,
            "text": text[:MAX_MESSAGE_LENGTH],
            "disable_web_page_preview": False,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return self._post("sendMessage", payload)

    def send_chat_action(self, chat_id: int | str, action: str = "typing") -> bool:
        return self._post("sendChatAction", {"chat_id": chat_id, "action": action})

    def get_file_path(self, file_id: str) -> str:
        """Resolve a file id to its download path.

        Raises:
            CapabilityUnavailableError: No bot token configured
            httpx.HTTPError: Request failed
            ValueError: Telegram returned no file path
        """
        if not self.configured:
            raise CapabilityUnavailableError("Telegram bot token not configured")

        with self._client() as client:
            response = client.get(self._method_url("getFile"), params={"file_id": file_id})
            response.raise_for_status()
            result = response.json().get("result") or {}

        file_path = result.get("file_path")
        if not file_path:
            raise ValueError(f"Telegram returned no file path for {file_id}")
        return file_path

    def download_file(self, file_id: str) -> bytes:
        """Download a file's bytes by file id."""
        file_path = self.get_file_path(file_id)
        with self._client() as client:
            response = client.get(f"{self.settings.api_base}/file/bot{self.token}/{file_path}")
            response.raise_for_status()
            return response.content
