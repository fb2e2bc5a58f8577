"""Canned model outputs and fake chat models for tests."""

import json
from typing import Any
from unittest.mock import MagicMock

from langchain_core.messages import AIMessage


def _as_messages(responses: tuple[Any, ...]) -> list[Any]:
    return [AIMessage(content=r) if isinstance(r, str) else r for r in responses]


def chat_model(*responses: Any) -> MagicMock:
    """A chat model whose ``invoke`` returns each response in turn.

    Strings become AIMessages; exceptions are raised.
    """
    model = MagicMock()
    model.invoke.side_effect = _as_messages(responses)
    return model


def queue(model: MagicMock, *responses: Any) -> None:
    """Replace the responses a chat model returns next."""
    model.invoke.side_effect = _as_messages(responses)


def planner(kind: str, text: str) -> str:
    return json.dumps({"kind": kind, "text": text})


def outline_payload(count: int = 8, title: str = "Q3 Strategy") -> str:
    slides = [{"index": 1, "heading": title, "type": "title"}]
    slides += [
        {"index": i, "heading": f"Point {i}", "type": "bullets"} for i in range(2, count + 1)
    ]
    return json.dumps({"title": title, "slides": slides})


def deck_payload(title: str = "Q3 Strategy", theme: str = "modern") -> str:
    return json.dumps(
        {
            "title": title,
            "theme": theme,
            "slides": [
                {"type": "title", "heading": title, "subtitle": "Quarterly review"},
                {"type": "bullets", "heading": "Highlights", "points": ["Revenue up", "Churn down"]},
                {"type": "stats", "heading": "Numbers", "stats": [{"value": "42%", "label": "Growth"}]},
                {"type": "image", "heading": "Team", "caption": "Our people"},
            ],
        }
    )


class RateLimitError(Exception):
    """Mimics a provider SDK's rate limit exception."""

    status_code = 429


class FakeTelegramClient:
    """Records outbound Telegram calls."""

    def __init__(self, configured: bool = True, audio: bytes = b"OggS"):
        self.configured = configured
        self.audio = audio
        self.sent: list[dict[str, Any]] = []
        self.actions: list[tuple[Any, str]] = []

    def send_message(self, chat_id, text, parse_mode="HTML"):
        self.sent.append({"chat_id": chat_id, "text": text, "parse_mode": parse_mode})
        return True

    def send_chat_action(self, chat_id, action="typing"):
        self.actions.append((chat_id, action))
        return True

    def download_file(self, file_id):
        return self.audio

    @property
    def texts(self) -> list[str]:
        return [m["text"] for m in self.sent]
