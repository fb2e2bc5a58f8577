"""
Generative text client.

Wraps LangChain chat models (Databricks serving endpoints) behind a single
``complete`` call. Two tiers are available: FAST for chat turns and
outlines, QUALITY for pro deck builds. When the primary model reports a
rate limit or overload, the call is retried exactly once on a fixed
fallback model; any other failure is fatal to the operation.
"""

import logging
import time
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

import mlflow
from databricks_langchain import ChatDatabricks
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from speaktoslides.config.settings import AppSettings
from speaktoslides.core.exceptions import (
    LLMInvocationError,
    RateLimitedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS_CODES = (429, 529)
RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "ratelimit", "overloaded", "too many requests")


class ModelTier(str, Enum):
    FAST = "fast"
    QUALITY = "quality"


def trim_leading_non_user(messages: Iterable[Mapping[str, str]]) -> list[dict[str, str]]:
    """Drop entries before the first user message.

    The upstream models require the conversation to start with a user turn.
    """
    items = [{"role": m["role"], "content": m["content"]} for m in messages]
    for position, item in enumerate(items):
        if item["role"] == "user":
            return items[position:]
    return []


def _status_code(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "status_code", None)
    if code is None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def is_rate_limit_error(exc: BaseException) -> bool:
    """True when ``exc`` signals rate limiting or overload upstream."""
    if _status_code(exc) in RATE_LIMIT_STATUS_CODES:
        return True
    if "ratelimit" in type(exc).__name__.lower():
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def response_text(response: Any) -> str:
    """Plain text of a chat model response.

    Content may be a string or a list of content blocks; only text blocks
    are kept.
    """
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


class LLMClient:
    """Tiered chat completion with single-shot fallback on rate limits.

    Attributes:
        models: Chat model per tier
        fallback_model: Model used once when the primary is rate limited
        model_names: Endpoint name per tier, for logs and traces
    """

    def __init__(
        self,
        models: Mapping[ModelTier, BaseChatModel],
        fallback_model: Optional[BaseChatModel] = None,
        model_names: Optional[Mapping[ModelTier, str]] = None,
        fallback_name: Optional[str] = None,
    ):
        missing = [tier.value for tier in ModelTier if tier not in models]
        if missing:
            raise ValueError(f"Missing chat model for tier(s): {', '.join(missing)}")
        self.models = dict(models)
        self.fallback_model = fallback_model
        self.model_names = dict(model_names or {})
        self.fallback_name = fallback_name or "fallback"

    def complete(
        self,
        system: str,
        messages: Iterable[Mapping[str, str]],
        max_tokens: int,
        tier: ModelTier = ModelTier.FAST,
    ) -> str:
        """
        Run one completion.

        Args:
            system: System instruction
            messages: Conversation as ``{"role", "content"}`` dicts, oldest first
            max_tokens: Output token cap
            tier: Which primary model to use

        Returns:
            The model's text output

        Raises:
            ValidationError: If no user message remains after trimming
            RateLimitedError: If the primary and the fallback are both rate limited
            LLMInvocationError: For any other model failure
        """
        conversation = trim_leading_non_user(messages)
        if not conversation:
            raise ValidationError("Completion requires at least one user message")

        lc_messages = self._to_langchain(system, conversation)
        model_name = self.model_names.get(tier, tier.value)

        with mlflow.start_span(name="llm_complete") as span:
            span.set_attributes(
                {
                    "tier": tier.value,
                    "model": model_name,
                    "message_count": len(conversation),
                    "max_tokens": max_tokens,
                }
            )
            start = time.perf_counter()
            try:
                text = self._invoke(self.models[tier], lc_messages, max_tokens)
                used = model_name
            except Exception as e:
                if not is_rate_limit_error(e):
                    logger.error(
                        "Model call failed",
                        extra={"model": model_name, "tier": tier.value, "error": str(e)},
                    )
                    raise LLMInvocationError(f"Model call failed: {e}") from e
                text = self._complete_with_fallback(lc_messages, max_tokens, model_name, e)
                used = self.fallback_name

            latency_ms = round((time.perf_counter() - start) * 1000)
            span.set_attributes({"model_used": used, "latency_ms": latency_ms})

        logger.info(
            "Model call complete",
            extra={
                "model": used,
                "tier": tier.value,
                "latency_ms": latency_ms,
                "output_chars": len(text),
            },
        )
        return text

    def _complete_with_fallback(
        self,
        lc_messages: list[BaseMessage],
        max_tokens: int,
        primary_name: str,
        primary_error: Exception,
    ) -> str:
        if self.fallback_model is None:
            raise RateLimitedError(f"Model {primary_name} is rate limited") from primary_error

        logger.warning(
            "Primary model rate limited, retrying on fallback",
            extra={"model": primary_name, "fallback": self.fallback_name},
        )
        try:
            return self._invoke(self.fallback_model, lc_messages, max_tokens)
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitedError("Primary and fallback models are rate limited") from e
            logger.error(
                "Fallback model call failed",
                extra={"fallback": self.fallback_name, "error": str(e)},
            )
            raise LLMInvocationError(f"Fallback model call failed: {e}") from e

    @staticmethod
    def _invoke(model: BaseChatModel, lc_messages: list[BaseMessage], max_tokens: int) -> str:
        response = model.invoke(lc_messages, max_tokens=max_tokens)
        return response_text(response).strip()

    @staticmethod
    def _to_langchain(system: str, conversation: list[dict[str, str]]) -> list[BaseMessage]:
        lc_messages: list[BaseMessage] = [SystemMessage(content=system)]
        for item in conversation:
            if item["role"] == "user":
                lc_messages.append(HumanMessage(content=item["content"]))
            else:
                lc_messages.append(AIMessage(content=item["content"]))
        return lc_messages


def _create_chat_model(endpoint: str, settings: AppSettings) -> ChatDatabricks:
    return ChatDatabricks(
        endpoint=endpoint,
        temperature=settings.llm.temperature,
        max_tokens=settings.llm.max_tokens_deck,
        top_p=settings.llm.top_p,
    )


def create_llm_client(settings: AppSettings) -> LLMClient:
    """Build the client from configured Databricks serving endpoints."""
    llm = settings.llm
    fallback = _create_chat_model(llm.fallback_endpoint, settings) if llm.fallback_endpoint else None

    logger.info(
        "Creating LLM client",
        extra={
            "fast_endpoint": llm.fast_endpoint,
            "quality_endpoint": llm.quality_endpoint,
            "fallback_endpoint": llm.fallback_endpoint,
        },
    )
    return LLMClient(
        models={
            ModelTier.FAST: _create_chat_model(llm.fast_endpoint, settings),
            ModelTier.QUALITY: _create_chat_model(llm.quality_endpoint, settings),
        },
        fallback_model=fallback,
        model_names={ModelTier.FAST: llm.fast_endpoint, ModelTier.QUALITY: llm.quality_endpoint},
        fallback_name=llm.fallback_endpoint,
    )
