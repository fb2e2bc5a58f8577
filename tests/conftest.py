"""
Pytest configuration and shared fixtures.

This module provides fixtures that are available to all test modules.
"""

from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from speaktoslides.config.settings import AppSettings, get_settings
from speaktoslides.core.database import Database
from speaktoslides.services.conversation_engine import ConversationEngine
from speaktoslides.services.deck_compiler import DeckCompiler
from speaktoslides.services.llm_client import LLMClient, ModelTier
from speaktoslides.services.persistence import PersistenceGateway
from speaktoslides.services.usage import UsagePolicy
from tests.fixtures.payloads import chat_model


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """
    Clear settings cache before each test.

    This ensures each test gets fresh settings.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def mock_mlflow():
    """Model calls open MLflow spans; keep them away from a tracking server."""
    with patch("speaktoslides.services.llm_client.mlflow") as mocked:
        yield mocked


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        environment="test",
        telegram_bot_token=None,
        telegram_webhook_secret="hook-secret",
        openai_api_key=None,
        internal_api_secret="internal-secret",
    )


@pytest.fixture
def database() -> Generator[Database, None, None]:
    """In-memory SQLite shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = Database(engine)
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def gateway(database: Database) -> PersistenceGateway:
    return PersistenceGateway(database)


@pytest.fixture
def fast_model() -> MagicMock:
    return chat_model()


@pytest.fixture
def quality_model() -> MagicMock:
    return chat_model()


@pytest.fixture
def fallback_model() -> MagicMock:
    return chat_model()


@pytest.fixture
def llm_client(fast_model, quality_model, fallback_model) -> LLMClient:
    return LLMClient(
        models={ModelTier.FAST: fast_model, ModelTier.QUALITY: quality_model},
        fallback_model=fallback_model,
        model_names={ModelTier.FAST: "fast-endpoint", ModelTier.QUALITY: "quality-endpoint"},
        fallback_name="fallback-endpoint",
    )


@pytest.fixture
def compiler(llm_client, settings) -> DeckCompiler:
    return DeckCompiler(llm_client, settings)


@pytest.fixture
def engine(llm_client, compiler, gateway, settings) -> ConversationEngine:
    return ConversationEngine(
        llm_client,
        compiler,
        gateway,
        settings,
        usage=UsagePolicy(gateway, settings.usage),
    )
