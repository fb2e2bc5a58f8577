"""Application context: every service the routes need, built once.

Routes read the context from ``request.app.state.context``. Nothing here
is a module-level global, so tests build their own context with fakes.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request

from speaktoslides.channels.telegram_bot import TelegramBot
from speaktoslides.channels.telegram_client import TelegramClient
from speaktoslides.config.settings import AppSettings
from speaktoslides.core.database import Database
from speaktoslides.services.conversation_engine import ConversationEngine
from speaktoslides.services.deck_compiler import DeckCompiler
from speaktoslides.services.llm_client import LLMClient, create_llm_client
from speaktoslides.services.persistence import PersistenceGateway
from speaktoslides.services.transcription import Transcriber
from speaktoslides.services.usage import UsagePolicy

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: AppSettings
    database: Database
    gateway: PersistenceGateway
    llm_client: LLMClient
    compiler: DeckCompiler
    usage: UsagePolicy
    engine: ConversationEngine
    transcriber: Transcriber
    telegram_client: TelegramClient
    bot: TelegramBot


def build_context(
    settings: AppSettings,
    database: Optional[Database] = None,
    llm_client: Optional[LLMClient] = None,
    telegram_client: Optional[TelegramClient] = None,
    transcriber: Optional[Transcriber] = None,
) -> AppContext:
    """Wire the services together. Any collaborator can be supplied pre-built."""
    database = database or Database.from_url(settings.database.url, echo=settings.database.echo)
    llm_client = llm_client or create_llm_client(settings)
    telegram_client = telegram_client or TelegramClient(settings.telegram_bot_token, settings.telegram)
    transcriber = transcriber or Transcriber(settings.openai_api_key, settings.transcription)

    gateway = PersistenceGateway(database)
    compiler = DeckCompiler(llm_client, settings)
    usage = UsagePolicy(gateway, settings.usage)
    engine = ConversationEngine(llm_client, compiler, gateway, settings, usage=usage)
    bot = TelegramBot(engine, telegram_client, transcriber, settings)

    return AppContext(
        settings=settings,
        database=database,
        gateway=gateway,
        llm_client=llm_client,
        compiler=compiler,
        usage=usage,
        engine=engine,
        transcriber=transcriber,
        telegram_client=telegram_client,
        bot=bot,
    )


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service is starting up. Please try again.")
    return context


def require_internal_secret(
    request: Request,
    x_internal_secret: Optional[str] = Header(None),
) -> None:
    """Guard for deck mutation endpoints. Fails closed when no secret is configured."""
    expected = get_context(request).settings.internal_api_secret
    if not expected:
        logger.error("INTERNAL_API_SECRET not configured, rejecting deck mutation")
        raise HTTPException(status_code=503, detail="Deck editing is not available right now.")
    if not x_internal_secret or not secrets.compare_digest(x_internal_secret, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


def client_ip(request: Request) -> Optional[str]:
    """Caller IP, preferring proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None
