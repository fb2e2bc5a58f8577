"""FastAPI application for SpeakToSlides.

``create_app`` builds the app around an AppContext. When none is given,
the lifespan builds one from settings at startup.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from speaktoslides import __version__
from speaktoslides.api.dependencies import AppContext, build_context
from speaktoslides.api.routes import decks, health, telegram
from speaktoslides.config.settings import AppSettings, get_settings
from speaktoslides.core.exceptions import (
    BuildInProgressError,
    CapabilityUnavailableError,
    GenerationFormatError,
    LLMInvocationError,
    NotFoundError,
    RateLimitedError,
    SpeakToSlidesError,
    ValidationError,
)
from speaktoslides.core.logging_config import configure_logging
from speaktoslides.core.tracing import configure_tracing

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES: list[tuple[type[SpeakToSlidesError], int]] = [
    (NotFoundError, 404),
    (ValidationError, 400),
    (BuildInProgressError, 409),
    (CapabilityUnavailableError, 503),
    (GenerationFormatError, 502),
    (RateLimitedError, 502),
    (LLMInvocationError, 502),
]


def status_code_for(error: SpeakToSlidesError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def handle_app_error(request: Request, exc: SpeakToSlidesError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "status_code": status_code,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.user_message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the context on startup unless one was injected; dispose on shutdown."""
    built_here = getattr(app.state, "context", None) is None
    if built_here:
        settings = app.state.settings
        configure_logging(settings.logging)
        configure_tracing(settings.tracing)
        context = build_context(settings)
        context.database.init_db()
        app.state.context = context

    logger.info(
        "Starting SpeakToSlides API",
        extra={"environment": app.state.settings.environment, "version": __version__},
    )
    yield
    logger.info("Shutting down SpeakToSlides API")

    if built_here:
        app.state.context.database.dispose()


def create_app(context: Optional[AppContext] = None, settings: Optional[AppSettings] = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        context: Pre-built services (tests); built at startup when omitted
        settings: Settings to use; defaults to the context's or get_settings()
    """
    settings = settings or (context.settings if context else get_settings())

    app = FastAPI(
        title="SpeakToSlides API",
        description="Turn a conversation into a shareable presentation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.context = context

    # Configure CORS only for development
    if not settings.is_production and settings.api.cors_origins:
        logger.info("Development mode: enabling CORS")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(SpeakToSlidesError, handle_app_error)

    app.include_router(decks.router)
    app.include_router(telegram.router)
    app.include_router(health.router)

    return app
