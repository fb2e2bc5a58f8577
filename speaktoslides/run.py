"""Entrypoints for running the API and preparing the database."""

from __future__ import annotations

import logging

import uvicorn

from speaktoslides.config.settings import get_settings
from speaktoslides.core.database import Database
from speaktoslides.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


def init_database() -> None:
    """Initialize database tables.

    Safe to run multiple times - only creates tables that don't already exist.
    """
    settings = get_settings()
    configure_logging(settings.logging)

    logger.info("Initializing database tables...")

    try:
        database = Database.from_url(settings.database.url, echo=settings.database.echo)
        database.init_db()
        database.dispose()
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {e}")
        raise SystemExit(1) from e


def main() -> None:
    """Start the uvicorn server."""
    settings = get_settings()
    uvicorn.run(
        "speaktoslides.api.main:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
    )


if __name__ == "__main__":
    main()
