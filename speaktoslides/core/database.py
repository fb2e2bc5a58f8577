"""Database connection and session management.

Supports multiple database backends:
- SQLite: local development and tests
- PostgreSQL: staging and production (set DATABASE_URL)

The engine and session factory are owned by an explicitly constructed
``Database`` object that is passed to the services needing it.
"""
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine for the configured backend.

    Args:
        database_url: SQLAlchemy connection URL
        echo: Log emitted SQL

    Returns:
        Engine configured for the backend
    """
    if database_url.startswith("sqlite"):
        logger.info("Configuring SQLite database connection")
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    logger.info("Configuring database connection")
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=echo,
    )


class Database:
    """Engine plus session factory.

    Attributes:
        engine: SQLAlchemy engine
        session_factory: sessionmaker bound to the engine
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "Database":
        return cls(create_db_engine(database_url, echo=echo))

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Commits on success, rolls back on any exception.
        """
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def init_db(self) -> None:
        """Create all tables in the database."""
        # Import models so they register on Base.metadata
        import speaktoslides.database.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
