"""
Database configuration and session management for the Session Authentication service.

This module provides the SQLAlchemy setup backing the user directory: engine
creation, session management and table initialization.
"""
from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from session_auth.config import settings

# Create SQLAlchemy base class for models
Base = declarative_base()


def _is_memory_url(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:")


class Database:
    """Database connection and session management."""

    def __init__(self, db_url: Optional[str] = None, echo: Optional[bool] = None):
        """
        Initialize the database connection.

        Args:
            db_url: Database URL. If None, uses the URL from settings.
            echo: Whether to log SQL statements. If None, uses settings.
        """
        if db_url is None:
            db_url = settings.DATABASE_URL
        if echo is None:
            echo = settings.DATABASE_ECHO

        engine_args = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
        # A single shared connection keeps an in-memory database alive across threads
        if _is_memory_url(db_url):
            engine_args["poolclass"] = StaticPool

        self.engine = create_engine(db_url, echo=echo, **engine_args)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create all tables defined in the models."""
        # Import models so their tables are registered on Base
        from session_auth import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        """Drop all tables. Use with caution, primarily for testing."""
        Base.metadata.drop_all(bind=self.engine)

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            A new SQLAlchemy session.
        """
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, Any, None]:
        """
        Context manager for database sessions.

        Provides automatic commit/rollback and session closing.

        Yields:
            An active SQLAlchemy session.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Default database instance, created on first use
db: Optional[Database] = None


# PUBLIC_INTERFACE
def init_db(db_url: Optional[str] = None) -> Database:
    """
    Initialize the database with all required tables.

    Args:
        db_url: Optional database URL. If None, uses the URL from settings.

    Returns:
        The initialized default database.
    """
    global db
    db = Database(db_url)
    db.create_all()
    return db


# PUBLIC_INTERFACE
def get_database() -> Database:
    """
    Get the default database, initializing it from settings if needed.

    Returns:
        The default database instance.
    """
    if db is None:
        return init_db()
    return db
