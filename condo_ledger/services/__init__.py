"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from condo_ledger.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine for the given URL.

    In-memory SQLite uses StaticPool so every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        pool = {"poolclass": StaticPool} if ":memory:" in database_url else {}
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            **pool,
        )
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = [
    "engine",
    "build_engine",
    "SessionLocal",
    "get_db",
]
