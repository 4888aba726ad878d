"""
qualifier/db/session.py — SQLAlchemy engine and session factory.

Usage:
    from qualifier.db.session import get_session

    # In scripts and services:
    with get_session() as db:
        ...
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from qualifier.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            # One shared connection, otherwise every checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,          # reconnect on stale connections
        pool_size=5,
        max_overflow=10,
        echo=False,                  # set True to log all SQL (useful for debugging)
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def session_scope(factory: sessionmaker):
    """Build a get_session-style context manager bound to another sessionmaker (tests, scripts)."""

    @contextmanager
    def _scope() -> Generator[Session, None, None]:
        db = factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return _scope


# Context manager for use in scripts and services (non-FastAPI code)
get_session = session_scope(SessionLocal)
