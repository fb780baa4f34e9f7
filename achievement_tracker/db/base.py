"""Database configuration and base setup for Achievement Tracker.

The reference authority store and the content store live in physically
separate databases, so each gets its own declarative base and its own engine.
"""

from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for reference authority store models."""

    pass


class DocumentBase(DeclarativeBase):
    """Base class for content store models."""

    pass


DEFAULT_REFERENCE_DATABASE_URL = "sqlite:///./achievement_references.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        # Normalize any async driver variants to psycopg (sync)
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or DEFAULT_REFERENCE_DATABASE_URL)
    # str(url) would mask the password with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


def create_store_engine(raw_url: str) -> Engine:
    """Create an engine for one of the backing stores."""
    database_url = get_database_url(raw_url)

    if database_url.startswith("sqlite"):
        # SQLite configuration for development/testing
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    # PostgreSQL configuration for production
    return create_engine(
        database_url,
        pool_size=20,
        max_overflow=30,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a sessionmaker bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_databases(reference_engine: Engine, content_engine: Engine) -> None:
    """Create the tables of both stores."""
    # Import models to ensure they're registered with their bases
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=reference_engine)
    DocumentBase.metadata.create_all(bind=content_engine)


def drop_databases(reference_engine: Engine, content_engine: Engine) -> None:
    """Drop the tables of both stores. Use with caution!"""
    from . import models  # noqa: F401

    Base.metadata.drop_all(bind=reference_engine)
    DocumentBase.metadata.drop_all(bind=content_engine)
