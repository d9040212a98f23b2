"""
SightEd Backend — Database Engine Helpers
===========================================

What:  Async SQLAlchemy engine/session factory builders and the declarative Base.
Who:   SQLDocumentStore (runtime), Alembic env.py (migrations), tests (SQLite).
When:  An engine is built once, when the SQL document store is created at
       startup; nothing connects at import time.

Connection Pooling:
    PostgreSQL (asyncpg) gets a real pool sized from settings:
        pool_size / max_overflow / pool_pre_ping / pool_recycle=3600
    SQLite (aiosqlite) uses SQLAlchemy's default pool; the sizing arguments
    are not accepted by its pool class.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from sighted.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models; its metadata drives Alembic."""
    pass


def build_engine(database_url: str) -> AsyncEngine:
    """
    Creates the async engine for `database_url`.

    SQL statements are echoed when LOG_LEVEL is DEBUG.
    """
    url = make_url(database_url)
    kwargs = {"echo": settings.log_level == "DEBUG"}
    if not url.get_backend_name().startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: documents are read after commit without a refresh
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
