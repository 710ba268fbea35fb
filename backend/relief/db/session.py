# relief/db/session.py
"""
Database session and initialization utilities.

We use:
- SQLAlchemy async engine + AsyncSession
- SQLite via aiosqlite driver for local deployments (any async URL works)

Key points:
- `init_db()` creates tables and applies SQLite pragmas.
- `get_session()` is a FastAPI dependency that yields an AsyncSession.
- `get_session_factory()` is the dependency the SMS pipeline uses; tests
  override it with a factory bound to a temporary database.
"""

from __future__ import annotations

import os
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from relief.core.config import settings
from relief.db.models import Base


def create_engine_for(url: str) -> AsyncEngine:
    """Build an async engine; keep echo=False to avoid logging SQL in normal use."""
    return create_async_engine(url, echo=False, future=True)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        expire_on_commit=False,
        class_=AsyncSession,
    )


engine = create_engine_for(settings.DATABASE_URL)
AsyncSessionLocal = create_session_factory(engine)


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return
    database = parsed.database
    if not database or database == ":memory:":
        return
    parent = os.path.dirname(os.path.abspath(database))
    os.makedirs(parent, exist_ok=True)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Initialize database schema and apply SQLite pragmas.

    Pragmas rationale:
    - journal_mode=WAL: concurrent webhook deliveries append without blocking readers
    - synchronous=NORMAL: good balance for durability vs speed
    """
    bind = bind or engine
    _ensure_sqlite_dir(str(bind.url))

    async with bind.begin() as conn:
        if bind.dialect.name == "sqlite":
            await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.execute(text("PRAGMA synchronous=NORMAL;"))

        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the shared session factory."""
    return AsyncSessionLocal


async def get_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a scoped AsyncSession.

    Usage:
        @router.get(...)
        async def handler(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with factory() as session:
        yield session
