"""Database engine and session management for the SQL link store.

This module provides SQLAlchemy async engine setup, session factories and
schema creation. PostgreSQL (asyncpg) is the production backend; SQLite
(aiosqlite) is accepted for local runs and tests.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  SqlLink    │
    │  Store op   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session     │
    │ factory()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Execute     │
    │ statement   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Commit &    │
    │ auto-close  │
    └─────────────┘

How to Use
===========
**Step 1 — Create the engine**::
    engine = create_engine(settings.DATABASE_URL)

**Step 2 — Create tables on startup**::
    await init_schema(engine)

**Step 3 — Open sessions**::
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        ...

**Step 4 — Cleanup on shutdown**::
    await engine.dispose()

Key Behaviours
===============
- Connection pooling is configured for server databases; SQLite keeps
  SQLAlchemy's default pool.
- Sessions do not expire attributes on commit.
- Tables are created idempotently.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Build the async engine for a database URL.
    create_session_factory():  Bind an async session factory to an engine.
    init_schema():  Create all tables.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

__all__ = ["Base", "create_engine", "create_session_factory", "init_schema"]


class Base(DeclarativeBase):
    pass


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    # Import registers the mapped tables on Base.metadata.
    from swiftlink import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
