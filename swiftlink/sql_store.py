"""SQL-backed durable store using SQLAlchemy's async ORM.

Flow Diagram — increment_clicks()
=================================
::
    ┌─────────────┐
    │ increment_  │
    │ clicks(code)│
    └──────┬──────┘
           ▼
    ┌──────────────────────────────┐
    │ UPDATE links                 │
    │ SET clicks = clicks + 1      │
    │ WHERE short_code = :code     │
    └──────┬───────────────────────┘
    ROWS?  │
    ┌─────┴─────┐
    │ 0          │ 1
    ▼            ▼
┌─────────┐  ┌─────────┐
│ NotFound│  │ Commit  │
│ Error   │  │         │
└─────────┘  └─────────┘

Key Behaviours
===============
- The click counter is incremented by a single UPDATE evaluated by the database,
  so concurrent increments never lose updates.
- put() merges the row, giving "set" semantics for an existing code.
- created_at comes from the database server default; created_seq breaks ties
  between rows created within the same clock tick.
- Tables are created on first use, so a database that was unreachable at
  start-up is usable as soon as it comes back.
- Driver connectivity failures are re-raised as StoreConnectionError.
"""

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select, text, update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from swiftlink.database import create_session_factory, init_schema
from swiftlink.exceptions import NotFoundError, StoreConnectionError
from swiftlink.models import Link
from swiftlink.schemas import LinkRecord
from swiftlink.store import LinkStore

__all__ = ["SqlLinkStore"]

logger = logging.getLogger("swiftlink")


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as exc:
        logger.warning(f"SQL store unreachable during {operation}: {exc}")
        raise StoreConnectionError(f"SQL store unreachable during {operation}") from exc


class SqlLinkStore(LinkStore):
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def init_schema(self) -> None:
        """Create the tables once; retried by the next operation until it succeeds."""
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            with _translate_errors("init_schema"):
                await init_schema(self._engine)
            self._schema_ready = True

    async def exists(self, short_code: str) -> bool:
        await self.init_schema()
        with _translate_errors("exists"):
            async with self._session_factory() as session:
                result = await session.execute(select(Link.short_code).where(Link.short_code == short_code))
                return result.scalar_one_or_none() is not None

    async def get(self, short_code: str) -> LinkRecord | None:
        await self.init_schema()
        with _translate_errors("get"):
            async with self._session_factory() as session:
                result = await session.execute(select(Link).where(Link.short_code == short_code))
                link = result.scalar_one_or_none()
        return LinkRecord.model_validate(link) if link is not None else None

    async def put(self, short_code: str, record: LinkRecord) -> None:
        await self.init_schema()
        with _translate_errors("put"):
            async with self._session_factory() as session:
                await session.merge(
                    Link(
                        short_code=short_code,
                        original_url=record.original_url,
                        clicks=record.clicks,
                        owner=record.owner,
                    )
                )
                await session.commit()

    async def increment_clicks(self, short_code: str) -> None:
        await self.init_schema()
        with _translate_errors("increment_clicks"):
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Link).where(Link.short_code == short_code).values(clicks=Link.clicks + 1)
                )
                await session.commit()
        if result.rowcount == 0:
            raise NotFoundError(short_code)

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        await self.init_schema()
        with _translate_errors("list_recent"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Link).order_by(Link.created_at.desc(), Link.created_seq.desc()).limit(limit)
                )
                links = result.scalars().all()
        return [LinkRecord.model_validate(link) for link in links]

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (OperationalError, InterfaceError, OSError) as exc:
            logger.error(f"SQL store health check failed: {exc}")
            return False
        return True

    async def close(self) -> None:
        await self._engine.dispose()
