"""Durable store interface and the in-memory implementation.

Every store adapter persists ``short_code -> LinkRecord`` and offers an atomic
click increment. Services only ever talk to :class:`LinkStore`; concrete
adapters live in :mod:`swiftlink.sql_store`, :mod:`swiftlink.redis_store` and
:mod:`swiftlink.queued_store`.

Store Contract
==============
::
    exists(code)            -> bool
    get(code)               -> LinkRecord | None
    put(code, record)       -> None      (created_at assigned by the store)
    increment_clicks(code)  -> None      (atomic, NotFoundError if absent)
    list_recent(limit)      -> list[LinkRecord]  (created_at descending)
    ping()                  -> bool
    close()                 -> None

Key Behaviours
===============
- Connectivity failures surface as StoreConnectionError, never as a missing record.
- increment_clicks is a single atomic store operation; callers never
  read-modify-write the counter themselves.
- put has "set" semantics: writing an existing code replaces the record.
"""

import abc
import asyncio
import datetime
import itertools

from swiftlink.exceptions import NotFoundError
from swiftlink.schemas import LinkRecord

__all__ = ["LinkStore", "MemoryLinkStore"]


class LinkStore(abc.ABC):
    @abc.abstractmethod
    async def exists(self, short_code: str) -> bool: ...

    @abc.abstractmethod
    async def get(self, short_code: str) -> LinkRecord | None: ...

    @abc.abstractmethod
    async def put(self, short_code: str, record: LinkRecord) -> None: ...

    @abc.abstractmethod
    async def increment_clicks(self, short_code: str) -> None: ...

    @abc.abstractmethod
    async def list_recent(self, limit: int) -> list[LinkRecord]: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryLinkStore(LinkStore):
    """Process-local store used for development and tests."""

    def __init__(self) -> None:
        self._records: dict[str, LinkRecord] = {}
        self._sequence: dict[str, int] = {}
        self._counter = itertools.count()
        self._lock = asyncio.Lock()

    async def exists(self, short_code: str) -> bool:
        return short_code in self._records

    async def get(self, short_code: str) -> LinkRecord | None:
        record = self._records.get(short_code)
        return record.model_copy() if record is not None else None

    async def put(self, short_code: str, record: LinkRecord) -> None:
        stored = record.model_copy(
            update={
                "short_code": short_code,
                "created_at": datetime.datetime.now(datetime.timezone.utc),
            }
        )
        async with self._lock:
            self._records[short_code] = stored
            self._sequence[short_code] = next(self._counter)

    async def increment_clicks(self, short_code: str) -> None:
        async with self._lock:
            record = self._records.get(short_code)
            if record is None:
                raise NotFoundError(short_code)
            record.clicks += 1

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        ordered = sorted(
            self._records.values(),
            key=lambda r: (r.created_at, self._sequence[r.short_code]),
            reverse=True,
        )
        return [r.model_copy() for r in ordered[:limit]]

    def __len__(self) -> int:
        return len(self._records)
