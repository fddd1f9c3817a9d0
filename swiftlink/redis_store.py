"""Redis-backed durable store.

Key Layout
==========
::
    {prefix}:link:{code}     HASH  shortCode, originalUrl, createdAt, clicks, owner
    {prefix}:by_created      ZSET  member=code, score=createdAt (epoch seconds)

Flow Diagram — put()
====================
::
    ┌─────────────┐
    │ put(code,   │
    │ record)     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ TIME        │
    │ (server     │
    │ clock)      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ MULTI       │
    │ DEL + HSET  │
    │ ZADD        │
    │ EXEC        │
    └─────────────┘

Key Behaviours
===============
- createdAt is read from the Redis server clock, not the client clock.
- increment_clicks runs HINCRBY inside a Lua script that first checks the hash
  exists, so a stray increment never materializes a partial record.
- Listing walks the sorted-set index newest first.
- redis ConnectionError / TimeoutError are re-raised as StoreConnectionError.
"""

import datetime
import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from swiftlink.exceptions import NotFoundError, StoreConnectionError
from swiftlink.schemas import LinkRecord
from swiftlink.store import LinkStore

__all__ = ["RedisLinkStore"]

logger = logging.getLogger("swiftlink")

# Returns the new counter, or nil when the link hash does not exist.
INCREMENT_IF_EXISTS_SCRIPT = """
    if redis.call("EXISTS", KEYS[1]) == 1 then
        return redis.call("HINCRBY", KEYS[1], "clicks", 1)
    else
        return nil
    end
"""


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
        logger.warning(f"Redis store unreachable during {operation}: {exc}")
        raise StoreConnectionError(f"Redis store unreachable during {operation}") from exc


class RedisLinkStore(LinkStore):
    def __init__(self, client: redis.Redis, key_prefix: str = "links") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "links") -> "RedisLinkStore":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True), key_prefix)

    def _link_key(self, short_code: str) -> str:
        return f"{self._prefix}:link:{short_code}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}:by_created"

    async def exists(self, short_code: str) -> bool:
        with _translate_errors("exists"):
            return await self._client.exists(self._link_key(short_code)) > 0

    async def get(self, short_code: str) -> LinkRecord | None:
        with _translate_errors("get"):
            data = await self._client.hgetall(self._link_key(short_code))
        return _decode(data) if data else None

    async def put(self, short_code: str, record: LinkRecord) -> None:
        key = self._link_key(short_code)
        with _translate_errors("put"):
            seconds, microseconds = await self._client.time()
            created_at = seconds + microseconds / 1_000_000
            mapping = {
                "shortCode": short_code,
                "originalUrl": record.original_url,
                "createdAt": repr(created_at),
                "clicks": str(record.clicks),
                "owner": record.owner or "",
            }
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.zadd(self._index_key, {short_code: created_at})
            await pipe.execute()

    async def increment_clicks(self, short_code: str) -> None:
        with _translate_errors("increment_clicks"):
            result = await self._client.eval(INCREMENT_IF_EXISTS_SCRIPT, 1, self._link_key(short_code))
        if result is None:
            raise NotFoundError(short_code)

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        with _translate_errors("list_recent"):
            codes = await self._client.zrevrange(self._index_key, 0, limit - 1)
            if not codes:
                return []
            pipe = self._client.pipeline(transaction=False)
            for code in codes:
                pipe.hgetall(self._link_key(code))
            rows = await pipe.execute()
        return [_decode(row) for row in rows if row]

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.error(f"Redis store health check failed: {exc}")
            return False

    async def close(self) -> None:
        await self._client.aclose()


def _decode(data: dict[str, str]) -> LinkRecord:
    created_raw = data.get("createdAt")
    created_at = (
        datetime.datetime.fromtimestamp(float(created_raw), tz=datetime.timezone.utc) if created_raw else None
    )
    return LinkRecord(
        short_code=data["shortCode"],
        original_url=data["originalUrl"],
        created_at=created_at,
        clicks=int(data.get("clicks", 0)),
        owner=data.get("owner") or None,
    )
