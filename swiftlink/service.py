"""Service contracts and the factory that wires them from configuration.

SERVICE_MODE picks one implementation pair for the whole process; call sites
only see the :class:`Shortener` and :class:`Resolver` contracts.

Flow Diagram — build_services()
===============================
::
    ┌─────────────┐
    │  Settings   │
    └──────┬──────┘
    MODE?  │
    ┌─────┴──────────────┐
    │ direct              │ backend
    ▼                     ▼
┌──────────────┐    ┌──────────────────┐
│ build_store  │    │ httpx.AsyncClient│
│ (sql/redis/  │    │ (BACKEND_URL)    │
│  memory)     │    └────────┬─────────┘
│ + offline    │             ▼
│   queue      │    ┌──────────────────┐
└──────┬───────┘    │ Backend*Service  │
       ▼            └──────────────────┘
┌──────────────┐
│ Shortening   │
│ Service +    │
│ Redirect     │
│ Resolver     │
└──────────────┘

How to Use
===========
**Step 1 — Build from settings**::
    services = await build_services(get_settings())

**Step 2 — Shorten and resolve**::
    code = await services.shortener.shorten("https://example.com")
    url = await services.resolver.resolve(code)

**Step 3 — Shut down**::
    await services.close()

Key Behaviours
===============
- Both modes share the same LocalCache (opened from LOCAL_CACHE_PATH).
- Direct mode wraps the store in QueuedLinkStore when OFFLINE_QUEUE_ENABLED.
- The SQL schema is created on build; an unreachable database is logged and
  left to fail per request.
- close() waits for detached increments, flushes queued writes and releases
  connections.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Protocol

import httpx

from swiftlink.backend_client import BackendRedirectResolver, BackendShorteningService, create_backend_client
from swiftlink.cache import LocalCache, open_local_cache
from swiftlink.codegen import CodeGenerator, generate_short_code
from swiftlink.config import Settings
from swiftlink.database import create_engine
from swiftlink.enums import HealthStatus, ServiceMode, StoreBackend
from swiftlink.exceptions import StoreConnectionError
from swiftlink.queued_store import QueuedLinkStore
from swiftlink.redis_store import RedisLinkStore
from swiftlink.schemas import LinkRecord
from swiftlink.sql_store import SqlLinkStore
from swiftlink.store import LinkStore, MemoryLinkStore
from swiftlink.url_service import RedirectResolver, ShorteningService

__all__ = ["Shortener", "Resolver", "LinkServices", "build_store", "build_services"]


class Shortener(Protocol):
    async def shorten(self, original_url: str) -> str: ...

    async def list_recent(self, limit: int) -> list[LinkRecord]: ...


class Resolver(Protocol):
    async def resolve(self, short_code: str, *, defer_increment: bool = False) -> str: ...

    async def lookup(self, short_code: str) -> LinkRecord: ...

    async def drain(self) -> None: ...


@dataclass
class LinkServices:
    mode: ServiceMode
    shortener: Shortener
    resolver: Resolver
    cache: LocalCache
    store: LinkStore | None = None
    http_client: httpx.AsyncClient | None = None
    logger: logging.Logger | logging.LoggerAdapter = field(default_factory=lambda: logging.getLogger("swiftlink"))

    async def ping(self) -> bool:
        if self.store is not None:
            return await self.store.ping()
        if self.http_client is not None:
            try:
                response = await self.http_client.get("/health")
            except httpx.TransportError as exc:
                self.logger.error(f"Backend health check failed: {exc}")
                return False
            if response.status_code != 200:
                return False
            try:
                payload = response.json()
            except ValueError as exc:
                self.logger.error(f"Backend health check returned invalid JSON: {exc}")
                return False
            if not isinstance(payload, dict):
                self.logger.error(f"Backend health check returned {type(payload).__name__}, expected an object")
                return False
            return HealthStatus.from_str(str(payload.get("status", ""))) == HealthStatus.HEALTHY
        return False

    async def close(self) -> None:
        await self.resolver.drain()
        if self.store is not None:
            await self.store.close()
        if self.http_client is not None:
            await self.http_client.aclose()


async def build_store(settings: Settings, logger: logging.Logger | logging.LoggerAdapter | None = None) -> LinkStore:
    logger = logger or logging.getLogger("swiftlink")
    store: LinkStore
    if settings.STORE_BACKEND == StoreBackend.MEMORY:
        store = MemoryLinkStore()
    elif settings.STORE_BACKEND == StoreBackend.REDIS:
        store = RedisLinkStore.from_url(settings.REDIS_URL, settings.REDIS_KEY_PREFIX)
    else:
        sql_store = SqlLinkStore(create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO))
        try:
            await sql_store.init_schema()
        except StoreConnectionError as exc:
            logger.error(f"Could not create schema, database unreachable: {exc}")
        store = sql_store

    if settings.OFFLINE_QUEUE_ENABLED:
        store = QueuedLinkStore(
            store,
            max_pending=settings.OFFLINE_QUEUE_MAX_SIZE,
            journal_path=settings.OFFLINE_QUEUE_PATH or None,
        )
    logger.info(f"Using {settings.STORE_BACKEND} store (offline queue {'on' if settings.OFFLINE_QUEUE_ENABLED else 'off'})")
    return store


async def build_services(
    settings: Settings,
    *,
    store: LinkStore | None = None,
    cache: LocalCache | None = None,
    code_generator: CodeGenerator | None = None,
    http_client: httpx.AsyncClient | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> LinkServices:
    logger = logger or logging.getLogger("swiftlink")
    if cache is None:
        cache = open_local_cache(settings.LOCAL_CACHE_PATH)

    if settings.SERVICE_MODE == ServiceMode.BACKEND:
        if http_client is None:
            http_client = create_backend_client(settings.BACKEND_URL, settings.BACKEND_TIMEOUT_SECONDS)
        return LinkServices(
            mode=ServiceMode.BACKEND,
            shortener=BackendShorteningService(http_client, cache, logger=logger),
            resolver=BackendRedirectResolver(http_client, cache, logger=logger),
            cache=cache,
            http_client=http_client,
            logger=logger,
        )

    if store is None:
        store = await build_store(settings, logger)
    if code_generator is None:
        code_generator = partial(generate_short_code, settings.SHORT_CODE_LENGTH)

    return LinkServices(
        mode=ServiceMode.DIRECT,
        shortener=ShorteningService(
            store,
            cache,
            code_generator=code_generator,
            max_attempts=settings.SHORT_CODE_MAX_ATTEMPTS,
            logger=logger,
        ),
        resolver=RedirectResolver(store, cache, logger=logger),
        cache=cache,
        store=store,
        logger=logger,
    )
