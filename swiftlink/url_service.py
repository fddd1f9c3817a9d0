"""Direct-store service layer: short-code allocation and redirect resolution.

This module holds the core business logic. Both services receive their
collaborators (durable store, local cache, code generator, logger) through the
constructor; nothing here reaches for a process-wide store.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    Service Layer                            │
    │  ┌───────────────────┐        ┌───────────────────────────┐ │
    │  │ ShorteningService │        │     RedirectResolver      │ │
    │  │                   │        │                           │ │
    │  │ • Validate URL    │        │ • Cache-first lookup      │ │
    │  │ • Allocate code   │        │ • Store fallback          │ │
    │  │ • Write record    │        │ • Click increments        │ │
    │  │ • Populate cache  │        │ • Detached task registry  │ │
    │  └───────────────────┘        └───────────────────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │  Code Generator │  │   LinkStore     │  │   LocalCache    │
    │  (nanoid)       │  │ (SQL/Redis/mem) │  │  (JSON file)    │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Short Code Allocation Flow
--------------------------
::
    ┌─────────────┐
    │ shorten(url)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ http(s)://? │── NO ──▶ InvalidInputError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ generate()  │◀──────────────┐
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐   TAKEN &     │
    │ exists()?   │── attempts ───┘
    └──────┬──────┘   left
    FREE / │ UNREACHABLE (optimistic)
           ▼
    ┌─────────────┐
    │ put()       │── cannot queue ──▶ StoreUnavailableError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cache.put() │
    └─────────────┘

Redirect Resolution Flow
------------------------
::
    ┌─────────────┐
    │ resolve(code)│
    └──────┬──────┘
           ▼
    ┌─────────────┐  HIT   ┌──────────────────────┐
    │ cache.get() │──────▶ │ detached increment,  │
    └──────┬──────┘        │ return cached URL    │
      MISS │               └──────────────────────┘
           ▼
    ┌─────────────┐  UNREACHABLE
    │ store.get() │──────────────▶ OfflineError
    └──────┬──────┘
    FOUND? │── NO ──▶ NotFoundError
           ▼
    ┌─────────────┐
    │ cache.put() │
    │ increment   │  (awaited unless defer_increment)
    │ return URL  │
    └─────────────┘

Key Behaviours
===============
- The exists-then-put sequence is not transactional; two concurrent shortens
  that draw the same candidate can both write it.
- Collision-check failures and cache-hit increment failures are logged, never raised.
- Detached increments are held in a task registry so they are neither garbage
  collected nor cancelled with the request that spawned them; drain() awaits them.
- Every resolve() counts one visit.
"""

import asyncio
import logging
import time

from prometheus_client import Counter, Histogram

from swiftlink.cache import LocalCache
from swiftlink.codegen import CodeGenerator, generate_short_code
from swiftlink.enums import CacheStatus, ClickOutcome, RequestStatus
from swiftlink.exceptions import (
    CodeAllocationError,
    InvalidInputError,
    NotFoundError,
    OfflineError,
    StoreConnectionError,
    StoreUnavailableError,
)
from swiftlink.schemas import LinkRecord
from swiftlink.store import LinkStore

__all__ = ["ShorteningService", "RedirectResolver", "validate_original_url"]

ALLOWED_SCHEMES = ("http://", "https://")

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "swiftlink_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "swiftlink_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
CODE_COLLISIONS_TOTAL = Counter(
    "swiftlink_code_collisions_total",
    "Candidate short codes rejected because they were already taken",
)
COLLISION_CHECKS_SKIPPED_TOTAL = Counter(
    "swiftlink_collision_checks_skipped_total",
    "Collision checks skipped because the store was unreachable",
)
LINK_RESOLUTION_REQUESTS_TOTAL = Counter(
    "swiftlink_resolution_requests_total",
    "Total link resolution requests",
    ["status", "cache_hit"],
)
LINK_RESOLUTION_DURATION = Histogram(
    "swiftlink_resolution_duration_seconds",
    "Time taken to resolve short codes",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CLICK_INCREMENTS_TOTAL = Counter(
    "swiftlink_click_increments_total",
    "Click counter increments issued against the store",
    ["outcome"],
)


def validate_original_url(original_url: object) -> str:
    if not isinstance(original_url, str) or not original_url:
        raise InvalidInputError("Invalid URL format")
    if not original_url.startswith(ALLOWED_SCHEMES):
        raise InvalidInputError("URL must start with http:// or https://")
    return original_url


class ShorteningService:
    """Validates URLs, allocates non-colliding codes and writes link records.

    Example:
        >>> service = ShorteningService(store, cache)
        >>> code = await service.shorten("https://example.com/a/very/long/path")
        >>> len(code)
        6
    """

    def __init__(
        self,
        store: LinkStore,
        cache: LocalCache,
        code_generator: CodeGenerator = generate_short_code,
        max_attempts: int = 2,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        assert max_attempts > 0, f"max_attempts must be positive, got {max_attempts!r}"
        self._store = store
        self._cache = cache
        self._generate = code_generator
        self._max_attempts = max_attempts
        self._logger = logger or logging.getLogger("swiftlink")

    async def shorten(self, original_url: str) -> str:
        """Create a link record for ``original_url`` and return its short code.

        Raises:
            InvalidInputError: The URL is empty or not http(s); nothing is written.
            CodeAllocationError: Every candidate code was already taken.
            StoreUnavailableError: The write could neither land nor be queued.
        """
        start_time = time.perf_counter()
        try:
            validate_original_url(original_url)
        except InvalidInputError as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(
                f"Rejected URL {original_url!r}: {exc}",
                extra={"operation": "shorten", "error": str(exc)},
            )
            raise

        try:
            short_code = await self._allocate_code()
            try:
                await self._store.put(short_code, LinkRecord.new(short_code, original_url))
            except StoreConnectionError as exc:
                raise StoreUnavailableError(f"Could not persist or queue link {short_code}") from exc
            self._cache.put(short_code, original_url)
        except Exception as exc:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Link creation failed: {exc}", extra={"operation": "shorten", "error": str(exc)})
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(
            f"Link created: {short_code} -> {original_url}",
            extra={"operation": "shorten", "short_code": short_code},
        )
        return short_code

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        try:
            return await self._store.list_recent(limit)
        except StoreConnectionError as exc:
            raise OfflineError("Store unreachable while listing links") from exc

    async def _allocate_code(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            candidate = self._generate()
            try:
                taken = await self._store.exists(candidate)
            except StoreConnectionError as exc:
                COLLISION_CHECKS_SKIPPED_TOTAL.inc()
                self._logger.warning(
                    f"Skipping collision check for {candidate}, store unreachable: {exc}",
                    extra={"operation": "shorten", "short_code": candidate},
                )
                return candidate
            if not taken:
                return candidate
            CODE_COLLISIONS_TOTAL.inc()
            self._logger.info(
                f"Short code collision on {candidate} (attempt {attempt}/{self._max_attempts})",
                extra={"operation": "shorten", "short_code": candidate},
            )
        raise CodeAllocationError(f"No free short code after {self._max_attempts} attempts")


class RedirectResolver:
    """Resolves short codes to URLs and records one visit per resolution.

    Example:
        >>> resolver = RedirectResolver(store, cache)
        >>> await resolver.resolve("aB3xY9")
        'https://example.com/a/very/long/path'
    """

    def __init__(
        self,
        store: LinkStore,
        cache: LocalCache,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._logger = logger or logging.getLogger("swiftlink")
        self._background: set[asyncio.Task[None]] = set()

    @property
    def pending_increments(self) -> int:
        return len(self._background)

    async def resolve(self, short_code: str, *, defer_increment: bool = False) -> str:
        """Return the original URL for ``short_code`` and count the visit.

        On a cache hit the increment is detached and its failure only logged.
        On a cache miss the increment is awaited unless ``defer_increment`` is set.

        Raises:
            NotFoundError: The store is reachable and has no such code.
            OfflineError: The store could not be reached.
        """
        start_time = time.perf_counter()

        cached_url = self._cache.get(short_code)
        if cached_url is not None:
            self._spawn_increment(short_code)
            self._record_resolution(RequestStatus.SUCCESS, CacheStatus.HIT, start_time)
            self._logger.debug(f"Cache hit for {short_code}", extra={"operation": "resolve", "short_code": short_code})
            return cached_url

        try:
            record = await self._store.get(short_code)
        except StoreConnectionError as exc:
            self._record_resolution(RequestStatus.OFFLINE, CacheStatus.MISS, start_time)
            raise OfflineError(f"Could not verify {short_code}: store unreachable") from exc

        if record is None:
            self._record_resolution(RequestStatus.NOT_FOUND, CacheStatus.MISS, start_time)
            self._logger.info(f"Short code not found: {short_code}", extra={"operation": "resolve", "short_code": short_code})
            raise NotFoundError(short_code)

        self._cache.put(short_code, record.original_url)

        if defer_increment:
            self._spawn_increment(short_code)
        else:
            try:
                await self._store.increment_clicks(short_code)
            except StoreConnectionError as exc:
                CLICK_INCREMENTS_TOTAL.labels(outcome=ClickOutcome.FAILED).inc()
                self._record_resolution(RequestStatus.OFFLINE, CacheStatus.MISS, start_time)
                raise OfflineError(f"Could not record visit to {short_code}: store unreachable") from exc
            CLICK_INCREMENTS_TOTAL.labels(outcome=ClickOutcome.RECORDED).inc()

        self._record_resolution(RequestStatus.SUCCESS, CacheStatus.MISS, start_time)
        return record.original_url

    async def lookup(self, short_code: str) -> LinkRecord:
        """Fetch the stored record without counting a visit."""
        try:
            record = await self._store.get(short_code)
        except StoreConnectionError as exc:
            raise OfflineError(f"Could not verify {short_code}: store unreachable") from exc
        if record is None:
            raise NotFoundError(short_code)
        return record

    async def drain(self) -> None:
        """Wait for every detached increment spawned so far."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _spawn_increment(self, short_code: str) -> None:
        task = asyncio.create_task(self._increment_detached(short_code), name=f"increment:{short_code}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _increment_detached(self, short_code: str) -> None:
        try:
            await self._store.increment_clicks(short_code)
        except Exception as exc:
            CLICK_INCREMENTS_TOTAL.labels(outcome=ClickOutcome.FAILED).inc()
            self._logger.warning(
                f"Detached click increment failed for {short_code}: {exc}",
                extra={"operation": "increment_clicks", "short_code": short_code},
            )
            return
        CLICK_INCREMENTS_TOTAL.labels(outcome=ClickOutcome.RECORDED).inc()

    @staticmethod
    def _record_resolution(status: RequestStatus, cache_hit: CacheStatus, start_time: float) -> None:
        LINK_RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        LINK_RESOLUTION_REQUESTS_TOTAL.labels(status=status, cache_hit=cache_hit).inc()
