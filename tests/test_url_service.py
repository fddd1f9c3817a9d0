"""Shortening service and redirect resolver tests against an in-memory store."""

import asyncio
from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest

from swiftlink.cache import LocalCache
from swiftlink.codegen import ALPHABET
from swiftlink.exceptions import (
    CodeAllocationError,
    InvalidInputError,
    NotFoundError,
    OfflineError,
    StoreConnectionError,
    StoreUnavailableError,
)
from swiftlink.schemas import LinkRecord
from swiftlink.url_service import RedirectResolver, ShorteningService, validate_original_url


def scripted(codes: list[str]) -> Iterator[str]:
    return iter(codes)


# ============================================================================
# SHORTENING
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    [
        "https://example.com",
        "http://example.com/a/b?c=d#e",
        "https://例え.jp/パス",
    ],
)
async def test_shorten_valid_url(store, cache: LocalCache, url: str) -> None:
    service = ShorteningService(store, cache)

    code = await service.shorten(url)

    assert len(code) == 6
    assert all(c in ALPHABET for c in code)
    record = await store.get(code)
    assert record.original_url == url
    assert record.clicks == 0
    assert record.owner is None
    assert cache.get(code) == url


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["", "ftp://x", "example.com", "HTTP://example.com", " https://example.com"])
async def test_shorten_invalid_url_writes_nothing(store, cache: LocalCache, url: str) -> None:
    service = ShorteningService(store, cache)

    with pytest.raises(InvalidInputError):
        await service.shorten(url)

    assert len(store) == 0
    assert len(cache) == 0


def test_validate_original_url_messages() -> None:
    with pytest.raises(InvalidInputError, match="Invalid URL format"):
        validate_original_url("")
    with pytest.raises(InvalidInputError, match="must start with http:// or https://"):
        validate_original_url("example.com")
    with pytest.raises(ValueError):
        validate_original_url(None)
    assert validate_original_url("https://example.com") == "https://example.com"


@pytest.mark.asyncio
async def test_shorten_retries_after_collision(store, cache: LocalCache) -> None:
    await store.put("TAKEN1", LinkRecord.new("TAKEN1", "https://example.com/existing"))
    codes = scripted(["TAKEN1", "FRESH1"])
    service = ShorteningService(store, cache, code_generator=lambda: next(codes))

    code = await service.shorten("https://example.com/new")

    assert code == "FRESH1"
    assert (await store.get("TAKEN1")).original_url == "https://example.com/existing"
    assert (await store.get("FRESH1")).original_url == "https://example.com/new"


@pytest.mark.asyncio
async def test_shorten_fails_when_every_candidate_collides(store, cache: LocalCache) -> None:
    await store.put("TAKEN1", LinkRecord.new("TAKEN1", "https://example.com/1"))
    await store.put("TAKEN2", LinkRecord.new("TAKEN2", "https://example.com/2"))
    codes = scripted(["TAKEN1", "TAKEN2"])
    service = ShorteningService(store, cache, code_generator=lambda: next(codes), max_attempts=2)

    with pytest.raises(CodeAllocationError):
        await service.shorten("https://example.com/new")

    assert (await store.get("TAKEN1")).original_url == "https://example.com/1"
    assert (await store.get("TAKEN2")).original_url == "https://example.com/2"


@pytest.mark.asyncio
async def test_shorten_skips_collision_check_when_store_offline(store, cache: LocalCache) -> None:
    class ExistsOffline(type(store)):
        async def exists(self, short_code: str) -> bool:
            raise StoreConnectionError("exists unavailable")

    flaky = ExistsOffline()
    service = ShorteningService(flaky, cache, code_generator=lambda: "OPTIM1")

    assert await service.shorten("https://example.com") == "OPTIM1"
    assert (await flaky.get("OPTIM1")).original_url == "https://example.com"


@pytest.mark.asyncio
async def test_shorten_write_failure_raises_unavailable(store, cache: LocalCache) -> None:
    service = ShorteningService(store, cache)
    store.online = False

    with pytest.raises(StoreUnavailableError):
        await service.shorten("https://example.com")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_list_recent_offline(store, cache: LocalCache) -> None:
    service = ShorteningService(store, cache)
    store.online = False
    with pytest.raises(OfflineError):
        await service.list_recent(10)


# ============================================================================
# RESOLUTION
# ============================================================================


@pytest.mark.asyncio
async def test_round_trip_counts_one_click(store) -> None:
    # Separate caches so resolution goes through the store.
    shortener = ShorteningService(store, LocalCache())
    resolver = RedirectResolver(store, LocalCache())
    url = "https://example.com/some/long/path?x=1&y=%20"

    code = await shortener.shorten(url)
    assert (await store.get(code)).clicks == 0

    assert await resolver.resolve(code) == url
    assert (await store.get(code)).clicks == 1


@pytest.mark.asyncio
async def test_concurrent_resolves_count_every_visit(store) -> None:
    shortener = ShorteningService(store, LocalCache())
    resolver = RedirectResolver(store, LocalCache())
    code = await shortener.shorten("https://example.com")

    results = await asyncio.gather(*(resolver.resolve(code) for _ in range(25)))
    await resolver.drain()

    assert results == ["https://example.com"] * 25
    assert (await store.get(code)).clicks == 25


@pytest.mark.asyncio
async def test_cached_code_resolves_while_store_offline(store, cache: LocalCache) -> None:
    shortener = ShorteningService(store, cache)
    resolver = RedirectResolver(store, cache)
    code = await shortener.shorten("https://example.com")

    store.online = False
    assert await resolver.resolve(code) == "https://example.com"

    # The detached increment fails quietly.
    await resolver.drain()
    assert resolver.pending_increments == 0


@pytest.mark.asyncio
async def test_cache_hit_increment_is_detached(store, cache: LocalCache) -> None:
    shortener = ShorteningService(store, cache)
    resolver = RedirectResolver(store, cache)
    code = await shortener.shorten("https://example.com")

    await resolver.resolve(code)
    await resolver.drain()

    assert (await store.get(code)).clicks == 1


@pytest.mark.asyncio
async def test_missing_code_with_store_reachable(store, cache: LocalCache) -> None:
    resolver = RedirectResolver(store, cache)
    with pytest.raises(NotFoundError):
        await resolver.resolve("nope00")


@pytest.mark.asyncio
async def test_uncached_code_with_store_offline(store, cache: LocalCache) -> None:
    await store.put("aB3xY9", LinkRecord.new("aB3xY9", "https://example.com"))
    resolver = RedirectResolver(store, cache)
    store.online = False

    with pytest.raises(OfflineError):
        await resolver.resolve("aB3xY9")
    with pytest.raises(OfflineError):
        await resolver.resolve("nope00")


@pytest.mark.asyncio
async def test_awaited_increment_failure_is_offline(store, cache: LocalCache) -> None:
    await store.put("aB3xY9", LinkRecord.new("aB3xY9", "https://example.com"))
    resolver = RedirectResolver(store, cache)
    # Reads succeed but the click write cannot reach the store.
    store.increment_clicks = AsyncMock(side_effect=StoreConnectionError("store is offline"))

    with pytest.raises(OfflineError, match="Could not record visit"):
        await resolver.resolve("aB3xY9")

    store.increment_clicks.assert_awaited_once_with("aB3xY9")
    assert resolver.pending_increments == 0
    assert (await store.get("aB3xY9")).clicks == 0


@pytest.mark.asyncio
async def test_store_hit_populates_cache(store, cache: LocalCache) -> None:
    await store.put("aB3xY9", LinkRecord.new("aB3xY9", "https://example.com"))
    resolver = RedirectResolver(store, cache)

    await resolver.resolve("aB3xY9")

    assert cache.get("aB3xY9") == "https://example.com"


@pytest.mark.asyncio
async def test_deferred_increment_lands_after_drain(store, cache: LocalCache) -> None:
    await store.put("aB3xY9", LinkRecord.new("aB3xY9", "https://example.com"))
    resolver = RedirectResolver(store, cache)

    assert await resolver.resolve("aB3xY9", defer_increment=True) == "https://example.com"
    await resolver.drain()

    assert (await store.get("aB3xY9")).clicks == 1


@pytest.mark.asyncio
async def test_lookup_does_not_count(store, cache: LocalCache) -> None:
    await store.put("aB3xY9", LinkRecord.new("aB3xY9", "https://example.com"))
    resolver = RedirectResolver(store, cache)

    record = await resolver.lookup("aB3xY9")

    assert record.clicks == 0
    assert (await store.get("aB3xY9")).clicks == 0
    with pytest.raises(NotFoundError):
        await resolver.lookup("nope00")
