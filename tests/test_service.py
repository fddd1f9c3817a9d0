"""Service factory and service manager tests."""

from pathlib import Path

import pytest

from swiftlink.cache import JsonFileCache
from swiftlink.config import Settings
from swiftlink.dependencies import ServiceManager, _service_manager
from swiftlink.enums import ServiceMode, StoreBackend
from swiftlink.queued_store import QueuedLinkStore
from swiftlink.service import build_services, build_store
from swiftlink.sql_store import SqlLinkStore
from swiftlink.store import MemoryLinkStore
from swiftlink.url_service import RedirectResolver, ShorteningService


@pytest.mark.asyncio
async def test_build_store_memory_with_queue() -> None:
    store = await build_store(Settings(STORE_BACKEND=StoreBackend.MEMORY, OFFLINE_QUEUE_ENABLED=True, OFFLINE_QUEUE_PATH=""))
    assert isinstance(store, QueuedLinkStore)
    assert isinstance(store.inner, MemoryLinkStore)


@pytest.mark.asyncio
async def test_build_store_sql_creates_schema(tmp_path: Path) -> None:
    settings = Settings(
        STORE_BACKEND=StoreBackend.SQL,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'links.db'}",
        OFFLINE_QUEUE_ENABLED=False,
    )
    store = await build_store(settings)
    try:
        assert isinstance(store, SqlLinkStore)
        assert await store.list_recent(5) == []
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_build_services_direct_mode(tmp_path: Path) -> None:
    settings = Settings(
        STORE_BACKEND=StoreBackend.MEMORY,
        LOCAL_CACHE_PATH=str(tmp_path / "cache.json"),
        SHORT_CODE_LENGTH=8,
    )
    services = await build_services(settings)

    assert services.mode == ServiceMode.DIRECT
    assert isinstance(services.shortener, ShorteningService)
    assert isinstance(services.resolver, RedirectResolver)
    assert isinstance(services.cache, JsonFileCache)

    code = await services.shortener.shorten("https://example.com")
    assert len(code) == 8
    assert await services.resolver.resolve(code) == "https://example.com"
    assert await services.ping()
    await services.close()


def test_service_manager_is_singleton() -> None:
    assert ServiceManager() is _service_manager


@pytest.mark.asyncio
async def test_service_manager_starts_and_stops_flusher() -> None:
    settings = Settings(
        STORE_BACKEND=StoreBackend.MEMORY, LOCAL_CACHE_PATH="", OFFLINE_QUEUE_ENABLED=True, OFFLINE_QUEUE_PATH=""
    )
    manager = ServiceManager()

    await manager.initialize(settings=settings)
    try:
        assert isinstance(manager.services.store, QueuedLinkStore)
        assert manager._flusher is not None
        assert not manager._flusher.done()
    finally:
        await manager.cleanup()

    assert manager._flusher.done()
    assert not manager.initialized


@pytest.mark.asyncio
async def test_build_store_queue_journal_path(tmp_path: Path) -> None:
    journal = tmp_path / "queue.json"
    store = await build_store(Settings(STORE_BACKEND=StoreBackend.MEMORY, OFFLINE_QUEUE_PATH=str(journal)))

    assert isinstance(store, QueuedLinkStore)
    assert store.journal_path == journal
