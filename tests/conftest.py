"""Shared pytest fixtures for store, service and API tests."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from swiftlink.cache import LocalCache
from swiftlink.config import Settings
from swiftlink.dependencies import _service_manager
from swiftlink.enums import StoreBackend
from swiftlink.exceptions import StoreConnectionError
from swiftlink.main import app
from swiftlink.schemas import LinkRecord
from swiftlink.service import LinkServices, build_services
from swiftlink.store import MemoryLinkStore


class SwitchableStore(MemoryLinkStore):
    """In-memory store that can be taken offline to simulate an unreachable backend."""

    def __init__(self) -> None:
        super().__init__()
        self.online = True

    def _check(self) -> None:
        if not self.online:
            raise StoreConnectionError("store is offline")

    async def exists(self, short_code: str) -> bool:
        self._check()
        return await super().exists(short_code)

    async def get(self, short_code: str) -> LinkRecord | None:
        self._check()
        return await super().get(short_code)

    async def put(self, short_code: str, record: LinkRecord) -> None:
        self._check()
        await super().put(short_code, record)

    async def increment_clicks(self, short_code: str) -> None:
        self._check()
        await super().increment_clicks(short_code)

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        self._check()
        return await super().list_recent(limit)

    async def ping(self) -> bool:
        return self.online


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        STORE_BACKEND=StoreBackend.MEMORY,
        LOCAL_CACHE_PATH="",
        OFFLINE_QUEUE_ENABLED=False,
    )


@pytest.fixture
def store() -> SwitchableStore:
    return SwitchableStore()


@pytest.fixture
def cache() -> LocalCache:
    return LocalCache()


@pytest_asyncio.fixture(scope="function")
async def services(test_settings: Settings, store: SwitchableStore, cache: LocalCache) -> LinkServices:
    return await build_services(test_settings, store=store, cache=cache)


@pytest_asyncio.fixture(scope="function")
async def client(test_settings: Settings, services: LinkServices) -> AsyncGenerator[AsyncClient, None]:
    await _service_manager.initialize(settings=test_settings, services=services)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await _service_manager.cleanup()
