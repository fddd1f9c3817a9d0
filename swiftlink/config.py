"""Configuration management for the SwiftLink URL shortener.

All runtime knobs (service mode, store backend, code length, cache path and
offline queue) are read from the environment or a .env file, once per process.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from swiftlink.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    store_backend = settings.STORE_BACKEND

**Step 3 — Override for a single process**::
    settings = get_settings().model_copy(update={"STORE_BACKEND": StoreBackend.MEMORY})

Key Behaviours
===============
- get_settings() builds Settings once; later calls return the same object.
- Names are case-sensitive upper-case; unset names keep the defaults below.
- SERVICE_MODE selects direct-store or backend-mediated operation.
- An empty LOCAL_CACHE_PATH keeps the local cache in memory only.
- An empty OFFLINE_QUEUE_PATH keeps queued writes in memory only.

Classes:
    Settings:  Every SwiftLink configuration value.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from swiftlink.enums import ServiceMode, StoreBackend


class Settings(BaseSettings):
    APP_NAME: str = "swiftlink"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    # Direct-store vs backend-mediated operation
    SERVICE_MODE: ServiceMode = ServiceMode.DIRECT
    BACKEND_URL: str = "http://localhost:5000"
    BACKEND_TIMEOUT_SECONDS: float = 5.0

    # Durable store
    STORE_BACKEND: StoreBackend = StoreBackend.SQL
    DATABASE_URL: str = "postgresql+asyncpg://swiftlink:swiftlink@db:5432/swiftlink"
    DATABASE_ECHO: bool = False
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_KEY_PREFIX: str = "links"

    # Short code allocation
    SHORT_CODE_LENGTH: int = Field(6, ge=1)
    SHORT_CODE_MAX_ATTEMPTS: int = Field(2, ge=1)

    # Local cache (code -> url), persisted as JSON
    LOCAL_CACHE_PATH: str = ".swiftlink_cache.json"

    # Degraded-mode write queue
    OFFLINE_QUEUE_ENABLED: bool = True
    OFFLINE_QUEUE_MAX_SIZE: int = Field(1000, ge=1)
    OFFLINE_QUEUE_PATH: str = ".swiftlink_queue.json"
    OFFLINE_FLUSH_INTERVAL_SECONDS: float = 5.0

    # Listing
    LIST_LIMIT: int = Field(50, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
