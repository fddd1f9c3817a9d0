"""Process-wide link services and per-request context for FastAPI endpoints.

``ServiceManager`` owns everything that lives for the whole process (settings,
the ``swiftlink`` logger, the link services and the offline-queue flusher).
Endpoints receive a ``RequestContext`` built per request that exposes those
shared objects together with a logger bound to the request.

Lifecycle
=========
::
    lifespan startup ──▶ ServiceManager.initialize()
                           ├─ configure "swiftlink" logger
                           ├─ build_services(settings)
                           └─ start queue flusher (offline queue only)

    each request     ──▶ get_request_context()
                           └─ RequestContext(request id, client, logger)

    lifespan shutdown ─▶ ServiceManager.cleanup()
                           ├─ stop queue flusher
                           └─ LinkServices.close()
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from swiftlink.config import Settings, get_settings
from swiftlink.queued_store import QueuedLinkStore
from swiftlink.service import LinkServices, build_services

__all__ = ["ServiceManager", "RequestContext", "get_service_manager", "get_request_context"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logger(level: str) -> logging.Logger:
    logger = logging.getLogger("swiftlink")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger


class ServiceManager:
    """One per process; shared by every request."""

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, settings: Settings | None = None, services: LinkServices | None = None) -> None:
        """Build the shared services unless already running.

        Pass ``services`` to serve pre-built collaborators, such as an
        in-memory store in tests.
        """
        if self._initialized:
            return
        self.settings = settings or get_settings()
        self.logger = configure_logger(self.settings.LOG_LEVEL)
        self.services = services or await build_services(self.settings, logger=self.logger)
        self._flusher: asyncio.Task[None] | None = None
        if isinstance(self.services.store, QueuedLinkStore):
            self._flusher = asyncio.create_task(
                self.services.store.run_flusher(self.settings.OFFLINE_FLUSH_INTERVAL_SECONDS),
                name="swiftlink-queue-flusher",
            )
        self._initialized = True
        self.logger.info(f"SwiftLink services ready ({self.services.mode} mode)")

    async def cleanup(self) -> None:
        if not self._initialized:
            return
        if self._flusher is not None:
            self._flusher.cancel()
            try:
                await self._flusher
            except asyncio.CancelledError:
                pass
        await self.services.close()
        self._initialized = False
        self.logger.info("SwiftLink services stopped")


_service_manager = ServiceManager()


@dataclass
class RequestContext:
    """Shared services plus request-scoped identity for logging.

    Attributes:
        manager: The process-wide service manager.
        request_id: Taken from ``X-Request-ID`` when the client sends one.
        client_ip: Peer address, if known.
        user_agent: Client ``User-Agent`` header.
        tags: Labels the endpoint attaches for log filtering.
    """

    manager: ServiceManager
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    client_ip: str | None = None
    user_agent: str | None = None
    tags: list[str] = field(default_factory=list)
    started: float = field(default_factory=time.perf_counter)

    @property
    def services(self) -> LinkServices:
        return self.manager.services

    @property
    def settings(self) -> Settings:
        return self.manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(
            self.manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Milliseconds since the context was created."""
        return (time.perf_counter() - self.started) * 1000


async def get_service_manager() -> ServiceManager:
    if not _service_manager.initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    context = RequestContext(
        manager=manager,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    request_id = request.headers.get("x-request-id")
    if request_id:
        context.request_id = request_id
    return context
