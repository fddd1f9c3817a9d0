"""Backend-mediated implementations of the shortening and redirect contracts.

In backend mode the process never talks to the durable store. It calls a
SwiftLink HTTP backend instead and keeps only its own local cache.

Request Mapping
===============
::
    shorten(url)        POST /api/shorten {"originalUrl": url}
                          200 -> shortCode     400 -> InvalidInputError
                          other / transport    -> StoreUnavailableError
    resolve(code)       local cache hit -> detached GET /r/{code} (visit)
                        GET /r/{code} (no redirect following)
                          301/302/307/308 -> Location
                          404 -> NotFoundError
                          503 / transport  -> OfflineError
    lookup(code)        GET /api/stats/{code}
    list_recent(limit)  GET /api/list?limit=N

Key Behaviours
===============
- URLs are validated locally before any request is made.
- The backend counts the visit when it serves /r/{code}; on a local cache hit
  that request is issued as a detached task and its failure only logged.
"""

import asyncio
import logging

import httpx

from swiftlink.cache import LocalCache
from swiftlink.exceptions import (
    InvalidInputError,
    NotFoundError,
    OfflineError,
    ShortenerError,
    StoreUnavailableError,
)
from swiftlink.schemas import LinkRecord, ShortenResponse
from swiftlink.url_service import validate_original_url

__all__ = ["BackendShorteningService", "BackendRedirectResolver", "create_backend_client"]

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


def create_backend_client(base_url: str, timeout_seconds: float = 5.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, follow_redirects=False)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return f"HTTP {response.status_code}"


class BackendShorteningService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: LocalCache,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._logger = logger or logging.getLogger("swiftlink")

    async def shorten(self, original_url: str) -> str:
        validate_original_url(original_url)
        try:
            response = await self._client.post("/api/shorten", json={"originalUrl": original_url})
        except httpx.TransportError as exc:
            self._logger.error(f"Backend unreachable while shortening: {exc}", extra={"operation": "shorten"})
            raise StoreUnavailableError("Backend unreachable") from exc

        if response.status_code == 400:
            raise InvalidInputError(_error_message(response))
        if response.status_code != 200:
            raise StoreUnavailableError(f"Backend failed to shorten URL: {_error_message(response)}")

        created = ShortenResponse.model_validate(response.json())
        self._cache.put(created.short_code, created.original_url)
        self._logger.info(
            f"Link created via backend: {created.short_code}",
            extra={"operation": "shorten", "short_code": created.short_code},
        )
        return created.short_code

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        try:
            response = await self._client.get("/api/list", params={"limit": limit})
        except httpx.TransportError as exc:
            raise OfflineError("Backend unreachable while listing links") from exc
        if response.status_code == 503:
            raise OfflineError(_error_message(response))
        if response.status_code != 200:
            raise ShortenerError(f"Backend failed to list links: {_error_message(response)}")
        return [LinkRecord.model_validate(item) for item in response.json()]


class BackendRedirectResolver:
    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: LocalCache,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._logger = logger or logging.getLogger("swiftlink")
        self._background: set[asyncio.Task[None]] = set()

    @property
    def pending_increments(self) -> int:
        return len(self._background)

    async def resolve(self, short_code: str, *, defer_increment: bool = False) -> str:
        # The backend records the visit itself, so defer_increment has no effect here.
        cached_url = self._cache.get(short_code)
        if cached_url is not None:
            task = asyncio.create_task(self._record_visit(short_code), name=f"visit:{short_code}")
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            return cached_url

        response = await self._get(f"/r/{short_code}", short_code)
        if response.status_code in REDIRECT_STATUSES and "location" in response.headers:
            original_url = response.headers["location"]
            self._cache.put(short_code, original_url)
            return original_url
        if response.status_code == 404:
            raise NotFoundError(short_code)
        if response.status_code == 503:
            raise OfflineError(f"Backend could not verify {short_code}")
        raise ShortenerError(f"Backend failed to resolve {short_code}: HTTP {response.status_code}")

    async def lookup(self, short_code: str) -> LinkRecord:
        response = await self._get(f"/api/stats/{short_code}", short_code)
        if response.status_code == 404:
            raise NotFoundError(short_code)
        if response.status_code == 503:
            raise OfflineError(f"Backend could not verify {short_code}")
        if response.status_code != 200:
            raise ShortenerError(f"Backend failed to look up {short_code}: {_error_message(response)}")
        return LinkRecord.model_validate(response.json())

    async def drain(self) -> None:
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _get(self, path: str, short_code: str) -> httpx.Response:
        try:
            return await self._client.get(path)
        except httpx.TransportError as exc:
            raise OfflineError(f"Could not verify {short_code}: backend unreachable") from exc

    async def _record_visit(self, short_code: str) -> None:
        try:
            response = await self._client.get(f"/r/{short_code}")
        except Exception as exc:
            self._logger.warning(
                f"Detached visit for {short_code} failed: {exc}",
                extra={"operation": "increment_clicks", "short_code": short_code},
            )
            return
        if response.status_code not in REDIRECT_STATUSES:
            self._logger.warning(
                f"Detached visit for {short_code} not recorded: HTTP {response.status_code}",
                extra={"operation": "increment_clicks", "short_code": short_code},
            )
