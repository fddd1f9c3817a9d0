"""Write-behind queue that keeps link creation available while the store is down.

:class:`QueuedLinkStore` wraps any :class:`~swiftlink.store.LinkStore`. Reads
and increments go straight to the wrapped store; when a ``put`` fails with a
connectivity error the record is parked in a queue and replayed later, so the
caller gets its short code without waiting for durability. With a journal path
the queue is mirrored to a JSON file and reloaded on start-up.

Flow Diagram — put() and flush()
================================
::
    ┌─────────────┐
    │ put(code,   │
    │ record)     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ inner.put() │
    └──────┬──────┘
    OK?   │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Queue   │  │ Done    │
│ full?   │  └─────────┘
└────┬────┘
 NO  │  YES ─▶ StoreUnavailableError
     ▼
┌─────────┐        ┌──────────────┐
│ Append  │ ─────▶ │ flush() loop │ ─▶ inner.put() in FIFO order,
│ pending │        │ (background) │    stop at first failure
└─────────┘        └──────────────┘

Key Behaviours
===============
- Pending records are visible to exists(), get() and list_recent(); their
  created_at stays None until the write lands.
- Increments of a pending record are applied to the queued copy, so they are
  persisted together with it.
- Only one flush runs at a time; records are replayed in creation order.
- With a journal, every change to the queue rewrites the file atomically, so
  pending writes survive a restart and are flushed by the next process.
- Without a journal the queue lives in process memory only.
"""

import asyncio
import logging
import os
from collections import OrderedDict
from pathlib import Path

from prometheus_client import Gauge
from pydantic import ValidationError

from swiftlink.cache import read_json_object, write_json_atomic
from swiftlink.exceptions import StoreConnectionError, StoreUnavailableError
from swiftlink.schemas import LinkRecord
from swiftlink.store import LinkStore

__all__ = ["QueuedLinkStore"]

logger = logging.getLogger("swiftlink")

PENDING_WRITES = Gauge(
    "swiftlink_pending_writes",
    "Link writes queued while the durable store is unreachable",
)


class QueuedLinkStore(LinkStore):
    def __init__(
        self,
        inner: LinkStore,
        max_pending: int = 1000,
        journal_path: str | os.PathLike[str] | None = None,
    ) -> None:
        assert max_pending > 0, f"max_pending must be positive, got {max_pending!r}"
        self._inner = inner
        self._max_pending = max_pending
        self._journal = Path(journal_path) if journal_path else None
        self._pending: OrderedDict[str, LinkRecord] = self._load_journal()
        self._flush_lock = asyncio.Lock()
        PENDING_WRITES.set(len(self._pending))
        if self._pending:
            logger.warning(f"Reloaded {len(self._pending)} queued writes from {self._journal}")

    @property
    def inner(self) -> LinkStore:
        return self._inner

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_codes(self) -> list[str]:
        return list(self._pending)

    @property
    def journal_path(self) -> Path | None:
        return self._journal

    def _load_journal(self) -> OrderedDict[str, LinkRecord]:
        pending: OrderedDict[str, LinkRecord] = OrderedDict()
        if self._journal is None:
            return pending
        for short_code, raw in read_json_object(self._journal, "Offline queue journal").items():
            try:
                pending[short_code] = LinkRecord.model_validate(raw)
            except ValidationError as exc:
                logger.warning(f"Dropping unreadable queued write for {short_code}: {exc}")
        return pending

    def _save_journal(self) -> None:
        if self._journal is None:
            return
        entries = {code: record.model_dump(mode="json", by_alias=True) for code, record in self._pending.items()}
        try:
            write_json_atomic(self._journal, entries)
        except OSError as exc:
            logger.error(f"Could not write offline queue journal {self._journal}: {exc}")

    async def exists(self, short_code: str) -> bool:
        if short_code in self._pending:
            return True
        return await self._inner.exists(short_code)

    async def get(self, short_code: str) -> LinkRecord | None:
        pending = self._pending.get(short_code)
        if pending is not None:
            return pending.model_copy()
        return await self._inner.get(short_code)

    async def put(self, short_code: str, record: LinkRecord) -> None:
        try:
            await self._inner.put(short_code, record)
        except StoreConnectionError as exc:
            if short_code not in self._pending and len(self._pending) >= self._max_pending:
                raise StoreUnavailableError(
                    f"Store unreachable and {self._max_pending} writes already queued"
                ) from exc
            self._pending[short_code] = record.model_copy(update={"short_code": short_code, "created_at": None})
            self._save_journal()
            PENDING_WRITES.set(len(self._pending))
            logger.warning(
                f"Store unreachable, queued write for {short_code} ({len(self._pending)} pending)",
                extra={"operation": "queue_write", "short_code": short_code},
            )

    async def increment_clicks(self, short_code: str) -> None:
        pending = self._pending.get(short_code)
        if pending is not None:
            pending.clicks += 1
            self._save_journal()
            return
        await self._inner.increment_clicks(short_code)

    async def list_recent(self, limit: int) -> list[LinkRecord]:
        queued = [r.model_copy() for r in reversed(self._pending.values())][:limit]
        if len(queued) >= limit:
            return queued
        stored = await self._inner.list_recent(limit)
        seen = {r.short_code for r in queued}
        return (queued + [r for r in stored if r.short_code not in seen])[:limit]

    async def flush(self) -> int:
        """Replay queued writes in order; returns how many landed."""
        flushed = 0
        async with self._flush_lock:
            while self._pending:
                short_code, record = next(iter(self._pending.items()))
                snapshot = record.model_copy()
                try:
                    await self._inner.put(short_code, snapshot)
                except StoreConnectionError:
                    logger.info(f"Store still unreachable, {len(self._pending)} writes remain queued")
                    break
                # An increment may have landed on the queued copy during the await.
                current = self._pending.pop(short_code)
                if current.clicks > snapshot.clicks:
                    self._pending[short_code] = current
                    self._pending.move_to_end(short_code, last=False)
                    continue
                flushed += 1
            PENDING_WRITES.set(len(self._pending))
            if flushed:
                self._save_journal()
        if flushed:
            logger.info(f"Flushed {flushed} queued writes", extra={"operation": "flush_queue"})
        return flushed

    async def run_flusher(self, interval_seconds: float) -> None:
        """Flush periodically until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            if self._pending:
                await self.flush()

    async def ping(self) -> bool:
        return await self._inner.ping()

    async def close(self) -> None:
        if self._pending:
            await self.flush()
        if self._pending:
            where = f"kept in {self._journal}" if self._journal else "lost"
            logger.error(f"Closing store with {len(self._pending)} unflushed writes ({where})")
        await self._inner.close()
