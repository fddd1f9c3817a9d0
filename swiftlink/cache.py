"""Local cache mirroring recently created or resolved links.

The local cache is a plain ``short_code -> original_url`` mapping that lives
next to the process (a browser's localStorage in spirit). It is a pure
performance and availability optimization: absence from the cache never implies
absence from the durable store, and click counts are never cached.

Flow Diagram — JsonFileCache.put()
==================================
::
    ┌─────────────┐
    │ put(code,   │
    │ url)        │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Update      │
    │ in-memory   │
    │ dict        │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Write temp  │
    │ file (JSON) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ os.replace  │
    │ (atomic)    │
    └─────────────┘

How to Use
===========
**Step 1 — Open the persisted cache**::
    cache = JsonFileCache(".swiftlink_cache.json")

**Step 2 — Read and write**::
    cache.put("aB3xY9", "https://example.com")
    cache.get("aB3xY9")  # "https://example.com"
    cache.get("zzzzzz")  # None

Key Behaviours
===============
- Operations are synchronous; they never suspend the event loop.
- Unbounded, no eviction, no expiry.
- A missing file starts an empty cache; a corrupt file is logged and ignored.
- Every put rewrites the file through a temporary file and os.replace, so a
  crash never leaves a half-written cache behind.

Classes:
    LocalCache:  In-memory cache, also the base for persisted variants.
    JsonFileCache:  Cache persisted as a JSON object on disk.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

__all__ = ["LocalCache", "JsonFileCache", "open_local_cache", "read_json_object", "write_json_atomic"]

logger = logging.getLogger("swiftlink")


def read_json_object(path: Path, label: str) -> dict:
    """JSON object stored at ``path``; empty when the file is missing or unusable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning(f"{label} unreadable at {path}: {exc}")
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning(f"{label} at {path} is corrupt, starting empty: {exc}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"{label} at {path} is not a JSON object, starting empty")
        return {}
    return data


def write_json_atomic(path: Path, data: object) -> None:
    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class LocalCache:
    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})

    def get(self, short_code: str) -> str | None:
        return self._entries.get(short_code)

    def put(self, short_code: str, original_url: str) -> None:
        assert short_code, "short_code must be non-empty"
        self._entries[short_code] = original_url

    def __contains__(self, short_code: object) -> bool:
        return short_code in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCache(LocalCache):
    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        super().__init__(self._load())

    @property
    def path(self) -> Path:
        return self._path

    def put(self, short_code: str, original_url: str) -> None:
        if self._entries.get(short_code) == original_url:
            return
        super().put(short_code, original_url)
        self._save()

    def _load(self) -> dict[str, str]:
        data = read_json_object(self._path, "Local cache")
        return {str(code): url for code, url in data.items() if isinstance(url, str)}

    def _save(self) -> None:
        write_json_atomic(self._path, self._entries)


def open_local_cache(path: str | None) -> LocalCache:
    """Persisted cache at ``path``, or an in-memory cache when ``path`` is empty."""
    if not path:
        return LocalCache()
    return JsonFileCache(path)
