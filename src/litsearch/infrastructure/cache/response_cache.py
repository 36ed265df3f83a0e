"""
Response Cache - write-once JSON store for raw API responses.

Raw search outcomes and ID-conversion results are kept per namespace
(``epmc_search_raw``, ``pm_ids_raw``, ...) in ``{cache_dir}/{namespace}.json``
so that a later run reuses them instead of hitting the APIs again.

Entries are write-once: an existing key is never overwritten. ``get_or_fetch``
guards each key with an asyncio.Lock so concurrent callers fetch it once.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    Namespaced, file-backed cache of JSON-serializable values.

    Usage:
        cache = ResponseCache("data/lit_search/raw")
        outcome = await cache.get_or_fetch("pm_search_raw", "ns_id", fetch)
        cache.save()
    """

    def __init__(self, cache_dir: str | Path | None = None):
        """
        Args:
            cache_dir: Directory for the JSON files. None keeps the cache in memory only.
        """
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self._data: dict[str, dict[str, Any]] = {}
        self._dirty: set[str] = set()
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0

        if self.cache_dir:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str) -> Path:
        assert self.cache_dir is not None
        return self.cache_dir / f"{namespace}.json"

    def _namespace(self, namespace: str) -> dict[str, Any]:
        """Entries of a namespace, loaded from disk on first access."""
        if namespace not in self._data:
            self._data[namespace] = self._load(namespace)
        return self._data[namespace]

    def _load(self, namespace: str) -> dict[str, Any]:
        if not self.cache_dir:
            return {}
        path = self._path(namespace)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load cache {path}, starting fresh: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring cache {path}: not a JSON object")
            return {}
        logger.info(f"Loaded {len(data)} cached entries from {path}")
        return data

    # ── Lookup ───────────────────────────────────────────────────────────

    def get(self, namespace: str, key: str) -> Any | None:
        value = self._namespace(namespace).get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
            logger.debug(f"Cache hit: {namespace}/{key}")
        return value

    def get_many(self, namespace: str, keys: list[str]) -> tuple[dict[str, Any], list[str]]:
        """Returns (cached values by key, missing keys)."""
        entries = self._namespace(namespace)
        cached = {k: entries[k] for k in keys if k in entries}
        missing = [k for k in keys if k not in entries]
        self._hits += len(cached)
        self._misses += len(missing)
        return cached, missing

    # ── Store ────────────────────────────────────────────────────────────

    def set(self, namespace: str, key: str, value: Any) -> bool:
        """
        Store a value unless the key is already present.

        Returns:
            True if the value was stored, False if the key already existed
        """
        entries = self._namespace(namespace)
        if key in entries:
            return False
        entries[key] = value
        self._dirty.add(namespace)
        return True

    async def get_or_fetch(
        self,
        namespace: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        store_if: Callable[[Any], bool] | None = None,
    ) -> Any:
        """
        Return the cached value, or await ``fetch()`` and store its result.

        Args:
            namespace: Cache namespace
            key: Entry key
            fetch: Coroutine factory producing the value
            store_if: Predicate deciding whether a fetched value is cached
        """
        lock = self._locks.setdefault((namespace, key), asyncio.Lock())
        async with lock:
            cached = self.get(namespace, key)
            if cached is not None:
                return cached
            value = await fetch()
            if store_if is None or store_if(value):
                self.set(namespace, key, value)
            return value

    # ── Persistence ──────────────────────────────────────────────────────

    def save(self) -> list[Path]:
        """Write modified namespaces to disk. Returns the written files."""
        if not self.cache_dir:
            self._dirty.clear()
            return []
        written = []
        for namespace in sorted(self._dirty):
            path = self._path(namespace)
            path.write_text(
                json.dumps(self._data[namespace], indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            written.append(path)
            logger.debug(f"Saved {len(self._data[namespace])} entries to {path}")
        self._dirty.clear()
        return written

    def clear(self, namespace: str | None = None) -> None:
        """Drop entries in memory and on disk (one namespace or all)."""
        namespaces = [namespace] if namespace else list(self._data)
        if namespace is None and self.cache_dir:
            namespaces.extend(p.stem for p in self.cache_dir.glob("*.json") if p.stem not in namespaces)
        for ns in namespaces:
            self._data[ns] = {}
            self._dirty.discard(ns)
            if self.cache_dir:
                self._path(ns).unlink(missing_ok=True)

    @property
    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "namespaces": {ns: len(entries) for ns, entries in self._data.items()},
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{self._hits / total * 100:.1f}%" if total > 0 else "0%",
        }
