from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .query_keys import QueryKey, is_prefix

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

Fetcher = Callable[[QueryKey], Any]


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    stale: bool = False


class QueryCache:
    """Client-side cache of server state, partitioned by query key.

    Data handed out or taken in is deep-copied, so callers can never mutate a
    partition behind the cache's back. Invalidation only marks entries stale;
    the next ``ensure`` (or ``refresh_stale``) refetches them through the
    registered fetcher.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.RLock()
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._fetchers: Dict[QueryKey, Fetcher] = {}
        self._clock = clock

    # -- plain access -----------------------------------------------------

    def get(self, key: QueryKey, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry.data) if entry is not None else default

    def has(self, key: QueryKey) -> bool:
        with self._lock:
            return key in self._entries

    def is_stale(self, key: QueryKey) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or entry.stale

    def keys(self) -> List[QueryKey]:
        with self._lock:
            return list(self._entries)

    def set(self, key: QueryKey, data_or_updater: Any) -> Any:
        """Write a partition.

        A callable receives a copy of the current data (``None`` when absent)
        and returns the new data. An updater returning ``None`` for an absent
        key leaves the key absent.
        """

        with self._lock:
            if callable(data_or_updater):
                entry = self._entries.get(key)
                current = copy.deepcopy(entry.data) if entry is not None else None
                data = data_or_updater(current)
                if data is None and entry is None:
                    return None
            else:
                data = data_or_updater
            self._entries[key] = CacheEntry(data=copy.deepcopy(data), updated_at=self._clock())
            return copy.deepcopy(data)

    def remove(self, prefix: QueryKey) -> List[QueryKey]:
        with self._lock:
            doomed = [k for k in self._entries if is_prefix(prefix, k)]
            for k in doomed:
                del self._entries[k]
            return doomed

    def invalidate(self, prefix: QueryKey) -> List[QueryKey]:
        with self._lock:
            marked = []
            for k, entry in self._entries.items():
                if is_prefix(prefix, k):
                    entry.stale = True
                    marked.append(k)
            if marked:
                logger.debug("Invalidated %s", marked)
            return marked

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    # -- snapshots ----------------------------------------------------------

    def snapshot(self, key: QueryKey) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry.data) if entry is not None else MISSING

    def restore(self, key: QueryKey, snapshot: Any) -> None:
        with self._lock:
            if snapshot is MISSING:
                self._entries.pop(key, None)
            else:
                self.set(key, copy.deepcopy(snapshot))

    # -- fetching -----------------------------------------------------------

    def register_fetcher(self, prefix: QueryKey, fetcher: Fetcher) -> None:
        with self._lock:
            self._fetchers[prefix] = fetcher

    def _fetcher_for(self, key: QueryKey) -> Optional[Fetcher]:
        best: Optional[QueryKey] = None
        for prefix in self._fetchers:
            if is_prefix(prefix, key) and (best is None or len(prefix) > len(best)):
                best = prefix
        return self._fetchers[best] if best is not None else None

    def fetch(self, key: QueryKey) -> Any:
        with self._lock:
            fetcher = self._fetcher_for(key)
        if fetcher is None:
            raise KeyError(f"No fetcher registered for {key!r}")
        data = fetcher(key)
        return self.set(key, data)

    def ensure(self, key: QueryKey) -> Any:
        """Cached data when fresh, otherwise refetch (stale-while-revalidate on read)."""

        if not self.is_stale(key):
            return self.get(key)
        return self.fetch(key)

    def refresh_stale(self) -> List[QueryKey]:
        """Background refresh: refetch every stale partition that has a fetcher."""

        with self._lock:
            stale = [k for k, e in self._entries.items() if e.stale and self._fetcher_for(k)]
        refreshed = []
        for k in stale:
            try:
                self.fetch(k)
                refreshed.append(k)
            except Exception:
                logger.warning("Background refresh of %s failed", k, exc_info=True)
        return refreshed
