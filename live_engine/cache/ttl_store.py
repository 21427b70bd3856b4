"""
Live Engine — TTL Cache Store
──────────────────────────────
key → (payload, fetched_at) map with a freshness check.

  get(key)   payload only while fresh:  now - fetched_at < ttl
  peek(key)  the raw entry, fresh or not (last-known-good lookups)
  put(key)   always overwrites, fetched_at = now

Entries are replaced whole, never patched. The store is memory-resident
and owned by one Engine; nothing survives a restart.
When max_entries is set the least recently used entry is evicted first.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger("le.cache")

DEFAULT_TTL = 300


@dataclass(frozen=True)
class CacheEntry:
    key:        str
    payload:    Any
    fetched_at: float


class TTLCache:

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
        max_entries: Optional[int] = None,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            log.debug(f"miss {key}")
            return None
        if not self.is_fresh(entry, ttl):
            log.debug(f"stale {key} (age={self.age(key):.0f}s)")
            return None
        self._entries.move_to_end(key)
        return entry.payload

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=value, fetched_at=self._clock())
        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._evict()
        return entry

    def is_fresh(self, entry: CacheEntry, ttl: Optional[float] = None) -> bool:
        ttl = self.default_ttl if ttl is None else ttl
        return self._clock() - entry.fetched_at < ttl

    def age(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._clock() - entry.fetched_at

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self):
        self._entries.clear()

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def stats(self) -> Dict[str, Any]:
        return {
            "entries":     len(self._entries),
            "max_entries": self.max_entries,
            "default_ttl": self.default_ttl,
        }

    def _evict(self):
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            log.debug(f"evicted {key} (LRU, max={self.max_entries})")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
