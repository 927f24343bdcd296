"""Bounded in-process cache in front of the link store.

Only ``code -> original_url`` is kept. Expiry is not cached, so a
link that expires after it was cached keeps redirecting from here until the
entry is evicted; the store is the sole authority on expiry, and only on a
miss.

Cache Flow
==========
::
    get(code) ──► hit?  ── yes ──► original_url (entry becomes most recent)
                   │
                   no ──► None

    put(code, url) ──► key present? ── yes ──► overwrite, no eviction
                        │
                        no ──► full? ── yes ──► evict one (least recent)
                                 │
                                 └──────────► insert

Thread safety: one lock guards the map and is held for the dict access only.
Callers must never hold it across a store round-trip, and this class never
awaits.
"""

import logging
import threading
from collections import OrderedDict

from prometheus_client import Counter, Gauge

__all__ = ["DEFAULT_CACHE_CAPACITY", "LinkCache"]

DEFAULT_CACHE_CAPACITY = 1000

CACHE_HITS_TOTAL = Counter(
    "shortlink_cache_hits_total",
    "Total cache hits for code lookups",
)
CACHE_MISSES_TOTAL = Counter(
    "shortlink_cache_misses_total",
    "Total cache misses for code lookups",
)
CACHE_EVICTIONS_TOTAL = Counter(
    "shortlink_cache_evictions_total",
    "Total entries evicted to stay within capacity",
)
CACHE_SIZE = Gauge(
    "shortlink_cache_size",
    "Current number of cached codes",
)


class LinkCache:
    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY, logger: logging.Logger | None = None) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger("shortlink.cache")

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, code: str) -> str | None:
        with self._lock:
            original_url = self._entries.get(code)
            if original_url is not None:
                self._entries.move_to_end(code)
        if original_url is None:
            CACHE_MISSES_TOTAL.inc()
        else:
            CACHE_HITS_TOTAL.inc()
        return original_url

    def put(self, code: str, original_url: str) -> None:
        evicted = None
        with self._lock:
            if code in self._entries:
                self._entries[code] = original_url
                self._entries.move_to_end(code)
            else:
                if len(self._entries) >= self._capacity:
                    evicted, _ = self._entries.popitem(last=False)
                self._entries[code] = original_url
            size = len(self._entries)
        CACHE_SIZE.set(size)
        if evicted is not None:
            CACHE_EVICTIONS_TOTAL.inc()
            self._logger.debug(f"Evicted {evicted} to cache {code}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, code: object) -> bool:
        with self._lock:
            return code in self._entries
