"""Redirect resolution: code in, terminal outcome out.

State Machine
=============
::
    code ──► empty / favicon.ico? ── yes ──► RESERVED (static assets)
              │
              no
              ▼
         cache.get(code) ── hit ──► record click ──► REDIRECT(cached url)
              │
              miss
              ▼
         store.lookup(code) ── none ──► NOT_FOUND
              │
              found
              ▼
         now > expires_at? ── yes ──► EXPIRED   (no priming, no click)
              │
              no
              ▼
         cache.put(code, url) ──► record click ──► REDIRECT(url)

Expiry is only checked on the store path. A cache hit is served without it,
so a link cached before it expired keeps redirecting until evicted. That
staleness window is the documented behaviour; whether to close it by caching
expiry is a policy decision, not something to patch here.
"""

import datetime
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from prometheus_client import Counter, Histogram

from shortlink.accounting import ClickRecorder
from shortlink.cache import LinkCache
from shortlink.enums import CacheStatus, ResolutionOutcome
from shortlink.store import LinkStore

__all__ = ["RESERVED_PATHS", "Resolution", "Resolver", "utc_now"]

RESERVED_PATHS = frozenset({"", "favicon.ico"})

RESOLUTIONS_TOTAL = Counter(
    "shortlink_resolutions_total",
    "Redirect resolutions by outcome",
    ["outcome", "cache_hit"],
)
RESOLUTION_DURATION = Histogram(
    "shortlink_resolution_duration_seconds",
    "Time taken to resolve a code",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class Resolution:
    outcome: ResolutionOutcome
    code: str
    original_url: str | None = None
    from_cache: bool = False


class Resolver:
    def __init__(
        self,
        store: LinkStore,
        cache: LinkCache,
        clicks: ClickRecorder,
        clock: Callable[[], datetime.datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._clicks = clicks
        self._clock = clock
        self._logger = logger or logging.getLogger("shortlink.resolver")

    async def resolve(self, code: str) -> Resolution:
        if code in RESERVED_PATHS:
            return Resolution(ResolutionOutcome.RESERVED, code)

        start_time = time.perf_counter()
        cached_url = self._cache.get(code)
        if cached_url is not None:
            self._clicks.record(code)
            return self._finish(Resolution(ResolutionOutcome.REDIRECT, code, cached_url, from_cache=True), start_time)

        # StoreError propagates; nothing has touched the cache yet.
        target = await self._store.lookup(code)
        if target is None:
            return self._finish(Resolution(ResolutionOutcome.NOT_FOUND, code), start_time)

        if target.is_expired(self._clock()):
            return self._finish(Resolution(ResolutionOutcome.EXPIRED, code), start_time)

        self._cache.put(code, target.original_url)
        self._clicks.record(code)
        return self._finish(Resolution(ResolutionOutcome.REDIRECT, code, target.original_url), start_time)

    def _finish(self, resolution: Resolution, start_time: float) -> Resolution:
        duration = time.perf_counter() - start_time
        RESOLUTION_DURATION.observe(duration)
        cache_hit = CacheStatus.HIT if resolution.from_cache else CacheStatus.MISS
        RESOLUTIONS_TOTAL.labels(outcome=resolution.outcome, cache_hit=cache_hit).inc()
        self._logger.debug(f"Resolved {resolution.code} -> {resolution.outcome} in {duration:.4f}s")
        return resolution
