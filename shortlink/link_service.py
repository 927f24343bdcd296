"""Link Service Layer - Creation, Statistics and Health

This module owns the creation flow and the read-only statistics and health
queries. Redirect resolution lives in ``shortlink.resolver``.

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │  POST /api  │
    │ /v1/shorten │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL │──── bad ───► ValidationError (400)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Custom code  │──── bad ───► ValidationError (400)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Parse expiry │──── bad ───► ValidationError (400)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Custom code  │
    │ or generate  │──── down ──► GenerationError (500)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ store.insert │──── dup ───► custom: DuplicateCodeError (409)
    │              │              generated: retry with a new code
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Prime cache  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ CreatedLink  │
    └─────────────┘

Key Behaviours
===============
- The returned code is persisted before this method returns.
- A duplicate custom code is the caller's problem and is never retried.
- Generated codes are retried up to CODE_MAX_ATTEMPTS times on a duplicate;
  random codes can collide, and a sequential value can already be taken by a
  custom code.
"""

import datetime
import logging
import re
import time
from dataclasses import dataclass

import validators
from prometheus_client import Counter, Histogram

from shortlink.cache import LinkCache
from shortlink.codes import CodeGenerator
from shortlink.config import Settings
from shortlink.enums import HealthStatus, RequestStatus
from shortlink.exceptions import (
    DuplicateCodeError,
    GenerationError,
    NotFoundError,
    ShortLinkError,
    StoreError,
    ValidationError,
)
from shortlink.resolver import RESERVED_PATHS, utc_now
from shortlink.store import LinkRecord, LinkStats, LinkStore, as_utc

__all__ = ["CreatedLink", "HealthReport", "LinkService", "parse_expiration"]

CUSTOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
# Codes that would be shadowed by fixed routes.
RESERVED_CODES = RESERVED_PATHS | {"api", "health", "metrics", "docs", "redoc"}

LINK_CREATIONS_TOTAL = Counter(
    "shortlink_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


@dataclass(frozen=True)
class CreatedLink:
    code: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None


@dataclass(frozen=True)
class HealthReport:
    status: HealthStatus
    database: str
    cache_size: int
    total_links: int
    uptime_seconds: float
    version: str
    timestamp: int


def parse_expiration(value: str | None) -> datetime.datetime | None:
    """Parse an RFC 3339 / ISO 8601 timestamp that carries a UTC offset.

    Returns the instant in UTC, or None when ``value`` is empty.

    Raises:
        ValidationError: If the value is malformed or has no offset.
    """
    if not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("Invalid expiration date") from exc
    if parsed.tzinfo is None:
        raise ValidationError("Invalid expiration date: a UTC offset is required")
    return as_utc(parsed)


class LinkService:
    """Creation, statistics and health for short links.

    Example:
        >>> service = LinkService(store, cache, generator, settings)
        >>> link = await service.create_link("https://example.com/a")
        >>> link.short_url
        'http://localhost:8080/1'
    """

    def __init__(
        self,
        store: LinkStore,
        cache: LinkCache,
        generator: CodeGenerator,
        settings: Settings,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._generator = generator
        self._settings = settings
        self._logger = logger or logging.getLogger("shortlink.service")
        self._started = time.monotonic()

    async def create_link(
        self,
        original_url: str,
        custom_code: str | None = None,
        expires_at: str | None = None,
    ) -> CreatedLink:
        """Validate, persist and cache a new mapping.

        Args:
            original_url: Absolute destination URL.
            custom_code: Optional caller-chosen code.
            expires_at: Optional RFC 3339 expiry instant.

        Returns:
            CreatedLink: The persisted mapping and its canonical short URL.

        Raises:
            ValidationError: Bad URL, custom code or expiry.
            DuplicateCodeError: ``custom_code`` is already taken.
            GenerationError: No code could be produced.
            StoreError: The store failed.
        """
        start_time = time.perf_counter()
        try:
            # Single-label hosts (localhost, intranet) and bare query keys are well-formed.
            if not original_url or not validators.url(original_url, simple_host=True, strict_query=False):
                raise ValidationError("Invalid URL")
            if custom_code:
                self._validate_custom_code(custom_code)
            expiry = parse_expiration(expires_at)

            record = await self._insert(original_url, custom_code, expiry)
            self._cache.put(record.code, record.original_url)
        except ShortLinkError as exc:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)
            LINK_CREATIONS_TOTAL.labels(status=self._status_for(exc)).inc()
            if exc.status_code >= 500:
                self._logger.error(f"Link creation error: {exc}")
            else:
                self._logger.warning(f"Link creation rejected: {exc}")
            raise

        duration = time.perf_counter() - start_time
        LINK_CREATION_DURATION.observe(duration)
        LINK_CREATIONS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Link created: {record.code} -> {record.original_url} in {duration:.3f}s")
        return CreatedLink(
            code=record.code,
            short_url=f"{self._settings.BASE_URL.rstrip('/')}/{record.code}",
            original_url=record.original_url,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )

    async def get_stats(self, code: str) -> LinkStats:
        stats = await self._store.stats(code)
        if stats is None:
            raise NotFoundError("Short URL not found")
        return stats

    async def health(self) -> HealthReport:
        database = "up"
        total_links = 0
        try:
            await self._store.ping()
            total_links = await self._store.count()
        except StoreError as exc:
            self._logger.error(f"Database health check failed: {exc}")
            database = "down"

        return HealthReport(
            status=HealthStatus.HEALTHY if database == "up" else HealthStatus.UNHEALTHY,
            database=database,
            cache_size=len(self._cache),
            total_links=total_links,
            uptime_seconds=round(time.monotonic() - self._started, 3),
            version=self._settings.APP_VERSION,
            timestamp=int(utc_now().timestamp()),
        )

    async def _insert(
        self, original_url: str, custom_code: str | None, expiry: datetime.datetime | None
    ) -> LinkRecord:
        if custom_code:
            code = await self._generator.next(custom_code)
            return await self._store.insert(code, original_url, expiry)

        attempts = self._settings.CODE_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            code = await self._generator.next()
            try:
                return await self._store.insert(code, original_url, expiry)
            except DuplicateCodeError:
                self._logger.warning(f"Generated code {code} already taken (attempt {attempt}/{attempts})")
        raise GenerationError(f"No free code after {attempts} attempts")

    def _validate_custom_code(self, code: str) -> None:
        max_length = self._settings.CUSTOM_CODE_MAX_LENGTH
        if len(code) > max_length:
            raise ValidationError(f"Custom code must be at most {max_length} characters")
        if not CUSTOM_CODE_PATTERN.match(code):
            raise ValidationError("Custom code may only contain letters, digits, '-' and '_'")
        if code in RESERVED_CODES:
            raise ValidationError(f"Custom code '{code}' is reserved")

    @staticmethod
    def _status_for(exc: ShortLinkError) -> RequestStatus:
        if isinstance(exc, ValidationError):
            return RequestStatus.VALIDATION_ERROR
        if isinstance(exc, DuplicateCodeError):
            return RequestStatus.CONFLICT
        return RequestStatus.ERROR
