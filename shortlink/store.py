"""Durable store for short links.

``LinkStore`` is the contract the core consumes; ``SQLAlchemyLinkStore`` is the
PostgreSQL (or SQLite, in tests) implementation. Each operation opens its own
session and is a single atomic statement or commit, so an abandoned request
can never leave a half-written row behind.

Store Operations
================
::
    insert(code, url, expires_at?)  -> LinkRecord       DuplicateCodeError
    lookup(code)                    -> LinkTarget | None
    increment_clicks(code)          -> None             StoreError
    stats(code)                     -> LinkStats | None
    next_sequence()                 -> int              StoreError
    count()                         -> int
    ping()                          -> None             StoreError

Any driver or connectivity failure is re-raised as ``StoreError``.
"""

import datetime
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from prometheus_client import Counter
from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shortlink.database import Database
from shortlink.exceptions import DuplicateCodeError, StoreError
from shortlink.models import SequenceCounter, ShortLink, code_sequence

__all__ = [
    "LinkRecord",
    "LinkStats",
    "LinkStore",
    "LinkTarget",
    "SQLAlchemyLinkStore",
    "as_utc",
    "is_unique_violation",
]

_counters = SequenceCounter.__table__

UNIQUE_VIOLATION = "23505"

DATABASE_READS_TOTAL = Counter(
    "shortlink_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "shortlink_database_writes_total",
    "Total database write operations",
)


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when ``exc`` is a unique-constraint violation rather than NOT NULL, CHECK or FK."""
    # asyncpg reports SQLSTATE 23505; SQLite only has the message.
    if getattr(exc.orig, "sqlstate", None) == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


@dataclass(frozen=True)
class LinkRecord:
    code: str
    original_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None


@dataclass(frozen=True)
class LinkTarget:
    original_url: str
    expires_at: datetime.datetime | None = None

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


@dataclass(frozen=True)
class LinkStats:
    code: str
    original_url: str
    click_count: int
    created_at: datetime.datetime


class LinkStore(ABC):
    """Contract for the durable code -> URL mapping."""

    @abstractmethod
    async def insert(
        self, code: str, original_url: str, expires_at: datetime.datetime | None = None
    ) -> LinkRecord:
        """Persist a new mapping.

        Raises:
            DuplicateCodeError: If ``code`` already exists.
            StoreError: On any other persistence failure.
        """

    @abstractmethod
    async def lookup(self, code: str) -> LinkTarget | None:
        """Return the destination and expiry for ``code``, or None."""

    @abstractmethod
    async def increment_clicks(self, code: str) -> None:
        """Atomically add one to the click counter of ``code``."""

    @abstractmethod
    async def stats(self, code: str) -> LinkStats | None:
        """Return the click statistics for ``code``, or None."""

    @abstractmethod
    async def next_sequence(self) -> int:
        """Return the next value of the durable, strictly increasing counter."""

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored links."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""


class SQLAlchemyLinkStore(LinkStore):
    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self._db = db
        self._logger = logger or logging.getLogger("shortlink.store")

    async def insert(
        self, code: str, original_url: str, expires_at: datetime.datetime | None = None
    ) -> LinkRecord:
        link = ShortLink(code=code, original_url=original_url, expires_at=as_utc(expires_at))
        try:
            async with self._db.session() as session:
                session.add(link)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    if not is_unique_violation(exc):
                        raise
                    self._logger.warning(f"Duplicate code rejected by store: {code}")
                    raise DuplicateCodeError(code) from exc
                await session.refresh(link)
        except (SQLAlchemyError, OSError) as exc:
            self._logger.error(f"Insert failed for {code}: {exc}")
            raise StoreError(f"Insert failed for '{code}'") from exc
        DATABASE_WRITES_TOTAL.inc()
        return LinkRecord(
            code=link.code,
            original_url=link.original_url,
            created_at=as_utc(link.created_at),
            expires_at=as_utc(link.expires_at),
        )

    async def lookup(self, code: str) -> LinkTarget | None:
        stmt = select(ShortLink.original_url, ShortLink.expires_at).where(ShortLink.code == code)
        try:
            async with self._db.session() as session:
                row = (await session.execute(stmt)).one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            self._logger.error(f"Lookup failed for {code}: {exc}")
            raise StoreError(f"Lookup failed for '{code}'") from exc
        DATABASE_READS_TOTAL.inc()
        if row is None:
            return None
        return LinkTarget(original_url=row.original_url, expires_at=as_utc(row.expires_at))

    async def increment_clicks(self, code: str) -> None:
        stmt = (
            update(ShortLink)
            .where(ShortLink.code == code)
            .values(click_count=ShortLink.click_count + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._db.session() as session:
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"Click increment failed for '{code}'") from exc
        DATABASE_WRITES_TOTAL.inc()

    async def stats(self, code: str) -> LinkStats | None:
        stmt = select(
            ShortLink.code, ShortLink.original_url, ShortLink.click_count, ShortLink.created_at
        ).where(ShortLink.code == code)
        try:
            async with self._db.session() as session:
                row = (await session.execute(stmt)).one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            self._logger.error(f"Stats query failed for {code}: {exc}")
            raise StoreError(f"Stats query failed for '{code}'") from exc
        DATABASE_READS_TOTAL.inc()
        if row is None:
            return None
        return LinkStats(
            code=row.code,
            original_url=row.original_url,
            click_count=row.click_count,
            created_at=as_utc(row.created_at),
        )

    async def next_sequence(self) -> int:
        start_time = time.perf_counter()
        try:
            async with self._db.session() as session:
                if self._db.supports_sequences:
                    value = await session.scalar(select(code_sequence(self._db.sequence_name).next_value()))
                else:
                    value = await session.scalar(
                        update(_counters)
                        .where(_counters.c.name == self._db.sequence_name)
                        .values(value=_counters.c.value + 1)
                        .returning(_counters.c.value)
                    )
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            self._logger.error(f"Sequence {self._db.sequence_name} unavailable: {exc}")
            raise StoreError("Code sequence unavailable") from exc
        if value is None:
            raise StoreError(f"Code sequence '{self._db.sequence_name}' is not initialised")
        self._logger.debug(f"Sequence value {value} in {time.perf_counter() - start_time:.3f}s")
        return int(value)

    async def count(self) -> int:
        try:
            async with self._db.session() as session:
                total = await session.scalar(select(func.count()).select_from(ShortLink))
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError("Link count failed") from exc
        DATABASE_READS_TOTAL.inc()
        return int(total or 0)

    async def ping(self) -> None:
        try:
            async with self._db.session() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError("Database unreachable") from exc
