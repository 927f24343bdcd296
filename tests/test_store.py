"""SQLAlchemy link store tests against a throwaway SQLite database."""

import asyncio
import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from shortlink.exceptions import DuplicateCodeError, StoreError
from shortlink.store import LinkStore, as_utc, is_unique_violation


@pytest.mark.asyncio
async def test_insert_returns_server_timestamp(store: LinkStore) -> None:
    record = await store.insert("abc", "https://example.com/a")
    assert record.code == "abc"
    assert record.original_url == "https://example.com/a"
    assert record.created_at.tzinfo is not None
    assert record.expires_at is None


@pytest.mark.asyncio
async def test_insert_duplicate_code_raises(store: LinkStore) -> None:
    await store.insert("dup", "https://example.com/first")
    with pytest.raises(DuplicateCodeError):
        await store.insert("dup", "https://example.com/second")

    target = await store.lookup("dup")
    assert target.original_url == "https://example.com/first"


@pytest.mark.asyncio
async def test_concurrent_duplicate_inserts_only_one_wins(store: LinkStore) -> None:
    results = await asyncio.gather(
        store.insert("race", "https://example.com/1"),
        store.insert("race", "https://example.com/2"),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], DuplicateCodeError)


@pytest.mark.asyncio
async def test_lookup_missing_returns_none(store: LinkStore) -> None:
    assert await store.lookup("missing") is None


@pytest.mark.asyncio
async def test_expiry_round_trips_as_utc(store: LinkStore) -> None:
    plus_two = datetime.timezone(datetime.timedelta(hours=2))
    expires = datetime.datetime(2030, 6, 1, 14, 0, tzinfo=plus_two)
    await store.insert("exp", "https://example.com/e", expires)

    target = await store.lookup("exp")
    assert target.expires_at == datetime.datetime(2030, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.mark.asyncio
async def test_increment_clicks_and_stats(store: LinkStore) -> None:
    await store.insert("clicky", "https://example.com/c")
    for _ in range(3):
        await store.increment_clicks("clicky")

    stats = await store.stats("clicky")
    assert stats.code == "clicky"
    assert stats.original_url == "https://example.com/c"
    assert stats.click_count == 3


@pytest.mark.asyncio
async def test_concurrent_increments_are_not_lost(store: LinkStore) -> None:
    await store.insert("busy", "https://example.com/b")
    await asyncio.gather(*(store.increment_clicks("busy") for _ in range(20)))
    stats = await store.stats("busy")
    assert stats.click_count == 20


@pytest.mark.asyncio
async def test_stats_missing_returns_none(store: LinkStore) -> None:
    assert await store.stats("missing") is None


@pytest.mark.asyncio
async def test_next_sequence_is_strictly_increasing(store: LinkStore) -> None:
    values = [await store.next_sequence() for _ in range(5)]
    assert values == sorted(values)
    assert len(set(values)) == 5
    assert values[0] == 1


@pytest.mark.asyncio
async def test_count_and_ping(store: LinkStore) -> None:
    await store.ping()
    assert await store.count() == 0
    await store.insert("one", "https://example.com/1")
    await store.insert("two", "https://example.com/2")
    assert await store.count() == 2


def test_as_utc_treats_naive_as_utc() -> None:
    naive = datetime.datetime(2025, 1, 1, 0, 0)
    assert as_utc(naive) == datetime.datetime(2025, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    assert as_utc(None) is None


@pytest.mark.asyncio
async def test_not_null_failure_is_a_store_error(store: LinkStore) -> None:
    with pytest.raises(StoreError):
        await store.insert("nulls", None)
    assert await store.lookup("nulls") is None


class _PgError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


@pytest.mark.parametrize(
    "orig, expected",
    [
        (_PgError("duplicate key value violates unique constraint", "23505"), True),
        (_PgError("null value in column violates not-null constraint", "23502"), False),
        (Exception("UNIQUE constraint failed: short_links.code"), True),
        (Exception("NOT NULL constraint failed: short_links.original_url"), False),
        (Exception("CHECK constraint failed: positive_clicks"), False),
    ],
)
def test_is_unique_violation(orig: Exception, expected: bool) -> None:
    assert is_unique_violation(IntegrityError("INSERT", {}, orig)) is expected
