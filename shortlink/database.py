"""Database configuration and session management for the shortlink service.

This module provides SQLAlchemy async engine setup, session management,
and schema bootstrap using PostgreSQL as the production backend.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  Store      │
    │  operation  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ db.session()│
    │ factory     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Create async │
    │ session     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ One atomic  │
    │ statement / │
    │ commit      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (async with) │
    └─────────────┘

How to Use
===========
**Step 1 — Build from settings**::
    db = Database.from_settings(settings)

**Step 2 — Bootstrap schema on startup**::
    await db.init_schema()

**Step 3 — Open a session per operation**::
    async with db.session() as session:
        result = await session.execute(select(ShortLink))

**Step 4 — Cleanup on shutdown**::
    await db.close()

Key Behaviours
===============
- Sessions are opened per store operation, not per request, so background
  click increments never share a session with the request that spawned them.
- Connection pooling is configured for PostgreSQL; SQLite keeps its defaults.
- Schema bootstrap creates tables, the native code sequence where the dialect
  supports sequences, and the counter row everywhere else.

Classes:
    Base:  SQLAlchemy declarative base for all models.
    Database:  Engine + session factory owned by the service manager.
"""

from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlink.config import Settings

__all__ = ["Base", "Database"]


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, engine: AsyncEngine, sequence_name: str) -> None:
        self.engine = engine
        self.sequence_name = sequence_name
        self.session = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        options: dict = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
        if make_url(settings.DATABASE_URL).get_backend_name() != "sqlite":
            options.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
        engine = create_async_engine(settings.DATABASE_URL, **options)
        return cls(engine, settings.CODE_SEQUENCE_NAME)

    @property
    def supports_sequences(self) -> bool:
        return bool(self.engine.dialect.supports_sequences)

    async def init_schema(self) -> None:
        # models registers its tables on Base.metadata at import
        from shortlink.models import SequenceCounter, code_sequence

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            if self.supports_sequences:
                await conn.run_sync(lambda sync_conn: code_sequence(self.sequence_name).create(sync_conn, checkfirst=True))
                return
            existing = await conn.execute(
                select(SequenceCounter.name).where(SequenceCounter.name == self.sequence_name)
            )
            if existing.scalar_one_or_none() is None:
                await conn.execute(SequenceCounter.__table__.insert().values(name=self.sequence_name, value=0))

    async def close(self) -> None:
        await self.engine.dispose()
