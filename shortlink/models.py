"""SQLAlchemy ORM models for the shortlink service.

This module defines the durable schema: one row per short link plus a counter
table used as the code sequence on dialects without native sequences.

Data Model Layout
=================
::
    short_links table
    ├─ id (BIGINT PRIMARY KEY)
    ├─ code (VARCHAR(32) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ expires_at (TIMESTAMPTZ NULL, INDEXED)
    └─ click_count (BIGINT DEFAULT 0)

    sequence_counters table (SQLite and other sequence-less dialects)
    ├─ name (VARCHAR(64) PRIMARY KEY)
    └─ value (BIGINT NOT NULL)

Key Behaviours
===============
- code is unique; the index is the only arbiter of duplicate custom codes.
- code, original_url and created_at never change after insert.
- click_count only moves through a single UPDATE ... + 1 statement.
- created_at is assigned by the database, not the application.

Classes:
    ShortLink:  A code -> URL mapping with expiry and click count.
    SequenceCounter:  Named monotonically increasing counter row.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, Integer, Sequence, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.database import Base

__all__ = ["SequenceCounter", "ShortLink", "code_sequence"]

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BigId = BigInteger().with_variant(Integer(), "sqlite")


class ShortLink(Base):
    __tablename__ = "short_links"

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    click_count: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)

    def __repr__(self) -> str:
        return f"<ShortLink(id={self.id}, code='{self.code}', click_count={self.click_count})>"


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


def code_sequence(name: str) -> Sequence:
    return Sequence(name, start=1)
