"""SQLAlchemy ORM models for the shortlink service.

This module defines the database schema: one table mapping short ids to
destination URLs and one append-only table of click events.

Data Model Layout
=================
::
    urls table
    ├─ id (TEXT PRIMARY KEY)              short id, immutable
    ├─ original_url (TEXT NOT NULL)
    └─ created_at (TIMESTAMP, DEFAULT NOW())

    analytics table
    ├─ id (INTEGER PRIMARY KEY AUTOINCREMENT)
    ├─ short_id (TEXT NOT NULL, INDEXED)  logical ref to urls.id, no FK
    ├─ ip (TEXT)
    ├─ user_agent (TEXT)
    ├─ country_code (TEXT)
    ├─ referrer (TEXT)
    └─ timestamp (TIMESTAMP, DEFAULT NOW())

How to Use
===========
**Step 1 — Import**::
    from shortlink.models import ClickEvent, UrlRecord

**Step 2 — Create a URL row**::
    db.add(UrlRecord(id="abc1234", original_url="https://example.com"))
    await db.commit()

**Step 3 — Append a click**::
    db.add(ClickEvent(short_id="abc1234", ip="203.0.113.7"))
    await db.commit()

Key Behaviours
===============
- Rows in both tables are written once and never updated.
- ClickEvent.short_id is deliberately not a foreign key; purge removes
  events and URL rows together in one transaction instead.
- ClickEvent.timestamp is stamped in Python with microsecond precision so
  events written in the same second still order correctly. The server
  default covers rows inserted outside the service.

Classes:
    UrlRecord:  Short id to destination mapping.
    ClickEvent:  One recorded redirect.
"""

import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.database import Base

__all__ = ["ClickEvent", "UrlRecord"]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UrlRecord(Base):
    __tablename__ = "urls"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<UrlRecord(id='{self.id}', original_url='{self.original_url}')>"


class ClickEvent(Base):
    __tablename__ = "analytics"
    __table_args__ = (
        Index("idx_analytics_short_id", "short_id"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    short_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ip: Mapped[str | None] = mapped_column(Text, default="")
    user_agent: Mapped[str | None] = mapped_column(Text, default="")
    country_code: Mapped[str | None] = mapped_column(Text, default="")
    referrer: Mapped[str | None] = mapped_column(Text, default="")
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ClickEvent(id={self.id}, short_id='{self.short_id}', timestamp={self.timestamp})>"
