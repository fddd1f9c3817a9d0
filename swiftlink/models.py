"""SQLAlchemy ORM models for the SQL link store.

Data Model Layout
=================
::
    links table
    ├─ short_code (VARCHAR(32) PRIMARY KEY)
    ├─ original_url (TEXT NOT NULL)
    ├─ clicks (INTEGER DEFAULT 0)
    ├─ owner (VARCHAR(128) NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW(), INDEXED)
    └─ created_seq (BIGINT, insert-time nanosecond stamp)

Key Behaviours
===============
- short_code is the primary key, so uniqueness is enforced by the database.
- created_at is assigned by the database server, not by the client clock.
- created_at is indexed for the most-recent-first listing.
- created_seq orders rows whose created_at is equal (SQLite stores whole
  seconds); it is set on insert only, so overwrites keep their position.
- original_url stores the full target URL without length limits.

Classes:
    Link:  Represents a shortened URL mapping with click tracking.
"""

import datetime
import time

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from swiftlink.database import Base

__all__ = ["Link"]


class Link(Base):
    __tablename__ = "links"

    short_code: Mapped[str] = mapped_column(String(32), primary_key=True)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    owner: Mapped[str | None] = mapped_column(String(128), nullable=True, default=None)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )
    created_seq: Mapped[int] = mapped_column(BigInteger, default=time.time_ns, nullable=False)

    def __repr__(self) -> str:
        return f"<Link(short_code='{self.short_code}', clicks={self.clicks})>"
