"""Persistence model for tracked upstream resources."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from releasewire.common.time import utcnow
from releasewire.db import Base, UTCDateTime


class TrackedResourceRecord(Base):
    """A GitHub repository whose releases are being polled."""

    __tablename__ = "tracked_resources"
    __table_args__ = (
        UniqueConstraint("owner", "name", name="uq_tracked_resource_slug"),
        Index("ix_tracked_resources_health", "last_polled_at", "consecutive_errors"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    default_branch: Mapped[str] = mapped_column(String(255), default="main")
    consecutive_errors: Mapped[int] = mapped_column(Integer, default=0)
    last_polled_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
