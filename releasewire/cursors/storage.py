"""Persistence model for conditional-request poll cursors."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from releasewire.common.time import utcnow
from releasewire.db import Base, UTCDateTime


class PollCursorRecord(Base):
    """Conditional-request state and last-seen id for one (resource, kind)."""

    __tablename__ = "poll_cursors"

    resource_key: Mapped[str] = mapped_column(String(512), primary_key=True)
    etag: Mapped[str | None] = mapped_column(String(255), default=None)
    last_modified: Mapped[str | None] = mapped_column(String(64), default=None)
    last_seen_external_id: Mapped[int | None] = mapped_column(
        BigInteger, default=None
    )
    checked_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
