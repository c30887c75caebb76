"""Persistence model for notifications and their delivery state."""

from __future__ import annotations

import datetime as dt
import enum
import hashlib
import json
import typing as typ

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from releasewire.common.time import utcnow
from releasewire.db import Base, UTCDateTime


class NotificationStatus(enum.StrEnum):
    """Delivery states; ``sent`` is terminal."""

    QUEUED = "queued"
    SENT = "sent"
    ERROR = "error"


class NotificationRecord(Base):
    """One delivery of one event to one subscription channel."""

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "subscription_id",
            "destination_key",
            name="uq_notifications_delivery",
        ),
        Index("ix_notifications_status_attempts", "status", "attempts"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"))
    subscription_id: Mapped[int] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE")
    )
    channel: Mapped[str] = mapped_column(String(32))
    destination: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    destination_key: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(
        String(16), default=NotificationStatus.QUEUED.value
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[str | None] = mapped_column(Text(), default=None)
    last_error_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    sent_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


def make_destination_key(destination: dict[str, typ.Any]) -> str:
    """Return a stable digest identifying a channel destination."""
    canonical = json.dumps(destination, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
