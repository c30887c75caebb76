"""Persistence model for the append-only event ledger."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from releasewire.common.time import utcnow
from releasewire.db import Base, UTCDateTime


class EventRecord(Base):
    """One observed upstream event, recorded at most once per external id."""

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint(
            "resource_id", "kind", "external_id", name="uq_events_external"
        ),
        Index("ix_events_resource_time", "resource_id", "occurred_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("tracked_resources.id", ondelete="CASCADE")
    )
    kind: Mapped[str] = mapped_column(String(16))
    external_id: Mapped[str] = mapped_column(String(255))
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    occurred_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    inserted_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
