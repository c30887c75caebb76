"""Persistence model for subscriptions.

Rows are owned by the subscription-management surface; the pipeline only
reads them through :class:`~releasewire.subscriptions.index.SqlSubscriptionIndex`.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from releasewire.common.time import utcnow
from releasewire.db import Base, UTCDateTime


class SubscriptionRecord(Base):
    """A subscriber's filter and channels for one (resource, kind) pair."""

    __tablename__ = "subscriptions"
    __table_args__ = (Index("ix_subscriptions_resource_kind", "resource_id", "kind"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    subscriber_id: Mapped[str] = mapped_column(String(255))
    resource_id: Mapped[int] = mapped_column(
        ForeignKey("tracked_resources.id", ondelete="CASCADE")
    )
    kind: Mapped[str] = mapped_column(String(16))
    filter: Mapped[dict[str, typ.Any] | None] = mapped_column(JSON, default=None)
    channels: Mapped[list[dict[str, typ.Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
