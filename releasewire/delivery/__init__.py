"""Notification delivery: channels, message rendering and read access.

The :class:`~releasewire.delivery.dispatcher.Dispatcher` lives in
``releasewire.delivery.dispatcher`` and is imported from there directly.
"""

from __future__ import annotations

from .channels import (
    ChannelRouter,
    ChannelSink,
    TelegramConfig,
    TelegramSink,
    UnconfiguredSink,
    UnimplementedSink,
    build_channel_router,
)
from .config import DeliveryConfig
from .errors import (
    ChannelDeliveryError,
    ChannelNotImplementedError,
    TelegramConfigError,
)
from .message import NotificationMessage, build_message, render_telegram
from .queries import NotificationQueries, NotificationQuery
from .storage import NotificationRecord, NotificationStatus

__all__ = [
    "ChannelDeliveryError",
    "ChannelNotImplementedError",
    "ChannelRouter",
    "ChannelSink",
    "DeliveryConfig",
    "NotificationMessage",
    "NotificationQueries",
    "NotificationQuery",
    "NotificationRecord",
    "NotificationStatus",
    "TelegramConfig",
    "TelegramConfigError",
    "TelegramSink",
    "UnconfiguredSink",
    "UnimplementedSink",
    "build_channel_router",
    "build_message",
    "render_telegram",
]
