"""Subscriptions: typed filters and channels resolved per resource."""

from __future__ import annotations

from .index import SqlSubscriptionIndex, SubscriptionIndex, to_subscription
from .models import (
    AllOfRule,
    AuthorRule,
    BranchRule,
    Channel,
    EmailChannel,
    ExcludeFlagRule,
    FilterRule,
    PathRule,
    PatternRule,
    SlackChannel,
    Subscription,
    TelegramChannel,
    WebhookChannel,
    channel_type,
    decode_channel,
    decode_filter,
    encode_channel,
)
from .storage import SubscriptionRecord

__all__ = [
    "AllOfRule",
    "AuthorRule",
    "BranchRule",
    "Channel",
    "EmailChannel",
    "ExcludeFlagRule",
    "FilterRule",
    "PathRule",
    "PatternRule",
    "SlackChannel",
    "SqlSubscriptionIndex",
    "Subscription",
    "SubscriptionIndex",
    "SubscriptionRecord",
    "TelegramChannel",
    "WebhookChannel",
    "channel_type",
    "decode_channel",
    "decode_filter",
    "encode_channel",
    "to_subscription",
]
