"""Unit tests for subscription decoding and the SQL subscription index."""

from __future__ import annotations

import typing as typ

import msgspec
import pytest

from releasewire.events import EventKind
from releasewire.registry import ResourceRegistry
from releasewire.subscriptions import (
    AllOfRule,
    ExcludeFlagRule,
    PatternRule,
    SlackChannel,
    SqlSubscriptionIndex,
    TelegramChannel,
    WebhookChannel,
    channel_type,
    decode_channel,
    decode_filter,
    encode_channel,
)
from releasewire.subscriptions.storage import SubscriptionRecord
from tests.fakes import add_subscription

if typ.TYPE_CHECKING:
    from releasewire.db import SessionFactory


class TestDecodeFilter:
    """Tests for decode_filter."""

    @pytest.mark.parametrize("raw", [None, {}])
    def test_empty_means_no_filter(self, raw: object) -> None:
        """Absent filters decode to None."""
        assert decode_filter(raw) is None, "expected no filter"

    def test_tagged_documents(self) -> None:
        """Tagged rules decode to their struct variants."""
        rule = decode_filter(
            {
                "type": "all",
                "rules": [
                    {"type": "exclude_flag"},
                    {"type": "pattern", "pattern": "^v1"},
                ],
            }
        )
        assert rule == AllOfRule(
            rules=(ExcludeFlagRule(), PatternRule(pattern="^v1"))
        ), "expected nested rules with defaults applied"

    def test_legacy_documents_are_converted(self) -> None:
        """Untagged legacy filters become an all-of rule."""
        rule = decode_filter({"include_prereleases": False, "tag_regex": " ^v2 "})
        assert rule == AllOfRule(
            rules=(ExcludeFlagRule(field="prerelease"), PatternRule(pattern="^v2"))
        ), "expected legacy keys mapped to tagged rules"

    def test_legacy_permissive_document_is_no_filter(self) -> None:
        """A legacy filter that restricts nothing decodes to None."""
        assert decode_filter({"include_prereleases": True, "tag_regex": ""}) is None, (
            "expected no filter"
        )

    def test_unknown_tag_is_rejected(self) -> None:
        """Unknown rule tags fail validation."""
        with pytest.raises(msgspec.ValidationError):
            decode_filter({"type": "semver", "range": ">=1"})


class TestChannels:
    """Tests for channel encoding."""

    def test_round_trip_keeps_type_tag(self) -> None:
        """Encoded channels carry their tag and decode back."""
        channel = WebhookChannel(url="https://hooks.example/x", secret="s")
        encoded = encode_channel(channel)

        assert encoded["type"] == "webhook", "expected the type tag"
        assert decode_channel(encoded) == channel, "expected an equal channel"
        assert channel_type(SlackChannel(webhook_url="u")) == "slack", (
            "expected the slack tag"
        )

    def test_telegram_accepts_numeric_chat_id(self) -> None:
        """Telegram chat ids may be numbers or @handles."""
        assert decode_channel({"type": "telegram", "chat_id": -1001}) == (
            TelegramChannel(chat_id=-1001)
        ), "expected numeric chat id"


class TestSqlSubscriptionIndex:
    """Tests for SqlSubscriptionIndex.list_for."""

    @pytest.mark.asyncio
    async def test_lists_matching_subscriptions_in_id_order(
        self, session_factory: SessionFactory
    ) -> None:
        """Only subscriptions for the resource and kind are returned."""
        registry = ResourceRegistry(session_factory)
        widget = await registry.track("acme", "widget")
        gadget = await registry.track("acme", "gadget")
        channel = TelegramChannel(chat_id="@ops")
        first = await add_subscription(
            session_factory,
            widget.id,
            channels=[channel],
            filter_doc={"type": "exclude_flag"},
        )
        second = await add_subscription(session_factory, widget.id, channels=[channel])
        await add_subscription(session_factory, gadget.id, channels=[channel])
        await add_subscription(
            session_factory, widget.id, channels=[channel], kind=EventKind.COMMIT
        )

        subscriptions = await SqlSubscriptionIndex(session_factory).list_for(
            widget.id, EventKind.RELEASE
        )

        assert [s.id for s in subscriptions] == [first, second], (
            "expected release subscriptions for widget only"
        )
        assert subscriptions[0].filter == ExcludeFlagRule(), "filter should decode"
        assert subscriptions[1].channels == (channel,), "channels should decode"

    @pytest.mark.asyncio
    async def test_invalid_documents_fail_open_and_skip(
        self, session_factory: SessionFactory
    ) -> None:
        """A broken filter fails open and a broken channel is skipped."""
        widget = await ResourceRegistry(session_factory).track("acme", "widget")
        async with session_factory() as session, session.begin():
            session.add(
                SubscriptionRecord(
                    subscriber_id="s",
                    resource_id=widget.id,
                    kind="release",
                    filter={"type": "nonsense"},
                    channels=[
                        {"type": "pigeon"},
                        {"type": "telegram", "chat_id": "@ops"},
                    ],
                )
            )

        (subscription,) = await SqlSubscriptionIndex(session_factory).list_for(
            widget.id, EventKind.RELEASE
        )

        assert subscription.filter is None, "invalid filter should fail open"
        assert subscription.channels == (TelegramChannel(chat_id="@ops"),), (
            "valid channels survive an invalid sibling"
        )
