"""Tagged variants for subscription filters and delivery channels.

Both fields are stored as JSON. They are decoded into these structs at the
storage boundary so the pipeline never handles untyped mappings.

Filter documents look like::

    {"type": "exclude_flag", "field": "prerelease"}
    {"type": "pattern", "field": "tag_name", "pattern": "^v\\d+\\.\\d+\\.\\d+$"}
    {"type": "all", "rules": [{"type": "exclude_flag", "field": "prerelease"}]}

Subscriptions written before the tagged format carry
``{"include_prereleases": false, "tag_regex": "..."}``; these are converted
by :func:`decode_filter`.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from releasewire.events.models import EventKind

_LEGACY_FILTER_KEYS = frozenset(
    {"include_prereleases", "tag_regex", "branch", "author", "path_pattern"}
)


class _Rule(msgspec.Struct, frozen=True, kw_only=True, tag_field="type"):
    """Base for filter rule variants."""


class ExcludeFlagRule(_Rule, tag="exclude_flag"):
    """Suppress events whose boolean payload ``field`` is set."""

    field: str = "prerelease"


class PatternRule(_Rule, tag="pattern"):
    """Require ``pattern`` to match the string payload ``field``."""

    pattern: str
    field: str = "tag_name"


class BranchRule(_Rule, tag="branch"):
    """Commit events only: require the commit to be on ``branch``."""

    branch: str


class AuthorRule(_Rule, tag="author"):
    """Commit events only: require ``author`` in the author name or email."""

    author: str


class PathRule(_Rule, tag="path"):
    """Commit events only: require a changed file matching ``pattern``."""

    pattern: str


LeafRule: typ.TypeAlias = (
    ExcludeFlagRule | PatternRule | BranchRule | AuthorRule | PathRule
)


class AllOfRule(_Rule, tag="all"):
    """Pass only when every nested rule passes."""

    rules: tuple[LeafRule, ...] = ()


FilterRule: typ.TypeAlias = LeafRule | AllOfRule


class _Channel(msgspec.Struct, frozen=True, kw_only=True, tag_field="type"):
    """Base for delivery channel variants."""


class TelegramChannel(_Channel, tag="telegram"):
    """Telegram chat addressed by chat id."""

    chat_id: str | int


class EmailChannel(_Channel, tag="email"):
    """Email mailbox."""

    address: str


class SlackChannel(_Channel, tag="slack"):
    """Slack incoming webhook."""

    webhook_url: str


class WebhookChannel(_Channel, tag="webhook"):
    """Generic HTTP webhook, optionally signed with ``secret``."""

    url: str
    secret: str | None = None


Channel: typ.TypeAlias = TelegramChannel | EmailChannel | SlackChannel | WebhookChannel


@dataclasses.dataclass(frozen=True, slots=True)
class Subscription:
    """A subscriber's interest in one (resource, kind) pair."""

    id: int
    subscriber_id: str
    resource_id: int
    kind: EventKind
    filter: FilterRule | None
    channels: tuple[Channel, ...]


def channel_type(channel: Channel) -> str:
    """Return the tag naming a channel variant, e.g. ``"telegram"``."""
    return typ.cast("str", encode_channel(channel)["type"])


def encode_channel(channel: Channel) -> dict[str, typ.Any]:
    """Return the JSON document for ``channel`` including its ``type`` tag."""
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(channel))


def decode_channel(raw: object) -> Channel:
    """Decode one stored channel document.

    Raises
    ------
    msgspec.ValidationError
        If the document does not match any channel variant.

    """
    return msgspec.convert(raw, type=Channel)


def decode_filter(raw: object) -> FilterRule | None:
    """Decode a stored filter document.

    ``None`` and ``{}`` mean "no filter". Legacy untagged documents are
    converted to the equivalent :class:`AllOfRule`.

    Raises
    ------
    msgspec.ValidationError
        If the document matches neither the tagged nor the legacy shape.

    """
    if raw is None or raw == {}:
        return None
    if isinstance(raw, dict) and "type" not in raw and _LEGACY_FILTER_KEYS & raw.keys():
        return _convert_legacy_filter(raw)
    return msgspec.convert(raw, type=FilterRule)


def _convert_legacy_filter(raw: dict[str, typ.Any]) -> FilterRule | None:
    legacy = msgspec.convert(raw, type=_LegacyFilter)
    rules: list[LeafRule] = []
    if legacy.include_prereleases is False:
        rules.append(ExcludeFlagRule(field="prerelease"))
    if legacy.tag_regex and legacy.tag_regex.strip():
        rules.append(PatternRule(pattern=legacy.tag_regex.strip()))
    if legacy.branch and legacy.branch.strip():
        rules.append(BranchRule(branch=legacy.branch.strip()))
    if legacy.author and legacy.author.strip():
        rules.append(AuthorRule(author=legacy.author.strip()))
    if legacy.path_pattern and legacy.path_pattern.strip():
        rules.append(PathRule(pattern=legacy.path_pattern.strip()))
    if not rules:
        return None
    return AllOfRule(rules=tuple(rules))


class _LegacyFilter(msgspec.Struct, kw_only=True):
    include_prereleases: bool | None = None
    tag_regex: str | None = None
    branch: str | None = None
    author: str | None = None
    path_pattern: str | None = None
