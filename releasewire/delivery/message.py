"""Notification message fields and per-channel rendering."""

from __future__ import annotations

import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from releasewire.registry.models import TrackedResource

BODY_PREVIEW_LIMIT = 200


@dataclasses.dataclass(frozen=True, slots=True)
class NotificationMessage:
    """The logical fields every channel renderer receives."""

    title: str
    body: str
    link: str | None = None


def build_release_message(
    resource: TrackedResource, payload: cabc.Mapping[str, typ.Any]
) -> NotificationMessage:
    """Compose the message for a release event.

    The body holds the release name (when it differs from the tag) followed
    by the release notes; renderers decide how much of it to show.
    """
    tag = str(payload.get("tag_name") or payload.get("external_id") or "")
    title = f"{resource.slug} - new release {tag}".rstrip()
    lines: list[str] = []
    name = payload.get("name")
    if name and name != tag:
        lines.append(str(name))
    notes = payload.get("body")
    if notes:
        lines.append(str(notes))
    link = payload.get("html_url") or None
    return NotificationMessage(title=title, body="\n".join(lines), link=link)


def truncate(text: str, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Shorten ``text`` to ``limit`` characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def render_telegram(message: NotificationMessage) -> str:
    """Render ``message`` as Telegram Markdown.

    Examples
    --------
    >>> render_telegram(NotificationMessage("acme/widget - new release v4", ""))
    '*acme/widget - new release v4*'

    """
    parts = [f"*{message.title}*"]
    if message.body:
        parts.append(truncate(message.body))
    if message.link:
        parts.append(message.link)
    return "\n".join(parts)


def build_commit_message(
    resource: TrackedResource, payload: cabc.Mapping[str, typ.Any]
) -> NotificationMessage:
    """Compose the message for a commit event."""
    sha = str(payload.get("sha") or "")[:7]
    summary, _, rest = str(payload.get("message") or "").partition("\n")
    title = f"{resource.slug} - new commit {sha}".rstrip()
    body = "\n".join(part for part in (summary, rest.strip()) if part)
    return NotificationMessage(
        title=title, body=body, link=payload.get("html_url") or None
    )


def build_message(
    resource: TrackedResource, kind: str, payload: cabc.Mapping[str, typ.Any]
) -> NotificationMessage:
    """Compose the message for an event of ``kind``."""
    if kind == "commit":
        return build_commit_message(resource, payload)
    return build_release_message(resource, payload)
