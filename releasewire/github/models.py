"""Typed models for the GitHub releases REST API."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class GitHubRelease(msgspec.Struct, kw_only=True, frozen=True):
    """The subset of a GitHub release object the pipeline relies on.

    Unknown fields in the API response are ignored by the decoder.
    """

    id: int
    tag_name: str
    name: str | None = None
    body: str | None = None
    html_url: str = ""
    draft: bool = False
    prerelease: bool = False
    created_at: dt.datetime | None = None
    published_at: dt.datetime | None = None

    def occurred_at(self, default: dt.datetime) -> dt.datetime:
        """Return the publication time, falling back to creation or ``default``."""
        return self.published_at or self.created_at or default

    def to_payload(self) -> dict[str, typ.Any]:
        """Return a JSON-safe mapping suitable for the event ledger."""
        return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(self))


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """Rate-limit telemetry reported by GitHub on each response."""

    limit: int | None = None
    remaining: int | None = None
    reset_at: dt.datetime | None = None

    @classmethod
    def from_headers(cls, headers: cabc.Mapping[str, str]) -> RateLimitSnapshot:
        """Parse ``X-RateLimit-*`` headers, ignoring absent or garbled values."""
        reset_epoch = _header_int(headers, "X-RateLimit-Reset")
        return cls(
            limit=_header_int(headers, "X-RateLimit-Limit"),
            remaining=_header_int(headers, "X-RateLimit-Remaining"),
            reset_at=(
                dt.datetime.fromtimestamp(reset_epoch, tz=dt.UTC)
                if reset_epoch is not None
                else None
            ),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of one conditional fetch.

    ``items`` are newest-first, as GitHub returns them, with drafts removed.
    When ``not_modified`` is true ``items`` is empty.
    """

    items: tuple[GitHubRelease, ...] = ()
    etag: str | None = None
    last_modified: str | None = None
    not_modified: bool = False
    rate_limit: RateLimitSnapshot = dataclasses.field(
        default_factory=RateLimitSnapshot
    )


def _header_int(headers: cabc.Mapping[str, str], name: str) -> int | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
