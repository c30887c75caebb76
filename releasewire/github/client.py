"""Conditional-GET client for the GitHub releases REST API."""

from __future__ import annotations

import dataclasses
import typing as typ
from http import HTTPStatus

import httpx
import msgspec

from releasewire.common.env import optional_str, parse_positive_float
from releasewire.logging import get_logger, log_warning

from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    TransientSourceError,
)
from .models import FetchResult, GitHubRelease, RateLimitSnapshot

if typ.TYPE_CHECKING:
    from releasewire.cursors.store import PollCursor
    from releasewire.registry.models import TrackedResource

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_SERVER_ERROR_THRESHOLD = 500
_LOW_RATE_LIMIT_THRESHOLD = 100
_GITHUB_API_VERSION = "2022-11-28"
_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 20.0


class ReleaseSourceClient(typ.Protocol):
    """Interface for fetching the most recent releases of a resource."""

    async def fetch_recent(
        self, resource: TrackedResource, cursor: PollCursor | None
    ) -> FetchResult:
        """Return the provider's first page of releases, newest first.

        Implementations must honour the cursor's ``etag`` and
        ``last_modified`` for conditional fetches and report "not modified"
        instead of items when the provider does.
        """
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubReleasesConfig:
    """Configuration for the GitHub releases client."""

    token: str | None = None
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = "releasewire/0.1"
    per_page: int = 10

    @classmethod
    def from_env(cls) -> GitHubReleasesConfig:
        """Build configuration from ``RELEASEWIRE_GITHUB_*`` env vars.

        ``RELEASEWIRE_GITHUB_TOKEN`` is optional; anonymous requests work but
        are limited to 60 per hour.
        """
        api_url = optional_str("RELEASEWIRE_GITHUB_API_URL") or _DEFAULT_API_URL
        if not api_url.startswith(("http://", "https://")):
            raise GitHubConfigError.invalid_api_url(api_url)
        return cls(
            token=optional_str("RELEASEWIRE_GITHUB_TOKEN"),
            api_url=api_url.rstrip("/"),
            timeout_s=parse_positive_float(
                "RELEASEWIRE_GITHUB_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT_S
            ),
        )


class GitHubReleasesClient:
    """httpx implementation of :class:`ReleaseSourceClient`."""

    def __init__(
        self,
        config: GitHubReleasesConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if config.token is not None and not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_recent(
        self, resource: TrackedResource, cursor: PollCursor | None
    ) -> FetchResult:
        """Fetch the first page of releases for ``resource``.

        Drafts are dropped. A ``304 Not Modified`` answer yields a result with
        ``not_modified`` set and the cursor's validators carried forward unless
        GitHub sent fresh ones.

        Raises
        ------
        TransientSourceError
            For network failures, timeouts, 5xx, 429 and exhausted rate limits.
        GitHubAPIError
            For any other error status.
        GitHubResponseShapeError
            When the body is not a list of release objects.

        """
        slug = resource.slug
        url = f"{self._config.api_url}/repos/{resource.owner}/{resource.name}/releases"
        headers = _default_headers(self._config) | _conditional_headers(cursor)
        try:
            response = await self._client.get(
                url, params={"per_page": self._config.per_page}, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise TransientSourceError.timeout(slug) from exc
        except httpx.HTTPError as exc:
            raise TransientSourceError.network(slug, exc) from exc

        rate_limit = RateLimitSnapshot.from_headers(response.headers)
        if (
            rate_limit.remaining is not None
            and rate_limit.remaining < _LOW_RATE_LIMIT_THRESHOLD
        ):
            log_warning(
                logger,
                "[source.rate_limit.low] resource=%s remaining=%d limit=%s reset_at=%s",
                slug,
                rate_limit.remaining,
                rate_limit.limit,
                rate_limit.reset_at.isoformat() if rate_limit.reset_at else None,
            )

        if response.status_code == HTTPStatus.NOT_MODIFIED:
            return FetchResult(
                etag=response.headers.get("ETag") or _cursor_attr(cursor, "etag"),
                last_modified=response.headers.get("Last-Modified")
                or _cursor_attr(cursor, "last_modified"),
                not_modified=True,
                rate_limit=rate_limit,
            )

        _raise_for_status(response.status_code, slug, rate_limit)

        releases = _decode_releases(response.content, slug)
        return FetchResult(
            items=tuple(release for release in releases if not release.draft),
            etag=response.headers.get("ETag"),
            last_modified=response.headers.get("Last-Modified"),
            rate_limit=rate_limit,
        )


def _default_headers(config: GitHubReleasesConfig) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": config.user_agent,
        "X-GitHub-Api-Version": _GITHUB_API_VERSION,
    }
    if config.token:
        headers["Authorization"] = f"Bearer {config.token}"
    return headers


def _conditional_headers(cursor: PollCursor | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if cursor is None:
        return headers
    if cursor.etag:
        headers["If-None-Match"] = cursor.etag
    if cursor.last_modified:
        headers["If-Modified-Since"] = cursor.last_modified
    return headers


def _cursor_attr(cursor: PollCursor | None, name: str) -> str | None:
    if cursor is None:
        return None
    return getattr(cursor, name)


def _raise_for_status(
    status_code: int, slug: str, rate_limit: RateLimitSnapshot
) -> None:
    if status_code < _HTTP_ERROR_STATUS_THRESHOLD:
        return
    if status_code == HTTPStatus.FORBIDDEN and rate_limit.remaining == 0:
        raise TransientSourceError.rate_limited(slug, rate_limit.reset_at)
    if (
        status_code == HTTPStatus.TOO_MANY_REQUESTS
        or status_code >= _HTTP_SERVER_ERROR_THRESHOLD
    ):
        raise TransientSourceError.http_status(status_code, slug)
    raise GitHubAPIError.http_error(status_code, slug)


def _decode_releases(content: bytes, slug: str) -> list[GitHubRelease]:
    try:
        return msgspec.json.decode(content, type=list[GitHubRelease])
    except msgspec.DecodeError as exc:
        raise GitHubResponseShapeError.invalid_body(slug, str(exc)) from exc
