"""Unit tests for the GitHub releases client using httpx.MockTransport."""

from __future__ import annotations

import json
import typing as typ

import httpx
import pytest

from releasewire.cursors import PollCursor
from releasewire.github import (
    FetchResult,
    GitHubAPIError,
    GitHubConfigError,
    GitHubReleasesClient,
    GitHubReleasesConfig,
    GitHubResponseShapeError,
    TransientSourceError,
)
from releasewire.registry import TrackedResource
from tests.fakes import BASE_TIME

RESOURCE = TrackedResource(id=1, owner="acme", name="widget")

Handler = typ.Callable[[httpx.Request], httpx.Response]


def _releases_body() -> list[dict[str, typ.Any]]:
    return [
        {
            "id": 12,
            "tag_name": "v1.2.0",
            "name": "Widget 1.2",
            "body": "notes",
            "html_url": "https://github.com/acme/widget/releases/tag/v1.2.0",
            "draft": False,
            "prerelease": False,
            "published_at": "2024-07-14T09:00:00Z",
            "author": {"login": "octocat"},
        },
        {"id": 13, "tag_name": "v1.3.0-draft", "draft": True},
        {"id": 11, "tag_name": "v1.1.0", "prerelease": True},
    ]


def _client(
    handler: Handler, *, token: str | None = "secret"
) -> tuple[GitHubReleasesClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = GitHubReleasesConfig(token=token, api_url="https://api.example.test")
    return GitHubReleasesClient(config, http_client=http_client), http_client


async def _fetch(
    handler: Handler, cursor: PollCursor | None = None, **kwargs: typ.Any
) -> FetchResult:
    client, http_client = _client(handler, **kwargs)
    async with http_client:
        return await client.fetch_recent(RESOURCE, cursor)


class TestFetchRecent:
    """Tests for GitHubReleasesClient.fetch_recent."""

    @pytest.mark.asyncio
    async def test_decodes_releases_and_drops_drafts(self) -> None:
        """Releases decode newest first with drafts removed."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=_releases_body(),
                headers={"ETag": '"v1"', "X-RateLimit-Remaining": "4999"},
            )

        result = await _fetch(handler)

        assert [r.id for r in result.items] == [12, 11], "drafts must be dropped"
        assert result.items[0].published_at == BASE_TIME.replace(hour=9), (
            "timestamps should decode as aware datetimes"
        )
        assert result.etag == '"v1"', "expected the response ETag"
        assert result.rate_limit.remaining == 4999, "expected rate-limit telemetry"
        request = seen[0]
        assert request.url.path == "/repos/acme/widget/releases", "wrong path"
        assert request.url.params["per_page"] == "10", "expected per_page=10"
        assert request.headers["Authorization"] == "Bearer secret", "missing token"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28", (
            "missing API version header"
        )
        assert "If-None-Match" not in request.headers, "no cursor, no validators"

    @pytest.mark.asyncio
    async def test_sends_validators_and_handles_not_modified(self) -> None:
        """Cursor validators are sent and a 304 carries them forward."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(304)

        cursor = PollCursor(
            checked_at=BASE_TIME,
            etag='"v1"',
            last_modified="Sun, 14 Jul 2024 09:00:00 GMT",
        )
        result = await _fetch(handler, cursor, token=None)

        assert result.not_modified, "304 should be reported as not modified"
        assert result.items == (), "no items on 304"
        assert result.etag == '"v1"', "etag carried forward from the cursor"
        assert result.last_modified == cursor.last_modified, (
            "last_modified carried forward from the cursor"
        )
        assert seen[0].headers["If-None-Match"] == '"v1"', "missing If-None-Match"
        assert "Authorization" not in seen[0].headers, "anonymous requests only"

    @pytest.mark.asyncio
    async def test_not_modified_prefers_response_etag(self) -> None:
        """A 304 that carries an ETag reports it instead of the cursor's."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(304, headers={"ETag": '"fresh"'})

        cursor = PollCursor(checked_at=BASE_TIME, etag='"v1"')
        result = await _fetch(handler, cursor)

        assert result.not_modified, "304 should be reported as not modified"
        assert result.etag == '"fresh"', "the response ETag replaces the cursor's"

    @pytest.mark.parametrize(
        ("status", "headers", "expected"),
        [
            (500, {}, TransientSourceError),
            (429, {}, TransientSourceError),
            (403, {"X-RateLimit-Remaining": "0"}, TransientSourceError),
            (403, {"X-RateLimit-Remaining": "12"}, GitHubAPIError),
            (404, {}, GitHubAPIError),
        ],
    )
    @pytest.mark.asyncio
    async def test_maps_error_statuses(
        self,
        status: int,
        headers: dict[str, str],
        expected: type[Exception],
    ) -> None:
        """Retryable statuses raise TransientSourceError; others GitHubAPIError."""

        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, headers=headers, json={"message": "x"})

        with pytest.raises(expected) as excinfo:
            await _fetch(handler)

        error = typ.cast("GitHubAPIError", excinfo.value)
        assert error.status_code == status, "status should be preserved"
        if expected is GitHubAPIError:
            assert not isinstance(excinfo.value, TransientSourceError), (
                f"{status} should not be transient"
            )

    @pytest.mark.asyncio
    async def test_wraps_transport_failures(self) -> None:
        """Connection errors become transient errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransientSourceError, match="ConnectError"):
            await _fetch(handler)

    @pytest.mark.asyncio
    async def test_wraps_timeouts(self) -> None:
        """Timeouts become transient errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TransientSourceError, match="timed out"):
            await _fetch(handler)

    @pytest.mark.asyncio
    async def test_rejects_malformed_body(self) -> None:
        """A body that is not a release list raises a shape error."""

        def handler(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=json.dumps({"id": 1}).encode())

        with pytest.raises(GitHubResponseShapeError, match="acme/widget"):
            await _fetch(handler)


class TestConfig:
    """Tests for GitHubReleasesConfig."""

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment values override the defaults."""
        monkeypatch.setenv("RELEASEWIRE_GITHUB_TOKEN", "tok")
        monkeypatch.setenv("RELEASEWIRE_GITHUB_API_URL", "https://ghe.example/api/v3/")
        monkeypatch.setenv("RELEASEWIRE_GITHUB_TIMEOUT_SECONDS", "5")

        config = GitHubReleasesConfig.from_env()

        assert config.token == "tok", "expected the token"
        assert config.api_url == "https://ghe.example/api/v3", "trailing / stripped"
        assert config.timeout_s == 5.0, "expected the timeout override"

    def test_from_env_rejects_non_http_url(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """API URLs must be http(s)."""
        monkeypatch.setenv("RELEASEWIRE_GITHUB_API_URL", "ftp://example")
        with pytest.raises(GitHubConfigError, match="http"):
            GitHubReleasesConfig.from_env()

    def test_blank_token_rejected(self) -> None:
        """A provided but blank token is a configuration error."""
        with pytest.raises(GitHubConfigError, match="non-empty"):
            GitHubReleasesClient(GitHubReleasesConfig(token="  "))


