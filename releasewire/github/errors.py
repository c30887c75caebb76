"""Errors raised by the GitHub releases source client."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, slug: str) -> GitHubAPIError:
        """Return an error for non-retryable non-2xx responses."""
        return cls(
            f"GitHub REST HTTP {status_code} for {slug}", status_code=status_code
        )


class TransientSourceError(GitHubAPIError):
    """Raised for failures the next scheduled cycle is expected to clear.

    Covers network failures, timeouts, 5xx responses and rate limiting. These
    are never retried within a cycle.
    """

    @classmethod
    def network(cls, slug: str, exc: BaseException) -> TransientSourceError:
        """Return an error for transport-level failures."""
        return cls(f"GitHub request for {slug} failed: {type(exc).__name__}")

    @classmethod
    def timeout(cls, slug: str) -> TransientSourceError:
        """Return an error for requests that exceeded the client timeout."""
        return cls(f"GitHub request for {slug} timed out")

    @classmethod
    def http_status(cls, status_code: int, slug: str) -> TransientSourceError:
        """Return an error for 5xx and 429 responses."""
        return cls(
            f"GitHub REST HTTP {status_code} for {slug}", status_code=status_code
        )

    @classmethod
    def rate_limited(
        cls, slug: str, reset_at: dt.datetime | None
    ) -> TransientSourceError:
        """Return an error for an exhausted primary rate limit."""
        reset_text = reset_at.isoformat() if reset_at is not None else "unknown"
        return cls(
            f"GitHub rate limit exhausted polling {slug}; resets at {reset_text}",
            status_code=403,
        )


class GitHubResponseShapeError(RuntimeError):
    """Raised when a GitHub response body cannot be decoded."""

    @classmethod
    def invalid_body(cls, slug: str, detail: str) -> GitHubResponseShapeError:
        """Return an error for an undecodable releases payload."""
        return cls(f"GitHub releases response for {slug} is malformed: {detail}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when a provided token is blank."""
        return cls("GitHub token must be non-empty when provided")

    @classmethod
    def invalid_api_url(cls, url: str) -> GitHubConfigError:
        """Return an error for an API URL without an http(s) scheme."""
        return cls(f"RELEASEWIRE_GITHUB_API_URL must be an http(s) URL, got {url!r}")
