"""GitHub releases source client."""

from __future__ import annotations

from .client import GitHubReleasesClient, GitHubReleasesConfig, ReleaseSourceClient
from .errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    TransientSourceError,
)
from .models import FetchResult, GitHubRelease, RateLimitSnapshot

__all__ = [
    "FetchResult",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubRelease",
    "GitHubReleasesClient",
    "GitHubReleasesConfig",
    "GitHubResponseShapeError",
    "RateLimitSnapshot",
    "ReleaseSourceClient",
    "TransientSourceError",
]
