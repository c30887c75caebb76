"""Per-kind pollers implementing the conditional poll protocol."""

from __future__ import annotations

from .commits import CommitPoller
from .errors import PollKindNotImplementedError
from .models import FanOut, PollOutcome, ResourcePoller
from .releases import ReleasePoller

__all__ = [
    "CommitPoller",
    "FanOut",
    "PollKindNotImplementedError",
    "PollOutcome",
    "ReleasePoller",
    "ResourcePoller",
]
