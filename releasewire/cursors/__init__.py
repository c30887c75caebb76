"""Per-resource conditional-request cursors."""

from __future__ import annotations

from .storage import PollCursorRecord
from .store import PollCursor, PollCursorStore, SqlPollCursorStore, cursor_key

__all__ = [
    "PollCursor",
    "PollCursorRecord",
    "PollCursorStore",
    "SqlPollCursorStore",
    "cursor_key",
]
