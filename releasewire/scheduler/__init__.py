"""Poll scheduling: shard selection, batching and outcome accounting."""

from __future__ import annotations

from .config import SchedulerConfig
from .scheduler import CycleReport, DueResourceSource, PollScheduler, shard_key_for

__all__ = [
    "CycleReport",
    "DueResourceSource",
    "PollScheduler",
    "SchedulerConfig",
    "shard_key_for",
]
