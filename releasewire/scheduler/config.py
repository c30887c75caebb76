"""Configuration for the poll scheduler.

Usage
-----
>>> config = SchedulerConfig()
>>> config.shard_count, config.batch_size
(60, 10)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from releasewire.common.env import parse_positive_int, parse_seconds

_DEFAULT_SHARD_COUNT = 60
_DEFAULT_BATCH_SIZE = 10
_DEFAULT_ERROR_CEILING = 5
_DEFAULT_RESOURCE_COOLDOWN = dt.timedelta(minutes=5)
_DEFAULT_LIST_LIMIT = 100


@dc.dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Two-level throttle for poll cycles.

    Attributes
    ----------
    shard_count
        Number of cyclic shards. With a one-minute cadence and the default of
        60, each resource is polled once an hour. Default is 60.
    batch_size
        Resources polled concurrently; the next batch waits for every outcome
        of the current one. Default is 10.
    error_ceiling
        ``consecutive_errors`` at which a resource is re-probed on the
        cool-down instead of only on its shard. Default is 5.
    resource_cooldown
        Minimum time between re-probes of a failing resource. Default is five
        minutes.
    list_limit
        Maximum resources selected per cycle. Default is 100.

    """

    shard_count: int = _DEFAULT_SHARD_COUNT
    batch_size: int = _DEFAULT_BATCH_SIZE
    error_ceiling: int = _DEFAULT_ERROR_CEILING
    resource_cooldown: dt.timedelta = _DEFAULT_RESOURCE_COOLDOWN
    list_limit: int = _DEFAULT_LIST_LIMIT

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Create configuration from environment variables.

        Reads the following environment variables, each a positive integer:

        - ``RELEASEWIRE_SHARD_COUNT``
        - ``RELEASEWIRE_BATCH_SIZE``
        - ``RELEASEWIRE_ERROR_CEILING``
        - ``RELEASEWIRE_RESOURCE_COOLDOWN_SECONDS``
        - ``RELEASEWIRE_DUE_LIST_LIMIT``

        Raises
        ------
        ValueError
            If any variable is set to a non-positive or non-integer value.

        """
        return cls(
            shard_count=parse_positive_int(
                "RELEASEWIRE_SHARD_COUNT", _DEFAULT_SHARD_COUNT
            ),
            batch_size=parse_positive_int(
                "RELEASEWIRE_BATCH_SIZE", _DEFAULT_BATCH_SIZE
            ),
            error_ceiling=parse_positive_int(
                "RELEASEWIRE_ERROR_CEILING", _DEFAULT_ERROR_CEILING
            ),
            resource_cooldown=parse_seconds(
                "RELEASEWIRE_RESOURCE_COOLDOWN_SECONDS", _DEFAULT_RESOURCE_COOLDOWN
            ),
            list_limit=parse_positive_int(
                "RELEASEWIRE_DUE_LIST_LIMIT", _DEFAULT_LIST_LIMIT
            ),
        )
