"""Configuration for notification delivery and the retry sweep.

Usage
-----
>>> config = DeliveryConfig()
>>> config.max_attempts
3

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from releasewire.common.env import parse_positive_int, parse_seconds

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_RETRY_COOLDOWN = dt.timedelta(minutes=5)
_DEFAULT_SWEEP_LIMIT = 50


@dc.dataclass(frozen=True, slots=True)
class DeliveryConfig:
    """Retry policy for failed notifications.

    Attributes
    ----------
    max_attempts
        Attempt ceiling. A notification in ``error`` with this many attempts
        is exhausted and never retried again. Default is 3.
    retry_cooldown
        Minimum time since ``last_error_at`` before the sweep retries a
        notification. There is no per-notification backoff beyond this.
        Default is five minutes.
    sweep_limit
        Maximum notifications retried by one sweep. Default is 50.

    """

    max_attempts: int = _DEFAULT_MAX_ATTEMPTS
    retry_cooldown: dt.timedelta = _DEFAULT_RETRY_COOLDOWN
    sweep_limit: int = _DEFAULT_SWEEP_LIMIT

    @classmethod
    def from_env(cls) -> DeliveryConfig:
        """Create configuration from environment variables.

        Reads ``RELEASEWIRE_RETRY_MAX_ATTEMPTS``,
        ``RELEASEWIRE_RETRY_COOLDOWN_SECONDS`` and ``RELEASEWIRE_SWEEP_LIMIT``;
        each must be a positive integer when set.

        Raises
        ------
        ValueError
            If any variable is set to a non-positive or non-integer value.

        """
        return cls(
            max_attempts=parse_positive_int(
                "RELEASEWIRE_RETRY_MAX_ATTEMPTS", _DEFAULT_MAX_ATTEMPTS
            ),
            retry_cooldown=parse_seconds(
                "RELEASEWIRE_RETRY_COOLDOWN_SECONDS", _DEFAULT_RETRY_COOLDOWN
            ),
            sweep_limit=parse_positive_int(
                "RELEASEWIRE_SWEEP_LIMIT", _DEFAULT_SWEEP_LIMIT
            ),
        )
