"""Structured observability events for polling and delivery.

Events are emitted through femtologging as ``[event.type] key=value`` lines
so log aggregators can parse them. Failures carry an :class:`ErrorCategory`
for alert routing.

Usage
-----
>>> event_logger = PipelineEventLogger()
>>> event_logger.log_cycle_started(shard_key=7, scheduled_at=now, selected=12)

"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from releasewire.delivery.errors import (
    ChannelDeliveryError,
    ChannelNotImplementedError,
    TelegramConfigError,
)
from releasewire.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    TransientSourceError,
)
from releasewire.logging import get_logger, log_error, log_info, log_warning
from releasewire.polling.errors import PollKindNotImplementedError

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class PipelineEventType(enum.StrEnum):
    """Structured log event types for the poll and delivery pipeline."""

    CYCLE_STARTED = "poll.cycle.started"
    CYCLE_COMPLETED = "poll.cycle.completed"
    CYCLE_ABORTED = "poll.cycle.aborted"
    RESOURCE_FAILED = "poll.resource.failed"
    OUTCOME_NOT_RECORDED = "poll.outcome.not_recorded"
    NOTIFICATION_SENT = "delivery.notification.sent"
    NOTIFICATION_FAILED = "delivery.notification.failed"
    SWEEP_COMPLETED = "delivery.sweep.completed"
    FILTER_PATTERN_INVALID = "filter.pattern.invalid"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    NOT_IMPLEMENTED = "not_implemented"
    DELIVERY = "delivery"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (TransientSourceError, ErrorCategory.TRANSIENT),
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (TelegramConfigError, ErrorCategory.CONFIGURATION),
    (ChannelNotImplementedError, ErrorCategory.NOT_IMPLEMENTED),
    (PollKindNotImplementedError, ErrorCategory.NOT_IMPLEMENTED),
    (ChannelDeliveryError, ErrorCategory.DELIVERY),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    # Plain GitHubAPIError: only 5xx is worth waiting out
    if isinstance(exc, GitHubAPIError):
        if (
            exc.status_code is not None
            and exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    return ErrorCategory.UNKNOWN


class PipelineEventLogger:
    """Emit structured pipeline events via femtologging."""

    def log_cycle_started(
        self, *, shard_key: int, scheduled_at: dt.datetime, selected: int
    ) -> None:
        """Log the start of a scheduler cycle once its resources are selected."""
        log_info(
            logger,
            "[%s] shard_key=%d scheduled_at=%s selected=%d",
            PipelineEventType.CYCLE_STARTED,
            shard_key,
            scheduled_at.isoformat(),
            selected,
        )

    def log_cycle_completed(  # noqa: PLR0913
        self,
        *,
        shard_key: int,
        succeeded: int,
        failed: int,
        events_created: int,
        notifications_created: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a finished cycle with its counters."""
        log_info(
            logger,
            "[%s] shard_key=%d duration_seconds=%.3f succeeded=%d failed=%d "
            "events_created=%d notifications_created=%d",
            PipelineEventType.CYCLE_COMPLETED,
            shard_key,
            duration.total_seconds(),
            succeeded,
            failed,
            events_created,
            notifications_created,
        )

    def log_cycle_aborted(self, *, shard_key: int, error: BaseException) -> None:
        """Log a cycle that could not list its due resources."""
        log_error(
            logger,
            "[%s] shard_key=%d error_type=%s error_category=%s error_message=%s",
            PipelineEventType.CYCLE_ABORTED,
            shard_key,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_resource_failed(
        self, *, resource_slug: str, resource_id: int, error: BaseException
    ) -> None:
        """Log a single resource poll failure; the cycle continues."""
        log_warning(
            logger,
            "[%s] resource=%s resource_id=%d error_type=%s error_category=%s "
            "error_message=%s",
            PipelineEventType.RESOURCE_FAILED,
            resource_slug,
            resource_id,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_outcome_not_recorded(
        self, *, resource_id: int, error: BaseException
    ) -> None:
        """Log a failure to persist a resource's poll outcome."""
        log_error(
            logger,
            "[%s] resource_id=%d error_type=%s error_category=%s",
            PipelineEventType.OUTCOME_NOT_RECORDED,
            resource_id,
            type(error).__name__,
            categorize_error(error),
            exc_info=error,
        )

    def log_notification_sent(
        self, *, notification_id: int, channel: str, attempts: int
    ) -> None:
        """Log a delivered notification."""
        log_info(
            logger,
            "[%s] notification_id=%d channel=%s attempts=%d",
            PipelineEventType.NOTIFICATION_SENT,
            notification_id,
            channel,
            attempts,
        )

    def log_notification_failed(
        self,
        *,
        notification_id: int,
        channel: str,
        attempts: int,
        error: BaseException,
    ) -> None:
        """Log a failed delivery attempt recorded on the notification."""
        log_warning(
            logger,
            "[%s] notification_id=%d channel=%s attempts=%d error_category=%s "
            "error_message=%s",
            PipelineEventType.NOTIFICATION_FAILED,
            notification_id,
            channel,
            attempts,
            categorize_error(error),
            str(error),
        )

    def log_sweep_completed(
        self, *, attempted: int, sent: int, failed: int, exhausted: int
    ) -> None:
        """Log the counters of a retry sweep."""
        log_info(
            logger,
            "[%s] attempted=%d sent=%d failed=%d exhausted=%d",
            PipelineEventType.SWEEP_COMPLETED,
            attempted,
            sent,
            failed,
            exhausted,
        )

    def log_filter_pattern_invalid(
        self, *, subscription_id: int, detail: str
    ) -> None:
        """Log a filter pattern that was skipped because it does not compile."""
        log_warning(
            logger,
            "[%s] subscription_id=%d detail=%s action=fail_open",
            PipelineEventType.FILTER_PATTERN_INVALID,
            subscription_id,
            detail,
        )
