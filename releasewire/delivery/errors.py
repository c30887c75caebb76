"""Delivery channel errors.

Every failure a channel sink can produce is a :class:`ChannelDeliveryError`
so the dispatcher can record it on the notification row and move on.
"""

from __future__ import annotations


class ChannelDeliveryError(RuntimeError):
    """Raised when a message could not be delivered to a channel."""

    def __init__(
        self, message: str, *, channel: str, status_code: int | None = None
    ) -> None:
        """Initialise with the channel type and optional HTTP status."""
        self.channel = channel
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(
        cls, channel: str, status_code: int, detail: str | None = None
    ) -> ChannelDeliveryError:
        """Return an error for a non-2xx channel API response."""
        suffix = f": {detail}" if detail else ""
        return cls(
            f"{channel} HTTP {status_code}{suffix}",
            channel=channel,
            status_code=status_code,
        )

    @classmethod
    def transport(cls, channel: str, exc: BaseException) -> ChannelDeliveryError:
        """Return an error for a network failure talking to the channel."""
        return cls(f"{channel} transport error: {type(exc).__name__}", channel=channel)

    @classmethod
    def unexpected(cls, channel: str, exc: Exception) -> ChannelDeliveryError:
        """Return an error for a sink failure outside the channel error family."""
        return cls(
            f"{channel} sink failed: {type(exc).__name__}: {exc}", channel=channel
        )

    @classmethod
    def invalid_destination(cls, channel: str, detail: str) -> ChannelDeliveryError:
        """Return an error for a stored destination that cannot be used."""
        return cls(f"{channel} destination invalid: {detail}", channel=channel)

    @classmethod
    def not_configured(cls, channel: str) -> ChannelDeliveryError:
        """Return an error for a channel whose credentials are missing."""
        return cls(f"{channel} delivery is not configured", channel=channel)


class ChannelNotImplementedError(ChannelDeliveryError):
    """Raised for channel types that have no sink implementation."""

    @classmethod
    def for_channel(cls, channel: str) -> ChannelNotImplementedError:
        """Return an error naming the unimplemented channel type."""
        return cls(f"{channel} delivery is not yet implemented", channel=channel)


class TelegramConfigError(RuntimeError):
    """Raised when Telegram delivery configuration is invalid."""

    @classmethod
    def missing_token(cls) -> TelegramConfigError:
        """Return an error when no bot token is configured."""
        return cls("RELEASEWIRE_TELEGRAM_BOT_TOKEN is required for Telegram delivery")
