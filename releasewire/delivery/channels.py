"""Channel sinks that deliver rendered notifications.

Only Telegram delivery is implemented. Every other channel type is routed to a
sink that fails closed with :class:`ChannelNotImplementedError`, which the
dispatcher records like any other delivery failure.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx

from releasewire.common.env import optional_str, parse_positive_float
from releasewire.subscriptions.models import TelegramChannel, channel_type

from .errors import (
    ChannelDeliveryError,
    ChannelNotImplementedError,
    TelegramConfigError,
)
from .message import render_telegram

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from releasewire.subscriptions.models import Channel

    from .message import NotificationMessage

_HTTP_ERROR_STATUS_THRESHOLD = 400
_DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"
_DEFAULT_TIMEOUT_S = 10.0
UNIMPLEMENTED_CHANNELS = ("email", "slack", "webhook")


class ChannelSink(typ.Protocol):
    """Interface for delivering one message to one destination."""

    async def send(self, destination: Channel, message: NotificationMessage) -> None:
        """Deliver ``message`` or raise :class:`ChannelDeliveryError`."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class TelegramConfig:
    """Configuration for the Telegram Bot API sink."""

    bot_token: str
    api_url: str = _DEFAULT_TELEGRAM_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> TelegramConfig:
        """Build configuration from ``RELEASEWIRE_TELEGRAM_*`` env vars.

        Raises
        ------
        TelegramConfigError
            If ``RELEASEWIRE_TELEGRAM_BOT_TOKEN`` is unset or blank.

        """
        token = optional_str("RELEASEWIRE_TELEGRAM_BOT_TOKEN")
        if token is None:
            raise TelegramConfigError.missing_token()
        return cls(
            bot_token=token,
            api_url=(
                optional_str("RELEASEWIRE_TELEGRAM_API_URL")
                or _DEFAULT_TELEGRAM_API_URL
            ).rstrip("/"),
            timeout_s=parse_positive_float(
                "RELEASEWIRE_CHANNEL_TIMEOUT_SECONDS", _DEFAULT_TIMEOUT_S
            ),
        )


class TelegramSink:
    """Deliver notifications with the Telegram ``sendMessage`` method."""

    channel = "telegram"

    def __init__(
        self,
        config: TelegramConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the sink with its bot configuration."""
        if not config.bot_token.strip():
            raise TelegramConfigError.missing_token()
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def send(self, destination: Channel, message: NotificationMessage) -> None:
        """Post ``message`` to the destination chat.

        Transport errors are wrapped without their text, which can include
        the request URL and therefore the bot token.
        """
        if not isinstance(destination, TelegramChannel):
            raise ChannelDeliveryError.invalid_destination(
                self.channel, f"expected telegram, got {channel_type(destination)}"
            )
        url = f"{self._config.api_url}/bot{self._config.bot_token}/sendMessage"
        try:
            response = await self._client.post(
                url,
                json={
                    "chat_id": destination.chat_id,
                    "text": render_telegram(message),
                    "parse_mode": "Markdown",
                    "disable_web_page_preview": True,
                },
            )
        except httpx.HTTPError as exc:
            raise ChannelDeliveryError.transport(self.channel, exc) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ChannelDeliveryError.http_error(
                self.channel, response.status_code, _telegram_description(response)
            )


class UnimplementedSink:
    """Sink for a channel type that has no implementation yet."""

    def __init__(self, channel: str) -> None:
        """Remember the channel type reported in errors."""
        self.channel = channel

    async def send(self, destination: Channel, message: NotificationMessage) -> None:
        """Fail closed for every message."""
        raise ChannelNotImplementedError.for_channel(self.channel)


class UnconfiguredSink:
    """Sink for an implemented channel whose credentials are absent."""

    def __init__(self, channel: str) -> None:
        """Remember the channel type reported in errors."""
        self.channel = channel

    async def send(self, destination: Channel, message: NotificationMessage) -> None:
        """Fail every message until the channel is configured."""
        raise ChannelDeliveryError.not_configured(self.channel)


class ChannelRouter:
    """:class:`ChannelSink` that dispatches on the destination's channel type."""

    def __init__(self, sinks: cabc.Mapping[str, ChannelSink]) -> None:
        """Store the sink registered for each channel type."""
        self._sinks = dict(sinks)

    async def send(self, destination: Channel, message: NotificationMessage) -> None:
        """Route ``message`` to the sink for ``destination``'s type."""
        kind = channel_type(destination)
        sink = self._sinks.get(kind)
        if sink is None:
            raise ChannelNotImplementedError.for_channel(kind)
        await sink.send(destination, message)


def build_channel_router(telegram: ChannelSink | None) -> ChannelRouter:
    """Build the router used in production wiring.

    ``telegram`` is ``None`` when no bot token is configured; Telegram
    notifications then fail with a "not configured" error and stay eligible
    for the retry sweep.
    """
    sinks: dict[str, ChannelSink] = {
        name: UnimplementedSink(name) for name in UNIMPLEMENTED_CHANNELS
    }
    sinks["telegram"] = telegram if telegram is not None else UnconfiguredSink(
        "telegram"
    )
    return ChannelRouter(sinks)


def _telegram_description(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        description = body.get("description")
        return str(description) if description else None
    return None
