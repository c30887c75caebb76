"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    app.add_error_handler(NotificationNotFoundError, handle_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = [
    "InvalidInputError",
    "NotificationNotFoundError",
    "handle_invalid_input",
    "handle_not_found",
]


class NotificationNotFoundError(Exception):
    """Raised when a notification id does not exist."""

    def __init__(self, notification_id: int) -> None:
        """Initialize with the missing notification id."""
        self.notification_id = notification_id
        super().__init__(f"No notification with id {notification_id} exists.")


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Only intentional validation failures use this type, so programmer
    mistakes still surface as 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


async def handle_not_found(
    _req: Request,
    resp: Response,
    ex: NotificationNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``NotificationNotFoundError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {
        "title": "Notification not found",
        "description": str(ex),
    }


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media
