"""Application factory for the releasewire Falcon ASGI application.

``create_app()`` always registers the health probes. When a session factory
is supplied it also registers the event and notification history routes, and
when a sweep runner is supplied it registers the manual retry-sweep trigger.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app::

    from functools import partial

    from releasewire.api.app import AppDependencies, create_app
    from releasewire.pipeline import run_retry_sweep

    deps = AppDependencies(
        session_factory=session_factory,
        sweep_runner=partial(run_retry_sweep, session_factory),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from releasewire.api.errors import (
    InvalidInputError,
    NotificationNotFoundError,
    handle_invalid_input,
    handle_not_found,
)
from releasewire.api.health.resources import HealthResource, ReadyResource
from releasewire.delivery.config import DeliveryConfig

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from releasewire.db import SessionFactory
    from releasewire.delivery.dispatcher import SweepResult

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    session_factory
        Async session factory for history reads. History routes are only
        registered when it is set.
    sweep_runner
        Zero-argument coroutine factory running one retry sweep. The
        ``POST /notifications/retry-sweep`` route is only registered when it
        is set.
    delivery
        Delivery settings; ``max_attempts`` backs the ``exhausted`` filter.

    """

    session_factory: SessionFactory | None = None
    sweep_runner: cabc.Callable[[], cabc.Awaitable[SweepResult]] | None = None
    delivery: DeliveryConfig = dc.field(default_factory=DeliveryConfig)


def _register_history_routes(
    app: falcon.asgi.App, session_factory: SessionFactory, delivery: DeliveryConfig
) -> None:
    from releasewire.api.history.resources import (
        EventCollectionResource,
        NotificationCollectionResource,
        NotificationResource,
    )
    from releasewire.delivery.queries import NotificationQueries
    from releasewire.events.services import EventStore

    queries = NotificationQueries(session_factory)
    app.add_route("/events", EventCollectionResource(EventStore(session_factory)))
    app.add_route(
        "/notifications",
        NotificationCollectionResource(queries, max_attempts=delivery.max_attempts),
    )
    app.add_route(
        "/notifications/{notification_id:int}", NotificationResource(queries)
    )


def create_app(dependencies: AppDependencies | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only ``/health``
        and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())

    if dependencies is not None and dependencies.session_factory is not None:
        _register_history_routes(
            app, dependencies.session_factory, dependencies.delivery
        )

    if dependencies is not None and dependencies.sweep_runner is not None:
        from releasewire.api.history.resources import RetrySweepResource

        app.add_route(
            "/notifications/retry-sweep",
            RetrySweepResource(dependencies.sweep_runner),
        )

    app.add_error_handler(NotificationNotFoundError, handle_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)

    return app
