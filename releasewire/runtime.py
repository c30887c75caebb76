"""releasewire HTTP runtime served by Granian.

``create_app`` is the stable ``releasewire.runtime:create_app`` factory
entrypoint. When ``RELEASEWIRE_DATABASE_URL`` is set the app includes the
history routes and the retry-sweep trigger; otherwise it starts in
health-only mode.

Configuration is driven by environment variables:

- ``RELEASEWIRE_HOST``: Bind address (default ``0.0.0.0``)
- ``RELEASEWIRE_PORT``: Listen port (default ``8080``)
- ``RELEASEWIRE_LOG_LEVEL``: Log level (default ``INFO``)
- ``RELEASEWIRE_DATABASE_URL``: Database connection URL (optional)

Run the service directly with ``python -m releasewire.runtime``.
"""

from __future__ import annotations

import functools
import os
import typing as typ

from releasewire.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse a port number, exiting with status 1 when it is unusable."""
    try:
        port = int(port_str)
    except ValueError as exc:
        log_error(logger, "Invalid RELEASEWIRE_PORT value: %r", port_str)
        raise SystemExit(1) from exc
    if not (_MIN_PORT <= port <= _MAX_PORT):
        log_error(
            logger,
            "Invalid RELEASEWIRE_PORT value: %r (must be %d-%d)",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Build the ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        Health-only when ``RELEASEWIRE_DATABASE_URL`` is unset, fully wired
        otherwise.

    """
    from releasewire.api.app import AppDependencies
    from releasewire.api.app import create_app as _create_api_app

    database_url = os.environ.get("RELEASEWIRE_DATABASE_URL")
    if not database_url:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import create_async_engine

    from releasewire.db import session_factory_for
    from releasewire.pipeline import PipelineSettings, run_retry_sweep

    settings = PipelineSettings.from_env()
    session_factory = session_factory_for(create_async_engine(database_url))
    deps = AppDependencies(
        session_factory=session_factory,
        sweep_runner=functools.partial(
            run_retry_sweep, session_factory, None, settings
        ),
        delivery=settings.delivery,
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the releasewire runtime server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("RELEASEWIRE_HOST", "0.0.0.0")  # noqa: S104 - container bind
    port = _parse_port(os.environ.get("RELEASEWIRE_PORT", "8080"))
    log_level_str = os.environ.get("RELEASEWIRE_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid RELEASEWIRE_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting releasewire runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "releasewire.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
