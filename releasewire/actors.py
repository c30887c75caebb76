"""Dramatiq actors driving the pipeline on an external cadence.

``poll_cycle_job`` is meant to be enqueued once a minute by an external
scheduler; ``retry_sweep_job`` on whatever cadence operators choose. Both
build their collaborators per invocation and dispose of the engine before
returning.
"""

from __future__ import annotations

import asyncio
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import create_async_engine

from releasewire._broker import ensure_broker_configured
from releasewire.common.time import parse_iso_timestamp
from releasewire.db import session_factory_for
from releasewire.pipeline import run_poll_cycle, run_retry_sweep

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from releasewire.db import SessionFactory


def _parse_optional_iso(value: str | None, *, field: str) -> dt.datetime | None:
    """Parse an optional ISO timestamp, requiring timezone information."""
    if value is None:
        return None
    return parse_iso_timestamp(value, field=field)


def _run_actor_async[T](
    database_url: str,
    async_fn: cabc.Callable[[SessionFactory], cabc.Awaitable[T]],
) -> T:
    """Run ``async_fn`` against a fresh engine for one actor invocation."""
    ensure_broker_configured()

    async def run() -> T:
        engine = create_async_engine(database_url)
        try:
            return await async_fn(session_factory_for(engine))
        finally:
            await engine.dispose()

    return asyncio.run(run())


@dramatiq.actor
def poll_cycle_job(
    database_url: str,
    *,
    scheduled_at_iso: str | None = None,
) -> dict[str, int | str]:
    """Dramatiq actor running one poll cycle.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    scheduled_at_iso
        Optional ISO timestamp selecting the shard; defaults to now. Must
        include timezone information (e.g. ``'2024-07-14T10:00:00Z'``).

    Returns
    -------
    dict[str, int | str]
        The cycle summary.

    Raises
    ------
    ValueError
        If ``scheduled_at_iso`` lacks timezone information.

    """
    at = _parse_optional_iso(scheduled_at_iso, field="scheduled_at_iso")

    async def execute(session_factory: SessionFactory) -> dict[str, int | str]:
        report = await run_poll_cycle(session_factory, at)
        return report.as_summary()

    return _run_actor_async(database_url, execute)


@dramatiq.actor
def retry_sweep_job(
    database_url: str,
    *,
    now_iso: str | None = None,
) -> dict[str, int]:
    """Dramatiq actor running one notification retry sweep.

    Returns
    -------
    dict[str, int]
        Counts of attempted, sent, failed and exhausted notifications.

    """
    now = _parse_optional_iso(now_iso, field="now_iso")

    async def execute(session_factory: SessionFactory) -> dict[str, int]:
        result = await run_retry_sweep(session_factory, now)
        return {
            "attempted": result.attempted,
            "sent": result.sent,
            "failed": result.failed,
            "exhausted": result.exhausted,
        }

    return _run_actor_async(database_url, execute)
