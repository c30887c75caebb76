"""Resource registry: tracked resources plus poll health bookkeeping.

The registry decides which resources a scheduler invocation polls and records
how each attempt went. Health counters are updated with single ``UPDATE``
statements so concurrent outcome writes never lose an increment.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError

from releasewire.common.time import require_aware
from releasewire.registry.errors import ResourceNotFoundError, TrackResourceError
from releasewire.registry.models import TrackedResource, to_tracked_resource
from releasewire.registry.storage import TrackedResourceRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession

    from releasewire.db import SessionFactory

DEFAULT_SHARD_COUNT = 60
DEFAULT_ERROR_CEILING = 5
DEFAULT_LIST_LIMIT = 100


class ResourceRegistry:
    """SQL-backed registry of tracked resources.

    Parameters
    ----------
    session_factory:
        Async session factory for the releasewire database.
    shard_count:
        Number of cyclic shards; a resource belongs to shard
        ``id % shard_count``.
    error_ceiling:
        ``consecutive_errors`` value at which a resource is treated as failing
        and is re-probed on its cool-down instead of only on its shard.
    list_limit:
        Maximum number of resources returned by :meth:`list_due`.

    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        shard_count: int = DEFAULT_SHARD_COUNT,
        error_ceiling: int = DEFAULT_ERROR_CEILING,
        list_limit: int = DEFAULT_LIST_LIMIT,
    ) -> None:
        """Configure the registry with its session factory and selection limits."""
        self._session_factory = session_factory
        self._shard_count = shard_count
        self._error_ceiling = error_ceiling
        self._list_limit = list_limit

    async def track(
        self, owner: str, name: str, *, default_branch: str = "main"
    ) -> TrackedResource:
        """Return the tracked resource for ``owner/name``, creating it if absent.

        Creation happens on first subscription; calling this again for the
        same slug returns the existing row untouched.
        """
        async with self._session_factory() as session:
            existing = await self._load_by_slug(session, owner, name)
            if existing is not None:
                return to_tracked_resource(existing)

            record = TrackedResourceRecord(
                owner=owner, name=name, default_branch=default_branch
            )
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await self._load_by_slug(session, owner, name)
                if existing is None:
                    raise TrackResourceError(f"{owner}/{name}") from exc
                return to_tracked_resource(existing)

            await session.refresh(record)
            return to_tracked_resource(record)

    async def get(self, resource_id: int) -> TrackedResource | None:
        """Return the resource with ``resource_id`` or ``None``."""
        async with self._session_factory() as session:
            record = await session.get(TrackedResourceRecord, resource_id)
            return None if record is None else to_tracked_resource(record)

    async def list_due(
        self, shard_key: int, cooldown_cutoff: dt.datetime
    ) -> list[TrackedResource]:
        """Return the resources to poll for one scheduler invocation.

        Selection is the union of the shard whose key matches
        ``id % shard_count`` and any failing resource (``consecutive_errors``
        at or above the ceiling) not polled since ``cooldown_cutoff``. The
        least recently polled resources come first, never-polled ones before
        all others.

        Parameters
        ----------
        shard_key:
            Current time bucket in ``[0, shard_count)``.
        cooldown_cutoff:
            Failing resources last polled before this instant are re-probed.

        """
        cutoff = require_aware(cooldown_cutoff, field="cooldown_cutoff")
        record = TrackedResourceRecord
        in_shard = record.id % self._shard_count == shard_key
        cooled_down_failure = and_(
            record.consecutive_errors >= self._error_ceiling,
            or_(record.last_polled_at.is_(None), record.last_polled_at < cutoff),
        )
        stmt = (
            select(record)
            .where(or_(in_shard, cooled_down_failure))
            .order_by(record.last_polled_at.asc().nulls_first(), record.id)
            .limit(self._list_limit)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [to_tracked_resource(row) for row in rows]

    async def record_outcome(
        self, resource_id: int, *, success: bool, at: dt.datetime
    ) -> None:
        """Record one poll attempt for ``resource_id``.

        Success resets ``consecutive_errors`` to zero and failure increments
        it; ``last_polled_at`` moves to ``at`` either way so failing resources
        back off in wall-clock time.

        Raises
        ------
        ResourceNotFoundError
            If no resource with ``resource_id`` exists.

        """
        polled_at = require_aware(at, field="at")
        record = TrackedResourceRecord
        errors = 0 if success else record.consecutive_errors + 1
        stmt = (
            update(record)
            .where(record.id == resource_id)
            .values(consecutive_errors=errors, last_polled_at=polled_at)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            updated = result.rowcount
        if updated == 0:
            raise ResourceNotFoundError(resource_id)

    @staticmethod
    async def _load_by_slug(
        session: AsyncSession, owner: str, name: str
    ) -> TrackedResourceRecord | None:
        return await session.scalar(
            select(TrackedResourceRecord).where(
                TrackedResourceRecord.owner == owner,
                TrackedResourceRecord.name == name,
            )
        )
