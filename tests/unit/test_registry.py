"""Unit tests for ResourceRegistry."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from releasewire.registry import ResourceNotFoundError, ResourceRegistry
from tests.fakes import BASE_TIME

if typ.TYPE_CHECKING:
    from releasewire.db import SessionFactory

COOLDOWN_CUTOFF = BASE_TIME - dt.timedelta(minutes=5)


@pytest.fixture
def registry(session_factory: SessionFactory) -> ResourceRegistry:
    """Return a registry with four shards and an error ceiling of two."""
    return ResourceRegistry(
        session_factory, shard_count=4, error_ceiling=2, list_limit=100
    )


async def _track_many(registry: ResourceRegistry, count: int) -> list[int]:
    return [(await registry.track("acme", f"repo-{n}")).id for n in range(count)]


class TestTrack:
    """Tests for ResourceRegistry.track."""

    @pytest.mark.asyncio
    async def test_is_idempotent(self, registry: ResourceRegistry) -> None:
        """Tracking the same slug twice returns the same resource."""
        first = await registry.track("acme", "widget", default_branch="trunk")
        second = await registry.track("acme", "widget")

        assert first.id == second.id, "expected the existing resource"
        assert second.default_branch == "trunk", "existing row is left untouched"
        assert second.slug == "acme/widget", "slug should be owner/name"

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self, registry: ResourceRegistry) -> None:
        """Unknown ids read as None."""
        assert await registry.get(404) is None, "expected None for unknown id"


class TestListDue:
    """Tests for ResourceRegistry.list_due."""

    @pytest.mark.asyncio
    async def test_selects_shard_by_id_modulo(self, registry: ResourceRegistry) -> None:
        """Only resources whose id falls in the shard are selected."""
        ids = await _track_many(registry, 8)

        due = await registry.list_due(1, COOLDOWN_CUTOFF)

        assert sorted(r.id for r in due) == [i for i in ids if i % 4 == 1], (
            "expected only shard 1 members"
        )

    @pytest.mark.asyncio
    async def test_includes_cooled_down_failures_outside_shard(
        self, registry: ResourceRegistry
    ) -> None:
        """Failing resources come back once their cool-down has elapsed."""
        ids = await _track_many(registry, 4)
        failing = next(i for i in ids if i % 4 == 2)
        recent = next(i for i in ids if i % 4 == 3)
        for _ in range(2):
            await registry.record_outcome(
                failing, success=False, at=BASE_TIME - dt.timedelta(minutes=10)
            )
            await registry.record_outcome(
                recent, success=False, at=BASE_TIME - dt.timedelta(minutes=1)
            )

        due_ids = {r.id for r in await registry.list_due(0, COOLDOWN_CUTOFF)}

        assert failing in due_ids, "cooled-down failure should be re-probed"
        assert recent not in due_ids, "recent failure is still cooling down"

    @pytest.mark.asyncio
    async def test_failure_below_ceiling_waits_for_shard(
        self, registry: ResourceRegistry
    ) -> None:
        """Resources below the error ceiling are only polled on their shard."""
        ids = await _track_many(registry, 4)
        flaky = next(i for i in ids if i % 4 == 2)
        await registry.record_outcome(
            flaky, success=False, at=BASE_TIME - dt.timedelta(hours=1)
        )

        due_ids = {r.id for r in await registry.list_due(0, COOLDOWN_CUTOFF)}

        assert flaky not in due_ids, "one failure is below the ceiling"

    @pytest.mark.asyncio
    async def test_orders_never_polled_first_then_oldest(
        self, session_factory: SessionFactory
    ) -> None:
        """Never-polled resources lead, then the least recently polled."""
        registry = ResourceRegistry(session_factory, shard_count=1)
        ids = await _track_many(registry, 3)
        await registry.record_outcome(ids[0], success=True, at=BASE_TIME)
        await registry.record_outcome(
            ids[1], success=True, at=BASE_TIME - dt.timedelta(hours=1)
        )

        due = await registry.list_due(0, COOLDOWN_CUTOFF)

        assert [r.id for r in due] == [ids[2], ids[1], ids[0]], (
            "expected nulls first, then ascending last_polled_at"
        )

    @pytest.mark.asyncio
    async def test_respects_list_limit(self, session_factory: SessionFactory) -> None:
        """No more than list_limit resources are returned."""
        registry = ResourceRegistry(session_factory, shard_count=1, list_limit=2)
        await _track_many(registry, 5)

        assert len(await registry.list_due(0, COOLDOWN_CUTOFF)) == 2, (
            "expected the list limit to cap the selection"
        )


class TestRecordOutcome:
    """Tests for ResourceRegistry.record_outcome."""

    @pytest.mark.asyncio
    async def test_failure_increments_and_success_resets(
        self, registry: ResourceRegistry
    ) -> None:
        """Errors accumulate until a success resets them."""
        resource = await registry.track("acme", "widget")

        await registry.record_outcome(resource.id, success=False, at=BASE_TIME)
        await registry.record_outcome(resource.id, success=False, at=BASE_TIME)
        failing = await registry.get(resource.id)
        await registry.record_outcome(resource.id, success=True, at=BASE_TIME)
        healed = await registry.get(resource.id)

        assert failing is not None, "resource should exist"
        assert failing.consecutive_errors == 2, "expected two consecutive errors"
        assert failing.last_polled_at == BASE_TIME, "failure still stamps the poll"
        assert healed is not None, "resource should exist"
        assert healed.consecutive_errors == 0, "success resets the counter"

    @pytest.mark.asyncio
    async def test_unknown_resource_raises(self, registry: ResourceRegistry) -> None:
        """Recording against an unknown id raises ResourceNotFoundError."""
        with pytest.raises(ResourceNotFoundError):
            await registry.record_outcome(999, success=True, at=BASE_TIME)
