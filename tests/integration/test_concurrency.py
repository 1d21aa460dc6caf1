"""
TagCache — Concurrency Tests

Replace is delete-then-write with no transaction around it. These tests pin
down the observable consequences for concurrent callers.
"""

import asyncio
from typing import Any

import pytest

from tagcache.cache.engine import CacheEngine
from tagcache.errors import NotFound


async def _wait_for_writers(backend: Any, count: int) -> None:
    while backend.waiting < count:
        await asyncio.sleep(0)


class TestNonAtomicReplace:
    async def test_reader_sees_miss_between_delete_and_write(self, gated_backend: Any) -> None:
        engine = CacheEngine(gated_backend)
        gated_backend.release.set()
        await engine.set("shop1", "a", "old")

        gated_backend.release.clear()
        gated_backend.waiting = 0
        writer = asyncio.create_task(engine.set("shop1", "a", "new"))
        await _wait_for_writers(gated_backend, 1)

        # Old value already deleted, new one not yet written
        with pytest.raises(NotFound):
            await engine.get("shop1", "a")

        gated_backend.release.set()
        await writer

        assert await engine.get("shop1", "a") == "new"

    async def test_concurrent_writers_leave_both_memberships(self, gated_backend: Any) -> None:
        engine = CacheEngine(gated_backend)

        first = asyncio.create_task(engine.set("shop1", "a", "v1", tags={"t1"}))
        second = asyncio.create_task(engine.set("shop1", "a", "v2", tags={"t2"}))
        await _wait_for_writers(gated_backend, 2)

        gated_backend.release.set()
        await asyncio.gather(first, second)

        assert await gated_backend.ids_for_tag("shop1:t1") == {"a"}
        assert await gated_backend.ids_for_tag("shop1:t2") == {"a"}

        stored = await engine.get_entry("shop1", "a")
        (current_tag,) = stored.tags
        stale_tag = "t1" if current_tag == "t2" else "t2"

        # The stale membership is dropped without touching the value
        assert await engine.delete_by_tag("shop1", stale_tag) == 0
        assert await engine.get("shop1", "a") == stored.payload()
        assert await gated_backend.ids_for_tag(f"shop1:{stale_tag}") == set()

        assert await engine.delete_by_tag("shop1", current_tag) == 1
        with pytest.raises(NotFound):
            await engine.get("shop1", "a")

    async def test_concurrent_tenants_do_not_interfere(self, engine: CacheEngine) -> None:
        async def fill(tenant: str) -> None:
            for i in range(10):
                await engine.set(tenant, f"k{i}", f"{tenant}-{i}", tags={"all"})

        await asyncio.gather(fill("shop1"), fill("shop2"))

        assert await engine.delete_by_tag("shop1", "all") == 10
        assert await engine.get("shop2", "k3") == "shop2-3"
