"""Tests for the bounded reference cache."""

from unittest.mock import AsyncMock

import pytest

from cropwatch.live.cache import ReferenceCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_loads_once_per_key():
    cache = ReferenceCache(maxsize=4, ttl_seconds=60)
    loader = AsyncMock(return_value={"id": 1})

    assert await cache.get_or_load(1, loader) == {"id": 1}
    assert await cache.get_or_load(1, loader) == {"id": 1}

    loader.assert_awaited_once_with(1)
    assert cache.hits == 1
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_evicts_least_recently_used():
    cache = ReferenceCache(maxsize=2, ttl_seconds=60)
    loader = AsyncMock(side_effect=lambda key: {"id": key})

    await cache.get_or_load(1, loader)
    await cache.get_or_load(2, loader)
    await cache.get_or_load(1, loader)  # 1 is now most recent
    await cache.get_or_load(3, loader)

    assert len(cache) == 2
    assert 1 in cache
    assert 2 not in cache
    assert 3 in cache


@pytest.mark.asyncio
async def test_expired_entries_are_reloaded():
    clock = FakeClock()
    cache = ReferenceCache(maxsize=4, ttl_seconds=10, clock=clock)
    loader = AsyncMock(side_effect=[{"name": "old"}, {"name": "new"}])

    assert await cache.get_or_load("a", loader) == {"name": "old"}
    clock.now = 11
    assert await cache.get_or_load("a", loader) == {"name": "new"}
    assert loader.await_count == 2


@pytest.mark.asyncio
async def test_not_found_is_not_cached():
    cache = ReferenceCache()
    loader = AsyncMock(side_effect=[None, {"id": 5}])

    assert await cache.get_or_load(5, loader) is None
    assert await cache.get_or_load(5, loader) == {"id": 5}
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_loader_errors_propagate_and_leave_cache_empty():
    cache = ReferenceCache()
    loader = AsyncMock(side_effect=RuntimeError("store down"))

    with pytest.raises(RuntimeError):
        await cache.get_or_load(1, loader)
    assert len(cache) == 0


def test_maxsize_must_be_positive():
    with pytest.raises(ValueError):
        ReferenceCache(maxsize=0)


def test_invalidate():
    cache = ReferenceCache()
    cache.put("k", {"v": 1})
    cache.invalidate("k")
    assert "k" not in cache
