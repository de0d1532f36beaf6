import re

import pytest

from briefai.infrastructure.cache.caching_service import CachingServiceImpl


@pytest.fixture
def cache(clock):
    return CachingServiceImpl(default_ttl=10, max_items=3, clock=clock)


@pytest.mark.asyncio
async def test_get_returns_value_within_ttl(cache, clock):
    await cache.set("serp:query:a", ["result"])
    clock.advance(10)  # exactly at the TTL boundary, still valid
    assert await cache.get("serp:query:a") == ["result"]
    assert cache.hits == 1


@pytest.mark.asyncio
async def test_entry_expires_after_ttl_and_is_removed(cache, clock):
    await cache.set("k", "v")
    clock.advance(11)
    assert await cache.get("k") is None
    assert len(cache) == 0
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_per_entry_ttl_overrides_default(cache, clock):
    await cache.set("short", 1, ttl=1)
    await cache.set("long", 2)
    clock.advance(5)
    assert await cache.get("short") is None
    assert await cache.get("long") == 2


@pytest.mark.asyncio
async def test_capacity_is_never_exceeded_and_oldest_write_goes_first(cache):
    for key in ["a", "b", "c", "d"]:
        await cache.set(key, key.upper())
        assert len(cache) <= 3

    assert await cache.get("a") is None
    assert await cache.get("d") == "D"
    assert cache.evictions == 1


@pytest.mark.asyncio
async def test_overwrite_refreshes_write_order(cache):
    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.set("c", 3)
    await cache.set("a", 10)  # a is now the newest write
    await cache.set("d", 4)

    assert await cache.get("b") is None
    assert await cache.get("a") == 10


@pytest.mark.asyncio
async def test_invalidate_removes_matching_keys_only(cache):
    await cache.set("serp:query:seo", 1)
    await cache.set("serp:query:ads", 2)
    await cache.set("brief:topic:seo", 3)

    removed = await cache.invalidate(r"^serp:")

    assert removed == 2
    assert await cache.get("brief:topic:seo") == 3
    assert not cache.has_valid("serp:query:seo")


@pytest.mark.asyncio
async def test_invalidate_rejects_bad_pattern(cache):
    with pytest.raises(re.error):
        await cache.invalidate("(")


@pytest.mark.asyncio
async def test_clear_and_stats(cache, clock):
    await cache.set("a", 1)
    clock.advance(2)
    await cache.get("a")
    await cache.get("missing")

    stats = cache.stats()
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
    assert stats["entries"] == [{"key": "a", "age_ms": 2000, "ttl_ms": 10000}]

    await cache.clear()
    assert cache.stats()["size"] == 0


def test_generate_key_sorts_parameters():
    key = CachingServiceImpl.generate_key("serp", {"query": "seo", "kind": "primary"})
    assert key == "serp:kind:primary|query:seo"
    assert key == CachingServiceImpl.generate_key("serp", {"kind": "primary", "query": "seo"})


def test_max_items_must_be_positive():
    with pytest.raises(ValueError):
        CachingServiceImpl(max_items=0)
