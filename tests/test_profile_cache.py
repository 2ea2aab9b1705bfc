"""Tests for the session profile cache."""
import asyncio

from bookshelf.models import Profile
from bookshelf.profile_cache import ProfileCache
from bookshelf.store import InMemoryDocumentStore


class CountingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.profile_reads = 0

    async def get_profile(self, user_id):
        self.profile_reads += 1
        return await super().get_profile(user_id)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_cache(ttl=60):
    store = CountingStore()
    store.put_profile(Profile(uid="u1", display_name="Tenar"))
    clock = FakeClock()
    return store, clock, ProfileCache(store, ttl=ttl, clock=clock)


def test_get_serves_fresh_entries_from_cache():
    store, clock, cache = make_cache()

    first = asyncio.run(cache.get("u1"))
    clock.now = 30
    second = asyncio.run(cache.get("u1"))

    assert first.display_name == "Tenar"
    assert second is first
    assert store.profile_reads == 1


def test_expired_entries_are_reloaded():
    store, clock, cache = make_cache(ttl=60)

    asyncio.run(cache.get("u1"))
    clock.now = 61
    asyncio.run(cache.get("u1"))

    assert store.profile_reads == 2


def test_invalidate_and_refresh():
    store, clock, cache = make_cache()
    asyncio.run(cache.get("u1"))

    store.put_profile(Profile(uid="u1", display_name="Arha"))
    assert asyncio.run(cache.get("u1")).display_name == "Tenar"

    cache.invalidate("u1")
    assert "u1" not in cache
    assert asyncio.run(cache.get("u1")).display_name == "Arha"

    store.put_profile(Profile(uid="u1", display_name="Tenar of Atuan"))
    assert asyncio.run(cache.refresh("u1")).display_name == "Tenar of Atuan"

    cache.invalidate()
    assert "u1" not in cache


def test_missing_profiles_are_not_cached():
    store, clock, cache = make_cache()

    assert asyncio.run(cache.get("ghost")) is None
    assert "ghost" not in cache
    asyncio.run(cache.get("ghost"))
    assert store.profile_reads == 2
