"""Tests for the in-process TTL cache."""

import pytest

from core.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl=30, clock=clock)


class TestTTLCache:
    """Expiry and eviction behavior."""

    def test_get_returns_value_before_expiry(self, cache, clock):
        cache.set(("user-1", 1), "admin")
        clock.advance(29.999)
        assert cache.get(("user-1", 1)) == "admin"

    def test_entry_expires_exactly_at_ttl(self, cache, clock):
        """An entry read exactly at the TTL boundary is a miss."""
        cache.set("key", "value")
        clock.advance(30)
        assert cache.get("key") is None
        assert len(cache) == 0

    def test_missing_key_returns_none(self, cache):
        assert cache.get("nope") is None
        assert "nope" not in cache

    def test_set_restarts_expiry(self, cache, clock):
        cache.set("key", "v1")
        clock.advance(20)
        cache.set("key", "v2")
        clock.advance(20)
        assert cache.get("key") == "v2"

    def test_delete(self, cache):
        cache.set("key", "value")
        assert cache.delete("key") is True
        assert cache.delete("key") is False
        assert cache.get("key") is None

    def test_delete_where_removes_matching_keys_only(self, cache):
        cache.set(("user-1", 1), "owner")
        cache.set(("user-1", 2), "viewer")
        cache.set(("user-2", 1), "admin")

        removed = cache.delete_where(lambda key: key[0] == "user-1")

        assert removed == 2
        assert cache.get(("user-1", 1)) is None
        assert cache.get(("user-2", 1)) == "admin"

    def test_purge_expired(self, cache, clock):
        cache.set("old", 1)
        clock.advance(15)
        cache.set("new", 2)
        clock.advance(15)

        assert cache.purge_expired() == 1
        assert len(cache) == 1
        assert cache.get("new") == 2

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_rejects_non_positive_ttl(self, ttl):
        with pytest.raises(ValueError):
            TTLCache(ttl=ttl)
