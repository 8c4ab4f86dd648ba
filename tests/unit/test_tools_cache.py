"""Tests for the LRU + TTL cache."""

from __future__ import annotations

import pytest

from pokechat.tools.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTL:
    def test_hit_before_expiry(self) -> None:
        clock = FakeClock()
        cache: TTLCache[int] = TTLCache(capacity=4, ttl=10, clock=clock)
        cache.set("a", 1)
        clock.now = 10
        assert cache.get("a") == 1

    def test_miss_after_expiry_drops_entry(self) -> None:
        clock = FakeClock()
        cache: TTLCache[int] = TTLCache(capacity=4, ttl=10, clock=clock)
        cache.set("a", 1)
        clock.now = 10.5
        assert cache.get("a") is None
        assert "a" not in cache
        assert len(cache) == 0

    def test_set_refreshes_expiry(self) -> None:
        clock = FakeClock()
        cache: TTLCache[int] = TTLCache(capacity=4, ttl=10, clock=clock)
        cache.set("a", 1)
        clock.now = 8
        cache.set("a", 2)
        clock.now = 15
        assert cache.get("a") == 2


class TestLRU:
    def test_evicts_least_recently_used(self) -> None:
        cache: TTLCache[int] = TTLCache(capacity=2, ttl=100, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_get_refreshes_recency(self) -> None:
        cache: TTLCache[int] = TTLCache(capacity=2, ttl=100, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.get("a") == 1
        cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache

    def test_len_and_clear(self) -> None:
        cache: TTLCache[str] = TTLCache(capacity=3, ttl=100, clock=FakeClock())
        cache.set("a", "x")
        cache.set("b", "y")
        assert len(cache) == 2
        cache.clear()
        assert len(cache) == 0

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match=r"capacity"):
            TTLCache(capacity=0)

    def test_defaults(self) -> None:
        assert TTLCache().capacity == 200
