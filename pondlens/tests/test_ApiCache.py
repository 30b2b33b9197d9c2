"""Unit tests for ApiCache."""

import pytest

from pondlens.src.ApiCache import ApiCache, CacheEntry


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestCacheEntry:
    """Test CacheEntry invariants."""

    def test_expiry_must_follow_capture(self) -> None:
        """expires_at equal to captured_at should be rejected."""
        with pytest.raises(ValueError):
            CacheEntry(payload={}, captured_at=10.0, expires_at=10.0)

    def test_is_fresh_until_expiry(self) -> None:
        """Entry should be fresh up to and including expires_at."""
        entry = CacheEntry(payload={}, captured_at=10.0, expires_at=20.0)
        assert entry.is_fresh(20.0)
        assert not entry.is_fresh(20.1)


class TestApiCacheBasics:
    """Test set/get behavior."""

    def test_get_missing_key(self) -> None:
        """Unknown keys should return None."""
        cache = ApiCache()
        assert cache.get("missing") is None
        assert cache.get_stale("missing") is None

    def test_set_and_get(self) -> None:
        """Stored payloads should be returned while fresh."""
        cache = ApiCache(clock=FakeClock())
        cache.set("k", {"swaps": 42})
        assert cache.get("k") == {"swaps": 42}
        assert cache.has("k")

    def test_set_uses_default_ttl(self) -> None:
        """Entries without an explicit TTL should use default_ttl."""
        clock = FakeClock(1000.0)
        cache = ApiCache(default_ttl=60.0, clock=clock)
        entry = cache.set("k", 1)
        assert entry.captured_at == 1000.0
        assert entry.expires_at == 1060.0

    def test_non_positive_ttl_rejected(self) -> None:
        """Zero or negative TTLs should raise."""
        cache = ApiCache()
        with pytest.raises(ValueError):
            cache.set("k", 1, ttl=0)
        with pytest.raises(ValueError):
            ApiCache(default_ttl=-1)

    def test_refresh_replaces_entry(self) -> None:
        """Setting a key again should replace the entry wholesale."""
        clock = FakeClock()
        cache = ApiCache(clock=clock)
        first = cache.set("k", "old")
        clock.now += 5
        second = cache.set("k", "new")
        assert cache.get("k") == "new"
        assert second.captured_at > first.captured_at
        assert len(cache) == 1


class TestApiCacheExpiry:
    """Test stale entries are kept for fallback."""

    def test_expired_entry_not_returned_by_get(self) -> None:
        """get() should ignore expired entries."""
        clock = FakeClock()
        cache = ApiCache(default_ttl=10.0, clock=clock)
        cache.set("k", "v")
        clock.now += 11
        assert cache.get("k") is None
        assert not cache.has("k")

    def test_expired_entry_survives_read(self) -> None:
        """Reading an expired entry should not delete it."""
        clock = FakeClock()
        cache = ApiCache(default_ttl=10.0, clock=clock)
        cache.set("k", "v")
        clock.now += 11
        cache.get("k")
        assert cache.get_stale("k") == "v"
        assert len(cache) == 1

    def test_clear(self) -> None:
        """clear() should drop every entry and report how many."""
        cache = ApiCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert len(cache) == 0


class TestApiCacheStats:
    """Test get_stats() reporting."""

    def test_stats_report_age_and_ttl(self) -> None:
        """Stats should include per-entry age and remaining TTL."""
        clock = FakeClock()
        cache = ApiCache(default_ttl=300.0, clock=clock)
        cache.set("k", 1)
        clock.now += 100
        stats = cache.get_stats()

        assert stats["size"] == 1
        assert stats["entries"] == [{"key": "'k'", "age": 100, "ttl": 200}]

    def test_stats_negative_ttl_when_expired(self) -> None:
        """Expired entries should report a negative remaining TTL."""
        clock = FakeClock()
        cache = ApiCache(default_ttl=10.0, clock=clock)
        cache.set("k", 1)
        clock.now += 15
        assert cache.get_stats()["entries"][0]["ttl"] == -5
