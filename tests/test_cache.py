"""Tests for the report response cache."""

import pytest

from library_insights_mcp.cache import ResponseCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(ttl_seconds=15, clock=clock)


class TestResponseCache:
    """TTL behavior with an explicit clock."""

    def test_hit_before_expiry(self, cache, clock):
        cache.set("library://reports/fines", {"items": []})
        clock.advance(14.9)
        assert cache.get("library://reports/fines") == {"items": []}

    def test_expires_at_ttl(self, cache, clock):
        cache.set("library://reports/fines", {"items": []})
        clock.advance(15)
        assert cache.get("library://reports/fines") is None
        assert len(cache) == 0

    def test_miss(self, cache):
        assert cache.get("library://reports/unknown") is None

    def test_zero_ttl_disables_cache(self, clock):
        cache = ResponseCache(ttl_seconds=0, clock=clock)
        assert cache.enabled is False
        cache.set("key", "value")
        assert cache.get("key") is None
        assert len(cache) == 0

    def test_negative_ttl_is_disabled(self):
        assert ResponseCache(ttl_seconds=-5).enabled is False

    def test_get_or_compute_computes_once(self, cache, clock):
        calls = []

        def compute():
            calls.append(1)
            return {"total": len(calls)}

        assert cache.get_or_compute("k", compute) == {"total": 1}
        assert cache.get_or_compute("k", compute) == {"total": 1}
        assert len(calls) == 1

        clock.advance(20)
        assert cache.get_or_compute("k", compute) == {"total": 2}

    def test_get_or_compute_does_not_store_failures(self, cache):
        def explode():
            raise RuntimeError("database is locked")

        with pytest.raises(RuntimeError, match="database is locked"):
            cache.get_or_compute("k", explode)
        assert len(cache) == 0
        assert cache.get_or_compute("k", lambda: "ok") == "ok"

    def test_invalidate_by_prefix(self, cache):
        cache.set("library://reports/top-borrowers/30/10", 1)
        cache.set("library://reports/top-borrowers/7/5", 2)
        cache.set("library://reports/fines/100", 3)

        assert cache.invalidate("library://reports/top-borrowers") == 2
        assert cache.get("library://reports/fines/100") == 3
        assert cache.invalidate("library://reports/top-borrowers") == 0

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_set_purges_expired_entries(self, cache, clock):
        """Distinct URIs do not accumulate once their entries expire."""
        for days in range(1, 1001):
            cache.set(f"library://reports/top-borrowers/{days}/10", {"days": days})
            clock.advance(60)
        assert len(cache) == 1

    def test_set_keeps_live_entries(self, cache, clock):
        cache.set("library://reports/fines/10", 1)
        clock.advance(10)
        cache.set("library://reports/fines/20", 2)
        clock.advance(10)
        cache.set("library://reports/fines/30", 3)

        assert len(cache) == 2
        assert cache.get("library://reports/fines/10") is None
        assert cache.get("library://reports/fines/20") == 2
