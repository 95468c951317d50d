"""Tests for the deduplication cache."""

from error_sentinel.dedup import DedupCache

KEY = "/api/users|GET|500|platform"


class TestDedupCache:
    def test_first_sighting_accepted(self):
        cache = DedupCache()
        assert cache.should_accept(KEY, 0, 60000) is True
        assert KEY in cache

    def test_duplicate_within_window_rejected(self):
        cache = DedupCache()
        cache.should_accept(KEY, 0, 60000)
        assert cache.should_accept(KEY, 30000, 60000) is False

    def test_accepted_after_window(self):
        cache = DedupCache()
        cache.should_accept(KEY, 0, 60000)
        assert cache.should_accept(KEY, 70000, 60000) is True

    def test_boundary_exactly_at_window(self):
        cache = DedupCache()
        cache.should_accept(KEY, 0, 60000)
        assert cache.should_accept(KEY, 59999, 60000) is False
        assert cache.should_accept(KEY, 60000, 60000) is True

    def test_rejection_does_not_extend_window(self):
        cache = DedupCache()
        cache.should_accept(KEY, 0, 1000)
        assert cache.should_accept(KEY, 900, 1000) is False
        assert cache.should_accept(KEY, 1000, 1000) is True

    def test_zero_window_disables(self):
        cache = DedupCache()
        for t in (0, 0, 1, 1):
            assert cache.should_accept(KEY, t, 0) is True
        assert len(cache) == 0

    def test_distinct_keys_tracked_independently(self):
        cache = DedupCache()
        assert cache.should_accept(KEY, 0, 60000) is True
        assert cache.should_accept("/api/users|GET|500|billing", 10, 60000) is True

    def test_acceptance_sweeps_expired_entries(self):
        cache = DedupCache()
        cache.should_accept("a", 0, 1000)
        cache.should_accept("b", 500, 1000)
        cache.should_accept("c", 1200, 1000)
        assert "a" not in cache
        assert "b" in cache
        assert "c" in cache

    def test_clear(self):
        cache = DedupCache()
        cache.should_accept(KEY, 0, 60000)
        cache.clear()
        assert len(cache) == 0
        assert cache.should_accept(KEY, 1, 60000) is True
