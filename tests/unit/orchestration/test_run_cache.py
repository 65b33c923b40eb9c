"""Tests for the survey run cache."""

from __future__ import annotations

from encounter_sim.models.results import LightweightRun
from encounter_sim.orchestration.cache import RunCache


class TestRunCache:
    """Tests for bounded survey caching."""

    def test_hit_and_miss(self) -> None:
        """Test counting lookups."""
        cache = RunCache(capacity=4)
        run = LightweightRun(seed=7, final_score=3.0)

        assert cache.get(("abc", 7)) is None
        cache.put(("abc", 7), run)

        assert cache.get(("abc", 7)) == run
        assert (cache.hits, cache.misses) == (1, 1)

    def test_evicts_oldest(self) -> None:
        """Test insertion-order eviction."""
        cache = RunCache(capacity=2)
        for seed in range(3):
            cache.put(("abc", seed), LightweightRun(seed=seed))

        assert len(cache) == 2
        assert cache.get(("abc", 0)) is None
        assert cache.get(("abc", 2)) is not None

    def test_zero_capacity_disables(self) -> None:
        """Test that a zero capacity stores nothing."""
        cache = RunCache(capacity=0)
        cache.put(("abc", 1), LightweightRun(seed=1))

        assert len(cache) == 0

    def test_version_change_clears(self) -> None:
        """Test that records from another engine version are dropped."""
        cache = RunCache(capacity=4, version="1")
        cache.put(("abc", 1), LightweightRun(seed=1))

        cache.ensure_version("1")
        assert len(cache) == 1

        cache.ensure_version("2")
        assert len(cache) == 0
        assert cache.version == "2"
