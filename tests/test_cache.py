"""Tests for the tiered cache, performance counters and single flight."""

import asyncio

import pytest

from adlens.core.cache import CacheMetadata, TieredCache, make_key
from adlens.core.performance import PerformanceCounters
from adlens.core.single_flight import SingleFlight


class FakeClock:
    def __init__(self, t=1_000_000.0):
        self.t = t

    def __call__(self):
        return self.t


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TieredCache(short_ttl=900, long_ttl=3600, clock=clock)


class TestTTL:
    def test_short_boundary(self, cache, clock):
        cache.put("k", 1)
        clock.t += 899.999
        assert cache.is_valid("k")
        clock.t += 0.002
        assert not cache.is_valid("k")

    def test_long_boundary(self, cache, clock):
        cache.put("k", 1)
        clock.t += 3599.999
        assert cache.is_valid("k", long_ttl=True)
        clock.t += 0.002
        assert not cache.is_valid("k", long_ttl=True)

    def test_lookup_respects_ttl(self, cache, clock):
        cache.put("k", "value")
        assert cache.lookup("k").data == "value"
        clock.t += 901
        assert cache.lookup("k") is None
        assert cache.lookup("k", long_ttl=True).data == "value"
        # get() ignores age
        assert cache.get("k").data == "value"

    def test_missing_key(self, cache):
        assert not cache.is_valid("nope")
        assert cache.lookup("nope") is None

    def test_put_overwrites_and_restamps(self, cache, clock):
        cache.put("k", 1)
        clock.t += 800
        cache.put("k", 2, CacheMetadata(record_count=5, type="recent"))
        clock.t += 800
        entry = cache.lookup("k")
        assert entry.data == 2
        assert entry.metadata.record_count == 5

    def test_lookup_and_is_valid_agree_at_boundary(self, cache, clock):
        cache.put("k", 1)
        for step in (899.999, 0.002):
            clock.t += step
            assert cache.is_valid("k") == (cache.lookup("k") is not None)


class TestGenerations:
    def test_write_after_invalidation_is_dropped(self, cache):
        key = make_key("full", "cb_ads_data")
        before = cache.generation("cb_ads_data")
        cache.invalidate_table("cb_ads_data")
        assert cache.put(key, ["stale"], generation=before) is None
        assert key not in cache

    def test_other_tables_are_unaffected(self, cache):
        before = cache.generation("bm_ads_data")
        cache.invalidate_table("cb_ads_data")
        assert cache.put(make_key("full", "bm_ads_data"), [], generation=before) is not None

    def test_clear_invalidates_every_table(self, cache):
        before = cache.generation("bm_ads_data")
        cache.clear()
        assert cache.generation("bm_ads_data") != before
        assert cache.put(make_key("recent", "bm_ads_data", 8), [], generation=before) is None

    def test_current_generation_writes(self, cache):
        cache.invalidate_table("cb_ads_data")
        now = cache.generation("cb_ads_data")
        assert cache.put(make_key("full", "cb_ads_data"), [1], generation=now) is not None
        assert cache.lookup("full:cb_ads_data").data == [1]


class TestEviction:
    def test_sweep_drops_only_old_entries(self, cache, clock):
        cache.put("old", 1)
        clock.t += 3000
        cache.put("young", 2)
        clock.t += 600.5
        assert cache.sweep() == 1
        assert cache.keys() == ["young"]

    def test_invalidate_table(self, cache):
        for key in (
            make_key("recent", "cb_ads_data", 8),
            make_key("full", "cb_ads_data"),
            make_key("analytics", "cb_ads_data", "ColonBroom"),
            make_key("full", "bm_ads_data"),
        ):
            cache.put(key, [])
        assert cache.invalidate_table("cb_ads_data") == 3
        assert cache.keys() == ["full:bm_ads_data"]

    def test_clear(self, cache):
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear()
        assert len(cache) == 0


class TestPerformanceCounters:
    def test_snapshot(self):
        counters = PerformanceCounters()
        for _ in range(3):
            counters.record_cache_hit()
        counters.record_cache_miss()
        counters.record_query(100.0, 50)
        snap = counters.snapshot()
        assert snap.cache_hit_rate == 75.0
        assert snap.average_query_time_ms == 2.0
        assert snap.records_processed == 50

    def test_accumulates_until_reset(self):
        counters = PerformanceCounters()
        counters.record_query(10, 5)
        counters.record_query(20, 5)
        assert counters.snapshot().query_time_ms == 30
        counters.reset()
        snap = counters.snapshot()
        assert (snap.query_time_ms, snap.records_processed, snap.cache_hits) == (0, 0, 0)
        assert snap.cache_hit_rate == 0


class TestSingleFlight:
    def test_concurrent_callers_share_one_run(self):
        async def scenario():
            sf = SingleFlight()
            calls = 0

            async def work():
                nonlocal calls
                calls += 1
                await asyncio.sleep(0.01)
                return "done"

            results = await asyncio.gather(*(sf.do("k", work) for _ in range(3)))
            await asyncio.sleep(0)
            return calls, results, len(sf)

        calls, results, pending = asyncio.run(scenario())
        assert calls == 1
        assert results == ["done"] * 3
        assert pending == 0

    def test_distinct_keys_run_separately(self):
        async def scenario():
            sf = SingleFlight()
            seen = []

            async def work(key):
                seen.append(key)
                await asyncio.sleep(0)
                return key

            return await asyncio.gather(
                sf.do("a", lambda: work("a")), sf.do("b", lambda: work("b"))
            ), seen

        results, seen = asyncio.run(scenario())
        assert results == ["a", "b"]
        assert sorted(seen) == ["a", "b"]

    def test_failure_is_shared_and_forgotten(self):
        async def scenario():
            sf = SingleFlight()
            calls = 0

            async def boom():
                nonlocal calls
                calls += 1
                await asyncio.sleep(0)
                raise ValueError("nope")

            outcomes = await asyncio.gather(
                sf.do("k", boom), sf.do("k", boom), return_exceptions=True
            )
            await asyncio.sleep(0)
            assert not sf.in_flight("k")
            with pytest.raises(ValueError):
                await sf.do("k", boom)
            return calls, outcomes

        calls, outcomes = asyncio.run(scenario())
        assert calls == 2
        assert all(isinstance(o, ValueError) for o in outcomes)
