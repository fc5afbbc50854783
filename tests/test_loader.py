"""Tests for the incremental loader and its merge strategy."""

import asyncio

import pytest

from adlens.core.cache import TieredCache
from adlens.core.performance import PerformanceCounters
from adlens.loader.incremental import (
    BoundedSampleStrategy,
    IncrementalLoader,
    merge_records,
)
from adlens.models.analytics_models import DatasetSource

from conftest import FIXED_NOW, FakeAdsStore, ad, table_rows

TABLE = "cb_ads_data"


def make_loader(store, threshold=None, sample_size=None, page_size=None):
    return IncrementalLoader(
        store,
        TieredCache(),
        PerformanceCounters(),
        strategy=BoundedSampleStrategy(threshold, sample_size),
        page_size=page_size,
        now=lambda: FIXED_NOW,
    )


@pytest.fixture
def store():
    return FakeAdsStore(tables={TABLE: table_rows()})


class TestMerge:
    def test_recent_row_wins(self):
        merged = merge_records(
            [ad("A", "W10", 5)], [ad("A", "W10", 999), ad("B", "W01", 1)]
        )
        a_rows = [r for r in merged if (r.ad_name, r.week_number) == ("A", "W10")]
        assert len(a_rows) == 1
        assert a_rows[0].spend_usd == 5
        assert len(merged) == 2

    def test_default_strategy_limits(self):
        strategy = BoundedSampleStrategy()
        assert strategy.threshold == 15000
        assert strategy.sample_size == 5000
        assert not strategy.applies(15000)
        assert strategy.applies(15001)


class TestRecentWindow:
    def test_window_and_cache(self, store):
        loader = make_loader(store)
        rows = asyncio.run(loader.get_recent_ads_data(TABLE, 8))
        assert {r.week_number for r in rows} == {f"W{w:02d}" for w in range(3, 11)}
        asyncio.run(loader.get_recent_ads_data(TABLE, 8))
        assert store.calls["fetch_recent"] == 1
        snap = loader.counters.snapshot()
        assert (snap.cache_hits, snap.cache_misses) == (1, 1)
        assert snap.records_processed == len(rows)

    def test_window_size_is_part_of_key(self, store):
        loader = make_loader(store)
        six = asyncio.run(loader.get_recent_ads_data(TABLE, 6))
        eight = asyncio.run(loader.get_recent_ads_data(TABLE, 8))
        assert len(six) < len(eight)
        assert store.calls["fetch_recent"] == 2

    def test_failure_returns_empty_and_is_not_cached(self, store):
        store.fail.add("fetch_recent")
        loader = make_loader(store)
        assert asyncio.run(loader.get_recent_ads_data(TABLE)) == []
        assert asyncio.run(loader.get_recent_ads_data(TABLE)) == []
        assert store.calls["fetch_recent"] == 2


class TestHistorical:
    def test_pagination(self, store):
        loader = make_loader(store, page_size=7)
        rows = asyncio.run(loader.get_historical_ads_data(TABLE, 30))
        assert len(rows) == 30
        assert store.calls["fetch_page"] == 5

    def test_limit_and_offset(self, store):
        loader = make_loader(store, page_size=4)
        rows = asyncio.run(loader.get_historical_ads_data(TABLE, 6, offset=3))
        assert len(rows) == 6
        assert rows[0].week_number == "W02"


class TestAllAdsData:
    def test_small_table_loads_fully(self, store):
        loader = make_loader(store, page_size=10)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE))
        assert dataset.source == DatasetSource.FULL
        assert len(dataset.records) == 30

        again = asyncio.run(loader.get_all_ads_data(TABLE))
        assert again.source == DatasetSource.FULL
        assert store.calls["count"] == 1
        assert store.calls["fetch_page"] == 3

    def test_large_table_is_sampled(self, store):
        loader = make_loader(store, threshold=10, sample_size=5)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE))
        assert dataset.source == DatasetSource.SAMPLE
        keys = {(r.ad_name, r.week_number) for r in dataset.records}
        assert len(keys) == len(dataset.records)
        # Recent window is W03..W10 (24 rows); the top-5 spend rows all fall inside it
        assert ("CB_JD_UGC_1", "W03") in keys
        assert len(dataset.records) == 24
        assert store.calls["fetch_page"] == 0

    def test_sample_reaches_outside_window(self):
        rows = table_rows() + [ad("BIG_OLD", "W01", 50_000)]
        store = FakeAdsStore(tables={TABLE: rows})
        loader = make_loader(store, threshold=10, sample_size=5)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE))
        assert "BIG_OLD" in {r.ad_name for r in dataset.records}

    def test_non_incremental_returns_recent(self, store):
        loader = make_loader(store)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE, incremental_load=False))
        assert dataset.source == DatasetSource.RECENT
        assert store.calls["count"] == 0

    def test_count_failure_degrades_to_recent(self, store):
        store.fail.add("count")
        loader = make_loader(store)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE))
        assert dataset.source == DatasetSource.RECENT
        assert len(dataset.records) == 24

    def test_full_fetch_failure_degrades_to_recent(self, store):
        store.fail.add("fetch_page")
        loader = make_loader(store)
        dataset = asyncio.run(loader.get_all_ads_data(TABLE))
        assert dataset.source == DatasetSource.RECENT
        assert "full:cb_ads_data" not in loader.cache

    def test_empty_table(self):
        loader = make_loader(FakeAdsStore())
        dataset = asyncio.run(loader.get_all_ads_data("empty_ads_data"))
        assert dataset.records == []
        assert dataset.source == DatasetSource.RECENT
