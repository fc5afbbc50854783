"""Shared fixtures: row factories and an in-memory ads store."""

import asyncio
from collections import Counter
from datetime import datetime

import pytest

from adlens.analyzer.calculator import AdsCalculator
from adlens.connectors.ads_store import AdsStoreError
from adlens.core.cache import TieredCache
from adlens.core.performance import PerformanceCounters
from adlens.loader.incremental import BoundedSampleStrategy, IncrementalLoader
from adlens.models.ad_models import AdRecord

# Week 11 of 2025: 8-week window starts at W03, 6-week at W05
FIXED_NOW = datetime(2025, 3, 15)


def ad(name, week, spend, **kw) -> AdRecord:
    return AdRecord(ad_name=name, week_number=week, spend_usd=spend, **kw)


def table_rows():
    """Three ads over ten weeks: 30 rows, spend rising with the week."""
    rows = []
    for w in range(1, 11):
        week = f"W{w:02d}"
        rows.append(ad("CB_JD_UGC_1", week, 100.0 * w, creative_type="VIDEO", days_running=7, impressions=1000))
        rows.append(ad("CB_MK_STATIC_2", week, 20.0 * w, creative_type="IMAGE", days_running=5, impressions=200))
        rows.append(ad("CB_XX_OLD_3", week, 5.0, creative_type="IMAGE", days_running=2, impressions=50))
    return rows


class FakeAdsStore:
    """In-memory stand-in for AdsStore that counts calls."""

    def __init__(self, tables=None, designers=None, products=None, delay=0.0):
        self.tables = tables or {}
        self.designers = designers or []
        self.products = products or []
        self.delay = delay
        self.fail = set()
        self.calls = Counter()
        # name -> callable run once, before that call reads its rows
        self.hooks = {}

    async def _enter(self, name):
        self.calls[name] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        if name in self.fail:
            raise AdsStoreError(f"{name} exploded")
        hook = self.hooks.pop(name, None)
        if hook is not None:
            hook()

    def _ordered(self, table_name):
        return sorted(
            self.tables.get(table_name, []),
            key=lambda r: (r.week_number, -r.spend_usd),
        )

    async def fetch_recent(self, table_name, min_week):
        await self._enter("fetch_recent")
        return [r for r in self._ordered(table_name) if r.week_number >= min_week]

    async def fetch_page(self, table_name, limit, offset=0):
        await self._enter("fetch_page")
        return self._ordered(table_name)[offset : offset + limit]

    async def fetch_top_by_spend(self, table_name, limit):
        await self._enter("fetch_top_by_spend")
        rows = sorted(self.tables.get(table_name, []), key=lambda r: -r.spend_usd)
        return rows[:limit]

    async def count(self, table_name):
        await self._enter("count")
        return len(self.tables.get(table_name, []))

    async def fetch_designers(self, product_initials):
        await self._enter("fetch_designers")
        return [d for d in self.designers if d["product"] == product_initials]

    async def find_products(self, name):
        await self._enter("find_products")
        return [p for p in self.products if name.lower() in p["name"].lower()]

    async def list_products(self):
        await self._enter("list_products")
        return list(self.products)


PRODUCTS = [
    {"id": 1, "name": "ColonBroom", "table_name": "cb_ads_data", "initials": "CB"},
    {"id": 2, "name": "Bioma", "table_name": "bm_ads_data", "initials": "BM"},
    {"id": 3, "name": "Bioma Kids", "table_name": "bk_ads_data", "initials": "BK"},
]

DESIGNERS = [
    {"id": 1, "name": "Jane", "surname": "Doe", "initials": "JD", "product": "CB"},
    {"id": 2, "name": "Max", "surname": "Kane", "initials": "MK", "product": "CB"},
]


@pytest.fixture
def store():
    return FakeAdsStore(
        tables={"cb_ads_data": table_rows()},
        designers=list(DESIGNERS),
        products=list(PRODUCTS),
    )


def build_calculator(store, threshold=None, sample_size=None, page_size=None):
    cache = TieredCache()
    counters = PerformanceCounters()
    loader = IncrementalLoader(
        store,
        cache,
        counters,
        strategy=BoundedSampleStrategy(threshold, sample_size),
        page_size=page_size,
        now=lambda: FIXED_NOW,
    )
    return AdsCalculator(store, cache=cache, counters=counters, loader=loader)


@pytest.fixture
def calculator(store):
    return build_calculator(store)
