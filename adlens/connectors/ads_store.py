"""AdLens — Ad Spend Store.

Thin async wrapper over the relational store. Queries are built with
SQLAlchemy Core against ``ads_table(name)`` and run in FastAPI's threadpool
so the event loop never blocks on the database.

Table names come from the ``products`` table and are trusted here; the
upload route validates them before any table is created.
"""

from typing import Any, Dict, List

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from adlens.models.ad_models import AdRecord, Designer, Product, ads_table
from adlens.core.logging import get_logger

logger = get_logger("connectors.ads_store")


class AdsStoreError(Exception):
    """Raised when a query against the ad spend store fails."""

    def __init__(self, message: str, table_name: str = ""):
        self.table_name = table_name
        super().__init__(message)


def _to_records(rows) -> List[AdRecord]:
    return [AdRecord.model_validate(dict(row._mapping)) for row in rows]


class AdsStore:
    """Async read access to product, designer and per-product ads tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    # ── Core Query Method ──

    async def _run(self, description: str, table_name: str, fn) -> Any:
        """Run ``fn(conn)`` in the threadpool, wrapping driver errors."""

        def _call():
            with self.engine.connect() as conn:
                return fn(conn)

        try:
            return await run_in_threadpool(_call)
        except SQLAlchemyError as e:
            raise AdsStoreError(f"{description} failed: {e}", table_name) from e

    # ── Ads Tables ──

    async def fetch_recent(self, table_name: str, min_week: str) -> List[AdRecord]:
        """Rows with ``week_number >= min_week``, week asc then spend desc."""
        t = ads_table(table_name)
        query = (
            select(t)
            .where(t.c.week_number >= min_week)
            .order_by(t.c.week_number.asc(), t.c.spend_usd.desc())
        )
        return await self._run(
            f"Recent fetch from {table_name}",
            table_name,
            lambda conn: _to_records(conn.execute(query)),
        )

    async def fetch_page(
        self, table_name: str, limit: int, offset: int = 0
    ) -> List[AdRecord]:
        """One page of the table, week asc then spend desc."""
        t = ads_table(table_name)
        query = (
            select(t)
            .order_by(t.c.week_number.asc(), t.c.spend_usd.desc())
            .limit(limit)
            .offset(offset)
        )
        return await self._run(
            f"Page fetch from {table_name} (offset {offset})",
            table_name,
            lambda conn: _to_records(conn.execute(query)),
        )

    async def fetch_top_by_spend(self, table_name: str, limit: int) -> List[AdRecord]:
        """The ``limit`` highest-spend rows of the table."""
        t = ads_table(table_name)
        query = select(t).order_by(t.c.spend_usd.desc()).limit(limit)
        return await self._run(
            f"Top-spend fetch from {table_name}",
            table_name,
            lambda conn: _to_records(conn.execute(query)),
        )

    async def count(self, table_name: str) -> int:
        t = ads_table(table_name)
        query = select(func.count()).select_from(t)
        return await self._run(
            f"Count of {table_name}",
            table_name,
            lambda conn: int(conn.execute(query).scalar_one()),
        )

    # ── Products & Designers ──

    async def fetch_designers(self, product_initials: str) -> List[Dict[str, Any]]:
        """Designers registered for a product, by the product's initials."""
        query = select(Designer.__table__).where(
            Designer.__table__.c.product == product_initials
        )
        return await self._run(
            "Designer lookup",
            "designers",
            lambda conn: [dict(r._mapping) for r in conn.execute(query)],
        )

    async def find_products(self, name: str) -> List[Dict[str, Any]]:
        """Products whose name contains ``name``, case-insensitively."""
        query = select(Product.__table__).where(
            Product.__table__.c.name.ilike(f"%{name}%")
        )
        return await self._run(
            "Product lookup",
            "products",
            lambda conn: [dict(r._mapping) for r in conn.execute(query)],
        )

    async def list_products(self) -> List[Dict[str, Any]]:
        query = select(Product.__table__).order_by(Product.__table__.c.name)
        return await self._run(
            "Product listing",
            "products",
            lambda conn: [dict(r._mapping) for r in conn.execute(query)],
        )
