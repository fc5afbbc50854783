"""AdLens — Ad Spend Data Models.

Products and designers live in shared tables. Ad spend rows live in one
table per product (e.g. ``cb_ads_data``) that the CSV upload provisions;
``ads_table`` describes those tables for the query builder.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, field_validator
from sqlalchemy import Column, Float, Integer, MetaData, String, Table
from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """A product whose ads are tracked in its own ads table."""

    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, description="Display name, e.g. ColonBroom")
    table_name: str = Field(description="Per-product ads table, e.g. cb_ads_data")
    initials: str = Field(default="", description="Product code used in ad names")
    category: str = Field(default="")
    website: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Designer(SQLModel, table=True):
    """A creative designer, scoped to one product.

    Ads are attributed to a designer when ``_{initials}_`` appears in the ad name.
    """

    __tablename__ = "designers"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    surname: str = ""
    initials: str = Field(index=True)
    product: str = Field(index=True, description="Initials of the owning product")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AdRecord(BaseModel):
    """One ad observed in one week. ``ad_name`` repeats across weeks."""

    ad_name: str
    week_number: str
    spend_usd: float = 0.0
    impressions: float = 0.0
    days_running: float = 0.0
    creative_type: str = ""
    is_creative_hub: int = 0
    last_ad_spend_date: Optional[str] = None
    first_ad_spend_date: Optional[str] = None
    year_created: Optional[int] = None

    # Keep aspect_ratio, adset_name, ... from the source table
    model_config = {"extra": "allow"}

    @field_validator("spend_usd", "impressions", "days_running", mode="before")
    @classmethod
    def _null_as_zero(cls, v):
        return 0.0 if v is None else v

    @field_validator("is_creative_hub", mode="before")
    @classmethod
    def _hub_flag(cls, v):
        if v is None:
            return 0
        return 1 if v in (1, True, "1", "true", "TRUE") else 0

    @field_validator("creative_type", mode="before")
    @classmethod
    def _creative_type(cls, v):
        return "" if v is None else v

    @field_validator("last_ad_spend_date", "first_ad_spend_date", mode="before")
    @classmethod
    def _date_as_str(cls, v):
        return None if v is None else str(v)


_ads_metadata = MetaData()


@lru_cache(maxsize=None)
def ads_table(table_name: str) -> Table:
    """Describe a per-product ads table for SQLAlchemy Core queries."""
    return Table(
        table_name,
        _ads_metadata,
        Column("id", Integer, primary_key=True),
        Column("ad_name", String, index=True),
        Column("adset_name", String),
        Column("week_number", String, index=True),
        Column("spend_usd", Float),
        Column("impressions", Float),
        Column("days_running", Float),
        Column("creative_type", String),
        Column("is_creative_hub", Integer),
        Column("aspect_ratio", String),
        Column("first_ad_spend_date", String),
        Column("last_ad_spend_date", String),
        Column("year_created", Integer),
    )
