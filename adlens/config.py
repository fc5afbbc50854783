"""AdLens — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    cache_warm_minutes: int = 15  # Re-warm analytics cache for every product

    # ── Cache ──
    recent_cache_ttl_seconds: int = 900  # 15 min: recent windows, composed analytics
    full_cache_ttl_seconds: int = 3600  # 60 min: historical pages, full datasets

    # ── Incremental Loading ──
    full_dataset_threshold: int = 15000  # Above this row count, sample instead
    sample_size: int = 5000  # Highest-spend rows kept when sampling
    page_size: int = 1000  # Rows per paginated query
    default_recent_weeks: int = 8
    active_recent_weeks: int = 6
    designer_recent_weeks: int = 12

    # ── Analysis ──
    top_ads_limit: int = 20
    creative_hub_designers_product: str = "CHUB"  # designers.product of the hub team

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/adlens.db"
        return "sqlite:///./adlens.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
