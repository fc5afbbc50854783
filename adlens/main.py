"""AdLens — FastAPI Application Entry Point.

Ad spend analytics for the marketing dashboard.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adlens.analyzer.calculator import AdsCalculator
from adlens.connectors.ads_store import AdsStore
from adlens.database import engine, init_db, test_connection
from adlens.scheduler.jobs import start_scheduler, stop_scheduler
from adlens.api.analytics_routes import router as analytics_router
from adlens.api.cache_routes import router as cache_router
from adlens.core.logging import get_logger

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 AdLens starting up...")
    logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
    if test_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"❌ Table creation failed: {e}")
    else:
        logger.error("❌ Database NOT connected, endpoints will fail")

    # One calculator per process; its cache is not shared across workers
    app.state.calculator = AdsCalculator(AdsStore(engine))
    if not IS_SERVERLESS:
        start_scheduler(app.state.calculator)
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("AdLens shut down")


app = FastAPI(
    title="AdLens",
    description="Cached ad spend analytics: weekly rollups, scaled/working ads, top ads and designer attribution per product.",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(analytics_router)
app.include_router(cache_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "adlens",
        "version": "1.0.0",
    }


@app.get("/debug/db", tags=["System"])
async def debug_db():
    """Debug endpoint: check database connectivity."""
    from adlens.database import _mask_url, db_url

    error = None
    connected = False
    try:
        connected = test_connection()
    except Exception as e:
        error = str(e)

    backend = "postgresql" if db_url.startswith("postgresql") else "sqlite"
    return {
        "connected": connected,
        "backend": backend,
        "url": _mask_url(db_url),
        "environment": "serverless" if IS_SERVERLESS else "local",
        "error": error,
    }
