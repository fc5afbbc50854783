"""AdLens — Scheduler Jobs.

APScheduler interval job that keeps every product's analytics warm in the
cache, so dashboard requests rarely pay for a cold load.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from adlens.analyzer.calculator import AdsCalculator
from adlens.config import settings
from adlens.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


async def warm_cache_job(calculator: AdsCalculator) -> int:
    """Compute analytics for every registered product. Returns how many warmed."""
    logger.info("Scheduled cache warm-up starting...")
    try:
        products = await calculator.store.list_products()
    except Exception as e:
        logger.error(f"Cache warm-up could not list products: {e}")
        return 0

    warmed = 0
    for p in products:
        try:
            await calculator.get_complete_product_analytics(
                p["table_name"], p["name"], p.get("initials") or None
            )
            warmed += 1
        except Exception as e:
            logger.error(
                f"Cache warm-up failed for {p['name']}: {e}",
                extra={"product": p["name"]},
            )
    logger.info(f"Cache warm-up complete: {warmed}/{len(products)} products")
    return warmed


def start_scheduler(calculator: AdsCalculator):
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        warm_cache_job,
        "interval",
        minutes=settings.cache_warm_minutes,
        args=[calculator],
        id="warm_cache",
        replace_existing=True,
        misfire_grace_time=300,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Cache warm-up every {settings.cache_warm_minutes} min")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
