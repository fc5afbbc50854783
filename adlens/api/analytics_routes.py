"""AdLens — Product Analytics Routes."""

from fastapi import APIRouter, Depends, HTTPException, Query

from adlens.analyzer.calculator import AdsCalculator
from adlens.analyzer.active_engine import MIN_DAYS_RUNNING, MIN_SPEND
from adlens.api.dependencies import get_calculator, resolve_product
from adlens.core.logging import get_logger

logger = get_logger("api.analytics")

router = APIRouter(prefix="/products/{product}", tags=["Analytics"])


def _fail(product: str, what: str, e: Exception) -> HTTPException:
    logger.error(f"{what} failed for {product}: {e}", extra={"product": product})
    return HTTPException(status_code=500, detail=f"{what} failed: {str(e)}")


@router.get("/analytics")
async def get_analytics(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Complete analytics: stats, weekly rollup, top ads, designers, metadata."""
    info = await resolve_product(calculator, product)
    try:
        analytics = await calculator.get_complete_product_analytics(
            info.table_name, info.name, info.initials or None
        )
        return {"status": "success", "analytics": analytics}
    except Exception as e:
        raise _fail(product, "Analytics", e)


@router.get("/stats")
async def get_stats(product: str, calculator: AdsCalculator = Depends(get_calculator)):
    """Headline stats for the product dashboard."""
    info = await resolve_product(calculator, product)
    try:
        stats = await calculator.get_product_stats(
            info.table_name, info.name, info.initials or None
        )
        return {"stats": stats}
    except Exception as e:
        raise _fail(product, "Stats", e)


@router.get("/weekly-data")
async def get_weekly_data(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Per-week rollup, oldest week first."""
    info = await resolve_product(calculator, product)
    try:
        weekly = await calculator.get_product_weekly_data(
            info.table_name, info.name, info.initials or None
        )
        return {"weekly_data": weekly}
    except Exception as e:
        raise _fail(product, "Weekly data", e)


@router.get("/top-ads")
async def get_top_ads(
    product: str,
    limit: int = Query(20, ge=1, le=20),
    calculator: AdsCalculator = Depends(get_calculator),
):
    """Ads ranked by total spend (at most the 20 cached with the analytics)."""
    info = await resolve_product(calculator, product)
    try:
        top_ads = await calculator.get_product_top_ads(
            info.table_name, info.name, info.initials or None
        )
        return {"top_ads": top_ads[:limit]}
    except Exception as e:
        raise _fail(product, "Top ads", e)


@router.get("/designers")
async def get_designers(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Designer attribution for the product's ads."""
    info = await resolve_product(calculator, product)
    try:
        designers = await calculator.get_product_designers(
            info.table_name, info.name, info.initials or None
        )
        return {"designers": designers}
    except Exception as e:
        raise _fail(product, "Designers", e)


@router.get("/active-ads")
async def get_active_ads(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Active ads in the latest weeks, with the criteria applied."""
    info = await resolve_product(calculator, product)
    try:
        result = await calculator.calculate_active_ads(info.table_name, info.name)
        return {
            "active_ads_count": result.count,
            "total_active_spend": result.total_spend,
            "video_ads_count": result.video_count,
            "image_ads_count": result.image_count,
            "active_ads": result.ads[:10],
            "criteria": {
                "weeks": result.weeks,
                "min_days_running": MIN_DAYS_RUNNING,
                "min_spend": MIN_SPEND,
            },
        }
    except Exception as e:
        raise _fail(product, "Active ads", e)


@router.get("/designer-performance/{initials}")
async def get_designer_performance(
    product: str,
    initials: str,
    calculator: AdsCalculator = Depends(get_calculator),
):
    """Week-by-week output of one designer."""
    info = await resolve_product(calculator, product)
    try:
        return await calculator.get_designer_weekly_performance(
            info.table_name, initials.upper()
        )
    except Exception as e:
        raise _fail(product, "Designer performance", e)


@router.get("/scaled-ads/{week}")
async def get_scaled_ads(
    product: str,
    week: str,
    calculator: AdsCalculator = Depends(get_calculator),
):
    """Ads that scaled within one week."""
    info = await resolve_product(calculator, product)
    try:
        scaled = await calculator.get_week_scaled_ads(info.table_name, week.upper())
        return {"scaled_ads": scaled, "week": week.upper(), "total_count": len(scaled)}
    except Exception as e:
        raise _fail(product, "Scaled ads", e)


@router.get("/creative-hub/stats")
async def get_creative_hub_stats(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Stats for the product's Creative Hub ads."""
    info = await resolve_product(calculator, product)
    try:
        return await calculator.get_creative_hub_stats(info.table_name)
    except Exception as e:
        raise _fail(product, "Creative Hub stats", e)


@router.get("/creative-hub/weekly-data")
async def get_creative_hub_weekly_data(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Per-week rollup of the product's Creative Hub ads."""
    info = await resolve_product(calculator, product)
    try:
        weeks = await calculator.get_creative_hub_weekly_data(info.table_name)
        return {"weekly_data": weeks}
    except Exception as e:
        raise _fail(product, "Creative Hub weekly data", e)


@router.get("/creative-hub/designers")
async def get_creative_hub_designers(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Creative Hub team performance over the product's hub ads."""
    info = await resolve_product(calculator, product)
    try:
        designers = await calculator.get_creative_hub_designers(info.table_name)
        return {"designers": designers}
    except Exception as e:
        raise _fail(product, "Creative Hub designers", e)
