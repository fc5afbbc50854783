"""AdLens — Cache & Performance Routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from adlens.analyzer.calculator import AdsCalculator
from adlens.api.dependencies import get_calculator, resolve_product

router = APIRouter(tags=["Cache"])


@router.post("/cache/clear")
async def clear_cache(calculator: AdsCalculator = Depends(get_calculator)):
    """Drop every cached dataset and reset performance counters."""
    calculator.clear_all_caches()
    return {
        "success": True,
        "message": "All caches cleared successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/cache/invalidate/{product}")
async def invalidate_product_cache(
    product: str, calculator: AdsCalculator = Depends(get_calculator)
):
    """Drop cached data for one product, e.g. after its CSV upload."""
    info = await resolve_product(calculator, product)
    removed = calculator.invalidate_product(info.table_name)
    return {"success": True, "product": info.name, "entries_removed": removed}


@router.get("/performance")
async def get_performance(calculator: AdsCalculator = Depends(get_calculator)):
    """Query and cache counters for the performance monitor."""
    return {"metrics": calculator.get_performance_metrics()}


@router.post("/performance/reset")
async def reset_performance(calculator: AdsCalculator = Depends(get_calculator)):
    calculator.reset_performance_metrics()
    return {"success": True}
