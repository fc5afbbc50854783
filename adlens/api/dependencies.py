"""AdLens — Shared API Dependencies."""

from fastapi import HTTPException, Request

from adlens.analyzer.calculator import AdsCalculator, ProductNotFoundError
from adlens.connectors.ads_store import AdsStoreError
from adlens.models.ad_models import Product


def get_calculator(request: Request) -> AdsCalculator:
    """Dependency: the calculator built at startup."""
    return request.app.state.calculator


async def resolve_product(calculator: AdsCalculator, product: str) -> Product:
    """Look a product up by name, answering 404 when it is unknown."""
    try:
        return await calculator.get_product_info(product)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AdsStoreError as e:
        raise HTTPException(status_code=500, detail=f"Product lookup failed: {e}") from e
