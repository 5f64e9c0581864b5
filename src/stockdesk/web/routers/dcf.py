"""DCF endpoints: seeded default assumptions and valuation with overrides."""

import logging
import math
from typing import Any

from fastapi import APIRouter, Body, Depends

from stockdesk.analysis.dcf import DCFAssumptions, run_dcf, seed_assumptions
from stockdesk.api.alphavantage_client import AlphaVantageClient
from stockdesk.web.cache import CacheService
from stockdesk.web.dependencies import get_alphavantage_client, get_cache
from stockdesk.web.routers.financials import load_financials
from stockdesk.web.schemas import ApiResponse, AssumptionOverrides, Meta, ValuationData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dcf", tags=["dcf"])


def _valuation(symbol: str, financials: dict[str, Any], assumptions: DCFAssumptions) -> ValuationData:
    model = run_dcf(financials["latest"], assumptions)
    return ValuationData(
        symbol=symbol,
        terminal_value_finite=math.isfinite(model["terminal_value"]),
        **model,
    )


@router.get("/{symbol}", response_model=ApiResponse[ValuationData])
async def get_dcf(
    symbol: str,
    client: AlphaVantageClient = Depends(get_alphavantage_client),
    cache: CacheService = Depends(get_cache),
):
    """Value the latest fiscal year with assumptions seeded from historical medians."""
    financials, cached = await load_financials(symbol, client, cache)
    assumptions = seed_assumptions(financials["annual"])
    return ApiResponse(data=_valuation(symbol.upper(), financials, assumptions), meta=Meta(cached=cached))


@router.post("/{symbol}", response_model=ApiResponse[ValuationData])
async def post_dcf(
    symbol: str,
    overrides: AssumptionOverrides | None = Body(None),
    client: AlphaVantageClient = Depends(get_alphavantage_client),
    cache: CacheService = Depends(get_cache),
):
    """Value the latest fiscal year with user overrides on top of the seeded defaults."""
    overrides = overrides or AssumptionOverrides()
    financials, cached = await load_financials(symbol, client, cache)
    assumptions = seed_assumptions(financials["annual"])

    update = overrides.model_dump(exclude_none=True, exclude={"clamp"})
    if update:
        assumptions = DCFAssumptions(**{**assumptions.model_dump(), **update})
    if overrides.clamp:
        assumptions = assumptions.clamped()

    logger.debug("DCF %s with overrides %s", symbol, update)
    return ApiResponse(data=_valuation(symbol.upper(), financials, assumptions), meta=Meta(cached=cached))
