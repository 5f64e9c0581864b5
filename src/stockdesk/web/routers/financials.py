"""Annual fundamentals endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from stockdesk.api.alphavantage_client import AlphaVantageClient
from stockdesk.api.errors import ProviderError
from stockdesk.collectors.financials import collect_financials
from stockdesk.web.cache import CacheService
from stockdesk.web.dependencies import get_alphavantage_client, get_cache
from stockdesk.web.schemas import ApiResponse, FinancialsData, Meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/financials", tags=["financials"])

# statements change quarterly at most
FINANCIALS_TTL = 7 * 24 * 3600


async def load_financials(
    symbol: str,
    client: AlphaVantageClient,
    cache: CacheService,
) -> tuple[dict[str, Any], bool]:
    """Cached FinancialsResponse for ``symbol`` plus whether it came from cache."""
    symbol = symbol.upper()
    cache_key = f"financials:{symbol}"
    cached = await cache.get(cache_key)
    if cached:
        return cached, True

    try:
        raw = await collect_financials(client, symbol)
    except ProviderError as e:
        logger.warning("Financials fetch failed for %s: %s", symbol, e)
        raise HTTPException(status_code=502, detail=str(e))

    if not raw["annual"]:
        raise HTTPException(status_code=404, detail=f"No annual reports for {symbol}")

    data = FinancialsData(**raw).model_dump()
    await cache.set(cache_key, data, ttl=FINANCIALS_TTL)
    return data, False


@router.get("/{symbol}", response_model=ApiResponse[FinancialsData])
async def get_financials(
    symbol: str,
    client: AlphaVantageClient = Depends(get_alphavantage_client),
    cache: CacheService = Depends(get_cache),
):
    """Get normalised annual fundamentals, most recent year first."""
    data, cached = await load_financials(symbol, client, cache)
    return ApiResponse(data=data, meta=Meta(cached=cached))
