"""Daily price bar endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from stockdesk.analysis.metrics import compute_basic_metrics
from stockdesk.api.errors import ProviderError
from stockdesk.api.stooq_client import StooqClient
from stockdesk.collectors.prices import collect_prices
from stockdesk.config import Settings
from stockdesk.web.cache import CacheService
from stockdesk.web.dependencies import get_cache, get_settings, get_stooq_client
from stockdesk.web.schemas import ApiResponse, Meta, OverviewData, PricesData

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prices", tags=["prices"])


async def load_prices(
    symbol: str,
    client: StooqClient,
    cache: CacheService,
    settings: Settings,
) -> tuple[dict[str, Any], bool]:
    """Cached PricesResponse for ``symbol`` plus whether it came from cache.

    Raises HTTPException 502 on provider failure and 404 when no bars exist.
    """
    symbol = symbol.upper()
    cache_key = f"prices:{symbol}"
    cached = await cache.get(cache_key)
    if cached:
        return cached, True

    try:
        raw = await collect_prices(client, symbol, limit=settings.price_bar_limit)
    except ProviderError as e:
        logger.warning("Price fetch failed for %s: %s", symbol, e)
        raise HTTPException(status_code=502, detail=str(e))

    if not raw["bars"]:
        raise HTTPException(status_code=404, detail=f"No price data for {symbol}")

    data = PricesData(**raw).model_dump()
    await cache.set(cache_key, data)
    return data, False


@router.get("/{symbol}", response_model=ApiResponse[PricesData])
async def get_prices(
    symbol: str,
    client: StooqClient = Depends(get_stooq_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Get roughly one year of daily OHLCV bars for a symbol."""
    data, cached = await load_prices(symbol, client, cache, settings)
    return ApiResponse(data=data, meta=Meta(cached=cached))


@router.get("/{symbol}/overview", response_model=ApiResponse[OverviewData])
async def get_overview(
    symbol: str,
    client: StooqClient = Depends(get_stooq_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Latest bar, trailing 1D/1W/1M/1Y returns and 30-day annualised volatility."""
    data, cached = await load_prices(symbol, client, cache, settings)
    metrics = compute_basic_metrics(data["bars"])
    return ApiResponse(
        data=OverviewData(symbol=data["symbol"], **metrics),
        meta=Meta(cached=cached),
    )
