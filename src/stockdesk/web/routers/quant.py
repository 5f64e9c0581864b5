"""Quant endpoints: Monte Carlo terminal-price distribution and risk metrics."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from stockdesk.analysis.sim_models.gbm import risk_adjusted_price
from stockdesk.analysis.simulation import run_quant
from stockdesk.api.stooq_client import StooqClient
from stockdesk.config import Settings
from stockdesk.web.cache import CacheService
from stockdesk.web.dependencies import get_cache, get_settings, get_stooq_client
from stockdesk.web.routers.prices import load_prices
from stockdesk.web.schemas import ApiResponse, Meta, QuantReport, RiskAdjustedPrice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quant", tags=["quant"])


async def load_quant(
    symbol: str,
    days: int,
    sims: int,
    seed: int,
    lam: float,
    client: StooqClient,
    cache: CacheService,
    settings: Settings,
) -> tuple[dict[str, Any], bool]:
    symbol = symbol.upper()
    cache_key = f"quant:{symbol}:{days}:{sims}:{seed}:{lam}"
    cached = await cache.get(cache_key)
    if cached:
        return cached, True

    prices, _ = await load_prices(symbol, client, cache, settings)
    report = await run_in_threadpool(
        run_quant,
        prices["bars"],
        days=days,
        sims=sims,
        seed=seed,
        lam=lam,
        window=settings.simulation_window,
        min_history=settings.simulation_min_history_days,
    )
    if report is None:
        raise HTTPException(
            status_code=422,
            detail=f"Not enough price history for {symbol} "
                   f"(need {settings.simulation_min_history_days} bars)",
        )

    data = QuantReport(symbol=symbol, **report).model_dump()
    await cache.set(cache_key, data)
    return data, False


@router.get("/{symbol}", response_model=ApiResponse[QuantReport])
async def get_quant(
    symbol: str,
    days: int | None = Query(None, ge=1, le=2520, description="Horizon in trading days"),
    sims: int | None = Query(None, ge=1, le=20000, description="Number of simulated paths"),
    seed: int | None = Query(None, description="Generator seed"),
    lam: float | None = Query(None, ge=0, description="Risk aversion for the risk-adjusted price"),
    client: StooqClient = Depends(get_stooq_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Run the GBM Monte Carlo on the symbol's trailing year of closes."""
    data, cached = await load_quant(
        symbol,
        days if days is not None else settings.simulation_days,
        sims if sims is not None else settings.simulation_num_paths,
        seed if seed is not None else settings.simulation_seed,
        lam if lam is not None else settings.simulation_lambda,
        client, cache, settings,
    )
    return ApiResponse(data=data, meta=Meta(cached=cached))


@router.get("/{symbol}/risk-adjusted", response_model=ApiResponse[RiskAdjustedPrice])
async def get_risk_adjusted(
    symbol: str,
    lam: float = Query(..., ge=0, description="Risk aversion"),
    client: StooqClient = Depends(get_stooq_client),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Recompute E[S] - lam * StdDev(S) on the default simulation without re-running it."""
    data, cached = await load_quant(
        symbol,
        settings.simulation_days,
        settings.simulation_num_paths,
        settings.simulation_seed,
        settings.simulation_lambda,
        client, cache, settings,
    )
    mc = data["mc"]
    mean = mc["mean"] if mc["mean"] is not None else float("nan")
    stdev_price = mc["stdev_price"] if mc["stdev_price"] is not None else float("nan")
    result = RiskAdjustedPrice(
        symbol=data["symbol"],
        lam=lam,
        mean=mean,
        stdev_price=stdev_price,
        risk_adj_price=risk_adjusted_price(mean, stdev_price, lam),
    )
    return ApiResponse(data=result, meta=Meta(cached=cached))
