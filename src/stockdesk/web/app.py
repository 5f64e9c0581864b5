"""FastAPI application factory for the stockdesk API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockdesk.api.alphavantage_client import AlphaVantageClient
from stockdesk.api.stooq_client import StooqClient
from stockdesk.config import Settings

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize and cleanup resources."""
    settings = app.state.settings
    logger.info("Starting stockdesk API...")

    from stockdesk.web.cache import CacheService

    app.state.cache = await CacheService.create(settings.redis_url, settings.cache_ttl)

    logger.info("stockdesk API ready (cache: %s)", app.state.cache.backend)
    yield

    await app.state.cache.close()
    logger.info("stockdesk API shutdown complete")


def build_clients(settings: Settings) -> tuple[StooqClient, AlphaVantageClient]:
    """Provider clients configured from settings."""
    stooq = StooqClient(
        base_url=settings.stooq_base_url,
        symbol_suffix=settings.stooq_symbol_suffix,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
        backoff=settings.http_retry_backoff,
    )
    alphavantage = AlphaVantageClient(
        api_key=settings.alphavantage_api_key,
        base_url=settings.alphavantage_base_url,
        delay=settings.alphavantage_request_delay,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
        backoff=settings.http_retry_backoff,
    )
    return stooq, alphavantage


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="stockdesk API",
        description="Price bars, fundamentals, Monte Carlo quant and DCF valuation for a ticker watchlist",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.stooq_client, app.state.alphavantage_client = build_clients(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Accept"],
    )

    _register_routers(app)

    return app


def _register_routers(app: FastAPI):
    """Register all API routers."""
    from stockdesk.web.routers.dcf import router as dcf_router
    from stockdesk.web.routers.financials import router as financials_router
    from stockdesk.web.routers.prices import router as prices_router
    from stockdesk.web.routers.quant import router as quant_router
    from stockdesk.web.routers.system import router as system_router

    app.include_router(prices_router, prefix="/api/v1")
    app.include_router(financials_router, prefix="/api/v1")
    app.include_router(quant_router, prefix="/api/v1")
    app.include_router(dcf_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")
