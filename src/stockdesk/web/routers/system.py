"""System endpoints: health check."""

from fastapi import APIRouter, Depends

from stockdesk.config import Settings
from stockdesk.web.app import API_VERSION
from stockdesk.web.cache import CacheService
from stockdesk.web.dependencies import get_cache, get_settings
from stockdesk.web.schemas import HealthResponse

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health(
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """API health check."""
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        alphavantage_configured=settings.alphavantage_configured,
        cache_backend=cache.backend,
    )
