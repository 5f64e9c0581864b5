"""FastAPI dependency injection providers."""

from fastapi import Request

from stockdesk.api.alphavantage_client import AlphaVantageClient
from stockdesk.api.stooq_client import StooqClient
from stockdesk.config import Settings
from stockdesk.web.cache import CacheService


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    return request.app.state.settings


def get_cache(request: Request) -> CacheService:
    """Get cache service from app state."""
    return request.app.state.cache


def get_stooq_client(request: Request) -> StooqClient:
    return request.app.state.stooq_client


def get_alphavantage_client(request: Request) -> AlphaVantageClient:
    return request.app.state.alphavantage_client
