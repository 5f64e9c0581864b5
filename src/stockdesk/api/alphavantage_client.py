import asyncio
import logging
import time
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stockdesk.api.errors import ProviderError

logger = logging.getLogger(__name__)

PROVIDER = "alpha_vantage"
STATEMENT_FUNCTIONS = ("INCOME_STATEMENT", "BALANCE_SHEET", "CASH_FLOW")
SHARES_FUNCTION = "SHARES_OUTSTANDING"
ERROR_KEYS = ("Error Message", "Error_Message", "Information", "Note")


class AlphaVantageClient:
    """Rate-limited, retry-enabled Alpha Vantage fundamentals client.

    The free tier allows roughly one request per second, so calls are issued
    sequentially with at least ``delay`` seconds between them.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.alphavantage.co/query",
        delay: float = 1.1,
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._delay = delay
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff = backoff
        self._transport = transport
        self._last_request_time: float = 0.0
        # serialises the spacing check and the request across concurrent callers
        self._lock = asyncio.Lock()

    async def _rate_limit(self):
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._delay:
            await asyncio.sleep(self._delay - elapsed)
        self._last_request_time = time.monotonic()

    async def get_function(self, function: str, symbol: str) -> dict[str, Any]:
        """Call one Alpha Vantage ``function`` for ``symbol`` and return the JSON body."""
        if not self._api_key:
            raise ProviderError(PROVIDER, "missing API key (set SD_ALPHAVANTAGE_API_KEY)")

        params = {"function": function, "symbol": symbol.upper(), "apikey": self._api_key}

        @retry(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff, min=2, max=60),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def _inner() -> httpx.Response:
            async with self._lock:
                await self._rate_limit()
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    resp = await client.get(self._base_url, params=params)
            resp.raise_for_status()
            return resp

        try:
            resp = await _inner()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                PROVIDER, f"HTTP {e.response.status_code} for {function} {symbol}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"{function} {symbol} failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError(PROVIDER, f"non-JSON body for {function} {symbol}") from e

        if not isinstance(payload, dict):
            raise ProviderError(PROVIDER, f"unexpected payload for {function} {symbol}")

        for key in ERROR_KEYS:
            if payload.get(key):
                raise ProviderError(PROVIDER, str(payload[key]))

        logger.info("Fetched Alpha Vantage %s for %s", function, symbol)
        return payload

    async def get_statements(self, symbol: str) -> dict[str, dict[str, Any]]:
        """Income statement, balance sheet, cash flow and share counts for ``symbol``.

        Share counts are optional: a failure there is logged and an empty payload
        returned in its place.
        """
        out: dict[str, dict[str, Any]] = {}
        for function in STATEMENT_FUNCTIONS:
            out[function] = await self.get_function(function, symbol)

        try:
            out[SHARES_FUNCTION] = await self.get_function(SHARES_FUNCTION, symbol)
        except ProviderError as e:
            logger.warning("Shares outstanding unavailable for %s: %s", symbol, e)
            out[SHARES_FUNCTION] = {}
        return out
