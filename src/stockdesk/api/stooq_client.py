import logging

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

PROVIDER = "stooq"


class StooqClient:
    """Retry-enabled fetcher for Stooq daily OHLCV CSV downloads."""

    def __init__(
        self,
        base_url: str = "https://stooq.com/q/d/l/",
        symbol_suffix: str = ".us",
        timeout: float = 15.0,
        max_retries: int = 3,
        backoff: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._suffix = symbol_suffix
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff = backoff
        self._transport = transport

    def stooq_symbol(self, symbol: str) -> str:
        s = symbol.strip().lower()
        return s if "." in s else f"{s}{self._suffix}"

    async def get_daily_csv(self, symbol: str) -> str:
        """Full daily history for ``symbol`` as raw CSV text."""
        params = {"s": self.stooq_symbol(symbol), "i": "d"}

        @retry(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff, min=1, max=30),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def _inner() -> str:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(self._base_url, params=params)
                resp.raise_for_status()
                return resp.text

        try:
            text = await _inner()
        except httpx.HTTPStatusError as e:
            raise ProviderError(PROVIDER, f"HTTP {e.response.status_code} for {symbol}") from e
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER, f"request failed for {symbol}: {e}") from e

        logger.info("Fetched Stooq daily CSV for %s (%d bytes)", symbol, len(text))
        return text
