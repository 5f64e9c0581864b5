import io
import logging
from typing import Any, TypedDict

import numpy as np
import pandas as pd

from stockdesk.api.stooq_client import PROVIDER, StooqClient

logger = logging.getLogger(__name__)

# Stooq CSV header names to bar fields
STOOQ_COLUMNS = {
    "Date": "date",
    "Open": "open",
    "High": "high",
    "Low": "low",
    "Close": "close",
    "Volume": "volume",
}


class Bar(TypedDict):
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: int


def parse_stooq_csv(text: str) -> list[Bar]:
    """Parse a Stooq daily CSV into bars sorted ascending by date.

    Rows without a date or with a non-numeric close are dropped. Duplicate
    dates keep the last row. A body without the expected header (Stooq answers
    "No data" for unknown symbols) yields an empty list.
    """
    if not text or not text.strip():
        return []

    df = pd.read_csv(io.StringIO(text.strip()), dtype=str)
    if "Date" not in df.columns or "Close" not in df.columns:
        logger.debug("Stooq body without OHLCV header: %r", text[:60])
        return []

    df = df.rename(columns=STOOQ_COLUMNS)
    for col in ("open", "high", "low", "close", "volume"):
        if col not in df.columns:
            df[col] = None
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df["date"] = df["date"].str.strip()
    df = df[df["date"].notna() & (df["date"] != "")]
    df = df[np.isfinite(df["close"].astype(float))]

    df = df.drop_duplicates(subset="date", keep="last").sort_values("date")

    bars: list[Bar] = []
    for _, row in df.iterrows():
        bars.append(Bar(
            date=row["date"],
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=int(row["volume"]) if pd.notna(row["volume"]) else 0,
        ))
    return bars


async def collect_prices(client: StooqClient, symbol: str, limit: int | None = 260) -> dict[str, Any]:
    """Fetch and parse daily bars for ``symbol`` (PricesResponse shape).

    Only the most recent ``limit`` bars are kept; None keeps everything.
    """
    text = await client.get_daily_csv(symbol)
    bars = parse_stooq_csv(text)
    if limit is not None:
        bars = bars[-limit:]
    logger.info("Collected %d bars for %s", len(bars), symbol)
    return {
        "symbol": symbol.upper(),
        "source": PROVIDER,
        "bars": bars,
    }
