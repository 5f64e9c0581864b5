"""Overview metrics over a daily bar series.

No I/O; bars come in ascending date order (oldest first).
"""

import logging
from collections.abc import Sequence
from typing import Any

from stockdesk.analysis.stats import NAN, annualize_vol, log_returns, mean, pct, stddev

logger = logging.getLogger(__name__)

# bars back from the latest close for each trailing return
RETURN_LOOKBACKS = {
    "r1d": 1,
    "r1w": 5,
    "r1m": 21,
    "r1y": 251,
}
VOL_WINDOW = 30
ESTIMATION_WINDOW = 253


def _close_back(closes: Sequence[float], n: int) -> float | None:
    idx = len(closes) - 1 - n
    return closes[idx] if idx >= 0 else None


def compute_basic_metrics(bars: Sequence[dict[str, Any]]) -> dict[str, Any]:
    """Latest/previous bar, trailing simple returns and 30-day annualised vol.

    Returns nan for any return whose reference close is unavailable.
    """
    closes = [float(b["close"]) for b in bars]
    if len(closes) < 2:
        return {
            "latest": bars[-1] if bars else None,
            "prev": None,
            **{key: NAN for key in RETURN_LOOKBACKS},
            "vol30": NAN,
        }

    latest_close = closes[-1]
    result: dict[str, Any] = {"latest": bars[-1], "prev": bars[-2]}
    for key, n in RETURN_LOOKBACKS.items():
        result[key] = pct(_close_back(closes, n), latest_close)

    # 31 closes -> 30 returns
    result["vol30"] = annualize_vol(log_returns(closes[-(VOL_WINDOW + 1):]))
    return result


def estimate_drift_vol(
    closes: Sequence[float],
    window: int = ESTIMATION_WINDOW,
) -> tuple[float, float, int]:
    """Estimate daily drift and volatility from the trailing ``window`` closes.

    Returns:
        (mu_daily, sigma_daily, n_returns). mu is the arithmetic mean of the
        daily log returns, sigma their n - 1 sample standard deviation.
    """
    w = min(window, len(closes))
    rets = log_returns(closes[-w:]) if w else []
    mu = mean(rets)
    sigma = stddev(rets)
    logger.debug("Estimated mu=%.6f sigma=%.6f from %d returns", mu, sigma, len(rets))
    return mu, sigma, len(rets)
