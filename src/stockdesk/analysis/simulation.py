"""Monte Carlo quant orchestrator.

Validates a bar series, estimates daily drift/volatility from its trailing
window and delegates to the GBM engine.
"""

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np

from stockdesk.analysis.metrics import ESTIMATION_WINDOW, estimate_drift_vol
from stockdesk.analysis.sim_models.gbm import (
    DEFAULT_DAYS,
    DEFAULT_LAMBDA,
    DEFAULT_SEED,
    DEFAULT_SIMS,
    monte_carlo_gbm,
)

logger = logging.getLogger(__name__)

MIN_HISTORY_DAYS = 60


def run_quant(
    bars: Sequence[dict[str, Any]],
    days: int = DEFAULT_DAYS,
    sims: int = DEFAULT_SIMS,
    seed: int = DEFAULT_SEED,
    lam: float = DEFAULT_LAMBDA,
    window: int = ESTIMATION_WINDOW,
    min_history: int = MIN_HISTORY_DAYS,
) -> dict[str, Any] | None:
    """Run the quant tab pipeline on a daily bar series.

    Args:
        bars: Daily bars in ascending date order.
        days: Forward horizon in trading days.
        sims: Number of simulated paths.
        seed: Generator seed.
        lam: Risk aversion for the risk-adjusted price.
        window: Number of trailing closes used for the mu/sigma estimate.
        min_history: Minimum number of usable closes.

    Returns:
        Report dict (``mu_daily``, ``sigma_daily``, ``window_returns``, ``seed``
        and the MCResult under ``mc``), or None when history is insufficient.
    """
    if days < 1 or sims < 1:
        raise ValueError(f"days and sims must be positive (got days={days}, sims={sims})")

    if not bars or len(bars) < min_history:
        logger.debug(
            "Insufficient price history: %d bars (need %d)",
            len(bars) if bars else 0,
            min_history,
        )
        return None

    closes = [
        float(b["close"]) for b in bars
        if b.get("close") is not None and np.isfinite(b["close"]) and b["close"] > 0
    ]
    if len(closes) < min_history:
        logger.debug("After cleaning, insufficient closes: %d", len(closes))
        return None

    mu_daily, sigma_daily, n_returns = estimate_drift_vol(closes, window)
    spot = closes[-1]

    mc = monte_carlo_gbm(
        spot=spot,
        mu_daily=mu_daily,
        sigma_daily=sigma_daily,
        days=days,
        sims=sims,
        seed=seed,
        lam=lam,
    )
    logger.info(
        "Quant run: spot=%.2f p50=%.2f prob_loss=%.4f (%d sims x %d days)",
        spot, mc["p50"], mc["prob_loss"], sims, days,
    )

    return {
        "spot": spot,
        "mu_daily": mu_daily,
        "sigma_daily": sigma_daily,
        "window_returns": n_returns,
        "input_days_used": len(closes),
        "seed": seed,
        "mc": mc,
    }
