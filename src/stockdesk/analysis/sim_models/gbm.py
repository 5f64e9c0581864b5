"""Geometric Brownian Motion terminal-price simulation.

S_T = S_0 * exp( sum_{t=1..T} ((mu - 0.5*sigma^2) + sigma*Z_t) )

Each path draws T standard normals from one Mulberry32 stream seeded once per
run, paths in order. The whole result is a function of
(spot, mu, sigma, days, sims, seed).
"""

import logging
import math
from collections.abc import Sequence

from stockdesk.analysis.stats import NAN, histogram, mean, quantile
from . import Histogram, MCResult
from .rng import Mulberry32, normal01

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 252
DEFAULT_SIMS = 5000
DEFAULT_SEED = 7
DEFAULT_LAMBDA = 0.75
HISTOGRAM_BINS = 50
TAIL_LEVEL = 0.05
QUANTILE_LEVELS = (0.05, 0.10, 0.50, 0.90, 0.95)


def simulate_terminal_prices(
    spot: float,
    mu_daily: float,
    sigma_daily: float,
    days: int = DEFAULT_DAYS,
    sims: int = DEFAULT_SIMS,
    seed: int = DEFAULT_SEED,
) -> list[float]:
    """Simulate ``sims`` GBM paths of ``days`` steps and return the terminal prices.

    Only the running log-sum of each path is kept. ``sigma_daily == 0`` needs no
    special case: every path collapses onto the drift path.
    """
    rng = Mulberry32(seed)
    drift = mu_daily - 0.5 * sigma_daily * sigma_daily

    terminals: list[float] = []
    for _ in range(sims):
        log_growth = 0.0
        for _ in range(days):
            z = normal01(rng)
            log_growth += drift + sigma_daily * z
        terminals.append(spot * math.exp(log_growth))
    return terminals


def population_stdev(values: Sequence[float]) -> float:
    """sqrt(E[X^2] - E[X]^2) over the full simulated population.

    Distinct from ``stats.stddev`` (n - 1), which estimates from a historical
    sample.
    """
    m = mean(values)
    m2 = mean([x * x for x in values])
    if not (math.isfinite(m) and math.isfinite(m2)):
        return NAN
    return math.sqrt(max(0.0, m2 - m * m))


def risk_adjusted_price(mean_price: float, stdev_price: float, lam: float) -> float:
    """Mean-variance penalised price: E[S] - lam * StdDev(S)."""
    if not (math.isfinite(mean_price) and math.isfinite(stdev_price)):
        return NAN
    return mean_price - lam * stdev_price


def summarize_terminals(
    terminals: Sequence[float],
    spot: float,
    days: int,
    lam: float = DEFAULT_LAMBDA,
) -> MCResult:
    """Derive quantiles, tail risk and the display histogram from terminal prices."""
    sims = len(terminals)

    terminals_sorted = sorted(terminals)
    p5, p10, p50, p90, p95 = (quantile(terminals_sorted, q) for q in QUANTILE_LEVELS)

    m = mean(terminals)
    stdev_price = population_stdev(terminals)

    prob_loss = sum(1 for x in terminals if x < spot) / sims if sims else NAN

    if spot > 0 and sims:
        returns_sorted = sorted((st - spot) / spot for st in terminals)
        var5_return = quantile(returns_sorted, TAIL_LEVEL)
        cut = max(1, math.floor(TAIL_LEVEL * sims))
        cvar5_return = mean(returns_sorted[:cut])
    else:
        logger.debug("Non-positive spot %.4f, tail returns undefined", spot)
        var5_return = NAN
        cvar5_return = NAN

    counts, edges = histogram(terminals, HISTOGRAM_BINS)

    return MCResult(
        spot=spot,
        days=days,
        sims=sims,
        p5=p5,
        p10=p10,
        p50=p50,
        p90=p90,
        p95=p95,
        mean=m,
        stdev_price=stdev_price,
        prob_loss=prob_loss,
        var5_return=var5_return,
        cvar5_return=cvar5_return,
        risk_adj_price=risk_adjusted_price(m, stdev_price, lam),
        lam=lam,
        histogram=Histogram(counts=counts, edges=edges),
    )


def monte_carlo_gbm(
    spot: float,
    mu_daily: float,
    sigma_daily: float,
    days: int = DEFAULT_DAYS,
    sims: int = DEFAULT_SIMS,
    seed: int = DEFAULT_SEED,
    lam: float = DEFAULT_LAMBDA,
) -> MCResult:
    """Run the GBM simulation and summarise it.

    Args:
        spot: Starting price S_0.
        mu_daily: Daily log drift estimate.
        sigma_daily: Daily volatility estimate (>= 0).
        days: Horizon in trading days (>= 1, validated by the caller).
        sims: Number of paths (>= 1, validated by the caller).
        seed: Fixes the entire pseudo-random sequence.
        lam: Risk aversion used only for ``risk_adj_price``.

    Returns:
        MCResult with price quantiles, moments, loss probability, 5% VaR/CVaR
        on simple returns, risk-adjusted price and a 50-bin histogram.
    """
    logger.debug(
        "GBM run: spot=%.4f mu=%.6f sigma=%.6f days=%d sims=%d seed=%d",
        spot, mu_daily, sigma_daily, days, sims, seed,
    )
    terminals = simulate_terminal_prices(spot, mu_daily, sigma_daily, days, sims, seed)
    return summarize_terminals(terminals, spot, days, lam)
