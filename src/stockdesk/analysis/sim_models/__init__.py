"""Monte Carlo simulation models package.

- rng: seeded Mulberry32 uniform generator + Box-Muller standard normal
- gbm: Geometric Brownian Motion terminal-price engine and risk statistics
"""

from typing import TypedDict


class Histogram(TypedDict):
    counts: list[int]
    edges: list[float]


class MCResult(TypedDict):
    """Summary of one terminal-price simulation run."""
    spot: float
    days: int
    sims: int
    p5: float
    p10: float
    p50: float
    p90: float
    p95: float
    mean: float
    stdev_price: float
    prob_loss: float
    var5_return: float
    cvar5_return: float
    risk_adj_price: float
    lam: float
    histogram: Histogram


__all__ = ["Histogram", "MCResult"]
