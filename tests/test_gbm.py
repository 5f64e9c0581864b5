"""Tests for the GBM Monte Carlo engine."""

import math

import pytest

from stockdesk.analysis.sim_models.gbm import (
    monte_carlo_gbm,
    population_stdev,
    risk_adjusted_price,
    simulate_terminal_prices,
    summarize_terminals,
)
from stockdesk.analysis.sim_models.rng import Mulberry32, normal01

SPOT = 100.0
MU = 0.0004
SIGMA = 0.015
DAYS = 21
SIMS = 400  # small for test speed


@pytest.fixture
def result():
    return monte_carlo_gbm(SPOT, MU, SIGMA, days=DAYS, sims=SIMS, seed=7, lam=0.75)


class TestSimulateTerminalPrices:
    def test_length(self):
        terminals = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=SIMS, seed=7)
        assert len(terminals) == SIMS
        assert all(t > 0 for t in terminals)

    def test_reproducible(self):
        a = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=50, seed=11)
        b = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=50, seed=11)
        assert a == b

    def test_seed_changes_paths(self):
        a = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=50, seed=11)
        b = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=50, seed=12)
        assert a != b

    def test_one_stream_paths_in_order(self):
        days, sims = 3, 2
        terminals = simulate_terminal_prices(SPOT, MU, SIGMA, days=days, sims=sims, seed=5)

        rng = Mulberry32(5)
        drift = MU - 0.5 * SIGMA * SIGMA
        expected = []
        for _ in range(sims):
            s = 0.0
            for _ in range(days):
                s += drift + SIGMA * normal01(rng)
            expected.append(SPOT * math.exp(s))
        assert terminals == expected

    def test_zero_sigma_zero_drift_is_flat(self):
        terminals = simulate_terminal_prices(SPOT, 0.0, 0.0, days=30, sims=20, seed=1)
        assert terminals == [SPOT] * 20

    def test_zero_sigma_deterministic_drift(self):
        terminals = simulate_terminal_prices(SPOT, 0.001, 0.0, days=252, sims=10, seed=1)
        for t in terminals:
            assert t == pytest.approx(SPOT * math.exp(0.252), rel=1e-9)


class TestSummaries:
    def test_population_stdev(self):
        assert population_stdev([1.0, 2.0, 3.0, 4.0]) == pytest.approx(math.sqrt(1.25))
        assert population_stdev([5.0, 5.0]) == 0.0
        assert math.isnan(population_stdev([]))

    def test_risk_adjusted_price(self):
        assert risk_adjusted_price(110.0, 20.0, 0.75) == pytest.approx(95.0)
        assert risk_adjusted_price(110.0, 20.0, 0.0) == 110.0
        assert math.isnan(risk_adjusted_price(float("nan"), 20.0, 0.75))

    def test_tail_returns_from_known_terminals(self):
        terminals = [float(x) for x in range(80, 120)]  # 40 values
        mc = summarize_terminals(terminals, spot=100.0, days=10, lam=0.5)
        returns = sorted((t - 100.0) / 100.0 for t in terminals)
        # floor(0.05 * 40) = 2 worst returns
        assert mc["cvar5_return"] == pytest.approx((returns[0] + returns[1]) / 2)
        assert mc["var5_return"] == pytest.approx(-0.20 + 0.05 * 39 / 100)
        assert mc["prob_loss"] == pytest.approx(20 / 40)

    def test_cvar_uses_at_least_one_path(self):
        mc = summarize_terminals([90.0, 110.0, 120.0], spot=100.0, days=5)
        assert mc["cvar5_return"] == pytest.approx(-0.10)

    def test_non_positive_spot(self):
        mc = summarize_terminals([1.0, 2.0], spot=0.0, days=5)
        assert math.isnan(mc["var5_return"])
        assert math.isnan(mc["cvar5_return"])


class TestMonteCarloGBM:
    def test_required_keys(self, result):
        required = {"spot", "days", "sims", "p5", "p10", "p50", "p90", "p95", "mean",
                    "stdev_price", "prob_loss", "var5_return", "cvar5_return",
                    "risk_adj_price", "lam", "histogram"}
        assert required.issubset(result.keys())
        assert result["spot"] == SPOT
        assert result["days"] == DAYS
        assert result["sims"] == SIMS

    def test_quantile_ordering(self, result):
        assert result["p5"] <= result["p10"] <= result["p50"] <= result["p90"] <= result["p95"]

    def test_cvar_not_above_var(self, result):
        assert result["cvar5_return"] <= result["var5_return"]

    def test_prob_loss_range(self, result):
        assert 0.0 <= result["prob_loss"] <= 1.0

    def test_histogram(self, result):
        hist = result["histogram"]
        assert len(hist["counts"]) == 50
        assert len(hist["edges"]) == 51
        assert sum(hist["counts"]) == SIMS
        assert hist["edges"] == sorted(hist["edges"])

    def test_risk_adjusted_consistent(self, result):
        expected = result["mean"] - 0.75 * result["stdev_price"]
        assert result["risk_adj_price"] == pytest.approx(expected)

    def test_reproducible(self):
        a = monte_carlo_gbm(SPOT, MU, SIGMA, days=DAYS, sims=100, seed=3)
        b = monte_carlo_gbm(SPOT, MU, SIGMA, days=DAYS, sims=100, seed=3)
        assert a == b

    def test_loss_partition_counts(self):
        terminals = simulate_terminal_prices(SPOT, MU, SIGMA, days=DAYS, sims=SIMS, seed=7)
        mc = summarize_terminals(terminals, SPOT, DAYS)
        below = sum(1 for t in terminals if t < SPOT)
        at_or_above = sum(1 for t in terminals if t >= SPOT)
        assert below + at_or_above == SIMS
        assert mc["prob_loss"] == pytest.approx(below / SIMS)

    def test_zero_volatility(self):
        mc = monte_carlo_gbm(SPOT, 0.0, 0.0, days=10, sims=20, seed=7)
        assert mc["p5"] == mc["p95"] == SPOT
        assert mc["stdev_price"] == 0.0
        assert mc["prob_loss"] == 0.0
        assert mc["var5_return"] == 0.0
        assert mc["risk_adj_price"] == SPOT
        assert mc["histogram"]["counts"][0] == 20

    def test_median_near_drift(self):
        # median of S_T is S_0 * exp((mu - sigma^2/2) * T)
        mc = monte_carlo_gbm(SPOT, MU, SIGMA, days=DAYS, sims=2000, seed=7)
        expected = SPOT * math.exp((MU - 0.5 * SIGMA ** 2) * DAYS)
        assert mc["p50"] == pytest.approx(expected, rel=0.02)

    def test_zero_volatility_negative_drift_always_loses(self):
        mc = monte_carlo_gbm(SPOT, -0.001, 0.0, days=20, sims=15, seed=7)
        assert mc["prob_loss"] == 1.0
        # identical terminals, but E[X^2] - E[X]^2 cancels to a few ulps of SPOT^2
        assert mc["stdev_price"] == pytest.approx(0.0, abs=1e-9 * SPOT ** 2)

    def test_flat_example_full_horizon(self):
        mc = monte_carlo_gbm(100.0, 0.0, 0.0, days=252, sims=10, seed=123)
        assert mc["mean"] == 100.0
        assert mc["stdev_price"] == 0.0
        assert mc["p5"] == mc["p50"] == mc["p95"] == 100.0
