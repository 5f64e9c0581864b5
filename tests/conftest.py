"""Pytest configuration and shared fixtures."""

from datetime import date, timedelta

import numpy as np
import pytest


def make_bars(closes, start=date(2024, 1, 2)):
    """Ascending daily bars (weekday dates) around the given closes."""
    bars = []
    d = start
    for c in closes:
        while d.weekday() >= 5:
            d += timedelta(days=1)
        bars.append({
            "date": d.isoformat(),
            "open": float(c),
            "high": float(c) * 1.01,
            "low": float(c) * 0.99,
            "close": float(c),
            "volume": 1_000_000,
        })
        d += timedelta(days=1)
    return bars


def bars_to_csv(bars):
    lines = ["Date,Open,High,Low,Close,Volume"]
    for b in bars:
        lines.append(f"{b['date']},{b['open']},{b['high']},{b['low']},{b['close']},{b['volume']}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def sample_closes():
    """260 closes from a realistic random walk (~25% annual vol)."""
    rng = np.random.default_rng(42)
    daily_vol = 0.25 / np.sqrt(252)
    daily_mu = 0.10 / 252
    log_rets = rng.normal(daily_mu, daily_vol, 259)
    closes = 150.0 * np.exp(np.concatenate([[0.0], np.cumsum(log_rets)]))
    return [float(c) for c in closes]


@pytest.fixture
def sample_bars(sample_closes):
    return make_bars(sample_closes)


@pytest.fixture
def flat_bars():
    return make_bars([100.0] * 80)


@pytest.fixture
def sample_stooq_csv(sample_bars):
    return bars_to_csv(sample_bars)


def _annual(end, revenue, ebit, pretax, tax, da, capex, cfo):
    return {
        "fiscalDateEnding": end,
        "totalRevenue": str(revenue),
        "ebit": str(ebit),
        "incomeBeforeTax": str(pretax),
        "incomeTaxExpense": str(tax),
        "depreciationAndAmortization": str(da),
        "capitalExpenditures": str(capex),
        "operatingCashflow": str(cfo),
    }


@pytest.fixture
def sample_statements():
    """Alpha Vantage style payloads for three fiscal years."""
    years = [
        ("2023-12-31", 1210, 242, 230, 46, 30, -40, 260),
        ("2022-12-31", 1100, 209, 200, 40, 28, -35, 230),
        ("2021-12-31", 1000, 180, 170, 34, 25, -30, 200),
    ]
    income = []
    cash_flow = []
    for end, revenue, ebit, pretax, tax, da, capex, cfo in years:
        row = _annual(end, revenue, ebit, pretax, tax, da, capex, cfo)
        income.append({
            k: row[k] for k in ("fiscalDateEnding", "totalRevenue", "ebit",
                                "incomeBeforeTax", "incomeTaxExpense")
        })
        cash_flow.append({
            k: row[k] for k in ("fiscalDateEnding", "depreciationAndAmortization",
                                "capitalExpenditures", "operatingCashflow")
        })

    balance = [
        {
            "fiscalDateEnding": "2023-12-31",
            "totalCurrentAssets": "500",
            "totalCurrentLiabilities": "300",
            "cashAndCashEquivalentsAtCarryingValue": "150",
            "shortTermInvestments": "50",
            "shortTermDebt": "20",
            "longTermDebt": "400",
        },
        {
            "fiscalDateEnding": "2022-12-31",
            "totalCurrentAssets": "450",
            "totalCurrentLiabilities": "280",
            "cashAndCashEquivalentsAtCarryingValue": "140",
            "shortTermInvestments": "40",
            "shortTermDebt": "10",
            "longTermDebt": "420",
        },
        {
            "fiscalDateEnding": "2021-12-31",
            "totalCurrentAssets": "400",
            "totalCurrentLiabilities": "260",
            "cashAndCashEquivalentsAtCarryingValue": "None",
            "shortTermDebt": "None",
            "longTermDebt": "None",
        },
    ]
    shares = {
        "symbol": "TEST",
        "data": [
            {"date": "2024-03-31", "shares_outstanding_diluted": "105"},
            {"date": "2023-09-30", "shares_outstanding_diluted": "100"},
            {"date": "2022-06-30", "shares_outstanding_basic": "98"},
        ],
    }
    return {
        "INCOME_STATEMENT": {"symbol": "TEST", "annualReports": income},
        "BALANCE_SHEET": {"symbol": "TEST", "annualReports": balance},
        "CASH_FLOW": {"symbol": "TEST", "annualReports": cash_flow},
        "SHARES_OUTSTANDING": shares,
    }


@pytest.fixture
def sample_annual():
    """Normalised annual records, most recent first."""
    return [
        {"end": "2023-12-31", "revenue": 1210.0, "ebit_margin": 0.20, "effective_tax_rate": 0.20,
         "da_pct": 0.025, "capex_pct": 0.033, "op_nwc_pct": 0.08,
         "net_debt": 220.0, "shares_outstanding": 100.0},
        {"end": "2022-12-31", "revenue": 1100.0, "ebit_margin": 0.19, "effective_tax_rate": 0.21,
         "da_pct": 0.025, "capex_pct": 0.032, "op_nwc_pct": 0.09},
        {"end": "2021-12-31", "revenue": 1000.0, "ebit_margin": 0.18, "effective_tax_rate": 0.0,
         "da_pct": 0.025, "capex_pct": 0.030, "op_nwc_pct": 0.10},
        {"end": "2020-12-31", "revenue": 900.0, "ebit_margin": 0.50, "effective_tax_rate": 0.30,
         "da_pct": 0.020, "capex_pct": 0.030, "op_nwc_pct": None},
        {"end": "2019-12-31", "revenue": 800.0, "ebit_margin": 0.50, "effective_tax_rate": 0.30,
         "da_pct": 0.030, "capex_pct": 0.040, "op_nwc_pct": 0.12},
        {"end": "2018-12-31", "revenue": 700.0, "ebit_margin": 0.90, "effective_tax_rate": 0.30,
         "da_pct": 0.9, "capex_pct": 0.9, "op_nwc_pct": 0.9},
    ]
