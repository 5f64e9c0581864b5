"""Pydantic response schemas for the stockdesk API.

JSON has no nan/inf, so non-finite floats from the analysis layer are
serialised as null (``FiniteFloat``).
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, BeforeValidator, Field

from stockdesk.analysis.dcf import TerminalMethod

T = TypeVar("T")


def _finite_or_none(v: Any) -> Any:
    if isinstance(v, float) and not math.isfinite(v):
        return None
    return v


FiniteFloat = Annotated[float | None, BeforeValidator(_finite_or_none)]


# --- Base schemas ---


class Meta(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cached: bool = False


class ApiResponse(BaseModel, Generic[T]):
    data: T
    meta: Meta = Field(default_factory=Meta)


class HealthResponse(BaseModel):
    status: str
    version: str
    alphavantage_configured: bool
    cache_backend: str


# --- Prices ---


class BarData(BaseModel):
    date: str
    open: FiniteFloat = None
    high: FiniteFloat = None
    low: FiniteFloat = None
    close: float
    volume: int


class PricesData(BaseModel):
    symbol: str
    source: str
    bars: list[BarData]


class OverviewData(BaseModel):
    symbol: str
    latest: BarData | None = None
    prev: BarData | None = None
    r1d: FiniteFloat = None
    r1w: FiniteFloat = None
    r1m: FiniteFloat = None
    r1y: FiniteFloat = None
    vol30: FiniteFloat = Field(None, description="30-day annualised volatility of log returns")


# --- Financials ---


class FundamentalsAnnualData(BaseModel):
    fy: int | None = None
    end: str
    revenue: FiniteFloat = None
    ebit: FiniteFloat = None
    da: FiniteFloat = None
    cfo: FiniteFloat = None
    capex: FiniteFloat = None
    fcf: FiniteFloat = None
    cash: FiniteFloat = None
    short_term_investments: FiniteFloat = None
    cash_plus_investments: FiniteFloat = None
    total_debt: FiniteFloat = None
    net_debt: FiniteFloat = None
    shares_outstanding: FiniteFloat = None
    op_nwc: FiniteFloat = None
    delta_op_nwc: FiniteFloat = None
    ebit_margin: FiniteFloat = None
    da_pct: FiniteFloat = None
    capex_pct: FiniteFloat = None
    op_nwc_pct: FiniteFloat = None
    effective_tax_rate: FiniteFloat = None


class AsOf(BaseModel):
    latest_period_end: str | None = None


class FinancialsData(BaseModel):
    provider: str
    symbol: str
    as_of: AsOf
    latest: FundamentalsAnnualData | None = None
    annual: list[FundamentalsAnnualData]


# --- Quant (Monte Carlo) ---


class HistogramData(BaseModel):
    counts: list[int]
    edges: list[FiniteFloat]


class MCResultData(BaseModel):
    spot: FiniteFloat
    days: int
    sims: int
    p5: FiniteFloat
    p10: FiniteFloat
    p50: FiniteFloat
    p90: FiniteFloat
    p95: FiniteFloat
    mean: FiniteFloat
    stdev_price: FiniteFloat
    prob_loss: FiniteFloat
    var5_return: FiniteFloat
    cvar5_return: FiniteFloat
    risk_adj_price: FiniteFloat
    lam: float
    histogram: HistogramData


class QuantReport(BaseModel):
    symbol: str
    spot: FiniteFloat
    mu_daily: FiniteFloat = Field(description="Mean daily log return over the window")
    sigma_daily: FiniteFloat = Field(description="Sample stddev of daily log returns")
    window_returns: int = Field(description="Number of returns used for mu/sigma")
    input_days_used: int
    seed: int
    mc: MCResultData


class RiskAdjustedPrice(BaseModel):
    symbol: str
    lam: float
    mean: FiniteFloat
    stdev_price: FiniteFloat
    risk_adj_price: FiniteFloat


# --- DCF ---


class AssumptionOverrides(BaseModel):
    """Partial DCF assumptions applied on top of the seeded defaults."""
    years: int | None = Field(None, ge=1, le=30)
    revenue_cagr: float | None = None
    ebit_margin: float | None = None
    tax_rate: float | None = None
    wacc: float | None = Field(None, gt=-1.0)
    terminal_method: TerminalMethod | None = None
    terminal_growth: float | None = None
    exit_multiple: float | None = None
    da_pct: float | None = None
    capex_pct: float | None = None
    op_nwc_pct: float | None = None
    clamp: bool = Field(False, description="Clamp bounded fields into the control ranges")


class ForecastRowData(BaseModel):
    year: int
    revenue: FiniteFloat
    ebit: FiniteFloat
    nopat: FiniteFloat
    da: FiniteFloat
    capex: FiniteFloat
    delta_op_nwc: FiniteFloat
    fcff: FiniteFloat
    pv: FiniteFloat


class DCFBase(BaseModel):
    end: str | None = None
    revenue: FiniteFloat
    net_debt: FiniteFloat
    shares_outstanding: FiniteFloat


class ValuationData(BaseModel):
    symbol: str
    base: DCFBase
    assumptions: dict[str, Any]
    rows: list[ForecastRowData]
    sum_pv_fcff: FiniteFloat
    terminal_value: FiniteFloat
    terminal_value_finite: bool
    pv_terminal: FiniteFloat
    enterprise_value: FiniteFloat
    equity_value: FiniteFloat
    value_per_share: FiniteFloat
