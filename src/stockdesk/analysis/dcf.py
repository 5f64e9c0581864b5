"""Discounted cash flow (FCFF) valuation.

Two pure functions, kept apart so each can be checked on its own:

- ``seed_assumptions``: historical medians from trailing annual records ->
  default ``DCFAssumptions``.
- ``run_dcf``: (base-year record, assumptions) -> ``ValuationModel``.

Missing inputs come through as nan in the fields they feed; a perpetual-growth
terminal value with WACC <= g is +inf. Nothing here raises on bad numbers.
"""

import logging
import math
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, TypedDict

from pydantic import BaseModel, ConfigDict, Field

from stockdesk.analysis.stats import NAN, median

logger = logging.getLogger(__name__)

SEED_LOOKBACK_YEARS = 5
MARGIN_LOOKBACK_YEARS = 3
MAX_SEEDED_CAGR = 0.5

DEFAULT_DA_PCT = 0.02
DEFAULT_CAPEX_PCT = 0.03
DEFAULT_OP_NWC_PCT = 0.10

# Slider ranges of the assumption controls: field -> (min, max)
ASSUMPTION_BOUNDS: dict[str, tuple[float, float]] = {
    "revenue_cagr": (0.0, 0.50),
    "ebit_margin": (0.05, 0.70),
    "tax_rate": (0.05, 0.35),
    "wacc": (0.06, 0.20),
    "terminal_growth": (0.0, 0.06),
    "exit_multiple": (5.0, 40.0),
}


class TerminalMethod(str, Enum):
    PERPETUAL = "perpetual"
    EXIT = "exit"


class FundamentalsAnnual(TypedDict, total=False):
    """One fiscal year of normalised fundamentals. None means unknown."""
    fy: int | None
    end: str
    revenue: float | None
    ebit: float | None
    da: float | None
    cfo: float | None
    capex: float | None
    fcf: float | None
    cash: float | None
    short_term_investments: float | None
    cash_plus_investments: float | None
    total_debt: float | None
    net_debt: float | None
    shares_outstanding: float | None
    op_nwc: float | None
    delta_op_nwc: float | None
    ebit_margin: float | None
    da_pct: float | None
    capex_pct: float | None
    op_nwc_pct: float | None
    effective_tax_rate: float | None


class DCFAssumptions(BaseModel):
    """Immutable DCF inputs. Override with ``model_copy(update={...})``."""

    model_config = ConfigDict(frozen=True)

    years: int = Field(5, ge=1, description="Forecast horizon (5, 7 or 10 in the UI)")
    revenue_cagr: float = 0.15
    ebit_margin: float = 0.50
    tax_rate: float = 0.15
    wacc: float = Field(0.10, gt=-1.0, description="Discount rate, above -100%")
    terminal_method: TerminalMethod = TerminalMethod.PERPETUAL
    terminal_growth: float = 0.03
    exit_multiple: float = 20.0
    da_pct: float = DEFAULT_DA_PCT
    capex_pct: float = DEFAULT_CAPEX_PCT
    op_nwc_pct: float = DEFAULT_OP_NWC_PCT

    def clamped(self) -> "DCFAssumptions":
        """Copy with every bounded field clamped into its control range."""
        update = {
            name: min(hi, max(lo, getattr(self, name)))
            for name, (lo, hi) in ASSUMPTION_BOUNDS.items()
        }
        return self.model_copy(update=update)


class ForecastRow(TypedDict):
    year: int
    revenue: float
    ebit: float
    nopat: float
    da: float
    capex: float
    delta_op_nwc: float
    fcff: float
    pv: float


class ValuationModel(TypedDict):
    base: dict[str, Any]
    assumptions: dict[str, Any]
    rows: list[ForecastRow]
    sum_pv_fcff: float
    terminal_value: float
    pv_terminal: float
    enterprise_value: float
    equity_value: float
    value_per_share: float


def _num(x: float | None) -> float:
    return NAN if x is None else float(x)


def _is_num(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def _discount_factor(wacc: float, t: int) -> float:
    """(1 + WACC)^t; inf when it overflows."""
    try:
        return (1 + wacc) ** t
    except OverflowError:
        return math.inf


def _present_value(value: float, factor: float) -> float:
    # a zero factor (WACC = -100%) leaves PV undefined
    if factor == 0:
        return NAN
    return value / factor


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


def seed_assumptions(
    annual: Sequence[Mapping[str, Any]],
    base: DCFAssumptions | None = None,
) -> DCFAssumptions:
    """Default assumptions from trailing annual records (most recent first).

    Only records with positive revenue among the latest five count.
    EBIT margin and tax rate use the latest three of those, the intensity
    ratios all five. Revenue CAGR is the two-year endpoint CAGR over the
    latest three, clamped to [0, 0.5]. Fields without history keep the value
    from ``base``.
    """
    if base is None:
        base = DCFAssumptions()

    hist = [
        r for r in annual[:SEED_LOOKBACK_YEARS]
        if _is_num(r.get("revenue")) and r["revenue"] > 0
    ]
    recent = hist[:MARGIN_LOOKBACK_YEARS]
    update: dict[str, float] = {}

    if len(hist) >= MARGIN_LOOKBACK_YEARS:
        latest_rev = hist[0]["revenue"]
        oldest_rev = hist[MARGIN_LOOKBACK_YEARS - 1]["revenue"]
        span = MARGIN_LOOKBACK_YEARS - 1
        cagr = (latest_rev / oldest_rev) ** (1 / span) - 1
        update["revenue_cagr"] = min(MAX_SEEDED_CAGR, max(0.0, cagr))

    ebit_margin = median([r["ebit_margin"] for r in recent if _is_num(r.get("ebit_margin"))])
    if ebit_margin is not None:
        update["ebit_margin"] = ebit_margin

    tax_rate = median([
        r["effective_tax_rate"] for r in recent
        if _is_num(r.get("effective_tax_rate")) and r["effective_tax_rate"] > 0
    ])
    if tax_rate is not None:
        update["tax_rate"] = tax_rate

    for field in ("da_pct", "capex_pct", "op_nwc_pct"):
        value = median([r[field] for r in hist if _is_num(r.get(field))])
        if value is not None:
            update[field] = value

    logger.debug("Seeded DCF assumptions from %d records: %s", len(hist), update)
    return base.model_copy(update=update)


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------


def terminal_value(
    last: ForecastRow,
    assumptions: DCFAssumptions,
) -> float:
    """Terminal value at the end of the forecast.

    Perpetual growth: FCFF_last * (1 + g) / (WACC - g), +inf when WACC <= g
    and nan when the last FCFF is unknown.
    Exit multiple: (EBIT_last + D&A_last) * multiple.
    """
    if assumptions.terminal_method == TerminalMethod.PERPETUAL:
        if not math.isfinite(last["fcff"]):
            return NAN
        g = assumptions.terminal_growth
        denom = assumptions.wacc - g
        if denom <= 0:
            logger.debug("WACC %.4f <= terminal growth %.4f", assumptions.wacc, g)
            return math.inf
        return last["fcff"] * (1 + g) / denom
    return (last["ebit"] + last["da"]) * assumptions.exit_multiple


def run_dcf(
    base: Mapping[str, Any],
    assumptions: DCFAssumptions,
) -> ValuationModel:
    """Forecast FCFF from the base year and value the firm.

    Per year t = 1..years:
        revenue_t = revenue_{t-1} * (1 + CAGR)
        EBIT = revenue * margin;  NOPAT = EBIT * (1 - tax)
        D&A = revenue * da_pct;   CapEx = revenue * capex_pct
        dOpNWC = op_nwc_pct * (revenue_t - revenue_{t-1})
        FCFF = NOPAT + D&A - CapEx - dOpNWC;  PV = FCFF / (1 + WACC)^t

    EV = sum(PV) + TV / (1 + WACC)^years; equity = EV - net debt;
    value per share = equity / diluted shares.
    """
    a = assumptions
    base_revenue = _num(base.get("revenue"))
    net_debt = _num(base.get("net_debt"))
    shares = _num(base.get("shares_outstanding"))

    if not math.isfinite(base_revenue):
        logger.debug("Base revenue unavailable for %s", base.get("end"))

    rows: list[ForecastRow] = []
    rev_prev = base_revenue
    for t in range(1, a.years + 1):
        revenue = rev_prev * (1 + a.revenue_cagr)
        ebit = revenue * a.ebit_margin
        nopat = ebit * (1 - a.tax_rate)
        da = revenue * a.da_pct
        capex = revenue * a.capex_pct
        delta_op_nwc = a.op_nwc_pct * (revenue - rev_prev)
        fcff = nopat + da - capex - delta_op_nwc
        pv = _present_value(fcff, _discount_factor(a.wacc, t))

        rows.append(ForecastRow(
            year=t,
            revenue=revenue,
            ebit=ebit,
            nopat=nopat,
            da=da,
            capex=capex,
            delta_op_nwc=delta_op_nwc,
            fcff=fcff,
            pv=pv,
        ))
        rev_prev = revenue

    tv = terminal_value(rows[-1], a)
    pv_terminal = _present_value(tv, _discount_factor(a.wacc, a.years))
    sum_pv_fcff = sum(r["pv"] for r in rows)
    enterprise_value = sum_pv_fcff + pv_terminal
    equity_value = enterprise_value - net_debt
    value_per_share = equity_value / shares if shares > 0 else NAN

    return ValuationModel(
        base={
            "end": base.get("end"),
            "revenue": base_revenue,
            "net_debt": net_debt,
            "shares_outstanding": shares,
        },
        assumptions=a.model_dump(mode="json"),
        rows=rows,
        sum_pv_fcff=sum_pv_fcff,
        terminal_value=tv,
        pv_terminal=pv_terminal,
        enterprise_value=enterprise_value,
        equity_value=equity_value,
        value_per_share=value_per_share,
    )
