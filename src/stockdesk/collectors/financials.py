"""Normalise Alpha Vantage statements into annual fundamentals records.

Input: the raw INCOME_STATEMENT / BALANCE_SHEET / CASH_FLOW /
SHARES_OUTSTANDING payloads.
Output: ``FundamentalsAnnual`` records keyed by fiscal period end, most recent
first. Unknown values stay None and are never replaced by zero, except for the
share-count fallback chain.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from stockdesk.analysis.dcf import FundamentalsAnnual
from stockdesk.api.alphavantage_client import PROVIDER, SHARES_FUNCTION, AlphaVantageClient

logger = logging.getLogger(__name__)

MAX_EFFECTIVE_TAX_RATE = 0.5

REVENUE_KEYS = ["totalRevenue", "revenue"]
EBIT_KEYS = ["ebit", "operatingIncome"]
DA_KEYS = ["depreciationDepletionAndAmortization", "depreciationAndAmortization"]
CFO_KEYS = ["operatingCashflow", "operatingCashFlow"]
CASH_KEYS = ["cashAndCashEquivalentsAtCarryingValue", "cashAndCashEquivalents"]
NWC_CASH_KEYS = CASH_KEYS + ["cashAndShortTermInvestments"]
STI_KEYS = ["shortTermInvestments", "currentInvestments"]
SHORT_DEBT_KEYS = ["shortTermDebt", "currentDebt"]
LONG_DEBT_KEYS = ["longTermDebt", "longTermDebtNoncurrent"]
STATEMENT_SHARES_KEYS = ["weightedAverageShsOutDil", "weightedAverageShsOut"]
DILUTED_SHARES_KEYS = [
    "shares_outstanding_diluted", "dilutedSharesOutstanding", "diluted_shares_outstanding",
]
BASIC_SHARES_KEYS = [
    "shares_outstanding_basic", "basicSharesOutstanding", "basic_shares_outstanding",
]
GENERIC_SHARES_KEYS = ["sharesOutstanding", "shares_outstanding", "shares", "value"]

# Fields that stay None when a record has neither revenue nor EBIT
NUMERIC_FIELDS = (
    "revenue", "ebit", "da", "cfo", "capex", "fcf", "cash", "short_term_investments",
    "cash_plus_investments", "total_debt", "net_debt", "shares_outstanding", "op_nwc",
    "delta_op_nwc", "ebit_margin", "da_pct", "capex_pct", "op_nwc_pct", "effective_tax_rate",
)


def to_num(x: Any) -> float | None:
    """Coerce a provider value to float; None for blanks, "None"/"null" and non-finite."""
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        return float(x) if math.isfinite(x) else None
    if isinstance(x, str):
        s = x.strip()
        if not s or s.lower() in ("none", "null"):
            return None
        s = s.replace(",", "").replace("%", "")
        try:
            n = float(s)
        except ValueError:
            return None
        return n if math.isfinite(n) else None
    return None


def pick_first_num(row: Mapping[str, Any] | None, keys: Iterable[str]) -> float | None:
    if not row:
        return None
    for k in keys:
        v = to_num(row.get(k))
        if v is not None:
            return v
    return None


def _sum_known(*parts: float | None) -> float | None:
    known = [p for p in parts if p is not None]
    return sum(known) if known else None


def _ratio(num: float | None, revenue: float | None) -> float | None:
    if num is None or not revenue:
        return None
    return num / revenue


def _parse_date(s: Any) -> date | None:
    try:
        return date.fromisoformat(str(s)[:10])
    except ValueError:
        return None


def compute_op_nwc(bs: Mapping[str, Any]) -> float | None:
    """Operating NWC: (current assets - cash - ST investments) - (current liabilities - ST debt)."""
    current_assets = to_num(bs.get("totalCurrentAssets"))
    current_liabilities = to_num(bs.get("totalCurrentLiabilities"))
    if current_assets is None or current_liabilities is None:
        return None

    cash = pick_first_num(bs, NWC_CASH_KEYS) or 0.0
    short_term_investments = pick_first_num(bs, STI_KEYS) or 0.0
    short_term_debt = pick_first_num(bs, SHORT_DEBT_KEYS) or 0.0

    op_assets = current_assets - cash - short_term_investments
    op_liabilities = current_liabilities - short_term_debt
    return op_assets - op_liabilities


def _share_rows(shares_payload: Mapping[str, Any]) -> list[tuple[date, float]]:
    rows = []
    for r in shares_payload.get("data") or []:
        d = _parse_date(r.get("date"))
        shares = (
            pick_first_num(r, DILUTED_SHARES_KEYS)
            or pick_first_num(r, BASIC_SHARES_KEYS)
            or pick_first_num(r, GENERIC_SHARES_KEYS)
        )
        if d is not None and shares is not None:
            rows.append((d, shares))
    return rows


def pick_shares_for_end_date(share_rows: list[tuple[date, float]], end: str) -> float | None:
    """Latest share count dated on/before ``end``, else the earliest one after it."""
    end_d = _parse_date(end)
    if end_d is None or not share_rows:
        return None

    on_or_before = [r for r in share_rows if r[0] <= end_d]
    if on_or_before:
        return max(on_or_before, key=lambda r: r[0])[1]
    return min(share_rows, key=lambda r: r[0])[1]


def _by_fiscal_date(payload: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    reports = payload.get("annualReports") if payload else None
    if not isinstance(reports, list):
        return {}
    return {r["fiscalDateEnding"]: r for r in reports if r.get("fiscalDateEnding")}


def build_annual_record(
    end: str,
    isr: Mapping[str, Any],
    bsr: Mapping[str, Any],
    cfr: Mapping[str, Any],
    shares: float | None,
) -> FundamentalsAnnual:
    """One fiscal year from the three statement rows sharing ``end``."""
    end_d = _parse_date(end)
    revenue = pick_first_num(isr, REVENUE_KEYS)
    ebit = pick_first_num(isr, EBIT_KEYS)

    record = FundamentalsAnnual(fy=end_d.year if end_d else None, end=end)
    if revenue is None and ebit is None:
        logger.debug("No revenue/EBIT for %s, record left unknown", end)
        record.update({k: None for k in NUMERIC_FIELDS})
        return record

    pretax = to_num(isr.get("incomeBeforeTax"))
    tax_expense = to_num(isr.get("incomeTaxExpense"))

    da = pick_first_num(cfr, DA_KEYS)
    cfo = pick_first_num(cfr, CFO_KEYS)
    capex_raw = pick_first_num(cfr, ["capitalExpenditures"])
    capex = abs(capex_raw) if capex_raw is not None else None
    fcf = cfo - capex if cfo is not None and capex is not None else None

    cash = pick_first_num(bsr, CASH_KEYS)
    short_term_investments = pick_first_num(bsr, STI_KEYS)
    cash_plus_investments = _sum_known(cash, short_term_investments)

    total_debt = _sum_known(
        pick_first_num(bsr, SHORT_DEBT_KEYS),
        pick_first_num(bsr, LONG_DEBT_KEYS),
    )
    net_debt = (
        total_debt - cash_plus_investments
        if total_debt is not None and cash_plus_investments is not None
        else None
    )

    op_nwc = compute_op_nwc(bsr)

    effective_tax_rate = None
    if pretax and tax_expense is not None:
        effective_tax_rate = max(0.0, min(MAX_EFFECTIVE_TAX_RATE, tax_expense / pretax))

    record.update(
        revenue=revenue,
        ebit=ebit,
        da=da,
        cfo=cfo,
        capex=capex,
        fcf=fcf,
        cash=cash,
        short_term_investments=short_term_investments,
        cash_plus_investments=cash_plus_investments,
        total_debt=total_debt,
        net_debt=net_debt,
        shares_outstanding=shares,
        op_nwc=op_nwc,
        delta_op_nwc=None,
        ebit_margin=_ratio(ebit, revenue),
        da_pct=_ratio(da, revenue),
        capex_pct=_ratio(capex, revenue),
        op_nwc_pct=_ratio(op_nwc, revenue),
        effective_tax_rate=effective_tax_rate,
    )
    return record


def build_annual_records(statements: Mapping[str, Mapping[str, Any]]) -> list[FundamentalsAnnual]:
    """All fiscal years across the statements, most recent first."""
    is_by_date = _by_fiscal_date(statements.get("INCOME_STATEMENT") or {})
    bs_by_date = _by_fiscal_date(statements.get("BALANCE_SHEET") or {})
    cf_by_date = _by_fiscal_date(statements.get("CASH_FLOW") or {})

    share_rows = _share_rows(statements.get(SHARES_FUNCTION) or {})
    latest_shares = max(share_rows, key=lambda r: r[0])[1] if share_rows else None

    dates = sorted(
        set(is_by_date) | set(bs_by_date) | set(cf_by_date),
        key=lambda d: _parse_date(d) or date.min,
        reverse=True,
    )

    annual: list[FundamentalsAnnual] = []
    for end in dates:
        isr = is_by_date.get(end, {})
        shares = pick_first_num(isr, STATEMENT_SHARES_KEYS)
        if shares is None:
            shares = pick_shares_for_end_date(share_rows, end)
        if shares is None:
            shares = latest_shares

        annual.append(build_annual_record(
            end, isr, bs_by_date.get(end, {}), cf_by_date.get(end, {}), shares,
        ))

    for curr, prev in zip(annual, annual[1:]):
        if curr.get("op_nwc") is not None and prev.get("op_nwc") is not None:
            curr["delta_op_nwc"] = curr["op_nwc"] - prev["op_nwc"]

    return annual


async def collect_financials(client: AlphaVantageClient, symbol: str) -> dict[str, Any]:
    """Fetch and normalise annual fundamentals (FinancialsResponse shape)."""
    statements = await client.get_statements(symbol)
    annual = build_annual_records(statements)
    latest = annual[0] if annual else None
    logger.info("Collected %d annual records for %s", len(annual), symbol)
    return {
        "provider": PROVIDER,
        "symbol": symbol.upper(),
        "as_of": {"latest_period_end": latest["end"] if latest else None},
        "latest": latest,
        "annual": annual,
    }
