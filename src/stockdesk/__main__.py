import asyncio
import logging
import math
import sys

import click

from stockdesk.analysis.stats import fmt_pct, fmt_usd
from stockdesk.config import Settings
from stockdesk.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _fmt_money(x: float | None) -> str:
    if x is None or not math.isfinite(x):
        return "—"
    sign = "-" if x < 0 else ""
    a = abs(x)
    for div, unit in ((1e12, "T"), (1e9, "B"), (1e6, "M")):
        if a >= div:
            return f"{sign}${a / div:.2f}{unit}"
    return f"{sign}${a:.0f}"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool):
    """stockdesk - price, Monte Carlo and DCF research for a ticker watchlist"""
    setup_logging(verbose)


@cli.command()
@click.argument("symbol")
@click.option("--days", type=click.IntRange(min=1), default=None, help="Horizon in trading days")
@click.option("--sims", type=click.IntRange(min=1), default=None, help="Number of simulated paths")
@click.option("--seed", type=int, default=None, help="Generator seed")
@click.option("--lam", type=float, default=None, help="Risk aversion (lambda)")
def quant(symbol: str, days: int | None, sims: int | None, seed: int | None, lam: float | None):
    """Run the GBM Monte Carlo for SYMBOL on its trailing year of closes."""
    from stockdesk.analysis.simulation import run_quant
    from stockdesk.api.errors import ProviderError
    from stockdesk.collectors.prices import collect_prices
    from stockdesk.web.app import build_clients

    settings = Settings()
    stooq, _ = build_clients(settings)

    try:
        prices = asyncio.run(collect_prices(stooq, symbol, limit=settings.price_bar_limit))
    except ProviderError as e:
        click.echo(f"Price fetch FAILED - {e}", err=True)
        sys.exit(1)

    report = run_quant(
        prices["bars"],
        days=days if days is not None else settings.simulation_days,
        sims=sims if sims is not None else settings.simulation_num_paths,
        seed=seed if seed is not None else settings.simulation_seed,
        lam=lam if lam is not None else settings.simulation_lambda,
        window=settings.simulation_window,
        min_history=settings.simulation_min_history_days,
    )
    if report is None:
        click.echo(f"Not enough price history for {symbol.upper()}.", err=True)
        sys.exit(1)

    mc = report["mc"]
    click.echo(
        f"{symbol.upper()} · Spot {fmt_usd(mc['spot'])} · "
        f"Sims {mc['sims']:,} · Horizon {mc['days']} trading days"
    )
    click.echo(
        f"  mu (daily): {fmt_pct(report['mu_daily'])}  sigma (daily): {fmt_pct(report['sigma_daily'])}"
        f"  seed {report['seed']}  lambda {mc['lam']}"
    )
    click.echo(f"  P5 {fmt_usd(mc['p5'])}  P50 {fmt_usd(mc['p50'])}  "
               f"Mean {fmt_usd(mc['mean'])}  P95 {fmt_usd(mc['p95'])}")
    click.echo(f"  Prob. loss {fmt_pct(mc['prob_loss'])}  VaR 5% {fmt_pct(mc['var5_return'])}  "
               f"CVaR 5% {fmt_pct(mc['cvar5_return'])}")
    click.echo(f"  Risk-adj price {fmt_usd(mc['risk_adj_price'])}  StdDev(S) {fmt_usd(mc['stdev_price'])}")


@cli.command()
@click.argument("symbol")
@click.option("--years", type=click.Choice(["5", "7", "10"]), default=None, help="Forecast years")
@click.option("--revenue-cagr", type=float, default=None)
@click.option("--ebit-margin", type=float, default=None)
@click.option("--tax-rate", type=float, default=None)
@click.option("--wacc", type=click.FloatRange(min=-1.0, min_open=True), default=None)
@click.option("--method", type=click.Choice(["perpetual", "exit"]), default=None,
              help="Terminal value method")
@click.option("--terminal-growth", type=float, default=None)
@click.option("--exit-multiple", type=float, default=None, help="EV/EBITDA exit multiple")
def dcf(symbol: str, years: str | None, revenue_cagr: float | None, ebit_margin: float | None,
        tax_rate: float | None, wacc: float | None, method: str | None,
        terminal_growth: float | None, exit_multiple: float | None):
    """Value SYMBOL with a DCF seeded from its historical medians."""
    from stockdesk.analysis.dcf import DCFAssumptions, run_dcf, seed_assumptions
    from stockdesk.api.errors import ProviderError
    from stockdesk.collectors.financials import collect_financials
    from stockdesk.web.app import build_clients

    settings = Settings()
    _, alphavantage = build_clients(settings)

    try:
        financials = asyncio.run(collect_financials(alphavantage, symbol))
    except ProviderError as e:
        click.echo(f"Financials fetch FAILED - {e}", err=True)
        sys.exit(1)

    if not financials["annual"]:
        click.echo(f"No annual reports for {symbol.upper()}.", err=True)
        sys.exit(1)

    overrides = {
        "years": int(years) if years else None,
        "revenue_cagr": revenue_cagr,
        "ebit_margin": ebit_margin,
        "tax_rate": tax_rate,
        "wacc": wacc,
        "terminal_method": method,
        "terminal_growth": terminal_growth,
        "exit_multiple": exit_multiple,
    }
    assumptions = seed_assumptions(financials["annual"])
    assumptions = DCFAssumptions.model_validate(
        {**assumptions.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
    )
    model = run_dcf(financials["latest"], assumptions)

    click.echo(f"{symbol.upper()} DCF · period ending {model['base']['end']}")
    a = model["assumptions"]
    click.echo(
        f"  {a['years']}y · CAGR {fmt_pct(a['revenue_cagr'])} · EBIT margin {fmt_pct(a['ebit_margin'])}"
        f" · tax {fmt_pct(a['tax_rate'])} · WACC {fmt_pct(a['wacc'])} · {a['terminal_method']}"
    )
    for r in model["rows"]:
        click.echo(
            f"  Y{r['year']:<3} revenue {_fmt_money(r['revenue']):>10}  EBIT {_fmt_money(r['ebit']):>10}"
            f"  FCFF {_fmt_money(r['fcff']):>10}  PV {_fmt_money(r['pv']):>10}"
        )
    click.echo(f"  Terminal value (PV) {_fmt_money(model['pv_terminal'])}")
    click.echo(f"  Enterprise value {_fmt_money(model['enterprise_value'])}")
    click.echo(f"  Equity value {_fmt_money(model['equity_value'])}")
    click.echo(f"  Fair value per share {fmt_usd(model['value_per_share'])}")
    if not math.isfinite(model["terminal_value"]):
        click.echo("  WARNING: terminal value is not finite (WACC <= terminal growth?)", err=True)


@cli.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", type=int, default=None, help="Port (default from settings)")
def serve(host: str | None, port: int | None):
    """Start the JSON API server."""
    import uvicorn

    from stockdesk.web.app import create_app

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    cli()
