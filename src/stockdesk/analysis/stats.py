"""Numeric statistics primitives.

Pure scalar functions over plain float sequences. No I/O, no numpy: results
must not depend on vectorised summation order.

Insufficient input is signalled with ``nan`` rather than an exception, so a
caller can keep every sibling field of a result valid.
"""

import math
from collections.abc import Sequence

TRADING_DAYS_PER_YEAR = 252
NAN = float("nan")


def pct(a: float | None, b: float | None) -> float:
    """Simple return from ``a`` to ``b``; nan when ``a`` is missing, zero or non-finite."""
    if a is None or b is None or not math.isfinite(a) or a == 0:
        return NAN
    return (b - a) / a


def mean(xs: Sequence[float]) -> float:
    if len(xs) == 0:
        return NAN
    return sum(xs) / len(xs)


def stddev(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator); nan when n < 2."""
    n = len(values)
    if n < 2:
        return NAN
    m = mean(values)
    var = sum((x - m) ** 2 for x in values) / (n - 1)
    return math.sqrt(var)


def log_returns(closes: Sequence[float]) -> list[float]:
    """Daily log returns of consecutive closes.

    Pairs where either close is non-positive are skipped, so the output can be
    shorter than ``len(closes) - 1``.
    """
    out: list[float] = []
    for i in range(1, len(closes)):
        a = closes[i - 1]
        b = closes[i]
        if a > 0 and b > 0:
            out.append(math.log(b / a))
    return out


def annualize_vol(daily_log_returns: Sequence[float], trading_days: int = TRADING_DAYS_PER_YEAR) -> float:
    sd = stddev(daily_log_returns)
    return sd * math.sqrt(trading_days) if math.isfinite(sd) else NAN


def quantile(sorted_values: Sequence[float], q: float) -> float:
    """Linear-interpolation quantile (R type 7) of an ascending sequence.

    The input is NOT sorted here; ``q`` is clamped to [0, 1].
    """
    n = len(sorted_values)
    if n == 0:
        return NAN
    qq = min(1.0, max(0.0, q))
    pos = (n - 1) * qq
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return sorted_values[lo]
    w = pos - lo
    return sorted_values[lo] * (1 - w) + sorted_values[hi] * w


def median(values: Sequence[float]) -> float | None:
    """Median of the finite values, or None when there are none."""
    xs = sorted(v for v in values if v is not None and math.isfinite(v))
    if not xs:
        return None
    mid = len(xs) // 2
    if len(xs) % 2:
        return xs[mid]
    return (xs[mid - 1] + xs[mid]) / 2


def histogram(values: Sequence[float], bins: int = 50) -> tuple[list[int], list[float]]:
    """Equal-width histogram between the sample min and max.

    Returns ``(counts, edges)`` with ``len(counts) == bins`` and
    ``len(edges) == bins + 1``. The maximum lands in the last bin. Empty input
    gives two empty lists.
    """
    if len(values) == 0:
        return [], []

    lo = min(values)
    hi = max(values)
    span = (hi - lo) or 1.0

    edges = [lo + (i * span) / bins for i in range(bins + 1)]
    if hi != lo:
        edges[-1] = hi

    counts = [0] * bins
    for v in values:
        idx = math.floor((v - lo) / span * bins)
        if idx < 0:
            idx = 0
        if idx >= bins:
            idx = bins - 1
        counts[idx] += 1

    return counts, edges


def fmt_pct(x: float | None) -> str:
    return f"{x * 100:.2f}%" if x is not None and math.isfinite(x) else "—"


def fmt_usd(x: float | None) -> str:
    return f"${x:.2f}" if x is not None and math.isfinite(x) else "—"
