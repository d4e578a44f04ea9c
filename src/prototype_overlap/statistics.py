"""Small statistical helpers shared by the evaluator and calculators.

All functions are pure and accept plain Python sequences or numpy
arrays.  "Not enough data" is signalled with ``NaN`` (for metrics that
feed the evaluator's soft-failure contract) or ``None`` (for optional
percentile queries), never with an exception.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

__all__ = [
    "clamp01",
    "is_finite_number",
    "pearson",
    "mean_abs_diff",
    "rmse",
    "wilson_interval",
    "percentile",
    "jaccard",
]


def clamp01(value: float) -> float:
    """Clamp *value* to ``[0, 1]``."""
    return max(0.0, min(1.0, value))


def is_finite_number(value) -> bool:
    """True for real, finite, non-bool numbers (numpy scalars included)."""
    if isinstance(value, (bool, np.bool_)):
        return False
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    return math.isfinite(float(value))


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson correlation of two equal-length series.

    Returns ``NaN`` for fewer than two samples or when either series
    has zero variance.  The result is clamped to ``[-1, 1]`` to absorb
    floating-point overshoot.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.size < 2 or x.size != y.size:
        return math.nan
    dx = x - x.mean()
    dy = y - y.mean()
    denom = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denom == 0.0:
        return math.nan
    r = float(np.dot(dx, dy)) / denom
    return max(-1.0, min(1.0, r))


def mean_abs_diff(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Mean of ``|x - y|``; ``NaN`` when empty."""
    x = np.asarray(xs, dtype=float)
    if x.size == 0:
        return math.nan
    return float(np.mean(np.abs(x - np.asarray(ys, dtype=float))))


def rmse(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Root-mean-square difference; ``NaN`` when empty."""
    x = np.asarray(xs, dtype=float)
    if x.size == 0:
        return math.nan
    d = x - np.asarray(ys, dtype=float)
    return float(np.sqrt(np.mean(d * d)))


def wilson_interval(
    successes: int,
    trials: int,
    confidence: float = 0.95,
) -> Tuple[float, float]:
    """Wilson score interval for a binomial proportion.

    Parameters
    ----------
    successes : int
        Number of successes (``0 <= successes <= trials``).
    trials : int
        Number of Bernoulli trials.
    confidence : float
        Two-sided confidence level, e.g. ``0.95``.

    Returns
    -------
    (lower, upper) : tuple of float
        Bounds clipped to ``[0, 1]``.  With no trials the interval is
        the uninformative ``(0.0, 1.0)``.

    Notes
    -----
    ``z = Φ⁻¹(1 − (1 − confidence) / 2)``;  for 0.95 this is ≈ 1.96.

    .. math::

        \\frac{\\hat p + z^2/2n \\pm z\\sqrt{\\hat p(1-\\hat p)/n + z^2/4n^2}}
             {1 + z^2/n}
    """
    if trials <= 0:
        return 0.0, 1.0
    z = float(norm.ppf(1.0 - (1.0 - confidence) / 2.0))
    n = float(trials)
    p_hat = successes / n
    z2 = z * z
    denom = 1.0 + z2 / n
    centre = p_hat + z2 / (2.0 * n)
    margin = z * math.sqrt(p_hat * (1.0 - p_hat) / n + z2 / (4.0 * n * n))
    lower = (centre - margin) / denom
    upper = (centre + margin) / denom
    return clamp01(lower), clamp01(upper)


def percentile(samples: Sequence[float], p: float) -> Optional[float]:
    """Linear-interpolated percentile, *p* in ``[0, 1]``.

    The index is ``p * (n - 1)`` over the sorted samples; the two
    neighbouring order statistics are blended by the fractional part.
    Returns ``None`` for an empty sample list.

    >>> percentile([0.1, 0.2, 0.3, 0.4], 0.5)   # 0.25
    """
    if len(samples) == 0:
        return None
    ordered = sorted(samples)
    if len(ordered) == 1:
        return float(ordered[0])
    index = p * (len(ordered) - 1)
    lo = int(math.floor(index))
    hi = int(math.ceil(index))
    if lo == hi:
        return float(ordered[lo])
    frac = index - lo
    return float(ordered[lo] + (ordered[hi] - ordered[lo]) * frac)


def jaccard(
    intersection: int,
    union: int,
    empty_value: float = 1.0,
) -> float:
    """``|A ∩ B| / |A ∪ B|`` with a configurable empty-set value."""
    if union <= 0:
        return empty_value
    return intersection / union
