"""
Robust statistics primitives shared by every detector.

Median/MAD based, so a handful of extreme points cannot drag the baseline
along with them. All functions are pure; callers pre-filter non-finite values.
"""

from __future__ import annotations

import statistics
from math import exp, fabs
from typing import Optional, Sequence

from webinsight.core.config import config

MAD_SCALE = config.anomaly.stats.mad_scale


def median(xs: Sequence[float]) -> float:
    """Median of `xs`; 0.0 for empty input."""
    if not xs:
        return 0.0
    return float(statistics.median(xs))


def mad(xs: Sequence[float], center: Optional[float] = None) -> float:
    """
    Median absolute deviation around `center` (defaults to the median).
    """
    if not xs:
        return 0.0
    mu = median(xs) if center is None else center
    return median([fabs(x - mu) for x in xs])


def robust_sigma(xs: Sequence[float], center: Optional[float] = None) -> float:
    """MAD scaled to approximate a standard deviation under normality."""
    return MAD_SCALE * mad(xs, center)


def z_score(value: float, baseline: float, sigma: float) -> float:
    """
    Robust z-score of `value` against `baseline`.

    A zero sigma yields 0.0 rather than an infinite score: a flat baseline
    never produces a finding.
    """
    if sigma > 0:
        return (value - baseline) / sigma
    return 0.0


def chi_square_2x2(a: float, b: float, c: float, d: float) -> float:
    """
    Yates-corrected chi-square statistic of a 2x2 contingency table.

    Layout for a segment label:
        a = current count of the label,  b = current count of the rest
        c = previous count of the label, d = previous count of the rest
    """
    n = a + b + c + d
    if n == 0:
        return 0.0
    num = fabs(a * d - b * c) - n / 2
    return (n * num ** 2) / ((a + b) * (c + d) * (a + c) * (b + d) + 1e-9)


def approx_chi_square_p_value(x2: float) -> float:
    """
    Closed-form upper-tail approximation for one degree of freedom.

    p ~= exp(-x2/2) * (1 + x2/2), clamped to [0, 1].
    """
    p = exp(-x2 / 2) * (1 + x2 / 2)
    return min(max(p, 0.0), 1.0)


def chi_square_p_value(a: float, b: float, c: float, d: float) -> float:
    """Approximate p-value of the label-vs-rest, current-vs-previous table."""
    if a + b + c + d == 0:
        return 1.0
    return approx_chi_square_p_value(chi_square_2x2(a, b, c, d))
