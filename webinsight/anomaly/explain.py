"""
Explanation strings, summaries and recommended checks.

Callers embed these strings directly in generated replies, so the wording of
the summaries (including the empty-case sentences) is a compatibility
contract. Percentages are whole numbers rounded half-up.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Sequence, Tuple

from .schema import Finding

NO_TIMESERIES_ANOMALIES = "No significant timeseries anomalies detected for the selected period."
NO_RETENTION_DIPS = "No significant retention dips detected for the selected period."
NO_SEGMENT_SHIFTS = "No significant segment shifts detected for the selected period."
NO_PATH_DROPOFFS = "No significant path drop-offs detected for the selected period."

NO_DATA_MESSAGE = "No data available for the specified parameters"

PATH_SEPARATOR = " → "

RETENTION_EFFECT_ONLY_NOTE = " (too few cohorts at this period for a z check; flagged on effect size alone)"

SPIKE_CHECKS: Tuple[str, ...] = (
    "check for bot or referral spam traffic",
    "review campaign launches and announcements",
    "verify tracking script changes",
)
DIP_CHECKS: Tuple[str, ...] = (
    "verify the tracking script is still deployed",
    "inspect site availability and error rates",
    "review traffic source changes",
)
RETENTION_CHECKS: Tuple[str, ...] = (
    "review onboarding changes shipped for this cohort",
    "compare acquisition channels of the cohort",
    "inspect releases and incidents during the period",
)
SEGMENT_CHECKS: Tuple[str, ...] = (
    "inspect campaigns/referrers",
    "review geo/device targeting",
    "check landing page relevance",
)
EXIT_RATE_CHECKS: Tuple[str, ...] = (
    "inspect UX & copy",
    "check page speed & errors",
    "review pricing or form friction",
)
TRANSITION_CHECKS: Tuple[str, ...] = (
    "verify CTA to next step",
    "check layout changes",
    "analyze referrer expectations",
)


def pct(rate: float) -> str:
    """Rate in [0, 1] as a whole-number percentage string."""
    return str(Decimal(rate * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def join_path(sequence: Sequence[str]) -> str:
    return PATH_SEPARATOR.join(sequence)


# timeseries

def timeseries_explanation(metric: str, bucket: str, direction: str, value: float, expected: float, z: float) -> str:
    verb = "spiked" if direction == "spike" else "dipped"
    return (
        f"{metric} {verb} to {num(value)} at {bucket} vs {num(expected)} expected "
        f"from the trailing baseline (z={z:.1f})"
    )


def timeseries_checks(direction: str) -> Tuple[str, ...]:
    return SPIKE_CHECKS if direction == "spike" else DIP_CHECKS


def timeseries_summary(findings: List[Finding]) -> str:
    if not findings:
        return NO_TIMESERIES_ANOMALIES
    top = findings[0]
    return (
        f"Detected {len(findings)} timeseries anomaly(ies). Top: {top.direction} in {top.metric} "
        f"at {top.bucket} ({num(top.value)} vs {num(top.expected)} expected)."
    )


# retention

def retention_explanation(
    cohort_start: str, k: int, rate: float, baseline: float, z_checked: bool = True
) -> str:
    text = (
        f"Cohort {cohort_start} retained {pct(rate)}% at period {k} "
        f"vs {pct(baseline)}% across cohorts"
    )
    if not z_checked:
        text += RETENTION_EFFECT_ONLY_NOTE
    return text


def retention_summary(findings: List[Finding]) -> str:
    if not findings:
        return NO_RETENTION_DIPS
    top = findings[0]
    return (
        f"Detected {len(findings)} retention dip(s). Top: cohort {top.cohort_start} "
        f"at period {top.period_number} ({pct(top.value)}% vs {pct(top.expected)}%)."
    )


# segment shifts

def segment_explanation(segment_by: str, label: str, share: float, previous_share: float) -> str:
    delta = share - previous_share
    verb = "increased" if delta >= 0 else "decreased"
    return (
        f"{segment_by}={label} share {verb} by {pct(abs(delta))}pp "
        f"({pct(previous_share)}% → {pct(share)}%)"
    )


def segment_summary(findings: List[Finding]) -> str:
    if not findings:
        return NO_SEGMENT_SHIFTS
    top = findings[0]
    return (
        f"Detected {len(findings)} segment shift(s). Top: {top.segment_by}={top.label} "
        f"{pct(top.effect_size)}pp change."
    )


# path drop-offs

def exit_rate_explanation(path: str, rate: float, baseline: float) -> str:
    return f"Exit rate on {path} is {pct(rate)}% vs {pct(baseline)}% baseline"


def transition_explanation(from_path: str, to_path: str, probability: float, baseline: float) -> str:
    return (
        f"Transition {from_path}{PATH_SEPARATOR}{to_path} is {pct(probability)}% "
        f"vs {pct(baseline)}% among next-step choices"
    )


def path_summary(findings: List[Finding]) -> str:
    if not findings:
        return NO_PATH_DROPOFFS
    top = findings[0]
    return f"Detected {len(findings)} drop-off(s). Top: {top.metric} at {join_path(top.path_sequence)}"
