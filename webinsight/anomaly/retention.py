"""
Retention dip detection.

Compares each cohort's retention at offset k with every other eligible cohort
at the same k (a cross-sectional baseline). Only dips are of interest: a
cohort retaining better than its peers is never flagged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from webinsight.core.config import config
from webinsight.data.provider import RowProvider
from webinsight.data.schema import CohortMatrixEntry, CohortRow, coerce_rows

from .baselines import BaselineScope, Observation, RobustBaseline, group_baselines
from .explain import RETENTION_CHECKS, retention_explanation, retention_summary
from .params import RetentionParams, parse_params
from .schema import DetectionResult, Finding, FindingKind, Sensitivity
from .scoring import (
    Deviation,
    DeviationGate,
    Direction,
    RobustDeviationScorer,
    SeverityMapper,
    rank,
    severity_score,
    threshold_for,
)

logger = logging.getLogger(__name__)


@dataclass
class Cohort:
    """Size of a cohort (its k=0 actives) and its actives per offset."""

    cohort_start: str
    size: int = 0
    active: Dict[int, int] = field(default_factory=dict)


@dataclass
class RetentionAnalysis:
    """Everything computed for one call, findings included."""

    cohorts: List[Cohort]
    eligible: List[Cohort]
    matrix: List[CohortMatrixEntry]
    baselines: Dict[int, RobustBaseline]
    findings: List[Finding]


def build_cohorts(rows: Iterable[CohortRow], max_k: int) -> List[Cohort]:
    """Group cohort rows by cohort_start, keeping offsets 1..max_k."""
    cohorts: Dict[str, Cohort] = {}
    for row in rows:
        cohort = cohorts.setdefault(row.cohort_start, Cohort(cohort_start=row.cohort_start))
        if row.k == 0:
            cohort.size = row.active_users
        elif 1 <= row.k <= max_k:
            cohort.active[row.k] = row.active_users
    return list(cohorts.values())


def _finding(deviation: Deviation, mapper: SeverityMapper, min_peers_for_z: int) -> Finding:
    cell: CohortMatrixEntry = deviation.observation.subject
    z_checked = deviation.baseline.count >= min_peers_for_z
    return Finding(
        kind=FindingKind.RETENTION_DIP,
        subject=f"{cell.cohort_start}@{cell.k}",
        metric="retention",
        value=cell.rate,
        expected=deviation.expected,
        effect_size=deviation.effect,
        z=deviation.z,
        support=cell.cohort_size,
        severity=mapper.severity(deviation.z, deviation.effect),
        explanation=retention_explanation(
            cell.cohort_start, cell.k, cell.rate, deviation.expected, z_checked=z_checked
        ),
        recommended_checks=RETENTION_CHECKS,
        cohort_start=cell.cohort_start,
        period_number=cell.k,
    )


def score_retention(
    rows: Iterable[Union[CohortRow, Mapping[str, Any]]],
    min_cohort_size: Optional[int] = None,
    min_effect_size: Optional[float] = None,
    sensitivity: Sensitivity = Sensitivity.MEDIUM,
    max_k: Optional[int] = None,
) -> RetentionAnalysis:
    """
    Score cohort rows.

    Args:
        rows: {cohort_start, k, active_users}; the k=0 row is the cohort size
        min_cohort_size: Cohorts smaller than this are left out entirely
        min_effect_size: Minimum drop below baseline (inclusive)
        sensitivity: low/medium/high, mapped to a z threshold
        max_k: Highest offset considered

    Returns:
        RetentionAnalysis with ranked findings
    """
    cfg = config.anomaly.retention
    min_size = cfg.min_cohort_size if min_cohort_size is None else min_cohort_size
    min_effect = cfg.min_effect_size if min_effect_size is None else min_effect_size
    top_k = cfg.max_k if max_k is None else max_k

    cohorts = build_cohorts(coerce_rows(rows, CohortRow), top_k)
    eligible = [c for c in cohorts if c.size > 0 and c.size >= min_size]

    matrix = [
        CohortMatrixEntry(
            cohort_start=c.cohort_start,
            k=k,
            active_users=active,
            cohort_size=c.size,
            rate=active / c.size,
        )
        for c in eligible
        for k, active in sorted(c.active.items())
    ]
    # group by offset, peers in cohort order
    observations = sorted(
        (Observation(group=cell.k, subject=cell, value=cell.rate, support=cell.cohort_size) for cell in matrix),
        key=lambda obs: obs.group,
    )

    scorer = RobustDeviationScorer(
        scope=BaselineScope.CROSS_SECTIONAL,
        direction=Direction.DOWN,
        gate=DeviationGate(
            min_effect=min_effect,
            z_threshold=threshold_for(sensitivity),
            min_support=min_size,
            min_peers_for_z=cfg.z_gate_min_peers,
        ),
    )
    mapper = SeverityMapper(config.anomaly.severity)
    findings = [_finding(d, mapper, cfg.z_gate_min_peers) for d in scorer.score(observations)]
    findings = rank(
        findings,
        key=lambda f: (severity_score(f.z, f.effect_size), f.expected - f.value),
    )

    return RetentionAnalysis(
        cohorts=cohorts,
        eligible=eligible,
        matrix=matrix,
        baselines=group_baselines(observations, BaselineScope.CROSS_SECTIONAL),
        findings=findings,
    )


def _extras(analysis: RetentionAnalysis, return_matrix: bool) -> Dict[str, Any]:
    baselines = sorted(analysis.baselines.items())
    extras: Dict[str, Any] = {
        "cohort_count": len(analysis.eligible),
        "total_users_analyzed": sum(c.size for c in analysis.eligible),
        "baselines": [
            {
                "period_number": k,
                "baseline": b.center,
                "sigma": b.sigma,
                "cohorts": b.count,
            }
            for k, b in baselines
        ],
        "baseline_summary": [
            {
                "period_number": k,
                "median_retention": b.center,
                "normal_range": [max(0.0, b.center - b.sigma), min(1.0, b.center + b.sigma)],
            }
            for k, b in baselines
        ],
    }
    if return_matrix:
        rates: Dict[str, Dict[int, float]] = {c.cohort_start: {} for c in analysis.eligible}
        for cell in analysis.matrix:
            rates[cell.cohort_start][cell.k] = cell.rate
        extras["matrix"] = [
            {"cohort_start": c.cohort_start, "cohort_size": c.size, "rates": rates[c.cohort_start]}
            for c in analysis.eligible
        ]
    return extras


def detect_retention_dips(
    provider: RowProvider, params: Union[RetentionParams, Mapping[str, Any]]
) -> DetectionResult:
    """
    Detect cohorts whose retention at some offset dips below their peers.

    Raises:
        TenantResolutionError: If no tenant id is given
        ParameterValidationError: If a parameter is invalid (before fetching)
    """
    params = parse_params(RetentionParams, params)

    rows = provider.fetch_cohort_rows(
        params.tenant_id, params.period.value, params.date_from, params.date_to, params.max_k
    )
    cohort_rows = coerce_rows(rows, CohortRow)
    logger.debug("Fetched %d cohort rows for tenant %s", len(cohort_rows), params.tenant_id)

    analysis = score_retention(
        cohort_rows,
        min_cohort_size=params.min_cohort_size,
        min_effect_size=params.min_effect_size,
        sensitivity=params.sensitivity,
        max_k=params.max_k,
    )
    logger.info(
        "Retention detection for tenant %s: %d eligible cohort(s), %d finding(s)",
        params.tenant_id, len(analysis.eligible), len(analysis.findings),
    )

    return DetectionResult(
        findings=analysis.findings,
        summary=retention_summary(analysis.findings),
        extras=_extras(analysis, params.return_matrix),
    )
