"""
Path drop-off detection.

Two independent analyses over page-to-page transition counts:

a. Exit rates: each page's share of sessions ending there, judged against
   every other page with enough traffic (cross-sectional). Only pages losing
   more sessions than their peers are flagged.
b. Step transitions (opt-in): for a page with at least two next steps, each
   next step's probability judged against that page's own next-step
   distribution (local baseline). Only unusually unlikely steps are flagged.

Findings of both kinds are ranked together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import fabs
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from webinsight.core.config import config
from webinsight.data.provider import RowProvider
from webinsight.data.schema import TransitionEdge, coerce_rows

from .baselines import BaselineScope, Observation
from .explain import (
    EXIT_RATE_CHECKS,
    TRANSITION_CHECKS,
    exit_rate_explanation,
    join_path,
    path_summary,
    transition_explanation,
)
from .params import PathDropoffParams, parse_params
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

EXIT_RATE = "exit_rate"
TRANSITION_RATE = "transition_rate"


@dataclass
class TransitionGraph:
    """
    Outgoing totals, exits and edge counts keyed by page.

    None as a from-page is the session entry; None as a to-page is the exit.
    """

    totals: Dict[Optional[str], int]
    exits: Dict[Optional[str], int]
    edges: Dict[Tuple[Optional[str], Optional[str]], int]

    @classmethod
    def from_edges(cls, rows: Iterable[TransitionEdge]) -> "TransitionGraph":
        totals: Dict[Optional[str], int] = {}
        exits: Dict[Optional[str], int] = {}
        edges: Dict[Tuple[Optional[str], Optional[str]], int] = {}
        for row in rows:
            a, b, n = row.from_path, row.to_path, row.transitions
            totals[a] = totals.get(a, 0) + n
            if b is None:
                exits[a] = exits.get(a, 0) + n
            edges[(a, b)] = edges.get((a, b), 0) + n
        return cls(totals=totals, exits=exits, edges=edges)

    def exit_rates(self, min_support: int) -> List[Dict[str, Any]]:
        rates = []
        for path, total in self.totals.items():
            if path is None or total < min_support:
                continue
            rate = self.exits.get(path, 0) / total if total > 0 else 0.0
            rates.append({"path": path, "rate": rate, "support": total})
        return rates

    def next_steps(self, min_support: int) -> Dict[str, List[Tuple[str, float, int]]]:
        """page -> [(next page, probability, edge count)], pages with >= 2 next steps only."""
        steps: Dict[str, List[Tuple[str, float, int]]] = {}
        for (a, b), n in self.edges.items():
            if a is None or b is None:
                continue
            total = self.totals.get(a, 0)
            if total < min_support:
                continue
            steps.setdefault(a, []).append((b, n / total if total > 0 else 0.0, n))
        return {a: items for a, items in steps.items() if len(items) >= 2}


def _exit_finding(deviation: Deviation, mapper: SeverityMapper) -> Finding:
    path = deviation.observation.subject
    return Finding(
        kind=FindingKind.PATH_DROPOFF,
        subject=path,
        metric=EXIT_RATE,
        value=deviation.value,
        expected=deviation.expected,
        effect_size=deviation.effect,
        z=deviation.z,
        support=deviation.observation.support,
        severity=mapper.severity(deviation.z, deviation.effect),
        explanation=exit_rate_explanation(path, deviation.value, deviation.expected),
        recommended_checks=EXIT_RATE_CHECKS,
        path_sequence=(path,),
    )


def _transition_finding(deviation: Deviation, mapper: SeverityMapper) -> Finding:
    from_path, to_path = deviation.observation.subject
    return Finding(
        kind=FindingKind.PATH_DROPOFF,
        subject=join_path((from_path, to_path)),
        metric=TRANSITION_RATE,
        value=deviation.value,
        expected=deviation.expected,
        effect_size=deviation.effect,
        z=deviation.z,
        support=deviation.observation.support,
        severity=mapper.severity(deviation.z, deviation.effect),
        explanation=transition_explanation(from_path, to_path, deviation.value, deviation.expected),
        recommended_checks=TRANSITION_CHECKS,
        path_sequence=(from_path, to_path),
    )


def score_path_dropoffs(
    edges: Iterable[Union[TransitionEdge, Mapping[str, Any]]],
    min_support: Optional[int] = None,
    min_effect_size: Optional[float] = None,
    sensitivity: Sensitivity = Sensitivity.MEDIUM,
    include_step_dropoffs: bool = True,
) -> List[Finding]:
    """
    Score transition edges.

    Args:
        edges: {from_path, to_path, transitions} rows
        min_support: Minimum outgoing transitions of a page (and of an edge,
            for step findings)
        min_effect_size: Minimum gap from the baseline (inclusive)
        sensitivity: low/medium/high, mapped to a z threshold
        include_step_dropoffs: Also score next-step probabilities

    Returns:
        Ranked findings of both kinds
    """
    cfg = config.anomaly.path_dropoff
    support_floor = cfg.min_support if min_support is None else min_support
    min_effect = cfg.min_effect_size if min_effect_size is None else min_effect_size
    threshold = threshold_for(sensitivity)
    mapper = SeverityMapper(config.anomaly.severity)

    graph = TransitionGraph.from_edges(coerce_rows(edges, TransitionEdge))

    exit_scorer = RobustDeviationScorer(
        scope=BaselineScope.CROSS_SECTIONAL,
        direction=Direction.UP,
        gate=DeviationGate(min_effect=min_effect, z_threshold=threshold),
    )
    exit_observations = [
        Observation(group=EXIT_RATE, subject=r["path"], value=r["rate"], support=r["support"])
        for r in graph.exit_rates(support_floor)
    ]
    findings = [_exit_finding(d, mapper) for d in exit_scorer.score(exit_observations)]

    if include_step_dropoffs:
        step_scorer = RobustDeviationScorer(
            scope=BaselineScope.LOCAL,
            direction=Direction.DOWN,
            gate=DeviationGate(
                min_effect=min_effect, z_threshold=threshold, min_support=support_floor
            ),
        )
        step_observations = [
            Observation(group=a, subject=(a, b), value=p, support=n)
            for a, steps in graph.next_steps(support_floor).items()
            for b, p, n in steps
        ]
        findings.extend(
            _transition_finding(d, mapper) for d in step_scorer.score(step_observations)
        )

    return rank(
        findings,
        key=lambda f: (severity_score(f.z, f.effect_size), fabs(f.value - f.expected)),
    )


def detect_path_dropoffs(
    provider: RowProvider, params: Union[PathDropoffParams, Mapping[str, Any]]
) -> DetectionResult:
    """
    Detect pages with abnormal exit rates or next-step probabilities.

    Raises:
        TenantResolutionError: If no tenant id is given
        ParameterValidationError: If a parameter is invalid (before fetching)
    """
    params = parse_params(PathDropoffParams, params)

    rows = coerce_rows(
        provider.fetch_transitions(
            params.tenant_id,
            params.date_from,
            params.date_to,
            params.min_support,
            params.normalize_paths,
        ),
        TransitionEdge,
    )
    logger.debug("Fetched %d transition rows for tenant %s", len(rows), params.tenant_id)

    findings = score_path_dropoffs(
        rows,
        min_support=params.min_support,
        min_effect_size=params.min_effect_size,
        sensitivity=params.sensitivity,
        include_step_dropoffs=params.include_step_dropoffs,
    )
    logger.info(
        "Path drop-off detection for tenant %s: %d finding(s)", params.tenant_id, len(findings)
    )

    extras = {
        "exit_rates": TransitionGraph.from_edges(rows).exit_rates(params.min_support),
        "transitions": [row.model_dump() for row in rows],
    }
    return DetectionResult(findings=findings, summary=path_summary(findings), extras=extras)
