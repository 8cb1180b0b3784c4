"""
Segment shift detection.

Compares each label's share of traffic in the requested window with its
share in the equal-length window immediately before it (a paired-window
baseline). Each segmentation key is analyzed on its own.

Gates, applied in order:
- the key is skipped when either window's total is below min_support
- a label is skipped only when BOTH shares are below min_share
- |share - previous share| must reach min_effect_size
- with use_chi_square, the approximate p-value must also be below the
  significance level (strict AND with the gates above)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from webinsight.core.config import config
from webinsight.data.provider import RowProvider
from webinsight.data.schema import SegmentTotal, coerce_rows
from webinsight.data.windows import previous_window

from .baselines import BaselineScope, Observation
from .explain import SEGMENT_CHECKS, segment_explanation, segment_summary
from .params import SegmentShiftParams, parse_params
from .schema import DetectionResult, Finding, FindingKind
from .scoring import (
    Deviation,
    DeviationGate,
    Direction,
    RobustDeviationScorer,
    SeverityMapper,
    rank,
)
from .stats import chi_square_p_value

logger = logging.getLogger(__name__)

__all__ = [
    "LabelShare",
    "detect_segment_shifts",
    "previous_window",
    "score_segment_shift",
    "to_label_map",
]


@dataclass(frozen=True)
class LabelShare:
    """Counts behind one label's current and previous share."""

    label: str
    current: float
    previous: float
    current_total: float
    previous_total: float


def to_label_map(rows: Iterable[SegmentTotal]) -> Dict[str, float]:
    """label -> summed value, in first-seen order."""
    counts: Dict[str, float] = {}
    for row in rows:
        counts[row.label] = counts.get(row.label, 0.0) + row.value
    return counts


def _finding(
    deviation: Deviation,
    segment_by: str,
    metric: str,
    p_value: Optional[float],
    mapper: SeverityMapper,
) -> Finding:
    counts: LabelShare = deviation.observation.subject
    share = deviation.value
    previous_share = deviation.expected
    return Finding(
        kind=FindingKind.SEGMENT_SHIFT,
        subject=f"{segment_by}={counts.label}",
        metric=metric,
        value=share,
        expected=previous_share,
        effect_size=deviation.effect,
        p_value=p_value,
        support=counts.current_total + counts.previous_total,
        severity=mapper.severity(None, deviation.effect),
        explanation=segment_explanation(segment_by, counts.label, share, previous_share),
        recommended_checks=SEGMENT_CHECKS,
        direction="increase" if share >= previous_share else "decrease",
        segment_by=segment_by,
        label=counts.label,
        support_curr=counts.current_total,
        support_prev=counts.previous_total,
    )


def score_segment_shift(
    current: Iterable[Union[SegmentTotal, Mapping[str, Any]]],
    previous: Iterable[Union[SegmentTotal, Mapping[str, Any]]],
    segment_by: str,
    metric: str = "visits",
    min_effect_size: Optional[float] = None,
    min_share: Optional[float] = None,
    min_support: Optional[float] = None,
    use_chi_square: bool = False,
) -> List[Finding]:
    """
    Score one segmentation key.

    Args:
        current: Label totals for the requested window
        previous: Label totals for the prior window
        segment_by: Segmentation key, used for labelling findings
        metric: Metric the totals were computed for
        min_effect_size: Minimum absolute share change (inclusive)
        min_share: A label is kept when either share reaches this
        min_support: Minimum grand total in each window
        use_chi_square: Also require the approximate chi-square test to pass

    Returns:
        Unranked findings for this key, in label order
    """
    cfg = config.anomaly.segment_shift
    min_effect = cfg.min_effect_size if min_effect_size is None else min_effect_size
    share_floor = cfg.min_share if min_share is None else min_share
    support_floor = cfg.min_support if min_support is None else min_support

    cur_map = to_label_map(coerce_rows(current, SegmentTotal))
    prev_map = to_label_map(coerce_rows(previous, SegmentTotal))
    c_total = sum(cur_map.values())
    p_total = sum(prev_map.values())

    if c_total < support_floor or p_total < support_floor:
        logger.debug(
            "Skipping %s: totals %s/%s below min_support %s",
            segment_by, c_total, p_total, support_floor,
        )
        return []

    observations: List[Observation] = []
    # current labels first, then labels that only existed before
    for label in list(cur_map) + [lbl for lbl in prev_map if lbl not in cur_map]:
        ci = cur_map.get(label, 0.0)
        pi = prev_map.get(label, 0.0)
        share = ci / c_total if c_total > 0 else 0.0
        previous_share = pi / p_total if p_total > 0 else 0.0
        if share < share_floor and previous_share < share_floor:
            continue
        observations.append(
            Observation(
                group=segment_by,
                subject=LabelShare(label, ci, pi, c_total, p_total),
                value=share,
                support=c_total + p_total,
                reference=previous_share,
            )
        )

    scorer = RobustDeviationScorer(
        scope=BaselineScope.PAIRED_WINDOW,
        direction=Direction.BOTH,
        gate=DeviationGate(min_effect=min_effect),
    )
    mapper = SeverityMapper(config.anomaly.severity)

    findings: List[Finding] = []
    for deviation in scorer.score(observations):
        p_value = None
        if use_chi_square:
            counts: LabelShare = deviation.observation.subject
            p_value = chi_square_p_value(
                counts.current,
                c_total - counts.current,
                counts.previous,
                p_total - counts.previous,
            )
            if p_value >= cfg.significance_level:
                continue
        findings.append(_finding(deviation, segment_by, metric, p_value, mapper))
    return findings


def _pairs(rows: List[SegmentTotal], limit: int) -> List[Dict[str, Any]]:
    return [{"label": row.label, "value": row.value} for row in rows[:limit]]


def detect_segment_shifts(
    provider: RowProvider, params: Union[SegmentShiftParams, Mapping[str, Any]]
) -> DetectionResult:
    """
    Detect label share shifts for one or more segmentation keys.

    Keys are fetched and scored sequentially, one current/previous fetch
    pair per key.

    Raises:
        TenantResolutionError: If no tenant id is given
        ParameterValidationError: If a parameter is invalid (before fetching)
    """
    params = parse_params(SegmentShiftParams, params)
    metric = params.metric.value
    prev = previous_window(params.date_from, params.date_to)

    findings: List[Finding] = []
    first_key_rows: Optional[Tuple[List[SegmentTotal], List[SegmentTotal]]] = None

    for key in params.segment_by:
        segment_by = key.value
        current_rows = coerce_rows(
            provider.fetch_segment_totals(
                params.tenant_id, metric, segment_by,
                params.date_from, params.date_to, params.normalize_labels,
            ),
            SegmentTotal,
        )
        previous_rows = coerce_rows(
            provider.fetch_segment_totals(
                params.tenant_id, metric, segment_by,
                prev["from"], prev["to"], params.normalize_labels,
            ),
            SegmentTotal,
        )
        if first_key_rows is None:
            first_key_rows = (current_rows, previous_rows)

        key_findings = score_segment_shift(
            current_rows,
            previous_rows,
            segment_by,
            metric=metric,
            min_effect_size=params.min_effect_size,
            min_share=params.min_share,
            min_support=params.min_support,
            use_chi_square=params.use_chi_square,
        )
        logger.debug("Segment key %s: %d finding(s)", segment_by, len(key_findings))
        findings.extend(key_findings)

    findings = rank(
        findings,
        key=lambda f: (f.effect_size, f.support_curr + f.support_prev),
    )
    logger.info(
        "Segment shift detection for tenant %s over %d key(s): %d finding(s)",
        params.tenant_id, len(params.segment_by), len(findings),
    )

    limit = config.anomaly.segment_shift.extras_limit
    current_rows, previous_rows = first_key_rows
    extras = {
        "segment_by": params.segment_by[0].value,
        "previous_window": prev,
        "current": _pairs(current_rows, limit),
        "previous": _pairs(previous_rows, limit),
    }
    return DetectionResult(findings=findings, summary=segment_summary(findings), extras=extras)
