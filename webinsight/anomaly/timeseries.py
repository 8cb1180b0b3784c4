"""
Timeseries anomaly detection.

Flags spikes and dips in a scalar metric series against a trailing rolling
baseline: each bucket is judged against the median and robust sigma of the
`window_size` buckets immediately before it. The metric itself is opaque.
"""

from __future__ import annotations

import logging
from math import fabs
from typing import Any, Iterable, List, Mapping, Optional, Union

from webinsight.core.config import config
from webinsight.data.provider import RowProvider
from webinsight.data.schema import MetricSample, coerce_rows

from .baselines import BaselineScope, Observation
from .explain import (
    NO_DATA_MESSAGE,
    timeseries_checks,
    timeseries_explanation,
    timeseries_summary,
)
from .params import TimeseriesParams, parse_params
from .schema import DetectionResult, Finding, FindingKind, Sensitivity
from .scoring import (
    Deviation,
    DeviationGate,
    Direction,
    RobustDeviationScorer,
    SeverityMapper,
    rank,
    threshold_for,
)

logger = logging.getLogger(__name__)

RATE_CHANGE_EPSILON = 1e-6


def _finding(deviation: Deviation, metric: str, mapper: SeverityMapper) -> Finding:
    bucket = deviation.observation.subject
    value = deviation.value
    expected = deviation.expected
    direction = "spike" if value > expected else "dip"
    gap = fabs(value - expected)
    return Finding(
        kind=FindingKind.TIMESERIES,
        subject=bucket,
        metric=metric,
        value=value,
        expected=expected,
        effect_size=gap,
        z=deviation.z,
        support=deviation.baseline.count,
        severity=mapper.severity(deviation.z, None),
        explanation=timeseries_explanation(metric, bucket, direction, value, expected, deviation.z),
        recommended_checks=timeseries_checks(direction),
        bucket=bucket,
        direction=direction,
        rate_change=gap / max(fabs(expected), RATE_CHANGE_EPSILON),
    )


def score_timeseries(
    samples: Iterable[Union[MetricSample, Mapping[str, Any]]],
    sensitivity: Sensitivity = Sensitivity.MEDIUM,
    metric: str = "value",
    window_size: Optional[int] = None,
) -> List[Finding]:
    """
    Score an ordered series.

    Args:
        samples: Time-ascending samples, one per bucket
        sensitivity: low/medium/high, mapped to a z threshold
        metric: Name reported on the findings
        window_size: Trailing baseline length (defaults to config)

    Returns:
        Ranked findings; empty when the series is shorter than window_size + 1

    Notes:
        - A flat baseline window has zero sigma, so the next bucket is never
          flagged however far it jumps.
    """
    window = window_size or config.anomaly.timeseries.window_size
    series = coerce_rows(samples, MetricSample)
    if len(series) < window + 1:
        return []

    observations = [
        Observation(group=metric, subject=s.bucket, value=s.value, support=1) for s in series
    ]
    scorer = RobustDeviationScorer(
        scope=BaselineScope.ROLLING,
        direction=Direction.BOTH,
        gate=DeviationGate(z_threshold=threshold_for(sensitivity)),
        window_size=window,
    )
    mapper = SeverityMapper(config.anomaly.severity)
    findings = [_finding(d, metric, mapper) for d in scorer.score(observations)]

    # strongest first; equal scores stay chronological
    return rank(findings, key=lambda f: (fabs(f.z), f.effect_size))


def detect_timeseries_anomalies(
    provider: RowProvider, params: Union[TimeseriesParams, Mapping[str, Any]]
) -> DetectionResult:
    """
    Detect spikes/dips in a tenant's metric series.

    Raises:
        TenantResolutionError: If no tenant id is given
        ParameterValidationError: If a parameter is invalid (before fetching)
    """
    params = parse_params(TimeseriesParams, params)
    metric = params.metric.value

    rows = provider.fetch_metric_series(
        params.tenant_id, metric, params.interval.value, params.date_from, params.date_to
    )
    series = coerce_rows(rows, MetricSample)
    logger.debug("Fetched %d %s buckets for tenant %s", len(series), metric, params.tenant_id)

    findings = score_timeseries(series, params.sensitivity, metric)
    logger.info(
        "Timeseries detection for tenant %s (%s): %d finding(s)",
        params.tenant_id, metric, len(findings),
    )

    extras = {
        "metric": metric,
        "interval": params.interval.value,
        "threshold": threshold_for(params.sensitivity),
        "series": [s.model_dump() for s in series],
    }
    if not series:
        extras["message"] = NO_DATA_MESSAGE

    return DetectionResult(findings=findings, summary=timeseries_summary(findings), extras=extras)
