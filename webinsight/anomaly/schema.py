"""
Schema definitions for detector output.

All findings are deterministic and explainable. Each finding references its
observed value, the baseline it was judged against, and the computed
deviation. Findings are immutable and live only inside one detection call.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FindingKind(str, Enum):
    """Which detector produced a finding."""

    TIMESERIES = "timeseries"
    RETENTION_DIP = "retention_dip"
    SEGMENT_SHIFT = "segment_shift"
    PATH_DROPOFF = "path_dropoff"


class Sensitivity(str, Enum):
    """Detection sensitivity; higher sensitivity means a lower z threshold."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalySeverity(str, Enum):
    """Severity levels for findings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Finding(BaseModel):
    """
    A single significant deviation.

    Common fields:
    - kind: producing detector
    - subject: human-readable handle (bucket, "cohort@k", "key=label", "A → B")
    - metric: what was measured (visits, retention, exit_rate, ...)
    - value / expected: observed value and baseline center
    - effect_size: absolute gap in the metric's own units (rates in [0, 1])
    - z: robust z-score, None where the comparison has no spread
    - p_value: approximate chi-square p-value (segment shifts with the test on)
    - support: sample count behind the value
    - severity: low/medium/high
    - explanation / recommended_checks: presentation text

    The remaining optional fields are only set by the detector they belong to.
    """

    model_config = ConfigDict(frozen=True)

    kind: FindingKind
    subject: str
    metric: str
    value: float
    expected: float
    effect_size: float = Field(ge=0.0)
    z: Optional[float] = None
    p_value: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    support: float = Field(ge=0.0)
    severity: AnomalySeverity
    explanation: str
    recommended_checks: Tuple[str, ...] = ()

    # timeseries
    bucket: Optional[str] = None
    direction: Optional[str] = None
    rate_change: Optional[float] = None

    # retention_dip
    cohort_start: Optional[str] = None
    period_number: Optional[int] = None

    # segment_shift
    segment_by: Optional[str] = None
    label: Optional[str] = None
    support_curr: Optional[float] = None
    support_prev: Optional[float] = None

    # path_dropoff
    path_sequence: Optional[Tuple[str, ...]] = None


class DetectionResult(BaseModel):
    """
    Response of one detector call.

    Fields:
    - findings: ranked, most severe first
    - summary: exactly one sentence, suitable for embedding in replies
    - extras: detector-specific supporting data
    """

    findings: List[Finding] = Field(default_factory=list)
    summary: str
    extras: Optional[Dict[str, Any]] = None
