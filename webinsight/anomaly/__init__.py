"""
Anomaly module: robust-statistics detectors for web-analytics aggregates.

Implements the shared statistics, baselines, scoring and the four detectors
(timeseries, retention dips, segment shifts, path drop-offs).
"""

from .baselines import BaselineScope, Observation, RobustBaseline, RollingBaselineEstimator
from .engine import AnomalyEngine
from .params import (
	DetectionParams,
	PathDropoffParams,
	RetentionParams,
	SegmentShiftParams,
	TimeseriesParams,
	parse_params,
)
from .paths import detect_path_dropoffs, score_path_dropoffs
from .retention import detect_retention_dips, score_retention
from .schema import AnomalySeverity, DetectionResult, Finding, FindingKind, Sensitivity
from .scoring import DeviationGate, Direction, RobustDeviationScorer, SeverityMapper, rank
from .segments import detect_segment_shifts, score_segment_shift
from .timeseries import detect_timeseries_anomalies, score_timeseries

__all__ = [
	"AnomalyEngine",
	"AnomalySeverity",
	"DetectionResult",
	"Finding",
	"FindingKind",
	"Sensitivity",
	"DetectionParams",
	"TimeseriesParams",
	"RetentionParams",
	"SegmentShiftParams",
	"PathDropoffParams",
	"parse_params",
	"BaselineScope",
	"Observation",
	"RobustBaseline",
	"RollingBaselineEstimator",
	"Direction",
	"DeviationGate",
	"RobustDeviationScorer",
	"SeverityMapper",
	"rank",
	"detect_timeseries_anomalies",
	"detect_retention_dips",
	"detect_segment_shifts",
	"detect_path_dropoffs",
	"score_timeseries",
	"score_retention",
	"score_segment_shift",
	"score_path_dropoffs",
]
