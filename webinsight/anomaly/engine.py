"""
Anomaly detection engine.

Binds a RowProvider to the four detectors so callers (tool handlers, chat
backends, notebooks) pass only a parameter mapping per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Union

from webinsight.data.provider import RowProvider

from .params import (
    DetectionParams,
    PathDropoffParams,
    RetentionParams,
    SegmentShiftParams,
    TimeseriesParams,
)
from .paths import detect_path_dropoffs
from .retention import detect_retention_dips
from .schema import DetectionResult, FindingKind
from .segments import detect_segment_shifts
from .timeseries import detect_timeseries_anomalies

logger = logging.getLogger(__name__)

Params = Union[DetectionParams, Mapping[str, Any]]


@dataclass
class AnomalyEngine:
    """
    Stateless dispatcher over the detectors.

    Notes:
    - Every call fetches fresh rows; nothing is cached between calls.
    - Parameter and tenant errors are raised before the provider is touched.
    - Provider errors propagate unchanged.
    """

    provider: RowProvider

    def __post_init__(self) -> None:
        self._detectors: Dict[FindingKind, Callable[[RowProvider, Any], DetectionResult]] = {
            FindingKind.TIMESERIES: detect_timeseries_anomalies,
            FindingKind.RETENTION_DIP: detect_retention_dips,
            FindingKind.SEGMENT_SHIFT: detect_segment_shifts,
            FindingKind.PATH_DROPOFF: detect_path_dropoffs,
        }

    def detect(self, kind: Union[FindingKind, str], params: Params) -> DetectionResult:
        """Run the detector registered for `kind` ("timeseries", "retention_dip", ...)."""
        detector = self._detectors[FindingKind(kind)]
        logger.debug("Dispatching %s detection", FindingKind(kind).value)
        return detector(self.provider, params)

    def detect_timeseries(self, params: Union[TimeseriesParams, Mapping[str, Any]]) -> DetectionResult:
        return self.detect(FindingKind.TIMESERIES, params)

    def detect_retention_dips(self, params: Union[RetentionParams, Mapping[str, Any]]) -> DetectionResult:
        return self.detect(FindingKind.RETENTION_DIP, params)

    def detect_segment_shifts(self, params: Union[SegmentShiftParams, Mapping[str, Any]]) -> DetectionResult:
        return self.detect(FindingKind.SEGMENT_SHIFT, params)

    def detect_path_dropoffs(self, params: Union[PathDropoffParams, Mapping[str, Any]]) -> DetectionResult:
        return self.detect(FindingKind.PATH_DROPOFF, params)
