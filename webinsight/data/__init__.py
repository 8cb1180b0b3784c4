"""
Data module: row schemas, the row provider contract, and window helpers.

Rows flow into the detectors like this:

    Aggregation queries (external)
        ↓
    RowProvider (see provider.py)
        ↓
    coerce_rows (schema.py) → MetricSample / CohortRow / SegmentTotal / TransitionEdge
        ↓
    Detectors (webinsight.anomaly)
"""

from webinsight.data.normalizers import normalize_label, normalize_path
from webinsight.data.provider import FrameRowProvider, RowProvider
from webinsight.data.schema import (
    UNKNOWN_LABEL,
    CohortMatrixEntry,
    CohortRow,
    MetricSample,
    SegmentTotal,
    TransitionEdge,
    coerce_rows,
)
from webinsight.data.windows import day_count, parse_day, previous_window

__all__ = [
    # Schema
    "MetricSample",
    "CohortRow",
    "CohortMatrixEntry",
    "SegmentTotal",
    "TransitionEdge",
    "UNKNOWN_LABEL",
    "coerce_rows",

    # Providers
    "RowProvider",
    "FrameRowProvider",

    # Windows & normalization
    "parse_day",
    "day_count",
    "previous_window",
    "normalize_label",
    "normalize_path",
]
