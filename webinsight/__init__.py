"""
webinsight: statistical anomaly detection over web-analytics aggregates.

Typical use:

    from webinsight import AnomalyEngine, FrameRowProvider

    engine = AnomalyEngine(provider=FrameRowProvider(series=frame))
    result = engine.detect_timeseries(
        {"tenant_id": "site-1", "metric": "visits",
         "date_from": "2025-08-01", "date_to": "2025-08-31"}
    )
    print(result.summary)
"""

from webinsight.anomaly import AnomalyEngine, DetectionResult, Finding
from webinsight.data import FrameRowProvider, RowProvider

__version__ = "0.1.0"

__all__ = [
	"AnomalyEngine",
	"DetectionResult",
	"Finding",
	"FrameRowProvider",
	"RowProvider",
]
