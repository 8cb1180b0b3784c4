"""
Unit tests for the timeseries anomaly detector.
"""

from datetime import date, timedelta

import pytest

from webinsight.anomaly.explain import NO_DATA_MESSAGE, NO_TIMESERIES_ANOMALIES
from webinsight.anomaly.schema import AnomalySeverity, FindingKind, Sensitivity
from webinsight.anomaly.timeseries import detect_timeseries_anomalies, score_timeseries
from webinsight.data.provider import FrameRowProvider


def _series(values):
    start = date(2025, 8, 1)
    return [
        {"bucket": (start + timedelta(days=i)).isoformat(), "value": v}
        for i, v in enumerate(values)
    ]


def test_spike_detected(spike_series):
    findings = score_timeseries(spike_series, metric="visits")

    assert len(findings) == 1
    finding = findings[0]
    assert finding.kind == FindingKind.TIMESERIES
    assert finding.direction == "spike"
    assert finding.bucket == "2025-08-08"
    assert finding.value == 40.0
    assert finding.expected == 11.0
    assert finding.z == pytest.approx(29 / 1.4826)
    assert finding.effect_size == 29.0
    assert finding.rate_change == pytest.approx(29 / 11)
    assert finding.severity == AnomalySeverity.HIGH
    assert finding.support == 7


def test_dip_detected():
    findings = score_timeseries(_series([10, 12, 11, 13, 10, 12, 11, 2]))

    assert len(findings) == 1
    assert findings[0].direction == "dip"
    assert findings[0].z < 0


def test_fewer_than_eight_points_gives_nothing():
    assert score_timeseries(_series([10, 12, 11, 13, 10, 12, 500])) == []
    assert score_timeseries([]) == []


def test_flat_baseline_never_flags(flat_series):
    # sigma of a flat window is zero, so z is zero however far the jump
    assert score_timeseries(flat_series) == []


def test_sensitivity_changes_threshold():
    # z = 3.3 / 1.4826 ~= 2.23
    series = _series([10, 12, 11, 13, 10, 12, 11, 14.3])

    assert score_timeseries(series, sensitivity=Sensitivity.MEDIUM) == []
    assert len(score_timeseries(series, sensitivity=Sensitivity.HIGH)) == 1


def test_ranking_by_absolute_z():
    values = [10, 12, 11, 13, 10, 12, 11, 16, 11, 0]
    findings = score_timeseries(_series(values), sensitivity=Sensitivity.HIGH)

    assert [f.bucket for f in findings] == ["2025-08-10", "2025-08-08"]
    assert abs(findings[0].z) > abs(findings[1].z)


def test_window_size_override():
    findings = score_timeseries(_series([10, 12, 11, 40]), window_size=3)
    assert len(findings) == 1


class TestDetectTimeseries:
    def test_result_and_extras(self, spike_series, base_params):
        provider = FrameRowProvider.from_records(series=spike_series)
        result = detect_timeseries_anomalies(provider, {**base_params, "metric": "visits"})

        assert result.summary == (
            "Detected 1 timeseries anomaly(ies). Top: spike in visits at 2025-08-08 "
            "(40 vs 11 expected)."
        )
        assert result.extras["metric"] == "visits"
        assert result.extras["interval"] == "day"
        assert result.extras["threshold"] == 2.5
        assert len(result.extras["series"]) == 8
        assert "message" not in result.extras

    def test_empty_series(self, base_params):
        result = detect_timeseries_anomalies(
            FrameRowProvider(), {**base_params, "metric": "visits"}
        )

        assert result.findings == []
        assert result.summary == NO_TIMESERIES_ANOMALIES
        assert result.extras["message"] == NO_DATA_MESSAGE
        assert result.extras["series"] == []
