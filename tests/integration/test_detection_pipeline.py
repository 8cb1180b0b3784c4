"""
Integration test for the full detection pipeline.

Tests end-to-end flow from pandas aggregate frames through the row provider
and the engine to ranked findings and summaries.
"""

import pytest

from webinsight import AnomalyEngine, FrameRowProvider
from webinsight.anomaly.schema import FindingKind


@pytest.mark.integration
class TestFullPipeline:
    """Test end-to-end pipeline from aggregate frames to findings."""

    @pytest.fixture
    def engine(self, frame_provider):
        return AnomalyEngine(provider=frame_provider)

    def test_timeseries(self, engine, base_params):
        result = engine.detect_timeseries({**base_params, "metric": "visits"})

        assert [f.bucket for f in result.findings] == ["2025-08-08"]
        assert result.summary.startswith("Detected 1 timeseries anomaly(ies). Top: spike in visits")

    def test_timeseries_other_tenant_is_flat(self, engine, base_params):
        result = engine.detect_timeseries({**base_params, "website_id": "site-2", "tenant_id": None, "metric": "visits"})

        assert result.findings == []
        assert len(result.extras["series"]) == 8

    def test_retention(self, engine, base_params):
        result = engine.detect_retention_dips({**base_params, "date_from": "2025-07-01"})

        assert [(f.cohort_start, f.period_number) for f in result.findings] == [("2025-08-25", 1)]
        assert result.extras["cohort_count"] == 5

    def test_segment_shift(self, engine, base_params):
        result = engine.detect_segment_shifts(
            {**base_params, "segment_by": ["country"], "use_chi_square": True}
        )

        assert [f.label for f in result.findings] == ["us", "fr"]
        assert all(f.kind == FindingKind.SEGMENT_SHIFT for f in result.findings)
        assert result.summary == "Detected 2 segment shift(s). Top: country=us 20pp change."

    def test_path_dropoffs_with_normalized_paths(self, engine, base_params):
        result = engine.detect_path_dropoffs(base_params)

        assert [f.path_sequence for f in result.findings] == [("/pricing",), ("/home", "/blog")]
        assert result.summary == "Detected 2 drop-off(s). Top: exit_rate at /pricing"

    def test_path_dropoffs_without_normalization(self, engine, base_params):
        # "/Pricing?plan=pro" stays a separate page with half the traffic
        result = engine.detect_path_dropoffs({**base_params, "normalize_paths": False})
        pages = {r["path"] for r in result.extras["exit_rates"]}

        assert "/Pricing?plan=pro" in pages
        assert "/pricing" in pages

    def test_results_are_deterministic(self, engine, base_params):
        first = engine.detect_path_dropoffs(base_params)
        second = engine.detect_path_dropoffs(base_params)

        assert first == second

    def test_empty_provider_gives_empty_summaries(self, base_params):
        engine = AnomalyEngine(provider=FrameRowProvider())

        assert engine.detect_timeseries({**base_params, "metric": "bounce_rate"}).findings == []
        assert engine.detect_retention_dips(base_params).findings == []
        assert engine.detect_segment_shifts({**base_params, "segment_by": "device"}).findings == []
        assert engine.detect_path_dropoffs(base_params).findings == []
