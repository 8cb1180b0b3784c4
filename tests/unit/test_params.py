"""
Unit tests for detector parameter validation.
"""

import pytest

from webinsight.anomaly.params import (
    PathDropoffParams,
    RetentionParams,
    SegmentKey,
    SegmentShiftParams,
    TimeseriesMetric,
    TimeseriesParams,
    parse_params,
)
from webinsight.anomaly.schema import Sensitivity
from webinsight.core.exceptions import (
    AnomalyDetectionError,
    ParameterValidationError,
    TenantResolutionError,
)


class TestTenantResolution:
    def test_missing_tenant(self):
        with pytest.raises(TenantResolutionError):
            parse_params(RetentionParams, {"date_from": "2025-08-01", "date_to": "2025-08-31"})

    def test_blank_tenant(self):
        with pytest.raises(TenantResolutionError):
            parse_params(
                RetentionParams,
                {"tenant_id": "  ", "date_from": "2025-08-01", "date_to": "2025-08-31"},
            )

    def test_tenant_checked_before_other_fields(self):
        with pytest.raises(TenantResolutionError):
            parse_params(TimeseriesParams, {"metric": "nope", "date_from": "bad"})

    @pytest.mark.parametrize("key", ["tenant_id", "website_id", "websiteId"])
    def test_tenant_aliases(self, key):
        params = parse_params(
            RetentionParams, {key: "site-1", "date_from": "2025-08-01", "date_to": "2025-08-31"}
        )
        assert params.tenant_id == "site-1"

    def test_errors_share_a_base_class(self):
        assert issubclass(TenantResolutionError, AnomalyDetectionError)
        assert issubclass(ParameterValidationError, AnomalyDetectionError)


class TestFieldValidation:
    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"date_from": "2025-13-01"}, "date_from"),
            ({"date_from": "08/01/2025"}, "date_from"),
            ({"date_to": "2025-02-30"}, "date_to"),
            ({"date_from": "2025-09-01"}, "date_to"),
            ({"metric": "clicks"}, "metric"),
            ({"interval": "minute"}, "interval"),
            ({"sensitivity": "extreme"}, "sensitivity"),
        ],
    )
    def test_timeseries_field_named(self, base_params, overrides, field):
        raw = {**base_params, "metric": "visits", **overrides}
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(TimeseriesParams, raw)
        assert exc_info.value.field == field
        assert field in str(exc_info.value)

    def test_missing_required_metric(self, base_params):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(TimeseriesParams, base_params)
        assert exc_info.value.field == "metric"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"max_k": 0}, "max_k"),
            ({"max_k": 53}, "max_k"),
            ({"min_cohort_size": 0}, "min_cohort_size"),
            ({"min_effect_size": 1.5}, "min_effect_size"),
            ({"period": "year"}, "period"),
        ],
    )
    def test_retention_out_of_range_is_rejected_not_clamped(self, base_params, overrides, field):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(RetentionParams, {**base_params, **overrides})
        assert exc_info.value.field == field

    def test_path_min_support_must_be_positive(self, base_params):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(PathDropoffParams, {**base_params, "min_support": 0})
        assert exc_info.value.field == "min_support"

    def test_segment_by_cannot_be_empty(self, base_params):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(SegmentShiftParams, {**base_params, "segment_by": []})
        assert exc_info.value.field == "segment_by"

    def test_segment_by_unknown_key(self, base_params):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(SegmentShiftParams, {**base_params, "segment_by": ["country", "planet"]})
        assert exc_info.value.field.startswith("segment_by")

    def test_non_mapping_rejected(self):
        with pytest.raises(ParameterValidationError) as exc_info:
            parse_params(RetentionParams, ["site-1"])
        assert exc_info.value.field == "params"


class TestDefaults:
    def test_retention_defaults(self, base_params):
        params = parse_params(RetentionParams, base_params)

        assert params.period.value == "week"
        assert params.max_k == 12
        assert params.min_cohort_size == 50
        assert params.min_effect_size == 0.15
        assert params.sensitivity == Sensitivity.MEDIUM
        assert params.return_matrix is True

    def test_segment_defaults_and_single_key(self, base_params):
        params = parse_params(SegmentShiftParams, {**base_params, "segment_by": "device"})

        assert params.segment_by == [SegmentKey.DEVICE]
        assert params.metric.value == "visits"
        assert params.min_effect_size == 0.01
        assert params.min_share == 0.05
        assert params.min_support == 100
        assert params.use_chi_square is False
        assert params.normalize_labels is True

    def test_path_defaults(self, base_params):
        params = parse_params(PathDropoffParams, base_params)

        assert params.min_support == 100
        assert params.min_effect_size == 0.15
        assert params.include_step_dropoffs is True
        assert params.normalize_paths is True

    def test_unknown_keys_ignored(self, base_params):
        params = parse_params(
            TimeseriesParams, {**base_params, "metric": "pageviews", "colour": "blue"}
        )
        assert params.metric == TimeseriesMetric.PAGEVIEWS
        assert params.interval.value == "day"

    def test_model_instance_passes_through(self, base_params):
        params = RetentionParams(**base_params)
        assert parse_params(RetentionParams, params) is params

    def test_single_day_window(self):
        params = parse_params(
            RetentionParams,
            {"tenant_id": "site-1", "date_from": "2025-08-01", "date_to": "2025-08-01"},
        )
        assert params.date_from == params.date_to
