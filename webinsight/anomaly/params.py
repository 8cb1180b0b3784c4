"""
Validated parameter objects for the four detectors.

Every entry point funnels its input through parse_params(), which rejects bad
input before any row is fetched:
- a missing or blank tenant id raises TenantResolutionError
- anything else invalid raises ParameterValidationError naming the field

Values are never clamped into range. Optional knobs default to the
configuration in webinsight.core.config.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping, Type, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from webinsight.core.config import config
from webinsight.core.exceptions import ParameterValidationError, TenantResolutionError
from webinsight.data.windows import parse_day

from .schema import Sensitivity

TENANT_KEYS = ("tenant_id", "website_id", "websiteId")

_cfg = config.anomaly


class TimeseriesMetric(str, Enum):
    VISITS = "visits"
    PAGEVIEWS = "pageviews"
    BOUNCE_RATE = "bounce_rate"
    VISIT_DURATION = "visit_duration"


class Interval(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"


class CohortPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class SegmentKey(str, Enum):
    COUNTRY = "country"
    DEVICE = "device"
    BROWSER = "browser"
    REFERRER_DOMAIN = "referrer_domain"
    UTM_SOURCE = "utm_source"
    PATH = "path"


class SegmentMetric(str, Enum):
    VISITS = "visits"
    PAGEVIEWS = "pageviews"
    BOUNCE_RATE = "bounce_rate"


class DetectionParams(BaseModel):
    """
    Fields shared by every detector.

    date_from/date_to: inclusive YYYY-MM-DD range, date_from <= date_to.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    tenant_id: str = Field(..., validation_alias=AliasChoices(*TENANT_KEYS))
    date_from: str
    date_to: str

    @field_validator("date_from", "date_to")
    @classmethod
    def _real_date(cls, v: str) -> str:
        parse_day(v)
        return v

    @field_validator("date_to")
    @classmethod
    def _not_before_start(cls, v: str, info: ValidationInfo) -> str:
        start = info.data.get("date_from")
        if start is not None and parse_day(v) < parse_day(start):
            raise ValueError(f"date_to {v} is before date_from {start}")
        return v


class TimeseriesParams(DetectionParams):
    metric: TimeseriesMetric
    interval: Interval = Field(default_factory=lambda: Interval(_cfg.timeseries.interval))
    sensitivity: Sensitivity = Field(default_factory=lambda: Sensitivity(_cfg.default_sensitivity))


class RetentionParams(DetectionParams):
    """
    Cohort retention parameters.

    return_matrix: True by default, so extras always carry the full
    cohort x k retention matrix. Passing False drops the matrix from extras
    and departs from that default contract; findings and the other extras
    are unchanged.
    """

    period: CohortPeriod = Field(default_factory=lambda: CohortPeriod(_cfg.retention.period))
    max_k: int = Field(default_factory=lambda: _cfg.retention.max_k, ge=1, le=52)
    min_cohort_size: int = Field(default_factory=lambda: _cfg.retention.min_cohort_size, ge=1)
    min_effect_size: float = Field(
        default_factory=lambda: _cfg.retention.min_effect_size, ge=0.0, le=1.0
    )
    sensitivity: Sensitivity = Field(default_factory=lambda: Sensitivity(_cfg.default_sensitivity))
    return_matrix: bool = True


class SegmentShiftParams(DetectionParams):
    segment_by: List[SegmentKey] = Field(..., min_length=1)
    metric: SegmentMetric = Field(default_factory=lambda: SegmentMetric(_cfg.segment_shift.metric))
    min_effect_size: float = Field(
        default_factory=lambda: _cfg.segment_shift.min_effect_size, ge=0.0, le=1.0
    )
    min_share: float = Field(default_factory=lambda: _cfg.segment_shift.min_share, ge=0.0, le=1.0)
    min_support: int = Field(default_factory=lambda: _cfg.segment_shift.min_support, ge=1)
    use_chi_square: bool = False
    normalize_labels: bool = True

    @field_validator("segment_by", mode="before")
    @classmethod
    def _single_key_to_list(cls, v: Any) -> Any:
        if isinstance(v, (str, SegmentKey)):
            return [v]
        return v


class PathDropoffParams(DetectionParams):
    min_support: int = Field(default_factory=lambda: _cfg.path_dropoff.min_support, gt=0)
    min_effect_size: float = Field(
        default_factory=lambda: _cfg.path_dropoff.min_effect_size, ge=0.0, le=1.0
    )
    sensitivity: Sensitivity = Field(default_factory=lambda: Sensitivity(_cfg.default_sensitivity))
    include_step_dropoffs: bool = True
    normalize_paths: bool = True


ParamsT = TypeVar("ParamsT", bound=DetectionParams)


def _require_tenant(value: Any) -> str:
    if value is None or not str(value).strip():
        raise TenantResolutionError("A tenant id is required; no default tenant is assumed")
    return str(value)


def parse_params(model: Type[ParamsT], params: Union[ParamsT, Mapping[str, Any]]) -> ParamsT:
    """
    Validate raw detector parameters.

    Args:
        model: Parameter model of the detector
        params: A model instance or a mapping of raw values

    Returns:
        Validated parameter object

    Raises:
        TenantResolutionError: If no tenant id is supplied
        ParameterValidationError: On the first invalid field
    """
    if isinstance(params, model):
        _require_tenant(params.tenant_id)
        return params
    if isinstance(params, BaseModel):
        params = params.model_dump()
    if not isinstance(params, Mapping):
        raise ParameterValidationError("params", "expected a mapping of detector parameters")

    tenant = next((params[key] for key in TENANT_KEYS if params.get(key) is not None), None)
    data = {key: value for key, value in params.items() if key not in TENANT_KEYS}
    data["tenant_id"] = _require_tenant(tenant)

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "params"
        raise ParameterValidationError(field, error["msg"]) from exc
