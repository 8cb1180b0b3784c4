"""
Row schemas supplied by the aggregation row provider.

The provider runs the grouping queries; these models only coerce what comes
back into a predictable shape before any statistics run.

Design rationale:
- Counts arrive as ints, Decimals, strings or big integers depending on the
  storage driver; everything is coerced to int/float here.
- Missing or non-finite metric values become 0.0, matching how the
  aggregation layer treats empty buckets.
- Rows are immutable once validated.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from webinsight.core.exceptions import DataValidationError

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"


def _finite_or_zero(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric metric value %r coerced to 0.0", value)
        return 0.0
    if not math.isfinite(number):
        logger.warning("Non-finite metric value %r coerced to 0.0", value)
        return 0.0
    return number


def _int_like(value: Any) -> Any:
    if value is None:
        return 0
    if hasattr(value, "item"):
        # numpy scalars coming out of DataFrames
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _as_label(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


class MetricSample(BaseModel):
    """
    One bucket of a scalar metric series.

    Attributes:
        bucket: Aligned time label (ISO date/datetime string)
        value: Metric value for the bucket
    """

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(..., min_length=1)
    value: float = 0.0

    @field_validator("bucket", mode="before")
    @classmethod
    def _bucket_to_str(cls, v: Any) -> Any:
        if v is None:
            return v
        return _as_label(v)

    @field_validator("value", mode="before")
    @classmethod
    def _value_finite(cls, v: Any) -> float:
        return _finite_or_zero(v)


class CohortRow(BaseModel):
    """
    Active users of a cohort `k` periods after its first activity.

    The k=0 row carries the cohort size.
    """

    model_config = ConfigDict(frozen=True)

    cohort_start: str = Field(..., min_length=1)
    k: int = Field(..., ge=0)
    active_users: int = Field(0, ge=0)

    @field_validator("cohort_start", mode="before")
    @classmethod
    def _cohort_to_str(cls, v: Any) -> Any:
        if v is None:
            return v
        return _as_label(v)

    @field_validator("k", "active_users", mode="before")
    @classmethod
    def _coerce_counts(cls, v: Any) -> Any:
        return _int_like(v)


class CohortMatrixEntry(BaseModel):
    """Derived retention cell: one cohort at one offset."""

    model_config = ConfigDict(frozen=True)

    cohort_start: str
    k: int
    active_users: int
    cohort_size: int
    rate: float = Field(..., ge=0.0)


class SegmentTotal(BaseModel):
    """
    Aggregated count for one category label within a window.

    Empty labels are reported as "unknown".
    """

    model_config = ConfigDict(frozen=True)

    label: str = UNKNOWN_LABEL
    value: float = 0.0

    @field_validator("label", mode="before")
    @classmethod
    def _label_or_unknown(cls, v: Any) -> str:
        if v is None:
            return UNKNOWN_LABEL
        label = _as_label(v)
        return label if label else UNKNOWN_LABEL

    @field_validator("value", mode="before")
    @classmethod
    def _value_finite(cls, v: Any) -> float:
        return _finite_or_zero(v)


class TransitionEdge(BaseModel):
    """
    Directed edge between consecutive pageviews within a session.

    from_path None marks the session entry, to_path None marks the exit.
    """

    model_config = ConfigDict(frozen=True)

    from_path: Optional[str] = None
    to_path: Optional[str] = None
    transitions: int = Field(0, ge=0)

    @field_validator("transitions", mode="before")
    @classmethod
    def _coerce_counts(cls, v: Any) -> Any:
        return _int_like(v)


RowT = TypeVar("RowT", bound=BaseModel)


def coerce_rows(rows: Optional[Iterable[Any]], model: Type[RowT]) -> List[RowT]:
    """
    Coerce provider rows into `model` instances.

    Args:
        rows: Mappings or model instances as returned by the provider
        model: Target row schema

    Returns:
        List of validated rows, in provider order

    Raises:
        DataValidationError: If a row cannot be coerced
    """
    if rows is None:
        return []

    coerced: List[RowT] = []
    for index, row in enumerate(rows):
        if isinstance(row, model):
            coerced.append(row)
            continue
        data = row.model_dump() if isinstance(row, BaseModel) else row
        try:
            coerced.append(model.model_validate(data))
        except ValidationError as exc:
            raise DataValidationError(
                f"Row {index} is not a valid {model.__name__}: {exc.errors()[0]['msg']}"
            ) from exc
    return coerced
