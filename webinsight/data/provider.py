"""
Aggregation row provider contract.

Detectors never talk to storage. They ask a RowProvider for rows that are
already grouped and filtered by tenant and date range, and trust that grouping.

Design:
- One narrow, read-only method per detector
- Returned rows may be mappings or row models (see webinsight.data.schema)
- Fetch errors propagate unchanged; retries belong to the provider
- FrameRowProvider is a reference implementation over pandas DataFrames,
  useful for exported aggregates and tests
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from webinsight.data.normalizers import normalize_label, normalize_path
from webinsight.data.windows import parse_day

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


class RowProvider(ABC):
    """
    Abstract base class for aggregation row providers.

    Every method receives the tenant explicitly; providers must not fall back
    to a default tenant.
    """

    @abstractmethod
    def fetch_metric_series(
        self,
        tenant_id: str,
        metric: str,
        interval: str,
        date_from: str,
        date_to: str,
    ) -> Iterable[Row]:
        """
        Return `{bucket, value}` rows ordered by bucket ascending.
        """
        pass

    @abstractmethod
    def fetch_cohort_rows(
        self,
        tenant_id: str,
        period: str,
        date_from: str,
        date_to: str,
        max_k: int,
    ) -> Iterable[Row]:
        """
        Return `{cohort_start, k, active_users}` rows for k in 0..max_k.

        The k=0 row's active_users is the cohort size.
        """
        pass

    @abstractmethod
    def fetch_segment_totals(
        self,
        tenant_id: str,
        metric: str,
        segment_key: str,
        date_from: str,
        date_to: str,
        normalize_labels: bool,
    ) -> Iterable[Row]:
        """
        Return `{label, value}` rows, one per label, largest first.
        """
        pass

    @abstractmethod
    def fetch_transitions(
        self,
        tenant_id: str,
        date_from: str,
        date_to: str,
        min_support: int,
        normalize_paths: bool,
    ) -> Iterable[Row]:
        """
        Return `{from_path, to_path, transitions}` rows.

        from_path None is the session entry, to_path None the session exit.
        """
        pass


def _empty(columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame({name: [] for name in columns})


def _records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    # NaN/NaT -> None so entry/exit markers survive the round trip
    cleaned = frame.astype(object).where(frame.notna(), None)
    return cleaned.to_dict(orient="records")


class FrameRowProvider(RowProvider):
    """
    Row provider backed by pandas DataFrames.

    Expected columns (tenant_id and the date/scope columns are optional; when
    absent the frame is treated as belonging to every tenant/window):

    - series:      tenant_id, metric, interval, bucket, value
    - cohorts:     tenant_id, period, cohort_start, k, active_users
    - segments:    tenant_id, metric, segment_key, date, label, value
    - transitions: tenant_id, date, from_path, to_path, transitions
    """

    def __init__(
        self,
        series: Optional[pd.DataFrame] = None,
        cohorts: Optional[pd.DataFrame] = None,
        segments: Optional[pd.DataFrame] = None,
        transitions: Optional[pd.DataFrame] = None,
    ):
        self.series = series if series is not None else _empty(["bucket", "value"])
        self.cohorts = cohorts if cohorts is not None else _empty(["cohort_start", "k", "active_users"])
        self.segments = segments if segments is not None else _empty(["label", "value"])
        self.transitions = (
            transitions if transitions is not None else _empty(["from_path", "to_path", "transitions"])
        )

    @classmethod
    def from_records(
        cls,
        series: Optional[Iterable[Row]] = None,
        cohorts: Optional[Iterable[Row]] = None,
        segments: Optional[Iterable[Row]] = None,
        transitions: Optional[Iterable[Row]] = None,
    ) -> "FrameRowProvider":
        """Build a provider from plain row dictionaries."""

        def frame(rows: Optional[Iterable[Row]]) -> Optional[pd.DataFrame]:
            return pd.DataFrame(list(rows)) if rows is not None else None

        return cls(
            series=frame(series),
            cohorts=frame(cohorts),
            segments=frame(segments),
            transitions=frame(transitions),
        )

    def fetch_metric_series(self, tenant_id, metric, interval, date_from, date_to):
        frame = self._scoped(self.series, tenant_id, metric=metric, interval=interval)
        frame = self._within(frame, "bucket", date_from, date_to)
        frame = frame.sort_values("bucket", kind="mergesort")
        logger.debug("Series rows for %s/%s: %d", tenant_id, metric, len(frame))
        return _records(frame[["bucket", "value"]])

    def fetch_cohort_rows(self, tenant_id, period, date_from, date_to, max_k):
        frame = self._scoped(self.cohorts, tenant_id, period=period)
        frame = self._within(frame, "cohort_start", date_from, date_to)
        frame = frame[(frame["k"] >= 0) & (frame["k"] <= max_k)]
        grouped = (
            frame.groupby(["cohort_start", "k"], as_index=False, sort=True)["active_users"]
            .sum()
        )
        logger.debug("Cohort rows for %s/%s: %d", tenant_id, period, len(grouped))
        return _records(grouped)

    def fetch_segment_totals(
        self, tenant_id, metric, segment_key, date_from, date_to, normalize_labels
    ):
        frame = self._scoped(self.segments, tenant_id, metric=metric, segment_key=segment_key)
        frame = self._within(frame, "date", date_from, date_to).copy()
        if normalize_labels:
            frame["label"] = frame["label"].map(
                lambda v: normalize_label(v) if isinstance(v, str) else None
            )
        grouped = frame.groupby("label", as_index=False, sort=False, dropna=False)["value"].sum()
        grouped = grouped.sort_values("value", ascending=False, kind="mergesort")
        logger.debug(
            "Segment rows for %s/%s [%s..%s]: %d",
            tenant_id, segment_key, date_from, date_to, len(grouped),
        )
        return _records(grouped[["label", "value"]])

    def fetch_transitions(self, tenant_id, date_from, date_to, min_support, normalize_paths):
        frame = self._scoped(self.transitions, tenant_id)
        frame = self._within(frame, "date", date_from, date_to).copy()
        if normalize_paths:
            for column in ("from_path", "to_path"):
                frame[column] = frame[column].map(
                    lambda v: normalize_path(v) if isinstance(v, str) else None
                )
        grouped = frame.groupby(
            ["from_path", "to_path"], as_index=False, sort=False, dropna=False
        )["transitions"].sum()
        grouped = grouped.sort_values("transitions", ascending=False, kind="mergesort")
        logger.debug("Transition rows for %s: %d", tenant_id, len(grouped))
        return _records(grouped[["from_path", "to_path", "transitions"]])

    @staticmethod
    def _scoped(frame: pd.DataFrame, tenant_id: str, **scope: str) -> pd.DataFrame:
        if "tenant_id" in frame.columns:
            frame = frame[frame["tenant_id"] == tenant_id]
        for column, value in scope.items():
            if column in frame.columns:
                frame = frame[frame[column] == value]
        return frame

    @staticmethod
    def _within(frame: pd.DataFrame, column: str, date_from: str, date_to: str) -> pd.DataFrame:
        if column not in frame.columns or frame.empty:
            return frame
        days = pd.to_datetime(frame[column], format="ISO8601").dt.date
        return frame[(days >= parse_day(date_from)) & (days <= parse_day(date_to))]
