"""
Pytest configuration and shared fixtures.

Provides test configuration instances and sample aggregate rows for unit and
integration tests.
"""

import pytest
from datetime import date, timedelta
from typing import List, Dict, Any, Optional
import pandas as pd

from webinsight.core.config import Config
from webinsight.data.provider import FrameRowProvider

TENANT = "site-1"


def _days(start: date, count: int) -> List[str]:
    return [(start + timedelta(days=i)).isoformat() for i in range(count)]


@pytest.fixture
def test_config(tmp_path):
    """
    Fixture providing a configuration that ignores the environment.

    Log files go to a temporary directory and .env files are not read, so
    tests run the same regardless of local settings.
    """
    return Config(_env_file=None, log_level="WARNING", logs_dir=tmp_path / "logs")


@pytest.fixture
def base_params() -> Dict[str, Any]:
    """Tenant and August 2025 window shared by detector calls."""
    return {"tenant_id": TENANT, "date_from": "2025-08-01", "date_to": "2025-08-31"}


@pytest.fixture
def spike_series() -> List[Dict[str, Any]]:
    """
    Eight daily buckets; the last one spikes.

    Baseline of the first seven: median 11, MAD 1, robust sigma 1.4826.
    """
    values = [10, 12, 11, 13, 10, 12, 11, 40]
    return [{"bucket": b, "value": v} for b, v in zip(_days(date(2025, 8, 1), 8), values)]


@pytest.fixture
def flat_series() -> List[Dict[str, Any]]:
    """Seven identical buckets followed by a large jump."""
    values = [10] * 7 + [100]
    return [{"bucket": b, "value": v} for b, v in zip(_days(date(2025, 8, 1), 8), values)]


def cohort_rows(cohorts: Dict[str, tuple]) -> List[Dict[str, Any]]:
    """
    {cohort_start: (size, {k: active})} -> cohort rows including the k=0 row.
    """
    rows = []
    for start, (size, actives) in cohorts.items():
        rows.append({"cohort_start": start, "k": 0, "active_users": size})
        for k, active in actives.items():
            rows.append({"cohort_start": start, "k": k, "active_users": active})
    return rows


@pytest.fixture
def retention_rows() -> List[Dict[str, Any]]:
    """
    Five eligible weekly cohorts of 100 users plus one undersized cohort.

    At k=1 the rates are 0.40, 0.42, 0.38, 0.41 and 0.10: median 0.40, MAD
    0.02. The 2025-08-25 cohort is the dip.
    """
    return cohort_rows({
        "2025-07-28": (100, {1: 40, 2: 30}),
        "2025-08-04": (100, {1: 42, 2: 31}),
        "2025-08-11": (100, {1: 38, 2: 29}),
        "2025-08-18": (100, {1: 41, 2: 30}),
        "2025-08-25": (100, {1: 10}),
        "2025-08-31": (20, {1: 0}),
    })


@pytest.fixture
def transition_rows() -> List[Dict[str, Any]]:
    """
    Five pages with 1000 outgoing transitions each.

    Exit rates: /home 0.10, /docs 0.12, /blog 0.11, /about 0.10, /pricing 0.60.
    /home has three next steps (0.40, 0.38, 0.12); every other page has one.
    """
    edges = [
        (None, "/home", 1000),
        ("/home", "/pricing", 400),
        ("/home", "/docs", 380),
        ("/home", "/blog", 120),
        ("/home", None, 100),
        ("/docs", "/home", 880),
        ("/docs", None, 120),
        ("/blog", "/signup", 890),
        ("/blog", None, 110),
        ("/about", "/home", 900),
        ("/about", None, 100),
        ("/pricing", "/signup", 400),
        ("/pricing", None, 600),
    ]
    return [{"from_path": a, "to_path": b, "transitions": n} for a, b, n in edges]


@pytest.fixture
def series_frame(spike_series) -> pd.DataFrame:
    """Visits series for two tenants; the other tenant's values are flat."""
    own = pd.DataFrame(spike_series).assign(tenant_id=TENANT, metric="visits", interval="day")
    other = own.assign(tenant_id="site-2", value=10)
    return pd.concat([own, other], ignore_index=True)


@pytest.fixture
def cohort_frame(retention_rows) -> pd.DataFrame:
    return pd.DataFrame(retention_rows).assign(tenant_id=TENANT, period="week")


@pytest.fixture
def segment_frame() -> pd.DataFrame:
    """
    Country visits for July (previous window) and August (current window).

    August: us 800, de 200. July: us 600, de 200, fr 200. Labels arrive in
    mixed case and are split across days.
    """
    rows = [
        ("2025-08-03", "US", 500), ("2025-08-20", "us", 300), ("2025-08-05", "DE", 200),
        ("2025-07-02", "us", 600), ("2025-07-10", "de", 200), ("2025-07-15", "FR", 200),
    ]
    frame = pd.DataFrame(rows, columns=["date", "label", "value"])
    frame["tenant_id"] = TENANT
    frame["metric"] = "visits"
    frame["segment_key"] = "country"
    return frame


@pytest.fixture
def transition_frame(transition_rows) -> pd.DataFrame:
    """Transitions split over two days, with query strings on some paths."""
    rows = []
    for row in transition_rows:
        first = row["transitions"] // 2
        from_path = row["from_path"]
        if from_path == "/pricing":
            from_path = "/Pricing?plan=pro"
        rows.append({**row, "from_path": from_path, "date": "2025-08-10", "transitions": first})
        rows.append({**row, "date": "2025-08-11", "transitions": row["transitions"] - first})
    return pd.DataFrame(rows).assign(tenant_id=TENANT)


@pytest.fixture
def frame_provider(series_frame, cohort_frame, segment_frame, transition_frame) -> FrameRowProvider:
    return FrameRowProvider(
        series=series_frame,
        cohorts=cohort_frame,
        segments=segment_frame,
        transitions=transition_frame,
    )


class RecordingProvider(FrameRowProvider):
    """FrameRowProvider that records every fetch call."""

    def __init__(self, error: Optional[Exception] = None, **frames):
        super().__init__(**frames)
        self.calls: List[tuple] = []
        self.error = error

    def _record(self, name, args):
        self.calls.append((name,) + args)
        if self.error is not None:
            raise self.error

    def fetch_metric_series(self, *args):
        self._record("fetch_metric_series", args)
        return super().fetch_metric_series(*args)

    def fetch_cohort_rows(self, *args):
        self._record("fetch_cohort_rows", args)
        return super().fetch_cohort_rows(*args)

    def fetch_segment_totals(self, *args):
        self._record("fetch_segment_totals", args)
        return super().fetch_segment_totals(*args)

    def fetch_transitions(self, *args):
        self._record("fetch_transitions", args)
        return super().fetch_transitions(*args)


@pytest.fixture
def make_cohort_rows():
    return cohort_rows


@pytest.fixture
def recording_provider():
    """
    Factory for RecordingProvider instances.

    Usage:
        provider = recording_provider(error=RuntimeError("db down"))
    """
    return RecordingProvider


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
