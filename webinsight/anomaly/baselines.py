"""
Baseline construction for the four comparison strategies.

- rolling:          trailing window of the same series (timeseries)
- cross_sectional:  all peers in the same group (cohorts at one offset,
                    pages against each other)
- paired_window:    the same subject in an equal-length prior window
                    (segment shares)
- local:            one node's own outgoing distribution (next-step
                    probabilities of a single page)

Each strategy turns a list of observations into (observation, baseline)
pairs; the scorer does the rest.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from .stats import median, robust_sigma


class BaselineScope(str, Enum):
    """Where a baseline draws its reference values from."""

    ROLLING = "rolling"
    CROSS_SECTIONAL = "cross_sectional"
    PAIRED_WINDOW = "paired_window"
    LOCAL = "local"


@dataclass(frozen=True)
class Observation:
    """
    One scored value.

    Fields:
    - group: baselines are only shared within a group
    - subject: opaque payload the detector needs to build its finding
    - value: observed rate/share/metric
    - support: sample count behind the value
    - reference: prior-window value (paired_window scope only)
    """

    group: Hashable
    subject: Any
    value: float
    support: float = 0
    reference: Optional[float] = None


@dataclass(frozen=True)
class RobustBaseline:
    """
    Median/robust-sigma reference for an observation.

    count is the number of values the baseline was built from.
    """

    center: float
    sigma: float
    count: int
    method: str

    @classmethod
    def from_values(cls, values: Sequence[float], method: str) -> "RobustBaseline":
        center = median(values)
        return cls(
            center=center,
            sigma=robust_sigma(values, center),
            count=len(values),
            method=method,
        )


@dataclass
class RollingBaselineEstimator:
    """
    Trailing-window median/MAD estimator.

    Warm-up: returns None until the window is full.
    """

    window_size: int
    _values: Deque[float] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self._values = deque(maxlen=self.window_size)

    def peek(self) -> Optional[RobustBaseline]:
        if len(self._values) < self.window_size:
            return None
        return RobustBaseline.from_values(list(self._values), BaselineScope.ROLLING.value)

    def update(self, value: float) -> None:
        self._values.append(float(value))


def _grouped(observations: Iterable[Observation]) -> Dict[Hashable, List[Observation]]:
    groups: Dict[Hashable, List[Observation]] = {}
    for obs in observations:
        groups.setdefault(obs.group, []).append(obs)
    return groups


def rolling_baselines(
    observations: Sequence[Observation], window_size: int
) -> List[Tuple[Observation, RobustBaseline]]:
    """
    Pair each observation with the baseline of the `window_size` values
    immediately before it in its group. The first `window_size` observations
    of every group have no baseline and are not returned.
    """
    pairs: List[Tuple[Observation, RobustBaseline]] = []
    for items in _grouped(observations).values():
        estimator = RollingBaselineEstimator(window_size=window_size)
        for obs in items:
            baseline = estimator.peek()
            if baseline is not None:
                pairs.append((obs, baseline))
            estimator.update(obs.value)
    return pairs


def group_baselines(
    observations: Sequence[Observation], scope: BaselineScope
) -> Dict[Hashable, RobustBaseline]:
    """One baseline per group, built from every value in the group."""
    return {
        group: RobustBaseline.from_values([o.value for o in items], scope.value)
        for group, items in _grouped(observations).items()
    }


def peer_baselines(
    observations: Sequence[Observation], scope: BaselineScope
) -> List[Tuple[Observation, RobustBaseline]]:
    """Cross-sectional and local scopes: every member judged against its group."""
    baselines = group_baselines(observations, scope)
    return [(obs, baselines[obs.group]) for obs in observations]


def paired_baselines(
    observations: Sequence[Observation],
) -> List[Tuple[Observation, RobustBaseline]]:
    """The prior-window value is the baseline; a single point has no spread."""
    return [
        (
            obs,
            RobustBaseline(
                center=obs.reference if obs.reference is not None else 0.0,
                sigma=0.0,
                count=1,
                method=BaselineScope.PAIRED_WINDOW.value,
            ),
        )
        for obs in observations
    ]


def build_baselines(
    observations: Sequence[Observation],
    scope: BaselineScope,
    window_size: int = 7,
) -> List[Tuple[Observation, RobustBaseline]]:
    if scope == BaselineScope.ROLLING:
        return rolling_baselines(observations, window_size)
    if scope in (BaselineScope.CROSS_SECTIONAL, BaselineScope.LOCAL):
        return peer_baselines(observations, scope)
    if scope == BaselineScope.PAIRED_WINDOW:
        return paired_baselines(observations)
    raise ValueError(f"Unknown baseline scope: {scope}")
