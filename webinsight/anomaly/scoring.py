"""
Generic robust deviation scoring, severity mapping and ranking.

Every detector follows the same scaffolding: group → baseline → score →
filter → rank. RobustDeviationScorer owns the middle three steps and is
parameterized by a baseline scope, a direction of interest and a gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from math import fabs
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from webinsight.core.config import SeverityThresholds, config

from .baselines import BaselineScope, Observation, RobustBaseline, build_baselines
from .schema import AnomalySeverity, Sensitivity
from .stats import z_score

TOLERANCE = config.anomaly.stats.tolerance


class Direction(str, Enum):
    """Which side of the baseline is of interest."""

    UP = "up"
    DOWN = "down"
    BOTH = "both"


@dataclass(frozen=True)
class Deviation:
    """
    A scored observation.

    effect is the gap in the direction of interest: value - center (up),
    center - value (down) or the absolute gap (both).
    """

    observation: Observation
    baseline: RobustBaseline
    z: float
    effect: float

    @property
    def value(self) -> float:
        return self.observation.value

    @property
    def expected(self) -> float:
        return self.baseline.center


@dataclass(frozen=True)
class DeviationGate:
    """
    Admission rules for a deviation.

    Notes:
    - min_effect: effect must reach this (inclusive, with float tolerance)
    - z_threshold: |z| must reach this; None disables the z check
    - min_support: observation support must reach this
    - min_peers_for_z: the z check is skipped when the baseline was built from
      fewer values than this (0 = always check)
    """

    min_effect: float = 0.0
    z_threshold: Optional[float] = None
    min_support: float = 0
    min_peers_for_z: int = 0

    def admits(self, deviation: Deviation) -> bool:
        if deviation.observation.support < self.min_support:
            return False
        if deviation.effect < self.min_effect - TOLERANCE:
            return False
        if self.z_threshold is None or deviation.baseline.count < self.min_peers_for_z:
            return True
        return fabs(deviation.z) >= self.z_threshold - TOLERANCE


@dataclass
class RobustDeviationScorer:
    """
    Scores observations against robust baselines.

    Usage:
        scorer = RobustDeviationScorer(BaselineScope.CROSS_SECTIONAL, Direction.UP, gate)
        deviations = scorer.score(observations)
    """

    scope: BaselineScope
    direction: Direction
    gate: DeviationGate
    window_size: int = 7

    def evaluate(self, observations: Sequence[Observation]) -> List[Deviation]:
        """All deviations, admitted or not, in observation order."""
        deviations: List[Deviation] = []
        for obs, baseline in build_baselines(observations, self.scope, self.window_size):
            delta = obs.value - baseline.center
            deviations.append(
                Deviation(
                    observation=obs,
                    baseline=baseline,
                    z=z_score(obs.value, baseline.center, baseline.sigma),
                    effect=self._effect(delta),
                )
            )
        return deviations

    def score(self, observations: Sequence[Observation]) -> List[Deviation]:
        """Deviations that pass the direction check and the gate."""
        return [
            d
            for d in self.evaluate(observations)
            if self._in_direction(d) and self.gate.admits(d)
        ]

    def _effect(self, delta: float) -> float:
        if self.direction == Direction.UP:
            return max(0.0, delta)
        if self.direction == Direction.DOWN:
            return max(0.0, -delta)
        return fabs(delta)

    def _in_direction(self, deviation: Deviation) -> bool:
        delta = deviation.value - deviation.expected
        if self.direction == Direction.UP:
            return delta > 0
        if self.direction == Direction.DOWN:
            return delta < 0
        return True


def threshold_for(sensitivity: Sensitivity) -> float:
    """z threshold configured for a sensitivity level."""
    return config.anomaly.sensitivity.as_dict()[Sensitivity(sensitivity).value]


@dataclass
class SeverityMapper:
    """
    Maps |z| and effect size to severity levels.

    Either signal crossing a bound is enough; pass None for a signal a
    detector does not have.
    """

    thresholds: SeverityThresholds

    def severity(self, z: Optional[float], effect: Optional[float]) -> AnomalySeverity:
        abs_z = fabs(z) if z is not None else 0.0
        eff = effect if effect is not None else 0.0
        if eff >= self.thresholds.effect_high or abs_z >= self.thresholds.z_high:
            return AnomalySeverity.HIGH
        if eff >= self.thresholds.effect_medium or abs_z >= self.thresholds.z_medium:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


T = TypeVar("T")


def rank(items: Sequence[T], key: Callable[[T], Tuple[float, ...]]) -> List[T]:
    """
    Order items by descending key.

    The sort is stable, so items with equal keys keep their input order and
    identical inputs always rank identically.
    """
    return sorted(items, key=lambda item: tuple(-part for part in key(item)))


def severity_score(z: Optional[float], effect: float) -> float:
    """Primary ranking key shared by retention and path drop-offs."""
    return max(fabs(z) if z is not None else 0.0, effect)
