"""
Application configuration for the web-analytics anomaly engine.

Provides environment-aware settings with conservative defaults. Every detector
knob that has a default lives here so that the parameter models and the
detectors never carry their own "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class StatsConfig(BaseModel):
	"""
	Robust statistics constants.

	Notes:
	- mad_scale: converts MAD into a normal-consistent sigma.
	- tolerance: slack for inclusive boundary comparisons on float gaps.
	"""

	mad_scale: float = Field(1.4826, gt=0.0)
	tolerance: float = Field(1e-9, ge=0.0)


class SensitivityThresholds(BaseModel):
	"""
	Robust z-score thresholds per sensitivity level.

	Higher sensitivity means a lower threshold and therefore more findings.
	"""

	low: float = Field(3.0, gt=0.0)
	medium: float = Field(2.5, gt=0.0)
	high: float = Field(2.0, gt=0.0)

	@model_validator(mode="after")
	def _check_order(self) -> "SensitivityThresholds":
		if not (self.low >= self.medium >= self.high):
			raise ConfigurationError(
				"Sensitivity thresholds must satisfy low >= medium >= high "
				f"(got {self.low}, {self.medium}, {self.high})"
			)
		return self

	def as_dict(self) -> Dict[str, float]:
		return {"low": self.low, "medium": self.medium, "high": self.high}


class SeverityThresholds(BaseModel):
	"""
	Thresholds used to label findings low/medium/high.

	A finding is high when either its |z| or its effect size crosses the high
	bound, medium when either crosses the medium bound, low otherwise.
	"""

	z_medium: float = Field(2.5, ge=0.0)
	z_high: float = Field(3.0, ge=0.0)
	effect_medium: float = Field(0.1, ge=0.0, le=1.0)
	effect_high: float = Field(0.2, ge=0.0, le=1.0)


class TimeseriesConfig(BaseModel):
	"""
	Rolling baseline configuration.

	window_size: number of trailing buckets forming the baseline. The detector
	needs window_size + 1 samples before it can judge anything.
	"""

	window_size: int = Field(7, ge=2)
	interval: str = "day"


class RetentionConfig(BaseModel):
	"""
	Retention dip defaults.

	z_gate_min_peers: below this many cohorts at an offset the MAD of the
	group is fixed by the gap itself, so the z gate is not applied and only the
	effect-size gate decides.
	"""

	period: str = "week"
	max_k: int = Field(12, ge=1, le=52)
	min_cohort_size: int = Field(50, ge=1)
	min_effect_size: float = Field(0.15, ge=0.0, le=1.0)
	z_gate_min_peers: int = Field(3, ge=0)


class SegmentShiftConfig(BaseModel):
	"""
	Segment shift defaults.

	significance_level: chi-square p-value cut-off when the test is enabled.
	extras_limit: number of label/value pairs echoed back per window.
	"""

	metric: str = "visits"
	min_effect_size: float = Field(0.01, ge=0.0, le=1.0)
	min_share: float = Field(0.05, ge=0.0, le=1.0)
	min_support: int = Field(100, ge=1)
	significance_level: float = Field(0.05, gt=0.0, lt=1.0)
	extras_limit: int = Field(10, ge=0)


class PathDropoffConfig(BaseModel):
	"""
	Path drop-off defaults.
	"""

	min_support: int = Field(100, ge=1)
	min_effect_size: float = Field(0.15, ge=0.0, le=1.0)


class AnomalyConfig(BaseModel):
	"""
	Detector configuration shared by all four detectors.
	"""

	stats: StatsConfig = StatsConfig()
	sensitivity: SensitivityThresholds = SensitivityThresholds()
	default_sensitivity: str = "medium"
	severity: SeverityThresholds = SeverityThresholds()
	timeseries: TimeseriesConfig = TimeseriesConfig()
	retention: RetentionConfig = RetentionConfig()
	segment_shift: SegmentShiftConfig = SegmentShiftConfig()
	path_dropoff: PathDropoffConfig = PathDropoffConfig()


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested values use a double underscore, e.g.
	WEBINSIGHT_ANOMALY__RETENTION__MIN_COHORT_SIZE=25.
	"""

	model_config = SettingsConfigDict(
		env_prefix="WEBINSIGHT_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalyConfig = AnomalyConfig()


config = Config()
