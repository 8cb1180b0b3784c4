"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    AnomalyDetectionError,
    ConfigurationError,
    DataValidationError,
    ParameterValidationError,
    TenantResolutionError,
)
from .logging_config import setup_logging

__all__ = [
    "Config",
    "config",
    "setup_logging",
    "AnomalyDetectionError",
    "ConfigurationError",
    "DataValidationError",
    "ParameterValidationError",
    "TenantResolutionError",
]
