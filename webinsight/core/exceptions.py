"""
Custom exceptions for the anomaly engine.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad request parameters, unknown tenants,
malformed provider rows, and configuration errors.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class ParameterValidationError(AnomalyDetectionError):
    """
    Raised when detector parameters fail validation.

    Always raised before any row is fetched. `field` names the offending
    parameter so callers can report it back verbatim.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid parameter '{field}': {message}")


class TenantResolutionError(AnomalyDetectionError):
    """Raised when no tenant id accompanies a detection request."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when a provider row cannot be coerced into its row schema."""
    pass


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass
