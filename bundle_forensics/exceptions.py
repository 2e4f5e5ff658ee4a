"""
Specific exception classes for Bundle Forensics.

Provides detailed error types for the failure scenarios the analysis
pipeline can hit, so callers can tell bad configuration apart from a
malformed snapshot or an internal clustering fault.
"""

from typing import Any, Dict, Optional


class BundleForensicsError(Exception):
    """Base exception for all Bundle Forensics errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


# =============================================================================
# Detection Related Errors
# =============================================================================

class DetectionError(BundleForensicsError):
    """Base class for detection-related errors."""
    pass


class ClusteringError(DetectionError):
    """Cluster detection or scoring failed unexpectedly."""

    def __init__(self, stage: str, error_message: str,
                 wallet_count: Optional[int] = None):
        self.stage = stage
        self.wallet_count = wallet_count

        details: Dict[str, Any] = {'stage': stage}
        if wallet_count is not None:
            details['wallet_count'] = wallet_count

        message = f"Clustering stage '{stage}' failed: {error_message}"
        super().__init__(message, details)


# =============================================================================
# Configuration Related Errors
# =============================================================================

class ConfigurationError(BundleForensicsError):
    """Base class for configuration-related errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, config_key: str, config_value: Any,
                 expected_format: Optional[str] = None):
        self.config_key = config_key
        self.config_value = config_value
        self.expected_format = expected_format

        message = f"Invalid configuration value for '{config_key}': {config_value}"
        if expected_format:
            message += f" (expected format: {expected_format})"

        details = {
            'config_key': config_key,
            'config_value': config_value
        }
        if expected_format:
            details['expected_format'] = expected_format

        super().__init__(message, details)


# =============================================================================
# Validation Related Errors
# =============================================================================

class ValidationError(BundleForensicsError):
    """Input validation failed."""

    def __init__(self, field_name: str, field_value: Any, reason: str):
        self.field_name = field_name
        self.field_value = field_value
        self.reason = reason

        message = f"Validation failed for '{field_name}': {reason}"
        details = {
            'field_name': field_name,
            'field_value': field_value,
            'reason': reason
        }

        super().__init__(message, details)


class SnapshotValidationError(ValidationError):
    """Wallet activity snapshot is malformed."""

    def __init__(self, reason: str, errors: Optional[list] = None,
                 source: Optional[str] = None):
        self.errors = errors or []
        self.source = source
        super().__init__('snapshot', source, reason)
        if self.errors:
            self.details['errors'] = self.errors
