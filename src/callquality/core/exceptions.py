"""
Custom exceptions for callquality.
"""

from typing import Optional


class CallQualityError(Exception):
    """Base exception for call quality computations."""
    pass


class ConfigurationError(CallQualityError, ValueError):
    """Exception raised when a configuration value is rejected."""

    def __init__(self, message: str, field: Optional[str] = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            field: Dotted name of the offending configuration field
        """
        super().__init__(message)
        self.field = field
