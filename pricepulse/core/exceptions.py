"""
PRICEPULSE - Exceptions
Error hierarchy shared by the prediction services and entry points.
"""

from typing import Any, Optional


class PricePulseError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class AssetValidationError(PricePulseError):
    """An asset carried a value outside its allowed domain."""

    def __init__(self, field: str, value: Any, message: Optional[str] = None):
        super().__init__(message or f"Invalid value for {field}: {value!r}")
        self.field = field
        self.value = value


class SnapshotUnavailableError(PricePulseError):
    """The snapshot was missing or held nothing to predict."""


class ConfigurationError(PricePulseError):
    """A weight table or rule table failed validation."""

