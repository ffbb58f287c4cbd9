"""
PRICEPULSE - Core Module
Configuration and error types shared across the engine.
"""

from pricepulse.core.config import Settings, get_settings, settings
from pricepulse.core.exceptions import (
    PricePulseError,
    AssetValidationError,
    SnapshotUnavailableError,
    ConfigurationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "PricePulseError",
    "AssetValidationError",
    "SnapshotUnavailableError",
    "ConfigurationError",
]
