"""
PRICEPULSE - Domain Models
"""

from pricepulse.models.assets import (
    StatusFlag,
    PriceTier,
    SeverityTier,
    MonitoringPriority,
    TeamInfo,
    AssetMetrics,
    CyclePattern,
    FlagTransition,
    BootstrapSnapshot,
    DEFAULT_POSITIONS,
    STATUS_CODES,
)

__all__ = [
    "StatusFlag",
    "PriceTier",
    "SeverityTier",
    "MonitoringPriority",
    "TeamInfo",
    "AssetMetrics",
    "CyclePattern",
    "FlagTransition",
    "BootstrapSnapshot",
    "DEFAULT_POSITIONS",
    "STATUS_CODES",
]
