"""
PRICEPULSE - Historical Data Services
Reference tables and accuracy tracking.
"""

from .provider import (
    HistoricalDataProvider,
    DefaultHistoricalDataProvider,
    WildcardFingerprint,
    TransitionImpact,
)
from .accuracy_tracker import (
    AccuracyTracker,
    AccuracyReport,
    PredictionOutcome,
    PredictionError,
)

__all__ = [
    'HistoricalDataProvider',
    'DefaultHistoricalDataProvider',
    'WildcardFingerprint',
    'TransitionImpact',
    'AccuracyTracker',
    'AccuracyReport',
    'PredictionOutcome',
    'PredictionError',
]
