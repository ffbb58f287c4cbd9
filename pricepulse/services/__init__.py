"""
PRICEPULSE - Services Module
Prediction pipeline, snapshot boundary and historical reference data.
"""

from pricepulse.services.history import (
    AccuracyTracker,
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)
from pricepulse.services.snapshot import (
    JsonFileSnapshotProvider,
    SnapshotProvider,
    StaticSnapshotProvider,
    snapshot_from_bootstrap,
)
from pricepulse.services.pricing import (
    PredictionOrchestrator,
    PredictionSummary,
    create_prediction_engine,
)

__all__ = [
    # History
    "HistoricalDataProvider",
    "DefaultHistoricalDataProvider",
    "AccuracyTracker",
    # Snapshot
    "SnapshotProvider",
    "StaticSnapshotProvider",
    "JsonFileSnapshotProvider",
    "snapshot_from_bootstrap",
    # Pricing
    "PredictionOrchestrator",
    "PredictionSummary",
    "create_prediction_engine",
]
