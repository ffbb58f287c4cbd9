"""
PRICEPULSE - API Dependencies
Phase 4: FastAPI Dependency Injection
"""

import logging
from functools import lru_cache

from pricepulse.core.config import get_settings
from pricepulse.core.exceptions import SnapshotUnavailableError
from pricepulse.services.pricing import PredictionOrchestrator, create_prediction_engine
from pricepulse.services.snapshot import JsonFileSnapshotProvider, SnapshotProvider

logger = logging.getLogger(__name__)


@lru_cache()
def get_prediction_engine() -> PredictionOrchestrator:
    """Shared orchestrator instance."""
    return create_prediction_engine(get_settings())


def get_snapshot_provider() -> SnapshotProvider:
    """
    Snapshot provider configured through SNAPSHOT_PATH.

    Raises:
        SnapshotUnavailableError: If no snapshot source is configured
    """
    settings = get_settings()
    if not settings.SNAPSHOT_PATH:
        raise SnapshotUnavailableError("No snapshot source configured (set SNAPSHOT_PATH)")
    return JsonFileSnapshotProvider(settings.SNAPSHOT_PATH, settings.PREVIOUS_SNAPSHOT_PATH)
