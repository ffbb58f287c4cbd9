"""
PRICEPULSE - Price Prediction API Routes
Runs a prediction cycle over a submitted or configured bootstrap snapshot
"""

import logging

from fastapi import APIRouter, Depends, Query

from pricepulse.api.dependencies import get_prediction_engine, get_snapshot_provider
from pricepulse.api.schemas import PredictionSummaryResponse, SnapshotRequest
from pricepulse.services.pricing import PredictionOrchestrator
from pricepulse.services.snapshot import SnapshotProvider, snapshot_from_bootstrap

logger = logging.getLogger(__name__)

router = APIRouter(tags=["price-predictions"])


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("", response_model=PredictionSummaryResponse)
async def predict_from_snapshot(
    request: SnapshotRequest,
    include_all: bool = Query(False, description="Evaluate every asset above 0.1% ownership"),
    engine: PredictionOrchestrator = Depends(get_prediction_engine),
):
    """
    Run one prediction cycle over the submitted bootstrap document.

    Returns ranked risers, fallers and stable assets with metadata.
    """
    snapshot = snapshot_from_bootstrap(request.to_payload())
    summary = await engine.run_cycle(snapshot, include_all=include_all)
    return summary.to_dict()


@router.get("", response_model=PredictionSummaryResponse)
async def predict_from_configured_snapshot(
    include_all: bool = Query(False, description="Evaluate every asset above 0.1% ownership"),
    engine: PredictionOrchestrator = Depends(get_prediction_engine),
    provider: SnapshotProvider = Depends(get_snapshot_provider),
):
    """Run one prediction cycle over the configured snapshot source."""
    snapshot = await provider.get_snapshot()
    summary = await engine.run_cycle(snapshot, include_all=include_all)
    return summary.to_dict()
