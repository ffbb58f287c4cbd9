"""
PRICEPULSE - Health Check API Routes
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pricepulse.api.dependencies import get_prediction_engine
from pricepulse.core.config import get_settings
from pricepulse.services.pricing import PredictionOrchestrator


router = APIRouter(tags=["health"])


# ============================================================================
# SCHEMAS
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    algorithm_version: str
    uptime_seconds: float
    accuracy_last_week: float


# ============================================================================
# GLOBAL STATE
# ============================================================================

_start_time = datetime.now(timezone.utc)


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("", response_model=HealthResponse)
async def basic_health_check(engine: PredictionOrchestrator = Depends(get_prediction_engine)):
    """Basic health check endpoint for load balancers and monitoring."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    return HealthResponse(
        status="healthy",
        timestamp=now,
        version=settings.app_version,
        algorithm_version=settings.ALGORITHM_VERSION,
        uptime_seconds=(now - _start_time).total_seconds(),
        accuracy_last_week=engine.history.accuracy_last_week(),
    )
