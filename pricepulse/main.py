"""
PRICEPULSE - Main FastAPI Application
Phase 4: HTTP surface for the price change prediction engine

FastAPI application with:
- Health monitoring
- Prediction cycles over submitted or configured snapshots
- Error mapping for the engine's exception hierarchy
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from pricepulse.core.config import get_settings
from pricepulse.core.exceptions import (
    AssetValidationError,
    ConfigurationError,
    PricePulseError,
    SnapshotUnavailableError,
)
from pricepulse.api.routes import health_router, predictions_router
from pricepulse.api.schemas import ErrorResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("=" * 60)
    logger.info(f"{settings.app_name} {settings.app_version} - Price Change Prediction Engine")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Algorithm: {settings.ALGORITHM_VERSION}")
    logger.info(f"Snapshot source: {settings.SNAPSHOT_PATH or 'request body only'}")
    logger.info(f"API available at: http://{settings.HOST}:{settings.PORT}")

    yield

    logger.info("Shutdown complete")


# ============================================================================
# Create FastAPI Application
# ============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Fantasy asset price change prediction engine",
    version=settings.app_version,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ============================================================================
# Exception Handlers
# ============================================================================

def _error(status_code: int, error: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", errors)


@app.exception_handler(SnapshotUnavailableError)
async def snapshot_unavailable_handler(request: Request, exc: SnapshotUnavailableError):
    """No usable snapshot: the cycle cannot run."""
    logger.warning(f"Snapshot unavailable: {exc.message}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Snapshot Unavailable", exc.message)


@app.exception_handler(AssetValidationError)
async def asset_validation_handler(request: Request, exc: AssetValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid Asset", exc.message)


@app.exception_handler(PricePulseError)
async def engine_exception_handler(request: Request, exc: PricePulseError):
    """Remaining engine errors are server-side faults."""
    logger.error(f"Engine error: {exc.message}", exc_info=exc)
    if isinstance(exc, ConfigurationError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Configuration Error", exc.message)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        exc.message if settings.DEBUG else "An unexpected error occurred",
    )


# ============================================================================
# Include Routers
# ============================================================================

# API v1 routes
API_V1_PREFIX = "/api/v1"


@app.get(API_V1_PREFIX)
async def api_v1_root():
    """API v1 root endpoint with available routes."""
    return {
        "version": "v1",
        "name": settings.app_name,
        "status": "operational",
        "endpoints": {
            "health": f"{API_V1_PREFIX}/health",
            "price_predictions": f"{API_V1_PREFIX}/price-predictions",
        },
    }


app.include_router(
    health_router,
    prefix=f"{API_V1_PREFIX}/health",
    tags=["Health"]
)

app.include_router(
    predictions_router,
    prefix=f"{API_V1_PREFIX}/price-predictions",
    tags=["Price Predictions"]
)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "health": f"{API_V1_PREFIX}/health",
    }


# ============================================================================
# Run Application
# ============================================================================

def run():
    """Run the FastAPI application."""
    uvicorn.run(
        "pricepulse.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run()
