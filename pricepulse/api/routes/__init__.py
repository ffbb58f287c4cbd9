"""
PRICEPULSE - API Routes Package

Route modules:
- Health Checks (health)
- Price Predictions (predictions)
"""

from pricepulse.api.routes import health
from pricepulse.api.routes import predictions

health_router = health.router
predictions_router = predictions.router

__all__ = [
    "health_router",
    "predictions_router",
]
