"""
PRICEPULSE - Fantasy Asset Price Change Prediction Engine

This package contains the complete prediction pipeline for tracked
fantasy-sports assets including:
- Dynamic rise/fall threshold estimation
- Wildcard (bulk reset) noise filtering
- Status flag transition tracking
- Transfer volume and carryover forecasting
- Multi-factor confidence scoring
- Ranked prediction assembly
"""

__version__ = "2.1.0"
__author__ = "PricePulse Team"
__description__ = "Fantasy Asset Price Change Prediction Engine"


def get_version() -> str:
    """Return the current package version."""
    return __version__
