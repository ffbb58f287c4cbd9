"""
PRICEPULSE - Pricing Services Module
Price change prediction pipeline

This module provides the full prediction pipeline including:
- Dynamic rise/fall threshold calculation
- Wildcard noise filtering
- Flag transition tracking and lock windows
- Transfer volume and carryover forecasting
- Ten-factor confidence scoring
- Per-cycle orchestration and ranking
"""

from typing import Optional

from pricepulse.core.config import Settings, get_settings
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)

from .config import (
    ConfidenceWeights,
    FlagRule,
    FlagRules,
    ForecastWeights,
    PredictionThresholds,
    PricingConfig,
    ThresholdConstants,
    WildcardWeights,
    default_pricing_config,
)
from .threshold_calculator import (
    ThresholdCalculator,
    ThresholdMultipliers,
    ThresholdResult,
    RealtimeAdjustment,
)
from .wildcard_filter import (
    WildcardFilter,
    WildcardAnalysis,
    WildcardContext,
    WildcardIndicator,
    IndicatorType,
    HistoricalMatch,
    CarryoverEstimate,
)
from .flag_tracker import (
    FlagTracker,
    FlagEvent,
    FlagAnalysis,
    Adjustments,
    ProjectedImpact,
    LockStatus,
    FlagObservation,
    RuleUpdate,
)
from .forecast_model import (
    ForecastModel,
    ForecastContext,
    ForecastFeatures,
    ForecastOutput,
)
from .confidence_scorer import (
    ConfidenceScorer,
    ConfidenceInput,
    ConfidenceFactors,
    ConfidenceRecord,
    ConfidenceTier,
    Reliability,
)
from .special_assets import (
    SpecialAssetPredicate,
    SpecialAssetRule,
    default_special_rule,
    never_special,
)
from .orchestrator import (
    PredictionOrchestrator,
    PredictionRecord,
    PredictionSummary,
    CycleContext,
    ChangeTiming,
)

__all__ = [
    # Config
    'PricingConfig',
    'ThresholdConstants',
    'WildcardWeights',
    'FlagRule',
    'FlagRules',
    'ForecastWeights',
    'ConfidenceWeights',
    'PredictionThresholds',
    'default_pricing_config',
    # Thresholds
    'ThresholdCalculator',
    'ThresholdMultipliers',
    'ThresholdResult',
    'RealtimeAdjustment',
    # Wildcard
    'WildcardFilter',
    'WildcardAnalysis',
    'WildcardContext',
    'WildcardIndicator',
    'IndicatorType',
    'HistoricalMatch',
    'CarryoverEstimate',
    # Flags
    'FlagTracker',
    'FlagEvent',
    'FlagAnalysis',
    'Adjustments',
    'ProjectedImpact',
    'LockStatus',
    'FlagObservation',
    'RuleUpdate',
    # Forecast
    'ForecastModel',
    'ForecastContext',
    'ForecastFeatures',
    'ForecastOutput',
    # Confidence
    'ConfidenceScorer',
    'ConfidenceInput',
    'ConfidenceFactors',
    'ConfidenceRecord',
    'ConfidenceTier',
    'Reliability',
    # Special assets
    'SpecialAssetPredicate',
    'SpecialAssetRule',
    'default_special_rule',
    'never_special',
    # Orchestration
    'PredictionOrchestrator',
    'PredictionRecord',
    'PredictionSummary',
    'CycleContext',
    'ChangeTiming',
    'create_prediction_engine',
]


def create_prediction_engine(
    settings: Optional[Settings] = None,
    history: Optional[HistoricalDataProvider] = None,
    config: Optional[PricingConfig] = None,
) -> PredictionOrchestrator:
    """
    Create a fully wired prediction orchestrator.

    Args:
        settings: Runtime settings (defaults to the cached settings)
        history: Historical data provider (defaults to built-in tables)
        config: Heuristic tables (defaults to values derived from settings)

    Returns:
        PredictionOrchestrator
    """
    settings = settings or get_settings()
    return PredictionOrchestrator(
        config=config or PricingConfig.from_settings(settings),
        history=history or DefaultHistoricalDataProvider(),
        settings=settings,
    )
