"""
PRICEPULSE - Transfer Volume Forecast
Phase 2: Weighted heuristic forecasts for the next 24 hours

Forecasts per-asset transfer volume, the share of transfer intent that
carries into the next cycle, and a multiplier nudging the rise threshold.
All weights are hand-tuned and live in ForecastWeights.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from pricepulse.models.assets import AssetMetrics, CyclePattern
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)

from .config import ForecastWeights, default_pricing_config

logger = logging.getLogger(__name__)


def _clip(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class ForecastFeatures:
    """Six bounded features, each in [-1, 1]."""
    ownership_momentum: float = 0.0
    form_trend: float = 0.0
    fixture_appeal: float = 0.0
    price_value: float = 0.0
    recent_performance: float = 0.0
    market_sentiment: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'ownership_momentum': round(self.ownership_momentum, 4),
            'form_trend': round(self.form_trend, 4),
            'fixture_appeal': round(self.fixture_appeal, 4),
            'price_value': round(self.price_value, 4),
            'recent_performance': round(self.recent_performance, 4),
            'market_sentiment': round(self.market_sentiment, 4),
        }


@dataclass(frozen=True)
class ForecastContext:
    """Population-level forecast inputs, built once per cycle."""
    cycle: int
    hours_until_deadline: float
    market_sentiment: float
    volume_factor: float
    wildcard_factor: float
    historical_carryover: float
    deadline_factor: float
    season_multiplier: float
    pattern_count: int

    @property
    def market_volatility(self) -> float:
        return abs(self.market_sentiment)


@dataclass(frozen=True)
class ForecastOutput:
    """24h transfer forecast and threshold nudge for one asset."""
    asset_id: int
    predicted_transfers_in_24h: int
    predicted_transfers_out_24h: int
    predicted_net_transfers: int
    model_uncertainty: float
    threshold_adjustment_factor: float
    carryover_fraction: float
    peak_window: str
    transfer_velocity: float
    confidence: float
    features: ForecastFeatures = field(default_factory=ForecastFeatures)
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'predicted_transfers_in_24h': self.predicted_transfers_in_24h,
            'predicted_transfers_out_24h': self.predicted_transfers_out_24h,
            'predicted_net_transfers': self.predicted_net_transfers,
            'model_uncertainty': round(self.model_uncertainty, 3),
            'threshold_adjustment_factor': round(self.threshold_adjustment_factor, 4),
            'carryover_fraction': round(self.carryover_fraction, 3),
            'peak_window': self.peak_window,
            'confidence': round(self.confidence, 3),
            'reasons': list(self.reasons),
        }


# =============================================================================
# FORECAST MODEL
# =============================================================================

class ForecastModel:
    """
    Heuristic transfer volume and carryover forecaster.

    build_context() digests the recent population patterns once per cycle;
    forecast() is then a pure function of one asset and that context.
    """

    def __init__(
        self,
        weights: Optional[ForecastWeights] = None,
        total_population: Optional[int] = None,
        history: Optional[HistoricalDataProvider] = None,
    ):
        self.weights = weights or default_pricing_config.forecast
        self.total_population = total_population or default_pricing_config.thresholds.total_population
        self.history = history or DefaultHistoricalDataProvider()

    # -------------------------------------------------------------------------
    # Population context
    # -------------------------------------------------------------------------

    def build_context(
        self,
        patterns: Sequence[CyclePattern],
        cycle: int,
        hours_until_deadline: float,
    ) -> ForecastContext:
        """
        Summarise recent population patterns for the current cycle.

        Args:
            patterns: Recent cycle patterns, oldest first
            cycle: Current cycle index
            hours_until_deadline: Hours until the next transfer deadline
        """
        w = self.weights
        latest = patterns[-1] if patterns else None

        if latest is not None:
            sentiment = _clip(
                (latest.total_transfers - w.sentiment_baseline) / w.sentiment_baseline,
                -w.sentiment_cap, w.sentiment_cap,
            )
            ratio = latest.total_transfers / w.sentiment_baseline
            volume_factor = _clip((ratio - 1) * 0.2, -w.volume_cap, w.volume_cap)
            wildcard_factor = min(w.wildcard_factor_cap, latest.wildcard_usage * w.wildcard_factor_scale)
        else:
            sentiment = 0.0
            volume_factor = 0.0
            wildcard_factor = 0.0

        baselines = self.history.cycle_carryover_baselines()

        return ForecastContext(
            cycle=cycle,
            hours_until_deadline=hours_until_deadline,
            market_sentiment=sentiment,
            volume_factor=volume_factor,
            wildcard_factor=wildcard_factor,
            historical_carryover=baselines.get(cycle, w.carryover_default),
            deadline_factor=w.deadline_factor(hours_until_deadline),
            season_multiplier=w.season_multiplier(cycle),
            pattern_count=len(patterns),
        )

    # -------------------------------------------------------------------------
    # Forecast
    # -------------------------------------------------------------------------

    def forecast(self, asset: AssetMetrics, context: ForecastContext) -> ForecastOutput:
        """
        Forecast the next 24 hours for one asset.

        Args:
            asset: Asset metrics with trend arrays
            context: Shared context from build_context()

        Returns:
            ForecastOutput
        """
        w = self.weights
        features = self.extract_features(asset, context)

        owners = asset.ownership_fraction * self.total_population
        base_in = (self.total_population - owners) * w.inflow_rate
        base_out = owners * w.outflow_rate

        # Positive sentiment raises activity in both directions
        directional = (
            features.ownership_momentum * w.ownership_momentum
            + features.form_trend * w.form_trend
            + features.fixture_appeal * w.fixture_appeal
            + features.price_value * w.price_value
            + features.recent_performance * w.recent_performance
        )
        activity = features.market_sentiment * w.market_sentiment

        in_multiplier = (1.0 + directional + activity) * context.season_multiplier
        out_multiplier = (1.0 - directional + activity) * context.season_multiplier

        predicted_in = int(round(base_in * max(w.min_multiplier, in_multiplier)))
        predicted_out = int(round(base_out * max(w.min_multiplier, out_multiplier)))

        carryover, carryover_confidence = self._carryover(context)
        velocity = self.transfer_velocity(asset)
        factor, reasons = self._threshold_adjustment(asset, features, velocity)

        return ForecastOutput(
            asset_id=asset.asset_id,
            predicted_transfers_in_24h=predicted_in,
            predicted_transfers_out_24h=predicted_out,
            predicted_net_transfers=predicted_in - predicted_out,
            model_uncertainty=self._uncertainty(asset, context),
            threshold_adjustment_factor=factor,
            carryover_fraction=carryover,
            peak_window=self._peak_window(context.hours_until_deadline),
            transfer_velocity=velocity,
            confidence=min(self._volume_confidence(features, context), carryover_confidence),
            features=features,
            reasons=reasons,
        )

    def extract_features(self, asset: AssetMetrics, context: ForecastContext) -> ForecastFeatures:
        """Compute the six bounded forecast features."""
        return ForecastFeatures(
            ownership_momentum=self._ownership_momentum(asset),
            form_trend=self._form_trend(asset),
            fixture_appeal=self._fixture_appeal(asset),
            price_value=self._price_value(asset),
            recent_performance=self._recent_performance(asset),
            market_sentiment=context.market_sentiment,
        )

    @staticmethod
    def _ownership_momentum(asset: AssetMetrics) -> float:
        trend = asset.transfers_in_history
        if len(trend) < 3:
            return 0.0
        r0, _, r2 = trend[-3:]
        return _clip((r2 - r0) / max(r0, 1))

    @staticmethod
    def _form_trend(asset: AssetMetrics) -> float:
        points = asset.points_history
        if len(points) < 3:
            return 0.0
        recent = float(np.mean(points[-3:]))
        previous_window = points[-6:-3]
        previous = float(np.mean(previous_window)) if previous_window else 0.0
        return _clip((recent - previous) / 10)

    @staticmethod
    def _fixture_appeal(asset: AssetMetrics) -> float:
        if not asset.fixture_difficulty:
            return 0.0
        return _clip((3 - float(np.mean(asset.fixture_difficulty))) / 2)

    def _price_value(self, asset: AssetMetrics) -> float:
        if not asset.points_history or asset.cost <= 0:
            return 0.0
        w = self.weights
        base = w.position_base_price.get(asset.position, w.position_base_price[3])
        expected = base + (float(np.mean(asset.points_history)) - w.points_baseline) * w.price_per_point
        return _clip((expected - asset.cost) / asset.cost)

    def _recent_performance(self, asset: AssetMetrics) -> float:
        if not asset.points_history:
            return 0.0
        expected = self.weights.position_expected_points.get(asset.position, 3.0)
        recent = float(np.mean(asset.points_history[-4:]))
        return _clip((recent - expected) / expected)

    @staticmethod
    def transfer_velocity(asset: AssetMetrics) -> float:
        """Ratio of the latest inbound window to the one before it."""
        trend = asset.transfers_in_history
        if len(trend) < 2:
            return 1.0
        return trend[-1] / max(trend[-2], 1)

    @staticmethod
    def _form_momentum(asset: AssetMetrics) -> float:
        points = asset.points_history
        if len(points) < 4:
            return 0.0
        return _clip((float(np.mean(points[-2:])) - float(np.mean(points[-4:-2]))) / 10)

    @staticmethod
    def _fixture_swing(asset: AssetMetrics) -> float:
        upcoming = asset.fixture_difficulty
        if len(upcoming) < 2:
            return 0.0
        return upcoming[0] - float(np.mean(upcoming))

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def _carryover(self, context: ForecastContext):
        w = self.weights
        value = (
            context.historical_carryover
            + context.deadline_factor * w.timing_weight
            + context.volume_factor * w.volume_weight
            + context.wildcard_factor * w.wildcard_weight
        )
        carryover = _clip(value, w.carryover_min, w.carryover_max)

        factors = (context.deadline_factor, context.volume_factor,
                   context.wildcard_factor, context.historical_carryover)
        spread = float(np.mean([abs(f - 0.15) for f in factors]))
        confidence = _clip(0.75 + (0.15 - spread) * 2, 0.5, 1.0)
        return carryover, confidence

    def _threshold_adjustment(self, asset: AssetMetrics, features: ForecastFeatures, velocity: float):
        w = self.weights
        factor = 1.0
        reasons: List[str] = []

        if velocity > w.fast_velocity:
            factor *= 0.9
            reasons.append("High transfer velocity detected")
        elif velocity < w.slow_velocity:
            factor *= 1.1
            reasons.append("Low transfer velocity detected")

        momentum = features.ownership_momentum
        if abs(momentum) > 0.3:
            factor *= 1 - momentum * 0.2
            reasons.append("Strong ownership momentum detected")

        form_momentum = self._form_momentum(asset)
        if form_momentum > 0.2:
            factor *= 0.95
            reasons.append("Positive form momentum")
        elif form_momentum < -0.2:
            factor *= 1.05
            reasons.append("Negative form momentum")

        swing = self._fixture_swing(asset)
        if abs(swing) > 1:
            factor *= 1 - swing * 0.1
            reasons.append(f"Fixture difficulty {'increase' if swing > 0 else 'decrease'}")

        sentiment = features.market_sentiment
        if abs(sentiment) > 0.2:
            factor *= 1 + sentiment * 0.1
            reasons.append(f"Market sentiment: {'positive' if sentiment > 0 else 'negative'}")

        return _clip(factor, w.adjustment_min, w.adjustment_max), reasons

    @staticmethod
    def _peak_window(hours_until_deadline: float) -> str:
        if hours_until_deadline > 72:
            return "Weekend"
        if hours_until_deadline > 24:
            return "Tuesday Evening"
        if hours_until_deadline > 6:
            return "Friday Morning"
        return "Deadline Rush"

    def _uncertainty(self, asset: AssetMetrics, context: ForecastContext) -> float:
        w = self.weights
        uncertainty = w.base_uncertainty
        if asset.ownership_pct > w.high_ownership:
            uncertainty += w.high_ownership_uncertainty
        if asset.ownership_pct < w.low_ownership:
            uncertainty += w.low_ownership_uncertainty
        if context.pattern_count < w.min_patterns:
            uncertainty += w.thin_history_uncertainty
        return min(w.max_uncertainty, uncertainty)

    @staticmethod
    def _volume_confidence(features: ForecastFeatures, context: ForecastContext) -> float:
        confidence = 0.8
        if abs(features.ownership_momentum) > 0.8:
            confidence -= 0.1
        if abs(features.form_trend) > 0.8:
            confidence -= 0.05
        if context.pattern_count >= 5:
            confidence += 0.05
        return _clip(confidence, 0.5, 1.0)
