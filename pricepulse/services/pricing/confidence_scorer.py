"""
PRICEPULSE - Confidence Scorer
Phase 2: Multi-factor prediction confidence

Fuses the threshold, wildcard, flag and forecast outputs into ten named
confidence factors, a weighted overall score and a discrete tier:
- very_high (>= 0.90)
- high (>= 0.80)
- medium (>= 0.65)
- low (>= 0.50)
- very_low (< 0.50)

Reliability labels and recommended actions come from a small decision
table over (overall score, distance from neutral, risk count).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pricepulse.models.assets import AssetMetrics, SeverityTier, StatusFlag
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)

from .config import CONFIDENCE_FACTORS, ConfidenceWeights, default_pricing_config
from .flag_tracker import FlagAnalysis
from .forecast_model import ForecastOutput
from .threshold_calculator import ThresholdResult
from .wildcard_filter import WildcardAnalysis

logger = logging.getLogger(__name__)


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


# =============================================================================
# ENUMS
# =============================================================================

class ConfidenceTier(str, Enum):
    """Discrete confidence tier."""
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Reliability(str, Enum):
    """Reliability label of a prediction."""
    UNRELIABLE = "unreliable"
    SOMEWHAT_RELIABLE = "somewhat_reliable"
    RELIABLE = "reliable"
    HIGHLY_RELIABLE = "highly_reliable"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class ConfidenceInput:
    """Everything the scorer needs about one asset."""
    asset: AssetMetrics
    progress: float
    net_transfers: int
    threshold: ThresholdResult
    wildcard: WildcardAnalysis
    flag: FlagAnalysis
    forecast: ForecastOutput
    market_volatility: Optional[float] = None


@dataclass(frozen=True)
class ConfidenceFactors:
    """Ten named sub-scores, each in [0, 1]."""
    transfer_volume: float
    ownership_stability: float
    form_consistency: float
    flag_status: float
    historical_accuracy: float
    wildcard_detection: float
    threshold_calculation: float
    data_quality: float
    market_condition: float
    timing: float

    def to_dict(self) -> Dict[str, float]:
        return {name: round(getattr(self, name), 3) for name in CONFIDENCE_FACTORS}


@dataclass(frozen=True)
class ConfidenceRecord:
    """Scored confidence for one asset."""
    asset_id: int
    overall: float
    tier: ConfidenceTier
    factors: ConfidenceFactors
    reliability: Reliability
    risk_factors: List[str] = field(default_factory=list)
    explanation: str = ""
    recommended_action: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': round(self.overall, 4),
            'tier': self.tier.value,
            'reliability': self.reliability.value,
            'factors': self.factors.to_dict(),
            'risk_factors': list(self.risk_factors),
            'explanation': self.explanation,
            'recommended_action': self.recommended_action,
        }


# =============================================================================
# CONFIDENCE SCORER
# =============================================================================

class ConfidenceScorer:
    """Weighted ten-factor confidence scoring."""

    def __init__(
        self,
        weights: Optional[ConfidenceWeights] = None,
        total_population: Optional[int] = None,
        history: Optional[HistoricalDataProvider] = None,
    ):
        self.weights = weights or default_pricing_config.confidence
        self.total_population = total_population or default_pricing_config.thresholds.total_population
        self.history = history or DefaultHistoricalDataProvider()

    def score(self, data: ConfidenceInput) -> ConfidenceRecord:
        """
        Score one asset.

        Args:
            data: Fused component outputs and raw progress

        Returns:
            ConfidenceRecord
        """
        factors = self.factors(data)
        overall = self.weighted(factors)
        risks = self.risk_factors(data, factors)

        return ConfidenceRecord(
            asset_id=data.asset.asset_id,
            overall=overall,
            tier=self.tier(overall),
            factors=factors,
            reliability=self.reliability(overall, factors),
            risk_factors=risks,
            explanation=self.explanation(factors, overall),
            recommended_action=self.recommended_action(overall, data.progress, risks),
        )

    def factors(self, data: ConfidenceInput) -> ConfidenceFactors:
        volatility = data.market_volatility
        if volatility is None:
            volatility = self.weights.default_market_volatility

        return ConfidenceFactors(
            transfer_volume=self._transfer_volume(data),
            ownership_stability=self._ownership_stability(data),
            form_consistency=self._form_consistency(data.asset.form),
            flag_status=self._flag_status(data),
            historical_accuracy=_unit(self.history.model_accuracy()),
            wildcard_detection=self._wildcard_detection(data.wildcard),
            threshold_calculation=self._threshold_calculation(data),
            data_quality=self._data_quality(data),
            market_condition=self._market_condition(volatility),
            timing=self._timing(data.progress),
        )

    def weighted(self, factors: ConfidenceFactors) -> float:
        weights = self.weights.as_dict()
        total = sum(getattr(factors, name) * weight for name, weight in weights.items())
        return _unit(total)

    def tier(self, overall: float) -> ConfidenceTier:
        w = self.weights
        if overall >= w.very_high_min:
            return ConfidenceTier.VERY_HIGH
        if overall >= w.high_min:
            return ConfidenceTier.HIGH
        if overall >= w.medium_min:
            return ConfidenceTier.MEDIUM
        if overall >= w.low_min:
            return ConfidenceTier.LOW
        return ConfidenceTier.VERY_LOW

    # -------------------------------------------------------------------------
    # Factors
    # -------------------------------------------------------------------------

    @staticmethod
    def _transfer_volume(data: ConfidenceInput) -> float:
        net = abs(data.net_transfers)
        confidence = 0.8
        if net > 100_000:
            confidence += 0.15
        elif net > 50_000:
            confidence += 0.1
        elif net > 20_000:
            confidence += 0.05
        elif net < 5_000:
            confidence -= 0.2

        confidence -= data.forecast.model_uncertainty

        velocity = data.forecast.transfer_velocity
        if 0.8 < velocity < 1.2:
            confidence += 0.05
        elif velocity > 2 or velocity < 0.5:
            confidence -= 0.1
        return _unit(confidence)

    def _ownership_stability(self, data: ConfidenceInput) -> float:
        ownership = data.asset.ownership_pct
        confidence = 0.8
        if 5 <= ownership <= 35:
            confidence += 0.1
        elif ownership < 2:
            confidence -= 0.3
        elif ownership > 40:
            confidence -= 0.2

        momentum = 0.0
        if ownership > 0:
            momentum = data.net_transfers / (data.asset.ownership_fraction * self.total_population)
        if abs(momentum) < 0.1:
            confidence += 0.05
        elif abs(momentum) > 0.3:
            confidence -= 0.1
        return _unit(confidence)

    @staticmethod
    def _form_consistency(form: float) -> float:
        confidence = 0.8
        if 6 <= form <= 8:
            confidence += 0.1
        elif 4 <= form < 6:
            confidence += 0.05
        elif form < 3:
            confidence -= 0.15
        elif form > 9:
            confidence -= 0.05
        return _unit(confidence)

    @staticmethod
    def _flag_status(data: ConfidenceInput) -> float:
        confidence = 1.0
        if data.asset.status_flag == StatusFlag.SEVERE:
            confidence -= 0.3
        elif data.asset.status_flag == StatusFlag.CAUTION:
            confidence -= 0.1

        event = data.flag.event
        if event is not None:
            if event.severity == SeverityTier.CRITICAL:
                confidence -= 0.2
            elif event.severity == SeverityTier.HIGH:
                confidence -= 0.1

        confidence -= data.flag.adjustments.confidence_penalty
        return _unit(confidence)

    @staticmethod
    def _wildcard_detection(wildcard: WildcardAnalysis) -> float:
        confidence = wildcard.confidence
        if wildcard.wildcard_probability > 0.3 and wildcard.confidence < 0.8:
            confidence -= 0.2
        elif wildcard.wildcard_probability < 0.1 and wildcard.confidence > 0.9:
            confidence += 0.1
        return _unit(confidence)

    @staticmethod
    def _threshold_calculation(data: ConfidenceInput) -> float:
        confidence = 0.85
        ownership = data.asset.ownership_pct
        if data.asset.is_special:
            confidence -= 0.2
        if ownership > 40 or ownership < 1:
            confidence -= 0.1

        distance = abs(data.progress - 100)
        if distance < 0.5:
            confidence -= 0.15
        elif distance > 2:
            confidence += 0.1
        return _unit(confidence)

    @staticmethod
    def _data_quality(data: ConfidenceInput) -> float:
        confidence = 0.9
        largest = max(data.threshold.adjusted_rise_threshold, data.threshold.adjusted_fall_threshold)
        ratio = abs(data.net_transfers) / largest
        if ratio > 10:
            confidence -= 0.2
        elif ratio > 5:
            confidence -= 0.1

        if data.forecast.predicted_transfers_in_24h < 0 or data.forecast.predicted_transfers_out_24h < 0:
            confidence -= 0.3
        return _unit(confidence)

    @staticmethod
    def _market_condition(volatility: float) -> float:
        confidence = 0.85
        if volatility > 0.3:
            confidence -= 0.2
        elif volatility > 0.15:
            confidence -= 0.1
        return _unit(confidence)

    @staticmethod
    def _timing(progress: float) -> float:
        confidence = 0.8
        distance = abs(progress - 100)
        if distance > 3:
            confidence += 0.15
        elif distance < 0.5:
            confidence -= 0.3
        return _unit(confidence)

    # -------------------------------------------------------------------------
    # Labels
    # -------------------------------------------------------------------------

    @staticmethod
    def risk_factors(data: ConfidenceInput, factors: ConfidenceFactors) -> List[str]:
        risks = []
        ownership = data.asset.ownership_pct

        if factors.transfer_volume < 0.6:
            risks.append("Low transfer volume reliability")
        if factors.ownership_stability < 0.6:
            risks.append("Unstable ownership patterns")
        if factors.flag_status < 0.7:
            risks.append("Flag status uncertainty")
        if factors.wildcard_detection < 0.7:
            risks.append("Wildcard detection uncertainty")
        if data.asset.is_special:
            risks.append("Special asset exemption possible")
        if ownership > 35:
            risks.append("High ownership reduces predictability")
        if ownership < 2:
            risks.append("Low ownership increases volatility")
        if abs(data.progress - 100) < 1:
            risks.append("Borderline prediction")
        return risks

    @staticmethod
    def explanation(factors: ConfidenceFactors, overall: float) -> str:
        strong = []
        weak = []

        if factors.transfer_volume > 0.8:
            strong.append("strong transfer patterns")
        elif factors.transfer_volume < 0.6:
            weak.append("weak transfer signals")

        if factors.historical_accuracy > 0.9:
            strong.append("excellent model track record")

        if factors.ownership_stability > 0.8:
            strong.append("stable ownership")
        elif factors.ownership_stability < 0.6:
            weak.append("ownership volatility")

        if factors.flag_status < 0.7:
            weak.append("flag uncertainty")
        if factors.wildcard_detection < 0.7:
            weak.append("wildcard interference")

        text = f"{round(overall * 100)}% confidence based on "
        if strong:
            text += ", ".join(strong)
            if weak:
                text += f", but limited by {', '.join(weak)}"
        elif weak:
            text += f"limited confidence due to {', '.join(weak)}"
        else:
            text += "mixed signals from various factors"
        return text + "."

    @staticmethod
    def reliability(overall: float, factors: ConfidenceFactors) -> Reliability:
        if overall >= 0.85 and factors.data_quality > 0.8:
            return Reliability.HIGHLY_RELIABLE
        if overall >= 0.7:
            return Reliability.RELIABLE
        if overall >= 0.55:
            return Reliability.SOMEWHAT_RELIABLE
        return Reliability.UNRELIABLE

    @staticmethod
    def recommended_action(overall: float, progress: float, risks: List[str]) -> str:
        distance = abs(progress - 100)
        if overall >= 0.85 and distance > 2:
            return "High confidence - Act on this prediction"
        if overall >= 0.7 and distance > 1:
            return "Good confidence - Monitor closely and consider acting"
        if overall >= 0.55:
            return "Moderate confidence - Wait for more data"
        if len(risks) > 3:
            return "Low confidence - Too many risk factors, avoid acting"
        return "Low confidence - Monitor only"
