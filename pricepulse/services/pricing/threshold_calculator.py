"""
PRICEPULSE - Dynamic Threshold Calculator
Phase 1: Per-asset rise/fall transfer thresholds

Estimates how many net transfers an asset needs before its price moves.
Base thresholds scale with ownership; six independent multipliers then
adjust them for season progress, ownership band, form, price tier,
availability flag and special-asset status.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pricepulse.core.exceptions import AssetValidationError
from pricepulse.models.assets import AssetMetrics, StatusFlag

from .config import ThresholdConstants, default_pricing_config

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class ThresholdMultipliers:
    """The six independent threshold multipliers."""
    cycle_decay: float
    ownership: float
    form: float
    price_tier: float
    flag: float
    special: float

    @property
    def rise(self) -> float:
        return self.cycle_decay * self.ownership * self.form * self.price_tier * self.special

    @property
    def fall(self) -> float:
        return self.flag * self.ownership * self.price_tier * self.special

    def to_dict(self) -> Dict[str, float]:
        return {
            'cycle_decay': round(self.cycle_decay, 4),
            'ownership': self.ownership,
            'form': round(self.form, 4),
            'price_tier': self.price_tier,
            'flag': self.flag,
            'special': self.special,
        }


@dataclass(frozen=True)
class ThresholdResult:
    """Base and adjusted thresholds for one asset."""
    asset_id: int
    base_rise_threshold: float
    base_fall_threshold: float
    multipliers: ThresholdMultipliers
    adjusted_rise_threshold: float
    adjusted_fall_threshold: float
    confidence: float
    floor_applied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base_rise': round(self.base_rise_threshold),
            'base_fall': round(self.base_fall_threshold),
            'adjusted_rise': self.adjusted_rise_threshold,
            'adjusted_fall': self.adjusted_fall_threshold,
            'multipliers': self.multipliers.to_dict(),
            'confidence': round(self.confidence, 3),
        }


@dataclass(frozen=True)
class RealtimeAdjustment:
    """Intra-cycle threshold nudge from transfer velocity and news."""
    adjustment_factor: float
    reason: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'adjustment_factor': round(self.adjustment_factor, 3),
            'reason': self.reason,
            'confidence': self.confidence,
        }


# =============================================================================
# THRESHOLD CALCULATOR
# =============================================================================

class ThresholdCalculator:
    """
    Computes dynamic rise/fall thresholds.

    Stateless: every call depends only on the asset, the cycle index and
    the constants supplied at construction.
    """

    def __init__(self, constants: Optional[ThresholdConstants] = None):
        self.constants = constants or default_pricing_config.thresholds

    def calculate(self, asset: AssetMetrics, cycle: int) -> ThresholdResult:
        """
        Calculate thresholds for a single asset.

        Args:
            asset: Asset metrics for this cycle
            cycle: Current cycle index (1-based)

        Returns:
            ThresholdResult with base and adjusted thresholds

        Raises:
            AssetValidationError: If ownership lies outside [0, 100]
        """
        if not 0.0 <= asset.ownership_pct <= 100.0:
            raise AssetValidationError('ownership_pct', asset.ownership_pct)

        c = self.constants
        owners = asset.ownership_fraction * c.total_population

        base_rise = math.sqrt(owners) * c.rise_base_multiplier
        base_fall = owners * c.fall_base_fraction

        multipliers = ThresholdMultipliers(
            cycle_decay=self._cycle_decay(cycle),
            ownership=c.ownership_multiplier(asset.ownership_pct),
            form=self._form_multiplier(asset.form),
            price_tier=c.price_tier_multipliers[asset.price_tier],
            flag=c.flag_multipliers[asset.status_flag],
            special=self._special_multiplier(asset),
        )

        rise = round(base_rise * multipliers.rise)
        fall = round(base_fall * multipliers.fall)

        floor_applied = rise < c.min_rise_threshold or fall < c.min_fall_threshold
        rise = max(rise, c.min_rise_threshold)
        fall = max(fall, c.min_fall_threshold)
        if floor_applied:
            logger.debug(f"Threshold floor applied for asset {asset.asset_id} "
                         f"(ownership {asset.ownership_pct}%)")

        return ThresholdResult(
            asset_id=asset.asset_id,
            base_rise_threshold=base_rise,
            base_fall_threshold=base_fall,
            multipliers=multipliers,
            adjusted_rise_threshold=float(rise),
            adjusted_fall_threshold=float(fall),
            confidence=self._confidence(asset, multipliers, floor_applied),
            floor_applied=floor_applied,
        )

    def calculate_batch(self, assets: List[AssetMetrics], cycle: int) -> Dict[int, ThresholdResult]:
        """Calculate thresholds for many assets, skipping invalid ones."""
        results = {}
        for asset in assets:
            try:
                results[asset.asset_id] = self.calculate(asset, cycle)
            except AssetValidationError as e:
                logger.warning(f"Skipping asset {asset.asset_id}: {e}")
        return results

    def realtime_adjustment(
        self,
        net_transfers: int,
        transfers_in_24h: int,
        transfers_in_event: int,
        transfers_out_24h: int,
        transfers_out_event: int,
        news_impact: Optional[str] = None,
    ) -> RealtimeAdjustment:
        """
        Nudge thresholds when the last day's activity runs ahead of the cycle.

        Args:
            news_impact: 'positive', 'negative' or None
        """
        c = self.constants
        factor = 1.0
        reason = "No adjustments needed"
        confidence = 0.9

        if net_transfers > 0:
            velocity = transfers_in_24h / max(transfers_in_event, 1)
            if velocity > c.velocity_trigger:
                factor = c.accelerating_factor
                reason = "High transfer velocity detected"
                confidence = 0.75
        else:
            velocity = transfers_out_24h / max(transfers_out_event, 1)
            if velocity > c.velocity_trigger:
                factor = c.decelerating_factor
                reason = "Transfer velocity declining"
                confidence = 0.75

        if news_impact == 'positive':
            factor *= c.positive_news_factor
            reason += " + Positive news impact"
        elif news_impact == 'negative':
            factor *= c.negative_news_factor
            reason += " + Negative news impact"

        return RealtimeAdjustment(adjustment_factor=factor, reason=reason, confidence=confidence)

    # -------------------------------------------------------------------------
    # Multipliers
    # -------------------------------------------------------------------------

    def _cycle_decay(self, cycle: int) -> float:
        return max(self.constants.cycle_decay_floor, 1.0 - cycle * self.constants.cycle_decay_rate)

    def _form_multiplier(self, form: float) -> float:
        c = self.constants
        raw = 1.0 - (form - c.form_mean) * c.form_impact * 0.1
        return max(c.form_multiplier_min, min(c.form_multiplier_max, raw))

    def _special_multiplier(self, asset: AssetMetrics) -> float:
        c = self.constants
        if asset.is_special:
            return c.special_multiplier
        if asset.cost > c.high_profile_cost and asset.ownership_pct > c.high_profile_ownership:
            return c.high_profile_multiplier
        return 1.0

    def _confidence(self, asset: AssetMetrics, multipliers: ThresholdMultipliers,
                    floor_applied: bool) -> float:
        c = self.constants
        confidence = c.base_confidence

        if asset.is_special:
            confidence -= c.special_penalty
        if asset.status_flag != StatusFlag.NONE:
            confidence -= c.flag_penalty
        if asset.ownership_pct > c.extreme_ownership_high or asset.ownership_pct < c.extreme_ownership_low:
            confidence -= c.extreme_ownership_penalty
        if floor_applied:
            confidence -= c.floor_penalty
        if 0.9 < multipliers.form < 1.1:
            confidence += c.neutral_form_bonus

        return max(c.min_confidence, min(c.max_confidence, confidence))
