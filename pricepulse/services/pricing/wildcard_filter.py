"""
PRICEPULSE - Wildcard Noise Filter
Phase 1: Bulk reset detection and transfer denoising

Managers who reset their whole squad in one go produce transfer volume
that says nothing about sentiment toward an individual asset. This module
scores how much of an asset's activity looks like reset noise and
discounts the raw transfer counts accordingly.

Population-level signals (team spread, aggregate fingerprint, timing) are
built once per cycle into a WildcardContext and shared read-only across
every per-asset analysis.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from pricepulse.models.assets import AssetMetrics
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
    WildcardFingerprint,
)

from .config import WildcardWeights, default_pricing_config

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class IndicatorType(str, Enum):
    """Wildcard pattern indicator types."""
    MASS_TRANSFER = "mass_transfer"
    OWNERSHIP_PATTERN = "ownership_pattern"
    TIMING_PATTERN = "timing_pattern"
    TEAM_SPREAD = "team_spread"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class WildcardIndicator:
    """One pattern indicator with strength in [0, 1]."""
    type: IndicatorType
    strength: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'strength': round(self.strength, 3),
            'description': self.description,
        }


@dataclass(frozen=True)
class HistoricalMatch:
    """Best match against the known wildcard fingerprints."""
    score: float = 0.0
    confidence: float = 0.0
    cycle: Optional[int] = None


@dataclass(frozen=True)
class WildcardContext:
    """Population-level wildcard signals for one cycle."""
    cycle: int
    mean_activity: float
    total_transfers: int
    unique_assets: int
    teams_affected: int
    team_spread: WildcardIndicator
    timing: WildcardIndicator
    historical_match: HistoricalMatch


@dataclass(frozen=True)
class WildcardAnalysis:
    """Reset-noise estimate and denoised transfer counts for one asset."""
    asset_id: int
    wildcard_probability: float
    valid_transfers_in: int
    valid_transfers_out: int
    net_valid_transfers: int
    confidence: float
    indicators: List[WildcardIndicator] = field(default_factory=list)
    detection_method: str = "pattern_analysis"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'probability': round(self.wildcard_probability, 3),
            'valid_transfers_in': self.valid_transfers_in,
            'valid_transfers_out': self.valid_transfers_out,
            'net_valid_transfers': self.net_valid_transfers,
            'confidence': round(self.confidence, 3),
            'detection_method': self.detection_method,
            'indicators': [i.to_dict() for i in self.indicators],
        }


@dataclass(frozen=True)
class CarryoverEstimate:
    """Share of cycle transfer intent expected to roll into the next cycle."""
    carryover_percentage: float
    confidence: float


# =============================================================================
# WILDCARD FILTER
# =============================================================================

class WildcardFilter:
    """
    Scores reset-noise probability and denoises transfer counts.

    Usage:
        wf = WildcardFilter()
        ctx = wf.build_context(snapshot.assets, snapshot.current_cycle)
        analysis = wf.analyze(asset, ctx)
    """

    def __init__(
        self,
        weights: Optional[WildcardWeights] = None,
        total_population: Optional[int] = None,
        history: Optional[HistoricalDataProvider] = None,
    ):
        self.weights = weights or default_pricing_config.wildcard
        self.total_population = total_population or default_pricing_config.thresholds.total_population
        self.history = history or DefaultHistoricalDataProvider()

    # -------------------------------------------------------------------------
    # Population context
    # -------------------------------------------------------------------------

    def build_context(self, assets: Sequence[AssetMetrics], cycle: int) -> WildcardContext:
        """Compute the shared population-level signals for a cycle."""
        activity = np.array([a.total_activity for a in assets], dtype=float)
        mean_activity = float(activity.mean()) if activity.size else 0.0
        total_transfers = int(activity.sum()) if activity.size else 0
        unique_assets = int((activity > 0).sum()) if activity.size else 0

        teams = {a.team_id for a in assets if a.total_activity > 0}
        spread = min(1.0, len(teams) / self.weights.team_count)
        team_indicator = WildcardIndicator(
            type=IndicatorType.TEAM_SPREAD,
            strength=spread,
            description=f"Transfers across {len(teams)} teams",
        )

        match = self._match_history(total_transfers, unique_assets, spread)

        logger.debug(
            f"Wildcard context cycle {cycle}: {total_transfers} transfers over "
            f"{unique_assets} assets, {len(teams)} teams, match {match.score:.2f}"
        )

        return WildcardContext(
            cycle=cycle,
            mean_activity=mean_activity,
            total_transfers=total_transfers,
            unique_assets=unique_assets,
            teams_affected=len(teams),
            team_spread=team_indicator,
            timing=self._timing_indicator(cycle),
            historical_match=match,
        )

    def _timing_indicator(self, cycle: int) -> WildcardIndicator:
        w = self.weights
        strength = w.timing_base
        notes = []

        if cycle in w.wildcard_cycles:
            strength += w.wildcard_cycle_bonus
            notes.append("common wildcard cycle")
        if cycle in w.break_cycles:
            strength += w.break_cycle_bonus
            notes.append("break period")

        lo, hi = w.midseason_window
        if cycle <= w.early_season_last_cycle:
            strength += w.early_season_bonus
        elif lo <= cycle <= hi:
            strength += w.midseason_bonus

        suffix = f" ({', '.join(notes)})" if notes else ""
        return WildcardIndicator(
            type=IndicatorType.TIMING_PATTERN,
            strength=min(1.0, strength),
            description=f"Cycle {cycle}{suffix}",
        )

    def _match_history(self, total_transfers: int, unique_assets: int,
                       team_spread: float) -> HistoricalMatch:
        best = HistoricalMatch()
        for fp in self.history.wildcard_fingerprints():
            similarity = self._similarity(total_transfers, unique_assets, team_spread, fp)
            if similarity > best.score:
                best = HistoricalMatch(score=similarity, confidence=fp.confidence, cycle=fp.cycle)
        return best

    @staticmethod
    def _similarity(total_transfers: int, unique_assets: int, team_spread: float,
                    fp: WildcardFingerprint) -> float:
        def closeness(a: float, b: float) -> float:
            denom = max(a, b)
            if denom <= 0:
                return 1.0
            return 1.0 - abs(a - b) / denom

        return (
            closeness(total_transfers, fp.total_transfers)
            + closeness(unique_assets, fp.unique_assets)
            + (1.0 - abs(team_spread - fp.team_spread))
        ) / 3

    # -------------------------------------------------------------------------
    # Per-asset analysis
    # -------------------------------------------------------------------------

    def analyze(self, asset: AssetMetrics, context: WildcardContext) -> WildcardAnalysis:
        """
        Estimate reset noise for one asset.

        Args:
            asset: Asset metrics for this cycle
            context: Shared population context from build_context()

        Returns:
            WildcardAnalysis with probability and valid transfer counts
        """
        w = self.weights
        indicators = [
            self._mass_transfer_indicator(asset, context),
            self._ownership_indicator(asset),
            context.timing,
            context.team_spread,
        ]
        match = context.historical_match

        probability = (
            indicators[0].strength * w.mass_transfer
            + indicators[1].strength * w.ownership_pattern
            + indicators[2].strength * w.timing_pattern
            + indicators[3].strength * w.team_spread
            + match.score * match.confidence * w.historical_match
        )
        probability = max(0.0, min(1.0, probability))

        keep = 1.0 - probability * w.max_discount
        valid_in = int(round(asset.transfers_in_event * keep))
        valid_out = int(round(asset.transfers_out_event * keep))

        mean_strength = float(np.mean([i.strength for i in indicators]))
        confidence = (mean_strength + match.score * match.confidence) / 2
        if asset.ownership_pct < w.low_ownership_cutoff:
            confidence -= w.low_ownership_penalty
        confidence = max(0.0, min(1.0, confidence))

        return WildcardAnalysis(
            asset_id=asset.asset_id,
            wildcard_probability=probability,
            valid_transfers_in=valid_in,
            valid_transfers_out=valid_out,
            net_valid_transfers=valid_in - valid_out,
            confidence=confidence,
            indicators=indicators,
        )

    def analyze_batch(self, assets: Sequence[AssetMetrics], cycle: int) -> Dict[int, WildcardAnalysis]:
        """Build the context once and analyze every asset against it."""
        context = self.build_context(assets, cycle)
        return {a.asset_id: self.analyze(a, context) for a in assets}

    def _mass_transfer_indicator(self, asset: AssetMetrics, context: WildcardContext) -> WildcardIndicator:
        w = self.weights
        ratio = asset.total_activity / max(context.mean_activity, 1.0)
        strength = max(0.0, min(1.0, (ratio - w.mass_ratio_offset) / w.mass_ratio_scale))
        return WildcardIndicator(
            type=IndicatorType.MASS_TRANSFER,
            strength=strength,
            description=f"Transfer volume {ratio:.1f}x average ({asset.total_activity:,} transfers)",
        )

    def _ownership_indicator(self, asset: AssetMetrics) -> WildcardIndicator:
        w = self.weights
        weight = w.ownership_weight(asset.ownership_pct)
        expected = asset.ownership_fraction * self.total_population * w.expected_activity_rate
        disproportion = asset.total_activity / max(expected, 1.0)
        strength = weight * min(1.0, disproportion / w.disproportion_scale)
        return WildcardIndicator(
            type=IndicatorType.OWNERSHIP_PATTERN,
            strength=strength,
            description=f"Ownership {asset.ownership_pct:.1f}% with {disproportion:.1f}x expected transfers",
        )

    # -------------------------------------------------------------------------
    # Carryover
    # -------------------------------------------------------------------------

    def predict_carryover(self, assets: Sequence[AssetMetrics], cycle_status: str) -> CarryoverEstimate:
        """
        Estimate how much transfer intent carries into the next cycle.

        Args:
            assets: Full population for the cycle
            cycle_status: 'upcoming', 'started' or 'finished'
        """
        w = self.weights
        carryover = w.carryover_base
        if cycle_status == 'finished':
            carryover = w.carryover_finished
        elif cycle_status == 'started':
            carryover = w.carryover_started

        total = sum(a.total_activity for a in assets)
        if total > w.weekly_average_transfers * w.surge_ratio:
            carryover += w.surge_bonus

        return CarryoverEstimate(
            carryover_percentage=min(w.carryover_cap, carryover),
            confidence=w.carryover_confidence,
        )
