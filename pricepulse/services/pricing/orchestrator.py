"""
PRICEPULSE - Prediction Orchestrator
Phase 3: Per-cycle fan-out and ranked summary assembly

For each evaluation cycle:
1. Select candidate assets from the snapshot
2. Build the shared population context (wildcard, forecast, volatility) once
3. Fan out per-asset evaluation to the thread pool, bounded by a semaphore
4. Rank risers / fallers / stable and attach metadata

A failure while evaluating one asset is logged and that asset skipped.
Only an empty snapshot fails the whole cycle.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from pricepulse.core.config import Settings, get_settings
from pricepulse.core.exceptions import SnapshotUnavailableError
from pricepulse.models.assets import (
    AssetMetrics,
    BootstrapSnapshot,
    MonitoringPriority,
    SeverityTier,
    StatusFlag,
)
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)

from .config import PricingConfig, default_pricing_config
from .confidence_scorer import ConfidenceInput, ConfidenceRecord, ConfidenceScorer
from .flag_tracker import FlagAnalysis, FlagTracker
from .forecast_model import ForecastContext, ForecastModel, ForecastOutput
from .special_assets import SpecialAssetPredicate, default_special_rule
from .threshold_calculator import RealtimeAdjustment, ThresholdCalculator, ThresholdResult
from .wildcard_filter import WildcardAnalysis, WildcardContext, WildcardFilter

logger = logging.getLogger(__name__)


class ChangeTiming:
    """Timing labels for an expected price change."""
    TONIGHT = "Tonight"
    SOON = "Soon"
    TOMORROW = "Tomorrow"
    UNLIKELY = "Unlikely"


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class CycleContext:
    """Immutable population-level context shared by every asset in a cycle."""
    cycle: int
    wildcard: WildcardContext
    forecast: ForecastContext
    market_volatility: float


@dataclass
class PredictionRecord:
    """Assembled prediction for one asset."""
    asset_id: int
    name: str
    team_name: str
    position: str
    current_price: float
    ownership_pct: float

    progress: float
    prediction: float
    hourly_change: float
    change_timing: str
    target_reached: bool
    change_probability: float

    net_transfers: int
    valid_transfers: Dict[str, int]

    threshold: ThresholdResult
    realtime: RealtimeAdjustment
    forecast: ForecastOutput
    wildcard: WildcardAnalysis
    flag: FlagAnalysis
    confidence: ConfidenceRecord

    special_notes: List[str] = field(default_factory=list)
    monitoring_priority: MonitoringPriority = MonitoringPriority.MEDIUM
    algorithm_version: str = ""

    @property
    def distance(self) -> float:
        return abs(self.progress - 100)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'name': self.name,
            'team_name': self.team_name,
            'position': self.position,
            'current_price': self.current_price,
            'ownership_pct': self.ownership_pct,
            'progress': round(self.progress, 2),
            'prediction': round(self.prediction, 2),
            'hourly_change': round(self.hourly_change, 3),
            'change_timing': self.change_timing,
            'target_reached': self.target_reached,
            'change_probability': self.change_probability,
            'net_transfers': self.net_transfers,
            'valid_transfers': dict(self.valid_transfers),
            'thresholds': self.threshold.to_dict(),
            'realtime': self.realtime.to_dict(),
            'forecast': self.forecast.to_dict(),
            'wildcard': self.wildcard.to_dict(),
            'flag': self.flag.to_dict(),
            'confidence': self.confidence.to_dict(),
            'special_notes': list(self.special_notes),
            'monitoring_priority': self.monitoring_priority.value,
            'algorithm_version': self.algorithm_version,
        }


@dataclass
class PredictionSummary:
    """Ranked output of one evaluation cycle."""
    risers: List[PredictionRecord]
    fallers: List[PredictionRecord]
    stable: List[PredictionRecord]
    metadata: Dict[str, Any]
    summary: Dict[str, int]
    skipped: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'predictions': {
                'risers': [r.to_dict() for r in self.risers],
                'fallers': [r.to_dict() for r in self.fallers],
                'stable': [r.to_dict() for r in self.stable],
            },
            'metadata': dict(self.metadata),
            'summary': dict(self.summary),
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class PredictionOrchestrator:
    """
    Coordinates one prediction cycle over an immutable snapshot.

    Components are injected; defaults are built from the pricing config and
    a shared historical data provider.
    """

    def __init__(
        self,
        config: Optional[PricingConfig] = None,
        history: Optional[HistoricalDataProvider] = None,
        special_predicate: Optional[SpecialAssetPredicate] = None,
        settings: Optional[Settings] = None,
        threshold_calculator: Optional[ThresholdCalculator] = None,
        wildcard_filter: Optional[WildcardFilter] = None,
        flag_tracker: Optional[FlagTracker] = None,
        forecast_model: Optional[ForecastModel] = None,
        confidence_scorer: Optional[ConfidenceScorer] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config or default_pricing_config
        self.history = history or DefaultHistoricalDataProvider()
        self.special_predicate = special_predicate or default_special_rule

        population = self.config.thresholds.total_population
        self.threshold_calculator = threshold_calculator or ThresholdCalculator(self.config.thresholds)
        self.wildcard_filter = wildcard_filter or WildcardFilter(
            self.config.wildcard, population, self.history
        )
        self.flag_tracker = flag_tracker or FlagTracker(
            self.config.flags, self.config.thresholds.flag_multipliers, population, self.history
        )
        self.forecast_model = forecast_model or ForecastModel(
            self.config.forecast, population, self.history
        )
        self.confidence_scorer = confidence_scorer or ConfidenceScorer(
            self.config.confidence, population, self.history
        )

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    async def run_cycle(
        self,
        snapshot: BootstrapSnapshot,
        include_all: bool = False,
        now: Optional[datetime] = None,
    ) -> PredictionSummary:
        """
        Evaluate every candidate asset and assemble the ranked summary.

        Args:
            snapshot: Immutable full-population snapshot
            include_all: Widen candidate selection to almost every asset
            now: Evaluation instant; defaults to the current UTC time

        Returns:
            PredictionSummary

        Raises:
            SnapshotUnavailableError: If the snapshot holds no assets
        """
        if snapshot is None or snapshot.is_empty:
            raise SnapshotUnavailableError("Snapshot is empty; nothing to predict")

        now = now or datetime.now(timezone.utc)
        candidates = self.select_candidates(snapshot, include_all)
        context = self.build_context(snapshot)

        logger.info(
            f"Starting prediction cycle {snapshot.current_cycle}: "
            f"{len(candidates)} candidates of {len(snapshot.assets)} assets"
        )

        semaphore = asyncio.Semaphore(self.settings.MAX_CONCURRENT_EVALUATIONS)
        loop = asyncio.get_event_loop()

        async def evaluate(asset: AssetMetrics) -> PredictionRecord:
            # Run in thread pool to keep the event loop responsive
            async with semaphore:
                return await loop.run_in_executor(
                    None, self.evaluate_asset, asset, snapshot, context, now
                )

        results = await asyncio.gather(
            *(evaluate(asset) for asset in candidates),
            return_exceptions=True,
        )

        records: List[PredictionRecord] = []
        skipped: List[int] = []
        for asset, result in zip(candidates, results):
            if isinstance(result, Exception):
                logger.warning(f"Skipping asset {asset.asset_id} ({asset.name}): {result}", exc_info=result)
                skipped.append(asset.asset_id)
                continue
            records.append(result)

        summary = self.summarize(records, now)
        summary.skipped = skipped

        logger.info(
            f"Prediction cycle {snapshot.current_cycle} complete: {len(records)} predictions, "
            f"{summary.summary['predicted_rises']} rises, {summary.summary['predicted_falls']} falls, "
            f"{len(skipped)} skipped"
        )
        return summary

    def select_candidates(self, snapshot: BootstrapSnapshot, include_all: bool = False) -> List[AssetMetrics]:
        """Assets worth evaluating this cycle."""
        s = self.settings
        if include_all:
            return [a for a in snapshot.assets if a.ownership_pct > s.INCLUDE_ALL_MIN_OWNERSHIP]

        return [
            a for a in snapshot.assets
            if a.total_activity > s.CANDIDATE_MIN_ACTIVITY
            or a.ownership_pct > s.CANDIDATE_MIN_OWNERSHIP
            or a.cost_change_event != 0
            or a.status_flag != StatusFlag.NONE
            or not a.has_known_status
        ]

    def build_context(self, snapshot: BootstrapSnapshot) -> CycleContext:
        """Build the shared population context exactly once per cycle."""
        forecast_context = self.forecast_model.build_context(
            snapshot.recent_patterns, snapshot.current_cycle, snapshot.hours_until_deadline
        )
        volatility = (
            forecast_context.market_volatility if snapshot.recent_patterns
            else self.config.confidence.default_market_volatility
        )
        return CycleContext(
            cycle=snapshot.current_cycle,
            wildcard=self.wildcard_filter.build_context(snapshot.assets, snapshot.current_cycle),
            forecast=forecast_context,
            market_volatility=volatility,
        )

    # -------------------------------------------------------------------------
    # Per-asset evaluation
    # -------------------------------------------------------------------------

    def evaluate_asset(
        self,
        asset: AssetMetrics,
        snapshot: BootstrapSnapshot,
        context: CycleContext,
        now: datetime,
    ) -> PredictionRecord:
        """
        Produce the prediction record for one asset.

        Raises:
            AssetValidationError: If the asset carries invalid values
        """
        asset.validate()
        if not asset.is_special and self.special_predicate(asset):
            asset = replace(asset, is_special=True)

        p = self.config.prediction

        threshold = self.threshold_calculator.calculate(asset, context.cycle)
        wildcard = self.wildcard_filter.analyze(asset, context.wildcard)
        flag = self.flag_tracker.analyze(asset, now)
        forecast = self.forecast_model.forecast(asset, context.forecast)

        net = wildcard.net_valid_transfers if wildcard is not None else asset.net_transfers
        realtime = self._realtime_adjustment(asset, net)
        progress, prediction, hourly = self._core_progress(net, threshold, realtime.adjustment_factor)

        factor = forecast.threshold_adjustment_factor
        progress = self._clamp_progress(100 + (progress - 100) * factor)
        prediction = self._clamp_progress(100 + (prediction - 100) * factor)
        hourly = max(-p.max_hourly_change, min(p.max_hourly_change, hourly))

        # Lock dampening acts on the clamped deviation
        if flag.adjustments.price_change_locked:
            progress = 100 + (progress - 100) * p.lock_dampening
            prediction = 100 + (prediction - 100) * p.lock_dampening
            hourly = 0.0

        confidence = self.confidence_scorer.score(ConfidenceInput(
            asset=asset,
            progress=progress,
            net_transfers=asset.net_transfers,
            threshold=threshold,
            wildcard=wildcard,
            flag=flag,
            forecast=forecast,
            market_volatility=context.market_volatility,
        ))

        if asset.is_special:
            progress = 100 + (progress - 100) * p.special_progress_dampening
            prediction = 100 + (prediction - 100) * p.special_progress_dampening
            hourly *= p.special_hourly_dampening

        target_reached = (progress > p.rise_target and net > 0) or (progress < p.fall_target and net < 0)

        return PredictionRecord(
            asset_id=asset.asset_id,
            name=asset.name,
            team_name=snapshot.team_name(asset.team_id),
            position=snapshot.position_name(asset.position),
            current_price=asset.price,
            ownership_pct=asset.ownership_pct,
            progress=progress,
            prediction=prediction,
            hourly_change=hourly,
            change_timing=self._change_timing(progress, target_reached),
            target_reached=target_reached,
            change_probability=self._change_probability(progress, net),
            net_transfers=asset.net_transfers,
            valid_transfers={
                'in': wildcard.valid_transfers_in,
                'out': wildcard.valid_transfers_out,
                'net': wildcard.net_valid_transfers,
            },
            threshold=threshold,
            realtime=realtime,
            forecast=forecast,
            wildcard=wildcard,
            flag=flag,
            confidence=confidence,
            special_notes=self._special_notes(asset, wildcard, flag, confidence),
            monitoring_priority=self._monitoring_priority(flag, confidence, progress),
            algorithm_version=self.settings.ALGORITHM_VERSION,
        )

    def _realtime_adjustment(self, asset: AssetMetrics, net: int) -> RealtimeAdjustment:
        """Velocity nudge from the last day's counts, estimated when upstream omits them."""
        share = self.config.prediction.estimated_24h_share
        in_24h = asset.transfers_in_24h
        if in_24h is None:
            in_24h = int(asset.transfers_in_event * share)
        out_24h = asset.transfers_out_24h
        if out_24h is None:
            out_24h = int(asset.transfers_out_event * share)
        return self.threshold_calculator.realtime_adjustment(
            net, in_24h, asset.transfers_in_event, out_24h, asset.transfers_out_event
        )

    def _core_progress(
        self, net: int, threshold: ThresholdResult, threshold_factor: float = 1.0
    ) -> Tuple[float, float, float]:
        p = self.config.prediction
        if net > 0:
            ratio = net / (threshold.adjusted_rise_threshold * threshold_factor)
            progress = 100 + ratio * p.progress_scale
            return progress, progress + ratio * p.prediction_scale, min(p.max_hourly_change, ratio * p.hourly_scale)
        if net < 0:
            ratio = abs(net) / (threshold.adjusted_fall_threshold * threshold_factor)
            progress = 100 - ratio * p.progress_scale
            return progress, progress - ratio * p.prediction_scale, -min(p.max_hourly_change, ratio * p.hourly_scale)
        return 100.0, 100.0, 0.0

    def _clamp_progress(self, value: float) -> float:
        p = self.config.prediction
        return max(p.min_progress, min(p.max_progress, value))

    def _change_probability(self, progress: float, net: int) -> float:
        p = self.config.prediction
        probability = min(1.0, abs(progress - 100) / p.probability_distance_scale)
        if abs(net) > p.high_volume_net:
            probability = min(1.0, probability * p.high_volume_boost)
        return round(probability, 2)

    def _change_timing(self, progress: float, target_reached: bool) -> str:
        p = self.config.prediction
        if target_reached:
            return ChangeTiming.TONIGHT
        distance = abs(progress - 100)
        if distance > p.soon_distance:
            return ChangeTiming.SOON
        if distance > p.tomorrow_distance:
            return ChangeTiming.TOMORROW
        return ChangeTiming.UNLIKELY

    def _special_notes(self, asset: AssetMetrics, wildcard: WildcardAnalysis,
                       flag: FlagAnalysis, confidence: ConfidenceRecord) -> List[str]:
        p = self.config.prediction
        notes = []
        if wildcard.wildcard_probability > p.wildcard_note_probability:
            notes.append("High wildcard interference detected")
        if flag.event is not None and flag.event.severity == SeverityTier.CRITICAL:
            notes.append("Critical flag change impact")
        if asset.is_special:
            notes.append("Special asset - may have exemptions")
        if confidence.overall < p.low_confidence_note:
            notes.append("Low confidence prediction")
        if asset.ownership_pct > p.high_ownership_note:
            notes.append("Very high ownership - harder to predict")
        return notes

    def _monitoring_priority(self, flag: FlagAnalysis, confidence: ConfidenceRecord,
                             progress: float) -> MonitoringPriority:
        p = self.config.prediction
        if confidence.overall > p.high_priority_confidence and abs(progress - 100) > p.high_priority_distance:
            by_confidence = MonitoringPriority.HIGH
        elif confidence.overall < p.low_priority_confidence:
            by_confidence = MonitoringPriority.LOW
        else:
            by_confidence = MonitoringPriority.MEDIUM
        return max(by_confidence, flag.monitoring_priority, key=lambda m: m.rank)

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    def summarize(self, records: List[PredictionRecord], now: datetime) -> PredictionSummary:
        """Rank records into buckets and attach metadata."""
        p = self.config.prediction
        s = self.settings

        risers = sorted(
            (r for r in records if r.progress > p.rise_target),
            key=lambda r: (-r.progress, r.asset_id),
        )[:s.MAX_RISERS]
        fallers = sorted(
            (r for r in records if r.progress < p.fall_target),
            key=lambda r: (r.progress, r.asset_id),
        )[:s.MAX_FALLERS]
        stable = sorted(
            (r for r in records if p.fall_target <= r.progress <= p.rise_target),
            key=lambda r: (-r.distance, r.asset_id),
        )[:s.MAX_STABLE]

        scores = [r.confidence.overall for r in records]
        metadata = {
            'algorithm_version': s.ALGORITHM_VERSION,
            'accuracy_last_week': self.history.accuracy_last_week(),
            'total_predictions': len(records),
            'confidence_average': round(float(np.mean(scores)), 4) if scores else 0.0,
            'last_updated': now.isoformat(),
            'next_update': (now + timedelta(minutes=s.UPDATE_INTERVAL_MINUTES)).isoformat(),
        }
        summary = {
            'predicted_rises': sum(1 for r in records if r.progress > p.rise_target),
            'predicted_falls': sum(1 for r in records if r.progress < p.fall_target),
            'high_confidence_predictions': sum(1 for r in records if r.confidence.overall >= p.high_confidence),
            'special_cases': sum(1 for r in records if r.special_notes),
        }

        return PredictionSummary(
            risers=risers,
            fallers=fallers,
            stable=stable,
            metadata=metadata,
            summary=summary,
        )
