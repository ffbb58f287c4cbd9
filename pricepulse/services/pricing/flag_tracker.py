"""
PRICEPULSE - Flag Transition Tracker
Phase 1: Availability flag state machine and lock windows

Tracks transitions between the three availability flags. A transition
opens a lock window during which recent transfer signal is considered
invalid, shifts rise/fall probabilities and lowers prediction confidence.

Transition rules come from an exhaustive FlagTransition -> FlagRule table,
so every directed edge between distinct flags has an explicit rule.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pricepulse.models.assets import (
    AssetMetrics,
    FlagTransition,
    MonitoringPriority,
    SeverityTier,
    StatusFlag,
)
from pricepulse.services.history.provider import (
    DefaultHistoricalDataProvider,
    HistoricalDataProvider,
)

from .config import FlagRule, FlagRules, default_pricing_config

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class FlagEvent:
    """A detected flag transition. Never mutated after creation."""
    asset_id: int
    transition: FlagTransition
    change_timestamp: datetime
    lock_duration_hours: float
    reset_counters: bool
    severity: SeverityTier
    expected_transfer_impact: float
    threshold_adjustment_factor: float

    @property
    def from_flag(self) -> StatusFlag:
        return self.transition.from_flag

    @property
    def to_flag(self) -> StatusFlag:
        return self.transition.to_flag

    @property
    def lock_expires_at(self) -> datetime:
        return self.change_timestamp + timedelta(hours=self.lock_duration_hours)

    def is_active(self, now: datetime) -> bool:
        return now < self.lock_expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'from_flag': self.from_flag.value,
            'to_flag': self.to_flag.value,
            'change_timestamp': self.change_timestamp.isoformat(),
            'lock_duration_hours': self.lock_duration_hours,
            'reset_counters': self.reset_counters,
            'severity': self.severity.value,
            'expected_transfer_impact': round(self.expected_transfer_impact),
        }


@dataclass(frozen=True)
class Adjustments:
    """Prediction adjustments derived from a flag event, or defaults."""
    price_change_locked: bool = False
    lock_expires_at: Optional[datetime] = None
    transfer_count_reset: bool = False
    threshold_multiplier: float = 1.0
    fall_probability_increase: float = 0.0
    rise_probability_decrease: float = 0.0
    confidence_penalty: float = 0.0


@dataclass(frozen=True)
class ProjectedImpact:
    """Expected transfer flow over the next 24 hours."""
    expected_transfers_out_24h: float
    expected_transfers_in_24h: float
    price_change_probability: float
    timing_estimate: str


@dataclass(frozen=True)
class FlagAnalysis:
    """Complete flag analysis for one asset."""
    asset_id: int
    current_flag: StatusFlag
    event: Optional[FlagEvent]
    adjustments: Adjustments
    projected_impact: ProjectedImpact
    monitoring_priority: MonitoringPriority

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_flag': self.current_flag.value,
            'event': self.event.to_dict() if self.event else None,
            'price_change_locked': self.adjustments.price_change_locked,
            'lock_expires_at': (
                self.adjustments.lock_expires_at.isoformat()
                if self.adjustments.lock_expires_at else None
            ),
            'threshold_multiplier': self.adjustments.threshold_multiplier,
            'confidence_penalty': self.adjustments.confidence_penalty,
            'price_change_probability': round(self.projected_impact.price_change_probability, 3),
            'timing_estimate': self.projected_impact.timing_estimate,
            'monitoring_priority': self.monitoring_priority.value,
        }


@dataclass(frozen=True)
class LockStatus:
    """Current lock state of an asset."""
    is_locked: bool
    lock_expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    remaining_hours: Optional[float] = None


@dataclass(frozen=True)
class FlagObservation:
    """Observed outcome of a past transition, used to retune the rules."""
    transition: FlagTransition
    actual_lock_hours: float
    actual_reset: bool
    prediction_accuracy: float


@dataclass
class RuleUpdate:
    """Result of retuning the rule table."""
    rules: FlagRules
    accuracy_improvement: float
    changed: List[str] = field(default_factory=list)


# =============================================================================
# FLAG TRACKER
# =============================================================================

class FlagTracker:
    """
    Flag transition state machine.

    Pure with respect to its inputs: `now` is always passed in, so the same
    asset evaluated at the same instant yields the same analysis.
    """

    PRIORITY_CUTOFFS = ((7, MonitoringPriority.CRITICAL),
                        (5, MonitoringPriority.HIGH),
                        (3, MonitoringPriority.MEDIUM))

    def __init__(
        self,
        rules: Optional[FlagRules] = None,
        flag_multipliers: Optional[Dict[StatusFlag, float]] = None,
        total_population: Optional[int] = None,
        history: Optional[HistoricalDataProvider] = None,
    ):
        self.rules = rules or default_pricing_config.flags
        self.flag_multipliers = flag_multipliers or default_pricing_config.thresholds.flag_multipliers
        self.total_population = total_population or default_pricing_config.thresholds.total_population
        self.history = history or DefaultHistoricalDataProvider()
        self._impacts = self.history.flag_transition_impacts()

    def analyze(self, asset: AssetMetrics, now: datetime) -> FlagAnalysis:
        """
        Run detection, adjustments, projection and prioritisation.

        Args:
            asset: Asset metrics carrying the current and previous flag
            now: Evaluation instant used for lock expiry

        Returns:
            FlagAnalysis
        """
        event = self.detect(asset, now)
        adjustments = self.adjustments(asset, event, now)
        impact = self.project_impact(asset, event)
        priority = self.monitoring_priority(asset, event, impact)

        return FlagAnalysis(
            asset_id=asset.asset_id,
            current_flag=asset.status_flag,
            event=event,
            adjustments=adjustments,
            projected_impact=impact,
            monitoring_priority=priority,
        )

    def detect(self, asset: AssetMetrics, now: datetime) -> Optional[FlagEvent]:
        """Emit a FlagEvent when the flag changed since the last observation."""
        if not asset.flag_changed:
            return None

        transition = FlagTransition(asset.previous_flag, asset.status_flag)
        rule = self.rules.rule_for(transition)

        return FlagEvent(
            asset_id=asset.asset_id,
            transition=transition,
            change_timestamp=asset.flag_changed_at or now,
            lock_duration_hours=rule.lock_hours,
            reset_counters=rule.reset_counters,
            severity=self.severity(transition, asset.ownership_pct),
            expected_transfer_impact=self._expected_transfer_impact(transition, asset.ownership_fraction),
            threshold_adjustment_factor=self.flag_multipliers[asset.status_flag],
        )

    def severity(self, transition: FlagTransition, ownership_pct: float) -> SeverityTier:
        """Severity tier for a transition, amplified by ownership."""
        rule = self.rules.rule_for(transition)
        score = rule.base_severity * self.rules.ownership_amplifier(ownership_pct)

        if score >= self.rules.critical_score:
            return SeverityTier.CRITICAL
        if score >= self.rules.high_score:
            return SeverityTier.HIGH
        if score >= self.rules.medium_score:
            return SeverityTier.MEDIUM
        return SeverityTier.LOW

    def _expected_transfer_impact(self, transition: FlagTransition, ownership_fraction: float) -> float:
        impact = self._impacts.get(transition)
        if impact is None:
            return 0.0
        scale = ownership_fraction * self.total_population / 1_000_000
        return (impact.avg_transfers_out - impact.avg_transfers_in) * scale

    def adjustments(self, asset: AssetMetrics, event: Optional[FlagEvent], now: datetime) -> Adjustments:
        """Derive adjustments from an event, or defaults from the current flag."""
        if event is None:
            return Adjustments(threshold_multiplier=self.flag_multipliers[asset.status_flag])

        rule = self.rules.rule_for(event.transition)
        return Adjustments(
            price_change_locked=event.is_active(now),
            lock_expires_at=event.lock_expires_at,
            transfer_count_reset=event.reset_counters,
            threshold_multiplier=event.threshold_adjustment_factor,
            fall_probability_increase=rule.fall_probability_increase,
            rise_probability_decrease=(
                self.rules.rise_probability_decrease if event.to_flag != StatusFlag.NONE else 0.0
            ),
            confidence_penalty=self.rules.confidence_penalties[event.severity],
        )

    def project_impact(self, asset: AssetMetrics, event: Optional[FlagEvent]) -> ProjectedImpact:
        """Project transfer flow for the next 24 hours."""
        r = self.rules
        if event is None:
            return ProjectedImpact(
                expected_transfers_out_24h=asset.transfers_out_event * r.quiet_activity_share,
                expected_transfers_in_24h=asset.transfers_in_event * r.quiet_activity_share,
                price_change_probability=r.quiet_probability,
                timing_estimate='>48h',
            )

        impact = self._impacts.get(event.transition)
        if impact is None:
            if event.transition.is_bad_news:
                return ProjectedImpact(
                    expected_transfers_out_24h=asset.transfers_out_event * r.bad_news_out_share,
                    expected_transfers_in_24h=asset.transfers_in_event * r.bad_news_in_share,
                    price_change_probability=r.bad_news_probability,
                    timing_estimate='12-24h',
                )
            return ProjectedImpact(
                expected_transfers_out_24h=asset.transfers_out_event * r.good_news_out_share,
                expected_transfers_in_24h=asset.transfers_in_event * r.good_news_in_share,
                price_change_probability=r.good_news_probability,
                timing_estimate='24-48h',
            )

        scale = math.sqrt(asset.ownership_fraction)
        return ProjectedImpact(
            expected_transfers_out_24h=round(impact.avg_transfers_out * scale),
            expected_transfers_in_24h=round(impact.avg_transfers_in * scale),
            price_change_probability=min(1.0, impact.price_fall_probability * scale),
            timing_estimate=self._timing_label(impact.hours_to_impact),
        )

    @staticmethod
    def _timing_label(hours: float) -> str:
        if hours <= 6:
            return '<6h'
        if hours <= 12:
            return '6-12h'
        if hours <= 24:
            return '12-24h'
        if hours <= 48:
            return '24-48h'
        return '>48h'

    def monitoring_priority(self, asset: AssetMetrics, event: Optional[FlagEvent],
                            impact: ProjectedImpact) -> MonitoringPriority:
        """Banded priority from ownership, severity and projected probability."""
        if event is None:
            return MonitoringPriority.LOW

        score = 0
        if asset.ownership_pct > 20:
            score += 3
        elif asset.ownership_pct > 10:
            score += 2
        elif asset.ownership_pct > 5:
            score += 1

        score += event.severity.rank

        if impact.price_change_probability > 0.6:
            score += 2
        elif impact.price_change_probability > 0.3:
            score += 1

        for cutoff, priority in self.PRIORITY_CUTOFFS:
            if score >= cutoff:
                return priority
        return MonitoringPriority.LOW

    # -------------------------------------------------------------------------
    # Lock status and rule retuning
    # -------------------------------------------------------------------------

    def lock_status(self, asset: AssetMetrics, now: datetime) -> LockStatus:
        """Whether price movement is currently locked, and for how long."""
        event = self.detect(asset, now)
        adjustments = self.adjustments(asset, event, now)
        if event is None or not adjustments.price_change_locked:
            return LockStatus(is_locked=False)

        remaining = max(0.0, (event.lock_expires_at - now).total_seconds() / 3600)
        return LockStatus(
            is_locked=True,
            lock_expires_at=event.lock_expires_at,
            reason=f"Flag change from {event.from_flag.value} to {event.to_flag.value}",
            remaining_hours=round(remaining, 1),
        )

    def update_rules(self, observations: List[FlagObservation]) -> RuleUpdate:
        """
        Retune lock durations and reset flags from observed outcomes.

        Lock durations off by more than the tolerance are averaged with the
        observation; reset flags are replaced when accuracy was poor. The
        tracker's own rules are left untouched; the caller decides whether
        to adopt the returned table.
        """
        r = self.rules
        table: Dict[FlagTransition, FlagRule] = dict(r.rules)
        changed: List[str] = []
        improvement = 0.0

        for obs in observations:
            rule = table[obs.transition]
            if abs(rule.lock_hours - obs.actual_lock_hours) > r.lock_tolerance_hours:
                rule = replace(rule, lock_hours=round((rule.lock_hours + obs.actual_lock_hours) / 2))
                changed.append(f"{obs.transition.label}: lock_hours={rule.lock_hours}")
            if obs.prediction_accuracy < r.reset_accuracy_floor and rule.reset_counters != obs.actual_reset:
                rule = replace(rule, reset_counters=obs.actual_reset)
                changed.append(f"{obs.transition.label}: reset_counters={rule.reset_counters}")
            table[obs.transition] = rule
            improvement += max(0.0, obs.prediction_accuracy - r.reset_accuracy_floor)

        if changed:
            logger.info(f"Flag rules retuned: {', '.join(changed)}")

        return RuleUpdate(
            rules=replace(r, rules=table),
            accuracy_improvement=improvement / max(len(observations), 1),
            changed=changed,
        )
