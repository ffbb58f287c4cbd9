"""
PRICEPULSE - Pricing Heuristics Configuration
Tunable weight tables and constants for every prediction component.

All values here are expected to be retuned empirically. Components receive
one of these dataclasses in their constructor and never read literals of
their own, so a retuned table can be swapped in without code changes.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Tuple

from pricepulse.core.config import Settings
from pricepulse.core.exceptions import ConfigurationError
from pricepulse.models.assets import (
    FlagTransition,
    PriceTier,
    SeverityTier,
    StatusFlag,
)


def _band_lookup(value: float, bands: Tuple[Tuple[float, float], ...], above: float) -> float:
    """Return the multiplier of the first band whose upper bound exceeds value."""
    for upper, multiplier in bands:
        if value < upper:
            return multiplier
    return above


# =============================================================================
# THRESHOLDS
# =============================================================================

@dataclass
class ThresholdConstants:
    """Constants for dynamic rise/fall threshold estimation."""
    total_population: int = 11_000_000
    rise_base_multiplier: float = 50.0
    fall_base_fraction: float = 0.35

    # Cycle decay: thresholds get easier as the season progresses
    cycle_decay_rate: float = 0.02
    cycle_decay_floor: float = 0.7

    # Form deviation from the population mean
    form_mean: float = 5.0
    form_impact: float = 0.4
    form_multiplier_min: float = 0.6
    form_multiplier_max: float = 1.4

    # (upper ownership %, multiplier) bands, plus the multiplier above the last band
    ownership_bands: Tuple[Tuple[float, float], ...] = ((5.0, 0.9), (15.0, 1.0), (30.0, 1.2))
    ownership_top_multiplier: float = 1.5

    price_tier_multipliers: Dict[PriceTier, float] = field(default_factory=lambda: {
        PriceTier.BUDGET: 1.15,
        PriceTier.MID: 1.0,
        PriceTier.PREMIUM: 0.85,
    })
    flag_multipliers: Dict[StatusFlag, float] = field(default_factory=lambda: {
        StatusFlag.NONE: 1.0,
        StatusFlag.CAUTION: 1.5,
        StatusFlag.SEVERE: 2.2,
    })

    special_multiplier: float = 1.3
    high_profile_multiplier: float = 1.15
    high_profile_cost: int = 100
    high_profile_ownership: float = 25.0

    # Floors guarding zero ownership
    min_rise_threshold: float = 100.0
    min_fall_threshold: float = 100.0

    # Confidence
    base_confidence: float = 0.8
    special_penalty: float = 0.1
    flag_penalty: float = 0.1
    extreme_ownership_penalty: float = 0.1
    floor_penalty: float = 0.1
    neutral_form_bonus: float = 0.05
    extreme_ownership_high: float = 40.0
    extreme_ownership_low: float = 1.0
    min_confidence: float = 0.5
    max_confidence: float = 1.0

    # Real-time velocity adjustment
    velocity_trigger: float = 0.3
    accelerating_factor: float = 0.85
    decelerating_factor: float = 1.15
    positive_news_factor: float = 0.9
    negative_news_factor: float = 1.1

    def __post_init__(self):
        if self.total_population <= 0:
            raise ConfigurationError("total_population must be positive")
        if self.min_rise_threshold <= 0 or self.min_fall_threshold <= 0:
            raise ConfigurationError("Threshold floors must be positive")
        missing = set(PriceTier) - set(self.price_tier_multipliers)
        if missing:
            raise ConfigurationError(f"Missing price tier multipliers: {sorted(m.value for m in missing)}")
        missing = set(StatusFlag) - set(self.flag_multipliers)
        if missing:
            raise ConfigurationError(f"Missing flag multipliers: {sorted(m.value for m in missing)}")

    def ownership_multiplier(self, ownership_pct: float) -> float:
        return _band_lookup(ownership_pct, self.ownership_bands, self.ownership_top_multiplier)


# =============================================================================
# WILDCARD
# =============================================================================

@dataclass
class WildcardWeights:
    """Indicator weights and tuning for wildcard noise filtering."""
    mass_transfer: float = 0.15
    ownership_pattern: float = 0.25
    timing_pattern: float = 0.20
    team_spread: float = 0.15
    historical_match: float = 0.25

    max_discount: float = 0.4

    mass_ratio_offset: float = 2.0
    mass_ratio_scale: float = 8.0

    # Ownership bands weighting how suspicious disproportionate volume is
    ownership_bands: Tuple[Tuple[float, float], ...] = ((5.0, 0.8), (15.0, 0.9), (30.0, 0.6))
    ownership_top_weight: float = 0.3
    expected_activity_rate: float = 0.1
    disproportion_scale: float = 5.0

    wildcard_cycles: Tuple[int, ...] = (4, 8, 13, 17, 25, 33)
    break_cycles: Tuple[int, ...] = (7, 14, 28)
    timing_base: float = 0.1
    wildcard_cycle_bonus: float = 0.4
    break_cycle_bonus: float = 0.2
    early_season_last_cycle: int = 8
    early_season_bonus: float = 0.2
    midseason_window: Tuple[int, int] = (10, 15)
    midseason_bonus: float = 0.3

    team_count: int = 20

    low_ownership_cutoff: float = 1.0
    low_ownership_penalty: float = 0.15

    # Cycle carryover estimate
    carryover_base: float = 0.15
    carryover_finished: float = 0.25
    carryover_started: float = 0.10
    weekly_average_transfers: int = 5_000_000
    surge_ratio: float = 1.5
    surge_bonus: float = 0.1
    carryover_cap: float = 0.4
    carryover_confidence: float = 0.8

    def __post_init__(self):
        weights = (
            self.mass_transfer, self.ownership_pattern, self.timing_pattern,
            self.team_spread, self.historical_match,
        )
        if any(w < 0 for w in weights):
            raise ConfigurationError("Wildcard weights cannot be negative")
        if sum(weights) > 1.0 + 1e-9:
            raise ConfigurationError(f"Wildcard weights sum to {sum(weights):.3f}, must be <= 1")
        if not 0.0 <= self.max_discount < 1.0:
            raise ConfigurationError("max_discount must be within [0, 1)")
        if self.team_count <= 0:
            raise ConfigurationError("team_count must be positive")

    def ownership_weight(self, ownership_pct: float) -> float:
        return _band_lookup(ownership_pct, self.ownership_bands, self.ownership_top_weight)


# =============================================================================
# FLAGS
# =============================================================================

@dataclass(frozen=True)
class FlagRule:
    """Effect of one directed flag transition."""
    lock_hours: float
    reset_counters: bool
    base_severity: float
    fall_probability_increase: float = 0.0


def _default_flag_rules() -> Dict[FlagTransition, FlagRule]:
    none, caution, severe = StatusFlag.NONE, StatusFlag.CAUTION, StatusFlag.SEVERE
    return {
        FlagTransition(severe, none): FlagRule(192, True, 1),
        FlagTransition(severe, caution): FlagRule(48, False, 1),
        FlagTransition(caution, severe): FlagRule(24, True, 3, 0.25),
        FlagTransition(caution, none): FlagRule(72, False, 1),
        FlagTransition(none, caution): FlagRule(12, False, 2, 0.15),
        FlagTransition(none, severe): FlagRule(48, True, 4, 0.4),
    }


@dataclass
class FlagRules:
    """Transition rule table and severity scoring for the flag tracker."""
    rules: Dict[FlagTransition, FlagRule] = field(default_factory=_default_flag_rules)

    # (ownership % lower bound, amplifier), checked in order
    ownership_amplifiers: Tuple[Tuple[float, float], ...] = ((20.0, 2.0), (10.0, 1.5))
    critical_score: float = 6.0
    high_score: float = 4.0
    medium_score: float = 2.0

    confidence_penalties: Dict[SeverityTier, float] = field(default_factory=lambda: {
        SeverityTier.CRITICAL: 0.3,
        SeverityTier.HIGH: 0.2,
        SeverityTier.MEDIUM: 0.1,
        SeverityTier.LOW: 0.05,
    })
    rise_probability_decrease: float = 0.2

    # 24h projection heuristics when no historical table entry exists
    quiet_activity_share: float = 0.1
    quiet_probability: float = 0.1
    bad_news_out_share: float = 0.3
    bad_news_in_share: float = 0.02
    bad_news_probability: float = 0.4
    good_news_out_share: float = 0.05
    good_news_in_share: float = 0.15
    good_news_probability: float = 0.15

    # Rule retuning
    lock_tolerance_hours: float = 12.0
    reset_accuracy_floor: float = 0.8

    def __post_init__(self):
        missing = [t.label for t in FlagTransition.all() if t not in self.rules]
        if missing:
            raise ConfigurationError(f"Flag rule table is missing transitions: {missing}")
        for transition, rule in self.rules.items():
            if rule.lock_hours < 0:
                raise ConfigurationError(f"Negative lock duration for {transition.label}")
        missing = set(SeverityTier) - set(self.confidence_penalties)
        if missing:
            raise ConfigurationError("Confidence penalty table must cover every severity tier")

    def rule_for(self, transition: FlagTransition) -> FlagRule:
        return self.rules[transition]

    def ownership_amplifier(self, ownership_pct: float) -> float:
        for lower, amplifier in self.ownership_amplifiers:
            if ownership_pct > lower:
                return amplifier
        return 1.0


# =============================================================================
# FORECAST
# =============================================================================

@dataclass
class ForecastWeights:
    """Feature weights and constants for the transfer volume forecast."""
    ownership_momentum: float = 0.15
    form_trend: float = 0.25
    fixture_appeal: float = 0.15
    price_value: float = 0.10
    recent_performance: float = 0.10
    market_sentiment: float = 0.10

    inflow_rate: float = 0.02   # Daily share of non-owners buying
    outflow_rate: float = 0.01  # Daily share of owners selling
    min_multiplier: float = 0.1

    early_season_last_cycle: int = 8
    mid_season_last_cycle: int = 28
    early_season_multiplier: float = 1.2
    mid_season_multiplier: float = 1.0
    late_season_multiplier: float = 0.8

    sentiment_baseline: float = 5_000_000
    sentiment_cap: float = 0.5

    # Expected points per game and value price by position
    position_expected_points: Dict[int, float] = field(default_factory=lambda: {
        1: 2.5, 2: 3.0, 3: 3.5, 4: 4.0,
    })
    position_base_price: Dict[int, float] = field(default_factory=lambda: {
        1: 45.0, 2: 45.0, 3: 55.0, 4: 65.0,
    })
    price_per_point: float = 5.0
    points_baseline: float = 2.0

    # Carryover
    carryover_min: float = 0.05
    carryover_max: float = 0.45
    carryover_default: float = 0.15
    timing_weight: float = 0.2
    volume_weight: float = 0.4
    wildcard_weight: float = 0.3
    # (upper hours, timing factor) bands
    deadline_bands: Tuple[Tuple[float, float], ...] = ((6.0, 0.4), (24.0, 0.2), (72.0, 0.1))
    deadline_far_factor: float = 0.05
    volume_cap: float = 0.2
    wildcard_factor_cap: float = 0.3
    wildcard_factor_scale: float = 1.5

    # Threshold adjustment
    adjustment_min: float = 0.7
    adjustment_max: float = 1.3
    fast_velocity: float = 1.5
    slow_velocity: float = 0.5

    # Uncertainty
    base_uncertainty: float = 0.1
    high_ownership: float = 40.0
    high_ownership_uncertainty: float = 0.05
    low_ownership: float = 2.0
    low_ownership_uncertainty: float = 0.1
    min_patterns: int = 3
    thin_history_uncertainty: float = 0.1
    max_uncertainty: float = 0.5

    def __post_init__(self):
        if self.carryover_min > self.carryover_max:
            raise ConfigurationError("carryover_min exceeds carryover_max")
        if self.adjustment_min > self.adjustment_max:
            raise ConfigurationError("adjustment_min exceeds adjustment_max")
        if not 0.0 <= self.max_uncertainty <= 1.0:
            raise ConfigurationError("max_uncertainty must be within [0, 1]")

    def season_multiplier(self, cycle: int) -> float:
        if cycle <= self.early_season_last_cycle:
            return self.early_season_multiplier
        if cycle <= self.mid_season_last_cycle:
            return self.mid_season_multiplier
        return self.late_season_multiplier

    def deadline_factor(self, hours_until_deadline: float) -> float:
        return _band_lookup(hours_until_deadline, self.deadline_bands, self.deadline_far_factor)


# =============================================================================
# CONFIDENCE
# =============================================================================

CONFIDENCE_FACTORS = (
    'transfer_volume',
    'ownership_stability',
    'form_consistency',
    'flag_status',
    'historical_accuracy',
    'wildcard_detection',
    'threshold_calculation',
    'data_quality',
    'market_condition',
    'timing',
)


@dataclass
class ConfidenceWeights:
    """Weights of the ten confidence factors. Must sum to 1.0."""
    transfer_volume: float = 0.20       # Reliability of the raw transfer signal
    ownership_stability: float = 0.15   # Predictability of the ownership level
    form_consistency: float = 0.12      # Form in a stable band
    flag_status: float = 0.10           # Availability flag and transition impact
    historical_accuracy: float = 0.15   # Rolling accuracy of the engine
    wildcard_detection: float = 0.08    # Certainty of the noise filter
    threshold_calculation: float = 0.10 # Threshold estimate and distance to it
    data_quality: float = 0.05          # Internal consistency of inputs
    market_condition: float = 0.03      # Population-level volatility
    timing: float = 0.02                # Distance from neutral

    very_high_min: float = 0.90
    high_min: float = 0.80
    medium_min: float = 0.65
    low_min: float = 0.50

    default_market_volatility: float = 0.12

    def __post_init__(self):
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > 1e-6:
            raise ConfigurationError(f"Confidence weights sum to {total:.4f}, must be 1.0")
        if not self.very_high_min > self.high_min > self.medium_min > self.low_min:
            raise ConfigurationError("Confidence tier bounds must be strictly decreasing")

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in CONFIDENCE_FACTORS}


# =============================================================================
# ORCHESTRATION
# =============================================================================

@dataclass
class PredictionThresholds:
    """Progress targets and output shaping for assembled predictions."""
    rise_target: float = 100.5
    fall_target: float = 99.5
    high_confidence: float = 0.8

    progress_scale: float = 100.0
    prediction_scale: float = 20.0
    hourly_scale: float = 1.5
    max_hourly_change: float = 2.0
    min_progress: float = 0.0
    max_progress: float = 200.0

    lock_dampening: float = 0.1
    special_progress_dampening: float = 0.8
    special_hourly_dampening: float = 0.7

    probability_distance_scale: float = 50.0
    high_volume_net: int = 50_000
    high_volume_boost: float = 1.2

    soon_distance: float = 2.0
    tomorrow_distance: float = 0.5

    # Special notes
    wildcard_note_probability: float = 0.3
    low_confidence_note: float = 0.6
    high_ownership_note: float = 35.0

    # Confidence-driven monitoring priority
    high_priority_confidence: float = 0.8
    high_priority_distance: float = 2.0
    low_priority_confidence: float = 0.5

    estimated_24h_share: float = 0.3

    def __post_init__(self):
        if not self.min_progress < self.fall_target < self.rise_target < self.max_progress:
            raise ConfigurationError("Progress targets must lie strictly inside the progress range")
        if not 0.0 <= self.lock_dampening <= 1.0:
            raise ConfigurationError("lock_dampening must be within [0, 1]")


@dataclass
class PricingConfig:
    """Aggregate configuration for the whole prediction pipeline."""
    thresholds: ThresholdConstants = field(default_factory=ThresholdConstants)
    wildcard: WildcardWeights = field(default_factory=WildcardWeights)
    flags: FlagRules = field(default_factory=FlagRules)
    forecast: ForecastWeights = field(default_factory=ForecastWeights)
    confidence: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    prediction: PredictionThresholds = field(default_factory=PredictionThresholds)

    @classmethod
    def from_settings(cls, settings: Settings) -> 'PricingConfig':
        """Build a config whose population constants follow the runtime settings."""
        return cls(
            thresholds=ThresholdConstants(total_population=settings.TOTAL_ACTIVE_MANAGERS),
            wildcard=WildcardWeights(team_count=settings.TEAM_COUNT),
        )

    def with_flag_rules(self, rules: Dict[FlagTransition, FlagRule]) -> 'PricingConfig':
        return replace(self, flags=replace(self.flags, rules=rules))


# Default configuration instance
default_pricing_config = PricingConfig()
