"""
Unit Tests for Threshold Calculator
====================================
Tests for base thresholds, multipliers, floors and confidence.
"""

import math

import pytest

from pricepulse.core.exceptions import AssetValidationError, ConfigurationError
from pricepulse.models.assets import PriceTier, StatusFlag
from pricepulse.services.pricing.config import ThresholdConstants
from pricepulse.services.pricing.threshold_calculator import ThresholdCalculator

pytestmark = pytest.mark.unit


@pytest.fixture
def calculator():
    return ThresholdCalculator()


class TestBaseThresholds:
    """Test base threshold formulas."""

    def test_base_rise_is_sqrt_of_owners(self, calculator, asset_factory):
        """Base rise threshold scales with the square root of owner count."""
        result = calculator.calculate(asset_factory(ownership_pct=10.0), cycle=1)
        assert result.base_rise_threshold == pytest.approx(math.sqrt(1_100_000) * 50)

    def test_base_fall_is_share_of_owners(self, calculator, asset_factory):
        """Base fall threshold is a fixed share of owners."""
        result = calculator.calculate(asset_factory(ownership_pct=10.0), cycle=1)
        assert result.base_fall_threshold == pytest.approx(1_100_000 * 0.35)

    def test_adjusted_thresholds_are_rounded(self, calculator, sample_asset):
        """Adjusted thresholds are whole numbers."""
        result = calculator.calculate(sample_asset, cycle=5)
        assert result.adjusted_rise_threshold == round(result.adjusted_rise_threshold)
        assert result.adjusted_fall_threshold == round(result.adjusted_fall_threshold)


class TestMultipliers:
    """Test individual threshold multipliers."""

    def test_cycle_decay_has_floor(self, calculator, sample_asset):
        """Cycle decay never drops below its floor."""
        early = calculator.calculate(sample_asset, cycle=1)
        late = calculator.calculate(sample_asset, cycle=38)
        assert early.multipliers.cycle_decay == pytest.approx(0.98)
        assert late.multipliers.cycle_decay == pytest.approx(0.7)

    @pytest.mark.parametrize("ownership,expected", [
        (2.0, 0.9), (5.0, 1.0), (14.9, 1.0), (20.0, 1.2), (30.0, 1.5), (60.0, 1.5),
    ])
    def test_ownership_bands(self, calculator, asset_factory, ownership, expected):
        """Ownership multiplier follows its banded table."""
        result = calculator.calculate(asset_factory(ownership_pct=ownership), cycle=1)
        assert result.multipliers.ownership == expected

    def test_form_multiplier_is_clamped(self, calculator, asset_factory):
        """Extreme form is clamped into [0.6, 1.4]."""
        hot = calculator.calculate(asset_factory(form=40.0), cycle=1)
        cold = calculator.calculate(asset_factory(form=-40.0), cycle=1)
        assert hot.multipliers.form == 0.6
        assert cold.multipliers.form == 1.4

    def test_price_tier_multiplier(self, calculator, asset_factory):
        """Budget assets need more transfers than premium ones."""
        budget = calculator.calculate(asset_factory(cost=45), cycle=1)
        premium = calculator.calculate(asset_factory(cost=120), cycle=1)
        assert budget.multipliers.price_tier == 1.15
        assert premium.multipliers.price_tier == 0.85
        assert budget.adjusted_rise_threshold > premium.adjusted_rise_threshold

    def test_flag_multiplier_only_on_fall(self, calculator, asset_factory):
        """Flag state raises the fall threshold and leaves the rise threshold alone."""
        clear = calculator.calculate(asset_factory(), cycle=1)
        severe = calculator.calculate(asset_factory(status_flag=StatusFlag.SEVERE), cycle=1)
        assert severe.multipliers.flag == 2.2
        assert severe.adjusted_fall_threshold > clear.adjusted_fall_threshold
        assert severe.adjusted_rise_threshold == clear.adjusted_rise_threshold

    def test_special_and_high_profile(self, calculator, asset_factory):
        """Special assets get the special multiplier, high-profile ones a smaller one."""
        special = calculator.calculate(asset_factory(is_special=True), cycle=1)
        high_profile = calculator.calculate(asset_factory(cost=120, ownership_pct=28.0), cycle=1)
        assert special.multipliers.special == 1.3
        assert high_profile.multipliers.special == 1.15


class TestFloorsAndValidation:
    """Test zero-ownership floors and input validation."""

    def test_zero_ownership_hits_floor(self, calculator, asset_factory):
        """Zero ownership still yields positive thresholds."""
        result = calculator.calculate(asset_factory(ownership_pct=0.0), cycle=1)
        assert result.adjusted_rise_threshold == 100
        assert result.adjusted_fall_threshold == 100
        assert result.floor_applied

    @pytest.mark.parametrize("ownership", [0.0, 0.001, 0.5, 5.0, 25.0, 60.0, 100.0])
    @pytest.mark.parametrize("flag", list(StatusFlag))
    def test_adjusted_thresholds_always_positive(self, calculator, asset_factory, ownership, flag):
        """Adjusted thresholds are strictly positive for every asset."""
        result = calculator.calculate(asset_factory(ownership_pct=ownership, status_flag=flag), cycle=20)
        assert result.adjusted_rise_threshold > 0
        assert result.adjusted_fall_threshold > 0

    def test_out_of_range_ownership_rejected(self, calculator, asset_factory):
        """Ownership outside [0, 100] raises a validation error."""
        with pytest.raises(AssetValidationError):
            calculator.calculate(asset_factory(ownership_pct=101.0), cycle=1)
        with pytest.raises(AssetValidationError):
            calculator.calculate(asset_factory(ownership_pct=-1.0), cycle=1)

    def test_batch_skips_invalid_assets(self, calculator, asset_factory):
        """Batch calculation drops invalid assets instead of failing."""
        results = calculator.calculate_batch(
            [asset_factory(1), asset_factory(2, ownership_pct=150.0)], cycle=3
        )
        assert set(results) == {1}


class TestConfidence:
    """Test threshold confidence."""

    def test_neutral_asset_confidence(self, calculator, sample_asset):
        """Neutral form earns the bonus on top of the base."""
        result = calculator.calculate(sample_asset, cycle=1)
        assert result.confidence == pytest.approx(0.85)

    def test_low_ownership_lowers_confidence(self, calculator, asset_factory):
        """0.5% ownership is less certain than its 15% twin."""
        low = calculator.calculate(asset_factory(ownership_pct=0.5), cycle=1)
        mid = calculator.calculate(asset_factory(ownership_pct=15.0), cycle=1)
        assert low.confidence < mid.confidence

    def test_confidence_bounds(self, calculator, asset_factory):
        """Penalties stack but confidence stays within [0.5, 1]."""
        result = calculator.calculate(
            asset_factory(ownership_pct=0.0, is_special=True, status_flag=StatusFlag.SEVERE, form=12.0),
            cycle=1,
        )
        assert result.confidence == 0.5


class TestRealtimeAdjustment:
    """Test intra-cycle velocity adjustment."""

    def test_accelerating_rise(self, calculator):
        """Fast inbound velocity lowers the threshold."""
        adj = calculator.realtime_adjustment(50_000, 40_000, 100_000, 0, 10_000)
        assert adj.adjustment_factor == 0.85
        assert adj.confidence == 0.75

    def test_quiet_market(self, calculator):
        """Low velocity leaves thresholds unchanged."""
        adj = calculator.realtime_adjustment(5_000, 1_000, 100_000, 0, 10_000)
        assert adj.adjustment_factor == 1.0
        assert adj.reason == "No adjustments needed"

    def test_negative_news(self, calculator):
        """Negative news compounds onto the velocity factor."""
        adj = calculator.realtime_adjustment(-20_000, 0, 1, 5_000, 10_000, news_impact="negative")
        assert adj.adjustment_factor == pytest.approx(1.15 * 1.1)
        assert "Negative news" in adj.reason


class TestConstantsValidation:
    """Test configuration validation."""

    def test_missing_tier_multiplier_rejected(self):
        """Every price tier needs a multiplier."""
        with pytest.raises(ConfigurationError):
            ThresholdConstants(price_tier_multipliers={PriceTier.BUDGET: 1.0})
