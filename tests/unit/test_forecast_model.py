"""
Unit Tests for Forecast Model
==============================
Tests for population context, 24h volume forecasts, carryover and the
threshold adjustment factor.
"""

import pytest

from pricepulse.models.assets import CyclePattern
from pricepulse.services.history.provider import DefaultHistoricalDataProvider
from pricepulse.services.pricing.forecast_model import ForecastModel

pytestmark = pytest.mark.unit


@pytest.fixture
def model():
    return ForecastModel()


def _pattern(total: int, wildcard_usage: float = 0.0) -> CyclePattern:
    return CyclePattern(cycle=1, total_transfers=total, wildcard_usage=wildcard_usage)


class TestContext:
    """Test the per-cycle forecast context."""

    def test_no_patterns_is_neutral(self, model):
        """Without history the market is neutral."""
        ctx = model.build_context([], cycle=10, hours_until_deadline=30)
        assert ctx.market_sentiment == 0.0
        assert ctx.market_volatility == 0.0
        assert ctx.historical_carryover == 0.15
        assert ctx.deadline_factor == 0.1
        assert ctx.season_multiplier == 1.0
        assert ctx.pattern_count == 0

    @pytest.mark.parametrize("total,expected", [
        (7_500_000, 0.5), (10_000_000, 0.5), (2_500_000, -0.5), (6_000_000, 0.2),
    ])
    def test_sentiment_is_capped(self, model, total, expected):
        """Sentiment is the latest volume relative to baseline, capped at 0.5."""
        ctx = model.build_context([_pattern(total)], cycle=10, hours_until_deadline=30)
        assert ctx.market_sentiment == pytest.approx(expected)

    def test_carryover_baseline_from_history(self):
        """Per-cycle carryover baselines come from the history provider."""
        model = ForecastModel(history=DefaultHistoricalDataProvider(carryover_baselines={12: 0.33}))
        assert model.build_context([], cycle=12, hours_until_deadline=30).historical_carryover == 0.33

    @pytest.mark.parametrize("cycle,expected", [(3, 1.2), (20, 1.0), (35, 0.8)])
    def test_season_multiplier(self, model, cycle, expected):
        """Early season is busier than late season."""
        assert model.build_context([], cycle=cycle, hours_until_deadline=30).season_multiplier == expected


class TestForecast:
    """Test per-asset forecasts."""

    def test_forecast_is_non_negative(self, model, sample_assets):
        """Predicted volumes are never negative."""
        ctx = model.build_context([_pattern(2_000_000)], cycle=35, hours_until_deadline=4)
        for asset in sample_assets:
            output = model.forecast(asset, ctx)
            assert output.predicted_transfers_in_24h >= 0
            assert output.predicted_transfers_out_24h >= 0
            assert output.predicted_net_transfers == (
                output.predicted_transfers_in_24h - output.predicted_transfers_out_24h
            )

    def test_positive_sentiment_raises_both_directions(self, model, sample_asset):
        """A busy market increases both inflow and outflow."""
        calm = model.forecast(sample_asset, model.build_context([], cycle=20, hours_until_deadline=30))
        busy = model.forecast(sample_asset, model.build_context([_pattern(7_500_000)], cycle=20,
                                                                hours_until_deadline=30))
        assert busy.predicted_transfers_in_24h > calm.predicted_transfers_in_24h
        assert busy.predicted_transfers_out_24h > calm.predicted_transfers_out_24h

    def test_form_trend_shifts_direction(self, model, asset_factory):
        """Improving form pulls inflow up and outflow down."""
        ctx = model.build_context([], cycle=20, hours_until_deadline=30)
        flat = model.forecast(asset_factory(points_history=(4.0,) * 6), ctx)
        rising = model.forecast(asset_factory(points_history=(1.0, 1.0, 1.0, 9.0, 9.0, 9.0)), ctx)
        assert rising.features.form_trend > 0
        assert rising.predicted_transfers_in_24h > flat.predicted_transfers_in_24h
        assert rising.predicted_transfers_out_24h < flat.predicted_transfers_out_24h

    def test_features_bounded(self, model, asset_factory):
        """Every feature lies in [-1, 1]."""
        asset = asset_factory(
            transfers_in_history=(1, 1, 900_000),
            points_history=(0.0, 0.0, 0.0, 25.0, 25.0, 25.0),
            fixture_difficulty=(1, 1, 1),
            cost=40,
        )
        features = model.extract_features(asset, model.build_context([], cycle=20, hours_until_deadline=30))
        for value in features.to_dict().values():
            assert -1.0 <= value <= 1.0

    def test_transfer_velocity(self, model, sample_asset):
        """Velocity is the latest window over the previous one."""
        assert model.transfer_velocity(sample_asset) == pytest.approx(14_000 / 12_000)

    def test_transfer_velocity_without_history(self, model, asset_factory):
        """Short history defaults to unit velocity."""
        assert model.transfer_velocity(asset_factory(transfers_in_history=(5,))) == 1.0


class TestThresholdAdjustment:
    """Test the forecast threshold adjustment factor."""

    def test_factor_is_bounded(self, model, asset_factory):
        """Stacked nudges stay within [0.7, 1.3]."""
        ctx = model.build_context([_pattern(2_000_000)], cycle=20, hours_until_deadline=30)
        surging = asset_factory(
            transfers_in_history=(100, 100, 100_000),
            points_history=(1.0, 1.0, 9.0, 9.0),
            fixture_difficulty=(1, 5, 5, 5),
        )
        collapsing = asset_factory(
            transfers_in_history=(100_000, 100_000, 10),
            points_history=(9.0, 9.0, 1.0, 1.0),
            fixture_difficulty=(5, 1, 1, 1),
        )
        for asset in (surging, collapsing):
            output = model.forecast(asset, ctx)
            assert 0.7 <= output.threshold_adjustment_factor <= 1.3
            assert output.reasons

    def test_high_velocity_reason(self, model, asset_factory):
        """Fast inbound velocity lowers the factor and says why."""
        ctx = model.build_context([], cycle=20, hours_until_deadline=30)
        output = model.forecast(asset_factory(transfers_in_history=(10_000, 10_000, 20_000)), ctx)
        assert "High transfer velocity detected" in output.reasons
        assert output.threshold_adjustment_factor < 1.0

    def test_neutral_asset_has_unit_factor(self, model, asset_factory):
        """No signal, no nudge."""
        ctx = model.build_context([], cycle=20, hours_until_deadline=30)
        output = model.forecast(asset_factory(transfers_in_history=(), points_history=(), fixture_difficulty=()), ctx)
        assert output.threshold_adjustment_factor == 1.0
        assert output.reasons == []


class TestCarryoverAndLabels:
    """Test carryover, peak window and uncertainty."""

    def test_carryover_bounds(self, model, sample_asset):
        """Carryover is clipped into [0.05, 0.45]."""
        for patterns, hours in [([], 200), ([_pattern(20_000_000, 0.5)], 2)]:
            output = model.forecast(sample_asset, model.build_context(patterns, cycle=13, hours_until_deadline=hours))
            assert 0.05 <= output.carryover_fraction <= 0.45

    @pytest.mark.parametrize("hours,label", [
        (80, "Weekend"), (30, "Tuesday Evening"), (10, "Friday Morning"), (3, "Deadline Rush"),
    ])
    def test_peak_window(self, model, sample_asset, hours, label):
        """Peak window label follows hours until deadline."""
        output = model.forecast(sample_asset, model.build_context([], cycle=20, hours_until_deadline=hours))
        assert output.peak_window == label

    def test_uncertainty(self, model, asset_factory):
        """Extreme ownership and thin history raise uncertainty."""
        thin = model.build_context([], cycle=20, hours_until_deadline=30)
        rich = model.build_context([_pattern(5_000_000)] * 3, cycle=20, hours_until_deadline=30)
        assert model.forecast(asset_factory(ownership_pct=15.0), rich).model_uncertainty == pytest.approx(0.1)
        assert model.forecast(asset_factory(ownership_pct=45.0), thin).model_uncertainty == pytest.approx(0.25)
        assert model.forecast(asset_factory(ownership_pct=1.0), thin).model_uncertainty == pytest.approx(0.3)
