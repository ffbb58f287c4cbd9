"""
Unit Tests for Wildcard Filter
===============================
Tests for reset-noise probability, valid transfer counts and carryover.
"""

import pytest

from pricepulse.services.history.provider import DefaultHistoricalDataProvider, WildcardFingerprint
from pricepulse.services.pricing.config import WildcardWeights
from pricepulse.services.pricing.wildcard_filter import IndicatorType, WildcardFilter
from pricepulse.core.exceptions import ConfigurationError

pytestmark = pytest.mark.unit


@pytest.fixture
def wildcard_filter():
    return WildcardFilter()


class TestPopulationContext:
    """Test the shared per-cycle context."""

    def test_context_aggregates(self, wildcard_filter, asset_factory):
        """Totals, unique assets and teams come from the whole population."""
        assets = [
            asset_factory(1, team_id=1, transfers_in_event=100, transfers_out_event=50),
            asset_factory(2, team_id=2, transfers_in_event=30, transfers_out_event=20),
            asset_factory(3, team_id=2, transfers_in_event=0, transfers_out_event=0),
        ]
        ctx = wildcard_filter.build_context(assets, cycle=20)
        assert ctx.total_transfers == 200
        assert ctx.unique_assets == 2
        assert ctx.teams_affected == 2
        assert ctx.mean_activity == pytest.approx(200 / 3)
        assert ctx.team_spread.strength == pytest.approx(2 / 20)

    def test_empty_population(self, wildcard_filter):
        """An empty population yields a zeroed context."""
        ctx = wildcard_filter.build_context([], cycle=1)
        assert ctx.total_transfers == 0
        assert ctx.mean_activity == 0.0

    @pytest.mark.parametrize("cycle,expected", [(4, 0.7), (13, 0.8), (14, 0.6), (20, 0.1)])
    def test_timing_indicator(self, wildcard_filter, cycle, expected):
        """Known wildcard and break cycles raise the timing strength."""
        ctx = wildcard_filter.build_context([], cycle=cycle)
        assert ctx.timing.type == IndicatorType.TIMING_PATTERN
        assert ctx.timing.strength == pytest.approx(expected)

    def test_exact_fingerprint_match(self, asset_factory):
        """A population identical to a fingerprint matches with full score."""
        assets = [asset_factory(i, team_id=i) for i in range(1, 11)]
        total = sum(a.total_activity for a in assets)
        history = DefaultHistoricalDataProvider(fingerprints=[
            WildcardFingerprint(cycle=4, total_transfers=total, unique_assets=10,
                                team_spread=0.5, confidence=0.9),
        ])
        ctx = WildcardFilter(history=history).build_context(assets, cycle=4)
        assert ctx.historical_match.score == pytest.approx(1.0)
        assert ctx.historical_match.cycle == 4


class TestAssetAnalysis:
    """Test per-asset wildcard analysis."""

    def test_probability_bounds_and_valid_counts(self, wildcard_filter, sample_assets):
        """Probability stays in [0, 1] and valid counts never exceed raw counts."""
        ctx = wildcard_filter.build_context(sample_assets, cycle=4)
        for asset in sample_assets:
            analysis = wildcard_filter.analyze(asset, ctx)
            assert 0.0 <= analysis.wildcard_probability <= 1.0
            assert abs(analysis.valid_transfers_in) <= asset.transfers_in_event
            assert abs(analysis.valid_transfers_out) <= asset.transfers_out_event
            assert analysis.net_valid_transfers == analysis.valid_transfers_in - analysis.valid_transfers_out
            assert 0.0 <= analysis.confidence <= 1.0

    def test_discount_is_bounded(self, asset_factory):
        """Even a certain wildcard keeps 60% of transfers."""
        weights = WildcardWeights(mass_transfer=0.0, ownership_pattern=0.0, timing_pattern=1.0,
                                  team_spread=0.0, historical_match=0.0,
                                  timing_base=1.0)
        wf = WildcardFilter(weights=weights)
        asset = asset_factory(transfers_in_event=10_000, transfers_out_event=5_000)
        analysis = wf.analyze(asset, wf.build_context([asset], cycle=20))
        assert analysis.wildcard_probability == pytest.approx(1.0)
        assert analysis.valid_transfers_in == 6_000
        assert analysis.valid_transfers_out == 3_000

    def test_mass_transfer_outlier(self, wildcard_filter, asset_factory):
        """An asset far above mean activity gets a strong mass-transfer indicator."""
        quiet = [asset_factory(i, transfers_in_event=1_000, transfers_out_event=1_000) for i in range(1, 20)]
        hot = asset_factory(99, transfers_in_event=400_000, transfers_out_event=10_000)
        ctx = wildcard_filter.build_context(quiet + [hot], cycle=20)
        analysis = wildcard_filter.analyze(hot, ctx)
        mass = next(i for i in analysis.indicators if i.type == IndicatorType.MASS_TRANSFER)
        assert mass.strength == pytest.approx(1.0)

    def test_low_ownership_lowers_confidence(self, wildcard_filter, asset_factory):
        """0.5% ownership is less certain than an otherwise identical 15% asset."""
        low = asset_factory(1, ownership_pct=0.5)
        mid = asset_factory(2, ownership_pct=15.0, team_id=low.team_id)
        ctx = wildcard_filter.build_context([low, mid], cycle=10)
        assert wildcard_filter.analyze(low, ctx).confidence < wildcard_filter.analyze(mid, ctx).confidence

    def test_batch_shares_context(self, wildcard_filter, sample_assets):
        """Batch analysis returns one result per asset."""
        results = wildcard_filter.analyze_batch(sample_assets, cycle=10)
        assert set(results) == {a.asset_id for a in sample_assets}


class TestCarryover:
    """Test cycle carryover estimates."""

    def test_status_baselines(self, wildcard_filter, asset_factory):
        """Carryover depends on whether the cycle has started or finished."""
        assets = [asset_factory()]
        assert wildcard_filter.predict_carryover(assets, 'upcoming').carryover_percentage == pytest.approx(0.15)
        assert wildcard_filter.predict_carryover(assets, 'started').carryover_percentage == pytest.approx(0.10)
        assert wildcard_filter.predict_carryover(assets, 'finished').carryover_percentage == pytest.approx(0.25)

    def test_surge_bonus(self, wildcard_filter, asset_factory):
        """Heavy population activity adds the surge bonus."""
        assets = [asset_factory(i, transfers_in_event=500_000, transfers_out_event=500_000) for i in range(8)]
        estimate = wildcard_filter.predict_carryover(assets, 'finished')
        assert estimate.carryover_percentage == pytest.approx(0.35)
        assert estimate.confidence == 0.8


class TestWeightsValidation:
    """Test weight table validation."""

    def test_weights_over_one_rejected(self):
        """Indicator weights may not sum above one."""
        with pytest.raises(ConfigurationError):
            WildcardWeights(mass_transfer=0.5)
