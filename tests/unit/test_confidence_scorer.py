"""
Unit Tests for Confidence Scorer
=================================
Tests for factor bounds, tiers, risk labels and recommended actions.
"""

import pytest

from pricepulse.core.exceptions import ConfigurationError
from pricepulse.models.assets import StatusFlag
from pricepulse.services.history.provider import DefaultHistoricalDataProvider
from pricepulse.services.pricing.config import CONFIDENCE_FACTORS, ConfidenceWeights
from pricepulse.services.pricing.confidence_scorer import (
    ConfidenceInput,
    ConfidenceScorer,
    ConfidenceTier,
    Reliability,
)
from pricepulse.services.pricing.flag_tracker import FlagTracker
from pricepulse.services.pricing.forecast_model import ForecastModel
from pricepulse.services.pricing.threshold_calculator import ThresholdCalculator
from pricepulse.services.pricing.wildcard_filter import WildcardFilter

pytestmark = pytest.mark.unit


@pytest.fixture
def scorer():
    return ConfidenceScorer()


@pytest.fixture
def build_input(now):
    """Run the upstream components for one asset and wrap the result."""
    def _build(asset, progress=104.0, cycle=10):
        wildcard_filter = WildcardFilter()
        forecast_model = ForecastModel()
        return ConfidenceInput(
            asset=asset,
            progress=progress,
            net_transfers=asset.net_transfers,
            threshold=ThresholdCalculator().calculate(asset, cycle),
            wildcard=wildcard_filter.analyze(asset, wildcard_filter.build_context([asset], cycle)),
            flag=FlagTracker().analyze(asset, now),
            forecast=forecast_model.forecast(asset, forecast_model.build_context([], cycle, 30.0)),
        )
    return _build


class TestTiers:
    """Test tier boundaries."""

    @pytest.mark.parametrize("overall,expected", [
        (0.95, ConfidenceTier.VERY_HIGH),
        (0.90, ConfidenceTier.VERY_HIGH),
        (0.8999, ConfidenceTier.HIGH),
        (0.80, ConfidenceTier.HIGH),
        (0.65, ConfidenceTier.MEDIUM),
        (0.50, ConfidenceTier.LOW),
        (0.4999, ConfidenceTier.VERY_LOW),
        (0.0, ConfidenceTier.VERY_LOW),
    ])
    def test_tier_boundaries(self, scorer, overall, expected):
        """Lower bounds are inclusive."""
        assert scorer.tier(overall) == expected


class TestScoring:
    """Test end-to-end scoring of one asset."""

    def test_scores_are_bounded(self, scorer, build_input, sample_assets):
        """Overall score and every factor stay within [0, 1]."""
        for asset in sample_assets:
            record = scorer.score(build_input(asset))
            assert 0.0 <= record.overall <= 1.0
            for name in CONFIDENCE_FACTORS:
                assert 0.0 <= getattr(record.factors, name) <= 1.0
            assert record.tier == scorer.tier(record.overall)

    def test_historical_accuracy_from_provider(self, build_input, sample_asset):
        """The accuracy factor mirrors the provider's rolling accuracy."""
        scorer = ConfidenceScorer(history=DefaultHistoricalDataProvider(accuracy=0.95))
        assert scorer.score(build_input(sample_asset)).factors.historical_accuracy == 0.95

    def test_fresh_severe_flag_lowers_confidence(self, scorer, build_input, asset_factory, now):
        """A critical fresh transition drags the flag factor down."""
        clear = scorer.score(build_input(asset_factory(ownership_pct=25.0)))
        flagged = scorer.score(build_input(asset_factory(
            ownership_pct=25.0, status_flag=StatusFlag.SEVERE,
            previous_flag=StatusFlag.NONE, flag_changed_at=now,
        )))
        assert flagged.factors.flag_status < clear.factors.flag_status
        assert flagged.overall < clear.overall
        assert "Flag status uncertainty" in flagged.risk_factors

    def test_borderline_progress(self, scorer, build_input, sample_asset):
        """Progress near neutral is flagged and lowers timing confidence."""
        record = scorer.score(build_input(sample_asset, progress=100.2))
        assert "Borderline prediction" in record.risk_factors
        assert record.factors.timing == pytest.approx(0.5)

    def test_special_asset_risk(self, scorer, build_input, asset_factory):
        """Special assets carry an exemption risk label."""
        record = scorer.score(build_input(asset_factory(is_special=True)))
        assert "Special asset exemption possible" in record.risk_factors

    def test_explanation_format(self, scorer, build_input, sample_asset):
        """Explanation leads with the rounded percentage."""
        record = scorer.score(build_input(sample_asset))
        assert record.explanation.startswith(f"{round(record.overall * 100)}% confidence based on ")
        assert record.explanation.endswith(".")

    def test_to_dict(self, scorer, build_input, sample_asset):
        """Serialized record exposes tier, reliability and all factors."""
        data = scorer.score(build_input(sample_asset)).to_dict()
        assert set(data['factors']) == set(CONFIDENCE_FACTORS)
        assert data['tier'] in {t.value for t in ConfidenceTier}
        assert data['reliability'] in {r.value for r in Reliability}


class TestLabels:
    """Test recommended actions."""

    def test_recommended_actions(self, scorer):
        """Action text follows score, distance and risk count."""
        assert scorer.recommended_action(0.9, 104.0, []) == "High confidence - Act on this prediction"
        assert scorer.recommended_action(0.75, 98.0, []).startswith("Good confidence")
        assert scorer.recommended_action(0.6, 100.1, []).startswith("Moderate confidence")
        assert scorer.recommended_action(0.3, 100.0, ["a", "b", "c", "d"]) == (
            "Low confidence - Too many risk factors, avoid acting"
        )
        assert scorer.recommended_action(0.3, 100.0, []) == "Low confidence - Monitor only"


class TestWeightsValidation:
    """Test weight table validation."""

    def test_weights_must_sum_to_one(self):
        """Factor weights that do not sum to one are rejected."""
        with pytest.raises(ConfigurationError):
            ConfidenceWeights(transfer_volume=0.5)

    def test_tier_bounds_must_decrease(self):
        """Tier lower bounds must be strictly decreasing."""
        with pytest.raises(ConfigurationError):
            ConfidenceWeights(high_min=0.95)
