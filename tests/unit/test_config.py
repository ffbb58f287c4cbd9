"""
Unit Tests for Configuration
=============================
Tests for runtime settings validation and derived pricing tables.
"""

import pytest
from pydantic import ValidationError

from pricepulse.core.config import Settings
from pricepulse.core.exceptions import ConfigurationError
from pricepulse.services.pricing.config import (
    PredictionThresholds,
    PricingConfig,
    WildcardWeights,
)

pytestmark = pytest.mark.unit


class TestSettings:
    """Test runtime settings."""

    def test_defaults(self):
        """Defaults describe the full manager population."""
        settings = Settings()
        assert settings.TOTAL_ACTIVE_MANAGERS == 11_000_000
        assert settings.TEAM_COUNT == 20
        assert settings.UPDATE_INTERVAL_MINUTES == 60

    def test_log_level_normalised(self):
        """Log level is upper-cased."""
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="chatty")

    @pytest.mark.parametrize("field", ["TOTAL_ACTIVE_MANAGERS", "TEAM_COUNT", "MAX_CONCURRENT_EVALUATIONS"])
    def test_non_positive_rejected(self, field):
        """Population and concurrency settings must be positive."""
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_negative_bucket_rejected(self):
        with pytest.raises(ValidationError):
            Settings(MAX_RISERS=-1)

    def test_debug_in_production_rejected(self):
        """Production never runs with DEBUG enabled."""
        with pytest.raises(ValidationError):
            Settings(ENVIRONMENT="production", DEBUG=True)

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(ENVIRONMENT="sandbox")


class TestPricingConfig:
    """Test pricing tables derived from settings."""

    def test_from_settings(self):
        """Population constants follow the runtime settings."""
        config = PricingConfig.from_settings(Settings(TOTAL_ACTIVE_MANAGERS=8_000_000, TEAM_COUNT=18))
        assert config.thresholds.total_population == 8_000_000
        assert config.wildcard.team_count == 18

    def test_negative_wildcard_weight_rejected(self):
        with pytest.raises(ConfigurationError):
            WildcardWeights(mass_transfer=-0.1)

    def test_max_discount_range(self):
        """The wildcard discount can never remove every transfer."""
        with pytest.raises(ConfigurationError):
            WildcardWeights(max_discount=1.0)

    def test_targets_inside_progress_range(self):
        """Rise and fall targets must sit strictly inside the progress range."""
        with pytest.raises(ConfigurationError):
            PredictionThresholds(rise_target=250.0)
        with pytest.raises(ConfigurationError):
            PredictionThresholds(fall_target=101.0)

    def test_lock_dampening_range(self):
        with pytest.raises(ConfigurationError):
            PredictionThresholds(lock_dampening=1.5)
