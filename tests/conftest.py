"""
PRICEPULSE - Test Configuration
Pytest fixtures and configuration for the test suite.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pricepulse.core.config import Settings
from pricepulse.models.assets import (
    AssetMetrics,
    BootstrapSnapshot,
    CyclePattern,
    DEFAULT_POSITIONS,
    StatusFlag,
    TeamInfo,
)
from pricepulse.services.history.provider import DefaultHistoricalDataProvider
from pricepulse.services.pricing import PricingConfig, create_prediction_engine


FIXED_NOW = datetime(2024, 10, 5, 12, 0, tzinfo=timezone.utc)


def make_asset(asset_id: int = 1, **overrides) -> AssetMetrics:
    """Mid-priced, moderately owned asset with quiet transfer activity."""
    fields = dict(
        asset_id=asset_id,
        name=f"Asset {asset_id}",
        team_id=(asset_id % 20) + 1,
        position=3,
        ownership_pct=15.0,
        form=5.0,
        recent_points=4.0,
        cost=65,
        total_points=40,
        transfers_in_event=20_000,
        transfers_out_event=12_000,
        transfers_in_history=(10_000, 12_000, 14_000),
        transfers_out_history=(9_000, 9_500, 10_000),
        points_history=(3.0, 5.0, 4.0, 6.0, 2.0, 5.0),
        fixture_difficulty=(3, 3, 2),
    )
    fields.update(overrides)
    return AssetMetrics(**fields)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def asset_factory():
    return make_asset


@pytest.fixture
def sample_asset() -> AssetMetrics:
    return make_asset()


@pytest.fixture
def sample_assets():
    """A small population spanning risers, fallers and flagged assets."""
    return [
        make_asset(1, ownership_pct=22.0, transfers_in_event=180_000, transfers_out_event=15_000),
        make_asset(2, ownership_pct=8.0, transfers_in_event=5_000, transfers_out_event=95_000),
        make_asset(3, ownership_pct=12.0, transfers_in_event=30_000, transfers_out_event=29_500),
        make_asset(4, ownership_pct=25.0, status_flag=StatusFlag.SEVERE,
                   previous_flag=StatusFlag.NONE, flag_changed_at=FIXED_NOW,
                   transfers_in_event=2_000, transfers_out_event=140_000),
        make_asset(5, ownership_pct=0.05, transfers_in_event=50, transfers_out_event=20),
        make_asset(6, ownership_pct=45.0, cost=130, total_points=180,
                   transfers_in_event=60_000, transfers_out_event=40_000),
    ]


@pytest.fixture
def sample_snapshot(sample_assets) -> BootstrapSnapshot:
    return BootstrapSnapshot(
        assets=tuple(sample_assets),
        current_cycle=10,
        teams={i: TeamInfo(team_id=i, short_name=f"T{i:02d}") for i in range(1, 21)},
        positions=dict(DEFAULT_POSITIONS),
        hours_until_deadline=30.0,
        recent_patterns=(
            CyclePattern(cycle=8, total_transfers=4_800_000, wildcard_usage=0.02),
            CyclePattern(cycle=9, total_transfers=5_600_000, wildcard_usage=0.05),
        ),
        fetched_at=FIXED_NOW,
    )


@pytest.fixture
def history() -> DefaultHistoricalDataProvider:
    return DefaultHistoricalDataProvider()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(ENVIRONMENT="development", MAX_CONCURRENT_EVALUATIONS=4)


@pytest.fixture
def engine(test_settings, history):
    return create_prediction_engine(
        settings=test_settings,
        history=history,
        config=PricingConfig.from_settings(test_settings),
    )


@pytest.fixture
def bootstrap_payload():
    """Raw bootstrap document in the upstream shape."""
    return {
        "elements": [
            {
                "id": 101, "web_name": "Striker", "team": 1, "element_type": 4,
                "selected_by_percent": "24.5", "form": "7.2", "event_points": 9,
                "now_cost": 95, "status": "a", "total_points": 88,
                "transfers_in_event": 210_000, "transfers_out_event": 20_000,
                "cost_change_event": 1,
            },
            {
                "id": 102, "web_name": "Keeper", "team": 2, "element_type": 1,
                "selected_by_percent": "6.1", "form": "1.5", "event_points": 1,
                "now_cost": 45, "status": "i", "total_points": 22,
                "transfers_in_event": 1_500, "transfers_out_event": 88_000,
                "cost_change_event": 0,
            },
            {
                "id": 103, "web_name": "Winger", "team": 1, "element_type": 3,
                "selected_by_percent": "11.0", "form": "4.0", "event_points": 2,
                "now_cost": 70, "status": "d", "total_points": 41,
                "transfers_in_event": 15_000, "transfers_out_event": 14_000,
                "cost_change_event": 0,
            },
        ],
        "teams": [
            {"id": 1, "name": "Northfield", "short_name": "NOR"},
            {"id": 2, "name": "Southbury", "short_name": "SOU"},
        ],
        "element_types": [
            {"id": 1, "singular_name_short": "GKP"},
            {"id": 3, "singular_name_short": "MID"},
            {"id": 4, "singular_name_short": "FWD"},
        ],
        "events": [
            {"id": 11, "is_current": True, "is_next": False, "finished": False},
            {"id": 12, "is_current": False, "is_next": True, "finished": False,
             "deadline_time": "2024-10-06T10:00:00Z"},
        ],
        "fetched_at": "2024-10-05T12:00:00Z",
    }


@pytest.fixture
def previous_bootstrap_payload(bootstrap_payload):
    """Same document one observation earlier, before the keeper's injury."""
    elements = [dict(e) for e in bootstrap_payload["elements"]]
    elements[1]["status"] = "a"
    return {**bootstrap_payload, "elements": elements}


@pytest_asyncio.fixture
async def async_client(engine):
    """HTTP client bound to the app, with the engine pinned to test settings."""
    from pricepulse.api.dependencies import get_prediction_engine
    from pricepulse.main import app

    app.dependency_overrides[get_prediction_engine] = lambda: engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
