"""
PRICEPULSE - Special Asset Classification

Special assets (very widely held premium assets, or standout season
scorers) have historically resisted price movement. Classification is a
pluggable predicate so the cutoffs can be recalibrated or replaced.
"""

from dataclasses import dataclass
from typing import Callable

from pricepulse.models.assets import AssetMetrics

SpecialAssetPredicate = Callable[[AssetMetrics], bool]


@dataclass(frozen=True)
class SpecialAssetRule:
    """
    Default special-asset predicate.

    An asset is special when it is both widely owned and expensive, or when
    its season total is exceptional. The cutoffs are unvalidated heuristics
    and should be recalibrated against observed price-change exemptions.
    """
    min_ownership: float = 30.0
    min_cost: int = 100
    min_total_points: int = 150

    def __call__(self, asset: AssetMetrics) -> bool:
        high_profile = asset.ownership_pct > self.min_ownership and asset.cost > self.min_cost
        top_scorer = asset.total_points > self.min_total_points
        return high_profile or top_scorer


default_special_rule = SpecialAssetRule()


def never_special(asset: AssetMetrics) -> bool:
    """Predicate that disables special handling entirely."""
    return False
