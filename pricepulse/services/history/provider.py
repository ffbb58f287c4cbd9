"""
PRICEPULSE - Historical Data Provider
Reference data consulted read-only by the prediction components.

The engine depends only on the abstract HistoricalDataProvider. The default
implementation ships with built-in heuristic tables; a store-backed provider
can replace it without touching component logic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from pricepulse.models.assets import FlagTransition, StatusFlag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WildcardFingerprint:
    """Aggregate pattern of a past cycle known to contain mass resets."""
    cycle: int
    total_transfers: int
    unique_assets: int
    team_spread: float
    confidence: float


@dataclass(frozen=True)
class TransitionImpact:
    """Historical average effect of a flag transition over the following day."""
    avg_transfers_out: float
    avg_transfers_in: float
    price_fall_probability: float
    hours_to_impact: float


class HistoricalDataProvider(ABC):
    """Read-only source of historical reference data."""

    @abstractmethod
    def wildcard_fingerprints(self) -> List[WildcardFingerprint]:
        """Known wildcard cycle fingerprints."""

    @abstractmethod
    def flag_transition_impacts(self) -> Dict[FlagTransition, TransitionImpact]:
        """Historical impact per flag transition. Transitions may be absent."""

    @abstractmethod
    def cycle_carryover_baselines(self) -> Dict[int, float]:
        """Observed carryover fraction per cycle index."""

    @abstractmethod
    def model_accuracy(self) -> float:
        """Rolling accuracy of the engine in [0, 1]."""

    def accuracy_last_week(self) -> float:
        """Accuracy over the last week as a percentage."""
        return round(self.model_accuracy() * 100, 1)


def _default_fingerprints() -> List[WildcardFingerprint]:
    return [
        WildcardFingerprint(cycle=4, total_transfers=8_500_000, unique_assets=450,
                            team_spread=0.85, confidence=0.92),
        WildcardFingerprint(cycle=13, total_transfers=7_200_000, unique_assets=380,
                            team_spread=0.78, confidence=0.88),
    ]


def _default_transition_impacts() -> Dict[FlagTransition, TransitionImpact]:
    none, caution, severe = StatusFlag.NONE, StatusFlag.CAUTION, StatusFlag.SEVERE
    return {
        FlagTransition(none, severe): TransitionImpact(85_000, 5_000, 0.75, 18),
        FlagTransition(severe, none): TransitionImpact(15_000, 45_000, 0.10, 48),
        FlagTransition(none, caution): TransitionImpact(25_000, 8_000, 0.35, 24),
    }


class DefaultHistoricalDataProvider(HistoricalDataProvider):
    """Provider backed by built-in tables, each overridable at construction."""

    DEFAULT_ACCURACY = 0.923
    DEFAULT_CARRYOVER = {4: 0.25, 8: 0.15, 13: 0.30}

    def __init__(
        self,
        fingerprints: Optional[List[WildcardFingerprint]] = None,
        transition_impacts: Optional[Dict[FlagTransition, TransitionImpact]] = None,
        carryover_baselines: Optional[Dict[int, float]] = None,
        accuracy: Optional[float] = None,
    ):
        self._fingerprints = list(fingerprints) if fingerprints is not None else _default_fingerprints()
        self._impacts = (
            dict(transition_impacts) if transition_impacts is not None
            else _default_transition_impacts()
        )
        self._carryover = (
            dict(carryover_baselines) if carryover_baselines is not None
            else dict(self.DEFAULT_CARRYOVER)
        )
        self._accuracy = self.DEFAULT_ACCURACY if accuracy is None else accuracy
        if not 0.0 <= self._accuracy <= 1.0:
            raise ValueError(f"Accuracy must be within [0, 1], got {self._accuracy}")

        logger.debug(
            f"Historical provider loaded: {len(self._fingerprints)} fingerprints, "
            f"{len(self._impacts)} transition impacts"
        )

    def wildcard_fingerprints(self) -> List[WildcardFingerprint]:
        return list(self._fingerprints)

    def flag_transition_impacts(self) -> Dict[FlagTransition, TransitionImpact]:
        return dict(self._impacts)

    def cycle_carryover_baselines(self) -> Dict[int, float]:
        return dict(self._carryover)

    def model_accuracy(self) -> float:
        return self._accuracy

    def with_accuracy(self, accuracy: float) -> 'DefaultHistoricalDataProvider':
        """Copy of this provider reporting a new rolling accuracy."""
        return DefaultHistoricalDataProvider(
            fingerprints=self._fingerprints,
            transition_impacts=self._impacts,
            carryover_baselines=self._carryover,
            accuracy=accuracy,
        )
