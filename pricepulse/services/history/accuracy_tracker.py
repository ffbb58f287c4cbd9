"""
PRICEPULSE - Prediction Accuracy Tracker
Phase 3: Scoring past predictions against realised price changes

Feeds the rolling accuracy reported by a historical data provider and
produces threshold-tuning recommendations from systematic misses.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)


TIMING_ORDER = {'Tonight': 0, 'Soon': 1, 'Tomorrow': 2, 'Unlikely': 3}


@dataclass(frozen=True)
class PredictionOutcome:
    """A past prediction paired with what actually happened."""
    asset_id: int
    progress: float
    predicted_timing: Optional[str] = None
    actual_price_change: int = 0
    actual_timing: Optional[str] = None
    transfers_below_threshold: bool = False
    wildcard_interference: bool = False


@dataclass
class PredictionError:
    """Analysis of one incorrect prediction."""
    asset_id: int
    predicted_change: str
    actual_change: str
    reasons: List[str] = field(default_factory=list)
    suggested_threshold_adjustment: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'predicted_change': self.predicted_change,
            'actual_change': self.actual_change,
            'reasons': list(self.reasons),
            'suggested_threshold_adjustment': self.suggested_threshold_adjustment,
        }


@dataclass
class AccuracyReport:
    """Accuracy metrics over a batch of outcomes."""
    sample_size: int = 0
    overall_accuracy: float = 0.0
    rise_accuracy: float = 0.0
    fall_accuracy: float = 0.0
    timing_accuracy: float = 0.0
    errors: List[PredictionError] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sample_size': self.sample_size,
            'overall_accuracy': round(self.overall_accuracy, 4),
            'rise_accuracy': round(self.rise_accuracy, 4),
            'fall_accuracy': round(self.fall_accuracy, 4),
            'timing_accuracy': round(self.timing_accuracy, 4),
            'errors': [e.to_dict() for e in self.errors],
            'recommendations': list(self.recommendations),
        }


class AccuracyTracker:
    """
    Scores predictions against realised price changes.

    A prediction counts as a rise when progress exceeds the rise target and
    as a fall when it drops below the fall target; anything in between
    predicts no change.
    """

    def __init__(self, rise_target: float = 100.5, fall_target: float = 99.5):
        self.rise_target = rise_target
        self.fall_target = fall_target

    @staticmethod
    def outcomes_for(
        records: Iterable[Any],
        actual_changes: Dict[int, int],
        actual_timings: Optional[Dict[int, str]] = None,
    ) -> List[PredictionOutcome]:
        """Pair prediction records with realised price changes by asset id."""
        actual_timings = actual_timings or {}
        return [
            PredictionOutcome(
                asset_id=r.asset_id,
                progress=r.progress,
                predicted_timing=r.change_timing,
                actual_price_change=actual_changes.get(r.asset_id, 0),
                actual_timing=actual_timings.get(r.asset_id),
            )
            for r in records
        ]

    def to_frame(self, outcomes: Iterable[PredictionOutcome]) -> pd.DataFrame:
        rows = [
            {
                'asset_id': o.asset_id,
                'progress': o.progress,
                'predicted_timing': o.predicted_timing,
                'actual_price_change': o.actual_price_change,
                'actual_timing': o.actual_timing,
            }
            for o in outcomes
        ]
        df = pd.DataFrame(rows, columns=[
            'asset_id', 'progress', 'predicted_timing', 'actual_price_change', 'actual_timing',
        ])
        df['predicted_rise'] = df['progress'] > self.rise_target
        df['predicted_fall'] = df['progress'] < self.fall_target
        df['actual_rise'] = df['actual_price_change'] > 0
        df['actual_fall'] = df['actual_price_change'] < 0
        df['correct'] = (
            (df['predicted_rise'] & df['actual_rise'])
            | (df['predicted_fall'] & df['actual_fall'])
            | (~df['predicted_rise'] & ~df['predicted_fall'] & (df['actual_price_change'] == 0))
        )
        return df

    def evaluate(self, outcomes: List[PredictionOutcome]) -> AccuracyReport:
        """
        Compute accuracy metrics and recommendations.

        Args:
            outcomes: Predictions paired with realised changes

        Returns:
            AccuracyReport (all zeros for an empty batch)
        """
        if not outcomes:
            return AccuracyReport()

        df = self.to_frame(outcomes)
        n = len(df)

        rises = df[df['predicted_rise']]
        falls = df[df['predicted_fall']]
        rise_accuracy = float(rises['actual_rise'].mean()) if len(rises) else 0.0
        fall_accuracy = float(falls['actual_fall'].mean()) if len(falls) else 0.0

        timed = df.dropna(subset=['predicted_timing', 'actual_timing'])
        timing_hits = sum(
            1 for pred, actual in zip(timed['predicted_timing'], timed['actual_timing'])
            if self.timing_close(pred, actual)
        )

        errors = [
            self._analyze_error(o) for o, correct in zip(outcomes, df['correct']) if not correct
        ]

        report = AccuracyReport(
            sample_size=n,
            overall_accuracy=float(df['correct'].mean()),
            rise_accuracy=rise_accuracy,
            fall_accuracy=fall_accuracy,
            timing_accuracy=timing_hits / n,
            errors=errors,
        )
        report.recommendations = self.recommendations(report)

        logger.info(
            f"Accuracy over {n} predictions: overall {report.overall_accuracy:.1%}, "
            f"rise {rise_accuracy:.1%}, fall {fall_accuracy:.1%}"
        )
        return report

    @staticmethod
    def timing_close(predicted: str, actual: str) -> bool:
        """Timing labels within one step of each other count as correct."""
        p = TIMING_ORDER.get(predicted, 3)
        a = TIMING_ORDER.get(actual, 3)
        return abs(p - a) <= 1

    @staticmethod
    def recommendations(report: AccuracyReport) -> List[str]:
        recs = []
        if report.overall_accuracy < 0.85:
            recs.append("Consider adjusting base threshold multipliers")
        if report.overall_accuracy < 0.9:
            recs.append("Review special asset detection logic")
        if len(report.errors) > report.sample_size * 0.2:
            recs.append("Investigate systematic threshold calculation errors")
        return recs

    def _direction(self, progress: float) -> str:
        if progress > self.rise_target:
            return 'rise'
        if progress < self.fall_target:
            return 'fall'
        return 'none'

    def _analyze_error(self, outcome: PredictionOutcome) -> PredictionError:
        predicted = self._direction(outcome.progress)
        change = outcome.actual_price_change
        actual = 'rise' if change > 0 else 'fall' if change < 0 else 'none'

        reasons = []
        adjustment = 1.0
        if predicted == 'rise':
            reasons.append("Predicted rise but no rise occurred")
            if outcome.transfers_below_threshold:
                reasons.append("Transfer count fell short of threshold")
            adjustment = 0.95
        elif predicted == 'fall':
            reasons.append("Predicted fall but no fall occurred")
            if outcome.wildcard_interference:
                reasons.append("Wildcard transfers may have interfered")
            adjustment = 1.05
        else:
            reasons.append(f"Predicted no change but asset had a {actual}")

        return PredictionError(
            asset_id=outcome.asset_id,
            predicted_change=predicted,
            actual_change=actual,
            reasons=reasons,
            suggested_threshold_adjustment=adjustment,
        )
