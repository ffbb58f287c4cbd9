"""
PRICEPULSE - Asset Domain Models
Immutable per-cycle inputs to the prediction engine.

A BootstrapSnapshot is produced once per evaluation cycle by the snapshot
collaborator and read-only from then on. Every service in the pipeline
receives AssetMetrics records from it and never mutates them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pricepulse.core.exceptions import AssetValidationError


# =============================================================================
# ENUMS
# =============================================================================

class StatusFlag(str, Enum):
    """Availability status published for an asset."""
    NONE = "none"          # Fully available
    CAUTION = "caution"    # Doubtful / minor knock
    SEVERE = "severe"      # Injured / suspended / unavailable

    @property
    def rank(self) -> int:
        return {"none": 0, "caution": 1, "severe": 2}[self.value]


# Upstream availability codes
STATUS_CODES: Dict[str, StatusFlag] = {
    'a': StatusFlag.NONE,     # available
    'n': StatusFlag.NONE,     # not in squad
    'i': StatusFlag.SEVERE,   # injured
    'd': StatusFlag.SEVERE,   # doubtful
    'u': StatusFlag.CAUTION,  # unavailable
    's': StatusFlag.CAUTION,  # suspended
}


class PriceTier(str, Enum):
    """Price band of an asset."""
    BUDGET = "budget"
    MID = "mid"
    PREMIUM = "premium"

    @classmethod
    def from_cost(cls, cost: int) -> "PriceTier":
        """Map a raw cost (tenths of a unit) to its tier."""
        if cost <= 50:
            return cls.BUDGET
        if cost <= 80:
            return cls.MID
        return cls.PREMIUM


class SeverityTier(str, Enum):
    """Impact severity of a flag transition."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3, "critical": 4}[self.value]


class MonitoringPriority(str, Enum):
    """How closely an asset should be watched."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3, "critical": 4}[self.value]


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class TeamInfo:
    """Team lookup entry."""
    team_id: int
    short_name: str
    name: str = ""


@dataclass(frozen=True)
class AssetMetrics:
    """Point-in-time metrics for one tracked asset."""
    asset_id: int
    name: str
    team_id: int
    position: int

    ownership_pct: float
    form: float
    recent_points: float
    cost: int
    status_flag: StatusFlag = StatusFlag.NONE
    status_code: Optional[str] = None  # Raw upstream code, when mapped from a payload
    price_tier: Optional[PriceTier] = None
    is_special: bool = False
    total_points: int = 0

    # Transfer windows
    transfers_in_event: int = 0
    transfers_out_event: int = 0
    transfers_in_24h: Optional[int] = None
    transfers_out_24h: Optional[int] = None
    cost_change_event: int = 0

    # Flag history
    previous_flag: Optional[StatusFlag] = None
    flag_changed_at: Optional[datetime] = None

    # Trend arrays, oldest first
    transfers_in_history: Tuple[int, ...] = ()
    transfers_out_history: Tuple[int, ...] = ()
    points_history: Tuple[float, ...] = ()
    fixture_difficulty: Tuple[int, ...] = ()

    def __post_init__(self):
        if self.price_tier is None:
            object.__setattr__(self, 'price_tier', PriceTier.from_cost(self.cost))

    @property
    def ownership_fraction(self) -> float:
        return self.ownership_pct / 100.0

    @property
    def price(self) -> float:
        return self.cost / 10.0

    @property
    def net_transfers(self) -> int:
        return self.transfers_in_event - self.transfers_out_event

    @property
    def total_activity(self) -> int:
        return self.transfers_in_event + self.transfers_out_event

    @property
    def has_known_status(self) -> bool:
        return self.status_code is None or self.status_code in STATUS_CODES

    @property
    def flag_changed(self) -> bool:
        return self.previous_flag is not None and self.previous_flag != self.status_flag

    def validate(self) -> None:
        """Raise AssetValidationError if any field is outside its domain."""
        if not self.has_known_status:
            raise AssetValidationError(
                'status', self.status_code, f"Unknown status code {self.status_code!r}"
            )
        if not isinstance(self.status_flag, StatusFlag):
            raise AssetValidationError('status_flag', self.status_flag)
        if self.previous_flag is not None and not isinstance(self.previous_flag, StatusFlag):
            raise AssetValidationError('previous_flag', self.previous_flag)
        if not 0.0 <= self.ownership_pct <= 100.0:
            raise AssetValidationError(
                'ownership_pct', self.ownership_pct, "Ownership must be within [0, 100]"
            )
        if self.cost < 0:
            raise AssetValidationError('cost', self.cost, "Cost cannot be negative")
        if self.transfers_in_event < 0 or self.transfers_out_event < 0:
            raise AssetValidationError(
                'transfers', (self.transfers_in_event, self.transfers_out_event)
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'name': self.name,
            'team_id': self.team_id,
            'position': self.position,
            'ownership_pct': self.ownership_pct,
            'form': self.form,
            'cost': self.cost,
            'status_flag': self.status_flag.value,
            'price_tier': self.price_tier.value,
            'is_special': self.is_special,
            'transfers_in_event': self.transfers_in_event,
            'transfers_out_event': self.transfers_out_event,
        }


@dataclass(frozen=True)
class CyclePattern:
    """Population-level summary of one past cycle."""
    cycle: int
    total_transfers: int
    wildcard_usage: float = 0.0  # Fraction of managers who reset
    price_changes: int = 0
    deadline_rush_intensity: float = 0.0
    is_break: bool = False


@dataclass(frozen=True)
class BootstrapSnapshot:
    """Full-population snapshot for one evaluation cycle."""
    assets: Tuple[AssetMetrics, ...]
    current_cycle: int
    teams: Dict[int, TeamInfo] = field(default_factory=dict)
    positions: Dict[int, str] = field(default_factory=dict)
    hours_until_deadline: float = 48.0
    cycle_status: str = "upcoming"  # upcoming / started / finished
    recent_patterns: Tuple[CyclePattern, ...] = ()
    fetched_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return len(self.assets) == 0

    def team_name(self, team_id: int) -> str:
        team = self.teams.get(team_id)
        return team.short_name if team else "UNK"

    def position_name(self, position: int) -> str:
        return self.positions.get(position, "UNK")

    def by_id(self) -> Dict[int, AssetMetrics]:
        return {asset.asset_id: asset for asset in self.assets}


DEFAULT_POSITIONS: Dict[int, str] = {1: "GK", 2: "DEF", 3: "MID", 4: "FWD"}


@dataclass(frozen=True)
class FlagTransition:
    """Directed edge between two distinct status flags."""
    from_flag: StatusFlag
    to_flag: StatusFlag

    def __post_init__(self):
        if self.from_flag == self.to_flag:
            raise ValueError(f"Not a transition: {self.from_flag.value} -> {self.to_flag.value}")

    @property
    def is_bad_news(self) -> bool:
        """Outflow-dominant transitions: anything into severe, or none to caution."""
        return self.to_flag == StatusFlag.SEVERE or (
            self.from_flag == StatusFlag.NONE and self.to_flag == StatusFlag.CAUTION
        )

    @property
    def label(self) -> str:
        return f"{self.from_flag.value}_to_{self.to_flag.value}"

    @classmethod
    def all(cls) -> List["FlagTransition"]:
        """Every valid directed transition."""
        return [
            cls(a, b) for a in StatusFlag for b in StatusFlag if a != b
        ]
