"""
PRICEPULSE - API Schemas
Phase 4: Pydantic Request/Response Models
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    """Error payload returned by the exception handlers."""
    error: str
    detail: Optional[Any] = None
    status_code: int


# =============================================================================
# SNAPSHOT REQUEST SCHEMAS
# =============================================================================

class BootstrapSchema(BaseModel):
    """Raw upstream records pass through unchanged; unknown keys are kept."""
    model_config = ConfigDict(extra="allow")


class ElementHistory(BootstrapSchema):
    transfers_in: List[int] = []
    transfers_out: List[int] = []
    points: List[float] = []
    fixture_difficulty: List[int] = []


class ElementPayload(BootstrapSchema):
    """One asset as published in the bootstrap `elements` list."""
    id: int
    web_name: str
    team: int
    element_type: int
    selected_by_percent: Union[float, str] = 0.0
    form: Union[float, str] = 0.0
    event_points: float = 0
    now_cost: int = Field(..., ge=0)
    status: str = "a"
    total_points: int = 0
    transfers_in_event: int = Field(0, ge=0)
    transfers_out_event: int = Field(0, ge=0)
    transfers_in_24h: Optional[int] = None
    transfers_out_24h: Optional[int] = None
    cost_change_event: int = 0
    history: Optional[ElementHistory] = None


class TeamPayload(BootstrapSchema):
    id: int
    name: str = ""
    short_name: Optional[str] = None


class ElementTypePayload(BootstrapSchema):
    id: int
    singular_name_short: str


class EventPayload(BootstrapSchema):
    id: int
    is_current: bool = False
    is_next: bool = False
    finished: bool = False
    deadline_time: Optional[datetime] = None


class CyclePatternPayload(BootstrapSchema):
    cycle: int
    total_transfers: int = Field(..., ge=0)
    wildcard_usage: float = Field(0.0, ge=0, le=1)
    price_changes: int = 0
    deadline_rush_intensity: float = 0.0
    is_break: bool = False


class SnapshotRequest(BaseModel):
    """Bootstrap document submitted for a prediction cycle."""
    elements: List[ElementPayload]
    teams: List[TeamPayload] = []
    element_types: List[ElementTypePayload] = []
    events: List[EventPayload] = []
    recent_patterns: List[CyclePatternPayload] = []
    hours_until_deadline: Optional[float] = Field(None, ge=0)
    fetched_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        """Plain dict in the upstream bootstrap shape."""
        return self.model_dump(exclude_none=True)


# =============================================================================
# PREDICTION RESPONSE SCHEMAS
# =============================================================================

class ValidTransfers(BaseModel):
    in_: int = Field(..., alias="in")
    out: int
    net: int

    model_config = ConfigDict(populate_by_name=True)


class PredictionRecordResponse(BaseSchema):
    """One ranked asset prediction."""
    asset_id: int
    name: str
    team_name: str
    position: str
    current_price: float
    ownership_pct: float
    progress: float
    prediction: float
    hourly_change: float
    change_timing: str
    target_reached: bool
    change_probability: float
    net_transfers: int
    valid_transfers: ValidTransfers
    thresholds: Dict[str, Any]
    realtime: Dict[str, Any]
    forecast: Dict[str, Any]
    wildcard: Dict[str, Any]
    flag: Dict[str, Any]
    confidence: Dict[str, Any]
    special_notes: List[str] = []
    monitoring_priority: str
    algorithm_version: str


class PredictionBuckets(BaseModel):
    risers: List[PredictionRecordResponse]
    fallers: List[PredictionRecordResponse]
    stable: List[PredictionRecordResponse]


class PredictionMetadata(BaseModel):
    algorithm_version: str
    accuracy_last_week: float
    total_predictions: int
    confidence_average: float = Field(..., ge=0, le=1)
    last_updated: datetime
    next_update: datetime


class PredictionCounts(BaseModel):
    predicted_rises: int
    predicted_falls: int
    high_confidence_predictions: int
    special_cases: int


class PredictionSummaryResponse(BaseModel):
    """Ranked output of one prediction cycle."""
    predictions: PredictionBuckets
    metadata: PredictionMetadata
    summary: PredictionCounts
