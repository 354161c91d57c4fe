"""
Pydantic models for API request/response validation.
Provides type safety, automatic validation, and OpenAPI documentation.

v2.3 - Games, picks, grading, consensus and trigger requests
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator

from core.time_et import now_et


# ============================================================================
# ENUMS
# ============================================================================

class PickTypeIn(str, Enum):
    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"


class PickResultIn(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"


SIDES_BY_TYPE = {
    PickTypeIn.SPREAD: ("home", "away"),
    PickTypeIn.MONEYLINE: ("home", "away"),
    PickTypeIn.TOTAL: ("over", "under"),
}


# ============================================================================
# BASE RESPONSE MODEL
# ============================================================================

class APIResponse(BaseModel):
    """Standardized API response wrapper."""
    status: str = "ok"
    timestamp: str = Field(default_factory=lambda: now_et().isoformat())

    class Config:
        extra = "allow"  # Allow additional fields


def _check_side(v, values):
    side = str(v).strip().lower()
    pick_type = values.get("pick_type")
    if pick_type is not None and side not in SIDES_BY_TYPE[pick_type]:
        raise ValueError(f"side must be one of {SIDES_BY_TYPE[pick_type]} for {pick_type.value}")
    return side


# ============================================================================
# GAMES
# ============================================================================

class GameUpsertRequest(BaseModel):
    """Game snapshot from the ingestion layer."""
    external_id: Optional[str] = Field(None, description="Upstream game id (dedupe key)")
    game_date: datetime = Field(..., description="Scheduled start (UTC or offset-aware)")
    home_team: str = Field(..., min_length=2, max_length=10)
    away_team: str = Field(..., min_length=2, max_length=10)
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None
    home_spread: Optional[float] = Field(None, description="Home perspective, -2 = home favored by 2")
    total_line: Optional[float] = None
    home_edge: Optional[str] = Field(None, description='Schedule annotation, e.g. "B2B", "REST-2"')
    away_edge: Optional[str] = None

    @validator('home_team', 'away_team')
    def upper_abbr(cls, v):
        return v.strip().upper()


class FinalScoreRequest(BaseModel):
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)


class StatusRequest(BaseModel):
    status: str = Field(..., description="scheduled / live / finished")

    @validator('status')
    def valid_status(cls, v):
        v = v.strip().lower()
        if v not in ("scheduled", "live", "finished"):
            raise ValueError("status must be scheduled, live or finished")
        return v


# ============================================================================
# PICKS / GRADING
# ============================================================================

class PickCreateRequest(BaseModel):
    game_id: int
    pick_type: PickTypeIn
    pick_side: str
    pick_line: Optional[float] = None
    stake: Optional[float] = Field(None, gt=0, description="Units, default 1.0")
    is_free: bool = False
    consensus_label: Optional[str] = None
    title: Optional[str] = None
    publish: bool = False
    analyst_picks: Optional[Dict[str, str]] = Field(None, description="Analyst -> HOME/AWAY")

    @validator('pick_side')
    def valid_side(cls, v, values):
        return _check_side(v, values)

    @validator('pick_line', always=True)
    def line_required(cls, v, values):
        if v is None and values.get("pick_type") in (PickTypeIn.SPREAD, PickTypeIn.TOTAL):
            raise ValueError("pick_line is required for spread and total picks")
        return v


class GradeRequest(BaseModel):
    """Pure grading, nothing persisted."""
    pick_type: PickTypeIn
    pick_side: str
    pick_line: Optional[float] = None
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)

    @validator('pick_side')
    def valid_side(cls, v, values):
        return _check_side(v, values)


class PickResultRequest(BaseModel):
    home_score: Optional[int] = Field(None, ge=0)
    away_score: Optional[int] = Field(None, ge=0)
    result: Optional[PickResultIn] = Field(None, description="Explicit result, skips grading")
    note: Optional[str] = Field(None, max_length=500)
    correction: bool = Field(False, description="Overwrite an already recorded result")


class SyncRequest(BaseModel):
    now: Optional[datetime] = Field(None, description="Override clock (naive UTC)")


# ============================================================================
# CONSENSUS
# ============================================================================

class ConsensusRequest(BaseModel):
    picks: Dict[str, str] = Field(..., description="Analyst -> HOME/AWAY")

    @validator('picks')
    def valid_sides(cls, v):
        cleaned = {}
        for analyst, side in v.items():
            side = str(side).strip().upper()
            if side not in ("HOME", "AWAY"):
                raise ValueError(f"{analyst}: side must be HOME or AWAY")
            cleaned[str(analyst).strip().upper()] = side
        return cleaned


class RecalibrateRequest(BaseModel):
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    min_samples: Optional[int] = Field(None, ge=1)
    results: Optional[Dict[str, Dict[str, Any]]] = Field(
        None, description="Explicit backtest results: analyst -> {accuracy, sample_size}",
    )

    @validator('window_end')
    def ordered_window(cls, v, values):
        start = values.get("window_start")
        if v is not None and start is not None and v < start:
            raise ValueError("window_end must not precede window_start")
        return v


# ============================================================================
# TRIGGERS
# ============================================================================

class DetectRequest(BaseModel):
    source: str = Field("engine", max_length=50)
    use_calibrated_confidence: bool = False
