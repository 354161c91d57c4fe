"""
CONSENSUS ROUTER - Weighted analyst consensus and weight calibration

Endpoints:
    - /consensus                 - Weighted consensus for a set of analyst picks
    - /consensus/weights         - Current weight table
    - /consensus/weights/seed    - Seed missing analysts from baseline accuracies
    - /consensus/recalibrate     - Recompute weights (explicit results or evaluated picks)
    - /consensus/accuracy        - Evaluated-pick accuracy per analyst
    - /consensus/history         - Logged weight changes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import verify_api_key
from core.time_et import parse_day
from core.errors import EngineError
from learning_engine import apply_backtest, calibration_history, run_weight_recalibration
from models.api_models import ConsensusRequest, RecalibrateRequest
from signals.analyst_consensus import (
    accuracy_all, list_weights, seed_analyst_weights, weighted_consensus,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["consensus"])


def _optional_day(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_day(value)
    except ValueError:
        raise EngineError(f"Invalid date {value!r}, expected YYYY-MM-DD")


@router.post("/consensus")
async def consensus(body: ConsensusRequest):
    return weighted_consensus(body.picks)


@router.get("/consensus/weights")
async def weights():
    rows = list_weights()
    return {"count": len(rows), "weights": rows}


@router.post("/consensus/weights/seed")
async def seed_weights(auth: bool = Depends(verify_api_key)):
    seeded = seed_analyst_weights()
    return {"status": "ok", "seeded": len(seeded), "changes": seeded}


@router.post("/consensus/recalibrate")
async def recalibrate(body: Optional[RecalibrateRequest] = None, auth: bool = Depends(verify_api_key)):
    body = body or RecalibrateRequest()
    if body.results:
        changes = apply_backtest(body.results, body.window_start, body.window_end)
        return {"tuned": bool(changes), "changes": changes, "source": "backtest"}
    summary = run_weight_recalibration(body.window_start, body.window_end, body.min_samples)
    summary["source"] = "evaluated_picks"
    return summary


@router.get("/consensus/accuracy")
async def accuracy(start: Optional[str] = None, end: Optional[str] = None):
    start_day, end_day = _optional_day(start), _optional_day(end)
    return {
        "start": start_day.isoformat() if start_day else None,
        "end": end_day.isoformat() if end_day else None,
        "analysts": accuracy_all(start_day, end_day),
    }


@router.get("/consensus/history")
async def history(limit: int = Query(50, ge=1, le=500)):
    rows = calibration_history("analyst_weight", limit)
    return {"count": len(rows), "history": rows}
