"""
TRIGGERS ROUTER - Weakness trigger detection, evaluation and hit rates

Endpoints:
    - /triggers/games/{game_id}/detect    - Detect + persist triggers (find-or-create)
    - /triggers/games/{game_id}/evaluate  - Evaluate a finished game's predictions (once)
    - /triggers/games/{game_id}           - Stored predictions for a game
    - /triggers/stats                     - Hit rates by trigger type and by team
    - /triggers/recalibrate               - Log confidence changes from observed hit rates
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from core.auth import verify_api_key
from learning_engine import latest_trigger_confidence, run_trigger_recalibration
from models.api_models import DetectRequest
from weakness_triggers import (
    detect_for_game, evaluate_game, hit_rate_by_team, predictions_for_game, statistics,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["triggers"])


@router.post("/triggers/games/{game_id}/detect")
async def detect(game_id: int, body: Optional[DetectRequest] = None, auth: bool = Depends(verify_api_key)):
    body = body or DetectRequest()
    overrides = latest_trigger_confidence() if body.use_calibrated_confidence else None
    out = detect_for_game(game_id, source=body.source, confidence_overrides=overrides)
    out["status"] = "ok"
    return out


@router.post("/triggers/games/{game_id}/evaluate")
async def evaluate(game_id: int, auth: bool = Depends(verify_api_key)):
    return evaluate_game(game_id).to_dict()


@router.get("/triggers/games/{game_id}")
async def game_predictions(game_id: int):
    rows = predictions_for_game(game_id)
    return {"game_id": game_id, "count": len(rows), "predictions": rows}


@router.get("/triggers/stats")
async def trigger_stats():
    stats = statistics()
    stats["by_team"] = hit_rate_by_team()
    return stats


@router.post("/triggers/recalibrate")
async def recalibrate(auth: bool = Depends(verify_api_key)):
    return run_trigger_recalibration()
