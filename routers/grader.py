"""
GRADER ROUTER - Games, picks, line capture and grading endpoints

Endpoints:
    - /grader/games                         - Upsert a game snapshot
    - /grader/games/{game_id}/status        - Advance live status (forward only)
    - /grader/games/{game_id}/final         - Record final scores (once)
    - /grader/games/{game_id}/capture-lines - Freeze closing lines (once)
    - /grader/games/{game_id}/result        - Compute (POST) or read (GET) the outcome
    - /grader/picks                         - Create a pick (+ analyst picks)
    - /grader/picks/{pick_id}/publish       - draft -> published
    - /grader/picks/{pick_id}/result        - Grade and record a pick (once)
    - /grader/sync                          - Batch: lines, outcomes, pick results
    - /grader/grade                         - Pure grading, nothing persisted
    - /grader/teams/{team}/records          - ATS and O/U records
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import verify_api_key
from database import create_pick, get_game, publish_pick, upsert_game, uses_db
from game_status import advance_status, set_final_scores
from grading_engine import (
    calculate_result, capture_lines, grade_pick, record_pick_result,
    sync_results, team_ats_record, team_ou_record,
)
from models.api_models import (
    FinalScoreRequest, GameUpsertRequest, GradeRequest, PickCreateRequest,
    PickResultRequest, StatusRequest, SyncRequest,
)
from signals.analyst_consensus import record_analyst_picks

logger = logging.getLogger(__name__)

router = APIRouter(tags=["grader"])


# =============================================================================
# GAMES
# =============================================================================

@router.post("/grader/games")
async def upsert_game_endpoint(body: GameUpsertRequest, auth: bool = Depends(verify_api_key)):
    game_id = upsert_game(body.dict(exclude_unset=True))
    return {"status": "ok", "game_id": game_id}


@router.post("/grader/games/{game_id}/status")
async def game_status_endpoint(game_id: int, body: StatusRequest, auth: bool = Depends(verify_api_key)):
    return advance_status(game_id, body.status).to_dict()


@router.post("/grader/games/{game_id}/final")
async def final_score_endpoint(game_id: int, body: FinalScoreRequest, auth: bool = Depends(verify_api_key)):
    return set_final_scores(game_id, body.home_score, body.away_score).to_dict()


@router.post("/grader/games/{game_id}/capture-lines")
async def capture_lines_endpoint(game_id: int, auth: bool = Depends(verify_api_key)):
    return capture_lines(game_id).to_dict()


@router.post("/grader/games/{game_id}/result")
async def calculate_result_endpoint(game_id: int, auth: bool = Depends(verify_api_key)):
    return calculate_result(game_id).to_dict()


@uses_db
def _game_with_result(game_id: int, *, db: Session):
    game = get_game(game_id, db)
    return {
        "game": game.to_dict(),
        "result": game.result.to_dict() if game.result else None,
    }


@router.get("/grader/games/{game_id}/result")
async def game_result(game_id: int):
    return _game_with_result(game_id)


# =============================================================================
# PICKS
# =============================================================================

@uses_db
def _create_pick_with_analysts(body: PickCreateRequest, *, db: Session):
    pick_id = create_pick(
        body.game_id,
        body.pick_type.value,
        body.pick_side,
        pick_line=body.pick_line,
        stake=body.stake,
        is_free=body.is_free,
        consensus_label=body.consensus_label,
        title=body.title,
        publish=body.publish,
        db=db,
    )
    analysts = record_analyst_picks(pick_id, body.analyst_picks, db=db) if body.analyst_picks else []
    return {"status": "ok", "pick_id": pick_id, "analyst_picks": analysts}


@router.post("/grader/picks")
async def create_pick_endpoint(body: PickCreateRequest, auth: bool = Depends(verify_api_key)):
    return _create_pick_with_analysts(body)


@router.post("/grader/picks/{pick_id}/publish")
async def publish_pick_endpoint(pick_id: int, auth: bool = Depends(verify_api_key)):
    return publish_pick(pick_id).to_dict()


@router.post("/grader/picks/{pick_id}/result")
async def record_pick_result_endpoint(
    pick_id: int,
    body: Optional[PickResultRequest] = None,
    auth: bool = Depends(verify_api_key),
):
    body = body or PickResultRequest()
    result = record_pick_result(
        pick_id,
        home_score=body.home_score,
        away_score=body.away_score,
        result=body.result.value if body.result else None,
        note=body.note,
        correction=body.correction,
    )
    return result.to_dict()


# =============================================================================
# BATCH + PURE
# =============================================================================

@router.post("/grader/sync")
async def sync_endpoint(
    body: Optional[SyncRequest] = None,
    auth: bool = Depends(verify_api_key),
):
    return sync_results(body.now if body else None)


@router.post("/grader/grade")
async def grade_endpoint(body: GradeRequest):
    return grade_pick(body.pick_type.value, body.pick_side, body.pick_line, body.home_score, body.away_score)


@router.get("/grader/teams/{team}/records")
async def team_records(team: str):
    team = team.upper()
    return {"team": team, "ats": team_ats_record(team), "ou": team_ou_record(team)}
