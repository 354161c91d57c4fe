"""
v2.3 Grading Engine - Outcome capture and pick settlement

Responsibilities:
1. Capture opening/closing lines once per game (before or at start)
2. Compute the canonical game outcome once final scores exist:
   margin, spread_result (home_covered/away_covered/push),
   total_result (over/under/push)
3. Grade picks (WIN/LOSS/PUSH) from final scores and persist exactly once
4. Evaluate analyst picks once their parent pick has a result

Sign convention (shared by pick-level and outcome-level grading):
    spread: adjusted = margin + line (home side) or -margin + line (away side)
    total:  diff = (home + away) - line
    >0 win, <0 loss, 0 push

Idempotence: each write is a compare-and-set on the entity's lifecycle
column. A second attempt, including a concurrent one, finds the guard
already flipped and writes nothing.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.errors import EngineError, OperationResult, OperationStatus
from database import (
    Game, GameResult, Lifecycle, OutcomeStage, Pick, PickResult, PickStatus,
    PickType, SpreadResult, TotalResult, PICK_SIDES, ensure_game_result,
    game_entity, get_game, get_pick, pick_entity, uses_db, utcnow,
)
from game_status import has_started

logger = logging.getLogger(__name__)

# Scores and half-point lines are exact in binary floating point; the
# tolerance only absorbs noise from upstream conversions.
PUSH_TOLERANCE = 1e-9

# Lines are captured this long before the scheduled start
LINE_CAPTURE_LEAD = timedelta(minutes=30)


# ============================================================================
# PURE GRADING
# ============================================================================

def _settle(value: float) -> PickResult:
    if abs(value) < PUSH_TOLERANCE:
        return PickResult.PUSH
    return PickResult.WIN if value > 0 else PickResult.LOSS


def grade_spread(pick_side: str, pick_line: float, home_score: int, away_score: int) -> PickResult:
    """pick_line is from the picked side's perspective (home -3.5 / away +3.5)."""
    margin = home_score - away_score
    adjusted = margin + pick_line if pick_side == "home" else -margin + pick_line
    return _settle(adjusted)


def grade_total(pick_side: str, pick_line: float, home_score: int, away_score: int) -> PickResult:
    diff = (home_score + away_score) - pick_line
    return _settle(diff if pick_side == "over" else -diff)


def grade_moneyline(pick_side: str, home_score: int, away_score: int) -> PickResult:
    won = (pick_side == "home") == (home_score > away_score)
    return PickResult.WIN if won else PickResult.LOSS


def determine_pick_result(
    pick_type: str,
    pick_side: str,
    pick_line: Optional[float],
    home_score: int,
    away_score: int,
) -> PickResult:
    """
    Grade one pick against final scores.

    Raises:
        EngineError: unsupported pick type/side, or a spread/total pick without a line
    """
    try:
        kind = PickType(str(getattr(pick_type, "value", pick_type)).lower())
    except ValueError:
        raise EngineError(f"Unsupported pick type: {pick_type!r}")
    side = str(pick_side).lower()
    if side not in PICK_SIDES[kind]:
        raise EngineError(f"Side {pick_side!r} is not valid for a {kind.value} pick")

    if kind == PickType.MONEYLINE:
        return grade_moneyline(side, home_score, away_score)
    if pick_line is None:
        raise EngineError(f"{kind.value} pick has no line")
    if kind == PickType.SPREAD:
        return grade_spread(side, pick_line, home_score, away_score)
    return grade_total(side, pick_line, home_score, away_score)


def outcome_spread_result(margin: int, closing_spread: float) -> SpreadResult:
    """closing_spread is home perspective (home -2 = favored by 2)."""
    adjusted = margin + closing_spread
    if abs(adjusted) < PUSH_TOLERANCE:
        return SpreadResult.PUSH
    return SpreadResult.HOME_COVERED if adjusted > 0 else SpreadResult.AWAY_COVERED


def outcome_total_result(total: int, closing_total: float) -> TotalResult:
    diff = total - closing_total
    if abs(diff) < PUSH_TOLERANCE:
        return TotalResult.PUSH
    return TotalResult.OVER if diff > 0 else TotalResult.UNDER


def grade_from_outcome(pick_type: str, pick_side: str, outcome: GameResult) -> Optional[PickResult]:
    """
    Grade a pick at the closing line straight from the canonical outcome.

    Returns None when the outcome lacks the relevant result.
    """
    kind = PickType(str(getattr(pick_type, "value", pick_type)).lower())
    side = str(pick_side).lower()

    if kind == PickType.SPREAD:
        if outcome.spread_result is None:
            return None
        if outcome.spread_result == SpreadResult.PUSH:
            return PickResult.PUSH
        covered = "home" if outcome.spread_result == SpreadResult.HOME_COVERED else "away"
        return PickResult.WIN if side == covered else PickResult.LOSS

    if kind == PickType.TOTAL:
        if outcome.total_result is None:
            return None
        if outcome.total_result == TotalResult.PUSH:
            return PickResult.PUSH
        return PickResult.WIN if side == outcome.total_result.value else PickResult.LOSS

    if outcome.margin is None:
        return None
    return grade_moneyline(side, outcome.margin, 0)


def matches_closing_line(pick: Pick, outcome: GameResult) -> bool:
    if pick.pick_line is None:
        return False
    if pick.pick_type == PickType.SPREAD and outcome.closing_spread is not None:
        closing = outcome.closing_spread if pick.pick_side == "home" else -outcome.closing_spread
        return abs(pick.pick_line - closing) < PUSH_TOLERANCE
    if pick.pick_type == PickType.TOTAL and outcome.closing_total is not None:
        return abs(pick.pick_line - outcome.closing_total) < PUSH_TOLERANCE
    return False


# ============================================================================
# LINE CAPTURE / OUTCOME (game level)
# ============================================================================

@uses_db
def capture_lines(game_id: int, *, db: Session) -> OperationResult:
    """
    Freeze the game's current lines as closing lines. Once per game.

    Opening lines keep the first value ever seen.
    """
    game = get_game(game_id, db)
    entity = game_entity(game_id)
    result = ensure_game_result(game, db)

    if result.lines_captured:
        return OperationResult.already(entity, **_lines_payload(result))
    if game.home_spread is None and game.total_line is None:
        return OperationResult.not_ready(entity, "no market spread or total on the snapshot")

    written = db.query(GameResult).filter(
        GameResult.id == result.id,
        GameResult.stage == OutcomeStage.OPEN,
    ).update(
        {
            GameResult.opening_spread: result.opening_spread if result.opening_spread is not None else game.home_spread,
            GameResult.opening_total: result.opening_total if result.opening_total is not None else game.total_line,
            GameResult.closing_spread: game.home_spread,
            GameResult.closing_total: game.total_line,
            GameResult.lines_captured_at: utcnow(),
            GameResult.stage: OutcomeStage.LINES_CAPTURED,
        },
        synchronize_session=False,
    )
    db.refresh(result)
    if not written:
        return OperationResult.already(entity, **_lines_payload(result))

    logger.info(
        "%s lines captured: spread %s total %s",
        entity, result.closing_spread, result.closing_total,
    )
    return OperationResult.done(entity, **_lines_payload(result))


def _lines_payload(result: GameResult) -> Dict[str, Any]:
    return {
        "opening_spread": result.opening_spread,
        "closing_spread": result.closing_spread,
        "opening_total": result.opening_total,
        "closing_total": result.closing_total,
    }


@uses_db
def calculate_result(game_id: int, *, db: Session) -> OperationResult:
    """Compute the canonical outcome once final scores and closing lines exist."""
    game = get_game(game_id, db)
    entity = game_entity(game_id)
    result = game.result

    if result is not None and result.finalized:
        return OperationResult.already(entity, **result.to_dict())
    if game.scores_final_at is None or game.home_score is None or game.away_score is None:
        return OperationResult.not_ready(entity, "no final score")
    if result is None or not result.lines_captured:
        return OperationResult.not_ready(entity, "closing lines not captured")

    margin = game.home_score - game.away_score
    total = game.home_score + game.away_score
    spread_result = (
        outcome_spread_result(margin, result.closing_spread)
        if result.closing_spread is not None else None
    )
    total_result = (
        outcome_total_result(total, result.closing_total)
        if result.closing_total is not None else None
    )

    written = db.query(GameResult).filter(
        GameResult.id == result.id,
        GameResult.stage == OutcomeStage.LINES_CAPTURED,
    ).update(
        {
            GameResult.home_score: game.home_score,
            GameResult.away_score: game.away_score,
            GameResult.margin: margin,
            GameResult.spread_result: spread_result,
            GameResult.total_result: total_result,
            GameResult.spread_covered_home: (
                spread_result == SpreadResult.HOME_COVERED if spread_result is not None else None
            ),
            GameResult.total_over: total_result == TotalResult.OVER if total_result is not None else None,
            GameResult.result_captured_at: utcnow(),
            GameResult.stage: OutcomeStage.FINALIZED,
        },
        synchronize_session=False,
    )
    db.refresh(result)
    if not written:
        return OperationResult.already(entity, **result.to_dict())

    logger.info(
        "%s outcome: margin %s spread %s total %s",
        entity, margin, spread_result.value if spread_result else None,
        total_result.value if total_result else None,
    )
    return OperationResult.done(entity, **result.to_dict())


# ============================================================================
# PICK SETTLEMENT
# ============================================================================

def grade_pick(
    pick_type: str,
    pick_side: str,
    pick_line: Optional[float],
    home_score: int,
    away_score: int,
) -> Dict[str, Any]:
    """Pure grading entry point (no persistence)."""
    result = determine_pick_result(pick_type, pick_side, pick_line, home_score, away_score)
    return {
        "pick_type": str(pick_type).lower(),
        "pick_side": str(pick_side).lower(),
        "pick_line": pick_line,
        "home_score": home_score,
        "away_score": away_score,
        "result": result.value,
    }


@uses_db
def record_pick_result(
    pick_id: int,
    home_score: Optional[int] = None,
    away_score: Optional[int] = None,
    result: Optional[str] = None,
    note: Optional[str] = None,
    correction: bool = False,
    *,
    db: Session,
) -> OperationResult:
    """
    Grade a pick and persist the result exactly once.

    Scores default to the game's final scores. An explicit ``result``
    skips computation. ``correction=True`` is the explicit correction
    flow: it overwrites a recorded result and re-evaluates analyst picks.
    """
    from signals.analyst_consensus import evaluate_analyst_picks

    pick = get_pick(pick_id, db)
    entity = pick_entity(pick_id)

    if pick.result_state == Lifecycle.FINALIZED and not correction:
        return OperationResult.already(entity, result=pick.result.value)

    if result is not None:
        graded = PickResult(str(result).lower())
        if graded == PickResult.PENDING:
            raise EngineError(f"{entity}: cannot record a pending result")
    else:
        game = pick.game
        if (home_score is None or away_score is None) and game.scores_final_at is not None:
            home_score, away_score = game.home_score, game.away_score
        if home_score is None or away_score is None:
            return OperationResult.not_ready(entity, f"no final score for {game_entity(pick.game_id)}")
        graded = determine_pick_result(pick.pick_type, pick.pick_side, pick.pick_line, home_score, away_score)
        _check_outcome_agreement(pick, graded)

    now = utcnow()
    values = {
        Pick.result: graded,
        Pick.result_state: Lifecycle.FINALIZED,
        Pick.result_recorded_at: now,
        Pick.result_note: note,
    }
    if correction:
        previous = pick.result.value
        db.query(Pick).filter(Pick.id == pick.id).update(values, synchronize_session=False)
        logger.warning("%s result corrected %s -> %s (%s)", entity, previous, graded.value, note or "no note")
    else:
        written = db.query(Pick).filter(
            Pick.id == pick.id,
            Pick.result_state == Lifecycle.UNSTARTED,
        ).update(values, synchronize_session=False)
        if not written:
            db.refresh(pick)
            return OperationResult.already(entity, result=pick.result.value)

    db.refresh(pick)
    evaluated = evaluate_analyst_picks(pick, force=correction, db=db)
    logger.info("%s graded %s", entity, graded.value)
    return OperationResult.done(entity, result=graded.value, analyst_picks_evaluated=evaluated)


def _check_outcome_agreement(pick: Pick, graded: PickResult) -> None:
    outcome = pick.game.result
    if outcome is None or not outcome.finalized or not matches_closing_line(pick, outcome):
        return
    canonical = grade_from_outcome(pick.pick_type, pick.pick_side, outcome)
    if canonical is not None and canonical != graded:
        logger.error(
            "%s grade %s disagrees with %s outcome %s",
            pick_entity(pick.id), graded.value, game_entity(pick.game_id), canonical.value,
        )


# ============================================================================
# BATCH SYNC
# ============================================================================

@uses_db
def sync_results(now: Optional[datetime] = None, *, db: Session) -> Dict[str, Any]:
    """
    Batch job: capture due lines, compute finished outcomes, settle picks.

    One bad game or pick never stops the run; failures are logged with
    the affected entity and counted.
    """
    now = now or utcnow()
    summary: Dict[str, Any] = {
        "lines_captured": 0,
        "outcomes_computed": 0,
        "picks_graded": 0,
        "not_ready": [],
        "errors": [],
        "wins": 0,
        "losses": 0,
        "pushes": 0,
    }

    # 1. Lines for games starting soon (or already started)
    due = _due_for_capture(now, db)
    for game in due:
        _run_step(summary, "lines_captured", lambda g=game: capture_lines(g.id, db=db))

    # 2. Outcomes for games with final scores
    finished = db.query(Game).join(GameResult).filter(
        Game.scores_final_at.isnot(None),
        GameResult.stage == OutcomeStage.LINES_CAPTURED,
    ).all()
    for game in finished:
        _run_step(summary, "outcomes_computed", lambda g=game: calculate_result(g.id, db=db))

    # 3. Published pending picks on games with final scores
    pending = db.query(Pick).join(Game).filter(
        Pick.status == PickStatus.PUBLISHED,
        Pick.result_state == Lifecycle.UNSTARTED,
        Game.scores_final_at.isnot(None),
    ).all()
    for pick in pending:
        outcome = _run_step(summary, "picks_graded", lambda p=pick: record_pick_result(p.id, db=db))
        if outcome is not None and outcome.applied:
            key = {"win": "wins", "loss": "losses", "push": "pushes"}[outcome.payload["result"]]
            summary[key] += 1

    summary["record"] = f"{summary['wins']}-{summary['losses']}-{summary['pushes']}"
    summary["started_unfinished"] = sum(
        1 for g in due if has_started(g, now) and g.scores_final_at is None
    )
    logger.info(
        "Result sync: %s lines, %s outcomes, %s picks (%s), %s errors",
        summary["lines_captured"], summary["outcomes_computed"], summary["picks_graded"],
        summary["record"], len(summary["errors"]),
    )
    return summary


def _due_for_capture(now: datetime, db: Session) -> List[Game]:
    return db.query(Game).outerjoin(GameResult).filter(
        Game.game_date <= now + LINE_CAPTURE_LEAD,
        or_(GameResult.id.is_(None), GameResult.stage == OutcomeStage.OPEN),
    ).all()


@uses_db
def capture_due_lines(now: Optional[datetime] = None, *, db: Session) -> Dict[str, Any]:
    """Capture lines for every game inside the capture lead that is still open."""
    now = now or utcnow()
    summary: Dict[str, Any] = {"lines_captured": 0, "not_ready": [], "errors": []}
    for game in _due_for_capture(now, db):
        _run_step(summary, "lines_captured", lambda g=game: capture_lines(g.id, db=db))
    if summary["lines_captured"]:
        logger.info("Captured lines for %s games", summary["lines_captured"])
    return summary


def _run_step(summary: Dict[str, Any], counter: str, step) -> Optional[OperationResult]:
    try:
        outcome = step()
    except EngineError as e:
        logger.error("Sync step %s failed: %s", counter, e)
        summary["errors"].append(str(e))
        return None
    if outcome.applied:
        summary[counter] += 1
    elif outcome.status == OperationStatus.NOT_READY:
        summary["not_ready"].append({"entity": outcome.entity, "reason": outcome.reason})
    return outcome


# ============================================================================
# TEAM RECORDS
# ============================================================================

def _finalized_outcomes_for(team: str, db: Session) -> List[GameResult]:
    return db.query(GameResult).join(Game).filter(
        GameResult.stage == OutcomeStage.FINALIZED,
        or_(Game.home_team == team, Game.away_team == team),
    ).all()


@uses_db
def team_ats_record(team: str, *, db: Session) -> Dict[str, Any]:
    """Against-the-spread record from finalized outcomes."""
    wins = losses = pushes = 0
    for outcome in _finalized_outcomes_for(team, db):
        if outcome.spread_result is None:
            continue
        if outcome.spread_result == SpreadResult.PUSH:
            pushes += 1
            continue
        covered_home = outcome.spread_result == SpreadResult.HOME_COVERED
        if covered_home == (outcome.game.home_team == team):
            wins += 1
        else:
            losses += 1
    return {"team": team, "wins": wins, "losses": losses, "pushes": pushes,
            "record": f"{wins}-{losses}-{pushes}"}


@uses_db
def team_ou_record(team: str, *, db: Session) -> Dict[str, Any]:
    """Over/under record from finalized outcomes."""
    overs = unders = pushes = 0
    for outcome in _finalized_outcomes_for(team, db):
        if outcome.total_result == TotalResult.OVER:
            overs += 1
        elif outcome.total_result == TotalResult.UNDER:
            unders += 1
        elif outcome.total_result == TotalResult.PUSH:
            pushes += 1
    return {"team": team, "overs": overs, "unders": unders, "pushes": pushes,
            "record": f"{overs}-{unders}-{pushes}"}
