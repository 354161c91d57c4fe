"""
Game Status Module v2.3
=======================
Single source of truth for game live-state and final scores.

States (monotonic): SCHEDULED -> LIVE -> FINISHED

- Externally reported status always wins when it moves the game forward.
- Without a report, status is estimated from the clock: scheduled before
  tip-off, live for 2.5 hours after, finished afterwards.
- Final scores are written at most once.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from core.errors import OperationResult
from database import Game, GameStatus, game_entity, get_game, uses_db, utcnow

logger = logging.getLogger(__name__)

GAME_DURATION = timedelta(hours=2, minutes=30)


def estimated_status(start: Optional[datetime], now: Optional[datetime] = None) -> GameStatus:
    """Clock-based status for a start time (naive UTC)."""
    if start is None:
        return GameStatus.SCHEDULED
    now = now or utcnow()
    if now < start:
        return GameStatus.SCHEDULED
    if now < start + GAME_DURATION:
        return GameStatus.LIVE
    return GameStatus.FINISHED


def effective_status(game: Game, now: Optional[datetime] = None) -> GameStatus:
    """Reported status, or the clock estimate when that is further along."""
    estimate = estimated_status(game.game_date, now)
    reported = game.status or GameStatus.SCHEDULED
    return reported if reported.rank >= estimate.rank else estimate


def is_finished(game: Game, now: Optional[datetime] = None) -> bool:
    return effective_status(game, now) == GameStatus.FINISHED


def has_started(game: Game, now: Optional[datetime] = None) -> bool:
    return effective_status(game, now) != GameStatus.SCHEDULED


@uses_db
def advance_status(game_id: int, status: str, *, db: Session) -> OperationResult:
    """Move a game forward. Backward transitions are ignored."""
    game = get_game(game_id, db)
    target = GameStatus(status)
    entity = game_entity(game_id)
    if target.rank <= game.status.rank:
        return OperationResult.already(entity, status=game.status.value)
    logger.info("%s status %s -> %s", entity, game.status.value, target.value)
    game.status = target
    db.flush()
    return OperationResult.done(entity, status=target.value)


@uses_db
def set_final_scores(game_id: int, home_score: int, away_score: int, *, db: Session) -> OperationResult:
    """
    Record final scores once and mark the game finished.

    A second report (even with different numbers) is a no-op; the first
    final score stands.
    """
    game = get_game(game_id, db)
    entity = game_entity(game_id)
    if game.scores_final_at is not None:
        if (game.home_score, game.away_score) != (home_score, away_score):
            logger.warning(
                "%s re-reported final %s-%s, keeping %s-%s",
                entity, home_score, away_score, game.home_score, game.away_score,
            )
        return OperationResult.already(entity, home_score=game.home_score, away_score=game.away_score)

    # Compare-and-set: a concurrent writer that got here first wins
    written = db.query(Game).filter(Game.id == game_id, Game.scores_final_at.is_(None)).update(
        {
            Game.home_score: int(home_score),
            Game.away_score: int(away_score),
            Game.scores_final_at: utcnow(),
            Game.status: GameStatus.FINISHED,
        },
        synchronize_session=False,
    )
    db.refresh(game)
    if not written:
        return OperationResult.already(entity, home_score=game.home_score, away_score=game.away_score)
    logger.info("%s final %s-%s", entity, home_score, away_score)
    return OperationResult.done(entity, home_score=game.home_score, away_score=game.away_score)
