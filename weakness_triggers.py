"""
Weakness Trigger Engine v2.3
============================
Rule-detected conditions predicting a team will underperform.

Lifecycle per (game, team, trigger_type):
    DETECTED  -> created with confidence + predicted outcome
    EVALUATED -> terminal, hit = (actual_outcome == predicted_outcome)

Schedule triggers (from the per-team edge annotation):
    B2B                 COVER_FAIL  0.65
    3IN4                COVER_FAIL  0.60
    REST-N (N >= 2)     COVER_FAIL  0.55

Matchup triggers (advanced-stat ranks, 1 = best, missing = 15):
    BAD_MATCHUP_OFFENSE  off > 20 vs opp def <= 5     COVER_FAIL  0.60
    BAD_MATCHUP_DEFENSE  def > 20 vs opp off <= 5     COVER_FAIL  0.58
    PACE_MISMATCH_SLOW   pace > 25 vs opp pace <= 5   COVER_FAIL  0.55
    PACE_MISMATCH_FAST   pace <= 5 vs opp pace > 25   UNDER       0.52
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import OperationResult
from core.time_et import slate_bounds_utc
from database import (
    Game, PredictionState, SpreadResult, WeaknessPrediction, game_entity,
    get_game, uses_db, utcnow,
)
from game_status import is_finished
from team_metrics import AdvancedStatsTable, TeamRanks

logger = logging.getLogger(__name__)

MIN_SAMPLE_TRIGGER = 10
MIN_SAMPLE_TEAM = 5
INSUFFICIENT_DATA = "insufficient data"

REST_PATTERN = re.compile(r"REST-?(\d+)")
MIN_REST_DISADVANTAGE = 2


@dataclass(frozen=True)
class Trigger:
    trigger_type: str
    detail: str
    confidence: float
    predicted_outcome: str


# ============================================================================
# SCHEDULE TRIGGERS
# ============================================================================

BASE_CONFIDENCE = {
    "B2B": 0.65,
    "3IN4": 0.60,
    "REST_DISADVANTAGE": 0.55,
    "BAD_MATCHUP_OFFENSE": 0.60,
    "BAD_MATCHUP_DEFENSE": 0.58,
    "PACE_MISMATCH_SLOW": 0.55,
    "PACE_MISMATCH_FAST": 0.52,
}

TRIGGER_TYPES = tuple(BASE_CONFIDENCE)


def detect_schedule_triggers(edge: Optional[str]) -> List[Trigger]:
    """Parse an edge annotation such as "B2B", "3in4" or "REST-2"."""
    if not edge or not edge.strip():
        return []

    triggers = []
    if "B2B" in edge:
        triggers.append(Trigger("B2B", "2nd game of back-to-back", BASE_CONFIDENCE["B2B"], "COVER_FAIL"))
    if "3in4" in edge or "3IN4" in edge:
        triggers.append(Trigger("3IN4", "3rd game in 4 days", BASE_CONFIDENCE["3IN4"], "COVER_FAIL"))

    match = REST_PATTERN.search(edge)
    if match:
        days = int(match.group(1))
        if days >= MIN_REST_DISADVANTAGE:
            triggers.append(Trigger(
                "REST_DISADVANTAGE", f"{days} fewer rest days",
                BASE_CONFIDENCE["REST_DISADVANTAGE"], "COVER_FAIL",
            ))
    return triggers


# ============================================================================
# MATCHUP TRIGGERS (rules as data)
# ============================================================================

@dataclass(frozen=True)
class MatchupRule:
    trigger_type: str
    team_rank: Callable[[TeamRanks], int]
    team_test: Callable[[int], bool]
    opp_rank: Callable[[TeamRanks], int]
    opp_test: Callable[[int], bool]
    predicted_outcome: str
    detail: str  # formatted with team, opp, opp_abbr

    def check(self, team: TeamRanks, opp: TeamRanks, opp_abbr: str) -> Optional[Trigger]:
        mine, theirs = self.team_rank(team), self.opp_rank(opp)
        if not (self.team_test(mine) and self.opp_test(theirs)):
            return None
        return Trigger(
            self.trigger_type,
            self.detail.format(team=mine, opp=theirs, opp_abbr=opp_abbr),
            BASE_CONFIDENCE[self.trigger_type],
            self.predicted_outcome,
        )


def _weak(rank: int) -> bool:
    return rank > 20


def _elite(rank: int) -> bool:
    return rank <= 5


def _slowest(rank: int) -> bool:
    return rank > 25


MATCHUP_RULES = (
    MatchupRule(
        "BAD_MATCHUP_OFFENSE", lambda r: r.offense, _weak, lambda r: r.defense, _elite,
        "COVER_FAIL", "Weak OFF (#{team}) vs Elite DEF (#{opp} {opp_abbr})",
    ),
    MatchupRule(
        "BAD_MATCHUP_DEFENSE", lambda r: r.defense, _weak, lambda r: r.offense, _elite,
        "COVER_FAIL", "Weak DEF (#{team}) vs Elite OFF (#{opp} {opp_abbr})",
    ),
    MatchupRule(
        "PACE_MISMATCH_SLOW", lambda r: r.pace, _slowest, lambda r: r.pace, _elite,
        "COVER_FAIL", "Slow pace (#{team}) vs Fast (#{opp} {opp_abbr})",
    ),
    MatchupRule(
        "PACE_MISMATCH_FAST", lambda r: r.pace, _elite, lambda r: r.pace, _slowest,
        "UNDER", "Fast pace (#{team}) vs Slow (#{opp} {opp_abbr})",
    ),
)


def detect_matchup_triggers(team: TeamRanks, opp: TeamRanks, opp_abbr: str) -> List[Trigger]:
    return [t for t in (rule.check(team, opp, opp_abbr) for rule in MATCHUP_RULES) if t]


def detect_triggers(game: Game, ranks: AdvancedStatsTable) -> Dict[str, List[Trigger]]:
    """Triggers per team abbreviation for both sides of a game (pure)."""
    home, away = game.home_team, game.away_team
    home_ranks, away_ranks = ranks.ranks_for(home), ranks.ranks_for(away)
    return {
        home: detect_schedule_triggers(game.home_edge) + detect_matchup_triggers(home_ranks, away_ranks, away),
        away: detect_schedule_triggers(game.away_edge) + detect_matchup_triggers(away_ranks, home_ranks, home),
    }


# ============================================================================
# PERSISTENCE
# ============================================================================

def _find_prediction(db: Session, game_id: int, team: str, trigger_type: str) -> Optional[WeaknessPrediction]:
    return db.query(WeaknessPrediction).filter(
        WeaknessPrediction.game_id == game_id,
        WeaknessPrediction.team == team,
        WeaknessPrediction.trigger_type == trigger_type,
    ).first()


@uses_db
def detect_for_game(
    game_id: int,
    ranks: Optional[AdvancedStatsTable] = None,
    source: str = "engine",
    confidence_overrides: Optional[Dict[str, float]] = None,
    *,
    db: Session,
) -> Dict[str, Any]:
    """
    Detect and persist predictions for one game.

    Creation is find-or-create on (game, team, trigger_type); a racing
    writer that inserted first is picked up through the unique key.
    """
    game = get_game(game_id, db)
    if ranks is None:
        from env_config import Config
        ranks = AdvancedStatsTable.load(Config.ADVANCED_STATS_PATH)
    overrides = confidence_overrides or {}

    created, existing = [], []
    for team, triggers in detect_triggers(game, ranks).items():
        for trigger in triggers:
            found = _find_prediction(db, game.id, team, trigger.trigger_type)
            if found is not None:
                existing.append(found.to_dict())
                continue
            prediction = WeaknessPrediction(
                game_id=game.id,
                team=team,
                trigger_type=trigger.trigger_type,
                trigger_detail=trigger.detail,
                confidence=overrides.get(trigger.trigger_type, trigger.confidence),
                predicted_outcome=trigger.predicted_outcome,
                source=source,
                triggered_at=utcnow(),
                state=PredictionState.DETECTED,
            )
            try:
                with db.begin_nested():
                    db.add(prediction)
            except IntegrityError:
                found = _find_prediction(db, game.id, team, trigger.trigger_type)
                existing.append(found.to_dict())
                continue
            created.append(prediction.to_dict())
            logger.info("%s %s trigger %s: %s", game_entity(game.id), team, trigger.trigger_type, trigger.detail)

    return {"game": game_entity(game.id), "created": created, "existing": existing}


@uses_db
def detect_for_date(
    day: date,
    ranks: Optional[AdvancedStatsTable] = None,
    confidence_overrides: Optional[Dict[str, float]] = None,
    *,
    db: Session,
) -> Dict[str, Any]:
    start, end = slate_bounds_utc(day)
    games = db.query(Game).filter(Game.game_date >= start, Game.game_date < end).all()
    created = existing = 0
    for game in games:
        out = detect_for_game(game.id, ranks, confidence_overrides=confidence_overrides, db=db)
        created += len(out["created"])
        existing += len(out["existing"])
    return {"date": day.isoformat(), "games": len(games), "created": created, "existing": existing}


def actual_outcome(is_home: bool, spread_result: Optional[SpreadResult]) -> str:
    if spread_result == SpreadResult.PUSH:
        return "PUSH"
    if spread_result == SpreadResult.HOME_COVERED:
        return "COVERED" if is_home else "COVER_FAIL"
    if spread_result == SpreadResult.AWAY_COVERED:
        return "COVER_FAIL" if is_home else "COVERED"
    return "UNKNOWN"


@uses_db
def evaluate_game(game_id: int, now: Optional[datetime] = None, *, db: Session) -> OperationResult:
    """Evaluate every detected prediction of a finished game, once."""
    game = get_game(game_id, db)
    entity = game_entity(game_id)

    if not is_finished(game, now):
        return OperationResult.not_ready(entity, "game not finished")
    outcome = game.result
    if outcome is None or not outcome.finalized:
        return OperationResult.not_ready(entity, "game outcome not computed")

    pending = db.query(WeaknessPrediction).filter(
        WeaknessPrediction.game_id == game.id,
        WeaknessPrediction.state == PredictionState.DETECTED,
    ).all()
    if not pending:
        return OperationResult.already(entity, evaluated=0)

    evaluated = hits = 0
    for prediction in pending:
        actual = actual_outcome(prediction.team == game.home_team, outcome.spread_result)
        hit = actual == prediction.predicted_outcome
        written = db.query(WeaknessPrediction).filter(
            WeaknessPrediction.id == prediction.id,
            WeaknessPrediction.state == PredictionState.DETECTED,
        ).update(
            {
                WeaknessPrediction.actual_outcome: actual,
                WeaknessPrediction.hit: hit,
                WeaknessPrediction.state: PredictionState.EVALUATED,
                WeaknessPrediction.evaluated_at: utcnow(),
            },
            synchronize_session=False,
        )
        if written:
            evaluated += 1
            hits += int(hit)

    logger.info("%s triggers evaluated: %s (%s hits)", entity, evaluated, hits)
    return OperationResult.done(entity, evaluated=evaluated, hits=hits)


@uses_db
def evaluate_finished(now: Optional[datetime] = None, *, db: Session) -> Dict[str, Any]:
    """Batch: evaluate games that still hold detected predictions."""
    game_ids = [
        gid for (gid,) in db.query(WeaknessPrediction.game_id).filter(
            WeaknessPrediction.state == PredictionState.DETECTED,
        ).distinct().all()
    ]
    summary = {"games": 0, "evaluated": 0, "hits": 0, "not_ready": 0}
    for gid in game_ids:
        result = evaluate_game(gid, now, db=db)
        if result.applied:
            summary["games"] += 1
            summary["evaluated"] += result.payload["evaluated"]
            summary["hits"] += result.payload["hits"]
        else:
            summary["not_ready"] += 1
    return summary


@uses_db
def predictions_for_game(game_id: int, *, db: Session) -> List[Dict[str, Any]]:
    game = get_game(game_id, db)
    rows = db.query(WeaknessPrediction).filter(
        WeaknessPrediction.game_id == game.id,
    ).order_by(WeaknessPrediction.team, WeaknessPrediction.trigger_type).all()
    return [row.to_dict() for row in rows]


# ============================================================================
# STATISTICS
# ============================================================================

def _rate(hits: int, total: int) -> float:
    return round(hits / total * 100, 1) if total else 0.0


def _evaluated(db: Session) -> List[WeaknessPrediction]:
    return db.query(WeaknessPrediction).filter(WeaknessPrediction.state == PredictionState.EVALUATED).all()


def _group_rate(key: str, value: str, rows: List[WeaknessPrediction], min_sample: int) -> Dict[str, Any]:
    hits = sum(1 for r in rows if r.hit)
    if len(rows) < min_sample:
        return {key: value, "total": len(rows), "status": INSUFFICIENT_DATA, "min_sample": min_sample}
    return {
        key: value,
        "total": len(rows),
        "hits": hits,
        "misses": len(rows) - hits,
        "hit_rate": _rate(hits, len(rows)),
    }


@uses_db
def hit_rate_by_trigger(min_sample: int = MIN_SAMPLE_TRIGGER, *, db: Session) -> Dict[str, Dict[str, Any]]:
    grouped = defaultdict(list)
    for row in _evaluated(db):
        grouped[row.trigger_type].append(row)
    return {t: _group_rate("trigger_type", t, grouped[t], min_sample) for t in TRIGGER_TYPES if grouped[t]}


@uses_db
def hit_rate_by_team(min_sample: int = MIN_SAMPLE_TEAM, *, db: Session) -> Dict[str, Dict[str, Any]]:
    grouped = defaultdict(list)
    for row in _evaluated(db):
        grouped[row.team].append(row)

    results = {}
    for team, rows in sorted(grouped.items()):
        entry = _group_rate("team", team, rows, min_sample)
        if "hit_rate" in entry:
            by_trigger = defaultdict(list)
            for row in rows:
                by_trigger[row.trigger_type].append(row)
            entry["by_trigger"] = [
                {"trigger": t, "count": len(r), "hit_rate": _rate(sum(1 for x in r if x.hit), len(r))}
                for t, r in by_trigger.items()
            ]
        results[team] = entry
    return results


@uses_db
def statistics(*, db: Session) -> Dict[str, Any]:
    total = db.query(WeaknessPrediction).count()
    evaluated = _evaluated(db)
    hits = sum(1 for r in evaluated if r.hit)
    return {
        "total_predictions": total,
        "evaluated": len(evaluated),
        "unevaluated": total - len(evaluated),
        "overall_hit_rate": _rate(hits, len(evaluated)),
        "by_trigger": [
            entry for entry in hit_rate_by_trigger(db=db).values() if "hit_rate" in entry
        ],
    }


@uses_db
def calibrated_confidence(min_sample: int = MIN_SAMPLE_TRIGGER, *, db: Session) -> Dict[str, float]:
    """Observed hit rate per trigger type where meaningful, else the base confidence."""
    observed = hit_rate_by_trigger(min_sample, db=db)
    confidence = dict(BASE_CONFIDENCE)
    for trigger_type, entry in observed.items():
        if "hit_rate" in entry:
            confidence[trigger_type] = round(entry["hit_rate"] / 100, 3)
    return confidence
