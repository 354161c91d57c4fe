"""
EDGE_ENGINE.PY - Scoring entry points
=====================================
v2.3 - Runs the four models (ml, spread, total, pickem) over one game
or one slate day and ranks the results.

    analyze_game(snapshot, lookup)  -> {model: [EdgeResult]}
    analyze_date(day, lookup)       -> {model: [EdgeResult]} sorted by edge desc

Scoring is read-only: metrics come from a MetricLookup that is
prefetched once per slate, then every game scores from local data.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.time_et import slate_bounds_utc
from database import Game, GameSnapshot, PickResult, get_game, uses_db
from grading_engine import grade_moneyline, grade_spread, grade_total
from signals.edge_result import EdgeResult
from signals.moneyline import score_moneyline
from signals.pickem import score_pickem
from signals.spread import score_spread
from signals.total import score_total
from team_metrics import GraphMetricLookup, MetricLookup, StaticMetricLookup
from tiering import Model

logger = logging.getLogger(__name__)

MODELS = tuple(m.value for m in Model)


def empty_results() -> Dict[str, List[EdgeResult]]:
    return {m: [] for m in MODELS}


def default_lookup() -> MetricLookup:
    """Graph-store lookup when configured, otherwise documented defaults for every team."""
    from env_config import Config
    from services.graph_store import GraphStoreClient

    if Config.GRAPH_STORE_URL:
        return GraphMetricLookup(GraphStoreClient.from_config())
    logger.warning("GRAPH_STORE_URL not set, scoring with default team metrics")
    return StaticMetricLookup()


def analyze_game(snapshot: GameSnapshot, lookup: MetricLookup) -> Dict[str, List[EdgeResult]]:
    """Score one game under every model. Pickem is empty when the game doesn't qualify."""
    home = lookup.metric_lookup(snapshot.home)
    away = lookup.metric_lookup(snapshot.away)
    gid = snapshot.game_id

    results = {
        Model.ML.value: [score_moneyline(home, away, game_id=gid)],
        Model.SPREAD.value: [score_spread(home, away, snapshot.home_spread, game_id=gid)],
        Model.TOTAL.value: [score_total(home, away, snapshot.total_line, game_id=gid)],
        Model.PICKEM.value: [],
    }
    pickem = score_pickem(home, away, snapshot.home_spread, game_id=gid)
    if pickem is not None:
        results[Model.PICKEM.value].append(pickem)

    if snapshot.has_final_score:
        final = {"home": snapshot.home_score, "away": snapshot.away_score}
        for items in results.values():
            for item in items:
                item.details["final_score"] = final
    return results


def analyze_snapshots(snapshots: Iterable[GameSnapshot], lookup: MetricLookup) -> Dict[str, List[EdgeResult]]:
    snapshots = list(snapshots)
    prefetch = getattr(lookup, "prefetch", None)
    if prefetch is not None:
        prefetch({t for s in snapshots for t in (s.home, s.away)})

    combined = empty_results()
    for snapshot in snapshots:
        for model, items in analyze_game(snapshot, lookup).items():
            combined[model].extend(items)
    for items in combined.values():
        items.sort(key=lambda r: r.edge, reverse=True)
    return combined


@uses_db
def slate_snapshots(day: date, *, db: Session) -> List[GameSnapshot]:
    start, end = slate_bounds_utc(day)
    games = db.query(Game).filter(
        Game.game_date >= start,
        Game.game_date < end,
    ).order_by(Game.game_date).all()
    return [g.to_snapshot() for g in games]


@uses_db
def analyze_date(day: date, lookup: Optional[MetricLookup] = None, *, db: Session) -> Dict[str, List[EdgeResult]]:
    snapshots = slate_snapshots(day, db=db)
    if not snapshots:
        logger.info("No games on slate %s", day)
        return empty_results()
    results = analyze_snapshots(snapshots, lookup or default_lookup())
    logger.info(
        "Slate %s: %s games scored, %s pickem candidates",
        day, len(snapshots), len(results[Model.PICKEM.value]),
    )
    return results


@uses_db
def analyze_game_id(game_id: int, lookup: Optional[MetricLookup] = None, *, db: Session) -> Dict[str, List[EdgeResult]]:
    snapshot = get_game(game_id, db).to_snapshot()
    lookup = lookup or default_lookup()
    prefetch = getattr(lookup, "prefetch", None)
    if prefetch is not None:
        prefetch([snapshot.home, snapshot.away])
    return analyze_game(snapshot, lookup)


# ============================================================================
# HIT / MISS (finished games)
# ============================================================================

HIT_LABELS = {PickResult.WIN: "HIT", PickResult.LOSS: "MISS", PickResult.PUSH: "PUSH"}


def edge_outcome(result: EdgeResult) -> Optional[str]:
    """HIT / MISS / PUSH for a result whose game has a final score, else None."""
    final = result.details.get("final_score")
    if not final:
        return None
    home, away = final["home"], final["away"]

    if result.model == Model.ML:
        graded = grade_moneyline(result.side.lower(), home, away)
    elif result.model == Model.SPREAD:
        line = result.details["market_spread"]
        graded = grade_spread(result.side.lower(), line if result.side == "HOME" else -line, home, away)
    elif result.model == Model.TOTAL:
        graded = grade_total(result.side.lower(), result.details["market_total"], home, away)
    else:
        away_line = result.details["spread"]
        graded = grade_spread(result.side.lower(), away_line if result.side == "AWAY" else -away_line, home, away)
    return HIT_LABELS[graded]
