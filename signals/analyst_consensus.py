"""
Analyst Consensus Signal - Weighted five-analyst agreement
==========================================================

v2.3 - Each analyst's directional call (HOME/AWAY) is weighted by its
backtested accuracy. Analysts below breakeven are used inverted.

Two-stage calibration (accuracy -> weight -> signal_type):

    accuracy >= 0.60  ->  1.0   main       (weight >= 0.8)
    accuracy >= 0.55  ->  0.7   secondary  (0.5 <= weight < 0.8)
    accuracy >= 0.50  ->  0.3   neutral    (-0.5 < weight < 0.5)
    accuracy >= 0.45  -> -0.3   neutral
    otherwise         -> -0.5   reverse    (weight <= -0.5)

Aggregation: reverse analysts add |weight| to the side they did NOT
pick, every other analyst adds its (signed) weight to the side it
picked. diff = HOME - AWAY; |diff| > 0.5 makes a recommendation.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.boundary_table import StepTable
from core.errors import EngineError
from database import (
    AnalystPick, AnalystWeight, Pick, PickResult, PickType, get_pick,
    uses_db, utcnow,
)

logger = logging.getLogger(__name__)

# ============================================
# CONSTANTS (Single Source of Truth)
# ============================================

ANALYSTS = ("SHARP", "SCOUT", "CONTRARIAN", "MOMENTUM", "SYSTEM")
SIDES = ("HOME", "AWAY")

RECOMMENDATION_THRESHOLD = 0.5
CONFIDENCE_LEVELS = StepTable.strict([(1.5, "HIGH"), (0.8, "MEDIUM")], default="LOW")

ACCURACY_TO_WEIGHT = StepTable.at_least(
    [(0.60, 1.0), (0.55, 0.7), (0.50, 0.3), (0.45, -0.3)],
    default=-0.5,
)

# Baseline backtest accuracies used to seed an empty weight table
SEED_ACCURACY = {
    "CONTRARIAN": 0.619,
    "SYSTEM": 0.555,
    "SCOUT": 0.500,
    "MOMENTUM": 0.452,
    "SHARP": 0.401,
}


def opposite(side: str) -> str:
    return "AWAY" if side == "HOME" else "HOME"


class SignalType(str, Enum):
    """How an analyst's weight is applied to its pick."""
    MAIN = "main"
    SECONDARY = "secondary"
    NEUTRAL = "neutral"
    REVERSE = "reverse"

    def apply(self, side: str, weight: float) -> Tuple[str, float]:
        """Return (side credited, amount added to that side)."""
        if self is SignalType.REVERSE:
            return opposite(side), abs(weight)
        return side, weight

    @classmethod
    def for_weight(cls, weight: float) -> "SignalType":
        if weight >= 0.8:
            return cls.MAIN
        if weight >= 0.5:
            return cls.SECONDARY
        if weight > -0.5:
            return cls.NEUTRAL
        return cls.REVERSE


def weight_for_accuracy(accuracy: float) -> float:
    return ACCURACY_TO_WEIGHT.lookup(accuracy)


def classify_accuracy(accuracy: float) -> Tuple[float, SignalType]:
    """accuracy -> weight -> signal_type."""
    weight = weight_for_accuracy(accuracy)
    return weight, SignalType.for_weight(weight)


def normalize_side(side: Any) -> str:
    value = str(side).strip().upper()
    if value not in SIDES:
        raise EngineError(f"Analyst side must be HOME or AWAY, got {side!r}")
    return value


# ============================================
# CONSENSUS (pure)
# ============================================

def calculate_consensus(
    picks: Dict[str, str],
    weights: Dict[str, Tuple[float, str]],
) -> Dict[str, Any]:
    """
    Aggregate analyst picks into a recommendation.

    Args:
        picks: analyst -> "HOME" / "AWAY"
        weights: analyst -> (weight, signal_type)

    Analysts without a weight are skipped.
    """
    scores = {"HOME": 0.0, "AWAY": 0.0}
    contributions: List[Dict[str, Any]] = []

    for analyst, raw_side in picks.items():
        name = str(analyst).upper()
        if name not in weights:
            continue
        side = normalize_side(raw_side)
        weight, signal_type = weights[name]
        credited, delta = SignalType(signal_type).apply(side, weight)
        scores[credited] += delta
        contributions.append({
            "analyst": name,
            "pick": side,
            "signal_type": SignalType(signal_type).value,
            "credited": credited,
            "delta": round(delta, 2),
        })

    diff = scores["HOME"] - scores["AWAY"]
    if diff > RECOMMENDATION_THRESHOLD:
        recommendation = "HOME"
    elif diff < -RECOMMENDATION_THRESHOLD:
        recommendation = "AWAY"
    else:
        recommendation = "PASS"

    return {
        "scores": {k: round(v, 2) for k, v in scores.items()},
        "diff": round(diff, 2),
        "recommendation": recommendation,
        "confidence": CONFIDENCE_LEVELS.lookup(abs(diff)),
        "contributions": contributions,
    }


# ============================================
# WEIGHT TABLE
# ============================================

@uses_db
def get_weights(*, db: Session) -> Dict[str, Tuple[float, str]]:
    return {row.analyst: (row.weight, row.signal_type) for row in db.query(AnalystWeight).all()}


@uses_db
def weighted_consensus(picks: Dict[str, str], *, db: Session) -> Dict[str, Any]:
    """Consensus against the stored weight table."""
    return calculate_consensus(picks, get_weights(db=db))


@uses_db
def list_weights(*, db: Session) -> List[Dict[str, Any]]:
    rows = db.query(AnalystWeight).order_by(AnalystWeight.weight.desc()).all()
    return [row.to_dict() for row in rows]


@uses_db
def update_from_backtest(
    results: Dict[str, Dict[str, Any]],
    as_of: Optional[date] = None,
    *,
    db: Session,
) -> List[Dict[str, Any]]:
    """
    Apply backtest accuracies to the weight table.

    Args:
        results: analyst -> {"accuracy": float, "sample_size": int}

    Returns one {"analyst", "before", "after"} entry per analyst touched.
    """
    changes = []
    for analyst, data in results.items():
        name = str(analyst).upper()
        if name not in ANALYSTS:
            logger.warning("Skipping unknown analyst %s in backtest results", analyst)
            continue
        accuracy = float(data["accuracy"])
        if not 0.0 <= accuracy <= 1.0:
            raise EngineError(f"Accuracy for {name} out of range: {accuracy}")

        row = db.query(AnalystWeight).filter(AnalystWeight.analyst == name).first()
        before = row.to_dict() if row else None
        weight, signal_type = classify_accuracy(accuracy)

        if row is None:
            row = AnalystWeight(analyst=name)
            db.add(row)
        row.accuracy = accuracy
        row.weight = weight
        row.signal_type = signal_type.value
        row.sample_size = int(data.get("sample_size") or 0)
        row.last_backtest_date = as_of or date.today()
        db.flush()

        logger.info("Analyst %s: accuracy %.3f -> weight %+.1f (%s)", name, accuracy, weight, signal_type.value)
        changes.append({"analyst": name, "before": before, "after": row.to_dict()})
    return changes


@uses_db
def seed_analyst_weights(*, db: Session) -> List[Dict[str, Any]]:
    """Seed missing analysts from baseline accuracies. Existing rows are kept."""
    existing = {row.analyst for row in db.query(AnalystWeight).all()}
    missing = {
        name: {"accuracy": acc, "sample_size": 0}
        for name, acc in SEED_ACCURACY.items() if name not in existing
    }
    if not missing:
        return []
    return update_from_backtest(missing, db=db)


# ============================================
# ANALYST PICKS
# ============================================

@uses_db
def record_analyst_picks(pick_id: int, picks: Dict[str, str], *, db: Session) -> List[Dict[str, Any]]:
    """Store each analyst's call for a pick. Existing (pick, analyst) rows are kept."""
    pick = get_pick(pick_id, db)
    stored = []
    for analyst, raw_side in picks.items():
        name = str(analyst).upper()
        if name not in ANALYSTS:
            logger.warning("pick:%s ignoring unknown analyst %s", pick.id, analyst)
            continue
        row = db.query(AnalystPick).filter(
            AnalystPick.pick_id == pick.id,
            AnalystPick.analyst == name,
        ).first()
        if row is None:
            row = AnalystPick(pick_id=pick.id, analyst=name, pick_side=normalize_side(raw_side))
            db.add(row)
            db.flush()
        stored.append(row.to_dict())
    return stored


def winning_side(pick: Pick) -> Optional[str]:
    """HOME/AWAY that turned out right, from a graded home/away pick."""
    if pick.pick_type == PickType.TOTAL:
        return None
    side = pick.pick_side.upper()
    if pick.result == PickResult.WIN:
        return side
    if pick.result == PickResult.LOSS:
        return opposite(side)
    return None


@uses_db
def evaluate_analyst_picks(pick: Pick, force: bool = False, *, db: Session) -> int:
    """
    Mark analyst picks correct/incorrect from the parent pick's result.

    Pending and pushed picks leave analyst picks unevaluated. ``force``
    re-evaluates already evaluated rows (result corrections).
    Returns the number of rows written.
    """
    winner = winning_side(pick)
    query = db.query(AnalystPick).filter(AnalystPick.pick_id == pick.id)
    if not force:
        query = query.filter(AnalystPick.evaluated_at.is_(None))

    if winner is None:
        if force:
            return query.update(
                {AnalystPick.correct: None, AnalystPick.evaluated_at: None},
                synchronize_session=False,
            )
        return 0

    now = utcnow()
    written = query.filter(AnalystPick.pick_side == winner).update(
        {AnalystPick.correct: True, AnalystPick.evaluated_at: now},
        synchronize_session=False,
    )
    written += query.filter(AnalystPick.pick_side != winner).update(
        {AnalystPick.correct: False, AnalystPick.evaluated_at: now},
        synchronize_session=False,
    )
    return written


def _window_bounds(start: Optional[date], end: Optional[date]):
    low = datetime.combine(start, datetime.min.time()) if start else None
    high = datetime.combine(end, datetime.max.time()) if end else None
    return low, high


@uses_db
def analyst_accuracy(
    analyst: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    db: Session,
) -> Optional[Dict[str, Any]]:
    """Evaluated-pick accuracy for one analyst, by parent pick publish date."""
    name = str(analyst).upper()
    query = db.query(AnalystPick).filter(
        AnalystPick.analyst == name,
        AnalystPick.correct.isnot(None),
    )
    low, high = _window_bounds(start, end)
    if low or high:
        query = query.join(Pick)
        if low:
            query = query.filter(Pick.published_at >= low)
        if high:
            query = query.filter(Pick.published_at <= high)

    rows = query.all()
    if not rows:
        return None
    correct = sum(1 for r in rows if r.correct)
    return {
        "analyst": name,
        "correct": correct,
        "total": len(rows),
        "accuracy": round(correct / len(rows), 3),
        "period": {"start": start.isoformat() if start else None, "end": end.isoformat() if end else None},
    }


@uses_db
def accuracy_all(start: Optional[date] = None, end: Optional[date] = None, *, db: Session) -> Dict[str, Dict[str, Any]]:
    results = {}
    for analyst in ANALYSTS:
        row = analyst_accuracy(analyst, start, end, db=db)
        if row:
            results[analyst] = row
    return results


__all__ = [
    "ANALYSTS",
    "SignalType",
    "weight_for_accuracy",
    "classify_accuracy",
    "calculate_consensus",
    "weighted_consensus",
    "get_weights",
    "list_weights",
    "update_from_backtest",
    "seed_analyst_weights",
    "record_analyst_picks",
    "evaluate_analyst_picks",
    "analyst_accuracy",
    "accuracy_all",
]
