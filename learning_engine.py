"""
v2.3 Learning Engine - Periodic recalibration from graded history

Responsibilities:
1. Recalibrate analyst weights from evaluated analyst picks over a closed
   window (accuracy -> weight -> signal_type)
2. Recalibrate weakness-trigger confidence from observed hit rates
3. Log every change with before/after snapshots (CalibrationLog)

Rules (safe + small steps):
1. Analysts with fewer than min_samples evaluated picks keep their weight
2. Trigger types below the sample floor keep their base confidence
3. The window is closed (ends yesterday) so a run is reproducible
"""
import json
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from database import CalibrationLog, uses_db
from signals.analyst_consensus import accuracy_all, update_from_backtest
from weakness_triggers import (
    BASE_CONFIDENCE, MIN_SAMPLE_TRIGGER, calibrated_confidence, hit_rate_by_trigger,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_WINDOW_DAYS = 28


def previous_window(today: date, days: int = DEFAULT_WINDOW_DAYS) -> Tuple[date, date]:
    """Closed window of ``days`` ending yesterday."""
    end = today - timedelta(days=1)
    return end - timedelta(days=days - 1), end


def _log(
    db: Session,
    kind: str,
    subject: str,
    before: Optional[Dict[str, Any]],
    after: Dict[str, Any],
    sample_size: int,
    window: Tuple[Optional[date], Optional[date]] = (None, None),
) -> None:
    db.add(CalibrationLog(
        kind=kind,
        subject=subject,
        before_json=json.dumps(before, default=str) if before is not None else None,
        after_json=json.dumps(after, default=str),
        sample_size=sample_size,
        window_start=window[0],
        window_end=window[1],
    ))


# ============================================================================
# ANALYST WEIGHTS
# ============================================================================

@uses_db
def run_weight_recalibration(
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
    min_samples: Optional[int] = None,
    *,
    db: Session,
) -> Dict[str, Any]:
    """
    Recalibrate analyst weights from accuracy inside [window_start, window_end].

    Returns:
        {"tuned", "window", "changes", "skipped", "reason"?}
    """
    from env_config import Config

    if window_start is None or window_end is None:
        window_start, window_end = previous_window(date.today(), Config.RECALIBRATION_WINDOW_DAYS)
    if min_samples is None:
        min_samples = Config.RECALIBRATION_MIN_SAMPLES

    accuracy = accuracy_all(window_start, window_end, db=db)
    eligible = {
        name: {"accuracy": row["accuracy"], "sample_size": row["total"]}
        for name, row in accuracy.items() if row["total"] >= min_samples
    }
    skipped = {name: row["total"] for name, row in accuracy.items() if name not in eligible}
    window = {"start": window_start.isoformat(), "end": window_end.isoformat()}

    if not eligible:
        logger.info("Weight recalibration skipped: no analyst with %s+ evaluated picks", min_samples)
        return {
            "tuned": False,
            "window": window,
            "changes": [],
            "skipped": skipped,
            "reason": f"Insufficient data: need {min_samples} evaluated picks per analyst",
        }

    changes = apply_backtest(eligible, window_start, window_end, db=db)

    logger.info("Weight recalibration: %s analysts updated, %s skipped", len(changes), len(skipped))
    return {"tuned": True, "window": window, "changes": changes, "skipped": skipped}


@uses_db
def apply_backtest(
    results: Dict[str, Dict[str, Any]],
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
    *,
    db: Session,
) -> List[Dict[str, Any]]:
    """Apply backtest accuracies (analyst -> {accuracy, sample_size}) and log each change."""
    changes = update_from_backtest(results, as_of=window_end, db=db)
    for change in changes:
        _log(
            db, "analyst_weight", change["analyst"], change["before"], change["after"],
            change["after"]["sample_size"], (window_start, window_end),
        )
    db.flush()
    return changes


# ============================================================================
# TRIGGER CONFIDENCE
# ============================================================================

@uses_db
def latest_trigger_confidence(*, db: Session) -> Dict[str, float]:
    """Most recent logged confidence per trigger type, base values otherwise."""
    confidence = dict(BASE_CONFIDENCE)
    rows = db.query(CalibrationLog).filter(
        CalibrationLog.kind == "trigger_confidence",
    ).order_by(CalibrationLog.created_at, CalibrationLog.id).all()
    for row in rows:
        confidence[row.subject] = json.loads(row.after_json)["confidence"]
    return confidence


@uses_db
def run_trigger_recalibration(min_sample: int = MIN_SAMPLE_TRIGGER, *, db: Session) -> Dict[str, Any]:
    """Log confidence changes for trigger types with a meaningful sample."""
    current = latest_trigger_confidence(db=db)
    observed = calibrated_confidence(min_sample, db=db)
    samples = {t: entry["total"] for t, entry in hit_rate_by_trigger(min_sample, db=db).items()}

    changes: List[Dict[str, Any]] = []
    for trigger_type, value in observed.items():
        if abs(value - current[trigger_type]) < 1e-9:
            continue
        before = {"confidence": current[trigger_type]}
        after = {"confidence": value}
        _log(db, "trigger_confidence", trigger_type, before, after, samples.get(trigger_type, 0))
        changes.append({"trigger_type": trigger_type, "before": before, "after": after})
        logger.info("Trigger %s confidence %.3f -> %.3f", trigger_type, current[trigger_type], value)
    db.flush()

    return {"tuned": bool(changes), "changes": changes, "confidence": observed}


@uses_db
def calibration_history(kind: Optional[str] = None, limit: int = 50, *, db: Session) -> List[Dict[str, Any]]:
    query = db.query(CalibrationLog)
    if kind:
        query = query.filter(CalibrationLog.kind == kind)
    rows = query.order_by(CalibrationLog.created_at.desc(), CalibrationLog.id.desc()).limit(limit).all()
    return [row.to_dict() for row in rows]
