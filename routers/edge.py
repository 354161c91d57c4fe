"""
EDGE ROUTER - Edge score endpoints

Endpoints:
    - /edge/tiers                 - Tier breakpoints per model
    - /edge/game/{game_id}        - All models for one game
    - /edge/{date}/report         - Markdown report (GET render, POST write to REPORT_DIR)
    - /edge/{date}/{model}        - One model for a slate day, ranked
    - /edge/{date}                - All models for a slate day, ranked
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from core.auth import verify_api_key
from core.errors import EngineError
from core.time_et import parse_day
from daily_report import render_report, write_report
from edge_engine import analyze_date, analyze_game_id, default_lookup
from signals.edge_result import EdgeResult
from team_metrics import MetricLookup
from tiering import ENGINE_VERSION, Model, get_tier_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["edge"])


def get_lookup() -> MetricLookup:
    """Per-request metric lookup (overridden in tests)."""
    return default_lookup()


def _day(value: str):
    try:
        return parse_day(value)
    except ValueError:
        raise EngineError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def _model(value: str) -> Model:
    try:
        return Model(value.lower())
    except ValueError:
        raise EngineError(f"Unknown model {value!r}, expected one of {[m.value for m in Model]}")


def _serialize(results: Dict[str, List[EdgeResult]]) -> Dict[str, Any]:
    return {
        "engine_version": ENGINE_VERSION,
        "counts": {model: len(items) for model, items in results.items()},
        "actionable": sum(1 for items in results.values() for r in items if r.actionable),
        "results": {model: [r.to_dict() for r in items] for model, items in results.items()},
    }


@router.get("/edge/tiers")
async def edge_tiers():
    return {"engine_version": ENGINE_VERSION, "models": [get_tier_config(m) for m in Model]}


@router.get("/edge/game/{game_id}")
async def edge_for_game(game_id: int, lookup: MetricLookup = Depends(get_lookup)):
    payload = _serialize(analyze_game_id(game_id, lookup))
    payload["game_id"] = game_id
    return payload


@router.get("/edge/{date}/report", response_class=PlainTextResponse)
async def edge_report(date: str, lookup: MetricLookup = Depends(get_lookup)):
    day = _day(date)
    return render_report(day, analyze_date(day, lookup))


@router.post("/edge/{date}/report")
async def edge_report_write(
    date: str,
    lookup: MetricLookup = Depends(get_lookup),
    auth: bool = Depends(verify_api_key),
):
    day = _day(date)
    path = write_report(day, analyze_date(day, lookup))
    return {"status": "ok", "date": day.isoformat(), "path": str(path)}


@router.get("/edge/{date}/{model}")
async def edge_for_model(date: str, model: str, lookup: MetricLookup = Depends(get_lookup)):
    day = _day(date)
    chosen = _model(model)
    results = analyze_date(day, lookup)
    items = results[chosen.value]
    return {
        "date": day.isoformat(),
        "model": chosen.value,
        "engine_version": ENGINE_VERSION,
        "count": len(items),
        "results": [r.to_dict() for r in items],
    }


@router.get("/edge/{date}")
async def edge_for_date(date: str, lookup: MetricLookup = Depends(get_lookup)):
    day = _day(date)
    payload = _serialize(analyze_date(day, lookup))
    payload["date"] = day.isoformat()
    return payload
