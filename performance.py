"""
Performance Aggregator v2.3
===========================
Read-side rollups over graded picks.

    win_rate  = wins / max(wins + losses, 1) * 100      (pushes excluded)
    net_units = sum(stake | win) - sum(stake | loss)     (stake None = 1.0)
    roi       = net_units / total_staked * 100           (0 if nothing staked)

Breakdowns (pick type, consensus label, month) are the same rollup over
filtered subsets.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.time_et import today_et
from database import Pick, PickResult, PickType, get_graded_picks

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30


def empty_stats() -> Dict[str, Any]:
    return {
        "total": 0, "wins": 0, "losses": 0, "pushes": 0, "record": "0-0-0",
        "win_rate": 0.0, "net_units": 0.0, "roi": 0.0,
    }


def _stake(pick) -> float:
    return pick.stake if pick.stake is not None else 1.0


def compute_stats(picks: Iterable[Pick]) -> Dict[str, Any]:
    graded = [p for p in picks if p.result != PickResult.PENDING]
    if not graded:
        return empty_stats()

    wins = [p for p in graded if p.result == PickResult.WIN]
    losses = [p for p in graded if p.result == PickResult.LOSS]
    pushes = len(graded) - len(wins) - len(losses)

    net_units = sum(_stake(p) for p in wins) - sum(_stake(p) for p in losses)
    total_staked = sum(_stake(p) for p in graded)

    return {
        "total": len(graded),
        "wins": len(wins),
        "losses": len(losses),
        "pushes": pushes,
        "record": f"{len(wins)}-{len(losses)}-{pushes}",
        "win_rate": round(len(wins) / max(len(wins) + len(losses), 1) * 100, 1),
        "net_units": round(net_units, 2),
        "roi": round(net_units / total_staked * 100, 1) if total_staked > 0 else 0.0,
    }


def _grouped(picks: Iterable[Pick], key: Callable[[Pick], Optional[str]]) -> Dict[str, Dict[str, Any]]:
    groups: Dict[str, List[Pick]] = defaultdict(list)
    for pick in picks:
        k = key(pick)
        if k is not None:
            groups[k].append(pick)
    return {k: compute_stats(v) for k, v in sorted(groups.items())}


def stats_by_pick_type(picks: Iterable[Pick]) -> Dict[str, Dict[str, Any]]:
    picks = list(picks)
    return {
        kind.value: compute_stats(p for p in picks if p.pick_type == kind)
        for kind in PickType
    }


def stats_by_consensus(picks: Iterable[Pick]) -> Dict[str, Dict[str, Any]]:
    return _grouped(picks, lambda p: p.consensus_label)


def stats_by_month(picks: Iterable[Pick]) -> Dict[str, Dict[str, Any]]:
    """Keyed "YYYY-MM" by game date."""
    return _grouped(picks, lambda p: p.game.game_date.strftime("%Y-%m") if p.game and p.game.game_date else None)


def performance_summary(picks: Iterable[Pick]) -> Dict[str, Any]:
    picks = list(picks)
    return {
        "overall": compute_stats(picks),
        "by_type": stats_by_pick_type(picks),
        "by_consensus": stats_by_consensus(picks),
        "by_month": stats_by_month(picks),
    }


def published_stats(window_days: Optional[int] = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
    """Summary over published, graded picks; ``window_days=None`` means all time."""
    until = today_et()
    since = until - timedelta(days=window_days) if window_days else None
    picks = get_graded_picks(since=since, until=until, published_only=True)
    summary = performance_summary(picks)
    logger.debug("Published stats over %s graded picks (window %s days)", len(picks), window_days)
    summary["window_days"] = window_days
    summary["since"] = since.isoformat() if since else None
    summary["until"] = until.isoformat()
    return summary
