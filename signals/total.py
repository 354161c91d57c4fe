"""
Total Edge Model
================

expected_total = (home_off + away_off) * (average pace / 100)
total_diff     = expected_total - market_total

Raw scores above 50 favor the OVER.
"""

from typing import Optional

from core.boundary_table import StepTable
from signals.edge_result import BASELINE, EdgeResult, finalize, signed
from team_metrics import TeamMetrics
from tiering import Model

# ============================================
# CONSTANTS (Single Source of Truth)
# ============================================
DEFAULT_MARKET_TOTAL = 230.0

TOTAL_DIFF_STEPS = StepTable.strict(
    [(10, 15), (5, 10), (2, 5), (-2, 0), (-5, -5), (-10, -10)],
    default=-15,
)

# (both above -> +adj, both below -> -adj)
OFFENSE_HIGH, OFFENSE_LOW, OFFENSE_ADJ = 118.0, 110.0, 5.0
DEFENSE_HIGH, DEFENSE_LOW, DEFENSE_ADJ = 116.0, 108.0, 5.0
OVER_PCT_HIGH, OVER_PCT_LOW, OVER_PCT_ADJ = 0.55, 0.45, 3.0


def paired_term(a: float, b: float, high: float, low: float, adj: float) -> float:
    """+adj when both values exceed high, -adj when both fall below low."""
    if a > high and b > high:
        return adj
    if a < low and b < low:
        return -adj
    return 0.0


def expected_total(home: TeamMetrics, away: TeamMetrics) -> float:
    return (home.off_rating + away.off_rating) * ((home.pace + away.pace) / 200.0)


def score_total(
    home: TeamMetrics,
    away: TeamMetrics,
    market_total: Optional[float],
    game_id: Optional[int] = None,
) -> EdgeResult:
    reasons = []
    if market_total is None:
        market_total = DEFAULT_MARKET_TOTAL
        reasons.append(f"No market total, using {DEFAULT_MARKET_TOTAL}")

    projected = expected_total(home, away)
    total_diff = projected - market_total
    step = TOTAL_DIFF_STEPS.lookup(total_diff)
    reasons.append(
        f"Expected total {projected:.1f} vs line {market_total}: diff {signed(total_diff)} -> {signed(step)}"
    )

    offense = paired_term(home.off_rating, away.off_rating, OFFENSE_HIGH, OFFENSE_LOW, OFFENSE_ADJ)
    defense = paired_term(home.def_rating, away.def_rating, DEFENSE_HIGH, DEFENSE_LOW, DEFENSE_ADJ)
    over_pct = paired_term(home.over_pct, away.over_pct, OVER_PCT_HIGH, OVER_PCT_LOW, OVER_PCT_ADJ)
    for label, term in (("Offense pairing", offense), ("Defense pairing", defense), ("Over% trend", over_pct)):
        if term:
            reasons.append(f"{label} -> {signed(term)}")

    raw = BASELINE + step + offense + defense + over_pct

    return finalize(
        Model.TOTAL,
        raw,
        home=home.abbr,
        away=away.abbr,
        raw_side="OVER",
        other_side="UNDER",
        raw_pick="OVER",
        other_pick="UNDER",
        reasons=reasons,
        details={
            "expected_total": round(projected, 1),
            "market_total": market_total,
            "total_diff": round(total_diff, 1),
            "home_off_rating": round(home.off_rating, 1),
            "away_off_rating": round(away.off_rating, 1),
            "home_def_rating": round(home.def_rating, 1),
            "away_def_rating": round(away.def_rating, 1),
        },
        game_id=game_id,
    )
