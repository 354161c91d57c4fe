"""
Spread Edge Model
=================

expected_margin = (home_net - away_net) + 3.5
line_diff       = expected_margin - market_spread

Positive line_diff means the market undervalues the home side. The step
adjustment is symmetric around a +-1 point dead zone; ATS trends and
flow tags add small corrections on top.
"""

from typing import Optional

from core.boundary_table import StepTable
from signals.edge_result import BASELINE, EdgeResult, finalize, signed
from team_metrics import TeamMetrics
from tiering import Model

# ============================================
# CONSTANTS (Single Source of Truth)
# ============================================
HOME_COURT_POINTS = 3.5
DEFAULT_MARKET_SPREAD = 0.0

LINE_DIFF_STEPS = StepTable.strict(
    [(8, 20), (5, 15), (3, 10), (1, 5), (-1, 0), (-3, -5), (-5, -10), (-8, -15)],
    default=-20,
)

ATS_HOT = 0.55
ATS_COLD = 0.45
ATS_ADJUSTMENT = 3.0

FLOW_ADJUSTMENT = 2.0
HOT_FLOWS = frozenset({"HOT_STREAK", "STRONG_UP"})
COLD_FLOWS = frozenset({"COLD_STREAK", "SLUMP"})


def ats_term(pct: float) -> float:
    """Home-perspective adjustment for a team's ATS cover rate."""
    if pct > ATS_HOT:
        return ATS_ADJUSTMENT
    if pct < ATS_COLD:
        return -ATS_ADJUSTMENT
    return 0.0


def flow_term(flow: str) -> float:
    if flow in HOT_FLOWS:
        return FLOW_ADJUSTMENT
    if flow in COLD_FLOWS:
        return -FLOW_ADJUSTMENT
    return 0.0


def score_spread(
    home: TeamMetrics,
    away: TeamMetrics,
    market_spread: Optional[float],
    game_id: Optional[int] = None,
) -> EdgeResult:
    reasons = []
    if market_spread is None:
        market_spread = DEFAULT_MARKET_SPREAD
        reasons.append("No market spread, using pick'em line 0")

    expected_margin = (home.net_rating - away.net_rating) + HOME_COURT_POINTS
    line_diff = expected_margin - market_spread
    step = LINE_DIFF_STEPS.lookup(line_diff)
    reasons.append(
        f"Expected margin {signed(expected_margin)} vs line {signed(market_spread)}: "
        f"diff {signed(line_diff)} -> {signed(step)}"
    )

    # Away team numbers enter from the home perspective, hence the negation
    home_ats = ats_term(home.ats_home_pct)
    away_ats = -ats_term(away.ats_away_pct)
    home_flow = flow_term(home.flow_state)
    away_flow = -flow_term(away.flow_state)
    for label, term in (
        ("Home ATS at home", home_ats),
        ("Away ATS on road", away_ats),
        (f"Home flow {home.flow_state}", home_flow),
        (f"Away flow {away.flow_state}", away_flow),
    ):
        if term:
            reasons.append(f"{label} -> {signed(term)}")

    raw = BASELINE + step + home_ats + away_ats + home_flow + away_flow

    return finalize(
        Model.SPREAD,
        raw,
        home=home.abbr,
        away=away.abbr,
        raw_side="HOME",
        other_side="AWAY",
        raw_pick=home.abbr,
        other_pick=away.abbr,
        reasons=reasons,
        details={
            "expected_margin": round(expected_margin, 1),
            "market_spread": round(market_spread, 1),
            "line_diff": round(line_diff, 1),
            "home_net_rating": round(home.net_rating, 1),
            "away_net_rating": round(away.net_rating, 1),
            "home_ats_pct": round(home.ats_home_pct * 100, 1),
            "away_ats_pct": round(away.ats_away_pct * 100, 1),
            "home_flow": home.flow_state,
            "away_flow": away.flow_state,
        },
        flows={"HOME": home.flow_state, "AWAY": away.flow_state},
        line_diff=line_diff,
        game_id=game_id,
    )
