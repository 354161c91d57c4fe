"""
Moneyline Edge Model
====================

raw = 50
    + (home_win_pct - away_win_pct) * 30
    + net rating term  (+-20 once |net diff| >= 10, else net diff * 2)
    + 5 home court

A favored side in WARMING flow with 65 <= edge < 80 is flagged RISKY,
which suppresses actionability whatever the tier.
"""

from typing import Optional

from signals.edge_result import BASELINE, EdgeResult, finalize, signed
from team_metrics import TeamMetrics
from tiering import Model

# ============================================
# CONSTANTS (Single Source of Truth)
# ============================================
WIN_PCT_WEIGHT = 30.0
NET_RATING_WEIGHT = 2.0
NET_RATING_CAP_AT = 10.0
NET_RATING_CAP = 20.0
HOME_COURT_BONUS = 5.0
UNSTABLE_FLOWS = frozenset({"WARMING"})


def net_rating_term(net_diff: float) -> float:
    if abs(net_diff) >= NET_RATING_CAP_AT:
        return NET_RATING_CAP if net_diff > 0 else -NET_RATING_CAP
    return net_diff * NET_RATING_WEIGHT


def score_moneyline(home: TeamMetrics, away: TeamMetrics, game_id: Optional[int] = None) -> EdgeResult:
    reasons = []

    pct_diff = home.win_pct - away.win_pct
    pct_term = pct_diff * WIN_PCT_WEIGHT
    reasons.append(f"Win% diff {pct_diff:+.3f} -> {signed(pct_term)}")

    net_diff = home.net_rating - away.net_rating
    net_term = net_rating_term(net_diff)
    reasons.append(f"Net rating diff {signed(net_diff)} -> {signed(net_term)}")
    reasons.append(f"Home court {signed(HOME_COURT_BONUS)}")

    raw = BASELINE + pct_term + net_term + HOME_COURT_BONUS

    return finalize(
        Model.ML,
        raw,
        home=home.abbr,
        away=away.abbr,
        raw_side="HOME",
        other_side="AWAY",
        raw_pick=home.abbr,
        other_pick=away.abbr,
        reasons=reasons,
        details={
            "home_win_pct": round(home.win_pct * 100),
            "away_win_pct": round(away.win_pct * 100),
            "home_net_rating": round(home.net_rating, 1),
            "away_net_rating": round(away.net_rating, 1),
        },
        flows={"HOME": home.flow_state, "AWAY": away.flow_state},
        unstable_flows=UNSTABLE_FLOWS,
        game_id=game_id,
    )
