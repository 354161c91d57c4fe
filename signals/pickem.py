"""
Pickem Underdog Model
=====================

Fires only when the home side is favored by at most 1.5 points
(-1.5 <= spread <= 0) and the away side has the better net rating.
Recommends the away side.

Score is additive from 60:
    net rating edge   >= 8: +15 | >= 5: +20 | >= 3: +10 | else +15
    spread tightness  >= -0.5: +15 (TIGHT) | >= -1.0: +5 (MEDIUM) | else 0 (WIDE)
    win% edge         >= 0.15: +5 | >= 0.10: +3

The 5-8 point band scores above the >= 8 band (non-monotonic).
"""

from typing import Optional

from core.boundary_table import StepTable
from signals.edge_result import EdgeResult, finalize, signed
from team_metrics import TeamMetrics
from tiering import Model

# ============================================
# CONSTANTS (Single Source of Truth)
# ============================================
PICKEM_BASE = 60.0
MAX_HOME_FAVORITE = -1.5  # spread lower bound

NET_EDGE_BONUS = StepTable.at_least([(8, 15), (5, 20), (3, 10)], default=15)
SPREAD_BONUS = StepTable.at_least([(-0.5, 15), (-1.0, 5)], default=0)
WIN_PCT_BONUS = StepTable.at_least([(0.15, 5), (0.10, 3)], default=0)
PICKEM_TYPES = StepTable.at_least([(-0.5, "TIGHT"), (-1.0, "MEDIUM")], default="WIDE")


def is_pickem_game(home: TeamMetrics, away: TeamMetrics, market_spread: Optional[float]) -> bool:
    if market_spread is None:
        return False
    if not MAX_HOME_FAVORITE <= market_spread <= 0:
        return False
    return away.net_rating > home.net_rating


def pickem_type(market_spread: float) -> str:
    return PICKEM_TYPES.lookup(market_spread)


def score_pickem(
    home: TeamMetrics,
    away: TeamMetrics,
    market_spread: Optional[float],
    game_id: Optional[int] = None,
) -> Optional[EdgeResult]:
    """Returns None when the game doesn't qualify."""
    if not is_pickem_game(home, away, market_spread):
        return None

    net_edge = away.net_rating - home.net_rating
    pct_edge = away.win_pct - home.win_pct
    net_bonus = NET_EDGE_BONUS.lookup(net_edge)
    spread_bonus = SPREAD_BONUS.lookup(market_spread)
    pct_bonus = WIN_PCT_BONUS.lookup(pct_edge)
    kind = pickem_type(market_spread)

    reasons = [
        f"Home favored by {abs(market_spread)} with weaker net rating",
        f"Net rating edge {signed(net_edge)} -> +{net_bonus}",
        f"{kind} spread -> +{spread_bonus}",
    ]
    if pct_bonus:
        reasons.append(f"Win% edge {pct_edge:+.3f} -> +{pct_bonus}")

    raw = PICKEM_BASE + net_bonus + spread_bonus + pct_bonus

    return finalize(
        Model.PICKEM,
        raw,
        home=home.abbr,
        away=away.abbr,
        raw_side="AWAY",
        other_side="HOME",
        raw_pick=away.abbr,
        other_pick=home.abbr,
        reasons=reasons,
        details={
            "pickem_type": kind,
            "spread": 0.0 - market_spread,  # away perspective
            "net_rating_edge": round(net_edge, 1),
            "home_net_rating": round(home.net_rating, 1),
            "away_net_rating": round(away.net_rating, 1),
            "home_win_pct": round(home.win_pct * 100),
            "away_win_pct": round(away.win_pct * 100),
        },
        game_id=game_id,
    )
