"""
SIGNALS MODULE - Edge scoring models and analyst consensus
==========================================================
v2.3 - One module per model, shared fold/label step in edge_result

Modules:
- moneyline: win% + capped net rating + home court, RISKY on WARMING flow
- spread: expected margin vs market line, ATS and flow corrections
- total: expected total vs market total, pairing corrections
- pickem: statistically stronger away underdog in near-even games
- analyst_consensus: weighted five-analyst agreement

ALL SCORING MODELS RETURN an EdgeResult:
- edge: float in [50, 100], relative to the chosen side
- side / recommended: chosen side and team (or OVER/UNDER)
- tier / signal / actionable: from tiering.py
"""

from .edge_result import EdgeResult, finalize
from .moneyline import score_moneyline
from .spread import score_spread
from .total import score_total
from .pickem import score_pickem, is_pickem_game, pickem_type

from .analyst_consensus import (
    ANALYSTS,
    SignalType,
    calculate_consensus,
    classify_accuracy,
    weight_for_accuracy,
)

__all__ = [
    "EdgeResult",
    "finalize",
    "score_moneyline",
    "score_spread",
    "score_total",
    "score_pickem",
    "is_pickem_game",
    "pickem_type",
    "ANALYSTS",
    "SignalType",
    "calculate_consensus",
    "classify_accuracy",
    "weight_for_accuracy",
]
