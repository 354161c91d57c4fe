"""
Edge Result - common output of the four scoring models
======================================================

Every model produces a raw score around a coin-flip baseline of 50 and
hands it to ``finalize()``, which folds it onto [50, 100] relative to the
chosen side, rounds it, and attaches tier / signal label / actionability
from tiering.py.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from core.boundary_table import clamp, fold
from tiering import Model, Tier, is_actionable, is_risky_edge, signal_label, tier_for_edge

BASELINE = 50.0


@dataclass
class EdgeResult:
    """Scored recommendation for one game under one model."""
    model: Model
    home: str
    away: str
    side: str                     # HOME / AWAY / OVER / UNDER
    recommended: str              # team abbr, or OVER / UNDER
    edge: float                   # [50, 100], relative to side
    raw_score: float              # pre-fold score, relative to the model's raw side
    tier: Tier
    signal: str
    actionable: bool
    risky: bool = False
    flow: Optional[str] = None    # momentum tag of the chosen side
    game_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)

    @property
    def matchup(self) -> str:
        return f"{self.away} @ {self.home}"

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["model"] = self.model.value
        result["tier"] = self.tier.value
        result["matchup"] = self.matchup
        return result


def finalize(
    model: Model,
    raw: float,
    home: str,
    away: str,
    raw_side: str,
    other_side: str,
    raw_pick: str,
    other_pick: str,
    reasons: List[str],
    details: Optional[Dict[str, Any]] = None,
    flows: Optional[Dict[str, str]] = None,
    unstable_flows: frozenset = frozenset(),
    line_diff: float = 0.0,
    game_id: Optional[int] = None,
) -> EdgeResult:
    """
    Fold, round and label a raw score.

    raw_side is the side a raw score >= 50 favors (HOME for ML/spread,
    OVER for totals, AWAY for pickem). flows maps side -> flow tag; the
    chosen side's tag is reported and checked against unstable_flows.
    """
    bounded = clamp(raw)
    if bounded != raw:
        reasons.append(f"Raw {raw:.1f} clamped to {bounded:.1f}")
    edge, raw_side_won = fold(bounded)
    side, pick = (raw_side, raw_pick) if raw_side_won else (other_side, other_pick)

    # Risk window is checked on the unrounded edge
    flow = (flows or {}).get(side)
    risky = bool(unstable_flows) and flow in unstable_flows and is_risky_edge(edge)
    edge = round(edge, 1)
    if risky:
        reasons.append(f"{side} flow {flow} with edge {edge} -> RISKY")

    label_side = side if model == Model.TOTAL else None
    return EdgeResult(
        model=model,
        home=home,
        away=away,
        side=side,
        recommended=pick,
        edge=edge,
        raw_score=round(raw, 2),
        tier=tier_for_edge(model, edge),
        signal=signal_label(model, edge, risky=risky, side=label_side, line_diff=line_diff),
        actionable=is_actionable(model, edge, risky),
        risky=risky,
        flow=flow,
        game_id=game_id,
        details=details or {},
        reasons=reasons,
    )


def signed(value: float) -> str:
    return f"{value:+.1f}"
