"""
TIERING.PY - SINGLE SOURCE OF TRUTH FOR EDGE TIERS
==================================================
v2.3 - Per-model tier tables as ordered boundary data

This module is the ONLY place tier breakpoints and signal labels are defined.
All other files should import from here via:
    from tiering import Model, Tier, tier_for_edge, signal_label, is_actionable

TIER HIERARCHY (highest to lowest):
1. ELITE       - Pickem only (edge >= 90)
2. STRONG_BET  - Maximum confidence
3. BET         - Actionable edge
4. CAUTION     - Watch, no stake
5. LEAN        - Weak lean
6. PASS        - No action

BREAKPOINTS (edge score, inclusive lower bound):
    Model    ELITE  STRONG  BET  CAUTION  LEAN   ACTIONABLE AT
    ml         -      85     80     70     60        80
    spread     -      80     75     65     55        75
    total      -      78     72     62     52        72
    pickem    90      85     80     75     70        75

A risky moneyline (WARMING flow, 65 <= edge < 80) is never actionable.
"""

from enum import Enum
from typing import Any, Dict, Optional

from core.boundary_table import StepTable

ENGINE_VERSION = "2.3"


class Model(str, Enum):
    ML = "ml"
    SPREAD = "spread"
    TOTAL = "total"
    PICKEM = "pickem"


class Tier(str, Enum):
    ELITE = "ELITE"
    STRONG_BET = "STRONG_BET"
    BET = "BET"
    CAUTION = "CAUTION"
    LEAN = "LEAN"
    PASS = "PASS"


# =============================================================================
# TIER TABLES - SINGLE SOURCE OF TRUTH
# =============================================================================
TIER_TABLES: Dict[Model, StepTable] = {
    Model.ML: StepTable.at_least(
        [(85, Tier.STRONG_BET), (80, Tier.BET), (70, Tier.CAUTION), (60, Tier.LEAN)],
        default=Tier.PASS,
    ),
    Model.SPREAD: StepTable.at_least(
        [(80, Tier.STRONG_BET), (75, Tier.BET), (65, Tier.CAUTION), (55, Tier.LEAN)],
        default=Tier.PASS,
    ),
    Model.TOTAL: StepTable.at_least(
        [(78, Tier.STRONG_BET), (72, Tier.BET), (62, Tier.CAUTION), (52, Tier.LEAN)],
        default=Tier.PASS,
    ),
    Model.PICKEM: StepTable.at_least(
        [(90, Tier.ELITE), (85, Tier.STRONG_BET), (80, Tier.BET), (75, Tier.CAUTION), (70, Tier.LEAN)],
        default=Tier.PASS,
    ),
}

ACTIONABLE_THRESHOLD: Dict[Model, float] = {
    Model.ML: 80,
    Model.SPREAD: 75,
    Model.TOTAL: 72,
    Model.PICKEM: 75,
}

# Label templates: {side} is OVER/UNDER for totals, {value} the spread value tag
SIGNAL_LABELS: Dict[Model, Dict[Tier, str]] = {
    Model.ML: {
        Tier.STRONG_BET: "STRONG BET",
        Tier.BET: "BET",
        Tier.CAUTION: "CAUTION",
        Tier.LEAN: "LEAN",
        Tier.PASS: "PASS",
    },
    Model.SPREAD: {
        Tier.STRONG_BET: "STRONG SPREAD{value}",
        Tier.BET: "SPREAD BET{value}",
        Tier.CAUTION: "SPREAD LEAN",
        Tier.LEAN: "SPREAD WATCH",
        Tier.PASS: "SPREAD PASS",
    },
    Model.TOTAL: {
        Tier.STRONG_BET: "STRONG {side}",
        Tier.BET: "{side} BET",
        Tier.CAUTION: "{side} LEAN",
        Tier.LEAN: "{side} WATCH",
        Tier.PASS: "TOTAL PASS",
    },
    Model.PICKEM: {
        Tier.ELITE: "ELITE PICKEM",
        Tier.STRONG_BET: "STRONG PICKEM",
        Tier.BET: "PICKEM BET",
        Tier.CAUTION: "PICKEM LEAN",
        Tier.LEAN: "PICKEM WATCH",
        Tier.PASS: "PICKEM PASS",
    },
}

RISKY_LABEL = "RISKY"
RISKY_EDGE_RANGE = (65, 80)  # [low, high)

# Spread value tag appears once the model disagrees with the market by this much
SPREAD_VALUE_TAG_MIN = 5.0


def tier_for_edge(model: Model, edge: float) -> Tier:
    """Map an edge score onto the model's tier table."""
    return TIER_TABLES[Model(model)].lookup(edge)


def is_actionable(model: Model, edge: float, risky: bool = False) -> bool:
    """Edge at or above the model's actionable threshold and no risk flag."""
    return edge >= ACTIONABLE_THRESHOLD[Model(model)] and not risky


def is_risky_edge(edge: float) -> bool:
    low, high = RISKY_EDGE_RANGE
    return low <= edge < high


def spread_value_tag(line_diff: float) -> str:
    if abs(line_diff) < SPREAD_VALUE_TAG_MIN:
        return ""
    sign = "+" if line_diff > 0 else ""
    return f" ({sign}{round(line_diff, 1)}pt)"


def signal_label(
    model: Model,
    edge: float,
    risky: bool = False,
    side: Optional[str] = None,
    line_diff: float = 0.0,
) -> str:
    """
    Human-readable signal label for an edge score.

    Examples:
        signal_label(Model.ML, 72.0, risky=True)           -> "RISKY"
        signal_label(Model.SPREAD, 82.0, line_diff=13.5)   -> "STRONG SPREAD (+13.5pt)"
        signal_label(Model.TOTAL, 73.0, side="UNDER")      -> "UNDER BET"
    """
    model = Model(model)
    if model == Model.ML and risky and is_risky_edge(edge):
        return RISKY_LABEL

    tier = tier_for_edge(model, edge)
    template = SIGNAL_LABELS[model][tier]
    return template.format(side=side or "", value=spread_value_tag(line_diff))


def get_tier_config(model: Model) -> Dict[str, Any]:
    """Tier breakpoints for a model, for audit endpoints and reports."""
    model = Model(model)
    return {
        "model": model.value,
        "tiers": {tier.value: threshold for threshold, tier in TIER_TABLES[model].rows},
        "actionable_at": ACTIONABLE_THRESHOLD[model],
    }


__all__ = [
    "ENGINE_VERSION",
    "Model",
    "Tier",
    "TIER_TABLES",
    "ACTIONABLE_THRESHOLD",
    "SIGNAL_LABELS",
    "RISKY_LABEL",
    "tier_for_edge",
    "is_actionable",
    "is_risky_edge",
    "spread_value_tag",
    "signal_label",
    "get_tier_config",
]
