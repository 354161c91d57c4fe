"""
TEST_TIERING.PY - Tests for per-model tier tables
=================================================
v2.3 - Boundary verification for every model

Tests verify:
1. Tier boundaries per model (inclusive lower bounds)
2. Actionable thresholds and the RISKY override
3. Signal label templates

Run with: python -m pytest tests/test_tiering.py -v
"""

import os
import sys
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tiering import (
    ACTIONABLE_THRESHOLD,
    ENGINE_VERSION,
    Model,
    Tier,
    get_tier_config,
    is_actionable,
    is_risky_edge,
    signal_label,
    spread_value_tag,
    tier_for_edge,
)


# =============================================================================
# VERSION TESTS
# =============================================================================

class TestVersion:
    """Test version is updated."""

    def test_engine_version(self):
        """Test engine version is 2.3."""
        assert ENGINE_VERSION == "2.3"


# =============================================================================
# TIER THRESHOLD TESTS
# =============================================================================

class TestTierThresholds:
    """Test tier threshold boundaries."""

    @pytest.mark.parametrize("edge,tier", [
        (85.0, Tier.STRONG_BET),
        (84.9, Tier.BET),
        (80.0, Tier.BET),
        (79.9, Tier.CAUTION),
        (70.0, Tier.CAUTION),
        (60.0, Tier.LEAN),
        (59.9, Tier.PASS),
    ])
    def test_moneyline_boundaries(self, edge, tier):
        assert tier_for_edge(Model.ML, edge) == tier

    @pytest.mark.parametrize("edge,tier", [
        (80.0, Tier.STRONG_BET),
        (75.0, Tier.BET),
        (74.9, Tier.CAUTION),
        (65.0, Tier.CAUTION),
        (55.0, Tier.LEAN),
        (54.9, Tier.PASS),
    ])
    def test_spread_boundaries(self, edge, tier):
        assert tier_for_edge(Model.SPREAD, edge) == tier

    @pytest.mark.parametrize("edge,tier", [
        (78.0, Tier.STRONG_BET),
        (72.0, Tier.BET),
        (62.0, Tier.CAUTION),
        (52.0, Tier.LEAN),
        (51.9, Tier.PASS),
    ])
    def test_total_boundaries(self, edge, tier):
        assert tier_for_edge(Model.TOTAL, edge) == tier

    @pytest.mark.parametrize("edge,tier", [
        (90.0, Tier.ELITE),
        (85.0, Tier.STRONG_BET),
        (80.0, Tier.BET),
        (75.0, Tier.CAUTION),
        (70.0, Tier.LEAN),
        (69.9, Tier.PASS),
    ])
    def test_pickem_boundaries(self, edge, tier):
        assert tier_for_edge(Model.PICKEM, edge) == tier

    def test_accepts_model_value_string(self):
        assert tier_for_edge("spread", 80.0) == Tier.STRONG_BET


class TestActionable:
    """Actionable at or above the model threshold, never when risky."""

    @pytest.mark.parametrize("model", list(Model))
    def test_threshold_is_inclusive(self, model):
        threshold = ACTIONABLE_THRESHOLD[model]
        assert is_actionable(model, threshold)
        assert not is_actionable(model, threshold - 0.1)

    def test_risky_is_never_actionable(self):
        assert not is_actionable(Model.ML, 95.0, risky=True)

    def test_risky_edge_range(self):
        assert not is_risky_edge(64.9)
        assert is_risky_edge(65.0)
        assert is_risky_edge(79.9)
        assert not is_risky_edge(80.0)


class TestSignalLabels:
    """Human-readable labels."""

    def test_risky_moneyline(self):
        assert signal_label(Model.ML, 72.0, risky=True) == "RISKY"

    def test_risky_flag_ignored_outside_range(self):
        assert signal_label(Model.ML, 85.0, risky=True) == "STRONG BET"

    def test_strong_spread_with_value_tag(self):
        assert signal_label(Model.SPREAD, 82.0, line_diff=13.5) == "STRONG SPREAD (+13.5pt)"

    def test_spread_lean_has_no_value_tag(self):
        assert signal_label(Model.SPREAD, 70.0, line_diff=13.5) == "SPREAD LEAN"

    def test_total_uses_side(self):
        assert signal_label(Model.TOTAL, 73.0, side="UNDER") == "UNDER BET"
        assert signal_label(Model.TOTAL, 50.0, side="OVER") == "TOTAL PASS"

    def test_elite_pickem(self):
        assert signal_label(Model.PICKEM, 92.0) == "ELITE PICKEM"

    def test_value_tag(self):
        assert spread_value_tag(4.9) == ""
        assert spread_value_tag(-6.0) == " (-6.0pt)"
        assert spread_value_tag(5.0) == " (+5.0pt)"


class TestTierConfig:
    def test_spread_config(self):
        config = get_tier_config(Model.SPREAD)
        assert config["model"] == "spread"
        assert config["actionable_at"] == 75
        assert config["tiers"] == {"STRONG_BET": 80, "BET": 75, "CAUTION": 65, "LEAN": 55}

    def test_only_pickem_has_elite(self):
        for model in Model:
            has_elite = "ELITE" in get_tier_config(model)["tiers"]
            assert has_elite == (model == Model.PICKEM)
