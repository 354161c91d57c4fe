"""
TEST_EDGE_MODELS.PY - Moneyline, spread, total and pickem scoring
=================================================================

Tests verify:
1. Worked examples for every model
2. Folding: edge in [50, 100] relative to the chosen side
3. Missing metrics and lines fall back to documented defaults
4. RISKY flow suppresses actionability

Run with: python -m pytest tests/test_edge_models.py -v
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from signals.edge_result import finalize
from signals.moneyline import net_rating_term, score_moneyline
from signals.pickem import is_pickem_game, pickem_type, score_pickem
from signals.spread import score_spread
from signals.total import expected_total, score_total
from team_metrics import StaticMetricLookup, TeamMetrics
from tiering import Model, Tier


def team(abbr, **kwargs):
    return TeamMetrics(abbr=abbr, **kwargs)


class TestSpreadModel:
    """expected_margin = net diff + 3.5, stepped against the market line."""

    def test_home_value_against_market(self):
        """Home +5 net vs away -3 with home -2: margin 11.5, diff 13.5, +20."""
        result = score_spread(team("BOS", net_rating=5), team("NYK", net_rating=-3), -2.0)

        assert result.details["expected_margin"] == 11.5
        assert result.details["line_diff"] == 13.5
        assert result.side == "HOME"
        assert result.recommended == "BOS"
        assert result.edge == 70.0
        assert result.tier == Tier.CAUTION
        assert result.signal == "SPREAD LEAN"
        assert not result.actionable

    def test_ats_and_flow_corrections_stack(self):
        home = team("BOS", net_rating=5, ats_home_pct=0.60, flow_state="HOT_STREAK")
        away = team("NYK", net_rating=-3, ats_away_pct=0.40, flow_state="SLUMP")
        result = score_spread(home, away, -2.0)

        assert result.edge == 80.0
        assert result.tier == Tier.STRONG_BET
        assert result.actionable
        assert result.signal == "STRONG SPREAD (+13.5pt)"

    def test_away_side_when_raw_below_baseline(self):
        result = score_spread(team("BOS", net_rating=-10), team("NYK", net_rating=10), 0.0)

        assert result.raw_score == 30.0
        assert result.side == "AWAY"
        assert result.recommended == "NYK"
        assert result.edge == 70.0

    def test_dead_zone_is_coin_flip(self):
        """Line diff inside +-1 contributes nothing."""
        result = score_spread(team("BOS"), team("NYK"), 3.0)
        assert result.details["line_diff"] == 0.5
        assert result.edge == 50.0
        assert result.tier == Tier.PASS

    def test_missing_market_spread_uses_zero(self):
        result = score_spread(team("BOS"), team("NYK"), None)
        assert result.details["market_spread"] == 0.0
        assert any("No market spread" in r for r in result.reasons)


class TestMoneylineModel:
    """Win% diff * 30 + capped net rating term + 5 home court."""

    def test_net_rating_term_caps_at_ten(self):
        assert net_rating_term(10) == 20
        assert net_rating_term(-12) == -20
        assert net_rating_term(4.5) == 9.0

    def test_strong_home_favorite(self):
        result = score_moneyline(
            team("BOS", win_pct=0.7, net_rating=8),
            team("NYK", win_pct=0.4, net_rating=-4),
        )
        assert result.side == "HOME"
        assert result.edge == 84.0
        assert result.tier == Tier.BET
        assert result.actionable

    def test_warming_flow_is_risky(self):
        result = score_moneyline(
            team("BOS", win_pct=0.6, net_rating=5, flow_state="WARMING"),
            team("NYK", win_pct=0.5, net_rating=0),
        )
        assert result.edge == 68.0
        assert result.risky
        assert result.signal == "RISKY"
        assert not result.actionable
        assert result.flow == "WARMING"

    def test_warming_on_losing_side_is_not_risky(self):
        result = score_moneyline(
            team("BOS", win_pct=0.6, net_rating=5),
            team("NYK", win_pct=0.5, net_rating=0, flow_state="WARMING"),
        )
        assert not result.risky

    def test_risk_window_uses_unrounded_edge(self):
        """79.96 is inside [65, 80) even though it displays as 80.0."""
        warming = {"HOME": "WARMING", "AWAY": "NEUTRAL"}

        upper = finalize(Model.ML, 79.96, "BOS", "NYK", "HOME", "AWAY", "BOS", "NYK", [],
                         flows=warming, unstable_flows=frozenset({"WARMING"}))
        lower = finalize(Model.ML, 64.96, "BOS", "NYK", "HOME", "AWAY", "BOS", "NYK", [],
                         flows=warming, unstable_flows=frozenset({"WARMING"}))

        assert upper.edge == 80.0
        assert upper.risky
        assert not upper.actionable
        assert lower.edge == 65.0
        assert not lower.risky

    def test_raw_above_hundred_is_clamped(self):
        result = score_moneyline(
            team("BOS", win_pct=1.0, net_rating=15),
            team("NYK", win_pct=0.0, net_rating=-15),
        )
        assert result.edge == 100.0
        assert any("clamped" in r for r in result.reasons)

    def test_defaults_give_home_court_only(self):
        result = score_moneyline(team("BOS"), team("NYK"))
        assert result.edge == 55.0
        assert result.tier == Tier.PASS


class TestTotalModel:
    """(off + off) * avg pace / 100 against the market total."""

    def test_expected_total_uses_average_pace(self):
        assert expected_total(team("A", off_rating=110, pace=96), team("B", off_rating=120, pace=104)) == 230.0

    def test_defaults_lean_under(self):
        """228 projected vs 230: diff -2 falls in the -5 bucket."""
        result = score_total(team("BOS"), team("NYK"), 230.0)
        assert result.side == "UNDER"
        assert result.recommended == "UNDER"
        assert result.edge == 55.0
        assert result.signal == "UNDER WATCH"

    def test_high_scoring_pairing_over_bet(self):
        home = team("BOS", off_rating=120, over_pct=0.6)
        away = team("NYK", off_rating=120, over_pct=0.6)
        result = score_total(home, away, 220.0)

        assert result.details["expected_total"] == 240.0
        assert result.side == "OVER"
        assert result.edge == 73.0
        assert result.signal == "OVER BET"
        assert result.actionable

    def test_missing_total_uses_default(self):
        result = score_total(team("BOS"), team("NYK"), None)
        assert result.details["market_total"] == 230.0


class TestPickemModel:
    """Away underdog with the better net rating in near-even games."""

    def test_medium_spread_optimal_band(self):
        """Home -1.0, away +6 net edge: 60 + 20 + 5 = 85."""
        result = score_pickem(team("BOS", net_rating=4), team("NYK", net_rating=10), -1.0)

        assert result is not None
        assert result.side == "AWAY"
        assert result.recommended == "NYK"
        assert result.details["pickem_type"] == "MEDIUM"
        assert result.details["spread"] == 1.0
        assert result.edge == 85.0
        assert result.tier == Tier.STRONG_BET
        assert result.actionable

    def test_larger_edge_scores_lower(self):
        optimal = score_pickem(team("BOS", net_rating=4), team("NYK", net_rating=10), -1.0)
        larger = score_pickem(team("BOS", net_rating=4), team("NYK", net_rating=13), -1.0)
        assert larger.edge < optimal.edge

    def test_tight_spread_elite(self):
        result = score_pickem(
            team("BOS", net_rating=0, win_pct=0.5),
            team("NYK", net_rating=12, win_pct=0.7),
            0.0,
        )
        assert result.details["pickem_type"] == "TIGHT"
        assert result.edge == 95.0
        assert result.signal == "ELITE PICKEM"

    @pytest.mark.parametrize("spread", [None, -2.0, 0.5])
    def test_spread_outside_window(self, spread):
        assert score_pickem(team("BOS", net_rating=0), team("NYK", net_rating=5), spread) is None

    def test_home_stronger_is_not_pickem(self):
        assert not is_pickem_game(team("BOS", net_rating=5), team("NYK", net_rating=1), -1.0)

    def test_pickem_types(self):
        assert pickem_type(-0.5) == "TIGHT"
        assert pickem_type(-1.0) == "MEDIUM"
        assert pickem_type(-1.5) == "WIDE"


class TestFoldInvariant:
    """Every model's edge lands in [50, 100] for the side it picks."""

    @pytest.mark.parametrize("home_net,away_net,spread", [
        (15, -15, -20.0),
        (-15, 15, 20.0),
        (0, 0, 0.0),
        (3, 4, -1.0),
    ])
    def test_edges_in_range(self, home_net, away_net, spread):
        home = team("BOS", net_rating=home_net, win_pct=0.5 + home_net / 40)
        away = team("NYK", net_rating=away_net, win_pct=0.5 + away_net / 40)
        results = [
            score_moneyline(home, away),
            score_spread(home, away, spread),
            score_total(home, away, 220.0),
        ]
        pickem = score_pickem(home, away, spread)
        if pickem is not None:
            results.append(pickem)
        for result in results:
            assert 50.0 <= result.edge <= 100.0


class TestMetricDefaults:
    """Missing or null store fields fall back to documented defaults."""

    def test_null_fields_keep_defaults(self):
        metrics = TeamMetrics.from_record("BOS", {"win_pct": None, "net_rating": "4.5", "flow_state": "warming"})
        assert metrics.win_pct == 0.5
        assert metrics.net_rating == 4.5
        assert metrics.flow_state == "WARMING"
        assert metrics.off_rating == 114.0

    def test_unknown_team_gets_defaults(self):
        lookup = StaticMetricLookup({"BOS": {"net_rating": 3}})
        assert lookup.metric_lookup("XXX") == TeamMetrics.default("XXX")
        assert lookup.metric_lookup("BOS").net_rating == 3.0

    def test_to_dict_serializes_enums(self):
        data = score_spread(team("BOS"), team("NYK"), -2.0, game_id=7).to_dict()
        assert data["model"] == Model.SPREAD.value
        assert data["tier"] in {t.value for t in Tier}
        assert data["matchup"] == "NYK @ BOS"
        assert data["game_id"] == 7
