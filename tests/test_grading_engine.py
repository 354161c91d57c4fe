"""
TEST_GRADING_ENGINE.PY - Line capture, outcomes and pick settlement
===================================================================

Tests verify:
1. Pure grading (spread / total / moneyline, exact pushes)
2. Line capture and outcome computation happen once per game
3. Pick results are recorded exactly once unless corrected
4. Batch sync isolates failures and is idempotent

Run with: python -m pytest tests/test_grading_engine.py -v
"""

import os
import sys
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import EngineError, NotFound, OperationStatus
from database import (
    PickResult, SpreadResult, TotalResult, create_pick, get_db, Pick,
    upsert_game,
)
from game_status import set_final_scores
from grading_engine import (
    calculate_result, capture_due_lines, capture_lines, determine_pick_result,
    grade_pick, outcome_spread_result, outcome_total_result, record_pick_result,
    sync_results, team_ats_record, team_ou_record,
)
from conftest import GAME_START


# =============================================================================
# PURE GRADING
# =============================================================================

class TestPureGrading:
    """determine_pick_result against final scores."""

    def test_home_spread_covers(self):
        """Home -3.5, 100-95: adjusted margin 1.5 -> win."""
        assert determine_pick_result("spread", "home", -3.5, 100, 95) == PickResult.WIN

    def test_away_spread_covers_as_dog(self):
        assert determine_pick_result("spread", "away", 3.5, 100, 98) == PickResult.WIN

    def test_spread_exact_push(self):
        assert determine_pick_result("spread", "home", -5.0, 100, 95) == PickResult.PUSH

    def test_over_misses(self):
        """Over 220.5 with 110-108: total 218 -> loss."""
        assert determine_pick_result("total", "over", 220.5, 110, 108) == PickResult.LOSS

    def test_under_hits(self):
        assert determine_pick_result("total", "under", 220.5, 110, 108) == PickResult.WIN

    def test_total_exact_push(self):
        assert determine_pick_result("total", "over", 218.0, 110, 108) == PickResult.PUSH

    def test_moneyline(self):
        assert determine_pick_result("moneyline", "home", None, 101, 99) == PickResult.WIN
        assert determine_pick_result("moneyline", "away", None, 101, 99) == PickResult.LOSS

    def test_moneyline_tie_goes_against_home(self):
        assert determine_pick_result("moneyline", "home", None, 100, 100) == PickResult.LOSS
        assert determine_pick_result("moneyline", "away", None, 100, 100) == PickResult.WIN

    def test_case_insensitive_inputs(self):
        assert determine_pick_result("SPREAD", "HOME", -3.5, 100, 95) == PickResult.WIN

    def test_unsupported_type_raises(self):
        with pytest.raises(EngineError):
            determine_pick_result("parlay", "home", None, 1, 0)

    def test_invalid_side_raises(self):
        with pytest.raises(EngineError):
            determine_pick_result("total", "home", 220.5, 1, 0)

    def test_missing_line_raises(self):
        with pytest.raises(EngineError):
            determine_pick_result("spread", "home", None, 1, 0)

    def test_grade_pick_dict(self):
        out = grade_pick("spread", "home", -3.5, 100, 95)
        assert out["result"] == "win"
        assert out["pick_side"] == "home"


class TestOutcomeResults:
    """Canonical home-perspective outcome."""

    def test_home_covers(self):
        assert outcome_spread_result(3, -2.0) == SpreadResult.HOME_COVERED

    def test_away_covers(self):
        assert outcome_spread_result(1, -2.0) == SpreadResult.AWAY_COVERED

    def test_spread_push(self):
        assert outcome_spread_result(5, -5.0) == SpreadResult.PUSH

    def test_totals(self):
        assert outcome_total_result(221, 220.5) == TotalResult.OVER
        assert outcome_total_result(220, 220.5) == TotalResult.UNDER
        assert outcome_total_result(220, 220.0) == TotalResult.PUSH


# =============================================================================
# GAME LIFECYCLE
# =============================================================================

class TestLineCapture:
    def test_capture_once(self, make_game):
        game_id = make_game(home_spread=-2.0, total_line=220.5)

        first = capture_lines(game_id)
        second = capture_lines(game_id)

        assert first.status == OperationStatus.APPLIED
        assert first.payload["closing_spread"] == -2.0
        assert first.payload["opening_total"] == 220.5
        assert second.status == OperationStatus.ALREADY_FINALIZED

    def test_no_lines_not_ready(self, make_game):
        game_id = make_game(home_spread=None, total_line=None)
        assert capture_lines(game_id).status == OperationStatus.NOT_READY

    def test_opening_line_keeps_first_value(self, make_game):
        game_id = make_game(external_id="line-move", home_spread=-2.0)
        upsert_game({"external_id": "line-move", "game_date": GAME_START,
                     "home_team": "BOS", "away_team": "NYK", "home_spread": -3.5})
        result = capture_lines(game_id)
        assert result.payload["opening_spread"] == -2.0
        assert result.payload["closing_spread"] == -3.5

    def test_lines_frozen_after_capture(self, make_game, load_game):
        game_id = make_game(external_id="frozen", home_spread=-2.0)
        capture_lines(game_id)
        upsert_game({"external_id": "frozen", "game_date": GAME_START,
                     "home_team": "BOS", "away_team": "NYK", "home_spread": -7.0})
        assert load_game(game_id)["home_spread"] == -2.0

    def test_unknown_game(self, engine_db):
        with pytest.raises(NotFound):
            capture_lines(999)

    def test_capture_due_lines_respects_lead(self, make_game):
        soon = make_game(game_date=GAME_START)
        later = make_game(game_date=GAME_START + timedelta(hours=5))
        summary = capture_due_lines(GAME_START - timedelta(minutes=10))
        assert summary["lines_captured"] == 1
        assert capture_lines(soon).status == OperationStatus.ALREADY_FINALIZED
        assert capture_lines(later).status == OperationStatus.APPLIED


class TestCalculateResult:
    def test_not_ready_without_final_score(self, make_game):
        game_id = make_game()
        capture_lines(game_id)
        out = calculate_result(game_id)
        assert out.status == OperationStatus.NOT_READY
        assert out.reason == "no final score"

    def test_not_ready_without_captured_lines(self, make_game):
        game_id = make_game()
        set_final_scores(game_id, 100, 95)
        out = calculate_result(game_id)
        assert out.status == OperationStatus.NOT_READY
        assert out.reason == "closing lines not captured"

    def test_outcome_computed_once(self, make_game):
        game_id = make_game(home_spread=-2.0, total_line=220.5)
        capture_lines(game_id)
        set_final_scores(game_id, 100, 95)

        first = calculate_result(game_id)
        second = calculate_result(game_id)

        assert first.applied
        assert first.payload["margin"] == 5
        assert first.payload["spread_result"] == "home_covered"
        assert first.payload["total_result"] == "under"
        assert second.status == OperationStatus.ALREADY_FINALIZED

    def test_final_score_reported_once(self, make_game, load_game):
        game_id = make_game()
        set_final_scores(game_id, 100, 95)
        again = set_final_scores(game_id, 90, 95)
        assert again.status == OperationStatus.ALREADY_FINALIZED
        game = load_game(game_id)
        assert (game["home_score"], game["away_score"]) == (100, 95)


# =============================================================================
# PICK SETTLEMENT
# =============================================================================

class TestRecordPickResult:
    def test_grades_from_final_score_once(self, finished_game):
        game_id = finished_game(100, 95)
        pick_id = create_pick(game_id, "spread", "home", pick_line=-2.0, publish=True)

        first = record_pick_result(pick_id)
        second = record_pick_result(pick_id)

        assert first.applied
        assert first.payload["result"] == "win"
        assert second.status == OperationStatus.ALREADY_FINALIZED
        assert second.payload["result"] == "win"

    def test_not_ready_without_scores(self, make_game):
        game_id = make_game()
        pick_id = create_pick(game_id, "total", "over", pick_line=220.5)
        out = record_pick_result(pick_id)
        assert out.status == OperationStatus.NOT_READY

    def test_explicit_scores(self, make_game):
        game_id = make_game()
        pick_id = create_pick(game_id, "total", "over", pick_line=220.5)
        out = record_pick_result(pick_id, home_score=110, away_score=108)
        assert out.payload["result"] == "loss"

    def test_explicit_result_skips_grading(self, make_game):
        game_id = make_game()
        pick_id = create_pick(game_id, "moneyline", "away")
        out = record_pick_result(pick_id, result="push", note="game voided")
        assert out.payload["result"] == "push"

    def test_pending_result_rejected(self, make_game):
        game_id = make_game()
        pick_id = create_pick(game_id, "moneyline", "away")
        with pytest.raises(EngineError):
            record_pick_result(pick_id, result="pending")

    def test_correction_overwrites(self, finished_game):
        game_id = finished_game(100, 95)
        pick_id = create_pick(game_id, "spread", "home", pick_line=-2.0, publish=True)
        record_pick_result(pick_id)

        corrected = record_pick_result(pick_id, result="loss", note="stat correction", correction=True)

        assert corrected.applied
        assert corrected.payload["result"] == "loss"
        with get_db() as db:
            pick = db.get(Pick, pick_id)
            assert pick.result == PickResult.LOSS
            assert pick.result_note == "stat correction"

    def test_create_pick_validates(self, make_game):
        game_id = make_game()
        with pytest.raises(EngineError):
            create_pick(game_id, "spread", "over", pick_line=-2.0)
        with pytest.raises(EngineError):
            create_pick(game_id, "spread", "home")
        with pytest.raises(NotFound):
            create_pick(999, "moneyline", "home")


# =============================================================================
# BATCH SYNC
# =============================================================================

class TestSyncResults:
    def test_full_pipeline(self, make_game):
        game_id = make_game(home_spread=-2.0, total_line=220.5)
        set_final_scores(game_id, 100, 95)
        create_pick(game_id, "spread", "home", pick_line=-2.0, publish=True)
        create_pick(game_id, "total", "over", pick_line=220.5, publish=True)
        create_pick(game_id, "moneyline", "away")  # draft, not synced

        summary = sync_results(GAME_START + timedelta(hours=3))

        assert summary["lines_captured"] == 1
        assert summary["outcomes_computed"] == 1
        assert summary["picks_graded"] == 2
        assert summary["record"] == "1-1-0"
        assert summary["errors"] == []

    def test_second_sync_writes_nothing(self, make_game):
        game_id = make_game()
        set_final_scores(game_id, 100, 95)
        create_pick(game_id, "spread", "home", pick_line=-2.0, publish=True)
        now = GAME_START + timedelta(hours=3)
        sync_results(now)

        again = sync_results(now)

        assert again["lines_captured"] == 0
        assert again["outcomes_computed"] == 0
        assert again["picks_graded"] == 0

    def test_games_without_lines_reported_not_ready(self, make_game):
        make_game(home_spread=None, total_line=None)
        summary = sync_results(GAME_START)
        assert summary["lines_captured"] == 0
        assert summary["not_ready"][0]["entity"].startswith("game:")

    def test_started_unfinished_counted(self, make_game):
        make_game()
        summary = sync_results(GAME_START + timedelta(hours=1))
        assert summary["started_unfinished"] == 1


class TestTeamRecords:
    def test_ats_and_ou(self, finished_game):
        finished_game(100, 95, home_spread=-2.0, total_line=220.5)
        finished_game(100, 99, home_spread=-2.0, total_line=190.5)

        ats = team_ats_record("BOS")
        ou = team_ou_record("NYK")

        assert ats["record"] == "1-1-0"
        assert team_ats_record("NYK")["record"] == "1-1-0"
        assert ou["overs"] == 1
        assert ou["unders"] == 1
