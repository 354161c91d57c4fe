"""
TEST_GAME_STATUS.PY - Monotonic game state and final scores

Run with: python -m pytest tests/test_game_status.py -v
"""

import os
import sys
from datetime import timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import GAME_START
from core.errors import NotFound, OperationStatus
from database import Game, GameStatus
from game_status import (
    advance_status,
    effective_status,
    estimated_status,
    has_started,
    is_finished,
    set_final_scores,
)


class TestEstimatedStatus:
    @pytest.mark.parametrize("offset,status", [
        (timedelta(minutes=-1), GameStatus.SCHEDULED),
        (timedelta(0), GameStatus.LIVE),
        (timedelta(hours=2, minutes=29), GameStatus.LIVE),
        (timedelta(hours=2, minutes=30), GameStatus.FINISHED),
    ])
    def test_clock_estimate(self, offset, status):
        assert estimated_status(GAME_START, GAME_START + offset) == status

    def test_missing_start_is_scheduled(self):
        assert estimated_status(None) == GameStatus.SCHEDULED


class TestEffectiveStatus:
    def test_reported_status_wins_when_ahead(self):
        game = Game(game_date=GAME_START, status=GameStatus.FINISHED)
        assert effective_status(game, GAME_START - timedelta(hours=1)) == GameStatus.FINISHED

    def test_clock_wins_when_ahead(self):
        game = Game(game_date=GAME_START, status=GameStatus.SCHEDULED)
        assert is_finished(game, GAME_START + timedelta(hours=3))
        assert has_started(game, GAME_START + timedelta(minutes=5))
        assert not has_started(game, GAME_START - timedelta(minutes=5))


class TestAdvanceStatus:
    def test_forward_only(self, make_game, load_game):
        game_id = make_game()

        live = advance_status(game_id, "live")
        back = advance_status(game_id, "scheduled")
        same = advance_status(game_id, "live")

        assert live.status == OperationStatus.APPLIED
        assert back.status == OperationStatus.ALREADY_FINALIZED
        assert same.status == OperationStatus.ALREADY_FINALIZED
        assert load_game(game_id)["status"] == "live"

    def test_invalid_status(self, make_game):
        game_id = make_game()
        with pytest.raises(ValueError):
            advance_status(game_id, "postponed")


class TestFinalScores:
    def test_first_report_stands(self, make_game, load_game):
        game_id = make_game()

        first = set_final_scores(game_id, 101, 99)
        second = set_final_scores(game_id, 99, 101)

        assert first.applied
        assert second.status == OperationStatus.ALREADY_FINALIZED
        assert second.payload == {"home_score": 101, "away_score": 99}
        game = load_game(game_id)
        assert game["status"] == "finished"
        assert (game["home_score"], game["away_score"]) == (101, 99)

    def test_unknown_game(self, engine_db):
        with pytest.raises(NotFound):
            set_final_scores(12345, 1, 0)
