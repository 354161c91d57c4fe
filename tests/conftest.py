"""
tests/conftest.py - Pytest configuration and fixtures

Every database test runs against a fresh in-memory SQLite database, and
report output goes to a temp directory.
"""

import itertools
import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Game, get_db, init_database, reset_database, upsert_game, utcnow
from env_config import Config
from game_status import set_final_scores
from grading_engine import calculate_result, capture_lines

# 7:30 PM ET on 2026-01-27
GAME_START = datetime(2026, 1, 28, 0, 30)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from real reports, auth and the graph store."""
    monkeypatch.setattr(Config, "REPORT_DIR", str(tmp_path / "reports"))
    monkeypatch.setattr(Config, "API_AUTH_ENABLED", False)
    monkeypatch.setattr(Config, "API_AUTH_KEY", None)
    monkeypatch.setattr(Config, "GRAPH_STORE_URL", None)
    monkeypatch.setattr(Config, "TIMEZONE", "America/New_York")
    monkeypatch.setattr(Config, "ADVANCED_STATS_PATH", str(tmp_path / "missing_stats.json"))
    yield


@pytest.fixture
def engine_db():
    """Fresh in-memory database for one test."""
    init_database("sqlite://")
    reset_database()
    yield


@pytest.fixture
def make_game(engine_db):
    """Factory: insert a game snapshot and return its id."""
    counter = itertools.count(1)

    def _make(home="BOS", away="NYK", home_spread=-2.0, total_line=220.5, game_date=GAME_START, **extra):
        data = {
            "external_id": f"game-{next(counter)}",
            "game_date": game_date,
            "home_team": home,
            "away_team": away,
            "home_spread": home_spread,
            "total_line": total_line,
        }
        data.update(extra)
        return upsert_game(data)

    return _make


@pytest.fixture
def finished_game(make_game):
    """Factory: game with captured lines, final score and computed outcome."""
    def _finish(home_score, away_score, **kwargs):
        game_id = make_game(**kwargs)
        capture_lines(game_id)
        set_final_scores(game_id, home_score, away_score)
        calculate_result(game_id)
        return game_id

    return _finish


@pytest.fixture
def recent_start():
    """A start time two days ago (inside default performance windows)."""
    return utcnow() - timedelta(days=2)


@pytest.fixture
def load_game(engine_db):
    """Read a game row back as a dict."""
    def _load(game_id):
        with get_db() as db:
            return db.get(Game, game_id).to_dict()

    return _load
