"""
TEST_PERFORMANCE.PY - Win rate, units and ROI rollups

Run with: python -m pytest tests/test_performance.py -v
"""

import os
import sys
from datetime import datetime
from types import SimpleNamespace

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import PickResult, PickType, create_pick
from game_status import set_final_scores
from grading_engine import record_pick_result
from performance import (
    compute_stats,
    empty_stats,
    performance_summary,
    published_stats,
    stats_by_month,
)


def pick(result, stake=None, pick_type=PickType.SPREAD, label=None, game_date=datetime(2026, 1, 28)):
    return SimpleNamespace(
        result=result,
        stake=stake,
        pick_type=pick_type,
        consensus_label=label,
        game=SimpleNamespace(game_date=game_date),
    )


SAMPLE = [
    pick(PickResult.WIN, 1.0),
    pick(PickResult.WIN, 2.0, pick_type=PickType.TOTAL, label="STRONG"),
    pick(PickResult.LOSS),
    pick(PickResult.PUSH, 1.0, label="STRONG", game_date=datetime(2026, 2, 3)),
    pick(PickResult.PENDING, 5.0),
]


class TestComputeStats:
    def test_rollup(self):
        stats = compute_stats(SAMPLE)
        assert stats["total"] == 4
        assert stats["record"] == "2-1-1"
        assert stats["win_rate"] == 66.7
        assert stats["net_units"] == 2.0
        assert stats["roi"] == 40.0

    def test_empty(self):
        assert compute_stats([]) == empty_stats()

    def test_only_pushes(self):
        stats = compute_stats([pick(PickResult.PUSH)])
        assert stats["win_rate"] == 0.0
        assert stats["roi"] == 0.0


class TestBreakdowns:
    def test_summary_sections(self):
        summary = performance_summary(SAMPLE)
        assert summary["by_type"]["spread"]["record"] == "1-1-1"
        assert summary["by_type"]["total"]["record"] == "1-0-0"
        assert summary["by_type"]["moneyline"] == empty_stats()
        assert list(summary["by_consensus"]) == ["STRONG"]

    def test_by_month_uses_game_date(self):
        months = stats_by_month(SAMPLE)
        assert list(months) == ["2026-01", "2026-02"]
        assert months["2026-02"]["pushes"] == 1


class TestPublishedStats:
    def test_window_and_publication(self, make_game, recent_start):
        recent = make_game(game_date=recent_start)
        old = make_game()
        for game_id in (recent, old):
            set_final_scores(game_id, 100, 95)
            record_pick_result(create_pick(game_id, "spread", "home", pick_line=-2.0, publish=True))
        record_pick_result(create_pick(recent, "moneyline", "away"), result="loss")  # draft

        windowed = published_stats(30)
        all_time = published_stats(None)

        assert windowed["overall"]["record"] == "1-0-0"
        assert windowed["window_days"] == 30
        assert all_time["overall"]["record"] == "2-0-0"
        assert all_time["since"] is None
