"""
TEST_BOUNDARY_TABLE.PY - Ordered threshold tables, fold and clamp

Run with: python -m pytest tests/test_boundary_table.py -v
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.boundary_table import StepTable, clamp, fold


class TestStepTable:
    """Strict vs inclusive boundary handling."""

    def test_strict_excludes_threshold(self):
        table = StepTable.strict([(8, 20), (5, 15)], default=0)
        assert table.lookup(8) == 15
        assert table.lookup(8.01) == 20
        assert table.lookup(5) == 0

    def test_inclusive_includes_threshold(self):
        table = StepTable.at_least([(8, 20), (5, 15)], default=0)
        assert table.lookup(8) == 20
        assert table.lookup(5) == 15
        assert table.lookup(4.99) == 0

    def test_first_matching_row_wins(self):
        table = StepTable.strict([(1, "a"), (-1, "b")], default="c")
        assert table.lookup(0) == "b"
        assert table.lookup(-1) == "c"

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ValueError):
            StepTable.strict([(1, "a"), (5, "b")], default="c")

    def test_describe_lists_rows_and_fallback(self):
        rows = StepTable.at_least([(0.6, 1.0)], default=-0.5).describe()
        assert rows == [
            {"when": ">= 0.6", "value": 1.0},
            {"when": "otherwise", "value": -0.5},
        ]

    def test_thresholds_property(self):
        assert StepTable.strict([(3, 1), (2, 0)], default=-1).thresholds == [3, 2]


class TestFold:
    """Folding a raw score around 50."""

    def test_above_baseline_keeps_side(self):
        assert fold(70) == (70, True)

    def test_below_baseline_flips_side(self):
        assert fold(30) == (70, False)

    def test_exact_baseline_favors_raw_side(self):
        assert fold(50) == (50, True)

    @pytest.mark.parametrize("raw", [0, 12.5, 49.9, 50, 64, 100])
    def test_edge_always_in_range(self, raw):
        edge, _ = fold(raw)
        assert 50 <= edge <= 100


class TestClamp:
    def test_clamp_bounds(self):
        assert clamp(105) == 100
        assert clamp(-3) == 0
        assert clamp(42.5) == 42.5
