"""
BOUNDARY_TABLE.PY - Ordered threshold tables

Every step function and tier mapping in the scoring engine is data:
a descending list of (threshold, value) rows plus a fallback. The first
row whose threshold the input clears wins.

    LINE_DIFF_STEPS = StepTable.strict([(8, 20), (5, 15), (3, 10)], default=0)
    LINE_DIFF_STEPS.lookup(13.5)  # -> 20

Strict tables compare with ">" and inclusive tables with ">=".
"""

from dataclasses import dataclass
from typing import Generic, Iterable, List, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class StepTable(Generic[T]):
    rows: Tuple[Tuple[float, T], ...]
    default: T
    inclusive: bool = False

    def __post_init__(self):
        thresholds = [t for t, _ in self.rows]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError(f"Thresholds must be descending: {thresholds}")

    @classmethod
    def strict(cls, rows: Iterable[Tuple[float, T]], default: T) -> "StepTable[T]":
        return cls(tuple(rows), default, inclusive=False)

    @classmethod
    def at_least(cls, rows: Iterable[Tuple[float, T]], default: T) -> "StepTable[T]":
        return cls(tuple(rows), default, inclusive=True)

    def lookup(self, value: float) -> T:
        for threshold, result in self.rows:
            if value >= threshold if self.inclusive else value > threshold:
                return result
        return self.default

    @property
    def thresholds(self) -> List[float]:
        return [t for t, _ in self.rows]

    def describe(self) -> List[dict]:
        """Rows as dicts for audit endpoints."""
        op = ">=" if self.inclusive else ">"
        out = [{"when": f"{op} {t}", "value": v} for t, v in self.rows]
        out.append({"when": "otherwise", "value": self.default})
        return out


def fold(raw: float) -> Tuple[float, bool]:
    """
    Fold a raw score around 50.

    Returns (edge, raw_side_favored). edge is always in [50, 100] for
    raw in [0, 100]; raw_side_favored is False when the other side won.
    """
    if raw >= 50:
        return raw, True
    return 100 - raw, False


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))
