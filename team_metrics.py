"""
TEAM_METRICS.PY - Typed team metric lookup
==========================================

The scoring models never see raw store rows. Every lookup goes through
``metric_lookup(team) -> TeamMetrics``, and missing or null fields are
replaced by the documented defaults at this boundary:

    win_pct 0.5 | net_rating 0 | off/def rating 114 | pace 100
    ats_home/ats_away/over pct 0.5 | flow_state NEUTRAL

Advanced-stat ranks for trigger detection (rank 1 = best) live in
AdvancedStatsTable; absent teams resolve to rank 15.
"""

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

NEUTRAL_FLOW = "NEUTRAL"
NEUTRAL_RANK = 15


@dataclass(frozen=True)
class TeamMetrics:
    abbr: str
    win_pct: float = 0.5
    net_rating: float = 0.0
    off_rating: float = 114.0
    def_rating: float = 114.0
    pace: float = 100.0
    ats_home_pct: float = 0.5
    ats_away_pct: float = 0.5
    over_pct: float = 0.5
    flow_state: str = NEUTRAL_FLOW

    @classmethod
    def default(cls, abbr: str) -> "TeamMetrics":
        return cls(abbr=abbr)

    @classmethod
    def from_record(cls, abbr: str, record: Optional[Mapping[str, Any]]) -> "TeamMetrics":
        """Build from a store row; None or absent fields keep their default."""
        if not record:
            return cls.default(abbr)
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "abbr":
                continue
            raw = record.get(f.name)
            if raw is None:
                continue
            if f.name == "flow_state":
                values[f.name] = str(raw).upper()
            else:
                try:
                    values[f.name] = float(raw)
                except (TypeError, ValueError):
                    logger.debug("Ignoring non-numeric %s=%r for %s", f.name, raw, abbr)
        return cls(abbr=abbr, **values)


class MetricLookup(Protocol):
    def metric_lookup(self, team: str) -> TeamMetrics:
        ...


class StaticMetricLookup:
    """In-memory lookup, e.g. for tests or a pre-materialized nightly snapshot."""

    def __init__(self, records: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._metrics = {
            abbr: TeamMetrics.from_record(abbr, record)
            for abbr, record in (records or {}).items()
        }

    def metric_lookup(self, team: str) -> TeamMetrics:
        return self._metrics.get(team) or TeamMetrics.default(team)


class GraphMetricLookup:
    """
    Lookup backed by the graph data store.

    Call prefetch() with every team on the slate before scoring; the
    scoring pass then reads only from the local cache. Store failures in
    prefetch raise DataStoreError; a team the store doesn't know degrades
    to defaults.
    """

    def __init__(self, client):
        self.client = client
        self._cache: Dict[str, TeamMetrics] = {}

    def prefetch(self, teams: Iterable[str]) -> int:
        wanted = sorted({t for t in teams if t and t not in self._cache})
        if not wanted:
            return 0
        rows = self.client.team_metric_rows(wanted)
        for row in rows:
            abbr = row.get("abbr")
            if abbr:
                self._cache[abbr] = TeamMetrics.from_record(abbr, row)
        missing = [t for t in wanted if t not in self._cache]
        if missing:
            logger.info("Graph store has no metrics for %s, using defaults", ", ".join(missing))
        return len(rows)

    def metric_lookup(self, team: str) -> TeamMetrics:
        if team not in self._cache:
            self.prefetch([team])
        return self._cache.get(team) or TeamMetrics.default(team)


# =============================================================================
# ADVANCED STATS RANKS
# =============================================================================

@dataclass(frozen=True)
class TeamRanks:
    offense: int = NEUTRAL_RANK
    defense: int = NEUTRAL_RANK
    pace: int = NEUTRAL_RANK


def _rank(record: Mapping[str, Any], *keys: str) -> int:
    for key in keys:
        if record.get(key) is not None:
            return int(record[key])
    return NEUTRAL_RANK


class AdvancedStatsTable:
    """
    Rank table keyed by team abbreviation.

    JSON shape (``ADVANCED_STATS_PATH``):
        {"teams": {"BOS": {"offense_rank": 2, "defense_rank": 4, "pace_rank": 20}}}

    The short keys ``off_rank`` / ``def_rank`` are accepted as well.
    """

    def __init__(self, ranks: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._ranks: Dict[str, TeamRanks] = {}
        for abbr, record in (ranks or {}).items():
            self._ranks[abbr] = TeamRanks(
                offense=_rank(record, "offense_rank", "off_rank"),
                defense=_rank(record, "defense_rank", "def_rank"),
                pace=_rank(record, "pace_rank"),
            )

    @classmethod
    def load(cls, path: Optional[str]) -> "AdvancedStatsTable":
        """Load from JSON; a missing or unreadable file gives an empty table."""
        if not path or not Path(path).exists():
            return cls()
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Advanced stats unreadable at %s: %s", path, e)
            return cls()
        return cls(data.get("teams", data))

    def has(self, team: str) -> bool:
        return team in self._ranks

    def ranks_for(self, team: str) -> TeamRanks:
        return self._ranks.get(team) or TeamRanks()

    def __len__(self) -> int:
        return len(self._ranks)
