"""
Graph Data Store Client
=======================

Thin client for the graph store's HTTP transaction endpoint
(POST {url}/db/{database}/tx/commit). Supplies team and regime metrics to
the scoring engine.

Every failure (transport, HTTP status, or a non-empty ``errors`` list in
the response body) is raised as DataStoreError so batch jobs can tell
collaborator failures apart from engine logic errors.

Usage:
    from services.graph_store import GraphStoreClient

    client = GraphStoreClient.from_config()
    rows = client.query("MATCH (t:Team) RETURN t.abbr AS abbr")
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from core.errors import DataStoreError
from core.http_retry import DEFAULT_POLICY, RetryPolicy, post_json_with_retry

logger = logging.getLogger(__name__)


TEAM_METRICS_QUERY = """
MATCH (t:Team)
WHERE t.abbr IN $abbrs
OPTIONAL MATCH (r:TeamRegime) WHERE r.team CONTAINS t.name
RETURN t.abbr AS abbr,
       t.win_pct AS win_pct,
       t.net_rtg AS net_rating,
       t.off_rtg AS off_rating,
       t.def_rtg AS def_rating,
       t.pace AS pace,
       t.ats_home_pct AS ats_home_pct,
       t.ats_away_pct AS ats_away_pct,
       t.over_pct AS over_pct,
       r.flow_state AS flow_state
"""


class GraphStoreClient:
    """Executes Cypher statements and returns rows as dicts keyed by column."""

    def __init__(
        self,
        base_url: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        database: str = "neo4j",
        policy: RetryPolicy = DEFAULT_POLICY,
    ):
        self.endpoint = f"{base_url.rstrip('/')}/db/{database}/tx/commit"
        self.auth = (user, password) if user else None
        self.policy = policy

    @classmethod
    def from_config(cls) -> "GraphStoreClient":
        from env_config import Config

        if not Config.GRAPH_STORE_URL:
            raise DataStoreError("GRAPH_STORE_URL not configured", retryable=False)
        return cls(
            Config.GRAPH_STORE_URL,
            user=Config.GRAPH_STORE_USER,
            password=Config.GRAPH_STORE_PASSWORD,
            database=Config.GRAPH_STORE_DATABASE,
        )

    def query(self, cypher: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.multi_query([(cypher, params or {})])

    def multi_query(self, statements: Sequence[tuple]) -> List[Dict[str, Any]]:
        """Run statements in one transaction; rows of the first result are returned."""
        body = {
            "statements": [
                {"statement": cypher, "parameters": params or {}}
                for cypher, params in statements
            ]
        }
        ok, status, data, error, retryable = post_json_with_retry(
            self.endpoint, body, auth=self.auth, policy=self.policy
        )
        if not ok:
            logger.warning("Graph store request failed: %s", error)
            raise DataStoreError(error or "graph store request failed", status_code=status, retryable=retryable)

        errors = data.get("errors") or []
        if errors:
            message = ", ".join(e.get("message", str(e)) for e in errors)
            # Query errors are deterministic; retrying the same statement won't help
            raise DataStoreError(message, status_code=status, retryable=False)

        results = data.get("results") or []
        if not results:
            return []
        return _rows(results[0])

    def team_metric_rows(self, abbrs: Sequence[str]) -> List[Dict[str, Any]]:
        return self.query(TEAM_METRICS_QUERY, {"abbrs": list(abbrs)})


def _rows(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    columns = result.get("columns") or []
    rows = []
    for entry in result.get("data") or []:
        row = entry.get("row") or []
        if len(row) == 1 and isinstance(row[0], dict) and len(columns) == 1:
            rows.append(row[0])
        else:
            rows.append(dict(zip(columns, row)))
    return rows
