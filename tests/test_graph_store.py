"""Tests for the graph data store client and the metric lookup built on it"""
import os
import sys

import pytest
from unittest.mock import Mock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import DataStoreError
from core.http_retry import RetryPolicy
from env_config import Config
from services.graph_store import GraphStoreClient
from team_metrics import GraphMetricLookup, TeamMetrics

FAST = RetryPolicy(max_attempts=1)


def response(status_code=200, payload=None, text=""):
    mock = Mock()
    mock.status_code = status_code
    mock.json.return_value = payload if payload is not None else {}
    mock.text = text
    return mock


def client():
    return GraphStoreClient("http://graph.local:7474/", user="neo4j", password="pw", policy=FAST)


def test_endpoint_and_auth():
    c = client()
    assert c.endpoint == "http://graph.local:7474/db/neo4j/tx/commit"
    assert c.auth == ("neo4j", "pw")
    assert GraphStoreClient("http://graph.local").auth is None


def test_rows_keyed_by_column():
    payload = {
        "results": [{
            "columns": ["abbr", "net_rating"],
            "data": [{"row": ["BOS", 6.1]}, {"row": ["NYK", -1.5]}],
        }],
        "errors": [],
    }
    with patch('requests.request', return_value=response(payload=payload)) as mock_req:
        rows = client().query("MATCH (t:Team) RETURN t.abbr AS abbr, t.net_rtg AS net_rating")

    assert rows == [{"abbr": "BOS", "net_rating": 6.1}, {"abbr": "NYK", "net_rating": -1.5}]
    statement = mock_req.call_args.kwargs["json"]["statements"][0]
    assert statement["parameters"] == {}


def test_single_map_column_unwrapped():
    payload = {"results": [{"columns": ["t"], "data": [{"row": [{"abbr": "BOS"}]}]}]}
    with patch('requests.request', return_value=response(payload=payload)):
        assert client().query("MATCH (t:Team) RETURN t") == [{"abbr": "BOS"}]


def test_empty_results():
    with patch('requests.request', return_value=response(payload={"results": []})):
        assert client().query("RETURN 1") == []


def test_query_errors_are_not_retryable():
    payload = {"results": [], "errors": [{"code": "Neo.ClientError", "message": "Invalid syntax"}]}
    with patch('requests.request', return_value=response(payload=payload)):
        with pytest.raises(DataStoreError) as exc:
            client().query("MATCH")
    assert "Invalid syntax" in str(exc.value)
    assert exc.value.retryable is False


def test_server_error_is_hard_failure():
    with patch('requests.request', return_value=response(status_code=500, text="boom")):
        with pytest.raises(DataStoreError) as exc:
            client().query("RETURN 1")
    assert exc.value.status_code == 500
    assert exc.value.retryable is False


def test_unavailable_is_retryable():
    with patch('requests.request', return_value=response(status_code=503)):
        with pytest.raises(DataStoreError) as exc:
            client().query("RETURN 1")
    assert exc.value.retryable is True


def test_from_config_requires_url():
    with pytest.raises(DataStoreError):
        GraphStoreClient.from_config()


def test_from_config(monkeypatch):
    monkeypatch.setattr(Config, "GRAPH_STORE_URL", "http://graph.local")
    monkeypatch.setattr(Config, "GRAPH_STORE_DATABASE", "nba")
    assert GraphStoreClient.from_config().endpoint == "http://graph.local/db/nba/tx/commit"


class FakeClient:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def team_metric_rows(self, abbrs):
        self.calls.append(list(abbrs))
        return [r for r in self.rows if r["abbr"] in abbrs]


def test_lookup_prefetch_then_cache():
    fake = FakeClient([{"abbr": "BOS", "net_rating": 6.1, "flow_state": "HOT_STREAK"}])
    lookup = GraphMetricLookup(fake)

    assert lookup.prefetch(["BOS", "NYK"]) == 1
    assert lookup.metric_lookup("BOS").net_rating == 6.1
    assert lookup.metric_lookup("BOS").flow_state == "HOT_STREAK"
    assert fake.calls == [["BOS", "NYK"]]


def test_lookup_unknown_team_defaults():
    lookup = GraphMetricLookup(FakeClient([]))
    assert lookup.metric_lookup("XXX") == TeamMetrics.default("XXX")


def test_lookup_propagates_store_failure():
    failing = Mock()
    failing.team_metric_rows.side_effect = DataStoreError("down")
    with pytest.raises(DataStoreError):
        GraphMetricLookup(failing).prefetch(["BOS"])
