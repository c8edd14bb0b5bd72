import pytest
from fastapi.testclient import TestClient

import lazy
from app import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


class TestPipelineService:
    """Test the HTTP surface over the lazy combinators"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["healthy"] is True
        assert data["memory_rss_mb"] > 0
        assert data["settings"]["collect_initial_capacity"] >= 1

    def test_functions(self, client):
        data = client.get("/functions").json()
        assert "pair_product" in data["functions"]["pair"]
        assert data["total_functions"] == sum(len(v) for v in data["functions"].values())

    def test_collect_fibonacci(self, client):
        response = client.post("/pipeline", json={
            "source": {"kind": "fibonacci"},
            "operations": [{"type": "take", "count": 10}]
        })
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["result"] == [0, 1, 1, 2, 3, 5, 8, 13, 21, 34]
        assert data["length"] == 10
        assert data["terminal"] == "collect"
        assert data["performance"]["processing_time_ms"] >= 0

    def test_reduce_fibonacci(self, client):
        data = client.post("/pipeline", json={
            "source": {"kind": "fibonacci"},
            "operations": [{"type": "take", "count": 10}],
            "terminal": {"type": "reduce", "function": "add"}
        }).json()
        assert data["result"] == 88
        assert data["present"] is True

    def test_dot_product(self, client):
        data = client.post("/pipeline", json={
            "source": {"kind": "values", "values": [1, 2, 3]},
            "operations": [
                {"type": "zip", "other": {"kind": "values", "values": [10, 20, 30]}},
                {"type": "map", "function": "pair_product"}
            ],
            "terminal": {"type": "reduce", "function": "add"}
        }).json()
        assert data["result"] == 140

    def test_take_while_and_drop_while(self, client):
        data = client.post("/pipeline", json={
            "source": {"kind": "values", "values": [-3, -1, 2, 4, -5, 6]},
            "operations": [
                {"type": "drop_while", "function": "is_negative"},
                {"type": "take_while", "function": "is_positive"}
            ]
        }).json()
        assert data["result"] == [2, 4]

    def test_unbounded_pipeline_is_rejected(self, client):
        response = client.post("/pipeline", json={"source": {"kind": "fibonacci"}})
        assert response.status_code == 400
        body = response.json()
        assert body["error_type"] == "PipelineError"
        assert body["ok"] is False

    def test_filter_before_take_on_fibonacci_is_rejected(self, client):
        response = client.post("/pipeline", json={
            "source": {"kind": "fibonacci"},
            "operations": [
                {"type": "filter", "function": "is_negative"},
                {"type": "take", "count": 1}
            ]
        })
        assert response.status_code == 400
        assert response.json()["error_type"] == "PipelineError"

    def test_unknown_function_is_rejected(self, client):
        response = client.post("/pipeline", json={
            "source": {"kind": "values", "values": [1]},
            "operations": [{"type": "map", "function": "does_not_exist"}]
        })
        assert response.status_code == 400

    def test_invalid_request_is_422(self, client):
        response = client.post("/pipeline", json={
            "source": {"kind": "values", "values": [1]},
            "operations": [{"type": "take"}]
        })
        assert response.status_code == 422

    def test_collect_failure_is_reported(self, client, monkeypatch):
        def no_memory(buffer, additional):
            raise MemoryError()

        monkeypatch.setattr(lazy, "_grow_buffer", no_memory)
        response = client.post("/pipeline", json={"source": {"kind": "values", "values": [1, 2]}})
        assert response.status_code == 507
        assert response.json()["error_type"] == "CollectError"

    def test_metrics_roundtrip(self, client):
        client.post("/pipeline", json={"source": {"kind": "range", "start": 0, "stop": 5}})
        assert client.get("/metrics").json()["total_operations"] == 1
        assert client.delete("/metrics").json()["ok"] is True
        assert client.get("/metrics").json()["total_operations"] == 0
