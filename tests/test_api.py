"""
Tests for the HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from blockflow.api import create_app


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def test_client(registry):
    """Client whose app serves the small test block registry"""
    return TestClient(create_app(registry))


def program(elements, connections=()):
    return {"elements": list(elements), "connections": list(connections)}


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["service"] == "Blockflow"


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.json() == {"status": "healthy", "block_types": 38}


class TestBlocks:
    """Registry endpoints"""

    def test_list_blocks(self, client):
        blocks = client.get("/api/v1/blocks").json()["blocks"]
        assert len(blocks) == 38
        add = next(block for block in blocks if block["type"] == "add")
        assert add["inputs"] == ["a", "b"]
        assert add["outputs"] == ["sum"]
        assert add["preview"] == {"label": "ADD", "content": "0 + 0"}
        assert "execute" in add["capabilities"]

    def test_filter_by_category(self, client):
        blocks = client.get("/api/v1/blocks", params={"category": "io"}).json()["blocks"]
        assert [block["type"] for block in blocks] == ["print", "prompt"]

    def test_invalid_category(self, client):
        assert client.get("/api/v1/blocks", params={"category": "bogus"}).status_code == 400

    def test_stats(self, client):
        stats = client.get("/api/v1/blocks/stats").json()
        assert stats["total_blocks"] == 38
        assert stats["category_counts"]["math"] == 8

    def test_get_block(self, client):
        block = client.get("/api/v1/blocks/array_pop").json()
        assert block["outputs"] == ["remaining", "item"]
        assert client.get("/api/v1/blocks/nope").status_code == 404

    def test_validate_block(self, client):
        result = client.post("/api/v1/blocks/add/validate", json={"props": {"a": 1}}).json()
        assert result["is_valid"] is True
        assert result["warnings"] == ["Missing optional property: b"]

        result = client.post("/api/v1/blocks/nope/validate", json={"props": {}}).json()
        assert result["is_valid"] is False


class TestPrograms:
    """Program endpoints"""

    def test_validate_program(self, client):
        body = program(
            [{"id": "a", "type": "add"}, {"id": "x", "type": "bogus"}],
        )
        report = client.post("/api/v1/programs/validate", json=body).json()
        assert report["is_valid"] is False
        assert report["errors"] == ['x: Block type "bogus" is not registered']
        assert report["orphans"] == ["a", "x"]

    def test_execute(self, client):
        body = {
            "program": program(
                [
                    {"id": "ask", "type": "prompt"},
                    {"id": "out", "type": "print"},
                ],
                [{"id": "c1", "fromId": "ask", "toId": "out", "toInput": "message"}],
            ),
            "variables": {"input": "hi"},
        }
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["state"]["status"] == "completed"
        assert data["state"]["execution_order"] == ["ask", "out"]
        assert data["state"]["element_states"]["out"]["output"] == "hi"
        assert data["stats"]["processed_elements"] == 2

    def test_infinite_values_are_serialized(self, client):
        body = {"program": program([{"id": "d", "type": "divide", "props": {"a": 1, "b": 0}}])}
        data = client.post("/api/v1/programs/execute", json=body).json()
        assert data["state"]["element_states"]["d"]["quotient"] == "Infinity"

    def test_unknown_block_type(self, client):
        body = {"program": program([{"id": "x", "type": "bogus"}])}
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "GraphValidationError"
        assert detail["element_id"] == "x"
        assert detail["state"]["status"] == "failed"

    def test_step_budget(self, client):
        body = {
            "program": program(
                [{"id": "a", "type": "variable"}, {"id": "b", "type": "print"}],
                [{"id": "c1", "from_id": "a", "to_id": "b"}],
            ),
            "options": {"max_steps": 1},
        }
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "BudgetExceededError"

    def test_run_timeout(self, test_client):
        body = {
            "program": program([{"id": "s", "type": "sleeper", "props": {"seconds": 1}}]),
            "options": {"max_execution_time": 50},
        }
        response = test_client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 504

    def test_invalid_options(self, client):
        body = {"program": program([]), "options": {"max_steps": 0}}
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 400
        assert "Invalid options" in response.json()["detail"]

    def test_dangling_connection(self, client):
        body = {"program": program([{"id": "a", "type": "add"}], [{"id": "c1", "from_id": "a", "to_id": "z"}])}
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 400

    def test_duplicate_element_ids(self, client):
        body = {"program": program([{"id": "a", "type": "add"}, {"id": "a", "type": "add"}])}
        response = client.post("/api/v1/programs/execute", json=body)
        assert response.status_code == 400
        assert "Duplicate element id" in response.json()["detail"]
