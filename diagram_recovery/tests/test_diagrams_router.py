"""
Tests for the diagram recovery HTTP endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from diagram_recovery.main import app
from diagram_recovery.render_controller import RenderAttemptController
from diagram_recovery.routers.diagrams import get_render_controller
from diagram_recovery.tests.fakes import FakeMermaidBackend, always_reject


@pytest.fixture
def client(controller):
    app.dependency_overrides[get_render_controller] = lambda: controller
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestRenderEndpoint:

    def test_rendered(self, client):
        response = client.post("/api/diagrams/render", json={"text": 'A["Start] --> B[End]"'})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "rendered"
        assert data["diagram_id"] == "mermaid-diagram"
        assert data["svg"].startswith("<svg")
        assert data["cleaned_text"] == 'flowchart TD\nA["Start"] --> B["End"]'
        assert data["diagram_type"] == "flowchart"

    def test_degraded_includes_notice(self, client):
        response = client.post("/api/diagrams/render",
                               json={"text": "no diagram here", "diagram_id": "chat-1"})

        data = response.json()
        assert data["status"] == "degraded"
        assert data["diagram_id"] == "chat-1"
        assert data["notice"]["block_type"] == "diagram_notice"
        assert data["notice"]["original_code"] == "no diagram here"
        assert data["reason"]["kind"] == "syntax_error"

    def test_failed_includes_error_block(self, config):
        controller = RenderAttemptController(FakeMermaidBackend(parse_fn=always_reject), config=config)
        app.dependency_overrides[get_render_controller] = lambda: controller
        try:
            response = TestClient(app).post("/api/diagrams/render", json={"text": "graph TD\nA-->B"})
        finally:
            app.dependency_overrides.clear()

        data = response.json()
        assert data["status"] == "failed"
        assert data["svg"] is None
        assert data["error"]["block_type"] == "diagram_error"
        assert data["error"]["original_code"] == "graph TD\nA-->B"
        assert data["reason"]["kind"] == "fallback_exhausted"

    def test_empty(self, client):
        data = client.post("/api/diagrams/render", json={"text": ""}).json()
        assert data["status"] == "empty"

    def test_invalid_diagram_id_rejected(self, client):
        response = client.post("/api/diagrams/render", json={"text": "A-->B", "diagram_id": "1 bad id"})
        assert response.status_code == 422


class TestOtherEndpoints:

    def test_repair(self, client, backend):
        response = client.post("/api/diagrams/repair", json={"text": "X --> Y"})

        assert response.status_code == 200
        data = response.json()
        assert data["cleaned_text"] == 'flowchart TD\nX --> Y\nX["X"]\nY["Y"]'
        assert data["diagram_type"] == "flowchart"
        assert data["fixes_applied"]
        assert backend.call_count == 0

    def test_health_without_binary_checks(self, client):
        data = client.get("/api/diagrams/health").json()
        assert data["status"] == "healthy"
        assert data["backend"] == {}
        assert data["config"]["default_direction"] == "TD"

    def test_stats(self, client):
        client.post("/api/diagrams/render", json={"text": "A --> B"})
        client.post("/api/diagrams/render", json={"text": "A --> B"})

        data = client.get("/api/diagrams/stats").json()
        assert data["cache"]["hits"] == 1
        assert data["validator"]["cache_hits"] == 1
        assert "validate" in data["timings"]

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"
