"""Integration tests for the base infrastructure endpoints."""

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for /health."""

    def test_healthy_when_enabled(self, client_with_health_enabled: TestClient):
        response = client_with_health_enabled.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "OK"}

    def test_404_when_disabled(self, client_with_health_disabled: TestClient):
        response = client_with_health_disabled.get("/health")

        assert response.status_code == 404


class TestInfoEndpoint:
    def test_service_metadata(self, client: TestClient):
        response = client.get("/info")

        assert response.status_code == 200
        body = response.json()
        assert body["service_name"] == "agent-runtime"
        assert "python_version" in body
        assert body["uptime_seconds"] >= 0
        assert body["model_providers"]["openai"] == "gpt-4o-mini"
        assert set(body["agent_packages"]) >= {"langgraph", "litellm"}
        assert body["trace_sink"] is None


class TestMetricsEndpoint:
    def test_prometheus_exposition(self, client: TestClient):
        """Agent metrics are exported after a run."""
        client.post("/agent/run", json={"userInput": "Hi", "modelApiKey": "sk-test"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "agent_runs" in response.text
