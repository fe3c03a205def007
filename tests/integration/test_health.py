"""Integration tests for health check endpoints."""

from typing import Any
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client: TestClient) -> None:
        """Test that /health endpoint returns 200 status."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_healthy_status(self, client: TestClient) -> None:
        """Test that /health endpoint returns healthy status."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["timestamp"] is not None
        assert data["version"] == "0.1.0"


class TestReadinessEndpoint:
    """Tests for /health/ready endpoint."""

    def test_readiness_returns_200_when_healthy(self, client: TestClient) -> None:
        """Test that /health/ready returns 200 when all dependencies are healthy."""
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness_includes_each_dependency(self, client: TestClient) -> None:
        """Test that /health/ready checks the order store and receipt storage."""
        data = client.get("/health/ready").json()

        checks = {check["name"]: check for check in data["checks"]}
        assert set(checks) == {"order_store", "receipt_storage"}
        assert checks["order_store"]["latency_ms"] is not None

    def test_readiness_returns_503_when_store_unhealthy(self, client: TestClient, memory_store: Any) -> None:
        """Test that /health/ready returns 503 when the store is down."""
        with patch.object(
            memory_store,
            "check_health",
            AsyncMock(return_value={"healthy": False, "error": "Connection refused"}),
        ):
            response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        store_check = next(c for c in data["checks"] if c["name"] == "order_store")
        assert store_check["error"] == "Connection refused"
