"""
Tests for health check endpoints.
"""
import pytest
from fastapi.testclient import TestClient


def test_root_endpoint(client: TestClient):
    """Test the root endpoint returns API info."""
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Storefront API"
    assert "version" in data
    assert data["status"] == "running"


def test_health_check(client: TestClient):
    """Test the basic health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


def test_liveness_probe(client: TestClient):
    """Test the liveness probe endpoint."""
    response = client.get("/health/live")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-abc"})

    assert response.headers["x-request-id"] == "req-abc"


def test_request_id_is_generated(client: TestClient):
    response = client.get("/health")

    assert response.headers.get("x-request-id")


@pytest.mark.asyncio
async def test_readiness_probe(async_client):
    """Test the readiness probe endpoint."""
    response = await async_client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "connected"


@pytest.mark.asyncio
async def test_metrics_counts_active_products(async_client, product):
    response = await async_client.get("/metrics")

    assert response.status_code == 200
    assert response.json()["active_products"] == 1
