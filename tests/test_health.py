"""Tests for health and metrics endpoints."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"
    assert data["time"].endswith("Z")


def test_readiness(client: TestClient) -> None:
    """Test the readiness endpoint."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_readiness_store_down(app, client: TestClient) -> None:
    """Readiness fails while the store does not answer."""
    redis = AsyncMock()
    redis.ping.side_effect = RedisConnectionError("connection refused")
    app.state.redis = redis

    response = client.get("/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_health(client: TestClient) -> None:
    """Test the detailed health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "comment-api"
    assert data["stage"] == "testing"
    assert data["dependencies"]["redis"]["status"] == "healthy"
    assert "python_version" in data["system"]


def test_health_store_down(app, client: TestClient) -> None:
    """Detailed health reports the store failure with 503."""
    redis = AsyncMock()
    redis.ping.side_effect = RedisConnectionError("connection refused")
    app.state.redis = redis

    response = client.get("/health")
    assert response.status_code == 503
    redis_status = response.json()["dependencies"]["redis"]
    assert redis_status["status"] == "unhealthy"
    assert "connection refused" in redis_status["error"]


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["endpoints"]["widget"] == "/js/comment-widget.js"
    assert "uptime" in data


def test_metrics(client: TestClient, admin_headers) -> None:
    """Metrics count stored comments."""
    for post_id in ("a", "a", "b"):
        client.post(
            "/api/comments",
            json={
                "post_id": post_id,
                "username": "u",
                "mailaddress": "u@example.com",
                "text": "t",
            },
        )
    client.put("/api/comments/1/status", json={"active": True}, headers=admin_headers)

    response = client.get("/metrics")
    assert response.status_code == 200
    metrics = response.json()["metrics"]
    assert metrics["comments_total"] == 3
    assert metrics["comments_active"] == 1
    assert metrics["comments_inactive"] == 2
    assert metrics["posts_with_comments"] == 2
    assert metrics["memory_bytes"] > 0
    assert metrics["threads"] >= 1
