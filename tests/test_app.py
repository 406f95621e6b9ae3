"""Tests for application assembly: lifespan, middleware and error bodies."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from comment_api.core.context import (
    clear_context,
    get_context,
    set_request_id,
    set_trace_id,
)
from comment_api.core.middleware import redact_query


def test_request_id_is_generated(client: TestClient):
    response = client.get("/health/live")

    assert response.headers["x-request-id"]


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health/live", headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_error_body_carries_request_id(client: TestClient):
    response = client.get("/api/comments/999", headers={"X-Request-ID": "req-404"})

    assert response.json() == {
        "error": True,
        "message": "Comment not found",
        "status_code": 404,
        "request_id": "req-404",
    }


def test_validation_error_lists_fields(client: TestClient):
    response = client.post("/api/comments", json={"post_id": "p"})

    body = response.json()
    assert response.status_code == 400
    fields = {detail["field"] for detail in body["details"]}
    assert {"body.username", "body.mailaddress", "body.text"} <= fields


def test_cors_preflight(client: TestClient):
    response = client.options(
        "/api/comments",
        headers={
            "Origin": "https://blog.example.org",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in (
        "*",
        "https://blog.example.org",
    )


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("", ""),
        ("token=secret", "token=%5BREDACTED%5D"),
        ("post_id=a&token=secret", "post_id=a&token=%5BREDACTED%5D"),
        ("post_id=a", "post_id=a"),
    ],
)
def test_redact_query(query: str, expected: str):
    assert redact_query(query) == expected


def test_context_omits_unset_identifiers():
    set_request_id("req-1")
    set_trace_id("4bf92f3577b34da6a3ce929d0e0e4736")
    try:
        assert get_context() == {
            "request_id": "req-1",
            "trace_id": "4bf92f3577b34da6a3ce929d0e0e4736",
        }
    finally:
        clear_context()

    assert get_context() == {}

class TestLifespan:
    """Startup and shutdown wiring."""

    def test_startup_wires_state(self, monkeypatch, fake_redis):
        from comment_api import main

        shutdown = AsyncMock()
        monkeypatch.setattr(main, "init_redis", AsyncMock(return_value=fake_redis))
        monkeypatch.setattr(main, "shutdown_redis", shutdown)
        app = main.create_app()

        with TestClient(app) as client:
            assert app.state.redis is fake_redis
            assert app.state.comment_repository.layout == "fields"
            assert app.state.admin_auth.admin_token
            response = client.post(
                "/api/comments",
                json={
                    "post_id": "p",
                    "username": "u",
                    "mailaddress": "u@example.com",
                    "text": "t",
                },
            )
            assert response.status_code == 201

        shutdown.assert_awaited_once()

    def test_unreachable_store_aborts_startup(self, monkeypatch):
        from comment_api import main

        monkeypatch.setattr(
            main,
            "init_redis",
            AsyncMock(side_effect=RedisConnectionError("connection refused")),
        )
        app = main.create_app()

        with pytest.raises(RedisConnectionError), TestClient(app):
            pass
