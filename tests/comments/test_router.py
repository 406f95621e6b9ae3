"""Tests for the comment HTTP API."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from comment_api.comments import CommentRepository


NEW_COMMENT = {
    "post_id": "hello-world",
    "username": "alice",
    "mailaddress": "alice@example.com",
    "text": "Nice post!",
}


def create(client: TestClient, **overrides) -> dict:
    response = client.post("/api/comments", json={**NEW_COMMENT, **overrides})
    assert response.status_code == 201
    return response.json()


class TestPublicRoutes:
    """Tests for routes that need no token."""

    def test_create_returns_inactive_comment(self, client: TestClient):
        response = client.post("/api/comments", json=NEW_COMMENT)

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == 1
        assert data["post_id"] == "hello-world"
        assert data["active"] is False
        assert data["created_at"].endswith("Z")

    def test_create_rejects_missing_field(self, client: TestClient, fake_redis):
        body = {k: v for k, v in NEW_COMMENT.items() if k != "text"}

        response = client.post("/api/comments", json=body)

        assert response.status_code == 400
        assert response.json()["error"] is True
        assert fake_redis.data == {}

    def test_create_rejects_empty_field(self, client: TestClient):
        response = client.post("/api/comments", json={**NEW_COMMENT, "username": ""})

        assert response.status_code == 400

    def test_create_rejects_malformed_json(self, client: TestClient):
        response = client.post(
            "/api/comments",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    def test_new_comment_hidden_until_activated(
        self, client: TestClient, admin_headers
    ):
        comment = create(client)

        listed = client.get("/api/comments", params={"post_id": "hello-world"})
        assert listed.status_code == 200
        assert listed.json() == []

        client.put(
            f"/api/comments/{comment['id']}/status",
            json={"active": True},
            headers=admin_headers,
        )

        listed = client.get("/api/comments", params={"post_id": "hello-world"})
        assert [c["id"] for c in listed.json()] == [comment["id"]]

    def test_include_inactive_only_for_literal_true(self, client: TestClient):
        create(client)

        for value in ("1", "yes", "True"):
            response = client.get(
                "/api/comments",
                params={"post_id": "hello-world", "include_inactive": value},
            )
            assert response.json() == []

        response = client.get(
            "/api/comments",
            params={"post_id": "hello-world", "include_inactive": "true"},
        )
        assert len(response.json()) == 1

    def test_list_without_post_id_returns_all_posts(self, client: TestClient):
        create(client, post_id="a")
        create(client, post_id="b")

        response = client.get("/api/comments", params={"include_inactive": "true"})

        assert [c["post_id"] for c in response.json()] == ["a", "b"]

    def test_get_comment(self, client: TestClient):
        comment = create(client)

        response = client.get(f"/api/comments/{comment['id']}")

        assert response.status_code == 200
        assert response.json() == comment

    def test_get_unknown_comment(self, client: TestClient):
        response = client.get("/api/comments/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Comment not found"

    def test_get_mistyped_record_reads_as_empty_fields(
        self, app, client: TestClient, fake_redis
    ):
        app.state.comment_repository = CommentRepository(fake_redis, layout="record")
        fake_redis.data["comment_records/7"] = '{"username": "bob", "post_id": null}'

        response = client.get("/api/comments/7")

        assert response.status_code == 200
        assert response.json()["username"] == "bob"
        assert response.json()["post_id"] == ""

    def test_get_non_numeric_id(self, client: TestClient):
        response = client.get("/api/comments/abc")

        assert response.status_code == 400

    def test_store_failure_is_503(self, app, client: TestClient):
        redis = AsyncMock()
        redis.incr.side_effect = RedisConnectionError("connection refused")
        app.state.comment_repository = CommentRepository(redis)

        response = client.post("/api/comments", json=NEW_COMMENT)

        assert response.status_code == 503

    def test_missing_repository_is_503(self, app, client: TestClient):
        del app.state.comment_repository

        response = client.get("/api/comments")

        assert response.status_code == 503


class TestAdminRoutes:
    """Tests for token-protected moderation routes."""

    def test_update_status(self, client: TestClient, admin_headers):
        comment = create(client)

        response = client.put(
            f"/api/comments/{comment['id']}/status",
            json={"active": True},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Status updated"}
        assert client.get(f"/api/comments/{comment['id']}").json()["active"] is True

    def test_update_status_requires_boolean(self, client: TestClient, admin_headers):
        comment = create(client)

        response = client.put(
            f"/api/comments/{comment['id']}/status",
            json={"active": "maybe"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_delete(self, client: TestClient, admin_headers):
        comment = create(client)

        response = client.delete(
            f"/api/comments/{comment['id']}", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Comment deleted"}
        assert client.get(f"/api/comments/{comment['id']}").status_code == 404

    def test_missing_token_is_401_without_side_effect(self, client: TestClient):
        comment = create(client)

        response = client.delete(f"/api/comments/{comment['id']}")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "Missing authentication token"
        assert "timestamp" in body
        assert client.get(f"/api/comments/{comment['id']}").status_code == 200

    def test_wrong_token_is_401_without_side_effect(self, client: TestClient):
        comment = create(client)

        response = client.put(
            f"/api/comments/{comment['id']}/status",
            json={"active": True},
            headers={"Authorization": "Bearer wrong"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid authentication token"
        assert client.get(f"/api/comments/{comment['id']}").json()["active"] is False

    def test_token_from_admin_header(self, client: TestClient, admin_token: str):
        response = client.get(
            "/api/comments/admin/info", headers={"X-Admin-Token": admin_token}
        )

        assert response.status_code == 200

    def test_token_from_query(self, client: TestClient, admin_token: str):
        response = client.get(
            "/api/comments/admin/info", params={"token": admin_token}
        )

        assert response.status_code == 200

    def test_lowercase_bearer_scheme(self, client: TestClient, admin_token: str):
        response = client.get(
            "/api/comments/admin/info",
            headers={"Authorization": f"bearer {admin_token}"},
        )

        assert response.status_code == 200

    def test_auth_disabled(self, app, client: TestClient):
        app.state.admin_auth.enabled = False

        response = client.get("/api/comments/admin/info")

        assert response.status_code == 200

    def test_admin_info(self, client: TestClient, admin_headers):
        first = create(client, post_id="a")
        create(client, post_id="a")
        create(client, post_id="b")
        client.put(
            f"/api/comments/{first['id']}/status",
            json={"active": True},
            headers=admin_headers,
        )

        response = client.get("/api/comments/admin/info", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_comments"] == 3
        assert data["active_comments"] == 1
        assert data["inactive_comments"] == 2
        assert data["unique_posts"] == 2
        assert data["recent_comments"] == 3
        assert data["top_posts"][0] == {"post_id": "a", "comment_count": 2}
        assert data["stage"] == "testing"
        assert data["server_time"].endswith("Z")
