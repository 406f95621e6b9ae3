"""Shared fixtures: an in-memory store client and a wired-up test app."""

import fnmatch
import os
import tempfile
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parent.parent

# Settings are cached on first use, so the environment is set before any
# comment_api import.
os.environ.setdefault("STAGE", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="comment-api-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")
os.environ.setdefault(
    "JS_TEMPLATE_PATH", str(ROOT / "templates" / "comment-widget.js.tmpl")
)
os.environ.setdefault("ADMIN_PANEL_PATH", str(ROOT / "templates" / "admin.html"))
os.environ.setdefault("STATIC_DIR", str(ROOT / "static"))

from fastapi.testclient import TestClient  # noqa: E402

from comment_api.auth import AdminTokenAuth  # noqa: E402
from comment_api.comments import CommentRepository  # noqa: E402
from comment_api.widget import WidgetTemplateCache  # noqa: E402


ADMIN_TOKEN = "test-admin-token"


class FakePipeline:
    """Queues commands and runs them against the owning FakeRedis."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands: list[tuple[str, tuple]] = []

    def set(self, key: str, value: str) -> "FakePipeline":
        self._commands.append(("set", (key, value)))
        return self

    def mget(self, keys: list[str]) -> "FakePipeline":
        self._commands.append(("mget", (keys,)))
        return self

    async def execute(self) -> list:
        results = []
        for name, args in self._commands:
            results.append(await getattr(self._redis, name)(*args))
        self._commands.clear()
        return results


class FakeRedis:
    """Minimal async stand-in for ``redis.asyncio.Redis`` with decoded responses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    async def incr(self, key: str) -> int:
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, xx: bool = False) -> bool | None:
        if xx and key not in self.data:
            return None
        self.data[key] = str(value)
        return True

    async def mget(self, keys: list[str]) -> list[str | None]:
        return [self.data.get(k) for k in keys]

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match: str | None = None, count: int | None = None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture(params=["fields", "record"])
def repository(request, fake_redis: FakeRedis) -> CommentRepository:
    """Repository over an empty store, once per storage layout."""
    return CommentRepository(fake_redis, layout=request.param)


@pytest.fixture
def field_repository(fake_redis: FakeRedis) -> CommentRepository:
    return CommentRepository(fake_redis, layout="fields")


@pytest.fixture
def admin_token() -> str:
    return ADMIN_TOKEN


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def app(fake_redis: FakeRedis):
    """Application with its state wired to the in-memory store.

    The lifespan is not run (the client is not used as a context manager),
    so no real store connection is attempted.
    """
    from comment_api.main import create_app

    application = create_app()
    application.state.redis = fake_redis
    application.state.comment_repository = CommentRepository(fake_redis)
    application.state.admin_auth = AdminTokenAuth(ADMIN_TOKEN, enabled=True)
    application.state.widget_template = WidgetTemplateCache(
        os.environ["JS_TEMPLATE_PATH"], cache_enabled=False
    )
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
