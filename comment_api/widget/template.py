"""Embeddable widget script template.

Template files use ``{{.ApiUrl}}``, ``{{.Version}}`` and ``{{.Stage}}``
placeholders, so templates written for earlier deployments keep working.

The parsed source is cached together with the file's modification time.
Readers take a snapshot of the cached entry without locking; reloads swap
the entry under a lock.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog


if TYPE_CHECKING:
    from fastapi import Request

    from comment_api.config.settings import Settings


logger = structlog.get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")


class WidgetTemplateError(Exception):
    """Template file missing, unreadable or referencing unknown fields."""


@dataclass(frozen=True)
class WidgetTemplateData:
    api_url: str
    version: str
    stage: str

    def as_fields(self) -> dict[str, str]:
        return {"ApiUrl": self.api_url, "Version": self.version, "Stage": self.stage}


SAMPLE_DATA = WidgetTemplateData(
    api_url="https://example.com/api/comments",
    version="1.0.0",
    stage="test",
)


def render_template(source: str, data: WidgetTemplateData) -> str:
    """Substitute placeholders in ``source``.

    Raises:
        WidgetTemplateError: If the template references an unknown field.
    """
    fields = data.as_fields()

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in fields:
            msg = f"Unknown template field: {name}"
            raise WidgetTemplateError(msg)
        return fields[name]

    return PLACEHOLDER_PATTERN.sub(substitute, source)


def determine_api_url(request: Request, settings: Settings) -> str:
    """API URL embedded in the widget.

    Priority: PUBLIC_API_URL, then DOMAIN with the request scheme, then the
    request's own host.
    """
    if settings.public_api_url:
        return settings.public_api_url

    scheme = request.url.scheme
    host = settings.domain or request.url.netloc
    return f"{scheme}://{host}/api/comments"


class WidgetTemplateCache:
    """Template source cached by file modification time."""

    def __init__(self, path: Path | str, cache_enabled: bool):
        self.path = Path(path)
        self.cache_enabled = cache_enabled
        self._lock = threading.Lock()
        self._entry: tuple[str, float] | None = None

    def _stat_mtime(self) -> float:
        try:
            return self.path.stat().st_mtime
        except OSError as e:
            msg = f"Template file not found: {self.path}"
            raise WidgetTemplateError(msg) from e

    def _read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            msg = f"Template file unreadable: {self.path}"
            raise WidgetTemplateError(msg) from e

    def load(self) -> str:
        """Return the template source, re-reading the file when needed.

        With caching enabled the cached source is reused while the file's
        modification time is unchanged; otherwise the file is read every time.
        """
        mtime = self._stat_mtime()

        entry = self._entry
        if self.cache_enabled and entry is not None and entry[1] == mtime:
            return entry[0]

        with self._lock:
            source = self._read()
            self._entry = (source, mtime)

        logger.debug("widget_template_loaded", path=str(self.path))
        return source

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None

    def validate(self) -> None:
        """Check the template exists and renders with sample data.

        Raises:
            WidgetTemplateError: If the template is unusable.
        """
        render_template(self._read(), SAMPLE_DATA)
        logger.info("widget_template_validated", path=str(self.path))

    def render(self, data: WidgetTemplateData) -> str:
        return render_template(self.load(), data)

    def info(self) -> dict[str, Any]:
        stat_result = self.path.stat()
        return {
            "template_path": str(self.path),
            "last_modified": datetime.fromtimestamp(
                stat_result.st_mtime, tz=UTC
            ).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "size_bytes": stat_result.st_size,
            "cache_enabled": self.cache_enabled,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> WidgetTemplateCache:
        return cls(settings.js_template_path, cache_enabled=settings.is_production)


class TemplateHotReloader:
    """Background task invalidating the template cache when the file changes.

    Only started in development.
    """

    def __init__(self, cache: WidgetTemplateCache, interval_seconds: float = 2.0):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._last_mtime: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("template_hot_reload_already_running")
            return

        with contextlib.suppress(OSError):
            self._last_mtime = self.cache.path.stat().st_mtime

        self._task = asyncio.create_task(self._watch(), name="template_hot_reload")
        logger.info(
            "template_hot_reload_started",
            path=str(self.cache.path),
            interval_seconds=self.interval_seconds,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("template_hot_reload_stopped")

    def check_once(self) -> bool:
        """Reload if the file changed since the last check.

        Returns:
            True when a change was detected.
        """
        try:
            mtime = self.cache.path.stat().st_mtime
        except OSError:
            return False

        if mtime == self._last_mtime:
            return False

        self._last_mtime = mtime
        self.cache.invalidate()
        try:
            self.cache.validate()
        except WidgetTemplateError as e:
            logger.error("widget_template_invalid", path=str(self.cache.path), error=str(e))
        else:
            logger.info("widget_template_reloaded", path=str(self.cache.path))
        return True

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.check_once()
