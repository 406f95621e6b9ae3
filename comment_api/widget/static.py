"""Static asset delivery with cache and CORS headers."""

import os
from pathlib import Path

from fastapi import FastAPI
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope


STATIC_CACHE_CONTROL = "public, max-age=3600"

# Types the browser must not sniff differently (scripts are left alone)
NOSNIFF_SUFFIXES = {".html", ".css"}

CONTENT_TYPES = {
    ".js": "application/javascript; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".html": "text/html; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


class AssetFiles(StaticFiles):
    """StaticFiles that sets content type, caching and CORS headers."""

    def file_response(
        self,
        full_path: str | os.PathLike[str],
        stat_result: os.stat_result,
        scope: Scope,
        status_code: int = 200,
    ) -> Response:
        response = super().file_response(full_path, stat_result, scope, status_code)
        suffix = Path(full_path).suffix.lower()

        if suffix in CONTENT_TYPES:
            response.headers["Content-Type"] = CONTENT_TYPES[suffix]
        if suffix in NOSNIFF_SUFFIXES:
            response.headers["X-Content-Type-Options"] = "nosniff"

        response.headers["Cache-Control"] = STATIC_CACHE_CONTROL
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        return response


def mount_static(app: FastAPI, static_dir: Path | str) -> None:
    """Mount ``/js``, ``/css`` and ``/static`` below ``static_dir``.

    Must run after routers are included so explicit routes such as the
    widget script take precedence over the mounts.
    """
    root = Path(static_dir)
    app.mount("/js", AssetFiles(directory=root / "js", check_dir=False), name="js")
    app.mount("/css", AssetFiles(directory=root / "css", check_dir=False), name="css")
    app.mount("/static", AssetFiles(directory=root, check_dir=False), name="static")
