"""Health check, readiness and metrics endpoints."""

import gc
import platform
import resource
import threading
import time
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from comment_api.comments.dependencies import StatsAggregatorDep, handle_comment_error
from comment_api.comments.models import format_timestamp
from comment_api.comments.repository import CommentError
from comment_api.config import get_settings
from comment_api.core.redis import ping_redis


router = APIRouter(tags=["health"])

SERVICE_NAME = "comment-api"
START_MONOTONIC = time.monotonic()

ENDPOINTS = {
    "health": "/health",
    "api": "/api/comments",
    "admin": "/admin",
    "widget": "/js/comment-widget.js",
}


def uptime_seconds() -> float:
    return time.monotonic() - START_MONOTONIC


def _now() -> str:
    return format_timestamp(datetime.now(UTC))


def memory_bytes() -> int:
    """Peak resident set size of this process."""
    # ru_maxrss is reported in kilobytes on Linux
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024


def system_info() -> dict[str, Any]:
    return {
        "python_version": platform.python_version(),
        "threads": threading.active_count(),
        "memory_mb": memory_bytes() // 1024 // 1024,
        "gc_collections": sum(s["collections"] for s in gc.get_stats()),
        "platform": f"{platform.system().lower()}/{platform.machine()}",
    }


def _base_health() -> dict[str, Any]:
    settings = get_settings()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": settings.version,
        "stage": settings.stage,
        "timestamp": _now(),
        "uptime": str(timedelta(seconds=int(uptime_seconds()))),
    }


@router.get("/")
async def root() -> dict[str, Any]:
    """Simple health check without dependency probes."""
    return {**_base_health(), "system": system_info(), "endpoints": ENDPOINTS}


@router.get("/health")
async def health(request: Request) -> ORJSONResponse:
    """Detailed health check including store reachability."""
    ok, error = await ping_redis(getattr(request.app.state, "redis", None))
    body = {
        **_base_health(),
        "dependencies": {
            "redis": {"status": "healthy" if ok else "unhealthy", "error": error},
        },
        "system": system_info(),
        "endpoints": ENDPOINTS,
    }
    return ORJSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )


@router.get("/health/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive", "time": _now()}


@router.get("/health/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - ready only while the store answers."""
    ok, error = await ping_redis(getattr(request.app.state, "redis", None))
    if not ok:
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "error": error},
        )
    return ORJSONResponse(content={"status": "ready"})


@router.get("/metrics")
async def metrics(aggregator: StatsAggregatorDep) -> dict[str, Any]:
    """Comment counts and process figures for monitoring."""
    try:
        stats = await aggregator.collect()
    except CommentError as e:
        raise handle_comment_error(e) from e

    return {
        "metrics": {
            "comments_total": stats.total_comments,
            "comments_active": stats.active_comments,
            "comments_inactive": stats.inactive_comments,
            "posts_with_comments": stats.unique_posts,
            "uptime_seconds": round(uptime_seconds(), 3),
            "memory_bytes": memory_bytes(),
            "threads": threading.active_count(),
            "gc_collections": sum(s["collections"] for s in gc.get_stats()),
        },
        "timestamp": _now(),
    }
