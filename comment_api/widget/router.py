"""Widget script and admin panel endpoints."""

from pathlib import Path
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response

from comment_api.auth import AdminAccess
from comment_api.config import get_settings

from .template import (
    WidgetTemplateCache,
    WidgetTemplateData,
    WidgetTemplateError,
    determine_api_url,
)


logger = structlog.get_logger(__name__)


router = APIRouter(tags=["widget"])

WIDGET_CACHE_CONTROL = "public, max-age=1800"
NO_CACHE = "no-cache, no-store, must-revalidate"


def get_template_cache(request: Request) -> WidgetTemplateCache:
    cache = getattr(request.app.state, "widget_template", None)
    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Widget template not available",
        )
    return cache


@router.get("/js/comment-widget.js", include_in_schema=False)
async def widget_script(request: Request) -> Response:
    """Render the embeddable comment widget for this deployment."""
    settings = get_settings()
    cache = get_template_cache(request)
    data = WidgetTemplateData(
        api_url=determine_api_url(request, settings),
        version=settings.version,
        stage=settings.stage,
    )

    try:
        script = cache.render(data)
    except WidgetTemplateError as e:
        logger.error("widget_render_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Template not available",
        ) from e

    return Response(
        content=script,
        media_type="application/javascript; charset=utf-8",
        headers={
            "Cache-Control": WIDGET_CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, OPTIONS",
        },
    )


@router.get("/admin", include_in_schema=False)
@router.get("/admin/", include_in_schema=False)
@router.get("/admin/panel", include_in_schema=False)
async def admin_panel() -> HTMLResponse:
    """Moderation panel; it authenticates against the admin API itself."""
    path = Path(get_settings().admin_panel_path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("admin_panel_unavailable", path=str(path), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin panel not available",
        ) from e

    return HTMLResponse(content=content, headers={"Cache-Control": NO_CACHE})


@router.get(
    "/api/widget/template-info",
    summary="Widget template diagnostics",
    dependencies=[AdminAccess],
)
async def template_info(request: Request) -> dict[str, Any]:
    """Template path, modification time and the API URL the widget would use."""
    settings = get_settings()
    cache = get_template_cache(request)
    try:
        info = cache.info()
    except OSError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Template info not available",
        ) from e

    return {
        **info,
        "hot_reload": settings.is_development,
        "current_api_url": determine_api_url(request, settings),
    }
