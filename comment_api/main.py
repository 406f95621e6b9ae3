"""Comment API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from comment_api import __version__
from comment_api.auth import AdminTokenAuth
from comment_api.comments.repository import CommentRepository
from comment_api.comments.router import router as comments_router
from comment_api.config import get_settings
from comment_api.core.errors import register_exception_handlers
from comment_api.core.logging import configure_structlog, get_logger
from comment_api.core.middleware import RequestContextMiddleware
from comment_api.core.redis import init_redis, shutdown_redis
from comment_api.health import router as health_router
from comment_api.widget import TemplateHotReloader, WidgetTemplateCache, mount_static
from comment_api.widget.router import router as widget_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    The store and the widget template are required: startup fails if the
    store does not answer or the template cannot be rendered.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.version,
        stage=settings.stage,
        storage_layout=settings.storage_layout,
    )

    widget_template = WidgetTemplateCache.from_settings(settings)
    widget_template.validate()
    app.state.widget_template = widget_template

    redis_client = await init_redis()
    app.state.redis = redis_client

    app.state.comment_repository = CommentRepository(
        redis_client, layout=settings.storage_layout
    )
    logger.info("comment_repository_initialized", layout=settings.storage_layout)

    app.state.admin_auth = AdminTokenAuth.from_settings(settings)

    reloader = None
    if settings.is_development:
        reloader = TemplateHotReloader(
            widget_template, interval_seconds=settings.template_reload_interval
        )
        reloader.start()

    logger.info("server_ready", host=settings.host, port=settings.port)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    if reloader is not None:
        await reloader.stop()
    await shutdown_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so Starlette never renders stack traces into responses
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Comment service with moderation and an embeddable widget",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Added before CORS, so it runs inside the CORS layer
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(comments_router)
    app.include_router(widget_router)

    # Mounts go last so the widget route wins over /js
    mount_static(app, settings.static_dir)

    return app


app = create_app()
