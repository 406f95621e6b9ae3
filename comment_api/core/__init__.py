# Core infrastructure
from comment_api.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_correlation_id,
    set_request_id,
    set_trace_id,
)
from comment_api.core.logging import configure_structlog, get_logger
from comment_api.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_correlation_id",
    "set_request_id",
    "set_trace_id",
]
