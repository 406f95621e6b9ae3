"""Per-request context and access logging."""

import time
from collections.abc import Awaitable, Callable
from urllib.parse import parse_qsl, urlencode

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from comment_api.core.context import (
    clear_context,
    set_correlation_id,
    set_request_id,
    set_trace_id,
)


logger = structlog.get_logger(__name__)

# Query parameters never written to the access log (admin token may be sent as ?token=)
REDACTED_QUERY_PARAMS = frozenset({"token"})

ADMIN_PATH_PREFIXES = ("/admin", "/api/comments/admin", "/api/widget")


def redact_query(query: str) -> str:
    """Return ``query`` with sensitive parameter values replaced."""
    if not query:
        return ""
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode(
        [(k, "[REDACTED]" if k in REDACTED_QUERY_PARAMS else v) for k, v in pairs]
    )


def trace_id_from_traceparent(traceparent: str | None) -> str | None:
    """Trace id of a W3C ``traceparent`` (version-traceid-parentid-flags)."""
    if not traceparent:
        return None
    parts = traceparent.split("-")
    return parts[1] if len(parts) >= 2 else None  # noqa: PLR2004


def client_ip(request: Request) -> str | None:
    """Originating client address, honouring reverse-proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request/trace ids to the logging context and logs each request.

    The request id is taken from ``X-Request-ID`` (or generated) and echoed
    back in the response. Health probes are excluded from the access log.
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    TRACE_ID_HEADER = "X-Trace-ID"
    B3_TRACE_HEADER = "X-B3-TraceId"
    TRACEPARENT_HEADER = "traceparent"
    CORRELATION_ID_HEADER = "X-Correlation-ID"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ())

    def _bind_context(self, request: Request) -> str:
        headers = request.headers
        request_id = set_request_id(headers.get(self.REQUEST_ID_HEADER))

        trace_id = (
            headers.get(self.TRACE_ID_HEADER)
            or headers.get(self.B3_TRACE_HEADER)
            or trace_id_from_traceparent(headers.get(self.TRACEPARENT_HEADER))
        )
        if trace_id:
            set_trace_id(trace_id)

        correlation_id = headers.get(self.CORRELATION_ID_HEADER)
        if correlation_id:
            set_correlation_id(correlation_id)

        request.state.request_id = request_id
        return request_id

    def _is_logged(self, path: str) -> bool:
        return self.log_requests and not path.startswith(self.exclude_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = self._bind_context(request)
        path = request.url.path
        log = logger.bind(
            method=request.method,
            path=path,
            admin_route=path.startswith(ADMIN_PATH_PREFIXES),
        )
        logged = self._is_logged(path)

        if logged:
            log.info(
                "request_started",
                query=redact_query(request.url.query),
                client_ip=client_ip(request),
                user_agent=request.headers.get("user-agent"),
            )

        try:
            response = await call_next(request)
        except Exception as e:
            log.exception(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        else:
            if logged:
                level = "warning" if response.status_code >= 400 else "info"  # noqa: PLR2004
                getattr(log, level)(
                    "request_completed",
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
            response.headers[self.REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


__all__ = ["RequestContextMiddleware", "client_ip", "redact_query"]
