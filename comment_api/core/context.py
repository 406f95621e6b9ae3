"""Per-request identifiers held in contextvars.

The middleware sets them at the start of a request; the log processors read
them so every event of a request carries the same ``request_id``.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Name in log events -> variable
_CONTEXT_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def set_request_id(request_id: str | None = None) -> str:
    """Use ``request_id``, or a fresh UUID4 when none was supplied.

    Returns:
        The request ID in effect.
    """
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def get_request_id() -> str:
    return request_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Identifiers bound to the current request, omitting unset ones."""
    return {name: value for name, var in _CONTEXT_VARS.items() if (value := var.get())}


def clear_context() -> None:
    """Reset all identifiers; called when a request finishes."""
    request_id_var.set("")
    trace_id_var.set(None)
    correlation_id_var.set(None)
