"""Uniform success/error response bodies.

Success::

    {"data": ..., "request_id": "<uuid>", "timestamp": "<ISO8601>", "meta": {...}}

Error::

    {"error": {"message": ..., "type": ..., "code": ...},
     "request_id": ..., "timestamp": ..., "path": ..., "method": ...}
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from maas_gateway.context import RequestContext
from maas_gateway.errors import GatewayError

AVAILABLE_ENDPOINTS: tuple[str, ...] = (
    "/health",
    "/api/v1/*",
    "/mcp/*",
    "/.well-known/onasis.json",
)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def success_envelope(
    data: Any,
    ctx: RequestContext,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "data": data,
        "request_id": ctx.request_id,
        "timestamp": _timestamp(),
    }
    if meta:
        body["meta"] = meta
    return body


def error_envelope(
    ctx: RequestContext,
    message: str,
    error_type: str = "InternalError",
    code: str = "INTERNAL_ERROR",
) -> dict[str, Any]:
    return {
        "error": {"message": message, "type": error_type, "code": code},
        "request_id": ctx.request_id,
        "timestamp": _timestamp(),
        "path": ctx.path,
        "method": ctx.method,
    }


def envelope_for_exception(
    ctx: RequestContext, exc: BaseException
) -> tuple[int, dict[str, Any], dict[str, str]]:
    """Map any exception to (status, error envelope, extra headers).

    ``GatewayError`` keeps its own status/code/type; its messages are
    written by the gateway and safe to return. Other exceptions that expose
    a 4xx/5xx ``status_code`` or ``status`` keep that status and their
    ``code`` (``INTERNAL_ERROR`` when absent). Their message is returned
    only for 4xx; 5xx bodies carry a generic message. Anything else becomes
    a generic 500 so that internal messages never reach the client.
    """
    if isinstance(exc, GatewayError):
        return (
            exc.status_code,
            error_envelope(ctx, exc.message, exc.error_type, exc.code),
            exc.headers,
        )

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    if not isinstance(code, str) or not code:
        code = "INTERNAL_ERROR"
    if isinstance(status, int) and 400 <= status < 500:
        return (
            status,
            error_envelope(ctx, str(exc) or "Request failed", type(exc).__name__, code),
            {},
        )
    if isinstance(status, int) and 500 <= status < 600:
        return (
            status,
            error_envelope(ctx, "Internal server error", "InternalError", code),
            {},
        )

    return (
        500,
        error_envelope(ctx, "Internal server error", "InternalError", "INTERNAL_ERROR"),
        {},
    )
