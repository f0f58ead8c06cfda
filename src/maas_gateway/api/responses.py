"""Envelope responses and exception handlers for the ASGI host."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from maas_gateway.context import RequestContext, new_request_context
from maas_gateway.envelope import (
    AVAILABLE_ENDPOINTS,
    envelope_for_exception,
    error_envelope,
    success_envelope,
)
from maas_gateway.errors import GatewayError

logger = structlog.get_logger()


def request_context(request: Request) -> RequestContext:
    """Context set by the tracing middleware, created lazily if absent."""
    ctx = getattr(request.state, "request_context", None)
    if ctx is None:
        ctx = new_request_context(
            request.method,
            request.url.path,
            request.headers.get("x-request-id"),
        )
        request.state.request_context = ctx
    return ctx


def _user_id(request: Request) -> str | None:
    identity = getattr(request.state, "identity", None)
    return getattr(identity, "user_id", None)


def envelope(
    request: Request, data: Any, meta: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Success envelope for a route handler's payload."""
    return success_envelope(data, request_context(request), meta)


def error_response(
    request: Request,
    exc: BaseException,
) -> JSONResponse:
    ctx = request_context(request)
    status, body, headers = envelope_for_exception(ctx, exc)
    return JSONResponse(status_code=status, content=body, headers=headers or None)


async def gateway_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for ``GatewayError`` short-circuits (401/403/429/5xx)."""
    error = cast(GatewayError, exc)
    log = logger.error if error.status_code >= 500 else logger.warning
    log(
        "request_rejected",
        status_code=error.status_code,
        code=error.code,
        error_type=error.error_type,
        method=request.method,
        path=request.url.path,
        user_id=_user_id(request),
    )
    return error_response(request, exc)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Routing errors (404, 405) in envelope form."""
    http_exc = cast(StarletteHTTPException, exc)
    ctx = request_context(request)
    if http_exc.status_code == 404:
        body = error_envelope(
            ctx, "Endpoint not found", "NotFoundError", "ENDPOINT_NOT_FOUND"
        )
        body["available_endpoints"] = list(AVAILABLE_ENDPOINTS)
    else:
        body = error_envelope(
            ctx, str(http_exc.detail), "HTTPError", f"HTTP_{http_exc.status_code}"
        )
    return JSONResponse(
        status_code=http_exc.status_code,
        content=body,
        headers=getattr(http_exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    body = error_envelope(
        request_context(request),
        "Request validation failed",
        "ValidationError",
        "VALIDATION_ERROR",
    )
    body["details"] = validation_exc.errors()
    return JSONResponse(status_code=422, content=body)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions.

    Full context goes to the server log; the client only gets a generic
    500 envelope.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        method=request.method,
        path=request.url.path,
        user_id=_user_id(request),
    )
    return error_response(request, exc)
